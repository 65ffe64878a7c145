"""Synthesis of body validation functions."""

from __future__ import annotations

import re
from dataclasses import replace

from .body import BodyType
from .convert import wire_annotation
from .errors import ConstraintMismatchError
from .naming import identifier, snake
from .registry import ConversionKey, DedupRegistry
from .runtime import FORMATS
from .source import ModuleScope, docstring, literal
from .typegraph import ArrayOf, Attribute, AttributeType, MapOf, NamedRef, Primitive, TypeGraph, format_type

VALIDATE = "validate"


def _enum_ok(kind: Primitive, value: object) -> bool:
    if kind.py_type == "bool":
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if kind.py_type == "int":
        return isinstance(value, int)
    if kind.py_type == "float":
        return isinstance(value, (int, float))
    if kind.py_type == "str":
        return isinstance(value, str)
    return False


def constraint_checks(attr: Attribute, value: str, path: str, ctx: str) -> list[str]:
    """Return the runtime check calls for the constraints of `attr`.

    Raises ConstraintMismatchError when a constraint cannot apply to the
    attribute's wire type.
    """
    c = attr.constraints
    t = attr.type
    prim = t if isinstance(t, Primitive) else None
    where = f"{ctx}.{attr.name} ({format_type(t)})"
    name = literal(path)
    out: list[str] = []

    if c.enum is not None:
        if prim is None or prim.kind == "bytes":
            raise ConstraintMismatchError(f"{where}: enum requires a primitive type")
        bad = [v for v in c.enum if not _enum_ok(prim, v)]
        if bad:
            raise ConstraintMismatchError(f"{where}: enum values {bad!r} do not match the attribute type")
        out.append(f"runtime.validate_enum({name}, {value}, {literal(list(c.enum))})")
    if c.format is not None:
        if prim is None or prim.kind != "string":
            raise ConstraintMismatchError(f"{where}: format requires a string")
        if c.format not in FORMATS:
            raise ConstraintMismatchError(f"{where}: unknown format {c.format!r}")
        out.append(f"runtime.validate_format({name}, {value}, {literal(c.format)})")
    if c.pattern is not None:
        if prim is None or prim.kind != "string":
            raise ConstraintMismatchError(f"{where}: pattern requires a string")
        try:
            re.compile(c.pattern)
        except re.error as e:
            raise ConstraintMismatchError(f"{where}: invalid pattern {c.pattern!r}: {e}") from e
        out.append(f"runtime.validate_pattern({name}, {value}, {literal(c.pattern)})")
    if c.min_length is not None or c.max_length is not None:
        sized = isinstance(t, (ArrayOf, MapOf)) or (prim is not None and prim.kind in {"string", "bytes"})
        if not sized:
            raise ConstraintMismatchError(f"{where}: length requires a string, bytes, array or map")
        if c.min_length is not None:
            out.append(f"runtime.validate_min_length({name}, {value}, {c.min_length!r})")
        if c.max_length is not None:
            out.append(f"runtime.validate_max_length({name}, {value}, {c.max_length!r})")
    if c.minimum is not None or c.maximum is not None:
        if prim is None or not prim.numeric:
            raise ConstraintMismatchError(f"{where}: range requires a number")
        if c.minimum is not None:
            out.append(f"runtime.validate_minimum({name}, {value}, {c.minimum!r})")
        if c.maximum is not None:
            out.append(f"runtime.validate_maximum({name}, {value}, {c.maximum!r})")
    return out


def check_constraints(graph: TypeGraph) -> None:
    """Verify that every constraint of every user type applies to its attribute.

    Covers attributes bound outside the body and types no body reaches.
    """
    for ut in graph:
        for attr in ut.attributes:
            resolved = replace(attr, type=graph.unalias(attr.type))
            constraint_checks(resolved, "value", attr.name, ut.name)


class ValidationSynthesizer:
    def __init__(self, graph: TypeGraph, registry: DedupRegistry, scope: ModuleScope):
        self.graph = graph
        self.registry = registry
        self.scope = scope

    def validator(self, body: BodyType) -> str | None:
        """Return the name of the validation function of `body`, or None when it has nothing to check."""
        if not self.has_checks(body.ref):
            return None
        key = ConversionKey(source=body.id, target=body.id)
        slot = self.registry.lookup(VALIDATE, key)
        if slot is not None:
            return slot.name
        name = self.scope.claim(f"validate_{snake(body.name)}")
        slot, _ = self.registry.reserve(VALIDATE, key, namespace=self.scope.service, name=name)
        self.scope.uses_runtime = True

        ann = wire_annotation(body.ref, registry=self.registry, scope=self.scope)
        lines = [f"def {name}(body: {ann}) -> runtime.ValidationError | None:"]
        lines.extend(docstring(f"{name} runs the validations defined on {body.name}."))
        lines.append("    err = None")
        ctx = body.name
        if body.declared:
            for attr in body.attributes:
                if attr.required:
                    lines.append(f"    if body.{identifier(attr.name)} is None:")
                    lines.append(
                        f"        err = runtime.merge_errors(err, runtime.missing_field_error({literal(attr.name)}, \"body\"))"
                    )
            for attr in body.attributes:
                value = f"body.{identifier(attr.name)}"
                checks = constraint_checks(attr, value, value, ctx)
                nested = self._nested(value, attr.type, "        ", 0)
                if not checks and not nested:
                    continue
                lines.append(f"    if {value} is not None:")
                lines.extend(f"        err = runtime.merge_errors(err, {c})" for c in checks)
                lines.extend(nested)
        else:
            lines.extend(self._nested("body", body.type, "    ", 0))
        lines.append("    return err")
        self.registry.complete(slot, "\n".join(lines))
        return name

    def has_checks(self, t: AttributeType, seen: set[str] | None = None) -> bool:
        """Whether a value of wire type `t` has any required or constrained attribute, transitively."""
        seen = set() if seen is None else seen
        if isinstance(t, ArrayOf):
            return self.has_checks(t.elem, seen)
        if isinstance(t, MapOf):
            return self.has_checks(t.key, seen) or self.has_checks(t.elem, seen)
        if not isinstance(t, NamedRef):
            return False
        if t.type_id in seen:
            return False
        seen.add(t.type_id)
        body = self.registry.body(t.type_id)
        for attr in body.attributes:
            if attr.required or not attr.constraints.is_empty():
                return True
            if self.has_checks(attr.type, seen):
                return True
        return False

    def _nested(self, value: str, t: AttributeType, indent: str, depth: int) -> list[str]:
        """Return statements validating the nested bodies reachable from `value`."""
        if isinstance(t, NamedRef):
            fn = self.validator(self.registry.body(t.type_id))
            if fn is None:
                return []
            return [f"{indent}err = runtime.merge_errors(err, {fn}({value}))"]
        if isinstance(t, (ArrayOf, MapOf)):
            var = "val" if depth == 0 else f"val{depth + 1}"
            inner = self._nested(var, t.elem, f"{indent}    ", depth + 1)
            if not inner:
                return []
            source = value if isinstance(t, ArrayOf) else f"{value}.values()"
            return [f"{indent}for {var} in {source}:", *inner]
        return []
