"""Annotations and element-wise conversion expressions shared by the synthesizers."""

from __future__ import annotations

from typing import Callable

from .errors import UnresolvedTypeError
from .registry import DedupRegistry
from .source import ModuleScope
from .typegraph import (
    AnyType,
    ArrayOf,
    AttributeType,
    MapOf,
    NamedRef,
    ObjectOf,
    Primitive,
    TypeGraph,
    format_type,
)

HelperFn = Callable[[NamedRef, NamedRef], str]
UnwrapFn = Callable[[AttributeType], AttributeType]


def wire_annotation(t: AttributeType, *, registry: DedupRegistry, scope: ModuleScope) -> str:
    if isinstance(t, Primitive):
        return t.py_type
    if isinstance(t, ArrayOf):
        return f"list[{wire_annotation(t.elem, registry=registry, scope=scope)}]"
    if isinstance(t, MapOf):
        k = wire_annotation(t.key, registry=registry, scope=scope)
        v = wire_annotation(t.elem, registry=registry, scope=scope)
        return f"dict[{k}, {v}]"
    if isinstance(t, NamedRef):
        return registry.body(t.type_id).name
    if isinstance(t, AnyType):
        scope.uses_any = True
        return "Any"
    raise UnresolvedTypeError(f"cannot render wire type {format_type(t)}")


def domain_annotation(t: AttributeType, *, graph: TypeGraph, scope: ModuleScope, projected: bool) -> str:
    t = graph.unalias(t)
    if isinstance(t, Primitive):
        return t.py_type
    if isinstance(t, ArrayOf):
        return f"list[{domain_annotation(t.elem, graph=graph, scope=scope, projected=projected)}]"
    if isinstance(t, MapOf):
        k = domain_annotation(t.key, graph=graph, scope=scope, projected=projected)
        v = domain_annotation(t.elem, graph=graph, scope=scope, projected=projected)
        return f"dict[{k}, {v}]"
    if isinstance(t, NamedRef):
        return domain_class(graph.get(t.type_id).name, scope=scope, projected=projected)
    if isinstance(t, AnyType):
        scope.uses_any = True
        return "Any"
    raise UnresolvedTypeError(f"cannot render domain type {format_type(t)}")


def domain_class(type_name: str, *, scope: ModuleScope, projected: bool) -> str:
    if projected:
        scope.uses_views = True
        return f"{scope.views_module}.{type_name}View"
    scope.uses_domain = True
    return f"{scope.module}.{type_name}"


def nullable(annotation: str) -> str:
    if annotation == "Any":
        return annotation
    return f"{annotation} | None"


def _loop_var(base: str, depth: int) -> str:
    return base if depth == 0 else f"{base}{depth + 1}"


def coerce(src: str, src_type: Primitive, dst_type: Primitive) -> str:
    """Copy a primitive, converting when the Python types differ (e.g. int -> float)."""
    if src_type.py_type == dst_type.py_type:
        return src
    return f"{dst_type.py_type}({src})"


def convert_expr(
    src: str,
    src_type: AttributeType,
    dst_type: AttributeType,
    *,
    helper: HelperFn,
    unwrap_src: UnwrapFn,
    unwrap_dst: UnwrapFn,
    depth: int = 0,
) -> str:
    """Return an expression converting `src` of `src_type` into `dst_type`.

    Nested user types are converted by calling the function `helper` names for
    the (source, destination) reference pair.
    """
    s = unwrap_src(src_type)
    d = unwrap_dst(dst_type)
    if isinstance(s, AnyType) or isinstance(d, AnyType):
        return src
    if isinstance(s, Primitive) and isinstance(d, Primitive):
        return coerce(src, s, d)
    if isinstance(s, ArrayOf) and isinstance(d, ArrayOf):
        val = _loop_var("val", depth)
        inner = convert_expr(
            val, s.elem, d.elem, helper=helper, unwrap_src=unwrap_src, unwrap_dst=unwrap_dst, depth=depth + 1
        )
        if inner == val:
            return f"list({src})"
        return f"[{inner} for {val} in {src}]"
    if isinstance(s, MapOf) and isinstance(d, MapOf):
        key = _loop_var("key", depth)
        val = _loop_var("val", depth)
        kx = convert_expr(
            key, s.key, d.key, helper=helper, unwrap_src=unwrap_src, unwrap_dst=unwrap_dst, depth=depth + 1
        )
        vx = convert_expr(
            val, s.elem, d.elem, helper=helper, unwrap_src=unwrap_src, unwrap_dst=unwrap_dst, depth=depth + 1
        )
        if kx == key and vx == val:
            return f"dict({src})"
        return f"{{{kx}: {vx} for {key}, {val} in {src}.items()}}"
    if isinstance(s, NamedRef) and isinstance(d, NamedRef):
        return f"{helper(s, d)}({src})"
    if isinstance(s, ObjectOf) or isinstance(d, ObjectOf):
        raise UnresolvedTypeError("inline object types must be declared as user types")
    raise UnresolvedTypeError(f"cannot convert {format_type(s)} to {format_type(d)}")
