"""Synthesis of domain -> wire (request body) conversion functions."""

from __future__ import annotations

from .body import BodyType
from .convert import convert_expr, domain_annotation, wire_annotation
from .design import Method
from .errors import UnresolvedTypeError
from .naming import identifier, snake
from .registry import ConversionKey, DedupRegistry
from .source import FUNCTION, ModuleScope, Section, docstring
from .typegraph import AttributeType, NamedRef, TypeGraph, UserType

MARSHAL = "marshal"


class MarshalSynthesizer:
    def __init__(self, graph: TypeGraph, registry: DedupRegistry, scope: ModuleScope):
        self.graph = graph
        self.registry = registry
        self.scope = scope

    def request_function(self, method: Method, body: BodyType) -> Section:
        """Emit `new_<method>_request_body`, building the request body from the payload."""
        if method.payload is None:
            raise ValueError(f"{method.service}.{method.name} has no payload")
        name = self.scope.claim(f"new_{snake(method.name)}_request_body")
        ptype = domain_annotation(method.payload, graph=self.graph, scope=self.scope, projected=False)
        btype = wire_annotation(body.ref, registry=self.registry, scope=self.scope)
        ctx = f"{method.service}.{method.name}: payload"

        lines = [f"def {name}(p: {ptype}) -> {btype}:"]
        lines.extend(
            docstring(
                f"{name} builds the HTTP request body from the payload of the "
                f'"{method.name}" endpoint of the "{method.service}" service.'
            )
        )
        ut = self.graph.object_type(method.payload)
        explicit = method.payload_mapping.body_attribute
        if ut is not None and explicit is not None:
            attr = ut.attribute(explicit)
            if attr is None:
                raise UnresolvedTypeError(f"{ctx}: unknown body attribute {explicit!r}")
            value = f"p.{identifier(attr.name)}"
            expr = self._expr(value, attr.type, body.ref, f"{ctx}.{explicit}")
            if expr != value and not attr.required and not attr.has_default:
                expr = f"{expr} if {value} is not None else None"
            lines.append(f"    body = {expr}")
        elif ut is not None:
            lines.extend(self._build(ut, body, src="p", dst="body", ctx=ctx))
        else:
            lines.append(f"    body = {self._expr('p', method.payload, body.ref, ctx)}")
        lines.append("    return body")
        return Section(kind=FUNCTION, name=name, code="\n".join(lines))

    def helper(self, src: NamedRef, dst: NamedRef, ctx: str) -> str:
        """Return the name of the shared helper converting user type `src` into body `dst`."""
        key = ConversionKey(source=f"{self.scope.service}:{src.type_id}", target=dst.type_id)
        slot = self.registry.lookup(MARSHAL, key)
        if slot is not None:
            return slot.name
        ut = self.graph.get(src.type_id)
        body = self.registry.body(dst.type_id)
        name = self.scope.claim(f"marshal_{self.scope.module}_{snake(ut.name)}_to_{snake(body.name)}")
        # Reserve before recursing so self-referencing types resolve to this helper.
        slot, _ = self.registry.reserve(MARSHAL, key, namespace=self.scope.service, name=name)
        dtype = domain_annotation(src, graph=self.graph, scope=self.scope, projected=False)
        lines = [f"def {name}(v: {dtype}) -> {body.name}:"]
        lines.extend(docstring(f"{name} builds a value of type {body.name} from a value of type {dtype}."))
        lines.extend(self._build(ut, body, src="v", dst="res", ctx=f"{ctx}<{ut.name}>"))
        lines.append("    return res")
        self.registry.complete(slot, "\n".join(lines))
        return name

    def _expr(self, src: str, src_type: AttributeType, dst_type: AttributeType, ctx: str) -> str:
        return convert_expr(
            src,
            src_type,
            dst_type,
            helper=lambda s, d: self.helper(s, d, ctx),
            unwrap_src=self.graph.unalias,
            unwrap_dst=lambda t: t,
        )

    def _build(self, ut: UserType, body: BodyType, *, src: str, dst: str, ctx: str) -> list[str]:
        ctor: list[str] = []
        post: list[str] = []
        for battr in body.attributes:
            dattr = ut.attribute(battr.name)
            if dattr is None:
                raise UnresolvedTypeError(f"{ctx}: {ut.name} has no attribute {battr.name!r}")
            fname = identifier(battr.name)
            value = f"{src}.{fname}"
            expr = self._expr(value, dattr.type, battr.type, f"{ctx}.{battr.name}")
            absent_possible = not dattr.required and not dattr.has_default
            if expr == value or not absent_possible:
                ctor.append(f"        {fname}={expr},")
            else:
                post.append(f"    if {value} is not None:")
                post.append(f"        {dst}.{fname} = {expr}")
        if ctor:
            lines = [f"    {dst} = {body.name}(", *ctor, "    )"]
        else:
            lines = [f"    {dst} = {body.name}()"]
        return lines + post
