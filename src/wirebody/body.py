"""Derivation of the body types carried in HTTP requests and responses."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .design import ErrorResponse, HttpMapping, Method, Response
from .errors import UnresolvedTypeError
from .naming import pascal
from .registry import DedupRegistry
from .source import ModuleScope
from .typegraph import (
    AnyType,
    ArrayOf,
    Attribute,
    AttributeType,
    MapOf,
    NamedRef,
    ObjectOf,
    Primitive,
    TypeGraph,
    UserType,
)

REQUEST = "request"
RESPONSE = "response"
ERROR = "error"


@dataclass(frozen=True)
class BodyVariant:
    service: str
    method: str
    kind: str  # request | response | error
    name: str | None = None  # response status or error name


@dataclass(frozen=True)
class BodyType:
    id: str
    name: str
    namespace: str
    direction: str  # request | response
    type: AttributeType
    origin: str | None = None
    variant: BodyVariant | None = None

    @property
    def declared(self) -> bool:
        return isinstance(self.type, ObjectOf)

    @property
    def attributes(self) -> tuple[Attribute, ...]:
        if isinstance(self.type, ObjectOf):
            return self.type.attributes
        return ()

    def attribute(self, name: str) -> Attribute | None:
        if isinstance(self.type, ObjectOf):
            return self.type.get(name)
        return None

    @property
    def ref(self) -> AttributeType:
        """The body as a whole: a reference for declared bodies, the wire type otherwise."""
        return NamedRef(self.id) if self.declared else self.type


@dataclass(frozen=True)
class MethodBodies:
    method: Method
    request: BodyType | None
    responses: tuple[tuple[Response, BodyType | None], ...]
    errors: tuple[tuple[ErrorResponse, BodyType | None], ...]


class BodyDeriver:
    def __init__(self, graph: TypeGraph, registry: DedupRegistry, scope: ModuleScope):
        self.graph = graph
        self.registry = registry
        self.scope = scope

    def derive(self, method: Method) -> MethodBodies:
        mname = pascal(method.name)
        request = self._top(
            method,
            method.payload,
            method.payload_mapping,
            variant=BodyVariant(method.service, method.name, REQUEST),
            name=f"{mname}RequestBody",
            role="payload",
        )

        with_body = [r for r in method.responses if r.type is not None]
        responses: list[tuple[Response, BodyType | None]] = []
        for r in method.responses:
            suffix = "" if len(with_body) <= 1 else pascal(r.status)
            responses.append(
                (
                    r,
                    self._top(
                        method,
                        r.type,
                        r.mapping,
                        variant=BodyVariant(method.service, method.name, RESPONSE, r.status),
                        name=f"{mname}{suffix}ResponseBody",
                        role=f"result {r.status}",
                    ),
                )
            )

        errors: list[tuple[ErrorResponse, BodyType | None]] = []
        for e in method.errors:
            errors.append(
                (
                    e,
                    self._top(
                        method,
                        e.type,
                        e.mapping,
                        variant=BodyVariant(method.service, method.name, ERROR, e.name),
                        name=f"{mname}{pascal(e.name)}ResponseBody",
                        role=f"error {e.name}",
                    ),
                )
            )
        return MethodBodies(method=method, request=request, responses=tuple(responses), errors=tuple(errors))

    def _top(
        self,
        method: Method,
        t: AttributeType | None,
        mapping: HttpMapping,
        *,
        variant: BodyVariant,
        name: str,
        role: str,
    ) -> BodyType | None:
        if t is None:
            return None
        ctx = f"{method.service}.{method.name}: {role}"
        direction = REQUEST if variant.kind == REQUEST else RESPONSE
        self._require_resolved(t, ctx)
        ut = self.graph.object_type(t)

        if ut is None:
            if mapping.bindings:
                raise UnresolvedTypeError(f"{ctx}: attribute bindings on non-object type")
            if mapping.body_attribute is not None:
                raise UnresolvedTypeError(f"{ctx}: body attribute {mapping.body_attribute!r} on non-object type")
            if not mapping.in_body(""):
                return None
            name = self.scope.claim(name)
            return self._add_top(variant, name, direction, self._wire(t, direction, ctx), origin=None)

        for bound in mapping.bindings:
            if ut.attribute(bound) is None:
                raise UnresolvedTypeError(f"{ctx}: mapping binds unknown attribute {ut.name}.{bound}")

        if mapping.body_attribute is not None:
            attr = ut.attribute(mapping.body_attribute)
            if attr is None:
                raise UnresolvedTypeError(f"{ctx}: unknown body attribute {ut.name}.{mapping.body_attribute}")
            inner = self.graph.object_type(attr.type)
            actx = f"{ctx}.{attr.name}"
            name = self.scope.claim(name)
            if inner is None:
                return self._add_top(variant, name, direction, self._wire(attr.type, direction, actx), origin=None)
            attrs = self._body_attributes(inner, inner.attributes, direction, actx)
            return self._add_top(variant, name, direction, ObjectOf(attrs), origin=inner.id)

        selected = [a for a in ut.attributes if mapping.in_body(a.name)]
        if not selected:
            return None
        name = self.scope.claim(name)
        attrs = self._body_attributes(ut, selected, direction, ctx)
        return self._add_top(variant, name, direction, ObjectOf(attrs), origin=ut.id)

    def _add_top(
        self, variant: BodyVariant, name: str, direction: str, t: AttributeType, *, origin: str | None
    ) -> BodyType:
        body_id = f"{self.scope.service}:{variant.kind}:method:{variant.method}"
        if variant.name is not None:
            body_id = f"{body_id}:{variant.name}"
        self.registry.reserve_body(body_id)
        body = BodyType(
            id=body_id,
            name=name,
            namespace=self.scope.service,
            direction=direction,
            type=t,
            origin=origin,
            variant=variant,
        )
        self.registry.add_body(body)
        return body

    def _body_attributes(
        self, owner: UserType, attrs: list[Attribute] | tuple[Attribute, ...], direction: str, ctx: str
    ) -> tuple[Attribute, ...]:
        # Presence of a multi-view type's attributes in a response depends on the view.
        relax = direction == RESPONSE and bool(owner.views)
        out: list[Attribute] = []
        for a in attrs:
            wt = self._wire(a.type, direction, f"{ctx}.{a.name}")
            out.append(replace(a, type=wt, required=a.required and not relax))
        return tuple(out)

    def _wire(self, t: AttributeType, direction: str, ctx: str) -> AttributeType:
        if isinstance(t, (Primitive, AnyType)):
            return t
        if isinstance(t, ArrayOf):
            return ArrayOf(self._wire(t.elem, direction, f"{ctx}[]"))
        if isinstance(t, MapOf):
            return MapOf(self._wire(t.key, direction, ctx), self._wire(t.elem, direction, f"{ctx}{{}}"))
        if isinstance(t, NamedRef):
            if t.type_id not in self.graph:
                raise UnresolvedTypeError(f"{ctx}: unknown type {t.type_id!r}")
            ut = self.graph.get(t.type_id)
            if not ut.is_object:
                return self._wire(self.graph.unalias(t), direction, ctx)
            return NamedRef(self._nested(ut, direction, ctx))
        if isinstance(t, ObjectOf):
            raise UnresolvedTypeError(f"{ctx}: inline object types must be declared as user types")
        raise UnresolvedTypeError(f"{ctx}: unsupported attribute type {t!r}")

    def _nested(self, ut: UserType, direction: str, ctx: str) -> str:
        body_id = f"{self.scope.service}:{direction}:type:{ut.id}"
        if not self.registry.reserve_body(body_id):
            return body_id
        suffix = "RequestBody" if direction == REQUEST else "ResponseBody"
        name = self.scope.claim(f"{ut.name}{suffix}")
        attrs = self._body_attributes(ut, ut.attributes, direction, f"{ctx}<{ut.name}>")
        self.registry.add_body(
            BodyType(
                id=body_id,
                name=name,
                namespace=self.scope.service,
                direction=direction,
                type=ObjectOf(attrs),
                origin=ut.id,
            )
        )
        return body_id

    def _require_resolved(self, t: AttributeType, ctx: str) -> None:
        if isinstance(t, NamedRef) and t.type_id not in self.graph:
            raise UnresolvedTypeError(f"{ctx}: unknown type {t.type_id!r}")
