"""Method descriptors, HTTP mapping metadata and the design loader."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import msgpack

from .errors import DesignLoadError
from .naming import pascal
from .typegraph import (
    Attribute,
    AttributeType,
    Constraints,
    NamedRef,
    ObjectOf,
    TypeGraph,
    UserType,
    View,
    ViewAttribute,
    parse_type,
)


class Location(str, Enum):
    BODY = "body"
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


@dataclass(frozen=True)
class HttpMapping:
    # attribute name -> location, in declaration order
    bindings: dict[str, Location] = field(default_factory=dict)
    # When set, the body is this single attribute rather than a subset object.
    body_attribute: str | None = None
    # Location of attributes without a binding, and of non-object payloads.
    default: Location = Location.BODY

    def in_body(self, name: str) -> bool:
        if self.body_attribute is not None:
            return name == self.body_attribute
        loc = self.bindings.get(name)
        if loc is not None:
            return loc is Location.BODY
        return self.default is Location.BODY

    def out_of_body(self) -> list[tuple[str, Location]]:
        """Return non-body bindings in declaration order."""
        return [(name, loc) for name, loc in self.bindings.items() if loc is not Location.BODY]


@dataclass(frozen=True)
class Response:
    status: str
    type: AttributeType | None
    mapping: HttpMapping = field(default_factory=HttpMapping)
    view: str | None = None


@dataclass(frozen=True)
class ErrorResponse:
    name: str
    type: AttributeType
    mapping: HttpMapping = field(default_factory=HttpMapping)


@dataclass(frozen=True)
class Method:
    service: str
    name: str
    payload: AttributeType | None = None
    payload_mapping: HttpMapping = field(default_factory=HttpMapping)
    responses: tuple[Response, ...] = ()
    errors: tuple[ErrorResponse, ...] = ()


@dataclass(frozen=True)
class Design:
    graph: TypeGraph
    methods: tuple[Method, ...]

    def services(self) -> list[str]:
        """Return service names in first-appearance order."""
        out: list[str] = []
        for m in self.methods:
            if m.service not in out:
                out.append(m.service)
        return out

    def methods_of(self, service: str) -> list[Method]:
        return [m for m in self.methods if m.service == service]

    @classmethod
    def from_manifest(cls, obj: Any) -> "Design":
        """Build a design from its decoded JSON/MessagePack representation.

        Inline object attributes are hoisted into user types named after their
        parent (`Parent` + `Attr`) so the graph only references objects by id.
        """
        if not isinstance(obj, dict):
            raise DesignLoadError("design must be a mapping")
        raw_types = obj.get("types", [])
        raw_methods = obj.get("methods", [])
        if not isinstance(raw_types, list) or not isinstance(raw_methods, list):
            raise DesignLoadError("design 'types' and 'methods' must be lists")

        types: list[UserType] = []
        for i, rt in enumerate(raw_types):
            if not isinstance(rt, dict):
                raise DesignLoadError(f"types[{i}]: expected mapping")
            name = rt.get("name")
            if not isinstance(name, str) or not name:
                raise DesignLoadError(f"types[{i}]: missing name")
            type_id = rt.get("id", name)
            if not isinstance(type_id, str) or not type_id:
                raise DesignLoadError(f"types[{i}]: invalid id")
            types.append(_parse_user_type(rt, type_id, name, types))

        methods: list[Method] = []
        for i, rm in enumerate(raw_methods):
            if not isinstance(rm, dict):
                raise DesignLoadError(f"methods[{i}]: expected mapping")
            methods.append(_parse_method(rm, types, where=f"methods[{i}]"))

        graph = TypeGraph(types)
        graph.check()
        return cls(graph=graph, methods=tuple(methods))


def load_design(path: str | Path) -> Design:
    """Read a design from a `.json` or `.msgpack`/`.mpk` file."""
    path = Path(path)
    if not path.exists():
        raise DesignLoadError(f"design file not found: {path}")
    try:
        if path.suffix in {".msgpack", ".mpk"}:
            obj = msgpack.unpackb(path.read_bytes(), raw=False)
        else:
            obj = json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:  # noqa: BLE001 - boundary parse
        raise DesignLoadError(f"failed to parse {path.name}: {e}") from e
    return Design.from_manifest(obj)


def _parse_user_type(rt: dict[str, Any], type_id: str, name: str, out: list[UserType]) -> UserType:
    raw_attrs = rt.get("attributes")
    raw_views = rt.get("views", [])
    desc = rt.get("description", "")
    if raw_attrs is None:
        # Alias of a non-object type.
        t = _type_of(rt.get("type"), owner_id=type_id, owner_name=name, attr="type", out=out)
        return UserType(id=type_id, name=name, type=t, description=str(desc or ""))
    if not isinstance(raw_attrs, list):
        raise DesignLoadError(f"{name}: 'attributes' must be a list")
    attrs = tuple(_parse_attribute(ra, owner_id=type_id, owner_name=name, out=out) for ra in raw_attrs)
    if not isinstance(raw_views, list):
        raise DesignLoadError(f"{name}: 'views' must be a list")
    views = tuple(_parse_view(rv, owner=name) for rv in raw_views)
    return UserType(id=type_id, name=name, type=ObjectOf(attrs), views=views, description=str(desc or ""))


def _parse_attribute(ra: Any, *, owner_id: str, owner_name: str, out: list[UserType]) -> Attribute:
    if not isinstance(ra, dict):
        raise DesignLoadError(f"{owner_name}: attribute must be a mapping")
    name = ra.get("name")
    if not isinstance(name, str) or not name:
        raise DesignLoadError(f"{owner_name}: attribute without name")
    t = _type_of(ra.get("type"), owner_id=owner_id, owner_name=owner_name, attr=name, out=out)
    enum = ra.get("enum")
    if enum is not None and not isinstance(enum, list):
        raise DesignLoadError(f"{owner_name}.{name}: 'enum' must be a list")
    constraints = Constraints(
        pattern=ra.get("pattern"),
        format=ra.get("format"),
        minimum=ra.get("minimum"),
        maximum=ra.get("maximum"),
        enum=tuple(enum) if enum is not None else None,
        min_length=ra.get("min_length"),
        max_length=ra.get("max_length"),
    )
    return Attribute(
        name=name,
        type=t,
        required=bool(ra.get("required", False)),
        has_default="default" in ra,
        default=ra.get("default"),
        constraints=constraints,
        description=str(ra.get("description", "") or ""),
    )


def _type_of(raw: Any, *, owner_id: str, owner_name: str, attr: str, out: list[UserType]) -> AttributeType:
    if isinstance(raw, str):
        try:
            return parse_type(raw)
        except ValueError as e:
            raise DesignLoadError(f"{owner_name}.{attr}: {e}") from e
    if isinstance(raw, dict):
        hoisted_id = f"{owner_id}.{attr}"
        hoisted = _parse_user_type(raw, hoisted_id, raw.get("name") or owner_name + pascal(attr), out)
        out.append(hoisted)
        return NamedRef(hoisted_id)
    raise DesignLoadError(f"{owner_name}.{attr}: missing or invalid type")


def _parse_view(rv: Any, *, owner: str) -> View:
    if not isinstance(rv, dict) or not isinstance(rv.get("name"), str):
        raise DesignLoadError(f"{owner}: view must be a mapping with a name")
    entries: list[ViewAttribute] = []
    for e in rv.get("attributes", []):
        if isinstance(e, str):
            entries.append(ViewAttribute(name=e))
        elif isinstance(e, dict) and isinstance(e.get("name"), str):
            entries.append(ViewAttribute(name=e["name"], view=e.get("view")))
        else:
            raise DesignLoadError(f"{owner}: invalid entry in view {rv['name']!r}")
    return View(name=rv["name"], attributes=tuple(entries))


def _parse_mapping(raw: Any, *, where: str) -> HttpMapping:
    if raw is None:
        return HttpMapping()
    if not isinstance(raw, dict):
        raise DesignLoadError(f"{where}: 'http' must be a mapping")
    bindings: dict[str, Location] = {}
    raw_bindings = raw.get("bindings", {})
    if not isinstance(raw_bindings, dict):
        raise DesignLoadError(f"{where}: 'bindings' must be a mapping")
    try:
        for k, v in raw_bindings.items():
            bindings[str(k)] = Location(v)
        default = Location(raw.get("default", "body"))
    except ValueError as e:
        raise DesignLoadError(f"{where}: {e}") from e
    body = raw.get("body")
    if body is not None and not isinstance(body, str):
        raise DesignLoadError(f"{where}: 'body' must name an attribute")
    return HttpMapping(bindings=bindings, body_attribute=body, default=default)


def _method_type(raw: Any, *, service: str, method: str, role: str, types: list[UserType]) -> AttributeType | None:
    if raw is None:
        return None
    return _type_of(raw, owner_id=f"{service}.{method}", owner_name=pascal(method), attr=role, out=types)


def _parse_method(rm: dict[str, Any], types: list[UserType], *, where: str) -> Method:
    service = rm.get("service")
    name = rm.get("name")
    if not isinstance(service, str) or not isinstance(name, str) or not service or not name:
        raise DesignLoadError(f"{where}: 'service' and 'name' are required")
    where = f"{service}.{name}"
    payload = _method_type(rm.get("payload"), service=service, method=name, role="payload", types=types)

    responses: list[Response] = []
    for rr in rm.get("responses", []):
        if not isinstance(rr, dict):
            raise DesignLoadError(f"{where}: response must be a mapping")
        status = str(rr.get("status", "OK"))
        responses.append(
            Response(
                status=status,
                type=_method_type(rr.get("type"), service=service, method=name, role=f"result_{status}", types=types),
                mapping=_parse_mapping(rr.get("http"), where=where),
                view=rr.get("view"),
            )
        )

    errors: list[ErrorResponse] = []
    for re_ in rm.get("errors", []):
        if not isinstance(re_, dict) or not isinstance(re_.get("name"), str):
            raise DesignLoadError(f"{where}: error must be a mapping with a name")
        et = _method_type(re_.get("type"), service=service, method=name, role=re_["name"], types=types)
        if et is None:
            raise DesignLoadError(f"{where}: error {re_['name']!r} has no type")
        errors.append(ErrorResponse(name=re_["name"], type=et, mapping=_parse_mapping(re_.get("http"), where=where)))

    return Method(
        service=service,
        name=name,
        payload=payload,
        payload_mapping=_parse_mapping(rm.get("http"), where=where),
        responses=tuple(responses),
        errors=tuple(errors),
    )
