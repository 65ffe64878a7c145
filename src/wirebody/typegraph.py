"""Resolved type graph consumed by the body synthesizers.

The graph is an arena of user types keyed by interned string ids. Nested
object types are always referenced by id (`NamedRef`), so recursive types are
plain cycles of ids rather than object cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Union

from .errors import UnknownViewError, UnresolvedTypeError
from .naming import identifier

PRIMITIVE_KINDS = (
    "boolean",
    "int",
    "int32",
    "int64",
    "uint",
    "uint32",
    "uint64",
    "float32",
    "float64",
    "string",
    "bytes",
)

_PY_TYPES = {
    "boolean": "bool",
    "int": "int",
    "int32": "int",
    "int64": "int",
    "uint": "int",
    "uint32": "int",
    "uint64": "int",
    "float32": "float",
    "float64": "float",
    "string": "str",
    "bytes": "bytes",
}


@dataclass(frozen=True)
class Primitive:
    kind: str

    @property
    def py_type(self) -> str:
        return _PY_TYPES[self.kind]

    @property
    def numeric(self) -> bool:
        return self.py_type in {"int", "float"}


@dataclass(frozen=True)
class ArrayOf:
    elem: "AttributeType"


@dataclass(frozen=True)
class MapOf:
    key: "AttributeType"
    elem: "AttributeType"


@dataclass(frozen=True)
class ObjectOf:
    attributes: tuple["Attribute", ...] = ()

    def get(self, name: str) -> "Attribute | None":
        for a in self.attributes:
            if a.name == name:
                return a
        return None


@dataclass(frozen=True)
class NamedRef:
    type_id: str


@dataclass(frozen=True)
class AnyType:
    pass


AttributeType = Union[Primitive, ArrayOf, MapOf, ObjectOf, NamedRef, AnyType]


@dataclass(frozen=True)
class Constraints:
    pattern: str | None = None
    format: str | None = None
    minimum: float | None = None
    maximum: float | None = None
    enum: tuple[Any, ...] | None = None
    min_length: int | None = None
    max_length: int | None = None

    def is_empty(self) -> bool:
        return self == Constraints()


@dataclass(frozen=True)
class Attribute:
    name: str
    type: AttributeType
    required: bool = False
    has_default: bool = False
    default: Any = None
    constraints: Constraints = field(default_factory=Constraints)
    description: str = ""


@dataclass(frozen=True)
class ViewAttribute:
    name: str
    # Sub-view applied when the attribute's own type defines views.
    view: str | None = None


@dataclass(frozen=True)
class View:
    name: str
    attributes: tuple[ViewAttribute, ...]

    def get(self, name: str) -> ViewAttribute | None:
        for a in self.attributes:
            if a.name == name:
                return a
        return None


@dataclass(frozen=True)
class UserType:
    id: str
    name: str
    type: AttributeType
    views: tuple[View, ...] = ()
    description: str = ""

    @property
    def is_object(self) -> bool:
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

    def view(self, name: str) -> View | None:
        for v in self.views:
            if v.name == name:
                return v
        return None


class TypeGraph:
    """Immutable arena of user types in declared order."""

    def __init__(self, types: Iterable[UserType]):
        by_id: dict[str, UserType] = {}
        for ut in types:
            if ut.id in by_id:
                raise UnresolvedTypeError(f"duplicate user type id {ut.id!r}")
            by_id[ut.id] = ut
        self._types = by_id

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types

    def __iter__(self) -> Iterator[UserType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    def get(self, type_id: str) -> UserType:
        try:
            return self._types[type_id]
        except KeyError:
            raise UnresolvedTypeError(f"unknown type {type_id!r}") from None

    def unalias(self, t: AttributeType) -> AttributeType:
        """Follow references to non-object user types down to their underlying type."""
        seen: set[str] = set()
        while isinstance(t, NamedRef):
            ut = self.get(t.type_id)
            if ut.is_object:
                return t
            if ut.id in seen:
                raise UnresolvedTypeError(f"alias cycle through {ut.id!r}")
            seen.add(ut.id)
            t = ut.type
        return t

    def object_type(self, t: AttributeType) -> UserType | None:
        """Return the object user type `t` refers to, if any."""
        t = self.unalias(t)
        if isinstance(t, NamedRef):
            return self.get(t.type_id)
        return None

    def check(self) -> None:
        """Verify references, field names, views and required-reference cycles."""
        for ut in self:
            for path, ref in _walk_refs(ut.type, ut.name):
                if ref.type_id not in self:
                    raise UnresolvedTypeError(f"{path}: unknown type {ref.type_id!r}")
            self.unalias(NamedRef(ut.id))
        for ut in self:
            self._check_fields(ut)
            self._check_views(ut)
        for ut in self:
            if ut.is_object:
                self._check_required_cycle(ut, [])

    def _check_fields(self, ut: UserType) -> None:
        fields: dict[str, str] = {}
        for a in ut.attributes:
            f = identifier(a.name)
            if f in fields:
                raise UnresolvedTypeError(
                    f"{ut.name}: attributes {fields[f]!r} and {a.name!r} both map to field {f!r}"
                )
            fields[f] = a.name

    def _check_views(self, ut: UserType) -> None:
        for v in ut.views:
            for va in v.attributes:
                attr = ut.attribute(va.name)
                if attr is None:
                    raise UnresolvedTypeError(
                        f"{ut.name}: view {v.name!r} lists unknown attribute {va.name!r}"
                    )
                if va.view is None:
                    continue
                inner = leaf_object(self, attr.type)
                if inner is None or inner.view(va.view) is None:
                    raise UnknownViewError(
                        f"{ut.name}: view {v.name!r} attribute {va.name!r} uses unknown view {va.view!r}"
                    )

    def _check_required_cycle(self, ut: UserType, chain: list[str]) -> None:
        # A chain of required object references back to itself has no finite value.
        if ut.id in chain:
            names = [self.get(i).name for i in chain[chain.index(ut.id) :]] + [ut.name]
            raise UnresolvedTypeError(f"required attributes form a cycle: {' -> '.join(names)}")
        for a in ut.attributes:
            if not a.required:
                continue
            inner = self.object_type(a.type)
            if inner is not None:
                self._check_required_cycle(inner, [*chain, ut.id])


def _walk_refs(t: AttributeType, path: str) -> Iterator[tuple[str, NamedRef]]:
    if isinstance(t, NamedRef):
        yield path, t
    elif isinstance(t, ArrayOf):
        yield from _walk_refs(t.elem, f"{path}[]")
    elif isinstance(t, MapOf):
        yield from _walk_refs(t.key, f"{path}{{key}}")
        yield from _walk_refs(t.elem, f"{path}{{}}")
    elif isinstance(t, ObjectOf):
        for a in t.attributes:
            yield from _walk_refs(a.type, f"{path}.{a.name}")


def leaf_object(graph: TypeGraph, t: AttributeType) -> UserType | None:
    """Return the object user type at the leaf of `t`, looking through collections."""
    t = graph.unalias(t)
    if isinstance(t, ArrayOf):
        return leaf_object(graph, t.elem)
    if isinstance(t, MapOf):
        return leaf_object(graph, t.elem)
    if isinstance(t, NamedRef):
        return graph.get(t.type_id)
    return None


def _split_map(t: str) -> tuple[str, str]:
    depth = 0
    for i, ch in enumerate(t):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return t[len("map[") : i], t[i + 1 :]
    raise ValueError(f"unbalanced map type {t!r}")


def parse_type(text: str) -> AttributeType:
    """Parse a type string: primitives, `any`, `[]T`, `map[K]V` or a user type id."""
    t = text.strip()
    if not t:
        raise ValueError("empty type")
    if t.startswith("[]"):
        return ArrayOf(parse_type(t[2:]))
    if t.startswith("map["):
        key, rest = _split_map(t)
        return MapOf(parse_type(key), parse_type(rest))
    if t == "any":
        return AnyType()
    if t in PRIMITIVE_KINDS:
        return Primitive(t)
    return NamedRef(t)


def format_type(t: AttributeType) -> str:
    """Inverse of `parse_type`, used in messages."""
    if isinstance(t, Primitive):
        return t.kind
    if isinstance(t, ArrayOf):
        return f"[]{format_type(t.elem)}"
    if isinstance(t, MapOf):
        return f"map[{format_type(t.key)}]{format_type(t.elem)}"
    if isinstance(t, NamedRef):
        return t.type_id
    if isinstance(t, AnyType):
        return "any"
    return "object"
