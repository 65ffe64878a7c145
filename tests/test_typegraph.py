from __future__ import annotations

import pytest

from wirebody.errors import UnknownViewError, UnresolvedTypeError
from wirebody.typegraph import (
    AnyType,
    ArrayOf,
    Attribute,
    MapOf,
    NamedRef,
    ObjectOf,
    Primitive,
    TypeGraph,
    UserType,
    View,
    ViewAttribute,
    format_type,
    leaf_object,
    parse_type,
)


def _obj(type_id: str, *attrs: Attribute, views: tuple[View, ...] = ()) -> UserType:
    return UserType(id=type_id, name=type_id, type=ObjectOf(attrs), views=views)


def test_parse_type_handles_collections_and_refs():
    assert parse_type("string") == Primitive("string")
    assert parse_type("[]int64") == ArrayOf(Primitive("int64"))
    assert parse_type("map[string][]int") == MapOf(Primitive("string"), ArrayOf(Primitive("int")))
    assert parse_type("map[map[string]int]boolean") == MapOf(
        MapOf(Primitive("string"), Primitive("int")), Primitive("boolean")
    )
    assert parse_type("any") == AnyType()
    assert parse_type("Item") == NamedRef("Item")


def test_parse_type_rejects_bad_input():
    with pytest.raises(ValueError):
        parse_type("  ")
    with pytest.raises(ValueError, match="unbalanced"):
        parse_type("map[string")


def test_format_type_is_inverse_of_parse_type():
    for text in ["string", "[]int64", "map[string][]Item", "any", "[]map[int]float64"]:
        assert format_type(parse_type(text)) == text


def test_duplicate_ids_are_rejected():
    with pytest.raises(UnresolvedTypeError, match="duplicate"):
        TypeGraph([_obj("A"), _obj("A")])


def test_check_reports_unknown_references():
    g = TypeGraph([_obj("A", Attribute(name="b", type=ArrayOf(NamedRef("B"))))])
    with pytest.raises(UnresolvedTypeError, match=r"A\.b\[\]: unknown type 'B'"):
        g.check()


def test_alias_cycle_is_rejected():
    g = TypeGraph(
        [
            UserType(id="A", name="A", type=NamedRef("B")),
            UserType(id="B", name="B", type=NamedRef("A")),
        ]
    )
    with pytest.raises(UnresolvedTypeError, match="alias cycle"):
        g.check()


def test_required_cycle_is_rejected_but_optional_recursion_is_fine():
    ok = TypeGraph([_obj("Node", Attribute(name="next", type=NamedRef("Node")))])
    ok.check()

    bad = TypeGraph(
        [
            _obj("A", Attribute(name="b", type=NamedRef("B"), required=True)),
            _obj("B", Attribute(name="a", type=NamedRef("A"), required=True)),
        ]
    )
    with pytest.raises(UnresolvedTypeError, match="cycle: A -> B -> A"):
        bad.check()


def test_unalias_and_object_type():
    g = TypeGraph(
        [
            UserType(id="Name", name="Name", type=Primitive("string")),
            UserType(id="Names", name="Names", type=ArrayOf(NamedRef("Name"))),
            _obj("Item", Attribute(name="n", type=NamedRef("Names"))),
        ]
    )
    g.check()
    assert g.unalias(NamedRef("Name")) == Primitive("string")
    assert g.unalias(NamedRef("Names")) == ArrayOf(NamedRef("Name"))
    assert g.object_type(NamedRef("Item")) is g.get("Item")
    assert g.object_type(NamedRef("Names")) is None
    assert leaf_object(g, MapOf(Primitive("string"), ArrayOf(NamedRef("Item")))) is g.get("Item")


def test_views_must_name_known_attributes_and_sub_views():
    child = _obj(
        "Child",
        Attribute(name="x", type=Primitive("string")),
        views=(View(name="default", attributes=(ViewAttribute("x"),)),),
    )
    bad_attr = _obj(
        "Parent",
        Attribute(name="child", type=NamedRef("Child")),
        views=(View(name="default", attributes=(ViewAttribute("nope"),)),),
    )
    with pytest.raises(UnresolvedTypeError, match="unknown attribute 'nope'"):
        TypeGraph([child, bad_attr]).check()

    bad_view = _obj(
        "Parent",
        Attribute(name="child", type=NamedRef("Child")),
        views=(View(name="default", attributes=(ViewAttribute("child", view="tiny"),)),),
    )
    with pytest.raises(UnknownViewError, match="unknown view 'tiny'"):
        TypeGraph([child, bad_view]).check()

    with pytest.raises(UnresolvedTypeError, match="unknown type"):
        TypeGraph([child]).get("Missing")


def test_attributes_mapping_to_one_field_are_rejected():
    g = TypeGraph([_obj("A", Attribute(name="a-b", type=Primitive("string")), Attribute(name="a_b", type=Primitive("int")))])
    with pytest.raises(UnresolvedTypeError, match="attributes 'a-b' and 'a_b' both map to field 'a_b'"):
        g.check()
