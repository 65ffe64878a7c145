from __future__ import annotations

import pytest

from wirebody.design import Design
from wirebody.errors import ConstraintMismatchError
from wirebody.generate import generate
from wirebody.runtime import ValidationError


def _single(attr: dict, *, service: str = "svc"):
    return {
        "types": [{"name": "T", "attributes": [attr]}],
        "methods": [{"service": service, "name": "get", "responses": [{"type": "T"}]}],
    }


def test_missing_required_attribute_is_reported_once(build):
    _, files, mods = build(
        {
            "types": [
                {
                    "name": "User",
                    "attributes": [
                        {"name": "id", "type": "string", "required": True},
                        {"name": "name", "type": "string", "required": True},
                    ],
                }
            ],
            "methods": [{"service": "svc", "name": "whoami", "responses": [{"type": "User"}]}],
        }
    )
    code = files[0].section("validate_whoami_response_body").code
    assert 'runtime.missing_field_error("name", "body")' in code

    m = mods["svc"]
    err = m.validate_whoami_response_body(m.WhoamiResponseBody(id="1"))
    assert isinstance(err, ValidationError)
    assert [(v.kind, v.attribute, v.location) for v in err.violations] == [("missing_field", "name", "body")]
    assert m.validate_whoami_response_body(m.WhoamiResponseBody(id="1", name="n")) is None


def test_all_violations_are_collected(build):
    _, _, mods = build(
        {
            "types": [
                {
                    "name": "Account",
                    "attributes": [
                        {"name": "id", "type": "string", "required": True, "format": "uuid"},
                        {"name": "email", "type": "string", "format": "email"},
                        {"name": "code", "type": "string", "pattern": "^[A-Z]{3}$"},
                        {"name": "plan", "type": "string", "enum": ["free", "pro"]},
                        {"name": "tags", "type": "[]string", "min_length": 1, "max_length": 2},
                        {"name": "age", "type": "int", "minimum": 18, "maximum": 130},
                    ],
                }
            ],
            "methods": [{"service": "svc", "name": "show", "responses": [{"type": "Account"}]}],
        }
    )
    m = mods["svc"]
    ok = m.ShowResponseBody(
        id="7a1f1c8e-27a5-4e43-bb19-9c5f1b1e9a11",
        email="a@b.io",
        code="ABC",
        plan="pro",
        tags=["x"],
        age=30,
    )
    assert m.validate_show_response_body(ok) is None

    bad = m.ShowResponseBody(email="nope", code="abc", plan="gold", tags=[], age=12)
    err = m.validate_show_response_body(bad)
    assert [(v.kind, v.attribute) for v in err.violations] == [
        ("missing_field", "id"),
        ("invalid_format", "body.email"),
        ("invalid_pattern", "body.code"),
        ("invalid_enum_value", "body.plan"),
        ("invalid_length", "body.tags"),
        ("invalid_range", "body.age"),
    ]

    # Absent optional attributes are not checked.
    assert m.validate_show_response_body(m.ShowResponseBody(id="7a1f1c8e-27a5-4e43-bb19-9c5f1b1e9a11")) is None


def test_nested_bodies_are_validated_through_collections(build):
    _, files, mods = build(
        {
            "types": [
                {"name": "Line", "attributes": [{"name": "sku", "type": "string", "required": True}]},
                {
                    "name": "Order",
                    "attributes": [
                        {"name": "lines", "type": "[]Line"},
                        {"name": "by_store", "type": "map[string][]Line"},
                        {"name": "main", "type": "Line"},
                    ],
                },
            ],
            "methods": [{"service": "svc", "name": "order", "responses": [{"type": "Order"}]}],
        }
    )
    code = files[0].section("validate_order_response_body").code
    assert "        for val in body.lines:\n            err = runtime.merge_errors(err, validate_line_response_body(val))" in code
    assert "        for val in body.by_store.values():\n            for val2 in val:" in code

    m = mods["svc"]
    body = m.OrderResponseBody(
        lines=[m.LineResponseBody(sku="a"), m.LineResponseBody()],
        by_store={"s": [m.LineResponseBody()]},
        main=m.LineResponseBody(),
    )
    err = m.validate_order_response_body(body)
    assert [v.attribute for v in err.violations] == ["sku", "sku", "sku"]


def test_bodies_without_checks_get_no_validator(build):
    _, files, _ = build(
        {
            "types": [{"name": "Loose", "attributes": [{"name": "note", "type": "string"}]}],
            "methods": [{"service": "svc", "name": "note", "payload": "Loose", "responses": [{"type": "Loose"}]}],
        }
    )
    src = files[0].render()
    assert "def validate_" not in src
    assert "import wirebody.runtime as runtime" not in src


def test_recursive_bodies_validate_to_any_depth(build):
    _, files, mods = build(
        {
            "types": [
                {
                    "name": "Node",
                    "attributes": [
                        {"name": "value", "type": "string", "required": True},
                        {"name": "next", "type": "Node"},
                    ],
                }
            ],
            "methods": [{"service": "svc", "name": "walk", "responses": [{"type": "Node"}]}],
        }
    )
    assert files[0].render().count("def validate_node_response_body(") == 1
    m = mods["svc"]
    body = m.WalkResponseBody(value="1", next=m.NodeResponseBody(value="2", next=m.NodeResponseBody()))
    err = m.validate_walk_response_body(body)
    assert [v.attribute for v in err.violations] == ["value"]


@pytest.mark.parametrize(
    "attr, match",
    [
        ({"name": "n", "type": "int", "pattern": "^a"}, "pattern requires a string"),
        ({"name": "n", "type": "[]string", "format": "email"}, "format requires a string"),
        ({"name": "n", "type": "string", "format": "zipcode"}, "unknown format 'zipcode'"),
        ({"name": "n", "type": "string", "pattern": "(unclosed"}, "invalid pattern"),
        ({"name": "n", "type": "string", "minimum": 1}, "range requires a number"),
        ({"name": "n", "type": "int", "max_length": 3}, "length requires"),
        ({"name": "n", "type": "int", "enum": [1, True]}, "enum values"),
        ({"name": "n", "type": "boolean", "enum": [1]}, "enum values"),
    ],
)
def test_constraint_mismatch_is_fatal(attr, match):
    design = Design.from_manifest(_single(attr))
    with pytest.raises(ConstraintMismatchError, match=match):
        generate(design)


@pytest.mark.parametrize(
    "method",
    [
        {"service": "svc", "name": "get", "responses": [{"type": "Res", "http": {"bindings": {"n": "header"}}}]},
        {"service": "svc", "name": "ping"},
    ],
)
def test_constraint_mismatch_outside_any_body_is_fatal(method):
    design = Design.from_manifest(
        {
            "types": [
                {
                    "name": "Res",
                    "attributes": [
                        {"name": "n", "type": "int", "pattern": "^a$"},
                        {"name": "x", "type": "string"},
                    ],
                }
            ],
            "methods": [method],
        }
    )
    with pytest.raises(ConstraintMismatchError, match=r"Res\.n \(int\): pattern requires a string"):
        generate(design)
