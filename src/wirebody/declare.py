from __future__ import annotations

from .body import ERROR, REQUEST, BodyType
from .convert import nullable, wire_annotation
from .naming import identifier
from .registry import DedupRegistry
from .source import TYPE, ModuleScope, Section, docstring, literal
from .typegraph import Attribute


def field_nullable(attr: Attribute, *, direction: str) -> bool:
    """Whether a body field renders nullable.

    Request bodies follow the attribute: required without default is
    non-nullable. Response bodies are decoded before validation, so every
    field may be absent.
    """
    if direction != REQUEST:
        return True
    return not attr.required or attr.has_default


def _describe(body: BodyType) -> str:
    v = body.variant
    if v is None:
        kind = "request" if body.direction == REQUEST else "response"
        return f"{body.name} is used to define fields on {kind} body types."
    head = f'{body.name} is the type of the "{v.service}" service "{v.method}" endpoint HTTP'
    if v.kind == REQUEST:
        return f"{head} request body."
    if v.kind == ERROR:
        return f'{head} response body for the "{v.name}" error.'
    return f"{head} response body."


def declare_body(body: BodyType, *, registry: DedupRegistry, scope: ModuleScope) -> Section:
    """Emit the dataclass declaration of a declared (object) body type."""
    scope.uses_dataclass = True
    lines = ["@dataclass(kw_only=True)", f"class {body.name}:"]
    lines.extend(docstring(_describe(body)))
    if body.attributes:
        lines.append("")
    for attr in body.attributes:
        fname = identifier(attr.name)
        ann = wire_annotation(attr.type, registry=registry, scope=scope)
        if attr.description:
            for dl in attr.description.strip().splitlines():
                lines.append(f"    #: {dl.strip()}".rstrip())
        key = literal(attr.name)
        meta = f'"form": {key}, "json": {key}, "xml": {key}'
        if field_nullable(attr, direction=body.direction):
            lines.append(f'    {fname}: {nullable(ann)} = dc_field(default=None, metadata={{{meta}, "omitempty": True}})')
        else:
            lines.append(f"    {fname}: {ann} = dc_field(metadata={{{meta}}})")
    return Section(kind=TYPE, name=body.name, code="\n".join(lines))
