"""Generation driver: one client body types module per service."""

from __future__ import annotations

import logging

from .body import BodyDeriver, MethodBodies
from .config import GenOptions, default_options
from .declare import declare_body
from .design import Design
from .marshal import MARSHAL, MarshalSynthesizer
from .registry import DedupRegistry
from .source import FUNCTION, ModuleScope, Section, SourceFile
from .unmarshal import UNMARSHAL, UnmarshalSynthesizer
from .validate import VALIDATE, ValidationSynthesizer, check_constraints

logger = logging.getLogger(__name__)


def generate(design: Design, opts: GenOptions | None = None) -> list[SourceFile]:
    """Synthesize the body types, conversion and validation functions of every service.

    Returns one `SourceFile` per service in first-appearance order. Nothing is
    returned when any method fails; the error propagates.
    """
    opts = opts or default_options()
    check_constraints(design.graph)
    registry = DedupRegistry()
    files = [_generate_service(design, service, registry=registry, opts=opts) for service in design.services()]
    logger.info("generated %d file(s)", len(files))
    return files


def _generate_service(design: Design, service: str, *, registry: DedupRegistry, opts: GenOptions) -> SourceFile:
    scope = ModuleScope(service, gen_package=opts.gen_package, runtime_module=opts.runtime_module)
    deriver = BodyDeriver(design.graph, registry, scope)
    derived: list[MethodBodies] = []
    for method in design.methods_of(service):
        logger.debug("deriving bodies of %s.%s", service, method.name)
        derived.append(deriver.derive(method))

    marshal = MarshalSynthesizer(design.graph, registry, scope)
    unmarshal = UnmarshalSynthesizer(design.graph, registry, scope)
    validate = ValidationSynthesizer(design.graph, registry, scope)

    bodies = registry.bodies(service)
    types = [declare_body(b, registry=registry, scope=scope) for b in bodies if b.declared]

    requests: list[Section] = []
    results: list[Section] = []
    for mb in derived:
        if mb.request is not None:
            requests.append(marshal.request_function(mb.method, mb.request))
        for response, body in mb.responses:
            section = unmarshal.result_function(mb.method, response, body)
            if section is not None:
                results.append(section)
        for error, body in mb.errors:
            section = unmarshal.error_function(mb.method, error, body)
            if section is not None:
                results.append(section)

    for b in bodies:
        validate.validator(b)

    helpers: list[Section] = []
    for kind in (VALIDATE, MARSHAL, UNMARSHAL):
        for slot in registry.slots(service, kind):
            if slot.code is None:
                raise RuntimeError(f"function {slot.name} was reserved but never emitted")
            helpers.append(Section(kind=FUNCTION, name=slot.name, code=slot.code))

    sections = (*types, *requests, *results, *helpers)
    logger.info(
        "%s: %d body type(s), %d function(s)",
        service,
        len(types),
        len(sections) - len(types),
    )
    return SourceFile(
        path=f"{scope.module}/{opts.file_name}",
        service=service,
        imports=scope.imports(),
        sections=sections,
    )
