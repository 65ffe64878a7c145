"""Source artifacts handed to the writer, and the per-module naming scope."""

from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass
from typing import Any

from .naming import snake

TYPE = "type"
FUNCTION = "function"


@dataclass(frozen=True)
class Section:
    kind: str
    name: str
    code: str


@dataclass(frozen=True)
class SourceFile:
    path: str
    service: str
    imports: tuple[str, ...]
    sections: tuple[Section, ...]

    def render(self) -> str:
        lines = [
            '"""Code generated by wirebody. DO NOT EDIT.',
            "",
            f"{self.service} client HTTP body types.",
            '"""',
            "",
            *self.imports,
        ]
        parts = ["\n".join(lines), *(s.code for s in self.sections)]
        return "\n\n\n".join(parts) + "\n"

    def section(self, name: str) -> Section:
        for s in self.sections:
            if s.name == name:
                return s
        raise KeyError(name)


class ModuleScope:
    """Names and imports of one generated module (one service)."""

    def __init__(self, service: str, *, gen_package: str, runtime_module: str):
        self.service = service
        self.module = snake(service)
        self.views_module = f"{self.module}_views"
        self.gen_package = gen_package
        self.runtime_module = runtime_module
        self.uses_any = False
        self.uses_views = False
        self.uses_domain = False
        self.uses_runtime = False
        self.uses_dataclass = False
        self._names: set[str] = {self.module, self.views_module, "runtime", "dataclass", "dc_field", "Any"}

    def claim(self, name: str) -> str:
        """Reserve a unique top-level name in the module."""
        candidate = name
        n = 2
        while candidate in self._names:
            candidate = f"{name}{n}"
            n += 1
        self._names.add(candidate)
        return candidate

    def local(self, name: str, taken: set[str] | None = None) -> str:
        """Return a local variable name that shadows no module-level name."""
        taken = taken or set()
        while name in self._names or name in taken:
            name = f"{name}_"
        return name

    def imports(self) -> tuple[str, ...]:
        lines = ["from __future__ import annotations", ""]
        std: list[str] = []
        if self.uses_dataclass:
            std.append("from dataclasses import dataclass, field as dc_field")
        if self.uses_any:
            std.append("from typing import Any")
        if std:
            lines.extend(std)
            lines.append("")
        if self.uses_runtime:
            lines.append(f"import {self.runtime_module} as runtime")
        if self.uses_domain:
            lines.append(f"from {self.gen_package} import {self.module}")
        if self.uses_views:
            lines.append(f"from {self.gen_package}.{self.module} import views as {self.views_module}")
        while lines and lines[-1] == "":
            lines.pop()
        return tuple(lines)


def docstring(text: str, indent: str = "    ") -> list[str]:
    """Render `text` as a wrapped docstring at `indent`."""
    wrapped = textwrap.wrap(text, width=79 - len(indent))
    if len(wrapped) == 1 and len(wrapped[0]) + len(indent) + 6 <= 79:
        return [f'{indent}"""{wrapped[0]}"""']
    return [f'{indent}"""{wrapped[0]}', *(f"{indent}{w}" for w in wrapped[1:]), f'{indent}"""']


def literal(value: Any) -> str:
    """Render a design constant as a Python literal."""
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return "[" + ", ".join(literal(v) for v in value) + "]"
    if isinstance(value, tuple):
        inner = ", ".join(literal(v) for v in value)
        return f"({inner},)" if len(value) == 1 else f"({inner})"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{literal(k)}: {literal(v)}" for k, v in value.items()) + "}"
    return repr(value)
