from __future__ import annotations

import keyword
import re

_ACRONYM_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_RE = re.compile(r"([a-z\d])([A-Z])")
_NON_WORD_RE = re.compile(r"[^0-9A-Za-z]+")


def snake(name: str) -> str:
    """Return `name` as a lower_snake_case identifier ("MethodARequestBody" -> "method_a_request_body")."""
    s = _ACRONYM_RE.sub(r"\1_\2", name)
    s = _CAMEL_RE.sub(r"\1_\2", s)
    s = _NON_WORD_RE.sub("_", s)
    return re.sub(r"_+", "_", s).strip("_").lower()


def pascal(name: str) -> str:
    """Return `name` as a PascalCase identifier ("dup_obj" -> "DupObj")."""
    parts = [p for p in _NON_WORD_RE.split(name) if p]
    return "".join(p[0].upper() + p[1:] for p in parts)


def identifier(name: str) -> str:
    """Return a valid Python identifier for an attribute name."""
    s = _NON_WORD_RE.sub("_", name.strip())
    if not s:
        s = "_"
    if s[0].isdigit():
        s = f"_{s}"
    if keyword.iskeyword(s):
        s = f"{s}_"
    return s
