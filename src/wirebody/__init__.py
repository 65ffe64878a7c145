"""wirebody: generate HTTP client body types, conversions and validators from a service design."""

from __future__ import annotations

from . import errors, runtime
from .config import GenOptions
from .design import Design, load_design
from .generate import generate
from .source import SourceFile

__all__ = [
    "Design",
    "GenOptions",
    "SourceFile",
    "errors",
    "generate",
    "load_design",
    "runtime",
]
