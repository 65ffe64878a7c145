"""Domain-specific errors for wirebody."""

from __future__ import annotations


class WireBodyError(Exception):
    """Base error for wirebody."""


class DesignLoadError(WireBodyError):
    """Raised when a design description cannot be read or is malformed."""


class UnresolvedTypeError(WireBodyError):
    """Raised when a type reference cannot be resolved or contradicts itself."""


class UnknownViewError(WireBodyError):
    """Raised when a method or view references a view the type does not define."""


class ConstraintMismatchError(WireBodyError):
    """Raised when a validation constraint does not apply to the attribute type."""
