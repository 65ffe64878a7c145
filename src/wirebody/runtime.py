"""Runtime checks called by generated validation functions.

Every check returns a `ValidationError` describing the violation, or `None`
when the value is valid. Generated code folds the results together with
`merge_errors` so that all violations of a body are reported at once.
"""

from __future__ import annotations

import ipaddress
import json
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from email.utils import parsedate_to_datetime
from typing import Any, Iterable
from urllib.parse import urlparse

from .errors import WireBodyError

FORMATS = (
    "date",
    "date-time",
    "uuid",
    "email",
    "hostname",
    "ipv4",
    "ipv6",
    "ip",
    "uri",
    "mac",
    "cidr",
    "regexp",
    "json",
    "rfc1123",
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HOSTNAME_RE = re.compile(r"^(?=.{1,253}$)([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*\.?$")
_MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}$|^([0-9A-Fa-f]{4}\.){2}[0-9A-Fa-f]{4}$")


@dataclass(frozen=True)
class Violation:
    kind: str
    attribute: str
    location: str
    message: str


class ValidationError(WireBodyError):
    """Aggregate of the violations found in a decoded body."""

    def __init__(self, violations: Iterable[Violation]):
        self.violations = tuple(violations)
        super().__init__("; ".join(v.message for v in self.violations))


def merge_errors(err: ValidationError | None, other: ValidationError | None) -> ValidationError | None:
    """Combine two (possibly absent) errors, preserving violation order."""
    if other is None:
        return err
    if err is None:
        return other
    return ValidationError([*err.violations, *other.violations])


def _error(kind: str, attribute: str, message: str, location: str = "body") -> ValidationError:
    return ValidationError([Violation(kind=kind, attribute=attribute, location=location, message=message)])


def missing_field_error(name: str, location: str) -> ValidationError:
    return _error("missing_field", name, f'"{name}" is missing from {location}', location)


def validate_pattern(name: str, value: str, pattern: str) -> ValidationError | None:
    if re.search(pattern, value) is None:
        return _error("invalid_pattern", name, f"{name} must match the regexp {pattern!r} but got value {value!r}")
    return None


def _same(a: Any, b: Any) -> bool:
    # bool is an int subclass; 1 must not match True.
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b


def validate_enum(name: str, value: Any, allowed: list[Any]) -> ValidationError | None:
    if any(_same(a, value) for a in allowed):
        return None
    choices = ", ".join(repr(a) for a in allowed)
    return _error("invalid_enum_value", name, f"{name} must be one of [{choices}] but got value {value!r}")


def validate_min_length(name: str, value: Any, n: int) -> ValidationError | None:
    if len(value) < n:
        return _error("invalid_length", name, f"length of {name} must be greater or equal than {n} but got {len(value)}")
    return None


def validate_max_length(name: str, value: Any, n: int) -> ValidationError | None:
    if len(value) > n:
        return _error("invalid_length", name, f"length of {name} must be less or equal than {n} but got {len(value)}")
    return None


def validate_minimum(name: str, value: float, n: float) -> ValidationError | None:
    if value < n:
        return _error("invalid_range", name, f"{name} must be greater or equal than {n} but got value {value!r}")
    return None


def validate_maximum(name: str, value: float, n: float) -> ValidationError | None:
    if value > n:
        return _error("invalid_range", name, f"{name} must be less or equal than {n} but got value {value!r}")
    return None


def validate_format(name: str, value: str, fmt: str) -> ValidationError | None:
    try:
        check = _FORMAT_CHECKS[fmt]
    except KeyError:
        raise ValueError(f"unknown format {fmt!r}") from None
    try:
        ok = check(value)
    except (ValueError, TypeError, re.error):
        ok = False
    if not ok:
        return _error("invalid_format", name, f"{name} must be formatted as a {fmt} but got value {value!r}")
    return None


def _is_date(v: str) -> bool:
    date.fromisoformat(v)
    return True


def _is_datetime(v: str) -> bool:
    # RFC 3339 requires both the time and the offset.
    if "T" not in v.upper():
        return False
    dt = datetime.fromisoformat(v.replace("Z", "+00:00").replace("z", "+00:00"))
    return dt.tzinfo is not None


def _is_uuid(v: str) -> bool:
    uuid.UUID(v)
    return True


def _is_ip(version: int | None):
    def check(v: str) -> bool:
        addr = ipaddress.ip_address(v)
        return version is None or addr.version == version

    return check


def _is_cidr(v: str) -> bool:
    if "/" not in v:
        return False
    ipaddress.ip_network(v, strict=False)
    return True


def _is_uri(v: str) -> bool:
    u = urlparse(v)
    return bool(u.scheme) and bool(u.netloc or u.path)


def _is_regexp(v: str) -> bool:
    re.compile(v)
    return True


def _is_json(v: str) -> bool:
    json.loads(v)
    return True


def _is_rfc1123(v: str) -> bool:
    return parsedate_to_datetime(v) is not None


_FORMAT_CHECKS = {
    "date": _is_date,
    "date-time": _is_datetime,
    "uuid": _is_uuid,
    "email": lambda v: _EMAIL_RE.match(v) is not None,
    "hostname": lambda v: _HOSTNAME_RE.match(v) is not None,
    "ipv4": _is_ip(4),
    "ipv6": _is_ip(6),
    "ip": _is_ip(None),
    "uri": _is_uri,
    "mac": lambda v: _MAC_RE.match(v) is not None,
    "cidr": _is_cidr,
    "regexp": _is_regexp,
    "json": _is_json,
    "rfc1123": _is_rfc1123,
}
