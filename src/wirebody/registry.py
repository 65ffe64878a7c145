"""Run-scoped dedup registry for body types and generated functions."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .body import BodyType


@dataclass(frozen=True)
class ConversionKey:
    source: str
    target: str
    view: str | None = None


@dataclass
class FunctionSlot:
    kind: str
    key: ConversionKey
    namespace: str
    name: str
    code: str | None = None

    @property
    def complete(self) -> bool:
        return self.code is not None


class DedupRegistry:
    """Holds every body type and function slot created during one generation run.

    Slots are reserved (named) before their code is synthesized so that
    recursive types resolve to the forward-declared function. A slot is
    completed exactly once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slots: dict[tuple[str, ConversionKey], FunctionSlot] = {}
        self._bodies: dict[str, "BodyType | None"] = {}

    # Functions

    def lookup(self, kind: str, key: ConversionKey) -> FunctionSlot | None:
        return self._slots.get((kind, key))

    def reserve(self, kind: str, key: ConversionKey, *, namespace: str, name: str) -> tuple[FunctionSlot, bool]:
        """Return the slot for `key`, creating it if needed; the flag is True when created."""
        with self._lock:
            slot = self._slots.get((kind, key))
            if slot is not None:
                return slot, False
            slot = FunctionSlot(kind=kind, key=key, namespace=namespace, name=name)
            self._slots[(kind, key)] = slot
            return slot, True

    def complete(self, slot: FunctionSlot, code: str) -> None:
        with self._lock:
            if slot.code is not None:
                raise RuntimeError(f"function {slot.name} already emitted")
            slot.code = code

    def slots(self, namespace: str, kind: str | None = None) -> list[FunctionSlot]:
        """Return slots of a namespace in reservation order."""
        return [
            s for s in self._slots.values() if s.namespace == namespace and (kind is None or s.kind == kind)
        ]

    # Body types

    def reserve_body(self, body_id: str) -> bool:
        with self._lock:
            if body_id in self._bodies:
                return False
            self._bodies[body_id] = None
            return True

    def add_body(self, body: "BodyType") -> None:
        with self._lock:
            if self._bodies.get(body.id) is not None:
                raise RuntimeError(f"body type {body.id} already declared")
            self._bodies[body.id] = body

    def body(self, body_id: str) -> "BodyType":
        b = self._bodies.get(body_id)
        if b is None:
            raise KeyError(body_id)
        return b

    def bodies(self, namespace: str) -> list["BodyType"]:
        """Return the body types of a namespace: top-level bodies first, then nested ones."""
        own = [b for b in self._bodies.values() if b is not None and b.namespace == namespace]
        return [b for b in own if b.variant is not None] + [b for b in own if b.variant is None]
