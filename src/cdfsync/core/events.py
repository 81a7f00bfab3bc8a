"""Ordered handler chains for pluggable pipeline stages.

Why This Module Exists
----------------------
Pruning, tampering, entity resolution, eligibility checks and failure
recovery are all extension points: the host registers handlers that
may inspect, mutate or veto a mutable context object.  A full event bus
is unnecessary; an ordered list of callables per stage is enough.

Handlers run by descending priority (registration order breaks ties)
until one of them calls ``context.stop_propagation()``.

Usage::

    chain: HandlerChain[EnqueueCandidateContext] = HandlerChain("enqueue_candidate")
    chain.register(is_already_enqueued, priority=50)
    chain.register(exclude_types, priority=100)
    ctx = chain.dispatch(EnqueueCandidateContext(entity=node, op="update"))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

__all__ = ["HookContext", "HandlerChain", "Handler"]


class HookContext:
    """Base class for mutable contexts passed along a handler chain."""

    propagation_stopped: bool = False

    def stop_propagation(self) -> None:
        """Prevent handlers with lower priority from running."""
        self.propagation_stopped = True


C = TypeVar("C", bound=HookContext)
Handler = Callable[[C], None]


@dataclass
class _Registration(Generic[C]):
    handler: Callable[[C], None]
    priority: int
    sequence: int


class HandlerChain(Generic[C]):
    """Priority-ordered list of handlers sharing one context type."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._registrations: list[_Registration[C]] = []
        self._sequence = 0

    def register(self, handler: Callable[[C], None], priority: int = 0) -> None:
        """Add a handler. Higher priority runs first."""
        self._sequence += 1
        self._registrations.append(_Registration(handler, priority, self._sequence))
        self._registrations.sort(key=lambda r: (-r.priority, r.sequence))

    def unregister(self, handler: Callable[[C], None]) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        before = len(self._registrations)
        self._registrations = [r for r in self._registrations if r.handler is not handler]
        return len(self._registrations) != before

    @property
    def handlers(self) -> list[Callable[[C], None]]:
        return [r.handler for r in self._registrations]

    def has_handlers(self) -> bool:
        return bool(self._registrations)

    def dispatch(self, context: C) -> C:
        """Run handlers in order against ``context`` and return it."""
        for registration in list(self._registrations):
            if context.propagation_stopped:
                break
            registration.handler(context)
        return context

    def __len__(self) -> int:
        return len(self._registrations)

    def __repr__(self) -> str:
        return f"HandlerChain({self.name!r}, handlers={len(self._registrations)})"
