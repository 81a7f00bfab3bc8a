"""
Dependency Stack and entity wrappers.

The stack is the run-scoped record of which UUIDs have been resolved in
the current ingestion pass, with a pointer from each UUID to the wrapper
of the local entity built for it. It is created fresh per top-level import
call and discarded at the end of that call.

A wrapper is either a ``STUB`` (a placeholder saved so that forward
references can be satisfied) or ``MATERIALIZED`` (real content saved).
Filling a stub is a state transition on the same wrapper object, so
anything that captured the wrapper during cyclic resolution keeps seeing
the current entity.

Manifesto:
    - **Append-only:** Entries are never removed during a run
    - **Aliases:** A wrapper is reachable by its local UUID and, when the
      host assigned a different identity, by the remote (CDF) UUID
    - **Progress is materialization:** Only MATERIALIZED entries count
      toward ingestion progress; stubs merely satisfy dependency checks

Tags:
    ingestion, dependency-stack, stubs, cdf-sync

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any


class WrapperState(str, Enum):
    STUB = "stub"
    MATERIALIZED = "materialized"


class EntityWrapper:
    """
    A local entity plus the dependency metadata computed for it.

    On the export side ``dependencies`` (uuid → hash) and
    ``module_dependencies`` are filled by the dependency calculator. On the
    import side the wrapper mostly carries the entity and its state.
    """

    def __init__(
        self,
        entity: Any,
        *,
        state: WrapperState = WrapperState.MATERIALIZED,
        hash: str | None = None,
        calculate_dependencies: bool = True,
    ) -> None:
        self.entity = entity
        self.state = state
        self.hash = hash
        self.calculate_dependencies = calculate_dependencies
        self.remote_uuid: str | None = None
        self.dependencies: dict[str, str] = {}
        self.module_dependencies: list[str] = []

    @property
    def uuid(self) -> str:
        return self.entity.uuid

    @property
    def entity_type(self) -> str:
        return self.entity.entity_type

    @property
    def id(self) -> Any:
        return self.entity.id

    @property
    def is_stub(self) -> bool:
        return self.state is WrapperState.STUB

    @property
    def is_materialized(self) -> bool:
        return self.state is WrapperState.MATERIALIZED

    def fill(self, entity: Any, hash: str | None = None) -> None:
        """Replace the stub's entity with saved content (STUB → MATERIALIZED)."""
        self.entity = entity
        self.state = WrapperState.MATERIALIZED
        if hash is not None:
            self.hash = hash

    def set_remote_uuid(self, uuid: str) -> None:
        if uuid != self.uuid:
            self.remote_uuid = uuid

    def add_dependency(self, wrapper: EntityWrapper) -> None:
        self.dependencies[wrapper.uuid] = wrapper.hash or ""

    def add_module_dependencies(self, modules: Iterable[str]) -> None:
        for module in modules:
            if module not in self.module_dependencies:
                self.module_dependencies.append(module)

    def __repr__(self) -> str:
        return f"EntityWrapper(uuid={self.uuid!r}, type={self.entity_type!r}, state={self.state.value})"


class DependencyStack:
    """Run-scoped UUID → wrapper map."""

    def __init__(self, *wrappers: EntityWrapper) -> None:
        self._dependencies: dict[str, EntityWrapper] = {}
        for wrapper in wrappers:
            self.add_dependency(wrapper)

    def add_dependency(self, wrapper: EntityWrapper) -> EntityWrapper:
        """
        Register ``wrapper`` under its UUID (and remote UUID, if any).

        Adding a materialized wrapper for a UUID currently held by a stub
        fills the existing stub in place and returns it.
        """
        keys = [wrapper.uuid]
        if wrapper.remote_uuid:
            keys.append(wrapper.remote_uuid)

        current = next((self._dependencies[k] for k in keys if k in self._dependencies), None)
        if current is not None and current is not wrapper and current.is_stub and wrapper.is_materialized:
            current.fill(wrapper.entity, wrapper.hash)
            if wrapper.remote_uuid and not current.remote_uuid:
                current.set_remote_uuid(wrapper.remote_uuid)
            wrapper = current
            keys = [wrapper.uuid] + ([wrapper.remote_uuid] if wrapper.remote_uuid else [])

        for key in keys:
            self._dependencies[key] = wrapper
        return wrapper

    def has_dependency(self, uuid: str) -> bool:
        """True when ``uuid`` is present, as a stub or materialized."""
        return uuid in self._dependencies

    def has_dependencies(self, uuids: Iterable[str]) -> bool:
        return all(uuid in self._dependencies for uuid in uuids)

    def is_materialized(self, uuid: str) -> bool:
        wrapper = self._dependencies.get(uuid)
        return wrapper is not None and wrapper.is_materialized

    def get_dependency(self, uuid: str) -> EntityWrapper | None:
        return self._dependencies.get(uuid)

    def get_dependencies(self) -> dict[str, EntityWrapper]:
        return dict(self._dependencies)

    def get_dependencies_by_uuid(self, uuids: Iterable[str]) -> dict[str, EntityWrapper]:
        return {uuid: self._dependencies[uuid] for uuid in uuids if uuid in self._dependencies}

    def wrappers(self) -> list[EntityWrapper]:
        """Distinct wrappers in insertion order (aliases collapsed)."""
        seen: dict[int, EntityWrapper] = {}
        for wrapper in self._dependencies.values():
            seen.setdefault(id(wrapper), wrapper)
        return list(seen.values())

    def materialized_count(self) -> int:
        return sum(1 for wrapper in self.wrappers() if wrapper.is_materialized)

    def stubs(self) -> list[EntityWrapper]:
        return [wrapper for wrapper in self.wrappers() if wrapper.is_stub]

    def __len__(self) -> int:
        return len(self.wrappers())

    def __contains__(self, uuid: object) -> bool:
        return uuid in self._dependencies

    def __repr__(self) -> str:
        return f"DependencyStack(entries={len(self)}, materialized={self.materialized_count()})"
