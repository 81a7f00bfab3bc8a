"""
Canonical protocol definitions for cdf-sync.

The syndication core owns tracking tables, the work queue and the
ingestion algorithm. Everything else -- the host CMS's entity storage,
its extension system, dependency calculation, and the remote syndication
service -- is an external collaborator described here by shape only.

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── Connection            : sync DB protocol (sqlite3 compatible)
        ├── SyncEntity            : what the core needs from a host entity
        ├── EntityStore           : host storage: load, build, save, stub, delete
        ├── CapabilityRegistry    : host modules/extensions the CDF may require
        ├── DependencyCalculator  : black box returning the dependency closure
        ├── EntityNormalizer      : host entity → CDF objects
        └── RemoteClient          : remote syndication service (entities, interests, webhooks)

Guardrails:
    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts; hosts and tests provide implementations

Tags:
    protocols, contracts, structural-typing, cdf-sync

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cdfsync.cdf.models import CDFDocument, CDFObject
    from cdfsync.ingestion.context import ImportContext
    from cdfsync.ingestion.stack import DependencyStack, EntityWrapper


@runtime_checkable
class Connection(Protocol):
    """Minimal synchronous database connection (``sqlite3.Connection`` satisfies it)."""

    def execute(self, sql: str, params: Any = ()) -> Any: ...

    def executemany(self, sql: str, params: Any) -> Any: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@runtime_checkable
class SyncEntity(Protocol):
    """A local host entity as seen by the syndication core."""

    uuid: str
    entity_type: str
    id: Any


class EntityStore(Protocol):
    """Host entity storage.

    ``build`` is the "populate" step of ingestion: given the CDF object and
    the existing local entity (or ``None``), return the entity to save, or
    ``None`` to decline resolution. ``save`` receives the ``ImportContext``
    so the host can treat the write as a synchronization write.
    """

    def load(self, entity_type: str, uuid: str) -> Any | None: ...

    def load_by_id(self, entity_type: str, entity_id: Any) -> Any | None: ...

    def build(self, cdf: CDFObject, existing: Any | None, stack: DependencyStack) -> Any | None: ...

    def save(self, entity: Any, context: ImportContext) -> None: ...

    def create_stub(self, cdf: CDFObject, context: ImportContext) -> Any: ...

    def delete(self, entity: Any) -> None: ...


class CapabilityRegistry(Protocol):
    """Host capabilities (modules/extensions) a CDF object may depend on."""

    def is_enabled(self, name: str) -> bool: ...

    def is_available(self, name: str) -> bool: ...

    def enable(self, names: list[str]) -> None: ...


class DependencyCalculator(Protocol):
    """Computes the transitive dependency closure of an entity.

    Implementations fill ``wrapper.dependencies`` (uuid → hash) and
    ``wrapper.module_dependencies`` and add one wrapper per dependency to
    ``stack``.
    """

    def calculate_dependencies(self, wrapper: EntityWrapper, stack: DependencyStack) -> None: ...


class EntityNormalizer(Protocol):
    """Converts a host entity into one or more CDF objects (attributes only)."""

    def normalize(self, entity: Any, origin: str) -> list[CDFObject]: ...


class RemoteClient(Protocol):
    """The remote syndication service shared by publishers and subscribers."""

    def get_entities(self, uuids: Iterable[str]) -> CDFDocument: ...

    def put_entities(self, *objects: CDFObject) -> int: ...

    def get_interests_by_webhook_and_site_role(self, webhook_uuid: str, site_role: str) -> dict[str, dict]: ...

    def add_entities_to_interest_list_by_site_role(
        self, webhook_uuid: str, site_role: str, interest_list: dict[str, Any]
    ) -> None: ...

    def update_interest_list_by_site_role(
        self, webhook_uuid: str, site_role: str, interest_list: dict[str, Any]
    ) -> None: ...

    def delete_interest(self, uuid: str, webhook_uuid: str) -> None: ...

    def get_client_by_uuid(self, uuid: str) -> dict[str, Any] | None: ...

    def get_webhooks(self) -> list[dict[str, Any]]: ...


__all__ = [
    "Connection",
    "SyncEntity",
    "EntityStore",
    "CapabilityRegistry",
    "DependencyCalculator",
    "EntityNormalizer",
    "RemoteClient",
]
