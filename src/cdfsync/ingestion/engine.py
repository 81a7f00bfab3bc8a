"""
Dependency-ordered ingestion of CDF documents.

The engine turns a CDF document into locally materialized entities. It
never materializes an object before every UUID in its ``dependencies``
map is present in the Dependency Stack, and it runs the capability gate
once per call, before any entity is written.

Manifesto:
    - **Dependency order only:** Objects are materialized in passes; an
      object becomes processable once all its dependencies are stacked
    - **Gate before write:** Missing capabilities abort before any save
    - **No document-wide transaction:** Entities saved before a failure
      stay committed; only never-filled stubs are rolled back
    - **Bounded:** The loop has an explicit iteration bound, so even an
      "almost cyclic" document terminates

Architecture:
    ::

        ingest(document, stack)
          │
          ├── prune / tamper chains            (may remove or rewrite objects)
          ├── capability gate                  MissingCapabilityError
          ├── loop until every UUID is materialized:
          │     ├── processable = deps ⊆ stack
          │     ├── load_local → build → pre_save → save(ImportContext)
          │     ├── declined objects are removed from the document
          │     └── no progress → import_failure chain
          │            ├── handler set exception → forced stub cleanup, raise
          │            ├── nobody recovered      → forced stub cleanup,
          │            │                           ImportFailureError
          │            └── recovered (CreateStubs) → continue
          └── stub cleanup (not forced)

Tags:
    ingestion, topological-sort, stubs, cdf-sync

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cdfsync.cdf.models import CDFDocument, CDFObject
from cdfsync.core.errors import ImportFailureError, InvalidDocumentError, MissingCapabilityError
from cdfsync.core.logging import get_logger
from cdfsync.ingestion.context import ImportContext
from cdfsync.ingestion.hooks import (
    EntityImportContext,
    ImportFailureContext,
    IngestionHooks,
    LoadLocalEntityContext,
    PreEntitySaveContext,
    PruneCdfContext,
    TamperContext,
)
from cdfsync.ingestion.stack import DependencyStack, EntityWrapper
from cdfsync.ingestion.stubs import StubTracker

if TYPE_CHECKING:
    from cdfsync.core.protocols import CapabilityRegistry, EntityStore
    from cdfsync.core.settings import CdfSyncSettings

logger = get_logger(__name__)


class IngestionEngine:
    """
    Materializes CDF documents through an ``EntityStore``.

    Args:
        store: Host entity storage
        capabilities: Host capability registry used by the module gate
        hooks: Handler chains for the pluggable stages
        max_iterations: Loop bound; ``0`` means ``len(document) + 1``

    Example:
        >>> engine = IngestionEngine(store, capabilities)
        >>> engine.hooks.import_failure.register(CreateStubs(), CreateStubs.priority)
        >>> engine.ingest(document, DependencyStack())
    """

    def __init__(
        self,
        store: EntityStore,
        capabilities: CapabilityRegistry,
        hooks: IngestionHooks | None = None,
        *,
        max_iterations: int = 0,
    ) -> None:
        self.store = store
        self.capabilities = capabilities
        self.hooks = hooks or IngestionHooks()
        self.max_iterations = max_iterations
        self.stub_tracker = StubTracker(store, self.hooks.cleanup_stubs)
        self._depth = 0

    @classmethod
    def from_settings(
        cls,
        store: EntityStore,
        capabilities: CapabilityRegistry,
        settings: CdfSyncSettings,
        hooks: IngestionHooks | None = None,
    ) -> IngestionEngine:
        """Engine bounded by ``settings.max_ingest_iterations``."""
        return cls(store, capabilities, hooks, max_iterations=settings.max_ingest_iterations)

    def ingest(self, document: CDFDocument, stack: DependencyStack) -> None:
        """
        Materialize every object of ``document`` into the host.

        Raises:
            InvalidDocumentError: The document has no entities
            MissingCapabilityError: A required capability cannot be enabled
            ImportFailureError: No progress could be made and no recovery
                handler stepped in, or the iteration bound was exceeded
        """
        if not document.has_entities():
            raise InvalidDocumentError()

        self._depth += 1
        try:
            self._preprocess(document, stack)
            self._handle_modules(document, stack)
            self._materialize_all(document, stack)
        except Exception:
            self.stub_tracker.clean_up(force=True)
            raise
        finally:
            self._depth -= 1

        if self._depth == 0:
            self.stub_tracker.clean_up()

    # -- stages ----------------------------------------------------------

    def _preprocess(self, document: CDFDocument, stack: DependencyStack) -> None:
        self.hooks.prune.dispatch(PruneCdfContext(document=document, stack=stack))
        self.hooks.tamper.dispatch(TamperContext(document=document, stack=stack))

    def _handle_modules(self, document: CDFDocument, stack: DependencyStack) -> None:
        required: list[str] = []
        pending: list[CDFObject] = []
        for cdf in document:
            if stack.is_materialized(cdf.uuid) or cdf.has_processed_dependencies():
                continue
            pending.append(cdf)
            for module in cdf.module_dependencies:
                if module not in required:
                    required.append(module)

        to_enable = []
        for module in required:
            if self.capabilities.is_enabled(module):
                continue
            if not self.capabilities.is_available(module):
                raise MissingCapabilityError(module)
            to_enable.append(module)

        if to_enable:
            logger.info("capabilities_enabled", capabilities=to_enable)
            self.capabilities.enable(to_enable)
        for cdf in pending:
            cdf.mark_processed_dependencies()

    def _iteration_bound(self, document: CDFDocument) -> int:
        if self.max_iterations > 0:
            return self.max_iterations
        return len(document) + 1

    def _materialize_all(self, document: CDFDocument, stack: DependencyStack) -> None:
        bound = self._iteration_bound(document)
        iterations = 0
        while not self._is_complete(document, stack):
            iterations += 1
            if iterations > bound:
                unprocessed = self._unprocessed(document, stack)
                logger.error("ingestion_stalled", iterations=iterations - 1, unprocessed=unprocessed)
                raise ImportFailureError(
                    f"Import stalled after {bound} iterations: unable to resolve entities {', '.join(unprocessed)}.",
                    unprocessed=unprocessed,
                    stalled=True,
                )

            materialized = stack.materialized_count()
            size = len(document)
            for cdf in document:
                if stack.is_materialized(cdf.uuid):
                    continue
                if not stack.has_dependencies(cdf.dependencies):
                    continue
                self._materialize(cdf, document, stack)

            if stack.materialized_count() == materialized and len(document) == size:
                self._handle_import_failure(document, stack)

    def _is_complete(self, document: CDFDocument, stack: DependencyStack) -> bool:
        return all(stack.is_materialized(uuid) for uuid in document.uuids())

    def _unprocessed(self, document: CDFDocument, stack: DependencyStack) -> list[str]:
        return [uuid for uuid in document.uuids() if not stack.is_materialized(uuid)]

    def load_local(self, cdf: CDFObject, stack: DependencyStack, *, stub: bool = False) -> Any | None:
        """Find the local entity for ``cdf``: ``load_local`` chain first, then the store."""
        ctx = self.hooks.load_local.dispatch(LoadLocalEntityContext(cdf=cdf, stack=stack, stub=stub))
        if ctx.entity is not None:
            return ctx.entity
        entity_type = cdf.entity_type
        if entity_type is None:
            return None
        return self.store.load(entity_type, cdf.uuid)

    def _materialize(self, cdf: CDFObject, document: CDFDocument, stack: DependencyStack) -> None:
        wrapper = stack.get_dependency(cdf.uuid)
        if wrapper is not None and wrapper.is_stub:
            existing = wrapper.entity
        else:
            existing = self.load_local(cdf, stack)

        entity = self.store.build(cdf, existing, stack)
        if entity is None:
            logger.warning("entity_declined", uuid=cdf.uuid, entity_type=cdf.entity_type)
            document.remove_entity(cdf.uuid)
            return

        self.hooks.pre_save.dispatch(PreEntitySaveContext(entity=entity, cdf=cdf, stack=stack))
        self.store.save(entity, ImportContext(origin=cdf.origin))

        if wrapper is not None and wrapper.is_stub:
            wrapper.fill(entity, cdf.hash)
            wrapper.set_remote_uuid(cdf.uuid)
            stack.add_dependency(wrapper)
        else:
            wrapper = EntityWrapper(entity, hash=cdf.hash)
            wrapper.set_remote_uuid(cdf.uuid)
            stack.add_dependency(wrapper)

        logger.debug("entity_materialized", uuid=cdf.uuid, entity_type=cdf.entity_type, new=existing is None)
        self.hooks.entity_imported.dispatch(
            EntityImportContext(entity=entity, cdf=cdf, stack=stack, is_new=existing is None)
        )

    def _handle_import_failure(self, document: CDFDocument, stack: DependencyStack) -> None:
        ctx = self.hooks.import_failure.dispatch(
            ImportFailureContext(document=document, stack=stack, count=stack.materialized_count(), engine=self)
        )
        if ctx.exception is not None:
            raise ctx.exception
        if not ctx.recovered:
            unprocessed = self._unprocessed(document, stack)
            logger.error("ingestion_failed", unprocessed=unprocessed)
            raise ImportFailureError(unprocessed=unprocessed)
