"""
Stub tracking and the CreateStubs recovery handler.

Stubs are placeholder entities saved so that objects with circular
references can be materialized: every participant is first saved as a
stub, then the engine re-runs over the subset and fills each stub in
place.

Cleanup rules:
    - ``clean_up(force=False)`` after a successful run clears bookkeeping.
      Stubs that were filled in are kept; a ``cleanup_stubs`` handler may
      still ask for a specific stub to be deleted.
    - ``clean_up(force=True)`` after a failed run deletes every stub this
      run created that was never filled in. Materialized entities are
      never deleted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cdfsync.cdf.models import CONFIG_ENTITY, CDFDocument
from cdfsync.core.errors import ImportFailureError
from cdfsync.core.logging import get_logger
from cdfsync.ingestion.context import ImportContext
from cdfsync.ingestion.hooks import CleanupStubContext, ImportFailureContext
from cdfsync.ingestion.stack import EntityWrapper, WrapperState

if TYPE_CHECKING:
    from cdfsync.core.events import HandlerChain
    from cdfsync.core.protocols import EntityStore

logger = get_logger(__name__)


class StubTracker:
    """Remembers stubs created during a run so they can be cleaned up."""

    def __init__(self, store: EntityStore, cleanup_chain: HandlerChain[CleanupStubContext] | None = None) -> None:
        self.store = store
        self.cleanup_chain = cleanup_chain
        self._stubs: dict[str, EntityWrapper] = {}

    def track(self, wrapper: EntityWrapper) -> None:
        self._stubs[wrapper.uuid] = wrapper

    def is_tracking(self) -> bool:
        return bool(self._stubs)

    def has_stub(self, entity_type: str, entity_id) -> bool:
        return any(w.entity_type == entity_type and w.id == entity_id for w in self._stubs.values())

    def get_imported_entities(self) -> list[str]:
        return list(self._stubs)

    def clean_up(self, force: bool = False) -> list[str]:
        """
        Clear stub bookkeeping, deleting stubs where required.

        Returns:
            UUIDs of the stub entities that were deleted.
        """
        deleted: list[str] = []
        for uuid, wrapper in list(self._stubs.items()):
            if force and wrapper.is_materialized:
                continue
            delete = force
            if self.cleanup_chain is not None and self.cleanup_chain.has_handlers():
                ctx = self.cleanup_chain.dispatch(CleanupStubContext(wrapper=wrapper, forced=force, delete=delete))
                delete = ctx.delete
            if delete:
                self.store.delete(wrapper.entity)
                deleted.append(uuid)
                logger.info("stub_deleted", uuid=uuid, entity_type=wrapper.entity_type, forced=force)
        self._stubs.clear()
        return deleted


class CreateStubs:
    """
    ``import_failure`` handler that breaks dependency cycles with stubs.

    For every unprocessed object: config objects are re-processed as is;
    other objects get an existing local entity or a freshly created stub,
    registered in the stack as a STUB. The engine is then re-entered on
    the unprocessed subset. Being asked to recover twice at the same
    materialized count means the previous attempt made no progress, so
    the handler gives up with an exception instead of recursing forever.
    """

    priority = 100

    def __init__(self) -> None:
        self._count: int | None = None

    def __call__(self, ctx: ImportFailureContext) -> None:
        if self._count == ctx.count:
            ctx.exception = ImportFailureError(
                "Potential infinite recursion call interrupted in CreateStubs handler.",
                unprocessed=ctx.unprocessed(),
            )
            return
        self._count = ctx.count

        unprocessed = ctx.unprocessed()
        if not unprocessed:
            self._count = None
            ctx.recover()
            return

        engine = ctx.engine
        stack = ctx.stack
        cdfs = []
        try:
            for uuid in unprocessed:
                cdf = ctx.document.get_entity(uuid)
                cdfs.append(cdf)
                if cdf.type == CONFIG_ENTITY or stack.has_dependency(uuid):
                    continue
                existing = engine.load_local(cdf, stack, stub=True)
                if existing is not None:
                    wrapper = EntityWrapper(existing, state=WrapperState.STUB)
                    wrapper.set_remote_uuid(uuid)
                    stack.add_dependency(wrapper)
                    continue
                stub = engine.store.create_stub(cdf, ImportContext(origin=cdf.origin).for_stub())
                wrapper = EntityWrapper(stub, state=WrapperState.STUB)
                wrapper.set_remote_uuid(uuid)
                stack.add_dependency(wrapper)
                engine.stub_tracker.track(wrapper)
                logger.debug("stub_created", uuid=uuid, entity_type=cdf.entity_type)

            engine.ingest(CDFDocument(*cdfs), stack)
        except Exception as exc:  # re-raised by the engine after forced cleanup
            ctx.exception = exc
        else:
            ctx.recover()
        finally:
            self._count = None
