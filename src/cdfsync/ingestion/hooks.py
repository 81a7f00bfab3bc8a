"""
Extension points of the ingestion engine.

Each stage is a ``HandlerChain`` over a mutable context. The host
registers handlers to prune the document, rewrite objects, find existing
local entities, adjust entities before they are saved, react to imported
entities, recover from a stalled import, and decide what happens to
stubs at cleanup time.

Stages, in the order the engine runs them::

    prune            PruneCdfContext        drop objects before anything else
    tamper           TamperContext          rewrite objects / pre-seed the stack
    load_local       LoadLocalEntityContext find an existing local entity
    pre_save         PreEntitySaveContext   last chance to modify the entity
    entity_imported  EntityImportContext    after save (trackers, interest lists)
    import_failure   ImportFailureContext   no-progress recovery (CreateStubs)
    cleanup_stubs    CleanupStubContext     per-stub delete decision
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cdfsync.core.events import HandlerChain, HookContext

if TYPE_CHECKING:
    from cdfsync.cdf.models import CDFDocument, CDFObject
    from cdfsync.ingestion.engine import IngestionEngine
    from cdfsync.ingestion.stack import DependencyStack, EntityWrapper


@dataclass
class PruneCdfContext(HookContext):
    document: CDFDocument
    stack: DependencyStack


@dataclass
class TamperContext(HookContext):
    document: CDFDocument
    stack: DependencyStack


@dataclass
class LoadLocalEntityContext(HookContext):
    cdf: CDFObject
    stack: DependencyStack
    stub: bool = False
    entity: Any | None = None


@dataclass
class PreEntitySaveContext(HookContext):
    entity: Any
    cdf: CDFObject
    stack: DependencyStack


@dataclass
class EntityImportContext(HookContext):
    entity: Any
    cdf: CDFObject
    stack: DependencyStack
    is_new: bool


@dataclass
class ImportFailureContext(HookContext):
    document: CDFDocument
    stack: DependencyStack
    count: int
    engine: IngestionEngine
    exception: Exception | None = None
    recovered: bool = False

    def unprocessed(self) -> list[str]:
        return [uuid for uuid in self.document.uuids() if not self.stack.is_materialized(uuid)]

    def recover(self) -> None:
        self.recovered = True
        self.stop_propagation()


@dataclass
class CleanupStubContext(HookContext):
    wrapper: EntityWrapper
    forced: bool
    delete: bool = False

    def delete_stub(self) -> None:
        self.delete = True
        self.stop_propagation()

    def keep_stub(self) -> None:
        self.delete = False
        self.stop_propagation()


@dataclass
class IngestionHooks:
    prune: HandlerChain[PruneCdfContext] = field(default_factory=lambda: HandlerChain("prune_cdf"))
    tamper: HandlerChain[TamperContext] = field(default_factory=lambda: HandlerChain("entity_data_tamper"))
    load_local: HandlerChain[LoadLocalEntityContext] = field(
        default_factory=lambda: HandlerChain("load_local_entity")
    )
    pre_save: HandlerChain[PreEntitySaveContext] = field(default_factory=lambda: HandlerChain("pre_entity_save"))
    entity_imported: HandlerChain[EntityImportContext] = field(
        default_factory=lambda: HandlerChain("entity_import")
    )
    import_failure: HandlerChain[ImportFailureContext] = field(
        default_factory=lambda: HandlerChain("import_failure")
    )
    cleanup_stubs: HandlerChain[CleanupStubContext] = field(default_factory=lambda: HandlerChain("cleanup_stubs"))
