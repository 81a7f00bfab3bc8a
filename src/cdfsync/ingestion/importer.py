"""
CDF Importer: dependency-closure fetch followed by ingestion.

Architecture:
    ::

        import_entities(*uuids)
          │
          ├── get_cdf_document(stack, *uuids)
          │     ├── reject malformed UUIDs      ImportValidationError(101)
          │     ├── client.get_entities(uuids)
          │     ├── validate_document            ImportValidationError(100)
          │     ├── pre-seed stack from SubscriberTracker
          │     │     (same hash, or auto update disabled)
          │     └── while dependencies are missing:
          │           fetch them, merge, validate again
          │
          └── engine.ingest(document, stack)

Validation:
    When the accumulated document holds fewer objects than UUIDs
    requested, each requested UUID is walked: an absent object is "not
    published"; a present object whose dependencies vanished upstream is
    marked for republish at its origin. Republish requests are sent, then
    ``ImportValidationError`` is raised naming the missing UUIDs. The
    queue retries the item; the republish is what should make the retry
    succeed.

Tags:
    import, dependency-closure, republish, cdf-sync

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cdfsync.cdf.models import CDFDocument
from cdfsync.core.errors import ImportValidationError
from cdfsync.core.logging import get_logger
from cdfsync.core.settings import is_valid_uuid
from cdfsync.tracking.models import SubscriberStatus

from .stack import DependencyStack, EntityWrapper

if TYPE_CHECKING:
    from cdfsync.core.protocols import RemoteClient
    from cdfsync.interest.republish import RepublishRequester
    from cdfsync.tracking.subscriber import SubscriberTracker

    from .engine import IngestionEngine

logger = get_logger(__name__)


class CdfImporter:
    def __init__(
        self,
        client: RemoteClient,
        engine: IngestionEngine,
        tracker: SubscriberTracker,
        republisher: RepublishRequester | None = None,
    ) -> None:
        self.client = client
        self.engine = engine
        self.tracker = tracker
        self.republisher = republisher

    def import_entities(self, *uuids: str) -> DependencyStack:
        """Fetch the closure of ``uuids`` and ingest it in one run."""
        stack = DependencyStack()
        document = self.get_cdf_document(stack, *uuids)
        return self.import_entity_cdf_document(document, stack)

    def import_entity_cdf_document(self, document: CDFDocument, stack: DependencyStack | None = None) -> DependencyStack:
        if stack is None:
            stack = DependencyStack()
        self.engine.ingest(document, stack)
        return stack

    def get_cdf_document(self, stack: DependencyStack, *uuids: str) -> CDFDocument:
        """
        Assemble the document holding ``uuids`` and every dependency not
        already satisfied locally.

        Raises:
            ImportValidationError: A UUID is malformed (code 101) or the
                closure cannot be completed (code 100)
        """
        uuid_list: dict[str, str] = {}
        for uuid in uuids:
            if not is_valid_uuid(uuid):
                raise ImportValidationError(
                    f"Invalid uuid {uuid}.",
                    code=ImportValidationError.INVALID_UUID,
                    uuids=[uuid],
                )
            uuid_list[uuid] = uuid

        document = self.client.get_entities(list(uuid_list))
        self.validate_document(document, list(uuid_list))
        self._update_stack_from_subscriber_tracker(document, stack)

        missing = self._get_missing_dependencies(document, stack)
        while missing:
            document.merge(self.client.get_entities(missing))
            for uuid in missing:
                uuid_list.setdefault(uuid, uuid)
            self.validate_document(document, list(uuid_list))
            self._update_stack_from_subscriber_tracker(document, stack)
            missing = self._get_missing_dependencies(document, stack)
        return document

    assemble = get_cdf_document

    # -- stack pre-seeding -------------------------------------------------

    def _update_stack_from_subscriber_tracker(self, document: CDFDocument, stack: DependencyStack) -> None:
        for cdf in document:
            for uuid, hash in cdf.dependencies.items():
                self._add_entity_to_dependency_stack(uuid, hash, stack)
            self._add_entity_to_dependency_stack(cdf.uuid, cdf.hash or "", stack)

    def _add_entity_to_dependency_stack(self, uuid: str, hash: str, stack: DependencyStack) -> None:
        if stack.is_materialized(uuid):
            return
        record = self.tracker.get_by_remote_id_and_hash(uuid, hash)
        if record is None:
            return
        entity = self.engine.store.load_by_id(record.entity_type, record.entity_id)
        if entity is None:
            return
        wrapper = EntityWrapper(entity, hash=record.hash)
        wrapper.set_remote_uuid(uuid)
        stack.add_dependency(wrapper)
        if record.status != SubscriberStatus.AUTO_UPDATE_DISABLED.value:
            self.tracker.set_status_by_uuid(uuid, SubscriberStatus.IMPORTED)

    def _get_missing_dependencies(self, document: CDFDocument, stack: DependencyStack) -> list[str]:
        missing: list[str] = []
        for cdf in document:
            for dependency in cdf.dependencies:
                if stack.has_dependency(dependency) or document.has_entity(dependency):
                    continue
                if dependency not in missing:
                    missing.append(dependency)
        return missing

    # -- validation --------------------------------------------------------

    def validate_document(self, document: CDFDocument, uuids: list[str]) -> None:
        if len(uuids) <= len(document):
            return

        diff_uuids = [uuid for uuid in uuids if not document.has_entity(uuid)]
        marked_for_republish: dict[str, list[dict[str, Any]]] = {}
        triggering: dict[str, str] = {}
        messages: list[str] = []
        for uuid in uuids:
            cdf = document.get_entity(uuid)
            if cdf is None:
                message = f'The entity with UUID = "{uuid}" could not be imported because it is missing from the remote service.'
                messages.append(message)
                triggering[uuid] = "not published"
                continue
            vanished = [dep for dep in diff_uuids if dep in cdf.dependencies]
            if vanished:
                marked_for_republish.setdefault(cdf.origin, []).append(
                    {"uuid": uuid, "type": cdf.entity_type, "dependencies": list(cdf.dependencies)}
                )
                message = (
                    f"The entity ({cdf.entity_type}, {uuid}) could not be imported because the following "
                    f"dependencies are missing from the remote service: {', '.join(vanished)}."
                )
                messages.append(message)
                triggering[uuid] = message

        if marked_for_republish:
            self.request_to_republish_entities(marked_for_republish)

        raise ImportValidationError(
            "\n".join(messages),
            code=ImportValidationError.MISSING_ENTITIES,
            uuids=diff_uuids,
            triggering_uuids=triggering,
        )

    def request_to_republish_entities(self, entities_by_origin: dict[str, list[dict[str, Any]]]) -> None:
        if self.republisher is None:
            logger.warning("republish_unavailable", origins=list(entities_by_origin))
            return
        self.republisher.request_to_republish_entities(entities_by_origin)
