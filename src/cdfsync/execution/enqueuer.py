"""
Eligibility-gated producers for the export and import queues.

Export side (``EntityEnqueuer``)::

    enqueue_entity(entity, op)
      ├── site not configured           → no-op
      ├── enqueue_candidate chain       → ineligible: log reason, stop
      ├── queue item {type, uuid[, calculate_dependencies: false]}
      ├── PublisherTracker.queue + set_queue_item_by_uuid
      └── interest list: QUEUED_TO_EXPORT (PUBLISHER role)

Eligibility rules, by descending priority::

    HasValidUuid        1000   entity has a stable identity
    IsImportedEntity     500   imported entities are not re-exported
    EntityTypeExclude    400   configured entity types
    IsAlreadyEnqueued     50   tracker queue id still live in the queue

``IsAlreadyEnqueued`` is what keeps repeated rapid edits from growing the
queue without bound. It is a best-effort check, not a lock.

Import side (``ImportQueue``) turns webhook UUID lists into import items
``{"uuids": "a, b, c"}``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cdfsync.core.errors import ClientNotConfiguredError, SyncError
from cdfsync.core.events import HandlerChain, HookContext
from cdfsync.core.logging import get_logger
from cdfsync.core.settings import is_valid_uuid
from cdfsync.interest.models import SiteRole, SyndicationStatus, build_interest_list

from .queue import WorkQueue

if TYPE_CHECKING:
    from cdfsync.core.protocols import RemoteClient
    from cdfsync.core.settings import CdfSyncSettings
    from cdfsync.ingestion.stubs import StubTracker
    from cdfsync.tracking.publisher import PublisherTracker
    from cdfsync.tracking.subscriber import SubscriberTracker

logger = get_logger(__name__)


@dataclass
class EnqueueCandidateContext(HookContext):
    entity: Any
    op: str
    eligible: bool = True
    reason: str = ""
    calculate_dependencies: bool = True

    def reject(self, reason: str = "") -> None:
        self.eligible = False
        self.reason = reason
        self.stop_propagation()


# ── Eligibility rules ───────────────────────────────────────────────


class HasValidUuid:
    priority = 1000

    def __call__(self, ctx: EnqueueCandidateContext) -> None:
        if not is_valid_uuid(getattr(ctx.entity, "uuid", None)):
            ctx.reject("Entity does not have a valid UUID.")


class IsImportedEntity:
    """Only registered on dual-role sites (a subscriber tracker exists)."""

    priority = 500

    def __init__(self, subscriber: SubscriberTracker, stub_tracker: StubTracker | None = None) -> None:
        self.subscriber = subscriber
        self.stub_tracker = stub_tracker

    def __call__(self, ctx: EnqueueCandidateContext) -> None:
        uuid = ctx.entity.uuid
        imported = self.stub_tracker.get_imported_entities() if self.stub_tracker is not None else []
        if self.subscriber.is_tracked(uuid) or uuid in imported:
            ctx.reject("Entity has already been imported.")


class EntityTypeExclude:
    priority = 400

    def __init__(self, excluded_types: Iterable[str]) -> None:
        self.excluded_types = set(excluded_types)

    def __call__(self, ctx: EnqueueCandidateContext) -> None:
        if ctx.entity.entity_type in self.excluded_types:
            ctx.reject(f"Entity type {ctx.entity.entity_type} is excluded from export.")


class IsAlreadyEnqueued:
    priority = 50

    def __init__(self, tracker: PublisherTracker) -> None:
        self.tracker = tracker

    def __call__(self, ctx: EnqueueCandidateContext) -> None:
        uuid = ctx.entity.uuid
        if not is_valid_uuid(uuid):
            return
        if self.tracker.get_queue_id(uuid):
            ctx.reject("Entity is already in the export queue.")


def default_eligibility_chain(
    tracker: PublisherTracker,
    settings: CdfSyncSettings,
    subscriber: SubscriberTracker | None = None,
    stub_tracker: StubTracker | None = None,
) -> HandlerChain[EnqueueCandidateContext]:
    chain: HandlerChain[EnqueueCandidateContext] = HandlerChain("enqueue_candidate_entity")
    chain.register(HasValidUuid(), HasValidUuid.priority)
    if subscriber is not None:
        chain.register(IsImportedEntity(subscriber, stub_tracker), IsImportedEntity.priority)
    chain.register(EntityTypeExclude(settings.excluded_entity_types), EntityTypeExclude.priority)
    chain.register(IsAlreadyEnqueued(tracker), IsAlreadyEnqueued.priority)
    return chain


# ── Producers ───────────────────────────────────────────────────────


class EntityEnqueuer:
    """Pushes export work items for eligible local entities."""

    def __init__(
        self,
        queue: WorkQueue,
        tracker: PublisherTracker,
        settings: CdfSyncSettings,
        client: RemoteClient | None = None,
        eligibility: HandlerChain[EnqueueCandidateContext] | None = None,
    ) -> None:
        self.queue = queue
        self.tracker = tracker
        self.settings = settings
        self.client = client
        self.eligibility = eligibility if eligibility is not None else default_eligibility_chain(tracker, settings)

    def enqueue_entity(self, entity: Any, op: str) -> int | None:
        """
        Queue ``entity`` for export after operation ``op``.

        Returns:
            The queue item id, or ``None`` when nothing was queued.

        Raises:
            ClientNotConfiguredError: Interest list updates are enabled but
                no remote client is available.
        """
        if not self.settings.is_configured:
            logger.debug("enqueue_skipped_unconfigured", uuid=getattr(entity, "uuid", None))
            return None

        uuid = entity.uuid
        entity_type = entity.entity_type
        logger.info("enqueue_attempt", uuid=uuid, entity_type=entity_type, op=op)

        ctx = self.eligibility.dispatch(EnqueueCandidateContext(entity=entity, op=op))
        if not ctx.eligible:
            logger.info("enqueue_ineligible", uuid=uuid, entity_type=entity_type, reason=ctx.reason)
            return None

        item: dict[str, Any] = {"type": entity_type, "uuid": uuid}
        if ctx.calculate_dependencies is False:
            item["calculate_dependencies"] = False
        queue_id = self.queue.create_item(item)
        self.tracker.queue(entity)
        self.tracker.set_queue_item_by_uuid(uuid, queue_id)
        logger.info("enqueued", uuid=uuid, entity_type=entity_type, queue_id=queue_id)

        if not self.settings.send_hub_updates:
            return queue_id
        if self.client is None:
            raise ClientNotConfiguredError()

        webhook = self.settings.webhook_uuid
        interest_list = build_interest_list([uuid], SyndicationStatus.QUEUED_TO_EXPORT)
        try:
            self.client.add_entities_to_interest_list_by_site_role(webhook, SiteRole.PUBLISHER.value, interest_list)
        except SyncError as exc:
            logger.error(
                "interest_list_add_failed",
                uuid=uuid,
                entity_type=entity_type,
                status=SyndicationStatus.QUEUED_TO_EXPORT.value,
                webhook=webhook,
                error=str(exc),
            )
        else:
            logger.info(
                "interest_list_added",
                uuid=uuid,
                entity_type=entity_type,
                status=SyndicationStatus.QUEUED_TO_EXPORT.value,
                webhook=webhook,
            )
        return queue_id


class ImportQueue:
    """Pushes import work items for UUIDs announced by a publisher."""

    def __init__(self, queue: WorkQueue, tracker: SubscriberTracker) -> None:
        self.queue = queue
        self.tracker = tracker

    def enqueue_uuids(self, uuids: Iterable[str]) -> int | None:
        """
        Queue one import item for every UUID that needs importing.

        Auto-update-disabled UUIDs and UUIDs with a live queue item are
        skipped. Returns the item id, or ``None`` if nothing was queued.
        """
        pending = []
        for uuid in uuids:
            if self.tracker.is_auto_update_disabled(uuid):
                logger.info("import_skipped_auto_update_disabled", uuid=uuid)
                continue
            if self.tracker.get_queue_id(uuid):
                logger.debug("import_skipped_already_queued", uuid=uuid)
                continue
            if uuid not in pending:
                pending.append(uuid)

        if not pending:
            return None

        queue_id = self.queue.create_item({"uuids": ", ".join(pending)})
        for uuid in pending:
            self.tracker.queue(uuid)
            self.tracker.set_queue_item_by_uuid(uuid, queue_id)
        logger.info("import_enqueued", uuids=pending, queue_id=queue_id)
        return queue_id
