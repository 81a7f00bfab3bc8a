"""
Periodic interest list reconciliation.

Reads the local tracking tables and pushes every synced UUID the remote
interest list does not know about yet, in batches. Adding a UUID twice is
harmless upstream, so a partial run is simply repeated next time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cdfsync.core.errors import SyncError
from cdfsync.core.logging import get_logger
from cdfsync.tracking.models import PublisherStatus, SubscriberStatus

from .models import InterestReason, SiteRole, SyndicationStatus, build_interest_list

if TYPE_CHECKING:
    from cdfsync.core.protocols import RemoteClient
    from cdfsync.core.settings import CdfSyncSettings
    from cdfsync.tracking.base import BaseTracker

logger = get_logger(__name__)

PUBLISHER_SYNCED = (PublisherStatus.EXPORTED, PublisherStatus.CONFIRMED)
SUBSCRIBER_SYNCED = (SubscriberStatus.IMPORTED, SubscriberStatus.AUTO_UPDATE_DISABLED)


@dataclass
class InterestSyncResult:
    publisher: int = 0
    subscriber: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.publisher + self.subscriber


class InterestListSync:
    def __init__(
        self,
        client: RemoteClient,
        settings: CdfSyncSettings,
        publisher: BaseTracker | None = None,
        subscriber: BaseTracker | None = None,
        batch_size: int = 50,
    ) -> None:
        self.client = client
        self.settings = settings
        self.publisher = publisher
        self.subscriber = subscriber
        self.batch_size = max(1, batch_size)

    def sync_publisher(self) -> int:
        if self.publisher is None:
            return 0
        return self._sync(
            self.publisher,
            PUBLISHER_SYNCED,
            SiteRole.PUBLISHER,
            SyndicationStatus.EXPORT_SUCCESSFUL,
            InterestReason.EXPORT_SUCCESSFUL,
        )

    def sync_subscriber(self) -> int:
        if self.subscriber is None:
            return 0
        return self._sync(
            self.subscriber,
            SUBSCRIBER_SYNCED,
            SiteRole.SUBSCRIBER,
            SyndicationStatus.IMPORT_SUCCESSFUL,
            InterestReason.IMPORT_SUCCESSFUL,
        )

    def run(self) -> InterestSyncResult:
        result = InterestSyncResult()
        if not self.settings.webhook_uuid:
            result.errors.append("No webhook registered for this site.")
            logger.warning("interest_sync_skipped", reason="webhook not registered")
            return result
        result.publisher = self.sync_publisher()
        result.subscriber = self.sync_subscriber()
        logger.info("interest_sync_complete", publisher=result.publisher, subscriber=result.subscriber)
        return result

    def _sync(self, tracker, statuses, role: SiteRole, status: SyndicationStatus, reason: InterestReason) -> int:
        webhook = self.settings.webhook_uuid
        try:
            existing = self.client.get_interests_by_webhook_and_site_role(webhook, role.value)
        except SyncError as exc:
            logger.error("interest_list_fetch_failed", webhook=webhook, role=role.value, error=str(exc))
            return 0

        uuids = [record.entity_uuid for record in tracker.list_tracked_entities(statuses)]
        missing = [uuid for uuid in uuids if uuid not in existing]
        if not missing:
            logger.debug("interest_sync_nothing_to_do", role=role.value, tracked=len(uuids))
            return 0

        pushed = 0
        for start in range(0, len(missing), self.batch_size):
            batch = missing[start : start + self.batch_size]
            try:
                self.client.add_entities_to_interest_list_by_site_role(
                    webhook, role.value, build_interest_list(batch, status, reason)
                )
            except SyncError as exc:
                logger.error("interest_list_add_failed", webhook=webhook, role=role.value, uuids=batch, error=str(exc))
                continue
            pushed += len(batch)
        logger.info("interest_list_synced", webhook=webhook, role=role.value, added=pushed)
        return pushed
