"""Work queue, worker loop, producers and queue workers."""

from .actions import PublisherActions
from .enqueuer import (
    EnqueueCandidateContext,
    EntityEnqueuer,
    EntityTypeExclude,
    HasValidUuid,
    ImportQueue,
    IsAlreadyEnqueued,
    IsImportedEntity,
    default_eligibility_chain,
)
from .export_worker import ExportQueueWorker, PrunePublishContext, RemoveUnmodifiedEntities
from .import_worker import ImportQueueWorker
from .queue import ItemOutcome, QueueItem, WorkQueue
from .worker import QueueWorkerLoop, WorkerStats

__all__ = [
    "PublisherActions",
    "EnqueueCandidateContext",
    "EntityEnqueuer",
    "EntityTypeExclude",
    "HasValidUuid",
    "ImportQueue",
    "IsAlreadyEnqueued",
    "IsImportedEntity",
    "default_eligibility_chain",
    "ExportQueueWorker",
    "PrunePublishContext",
    "RemoveUnmodifiedEntities",
    "ImportQueueWorker",
    "ItemOutcome",
    "QueueItem",
    "WorkQueue",
    "QueueWorkerLoop",
    "WorkerStats",
]
