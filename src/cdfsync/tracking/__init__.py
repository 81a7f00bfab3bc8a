"""Durable per-UUID export and import tracking."""

from .base import BaseTracker
from .models import PublisherStatus, SubscriberStatus, TrackingRecord
from .publisher import PublisherTracker
from .subscriber import SubscriberTracker, TrackImportedEntity

__all__ = [
    "BaseTracker",
    "PublisherStatus",
    "SubscriberStatus",
    "TrackingRecord",
    "PublisherTracker",
    "SubscriberTracker",
    "TrackImportedEntity",
]
