"""
Shared pytest fixtures and configuration for cdf-sync tests.

This module provides:
- An in-memory sqlite connection with every cdf-sync table
- Site settings for a configured publisher/subscriber
- Host and remote fakes wired into trackers, queues and the engine

Usage:
    Fixtures are auto-discovered by pytest. Use them as function
    arguments and pytest injects them.

    def test_something(engine, store):
        ...
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure cdfsync and the tests package are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from cdfsync.core.database import connect
from cdfsync.core.settings import CdfSyncSettings, clear_settings_cache
from cdfsync.execution.queue import WorkQueue
from cdfsync.ingestion.engine import IngestionEngine
from cdfsync.tracking.publisher import PublisherTracker
from cdfsync.tracking.subscriber import SubscriberTracker, TrackImportedEntity
from tests._support.fakes import (
    ORIGIN,
    WEBHOOK,
    FakeCapabilities,
    FakeHubClient,
    MemoryEntityStore,
)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def conn():
    """In-memory sqlite connection with the cdf-sync tables created."""
    connection = connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def settings() -> CdfSyncSettings:
    return CdfSyncSettings(
        _env_file=None,
        origin=ORIGIN,
        client_name="local-site",
        webhook_uuid=WEBHOOK,
        webhook_url="https://local.example.com/webhook",
    )


@pytest.fixture
def publisher_tracker(conn) -> PublisherTracker:
    return PublisherTracker(conn)


@pytest.fixture
def subscriber_tracker(conn) -> SubscriberTracker:
    return SubscriberTracker(conn)


@pytest.fixture
def export_queue(conn, settings) -> WorkQueue:
    return WorkQueue(conn, settings.export_queue_name)


@pytest.fixture
def import_work_queue(conn, settings) -> WorkQueue:
    return WorkQueue(conn, settings.import_queue_name)


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def store() -> MemoryEntityStore:
    return MemoryEntityStore()


@pytest.fixture
def capabilities() -> FakeCapabilities:
    return FakeCapabilities()


@pytest.fixture
def client() -> FakeHubClient:
    return FakeHubClient()


@pytest.fixture
def engine(store, capabilities) -> IngestionEngine:
    return IngestionEngine(store, capabilities)


@pytest.fixture
def tracked_engine(store, capabilities, subscriber_tracker) -> IngestionEngine:
    """Engine that records every imported entity in the subscriber tracker."""
    engine = IngestionEngine(store, capabilities)
    engine.hooks.entity_imported.register(TrackImportedEntity(subscriber_tracker), TrackImportedEntity.priority)
    return engine
