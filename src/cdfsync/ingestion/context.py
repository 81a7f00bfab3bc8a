"""Explicit import context threaded through every save made during ingestion."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ImportContext:
    """
    Tells the host how to treat a write.

    Attributes:
        syncing: The write comes from syndication, not from a user edit.
            Hosts use this to suppress re-enqueueing the entity for export.
        stub: The entity being saved is a placeholder.
        origin: UUID of the site that authored the content, when known.
    """

    syncing: bool = True
    stub: bool = False
    origin: str | None = None

    def for_stub(self) -> ImportContext:
        return replace(self, stub=True)

    def for_origin(self, origin: str | None) -> ImportContext:
        return replace(self, origin=origin)
