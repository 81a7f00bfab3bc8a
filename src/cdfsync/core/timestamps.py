"""UTC timestamp helpers (stdlib-only)."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Format a datetime as ISO-8601, passing ``None`` through."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse an ISO-8601 string, passing empty values through as ``None``."""
    if not s:
        return None
    return datetime.fromisoformat(s)
