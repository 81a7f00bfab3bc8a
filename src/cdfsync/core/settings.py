"""
Centralized settings for cdf-sync.

Manifesto:
    One validated, cached settings object holds everything a site needs
    to take part in syndication: its own origin UUID, its webhook
    registration, queue tuning and the ingestion iteration bound. Values
    come from ``CDFSYNC_*`` environment variables or a ``.env`` file.

Examples:
    >>> from cdfsync.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.export_queue_name
    'cdf_export'

Tags:
    cdf-sync, configuration, settings, pydantic, caching

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_valid_uuid(value: str | None) -> bool:
    """True when ``value`` is a canonical UUID string."""
    if not value:
        return False
    try:
        uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        return False
    return True


class CdfSyncSettings(BaseSettings):
    """cdf-sync site configuration.

    All fields can be set via ``CDFSYNC_*`` environment variables (e.g.
    ``CDFSYNC_ORIGIN=...``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CDFSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Site registration ────────────────────────────────────────
    origin: str = Field(default="", description="UUID of this site (the origin of what it publishes)")
    client_name: str = Field(default="", description="Registered client name of this site")
    webhook_uuid: str = Field(default="", description="UUID of this site's webhook registration")
    webhook_url: str = Field(default="", description="Public URL of this site's webhook endpoint")
    send_hub_updates: bool = Field(
        default=True,
        description="Push interest-list and syndication status updates to the remote service",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: str = Field(default="data/cdfsync.db")

    # ── Export eligibility ───────────────────────────────────────
    excluded_entity_types: list[str] = Field(default_factory=list)

    # ── Queues ───────────────────────────────────────────────────
    export_queue_name: str = Field(default="cdf_export")
    import_queue_name: str = Field(default="cdf_import")
    queue_lease_time: int = Field(default=3600, description="Seconds a claimed item stays invisible")
    poll_interval: float = Field(default=5.0)
    batch_size: int = Field(default=50)

    # ── Transport ────────────────────────────────────────────────
    http_timeout: float = Field(default=10.0)

    # ── Ingestion ────────────────────────────────────────────────
    max_ingest_iterations: int = Field(
        default=0,
        description="Upper bound on ingestion loop passes; 0 derives it from the document size",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None)

    @field_validator("queue_lease_time", "batch_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("max_ingest_iterations")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be zero or greater")
        return value

    # ── Derived properties ───────────────────────────────────────

    @property
    def is_configured(self) -> bool:
        """The site has a registered origin and may take part in syndication."""
        return is_valid_uuid(self.origin)

    @property
    def has_webhook(self) -> bool:
        return is_valid_uuid(self.webhook_uuid)


_settings_cache: dict[str, CdfSyncSettings] = {}


def get_settings(*, _force_reload: bool = False) -> CdfSyncSettings:
    """Load, validate, and cache a :class:`CdfSyncSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = CdfSyncSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["CdfSyncSettings", "get_settings", "clear_settings_cache", "is_valid_uuid"]
