"""
Structured error types for cdf-sync.

Every failure the syndication core can produce is a ``SyncError``
subclass carrying a category, a retry hint and structured context, so the
queue workers can decide between *retry*, *drop* and *abort* without
string matching on messages.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure mode of the pipeline
    - **Explicit Retry Semantics:** Each error knows if the queue should retry it
    - **Rich Context:** Errors carry UUIDs, URLs and codes for logging
    - **Error Chaining:** Original exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                          SyncError                               │
        │          (category, retryable, context, cause)                   │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  CdfError              ImportError family     ConfigError        │
        │  (VALIDATION)          (IMPORT)               (CONFIG)           │
        │       │                     │                      │             │
        │  InvalidDocumentError  ImportValidationError  MissingCapability  │
        │                        ImportFailureError     ClientNotConfigured│
        │                                                                  │
        │  TransportError        TrackingError                             │
        │  (NETWORK, retryable)  (TRACKING)                                │
        │                             │                                    │
        │                        EntityLoadError                           │
        │                        InvalidTransitionError                    │
        └─────────────────────────────────────────────────────────────────┘

Propagation:
    - MissingCapabilityError / InvalidDocumentError abort an ingestion
      call before any entity is written.
    - ImportValidationError and ImportFailureError bubble to the import
      worker, which releases the work item for a later retry.
    - EntityLoadError and TransportError are logged per item and never
      abort the surrounding batch.

Tags:
    error-handling, exception-hierarchy, retry-logic, cdf-sync

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        NETWORK: Remote transport failures (timeouts, non-2xx)
        VALIDATION: Malformed CDF or identifiers
        IMPORT: Dependency closure or ingestion could not complete
        CONFIG: Missing capability, unconfigured client
        TRACKING: Tracking table inconsistencies
        INTERNAL: Bugs, unexpected state
    """

    NETWORK = "NETWORK"
    VALIDATION = "VALIDATION"
    IMPORT = "IMPORT"
    CONFIG = "CONFIG"
    TRACKING = "TRACKING"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured context attached to a ``SyncError``.

    Attributes:
        uuid: Entity UUID the error relates to
        entity_type: Host entity type
        origin: Origin site UUID
        queue: Work queue name
        url: URL that was being accessed
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    uuid: str | None = None
    entity_type: str | None = None
    origin: str | None = None
    queue: str | None = None
    url: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["uuid", "entity_type", "origin", "queue", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SyncError(Exception):
    """
    Base class for all cdf-sync errors.

    Examples:
        >>> err = SyncError("boom").with_context(uuid="abc")
        >>> err.context.uuid
        'abc'
        >>> err.to_dict()["error_type"]
        'SyncError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SyncError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CDF ERRORS
# =============================================================================


class CdfError(SyncError):
    """A CDF document or object is structurally unusable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class InvalidDocumentError(CdfError):
    """The document carries no entities and cannot be ingested."""

    MISSING_ENTITIES_ENTRY = 1

    def __init__(self, message: str = "Missing CDF Entities entry. Not a valid CDF.", *, code: int = 1, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.code = code


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(SyncError):
    """Host or site configuration prevents the operation. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingCapabilityError(ConfigError):
    """A module/capability required by the document cannot be satisfied by the host."""

    def __init__(self, capability: str, message: str | None = None, **kwargs: Any):
        super().__init__(
            message or f"The {capability} capability is not available on this site.",
            **kwargs,
        )
        self.capability = capability

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["capability"] = self.capability
        return result


class ClientNotConfiguredError(ConfigError):
    """The remote client is missing or its connection settings are empty."""

    def __init__(self, message: str | None = None, **kwargs: Any):
        super().__init__(
            message
            or "Client is not properly configured. Please check the site registration credentials.",
            **kwargs,
        )


# =============================================================================
# IMPORT ERRORS
# =============================================================================


class ImportValidationError(SyncError):
    """
    The dependency closure for a set of UUIDs could not be completed.

    ``uuids`` holds the UUIDs still missing (or invalid). ``triggering_uuids``
    maps each UUID that could not be imported to a human readable reason.
    The queue is expected to retry: a republish request has usually been
    sent as a side effect, which should make the retry succeed.
    """

    default_category = ErrorCategory.IMPORT
    default_retryable = True

    MISSING_ENTITIES = 100
    INVALID_UUID = 101

    def __init__(
        self,
        message: str,
        *,
        code: int = MISSING_ENTITIES,
        uuids: list[str] | None = None,
        triggering_uuids: dict[str, str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.code = code
        self.uuids = list(uuids or [])
        self.triggering_uuids = dict(triggering_uuids or {})

    def is_entities_missing(self) -> bool:
        """True when the failure is caused by entities absent upstream."""
        return self.code == self.MISSING_ENTITIES

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["code"] = self.code
        result["uuids"] = self.uuids
        return result


class ImportFailureError(SyncError):
    """
    The ingestion loop stopped making progress.

    Raised when a full pass over the document materializes nothing while
    objects remain unprocessed and no recovery handler stepped in, or when
    the loop exceeds its iteration bound (``stalled=True``).

    Only a stalled import is retryable; a pass with no progress means the
    document cannot be resolved as sent.
    """

    default_category = ErrorCategory.IMPORT

    def __init__(
        self,
        message: str | None = None,
        *,
        unprocessed: list[str] | None = None,
        stalled: bool = False,
        **kwargs: Any,
    ):
        self.unprocessed = list(unprocessed or [])
        self.stalled = stalled
        kwargs.setdefault("retryable", stalled)
        super().__init__(
            message
            or "Import failed: unable to resolve entities {}.".format(", ".join(self.unprocessed)),
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["unprocessed"] = self.unprocessed
        result["stalled"] = self.stalled
        return result


# =============================================================================
# TRANSPORT ERRORS
# =============================================================================


class TransportError(SyncError):
    """A remote call failed (timeout, connection error or non-2xx status)."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.context.url = url
        self.context.http_status = status_code

    @property
    def status_code(self) -> int | None:
        return self.context.http_status


# =============================================================================
# TRACKING ERRORS
# =============================================================================


class TrackingError(SyncError):
    """Tracking tables are inconsistent with the host or the queue."""

    default_category = ErrorCategory.TRACKING
    default_retryable = False


class EntityLoadError(TrackingError):
    """A tracked entity could not be loaded from the host."""

    def __init__(self, entity_type: str, uuid: str, message: str | None = None, **kwargs: Any):
        super().__init__(
            message or f"Entity ({entity_type}, {uuid}) exists in the tracking table but could not be loaded.",
            **kwargs,
        )
        self.context.entity_type = entity_type
        self.context.uuid = uuid


class InvalidTransitionError(TrackingError):
    """A tracker was asked to store a status that does not belong to it."""

    def __init__(self, status: str, allowed: list[str]) -> None:
        self.status = status
        self.allowed = allowed
        super().__init__(f"Invalid tracking status '{status}'. Valid statuses: {allowed}")


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SyncError",
    "CdfError",
    "InvalidDocumentError",
    "ConfigError",
    "MissingCapabilityError",
    "ClientNotConfiguredError",
    "ImportValidationError",
    "ImportFailureError",
    "TransportError",
    "TrackingError",
    "EntityLoadError",
    "InvalidTransitionError",
]
