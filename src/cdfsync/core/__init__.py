"""cdf-sync core -- domain-agnostic primitives shared by every layer.

Architecture::

    errors.py       Structured error hierarchy (SyncError and friends)
    logging.py      structlog configuration, LogContext
    settings.py     pydantic-settings CdfSyncSettings + cache
    hashing.py      Deterministic content hashes
    timestamps.py   UTC helpers
    events.py       Ordered handler chains for pluggable stages
    protocols.py    Host / remote collaborator contracts
    schema.py       Tracking + queue DDL
    database.py     SQLite connection factory
"""

from .errors import (
    ClientNotConfiguredError,
    ErrorCategory,
    ErrorContext,
    ImportFailureError,
    ImportValidationError,
    InvalidDocumentError,
    MissingCapabilityError,
    SyncError,
    TransportError,
)
from .events import HandlerChain, HookContext
from .hashing import compute_hash, compute_payload_hash
from .logging import LogContext, configure_logging, get_logger

__all__ = [
    "ClientNotConfiguredError",
    "ErrorCategory",
    "ErrorContext",
    "ImportFailureError",
    "ImportValidationError",
    "InvalidDocumentError",
    "MissingCapabilityError",
    "SyncError",
    "TransportError",
    "HandlerChain",
    "HookContext",
    "compute_hash",
    "compute_payload_hash",
    "LogContext",
    "configure_logging",
    "get_logger",
]
