"""Interest list model: site roles, reasons, syndication statuses."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class SiteRole(str, Enum):
    PUBLISHER = "PUBLISHER"
    SUBSCRIBER = "SUBSCRIBER"


class InterestReason(str, Enum):
    EXPORT_SUCCESSFUL = "export-successful"
    IMPORT_SUCCESSFUL = "import-successful"
    MANUAL = "manual"


class SyndicationStatus(str, Enum):
    QUEUED_TO_EXPORT = "queued-to-export"
    EXPORT_SUCCESSFUL = "export-successful"
    EXPORT_FAILED = "export-failed"
    IMPORT_SUCCESSFUL = "import-successful"
    IMPORT_FAILED = "import-failed"


@dataclass(frozen=True)
class InterestEntry:
    """"This subscription wants updates about this UUID"."""

    webhook_uuid: str
    uuid: str
    site_role: SiteRole
    reason: str | None = None
    status: SyndicationStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "webhook_uuid": self.webhook_uuid,
            "uuid": self.uuid,
            "site_role": self.site_role.value,
            "reason": self.reason,
            "status": self.status.value if self.status else None,
        }


def _value(value: str | Enum | None) -> str | None:
    if isinstance(value, Enum):
        return value.value
    return value


def build_interest_list(
    uuids: Iterable[str],
    status: str | SyndicationStatus | None = None,
    reason: str | InterestReason | None = None,
    event_ref: str | None = None,
) -> dict[str, Any]:
    """
    Request body for the interest list endpoints.

    ``reason`` is either an ``InterestReason`` or the UUID of the entity
    that pulled these UUIDs in as dependencies.
    """
    interest_list: dict[str, Any] = {"uuids": list(uuids)}
    if status:
        interest_list["status"] = _value(status)
    if reason:
        interest_list["reason"] = _value(reason)
    if event_ref:
        interest_list["event_ref"] = event_ref
    return interest_list
