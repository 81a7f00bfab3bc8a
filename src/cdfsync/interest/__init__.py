"""Interest lists, republish requests and inbound webhooks."""

from .models import (
    InterestEntry,
    InterestReason,
    SiteRole,
    SyndicationStatus,
    build_interest_list,
)
from .republish import RepublishRequester, build_republish_payload
from .sync import InterestListSync, InterestSyncResult
from .webhooks import (
    ConfirmExport,
    DeleteAssets,
    ImportUpdateAssets,
    ReExport,
    WebhookContext,
    WebhookDispatcher,
    WebhookResponse,
)

__all__ = [
    "InterestEntry",
    "InterestReason",
    "SiteRole",
    "SyndicationStatus",
    "build_interest_list",
    "RepublishRequester",
    "build_republish_payload",
    "InterestListSync",
    "InterestSyncResult",
    "ConfirmExport",
    "DeleteAssets",
    "ImportUpdateAssets",
    "ReExport",
    "WebhookContext",
    "WebhookDispatcher",
    "WebhookResponse",
]
