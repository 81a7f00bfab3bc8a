"""
Republish requests: ask an origin site to push a fresh snapshot.

Sent by a subscriber whose dependency closure could not be completed
because dependencies vanished upstream. One HTTP POST per entity goes to
the webhook URL registered for the origin's client::

    {
      "status": "successful",
      "uuid": "<entity uuid>",
      "crud": "republish",
      "initiator": "<this site's origin uuid>",
      "cdf": {"uuid": "...", "type": "node", "dependencies": ["...", ...]}
    }

This is a best-effort nudge: delivery failures are logged with the
target URL and never retried here, and they never abort the batch.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import httpx

from cdfsync.core.errors import TransportError
from cdfsync.core.logging import get_logger

if TYPE_CHECKING:
    from cdfsync.core.protocols import RemoteClient
    from cdfsync.core.settings import CdfSyncSettings

logger = get_logger(__name__)


def build_republish_payload(initiator: str, uuid: str, entity_type: str | None, dependencies: Iterable[str]) -> dict[str, Any]:
    return {
        "status": "successful",
        "uuid": uuid,
        "crud": "republish",
        "initiator": initiator,
        "cdf": {"uuid": uuid, "type": entity_type, "dependencies": list(dependencies)},
    }


class RepublishRequester:
    """
    Delivers republish requests to origin sites.

    Args:
        client: Remote service, used to resolve an origin's webhook URL
        initiator: This site's origin UUID
        http: httpx client (inject one with a ``MockTransport`` in tests)
        timeout: Request timeout in seconds when ``http`` is not given
    """

    def __init__(
        self,
        client: RemoteClient,
        initiator: str,
        http: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.client = client
        self.initiator = initiator
        self.http = http or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(
        cls, client: RemoteClient, settings: CdfSyncSettings, http: httpx.Client | None = None
    ) -> RepublishRequester:
        return cls(client, settings.origin, http=http, timeout=settings.http_timeout)

    def get_webhook_url_from_client_origin(self, origin: str) -> str:
        """Webhook URL registered by the client whose UUID is ``origin``, or ``""``."""
        publisher = self.client.get_client_by_uuid(origin)
        if not publisher or not publisher.get("uuid") or not publisher.get("name"):
            logger.error("publisher_not_registered", origin=origin)
            return ""
        for webhook in self.client.get_webhooks():
            if webhook.get("client_name") == publisher["name"]:
                return webhook.get("url") or ""
        return ""

    def request_to_republish_entities(self, entities_by_origin: dict[str, list[dict[str, Any]]]) -> dict[str, bool]:
        """
        Send one request per entity, grouped by origin.

        ``entities_by_origin`` maps an origin UUID to entries of the form
        ``{"uuid": ..., "type": ..., "dependencies": [...]}``.

        Returns:
            entity UUID → whether the origin acknowledged with HTTP 200
        """
        delivered: dict[str, bool] = {}
        for origin, entities in entities_by_origin.items():
            webhook_url = self.get_webhook_url_from_client_origin(origin)
            if not webhook_url:
                logger.error("republish_webhook_missing", origin=origin)
                for entity in entities:
                    delivered[entity["uuid"]] = False
                continue

            for entity in entities:
                payload = build_republish_payload(
                    self.initiator, entity["uuid"], entity.get("type"), entity.get("dependencies", [])
                )
                delivered[entity["uuid"]] = self._post(webhook_url, payload)
        return delivered

    def _post(self, url: str, payload: dict[str, Any]) -> bool:
        try:
            response = self.http.post(url, json=payload)
        except httpx.HTTPError as exc:
            error = TransportError(str(exc), url=url, cause=exc)
            logger.error("republish_request_error", uuid=payload["uuid"], **error.to_dict())
            return False

        if response.status_code == 200:
            logger.info("republish_requested", url=url, uuid=payload["uuid"], message=response.text)
            return True
        error = TransportError(response.text, url=url, status_code=response.status_code)
        logger.error("republish_request_failed", uuid=payload["uuid"], **error.to_dict())
        return False
