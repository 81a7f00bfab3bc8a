"""Tests for RepublishRequester."""

import json

import httpx
import pytest

from cdfsync.interest.republish import RepublishRequester, build_republish_payload
from tests._support import assert_dict_subset
from tests._support.fakes import ORIGIN, REMOTE_ORIGIN, uid

PUBLISHER_URL = "https://publisher.example.com/webhook"


def _requester(client, handler):
    return RepublishRequester(client, ORIGIN, http=httpx.Client(transport=httpx.MockTransport(handler)))


@pytest.fixture
def registered(client):
    client.register_client(REMOTE_ORIGIN, "publisher-site", PUBLISHER_URL)
    return client


ENTITIES = {REMOTE_ORIGIN: [{"uuid": uid(1), "type": "node", "dependencies": [uid(2)]}]}


class TestWebhookLookup:
    def test_url_from_registered_client(self, registered):
        requester = RepublishRequester(registered, ORIGIN)
        assert requester.get_webhook_url_from_client_origin(REMOTE_ORIGIN) == PUBLISHER_URL

    def test_unknown_origin(self, client):
        assert RepublishRequester(client, ORIGIN).get_webhook_url_from_client_origin(REMOTE_ORIGIN) == ""

    def test_from_settings(self, client, settings):
        requester = RepublishRequester.from_settings(client, settings.model_copy(update={"http_timeout": 2.5}))
        assert requester.initiator == ORIGIN
        assert requester.http.timeout == httpx.Timeout(2.5)


class TestRequestToRepublish:
    def test_posts_one_request_per_entity(self, registered):
        sent = []

        def handler(request):
            sent.append(json.loads(request.content))
            return httpx.Response(200, text="ok")

        entities = {REMOTE_ORIGIN: [*ENTITIES[REMOTE_ORIGIN], {"uuid": uid(3), "type": "node"}]}
        delivered = _requester(registered, handler).request_to_republish_entities(entities)

        assert delivered == {uid(1): True, uid(3): True}
        assert sent[0] == build_republish_payload(ORIGIN, uid(1), "node", [uid(2)])
        assert_dict_subset(sent[1], {"uuid": uid(3), "crud": "republish", "cdf": {"dependencies": []}})

    def test_non_200_is_reported(self, registered):
        requester = _requester(registered, lambda request: httpx.Response(500, text="boom"))
        assert requester.request_to_republish_entities(ENTITIES) == {uid(1): False}

    def test_transport_error_does_not_raise(self, registered):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert _requester(registered, handler).request_to_republish_entities(ENTITIES) == {uid(1): False}

    def test_missing_webhook_skips_origin(self, client):
        sent = []
        requester = _requester(client, lambda request: sent.append(request) or httpx.Response(200))
        assert requester.request_to_republish_entities(ENTITIES) == {uid(1): False}
        assert sent == []


class TestPayload:
    def test_shape(self):
        assert build_republish_payload(ORIGIN, uid(1), "node", (uid(2),)) == {
            "status": "successful",
            "uuid": uid(1),
            "crud": "republish",
            "initiator": ORIGIN,
            "cdf": {"uuid": uid(1), "type": "node", "dependencies": [uid(2)]},
        }
