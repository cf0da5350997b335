import json

import httpx
import pytest

from storefront.errors import NotificationError, TransportError, UpstreamError
from storefront.utils.notifications import Notifier


@pytest.mark.asyncio
async def test_send_email_returns_message_id(settings, providers, http_client):
    async with http_client() as http:
        message_id = await Notifier(settings, http).send_email(
            "Shop <hello@shop.test>", ["buyer@x.com"], "Hi", "<p>Hi</p>"
        )

    assert message_id == "msg_1"
    (req,) = providers.to("email.test", "/emails")
    assert req.headers["Authorization"] == "Bearer re_test"
    assert json.loads(req.content) == {
        "from": "Shop <hello@shop.test>",
        "to": ["buyer@x.com"],
        "subject": "Hi",
        "html": "<p>Hi</p>",
    }


@pytest.mark.asyncio
async def test_send_email_non_2xx(settings, providers, http_client):
    providers.set("POST", "email.test", "/emails", (422, {"message": "invalid from"}))

    async with http_client() as http:
        with pytest.raises(NotificationError) as exc:
            await Notifier(settings, http).send_email("x", ["buyer@x.com"], "s", "b")

    assert exc.value.status_code == 422
    assert "invalid from" in exc.value.body


@pytest.mark.asyncio
async def test_send_email_network_failure(settings, providers, http_client):
    providers.set("POST", "email.test", "/emails", httpx.ConnectError("down"))

    async with http_client() as http:
        with pytest.raises(TransportError) as exc:
            await Notifier(settings, http).send_email("x", ["buyer@x.com"], "s", "b")

    assert isinstance(exc.value, UpstreamError)


@pytest.mark.asyncio
async def test_relay_posts_payload(settings, providers, http_client):
    async with http_client() as http:
        await Notifier(settings, http).send_outbound_webhook(
            "https://relay.test/hook", {"eventType": "purchase_completed"}
        )

    (req,) = providers.to("relay.test", "/hook")
    assert json.loads(req.content) == {"eventType": "purchase_completed"}


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [(500, {"error": "boom"}), httpx.ConnectError("down")])
async def test_relay_never_raises(settings, providers, http_client, reply):
    providers.set("POST", "relay.test", "/hook", reply)

    async with http_client() as http:
        result = await Notifier(settings, http).send_outbound_webhook("https://relay.test/hook", {})

    assert result is None
    assert len(providers.to("relay.test")) == 1


@pytest.mark.asyncio
async def test_relay_without_url_is_a_noop(settings, providers, http_client):
    async with http_client() as http:
        await Notifier(settings, http).send_outbound_webhook(None, {"eventType": "x"})

    assert providers.requests == []
