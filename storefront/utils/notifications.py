"""Outbound notifications: transactional email (Resend) and the automation relay."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

import httpx

from storefront.errors import NotificationError, TransportError
from storefront.settings import Settings
from storefront.utils.logger import logger


class Notifier:
    """Sends email through the provider's ``/emails`` endpoint and fires relay webhooks."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    async def send_email(
        self,
        sender: str,
        to: Sequence[str],
        subject: str,
        html_body: str,
    ) -> str:
        """Send one message and return the provider's message id.

        Raises :class:`NotificationError` on a non-2xx answer and
        :class:`TransportError` when the provider cannot be reached.
        """
        try:
            resp = await self._http.post(
                f"{self._settings.resend_api_url}/emails",
                headers={"Authorization": f"Bearer {self._settings.resend_api_key}"},
                json={"from": sender, "to": list(to), "subject": subject, "html": html_body},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError("email", str(exc) or type(exc).__name__) from exc

        if not 200 <= resp.status_code < 300:
            raise NotificationError(resp.status_code, resp.text)

        try:
            body = resp.json()
        except ValueError:
            body = {}
        message_id = str(body.get("id", "")) if isinstance(body, dict) else ""
        logger.info("notify.email_sent", extra={"to": list(to), "message_id": message_id})
        return message_id

    async def send_outbound_webhook(self, url: Optional[str], payload: Mapping[str, Any]) -> None:
        """POST ``payload`` to ``url``. Never raises."""
        if not url:
            return
        try:
            resp = await self._http.post(url, json=dict(payload))
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("notify.relay_unreachable", extra={"error": str(exc) or type(exc).__name__})
            return

        if resp.status_code >= 300:
            logger.warning("notify.relay_rejected", extra={"status_code": resp.status_code})
        else:
            logger.info("notify.relay_sent", extra={"event": payload.get("eventType")})
