"""Supabase Auth (GoTrue) REST client.

Only the four endpoints the storefront needs are wrapped:

* ``POST /auth/v1/token?grant_type=password``   – password login (public key)
* ``PUT  /auth/v1/user``                        – self-update with invite token
* ``POST /auth/v1/admin/users``                 – create pre-confirmed user
* ``POST /auth/v1/admin/generate_link``         – one-time magic link

Every call returns the decoded JSON body or raises :class:`GatewayError`
(status >= 400 / unreadable body) or :class:`TransportError` (network).
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

import httpx

from storefront.errors import (
    AuthenticationError,
    GatewayError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from storefront.models import (
    AccountProvisionRequest,
    LoginArtifact,
    LoginArtifactKind,
    MagicLinkResult,
    MagicLinkSource,
    PasswordSession,
)
from storefront.settings import Settings
from storefront.utils.logger import logger

MIN_PASSWORD_LENGTH = 8
MAGIC_LINK_TTL = timedelta(hours=24)


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("message", "error_description", "msg", "error"):
            if body.get(key):
                return str(body[key])
    return str(body)


class IdentityGateway:
    """Thin typed wrapper over the identity provider's REST API."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        api_key: Optional[str],
        bearer: Optional[str] = None,
        json: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        if not self._settings.supabase_url:
            raise GatewayError(None, "identity gateway not configured")

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
        token = bearer or api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = await self._http.request(
                method,
                f"{self._settings.supabase_url}{path}",
                headers=headers,
                json=dict(json) if json is not None else None,
                params=params,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError("identity", str(exc) or type(exc).__name__) from exc

        try:
            body = resp.json()
        except ValueError:
            raise GatewayError(resp.status_code, "Invalid response from auth server") from None

        if resp.status_code >= 400:
            raise GatewayError(resp.status_code, _error_message(body))
        return body if isinstance(body, dict) else {"data": body}

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def password_login(self, email: str, password: str) -> PasswordSession:
        """Exchange email + password for a session.

        Any upstream failure becomes a generic :class:`AuthenticationError`;
        the provider's message is only logged.
        """
        try:
            body = await self._request(
                "POST",
                "/auth/v1/token",
                api_key=self._settings.supabase_anon_key,
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except UpstreamError as exc:
            logger.warning(
                "identity.login_failed",
                extra={"status_code": exc.status_code, "error": exc.message},
            )
            raise AuthenticationError() from exc

        access_token = body.get("access_token")
        if not access_token:
            logger.warning("identity.login_missing_token")
            raise AuthenticationError()
        return PasswordSession(access_token=access_token, user=body.get("user") or {})

    async def set_password(self, invite_token: str, new_password: str) -> None:
        """Set the password of the account the invite token belongs to."""
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        await self._request(
            "PUT",
            "/auth/v1/user",
            api_key=self._settings.supabase_anon_key or self._settings.supabase_service_key,
            bearer=invite_token,
            json={"password": new_password},
        )

    async def create_user(self, request: AccountProvisionRequest) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/auth/v1/admin/users",
            api_key=self._settings.supabase_service_key,
            json={
                "email": request.email,
                "email_confirm": True,
                "user_metadata": dict(request.metadata),
            },
        )

    async def generate_magic_link(self, email: str, redirect_to: str) -> Optional[str]:
        body = await self._request(
            "POST",
            "/auth/v1/admin/generate_link",
            api_key=self._settings.supabase_service_key,
            json={"type": "magiclink", "email": email, "redirect_to": redirect_to},
        )
        # Older GoTrue returns the link at the top level, newer under ``properties``.
        properties = body.get("properties") if isinstance(body.get("properties"), dict) else {}
        return body.get("action_link") or properties.get("action_link")

    async def upsert_account_and_generate_magic_link(
        self, request: AccountProvisionRequest
    ) -> MagicLinkResult:
        """Create the account if needed, then mint a magic link.

        Never raises. An existing account is the normal case for repeat
        buyers, so a failed create is only logged; a failed link degrades to
        the dashboard URL.
        """
        fallback_url = self._settings.dashboard_url
        account_created = False

        try:
            await self.create_user(request)
            account_created = True
            logger.info("identity.user_created", extra={"email": request.email})
        except UpstreamError as exc:
            logger.info(
                "identity.create_user_failed",
                extra={"email": request.email, "status_code": exc.status_code, "error": exc.message},
            )

        reason: Optional[str] = None
        try:
            link = await self.generate_magic_link(request.email, redirect_to=fallback_url)
        except UpstreamError as exc:
            link = None
            reason = exc.message
            logger.error(
                "identity.magic_link_failed",
                extra={"email": request.email, "status_code": exc.status_code, "error": exc.message},
            )

        if link:
            logger.info("identity.magic_link_generated", extra={"email": request.email})
            return MagicLinkResult(
                source=MagicLinkSource.obtained,
                artifact=LoginArtifact(LoginArtifactKind.magic_link, link, MAGIC_LINK_TTL),
                account_created=account_created,
            )

        return fallback_link(fallback_url, reason or "no action_link in response", account_created)


def fallback_link(url: str, reason: str, account_created: bool = False) -> MagicLinkResult:
    return MagicLinkResult(
        source=MagicLinkSource.fallback,
        artifact=LoginArtifact(LoginArtifactKind.magic_link, url),
        account_created=account_created,
        reason=reason,
    )
