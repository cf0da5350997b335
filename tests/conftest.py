"""Pytest fixtures for the FastAPI integration and unit tests.

Every outbound provider (Supabase Auth, Resend, the relay) is replaced by an
``httpx.MockTransport`` routed through :class:`FakeProviders`, so the whole
request pipeline runs without network round-trips.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
from starlette.testclient import TestClient

# ---------------------------------------------------------------------------
# Runtime env for the module-level app in storefront.main
# ---------------------------------------------------------------------------

os.environ.setdefault("SUPABASE_URL", "https://auth.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon_key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service_key")
os.environ.setdefault("RESEND_API_KEY", "re_test")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("FROM_EMAIL", "hello@shop.test")
os.environ.setdefault("NOTIFY_EMAIL", "owner@shop.test")

# Ensure project root on PYTHONPATH so `import storefront` works when pytest is run
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storefront.main import create_app, limiter  # noqa: E402
from storefront.settings import Settings  # noqa: E402

WEBHOOK_SECRET = "whsec_test"
MAGIC_LINK = "https://auth.test/auth/v1/verify?token=magic123&type=magiclink"

Reply = Union[Tuple[int, Any], Exception, Callable[[httpx.Request], httpx.Response]]


class FakeProviders:
    """Records outbound requests and answers them from a routing table."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str, str], Reply] = {
            ("POST", "auth.test", "/auth/v1/admin/users"): (200, {"id": "user_1"}),
            ("POST", "auth.test", "/auth/v1/admin/generate_link"): (200, {"action_link": MAGIC_LINK}),
            ("POST", "auth.test", "/auth/v1/token"): (
                200,
                {
                    "access_token": "access_abc",
                    "user": {"id": "user_1", "email": "buyer@x.com", "user_metadata": {"plan": "Agency"}},
                },
            ),
            ("PUT", "auth.test", "/auth/v1/user"): (200, {"id": "user_1"}),
            ("POST", "email.test", "/emails"): (200, {"id": "msg_1"}),
            ("POST", "relay.test", "/hook"): (200, {"ok": True}),
        }

    def set(self, method: str, host: str, path: str, reply: Reply) -> None:
        self.routes[(method, host, path)] = reply

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.routes.get((request.method, request.url.host, request.url.path), (404, {"message": "not found"}))
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        status_code, body = reply
        if isinstance(body, (str, bytes)):
            return httpx.Response(status_code, content=body)
        return httpx.Response(status_code, json=body)

    def to(self, host: str, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.host == host and (path is None or r.url.path == path)
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        supabase_url="https://auth.test",
        supabase_anon_key="anon_key",
        supabase_service_key="service_key",
        resend_api_key="re_test",
        resend_api_url="https://email.test",
        from_email="hello@shop.test",
        from_name="Apps on Purpose",
        notify_email="owner@shop.test",
        support_email="support@shop.test",
        stripe_webhook_secret=WEBHOOK_SECRET,
        billing_portal_url="https://billing.test/portal",
        relay_webhook_url="https://relay.test/hook",
        site_url="https://app.shop.test",
        app_env="test",
    )


@pytest.fixture()
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture()
def make_client(providers: FakeProviders) -> Callable[[Settings], TestClient]:
    def _make(settings: Settings) -> TestClient:
        return TestClient(create_app(settings, transport=providers.transport))

    return _make


@pytest.fixture()
def api_client(make_client, settings: Settings) -> TestClient:
    return make_client(settings)


@pytest.fixture()
def http_client(providers: FakeProviders):
    """Factory for an ``httpx.AsyncClient`` wired to the fake providers."""

    def _make() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=providers.transport)

    return _make
