import json

import httpx
import pytest

from storefront.errors import AuthenticationError, GatewayError, TransportError, ValidationError
from storefront.models import AccountProvisionRequest, LoginArtifactKind, MagicLinkSource
from storefront.utils.identity_gateway import IdentityGateway

HOST = "auth.test"
REQUEST = AccountProvisionRequest(
    email="buyer@x.com",
    display_name="Ada Buyer",
    metadata={"full_name": "Ada Buyer", "plan": "Agency"},
)


@pytest.mark.asyncio
async def test_password_login_success(settings, providers, http_client):
    async with http_client() as http:
        session = await IdentityGateway(settings, http).password_login("buyer@x.com", "hunter22")

    assert session.access_token == "access_abc"
    assert session.artifact.kind is LoginArtifactKind.session_token
    (req,) = providers.to(HOST, "/auth/v1/token")
    assert req.url.params["grant_type"] == "password"
    assert req.headers["apikey"] == "anon_key"
    assert json.loads(req.content) == {"email": "buyer@x.com", "password": "hunter22"}


@pytest.mark.asyncio
async def test_password_login_hides_provider_message(settings, providers, http_client):
    providers.set("POST", HOST, "/auth/v1/token", (400, {"error_description": "Email not confirmed"}))

    async with http_client() as http:
        with pytest.raises(AuthenticationError) as exc:
            await IdentityGateway(settings, http).password_login("buyer@x.com", "wrong-pass")

    assert str(exc.value) == "Invalid email or password"
    assert "confirmed" not in str(exc.value)


@pytest.mark.asyncio
async def test_set_password_short_password_makes_no_call(settings, providers, http_client):
    async with http_client() as http:
        with pytest.raises(ValidationError):
            await IdentityGateway(settings, http).set_password("invite_tok", "short")

    assert providers.requests == []


@pytest.mark.asyncio
async def test_set_password_uses_invite_token_as_bearer(settings, providers, http_client):
    async with http_client() as http:
        await IdentityGateway(settings, http).set_password("invite_tok", "long-enough")

    (req,) = providers.to(HOST, "/auth/v1/user")
    assert req.method == "PUT"
    assert req.headers["Authorization"] == "Bearer invite_tok"
    assert "service_key" not in req.headers["Authorization"]
    assert json.loads(req.content) == {"password": "long-enough"}


@pytest.mark.asyncio
async def test_set_password_gateway_error(settings, providers, http_client):
    providers.set("PUT", HOST, "/auth/v1/user", (401, {"msg": "token expired"}))

    async with http_client() as http:
        with pytest.raises(GatewayError) as exc:
            await IdentityGateway(settings, http).set_password("invite_tok", "long-enough")

    assert exc.value.status_code == 401
    assert exc.value.message == "token expired"


@pytest.mark.asyncio
async def test_unparseable_body_is_gateway_error(settings, providers, http_client):
    providers.set("PUT", HOST, "/auth/v1/user", (200, "<html>oops</html>"))

    async with http_client() as http:
        with pytest.raises(GatewayError):
            await IdentityGateway(settings, http).set_password("invite_tok", "long-enough")


@pytest.mark.asyncio
async def test_upsert_creates_user_then_links(settings, providers, http_client):
    async with http_client() as http:
        result = await IdentityGateway(settings, http).upsert_account_and_generate_magic_link(REQUEST)

    assert result.source is MagicLinkSource.obtained
    assert result.account_created is True
    assert result.link.startswith("https://auth.test/auth/v1/verify")

    (create,) = providers.to(HOST, "/auth/v1/admin/users")
    assert create.headers["Authorization"] == "Bearer service_key"
    body = json.loads(create.content)
    assert body["email_confirm"] is True
    assert body["user_metadata"]["plan"] == "Agency"

    (link,) = providers.to(HOST, "/auth/v1/admin/generate_link")
    assert json.loads(link.content) == {
        "type": "magiclink",
        "email": "buyer@x.com",
        "redirect_to": "https://app.shop.test/dashboard",
    }


@pytest.mark.asyncio
async def test_upsert_existing_account_still_links(settings, providers, http_client):
    providers.set("POST", HOST, "/auth/v1/admin/users", (422, {"msg": "User already registered"}))

    async with http_client() as http:
        result = await IdentityGateway(settings, http).upsert_account_and_generate_magic_link(REQUEST)

    assert result.source is MagicLinkSource.obtained
    assert result.account_created is False
    assert len(providers.to(HOST, "/auth/v1/admin/generate_link")) == 1


@pytest.mark.asyncio
async def test_upsert_reads_nested_action_link(settings, providers, http_client):
    providers.set(
        "POST", HOST, "/auth/v1/admin/generate_link",
        (200, {"properties": {"action_link": "https://auth.test/nested"}}),
    )

    async with http_client() as http:
        result = await IdentityGateway(settings, http).upsert_account_and_generate_magic_link(REQUEST)

    assert result.link == "https://auth.test/nested"


@pytest.mark.asyncio
async def test_upsert_falls_back_when_everything_fails(settings, providers, http_client):
    providers.set("POST", HOST, "/auth/v1/admin/users", (500, {"message": "db down"}))
    providers.set("POST", HOST, "/auth/v1/admin/generate_link", (500, {"message": "db down"}))

    async with http_client() as http:
        result = await IdentityGateway(settings, http).upsert_account_and_generate_magic_link(REQUEST)

    assert result.is_fallback
    assert result.link == "https://app.shop.test/dashboard"
    assert result.reason == "db down"


@pytest.mark.asyncio
async def test_upsert_falls_back_on_network_failure(settings, providers, http_client):
    boom = httpx.ConnectError("connection refused")
    providers.set("POST", HOST, "/auth/v1/admin/users", boom)
    providers.set("POST", HOST, "/auth/v1/admin/generate_link", boom)

    async with http_client() as http:
        result = await IdentityGateway(settings, http).upsert_account_and_generate_magic_link(REQUEST)

    assert result.is_fallback
    assert result.link


@pytest.mark.asyncio
async def test_upsert_falls_back_without_action_link(settings, providers, http_client):
    providers.set("POST", HOST, "/auth/v1/admin/generate_link", (200, {"user": {}}))

    async with http_client() as http:
        result = await IdentityGateway(settings, http).upsert_account_and_generate_magic_link(REQUEST)

    assert result.is_fallback
    assert result.link == "https://app.shop.test/dashboard"


@pytest.mark.asyncio
async def test_transport_error_is_upstream_error(settings, providers, http_client):
    providers.set("PUT", HOST, "/auth/v1/user", httpx.ReadTimeout("slow"))

    async with http_client() as http:
        with pytest.raises(TransportError) as exc:
            await IdentityGateway(settings, http).set_password("invite_tok", "long-enough")

    assert exc.value.status_code is None
