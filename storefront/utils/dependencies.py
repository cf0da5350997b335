"""FastAPI dependency providers for settings and outbound clients."""

from __future__ import annotations

from typing import AsyncGenerator

import httpx
from fastapi import Depends, Request

from storefront.settings import Settings
from storefront.utils.event_router import EventRouter
from storefront.utils.identity_gateway import IdentityGateway
from storefront.utils.notifications import Notifier


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_http_client(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Yield a request-scoped ``httpx.AsyncClient``.

    Serverless runtimes may hand each invocation a fresh event loop, so the
    client is opened and closed per request rather than cached per process.
    ``app.state.http_transport`` lets tests swap the network for
    ``httpx.MockTransport``.
    """
    async with httpx.AsyncClient(
        timeout=settings.http_timeout_seconds,
        transport=request.app.state.http_transport,
    ) as client:
        yield client


def get_identity_gateway(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> IdentityGateway:
    return IdentityGateway(settings, http)


def get_notifier(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> Notifier:
    return Notifier(settings, http)


def get_event_router(
    settings: Settings = Depends(get_settings),
    identity: IdentityGateway = Depends(get_identity_gateway),
    notifier: Notifier = Depends(get_notifier),
) -> EventRouter:
    return EventRouter(settings, identity, notifier)
