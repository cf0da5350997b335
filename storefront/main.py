"""Entry-point for the serverless platform → FastAPI ASGI app.

This module constructs the FastAPI instance, wires global middleware,
registers the route groups, and exposes the `app` variable the platform
imports.
"""

from __future__ import annotations

import logging
import os
import traceback
from contextvars import ContextVar
from time import perf_counter
from typing import Awaitable, Callable, Dict, Optional

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from storefront import __version__
from storefront.settings import Settings
from storefront.utils.logger import configure_logging, logger

# Rate limiter (IP-based by default)
limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach request-level context vars for structured logging."""

    _request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
        start = perf_counter()
        request_id = request.headers.get("X-Request-Id", os.urandom(4).hex())
        token = self._request_id_ctx.set(request_id)
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            logger.info(
                "request.complete",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": round((perf_counter() - start) * 1000, 2),
                    "request_id": request_id,
                },
            )
            self._request_id_ctx.reset(token)
        return response


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the ASGI app.

    ``settings`` defaults to :meth:`Settings.from_env`; ``transport`` replaces
    httpx's network transport for every outbound call (tests).
    """
    configure_logging()
    settings = (settings or Settings.from_env()).validate()
    if settings.allow_unsigned_webhooks:
        logger.warning("config.unsigned_webhooks_allowed")

    app = FastAPI(
        title="Storefront Functions",
        version=__version__,
        docs_url="/docs" if settings.app_env != "production" else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.app_env != "production" else None,
    )
    app.state.settings = settings
    app.state.http_transport = transport

    # Global middleware
    app.add_middleware(RequestContextMiddleware)
    # Rate limiting middleware (SlowAPI expects limiter via app.state)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    from slowapi.errors import RateLimitExceeded  # noqa: WPS433  (runtime import)
    from slowapi import _rate_limit_exceeded_handler

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Global exception handler - logs full tracebacks for any unhandled 500s
    @app.exception_handler(Exception)
    async def log_unhandled_exceptions(request: Request, exc: Exception):
        error_logger = logging.getLogger("uvicorn.error")
        error_logger.error(
            "UNHANDLED %s at %s %s\n%s",
            type(exc).__name__,
            request.method,
            request.url.path,
            "".join(traceback.format_tb(exc.__traceback__)),
        )
        raise exc

    # Browser clients call these functions cross-origin from the storefront.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        max_age=600,
    )

    # Health check
    @app.get("/")
    async def root() -> Dict[str, str]:  # pylint: disable=unused-variable
        return {"status": "ok"}

    # Non-preflight OPTIONS (no Access-Control-Request-Method) still gets 200.
    @app.options("/{path:path}", include_in_schema=False)
    async def options_ok(path: str) -> Response:  # pylint: disable=unused-variable
        return Response(status_code=200, headers=CORS_HEADERS)

    from storefront.routers import auth_routes, stripe_webhooks  # noqa: WPS433

    app.include_router(auth_routes.router)
    app.include_router(stripe_webhooks.public_router)
    # Stripe may burst deliveries from a handful of IPs.
    limiter.exempt(stripe_webhooks.stripe_webhook)

    return app


# The object the serverless platform imports
app = create_app()
