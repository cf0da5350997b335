"""Domain error types.

Everything raised on purpose by this package inherits from
:class:`StorefrontError`. Edge adapters translate these into HTTP responses;
the orchestrator catches them per branch and logs them.
"""

from __future__ import annotations

from typing import Any


class StorefrontError(Exception):
    """Base for all storefront errors."""


class ConfigurationError(StorefrontError, RuntimeError):
    """Required environment configuration is missing or inconsistent.

    Raised once at startup by :meth:`Settings.validate`.
    """


class ValidationError(StorefrontError):
    """Bad or missing request fields. Always user-facing (HTTP 400)."""


# ---------------------------------------------------------------------------
# Signature verification
# ---------------------------------------------------------------------------


class SignatureError(StorefrontError):
    """Inbound event could not be authenticated."""


class MalformedHeader(SignatureError):
    """Signature header lacks a ``t`` or ``v1`` element."""


class SignatureMismatch(SignatureError):
    """Recomputed HMAC does not match any provided ``v1`` signature."""


class StaleTimestamp(SignatureError):
    """Signed timestamp is further from *now* than the allowed skew."""


# ---------------------------------------------------------------------------
# Upstream providers
# ---------------------------------------------------------------------------


class AuthenticationError(StorefrontError):
    """Identity provider rejected the supplied credentials.

    The message is deliberately generic so callers cannot enumerate accounts.
    """

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class UpstreamError(StorefrontError):
    """A provider answered with status >= 400 or an unreadable body."""

    def __init__(self, status_code: int | None, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code}: {self.message}"


class GatewayError(UpstreamError):
    """Identity gateway call failed."""


class NotificationError(UpstreamError):
    """Email provider call failed."""

    def __init__(self, status_code: int | None, body: Any) -> None:
        super().__init__(status_code, str(body))
        self.body = body


class TransportError(UpstreamError):
    """Network-level failure before any HTTP status was received."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(None, f"{provider}: {message}")
        self.provider = provider
