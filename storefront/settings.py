from __future__ import annotations

"""Application configuration (env → immutable settings object).

The settings object is built exactly once per process by
:meth:`Settings.from_env` and handed to :func:`storefront.main.create_app`,
which stores it on ``app.state``. Nothing below the edge adapters reads the
environment directly. Keep imports light: this module is loaded on every
cold start.
"""

# Standard library
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from storefront.errors import ConfigurationError
from storefront.utils.utils import get_env_bool, parse_mapping

__all__ = ["Settings", "DEFAULT_TOLERANCE_SECONDS"]

DEFAULT_TOLERANCE_SECONDS = 300
DEFAULT_RESEND_API_URL = "https://api.resend.com"


@dataclass(frozen=True)
class Settings:
    """Everything the handlers need to talk to the outside world."""

    # Identity gateway (Supabase Auth)
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_key: Optional[str] = None
    identity_flag: bool = True

    # Email provider (Resend)
    resend_api_key: Optional[str] = None
    resend_api_url: str = DEFAULT_RESEND_API_URL
    from_email: Optional[str] = None
    from_name: str = "Apps on Purpose"
    notify_email: Optional[str] = None
    support_email: Optional[str] = None

    # Payment provider (Stripe)
    stripe_webhook_secret: Optional[str] = None
    allow_unsigned_webhooks: bool = False
    webhook_tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS
    billing_portal_url: Optional[str] = None

    # Outbound automation relay
    relay_webhook_url: Optional[str] = None
    platform_slug: str = "apps-on-purpose"

    # Product
    site_url: str = "http://localhost:8888"
    product_name: str = "Apps on Purpose"
    plan_names: Mapping[str, str] = field(default_factory=dict)

    http_timeout_seconds: float = 10.0
    app_env: str = "production"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``environ`` (defaults to ``os.environ`` + ``.env``)."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        def _get(name: str, default: Optional[str] = None) -> Optional[str]:
            value = environ.get(name)
            return value if value else default

        return cls(
            supabase_url=(_get("SUPABASE_URL") or "").rstrip("/") or None,
            supabase_anon_key=_get("SUPABASE_ANON_KEY"),
            supabase_service_key=_get("SUPABASE_SERVICE_KEY"),
            identity_flag=get_env_bool("IDENTITY_INTEGRATION_ENABLED", True, environ),
            resend_api_key=_get("RESEND_API_KEY"),
            resend_api_url=(_get("RESEND_API_URL", DEFAULT_RESEND_API_URL) or "").rstrip("/"),
            from_email=_get("FROM_EMAIL"),
            from_name=_get("FROM_NAME", cls.from_name),
            notify_email=_get("NOTIFY_EMAIL"),
            support_email=_get("SUPPORT_EMAIL"),
            stripe_webhook_secret=_get("STRIPE_WEBHOOK_SECRET"),
            allow_unsigned_webhooks=get_env_bool("ALLOW_UNSIGNED_WEBHOOKS", False, environ),
            webhook_tolerance_seconds=int(_get("WEBHOOK_TOLERANCE_SECONDS", str(DEFAULT_TOLERANCE_SECONDS))),
            billing_portal_url=_get("BILLING_PORTAL_URL"),
            relay_webhook_url=_get("RELAY_WEBHOOK_URL"),
            platform_slug=_get("PLATFORM_SLUG", cls.platform_slug),
            site_url=(_get("SITE_URL", cls.site_url) or "").rstrip("/"),
            product_name=_get("PRODUCT_NAME", cls.product_name),
            plan_names=parse_mapping(_get("PLAN_NAMES", "")),
            http_timeout_seconds=float(_get("HTTP_TIMEOUT_SECONDS", "10")),
            app_env=_get("APP_ENV", "production"),
        )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def identity_integration_enabled(self) -> bool:
        """Magic-link provisioning is wired in only with admin credentials."""
        return bool(self.identity_flag and self.supabase_url and self.supabase_service_key)

    @property
    def dashboard_url(self) -> str:
        return f"{self.site_url}/dashboard"

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>"

    @property
    def signature_required(self) -> bool:
        return not self.allow_unsigned_webhooks

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> "Settings":
        """Raise :class:`ConfigurationError` listing every missing variable."""
        missing: list[str] = []
        required: Dict[str, Optional[str]] = {
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_ANON_KEY": self.supabase_anon_key,
            "RESEND_API_KEY": self.resend_api_key,
            "FROM_EMAIL": self.from_email,
            "NOTIFY_EMAIL": self.notify_email,
        }
        if self.signature_required:
            required["STRIPE_WEBHOOK_SECRET"] = self.stripe_webhook_secret

        for name, value in required.items():
            if not value:
                missing.append(name)

        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")
        if self.webhook_tolerance_seconds <= 0:
            raise ConfigurationError("WEBHOOK_TOLERANCE_SECONDS must be positive")
        return self
