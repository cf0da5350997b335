from __future__ import annotations

"""Request-scoped value objects shared by the clients and the orchestrator.

Nothing here is persisted: every instance lives for one inbound request.
HTTP request/response bodies live in :mod:`storefront.schemas`.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from storefront.utils.utils import first_name, utc_now

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    purchase_completed = "purchase_completed"
    subscription_cancelled = "subscription_cancelled"
    payment_failed = "payment_failed"
    other = "other"

    @classmethod
    def from_provider(cls, provider_type: Optional[str]) -> "EventType":
        """Map a Stripe event type string onto the handled event types."""
        return PROVIDER_EVENT_TYPES.get(provider_type or "", cls.other)


PROVIDER_EVENT_TYPES: Dict[str, EventType] = {
    "checkout.session.completed": EventType.purchase_completed,
    "customer.subscription.deleted": EventType.subscription_cancelled,
    "invoice.payment_failed": EventType.payment_failed,
}


class LoginArtifactKind(str, Enum):
    magic_link = "magic_link"
    session_token = "session_token"


class MagicLinkSource(str, Enum):
    obtained = "obtained"
    fallback = "fallback"


class NotificationChannel(str, Enum):
    email = "email"
    outbound_webhook = "outbound_webhook"


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InboundEvent:
    """A verified, parsed provider event."""

    type: EventType
    raw_payload: bytes
    signature_header: Optional[str]
    provider_type: Optional[str]
    data_object: Any = field(default_factory=dict)
    event_id: Optional[str] = None
    received_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class PurchaseFact:
    customer_email: str
    customer_name: str
    amount_minor_units: int
    currency: str
    plan_identifier: str
    plan_display_name: str

    @property
    def amount(self) -> str:
        """Major units with two decimals, e.g. ``29700`` → ``"297.00"``."""
        return f"{(Decimal(self.amount_minor_units) / 100):.2f}"

    @property
    def first_name(self) -> str:
        return first_name(self.customer_name)


@dataclass(frozen=True)
class AccountProvisionRequest:
    email: str
    display_name: str
    metadata: Dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Identity results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginArtifact:
    kind: LoginArtifactKind
    value: str
    expires_hint: Optional[timedelta] = None


@dataclass(frozen=True)
class MagicLinkResult:
    """Outcome of account provisioning: either a real link or the fallback.

    ``reason`` is set only for the fallback variant.
    """

    source: MagicLinkSource
    artifact: LoginArtifact
    account_created: bool = False
    reason: Optional[str] = None

    @property
    def link(self) -> str:
        return self.artifact.value

    @property
    def is_fallback(self) -> bool:
        return self.source is MagicLinkSource.fallback


@dataclass(frozen=True)
class PasswordSession:
    """Result of a password grant."""

    access_token: str
    user: Dict[str, Any] = field(default_factory=dict)

    @property
    def artifact(self) -> LoginArtifact:
        return LoginArtifact(kind=LoginArtifactKind.session_token, value=self.access_token)


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotificationJob:
    """One email or relay call derived from an inbound event.

    ``template`` names the email template (ignored for relay jobs, whose
    ``template_data`` is the JSON body and ``recipient`` the URL).
    """

    channel: NotificationChannel
    recipient: str
    template_data: Dict[str, Any] = field(default_factory=dict)
    template: Optional[str] = None


@dataclass
class BranchOutcome:
    """Settled result of one fan-out branch."""

    name: str
    ok: bool
    value: Any = None
    error: Optional[BaseException] = None


@dataclass
class DispatchReport:
    event_type: EventType
    outcomes: List[BranchOutcome] = field(default_factory=list)

    @property
    def failed(self) -> List[BranchOutcome]:
        return [o for o in self.outcomes if not o.ok]
