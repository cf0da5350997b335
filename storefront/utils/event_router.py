"""Inbound payment events → identity + notification side effects.

Each handled event type fans out into independent branches (account
provisioning + welcome email, operator notification, relay webhook). The
branches run concurrently and are joined with settle-all semantics: every
branch is awaited, failures are logged and recorded on the
:class:`DispatchReport`, and none of them affects its siblings or the
acknowledgement sent back to the payment provider.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from storefront.models import (
    AccountProvisionRequest,
    BranchOutcome,
    DispatchReport,
    EventType,
    InboundEvent,
    MagicLinkResult,
    NotificationChannel,
    NotificationJob,
    PurchaseFact,
)
from storefront.settings import Settings
from storefront.utils.email_templates import render_email
from storefront.utils.identity_gateway import IdentityGateway, fallback_link
from storefront.utils.logger import logger
from storefront.utils.notifications import Notifier
from storefront.utils.plans import plan_tier, purchase_fact_from_session
from storefront.utils.utils import utc_iso, utc_now

OPERATOR_TIMEZONE = "America/New_York"


def _operator_time(moment: datetime) -> str:
    try:
        local = moment.astimezone(ZoneInfo(OPERATOR_TIMEZONE))
    except ZoneInfoNotFoundError:
        local = moment.astimezone(timezone.utc)
    return local.strftime("%b %d, %Y %I:%M %p %Z")


class EventRouter:
    """Routes an :class:`InboundEvent` to its side effects."""

    def __init__(
        self,
        settings: Settings,
        identity: IdentityGateway,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._identity = identity
        self._notifier = notifier
        self._clock = clock
        self._handlers: Dict[EventType, Callable[[InboundEvent], Awaitable[DispatchReport]]] = {
            EventType.purchase_completed: self._on_purchase_completed,
            EventType.subscription_cancelled: self._on_subscription_cancelled,
            EventType.payment_failed: self._on_payment_failed,
        }

    async def dispatch(self, event: InboundEvent) -> DispatchReport:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info(
                "stripe.webhook.unhandled",
                extra={"event_type": event.provider_type, "event_id": event.event_id},
            )
            return DispatchReport(event_type=event.type)

        if not isinstance(event.data_object, dict):
            logger.warning(
                "stripe.webhook.unexpected_object",
                extra={"event_type": event.provider_type, "event_id": event.event_id},
            )
            return DispatchReport(event_type=event.type)

        report = await handler(event)
        for outcome in report.failed:
            logger.error(
                "orchestrator.branch_failed",
                extra={
                    "event_type": event.provider_type,
                    "event_id": event.event_id,
                    "branch": outcome.name,
                    "error": str(outcome.error),
                    "error_type": type(outcome.error).__name__,
                },
            )
        return report

    # ------------------------------------------------------------------
    # Fan-out / fan-in
    # ------------------------------------------------------------------

    @staticmethod
    async def _settle(name: str, branch: Awaitable[Any]) -> BranchOutcome:
        try:
            value = await branch
        except Exception as exc:  # noqa: BLE001
            return BranchOutcome(name=name, ok=False, error=exc)
        return BranchOutcome(name=name, ok=True, value=value)

    async def _join(self, event_type: EventType, branches: Dict[str, Awaitable[Any]]) -> DispatchReport:
        outcomes = await asyncio.gather(*(self._settle(name, b) for name, b in branches.items()))
        return DispatchReport(event_type=event_type, outcomes=list(outcomes))

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    def _common_template_data(self) -> Dict[str, Any]:
        return {
            "product_name": self._settings.product_name,
            "site_url": self._settings.site_url,
            "support_email": self._settings.support_email,
            "billing_portal_url": self._settings.billing_portal_url,
        }

    def _email_job(self, recipient: str, template: str, **data: Any) -> NotificationJob:
        return NotificationJob(
            channel=NotificationChannel.email,
            recipient=recipient,
            template=template,
            template_data={**self._common_template_data(), **data},
        )

    def _relay_job(self, event_type: str, **data: Any) -> Optional[NotificationJob]:
        url = self._settings.relay_webhook_url
        if not url:
            return None
        payload = {
            "eventType": event_type,
            "platform": self._settings.platform_slug,
            **data,
            "timestamp": utc_iso(self._clock()),
        }
        return NotificationJob(channel=NotificationChannel.outbound_webhook, recipient=url, template_data=payload)

    async def _run_job(self, job: NotificationJob) -> Optional[str]:
        if job.channel is NotificationChannel.outbound_webhook:
            await self._notifier.send_outbound_webhook(job.recipient, job.template_data)
            return None

        rendered = render_email(job.template or "", job.template_data)
        return await self._notifier.send_email(
            self._settings.sender,
            [job.recipient],
            rendered.subject,
            rendered.html,
        )

    # ------------------------------------------------------------------
    # purchase_completed
    # ------------------------------------------------------------------

    async def provision_login(self, fact: PurchaseFact) -> MagicLinkResult:
        """Ensure the buyer has an account and return the link for the welcome email."""
        if not self._settings.identity_integration_enabled:
            return fallback_link(self._settings.dashboard_url, "identity integration disabled")

        request = AccountProvisionRequest(
            email=fact.customer_email,
            display_name=fact.customer_name,
            metadata={
                "full_name": fact.customer_name,
                "plan": fact.plan_display_name,
                "purchased_at": utc_iso(self._clock()),
            },
        )
        return await self._identity.upsert_account_and_generate_magic_link(request)

    async def _welcome_branch(self, fact: PurchaseFact) -> Optional[str]:
        login = await self.provision_login(fact)
        expires = login.artifact.expires_hint
        job = self._email_job(
            fact.customer_email,
            "welcome",
            first_name=fact.first_name,
            plan=fact.plan_display_name,
            tier=plan_tier(fact.plan_display_name),
            login_url=login.link,
            link_expires_hours=int(expires.total_seconds() // 3600) if expires else None,
        )
        return await self._run_job(job)

    async def _on_purchase_completed(self, event: InboundEvent) -> DispatchReport:
        fact = purchase_fact_from_session(event.data_object, self._settings.plan_names)
        logger.info(
            "stripe.webhook.sale",
            extra={
                "email": fact.customer_email,
                "plan": fact.plan_display_name,
                "amount": fact.amount,
                "currency": fact.currency,
            },
        )

        branches: Dict[str, Awaitable[Any]] = {}
        if fact.customer_email:
            branches["welcome_email"] = self._welcome_branch(fact)

        branches["sale_notification"] = self._run_job(
            self._email_job(
                self._settings.notify_email or "",
                "sale_notification",
                name=fact.customer_name,
                email=fact.customer_email,
                plan=fact.plan_display_name,
                amount=fact.amount,
                currency=fact.currency,
                sold_at=_operator_time(self._clock()),
            )
        )

        relay = self._relay_job(
            "purchase_completed",
            email=fact.customer_email,
            name=fact.customer_name,
            plan=fact.plan_display_name,
            amount=fact.amount,
            currency=fact.currency,
        )
        if relay is not None:
            branches["relay"] = self._run_job(relay)

        return await self._join(event.type, branches)

    # ------------------------------------------------------------------
    # subscription_cancelled / payment_failed
    # ------------------------------------------------------------------

    async def _on_subscription_cancelled(self, event: InboundEvent) -> DispatchReport:
        customer = event.data_object.get("customer")
        logger.info("stripe.webhook.subscription_cancelled", extra={"customer_id": customer})

        relay = self._relay_job("subscription_cancelled", stripeCustomerId=customer)
        if relay is None:
            return DispatchReport(event_type=event.type)
        return await self._join(event.type, {"relay": self._run_job(relay)})

    async def _on_payment_failed(self, event: InboundEvent) -> DispatchReport:
        email = event.data_object.get("customer_email") or ""
        logger.info("stripe.webhook.payment_failed", extra={"email": email})
        if not email:
            return DispatchReport(event_type=event.type)

        job = self._email_job(email, "payment_failed")
        return await self._join(event.type, {"payment_failed_email": self._run_job(job)})
