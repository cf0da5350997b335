from __future__ import annotations

"""Plan catalogue and checkout-session → PurchaseFact derivation.

Price ids are the Stripe ``price_...`` identifiers the checkout links attach
to ``session.metadata.price_id``. Deployments may add or override entries via
the ``PLAN_NAMES`` environment variable (see :class:`Settings`).
"""

from typing import Any, Dict, Mapping, Optional

from storefront.models import PurchaseFact

__all__ = [
    "PLAN_NAMES",
    "DEFAULT_PLAN",
    "plan_display_name",
    "plan_tier",
    "purchase_fact_from_session",
]

DEFAULT_PLAN = "Starter"
DEFAULT_CUSTOMER_NAME = "Friend"
DEFAULT_CURRENCY = "USD"

PLAN_NAMES: Dict[str, str] = {
    "price_1T3gqo0490AThCZFXMpe0xwZ": "Starter",
    "price_1T3gqr0490AThCZFJxTNqvs6": "Creator License",
    "price_1T3gqu0490AThCZF5tE4mu2d": "Creator License (Activation)",
    "price_1T3gqx0490AThCZFe2kX0xWF": "Agency",
    "price_1T3gr00490AThCZFKwMqWz6j": "Agency (Activation)",
}


def plan_display_name(
    price_id: Optional[str],
    metadata_plan: Optional[str] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> str:
    """Resolve a display name: catalogue → ``metadata.plan`` → ``Starter``."""
    catalogue = {**PLAN_NAMES, **(overrides or {})}
    if price_id and price_id in catalogue:
        return catalogue[price_id]
    return metadata_plan or DEFAULT_PLAN


def plan_tier(display_name: str) -> Optional[str]:
    """Return ``"creator"`` / ``"agency"`` for plans that unlock a bonus block."""
    if "Creator" in display_name:
        return "creator"
    if "Agency" in display_name:
        return "agency"
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def purchase_fact_from_session(
    session: Mapping[str, Any],
    overrides: Optional[Mapping[str, str]] = None,
) -> PurchaseFact:
    """Derive a :class:`PurchaseFact` from a ``checkout.session`` object."""
    details = _as_dict(session.get("customer_details"))
    metadata = _as_dict(session.get("metadata"))

    email = details.get("email") or session.get("customer_email") or ""
    name = details.get("name") or DEFAULT_CUSTOMER_NAME
    price_id = metadata.get("price_id") or ""

    try:
        amount_minor = int(session.get("amount_total") or 0)
    except (TypeError, ValueError):
        amount_minor = 0

    return PurchaseFact(
        customer_email=str(email),
        customer_name=str(name),
        amount_minor_units=amount_minor,
        currency=str(session.get("currency") or DEFAULT_CURRENCY).upper(),
        plan_identifier=str(price_id),
        plan_display_name=plan_display_name(price_id, metadata.get("plan"), overrides),
    )
