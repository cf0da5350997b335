"""Webhook signature verification (Stripe ``v1`` scheme).

Header format::

    Stripe-Signature: t=<unix seconds>,v1=<hex hmac>[,v1=<hex hmac>][,v0=...]

The signed payload is ``"{t}." + raw_body`` and the MAC is HMAC-SHA256 keyed
with the endpoint secret. Several ``v1`` entries may be present while a secret
is being rolled; any one of them matching is enough.

All comparisons go through :func:`hmac.compare_digest`.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Dict, List, Optional

from storefront.errors import MalformedHeader, SignatureMismatch, StaleTimestamp
from storefront.settings import DEFAULT_TOLERANCE_SECONDS

__all__ = ["compute_signature", "parse_signature_header", "sign_payload", "verify_signature"]

SIGNATURE_SCHEME = "v1"


def compute_signature(raw_body: bytes, secret: str, timestamp: int | str) -> str:
    signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def sign_payload(raw_body: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a complete signature header for ``raw_body``."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},{SIGNATURE_SCHEME}={compute_signature(raw_body, secret, ts)}"


def parse_signature_header(signature_header: str) -> Dict[str, List[str]]:
    """Split ``k=v,k=v`` into ``{k: [v, ...]}`` keeping repeated keys."""
    parts: Dict[str, List[str]] = {}
    for item in signature_header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep and key:
            parts.setdefault(key, []).append(value)
    return parts


def verify_signature(
    raw_body: bytes,
    signature_header: str,
    secret: str,
    now: Optional[float] = None,
    max_skew: float = DEFAULT_TOLERANCE_SECONDS,
) -> None:
    """Return silently when ``raw_body`` is authentic and fresh.

    Raises:
        MalformedHeader: ``t`` or ``v1`` missing, or ``t`` is not an integer.
        SignatureMismatch: no ``v1`` value equals the recomputed MAC.
        StaleTimestamp: ``|now - t| > max_skew``.
    """
    parts = parse_signature_header(signature_header or "")
    timestamps = parts.get("t")
    signatures = [sig for sig in parts.get(SIGNATURE_SCHEME, []) if sig]
    if not timestamps or not timestamps[0] or not signatures:
        raise MalformedHeader("Missing signature parts")

    try:
        timestamp = int(timestamps[0])
    except ValueError:
        raise MalformedHeader("Invalid signature timestamp") from None

    expected = compute_signature(raw_body, secret, timestamps[0])
    if not any(hmac.compare_digest(expected.encode(), sig.encode("utf-8")) for sig in signatures):
        raise SignatureMismatch("Signature mismatch")

    current = time.time() if now is None else now
    if abs(current - timestamp) > max_skew:
        raise StaleTimestamp("Timestamp outside tolerance")
