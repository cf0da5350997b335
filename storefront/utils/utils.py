"""Misc cross-cutting helpers."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_iso(moment: datetime) -> str:
    """ISO-8601 in UTC with a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def get_env_bool(name: str, default: bool = False, environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return env.get(name, str(int(default))).lower() in {"1", "true", "yes"}


def parse_mapping(raw: Optional[str]) -> Dict[str, str]:
    """Parse ``"key=value;key2=value 2"`` into a dict.

    Blank segments and segments without ``=`` are skipped.

    Examples:
        >>> parse_mapping("price_1=Starter;price_2=Agency")
        {'price_1': 'Starter', 'price_2': 'Agency'}
    """
    result: Dict[str, str] = {}
    if not raw:
        return result
    for segment in raw.split(";"):
        key, sep, value = segment.partition("=")
        if sep and key.strip() and value.strip():
            result[key.strip()] = value.strip()
    return result


def first_name(full_name: str) -> str:
    """Return the first whitespace-separated token of ``full_name``."""
    parts = full_name.strip().split()
    return parts[0] if parts else full_name
