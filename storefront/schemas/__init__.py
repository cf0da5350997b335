from __future__ import annotations

"""Pydantic models for HTTP request/response bodies.

Request models accept missing fields as ``None`` so the edge adapters can
answer with a 400 and a readable message instead of FastAPI's default 422.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    password: Optional[str] = None


class LoginUser(BaseModel):
    email: Optional[str] = None
    id: Optional[str] = None
    plan: str = "Starter"


class LoginResponse(BaseModel):
    success: bool = True
    access_token: str
    user: LoginUser


class SetPasswordRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: Optional[str] = None
    password: Optional[str] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str = Field(..., json_schema_extra={"example": "Password set successfully"})


# ---------------------------------------------------------------------------
# Payment provider webhooks
# ---------------------------------------------------------------------------


class StripeEventData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    # Shape depends on the event type; handlers check it themselves.
    object_: Any = Field(default=None, alias="object")


class StripeEventEnvelope(BaseModel):
    """Snapshot event envelope: ``{"id", "type", "data": {"object": {...}}}``."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: Optional[str] = None
    data: StripeEventData = Field(default_factory=StripeEventData)

    @field_validator("id", "type", mode="before")
    @classmethod
    def _string_or_none(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @field_validator("data", mode="before")
    @classmethod
    def _object_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


class WebhookAck(BaseModel):
    received: bool = True


__all__ = [
    "LoginRequest",
    "LoginUser",
    "LoginResponse",
    "SetPasswordRequest",
    "MessageResponse",
    "StripeEventData",
    "StripeEventEnvelope",
    "WebhookAck",
]
