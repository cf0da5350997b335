"""Customer authentication endpoints (password login, invite password set)."""

from __future__ import annotations

from typing import Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from storefront.errors import AuthenticationError, UpstreamError, ValidationError
from storefront.schemas import (
    LoginRequest,
    LoginResponse,
    LoginUser,
    MessageResponse,
    SetPasswordRequest,
)
from storefront.utils.dependencies import get_identity_gateway
from storefront.utils.identity_gateway import IdentityGateway
from storefront.utils.logger import logger

router = APIRouter(prefix="/api", tags=["auth"])

ModelT = TypeVar("ModelT", bound=BaseModel)


async def _read_body(request: Request, model: Type[ModelT], error_detail: str) -> ModelT:
    """Parse the JSON body into ``model`` or fail with 400."""
    try:
        return model.model_validate(await request.json())
    except (ValueError, PydanticValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_detail)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    identity: IdentityGateway = Depends(get_identity_gateway),
):
    payload = await _read_body(request, LoginRequest, "Invalid request")
    if not payload.email or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email and password required")

    try:
        session = await identity.password_login(payload.email, payload.password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))

    user = session.user if isinstance(session.user, dict) else {}
    metadata = user.get("user_metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    plan = metadata.get("plan")
    return LoginResponse(
        access_token=session.access_token,
        user=LoginUser(
            email=user.get("email"),
            id=user.get("id"),
            plan=plan if isinstance(plan, str) and plan else "Starter",
        ),
    )


@router.post("/set-password", response_model=MessageResponse)
async def set_password(
    request: Request,
    identity: IdentityGateway = Depends(get_identity_gateway),
):
    """Set the password for an invited account using the token from its email link."""
    payload = await _read_body(request, SetPasswordRequest, "Invalid JSON")
    if not payload.token or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token and password required")

    try:
        await identity.set_password(payload.token, payload.password)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except UpstreamError as exc:
        logger.error(
            "identity.set_password_failed",
            extra={"status_code": exc.status_code, "error": exc.message},
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="failed_to_set_password")

    return MessageResponse(message="Password set successfully")
