"""Authentication endpoint for the system-administrator operator."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from .. import schemas
from ..security import CallerIdentity, authenticate_admin, create_access_token

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/token", response_model=schemas.TokenResponse)
def obtain_access_token(payload: schemas.AdminLoginRequest) -> schemas.TokenResponse:
    """Authenticate the operator and return a system-administrator token."""

    if not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password required")
    identity: CallerIdentity = authenticate_admin(
        payload.username,
        payload.password,
        payload.otp_code,
    )
    LOGGER.info("Operator token issued", extra={"caller_id": identity.id})
    return schemas.TokenResponse(access_token=create_access_token(identity))
