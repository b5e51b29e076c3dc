"""Pydantic schemas for operator authentication."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AdminLoginRequest(BaseModel):
    """Credentials of the system-administrator operator account."""

    username: str = Field(..., min_length=3, description="Operator login name")
    password: str = Field(..., min_length=8)
    otp_code: str | None = Field(
        default=None, min_length=6, max_length=8, description="TOTP code when 2FA is enabled"
    )


class TokenResponse(BaseModel):
    """Bearer token accepted by every billing endpoint."""

    access_token: str
    token_type: str = "bearer"
