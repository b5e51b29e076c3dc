"""Who is calling the billing API, and what they may do.

Bearer tokens are HS256 JWTs signed with ``AUTH_JWT_SECRET``. Their claims
carry the caller id (``sub``), the system-administrator flag (``adm``) and the
organizations the caller belongs to (``orgs``). The only account that can log
in here is the billing operator configured through ``ADMIN_*`` variables;
organization members receive tokens from the tenant portal.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import os
import secrets
import struct
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Mapping, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

LOGGER = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
DEFAULT_TOKEN_MINUTES = 30
PASSWORD_ITERATIONS = 390_000
OTP_STEP_SECONDS = 30
OTP_LENGTH = 6

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class SecurityConfigurationError(RuntimeError):
    """The operator account or token signing is not configured correctly."""


class InvalidTokenError(ValueError):
    pass


def _canonical_uuid(raw: Any) -> str:
    return str(uuid.UUID(str(raw)))


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated user behind a request."""

    id: str
    is_system_admin: bool = False
    organization_ids: tuple[str, ...] = field(default_factory=tuple)

    def belongs_to(self, org_id: Optional[str]) -> bool:
        return org_id is not None and str(org_id) in self.organization_ids

    def to_claims(self) -> dict[str, Any]:
        return {"sub": self.id, "adm": self.is_system_admin, "orgs": list(self.organization_ids)}

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "CallerIdentity":
        orgs = claims.get("orgs", [])
        if not isinstance(orgs, list):
            raise InvalidTokenError("orgs claim must be a list")
        try:
            return cls(
                id=_canonical_uuid(claims["sub"]),
                is_system_admin=claims.get("adm") is True,
                organization_ids=tuple(_canonical_uuid(org_id) for org_id in orgs),
            )
        except (KeyError, ValueError) as exc:
            raise InvalidTokenError("Token identifies no valid caller") from exc


def caller_may_administer(caller: Optional[CallerIdentity]) -> bool:
    """System administrators act across organizations and drive invoices."""

    return caller is not None and caller.is_system_admin


# Operator credentials


def generate_password_hash(password: str, *, iterations: int = PASSWORD_ITERATIONS) -> str:
    """Return ``iterations$salt$digest`` for the ``ADMIN_PASSWORD_HASH`` setting."""

    if not password:
        raise ValueError("password must not be empty")
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    encode = base64.urlsafe_b64encode
    return f"{iterations}${encode(salt).decode('ascii')}${encode(digest).decode('ascii')}"


def _b32_secret(secret: str) -> bytes:
    padded = secret.strip().upper() + "=" * (-len(secret.strip()) % 8)
    return base64.b32decode(padded)


def _otp_at(secret: bytes, step: int) -> str:
    digest = hmac.new(secret, struct.pack(">Q", step), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    number = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(number % 10**OTP_LENGTH).zfill(OTP_LENGTH)


def generate_totp_code(secret: str, timestamp: Optional[float] = None) -> str:
    """Current one-time code for a base32 ``ADMIN_TOTP_SECRET``."""

    try:
        key = _b32_secret(secret)
    except (ValueError, binascii.Error) as exc:
        raise SecurityConfigurationError("Invalid TOTP secret") from exc
    return _otp_at(key, int((timestamp or time.time()) // OTP_STEP_SECONDS))


@dataclass(frozen=True)
class OperatorAccount:
    username: str
    iterations: int
    salt: bytes
    digest: bytes
    user_id: str
    otp_secret: Optional[bytes] = None

    @classmethod
    def from_env(cls) -> "OperatorAccount":
        missing = [
            name
            for name in ("ADMIN_USERNAME", "ADMIN_PASSWORD_HASH", "ADMIN_USER_ID")
            if not os.getenv(name)
        ]
        if missing:
            raise SecurityConfigurationError(f"Missing operator settings: {', '.join(missing)}")

        try:
            iterations, salt, digest = os.environ["ADMIN_PASSWORD_HASH"].split("$")
            decoded_salt = base64.urlsafe_b64decode(salt)
            decoded_digest = base64.urlsafe_b64decode(digest)
            rounds = int(iterations)
        except (ValueError, binascii.Error) as exc:
            raise SecurityConfigurationError("ADMIN_PASSWORD_HASH is malformed") from exc
        try:
            user_id = _canonical_uuid(os.environ["ADMIN_USER_ID"])
        except ValueError as exc:
            raise SecurityConfigurationError("ADMIN_USER_ID must be a UUID") from exc

        raw_otp = os.getenv("ADMIN_TOTP_SECRET")
        try:
            otp_secret = _b32_secret(raw_otp) if raw_otp else None
        except (ValueError, binascii.Error) as exc:
            raise SecurityConfigurationError("ADMIN_TOTP_SECRET is not base32") from exc

        return cls(
            username=os.environ["ADMIN_USERNAME"].strip().lower(),
            iterations=rounds,
            salt=decoded_salt,
            digest=decoded_digest,
            user_id=user_id,
            otp_secret=otp_secret,
        )

    def password_matches(self, password: str) -> bool:
        candidate = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), self.salt, self.iterations
        )
        return hmac.compare_digest(candidate, self.digest)

    def otp_matches(self, code: str, *, now: Optional[float] = None) -> bool:
        if self.otp_secret is None:
            return True
        if not code.isdigit():
            return False
        step = int((now or time.time()) // OTP_STEP_SECONDS)
        # One step of clock drift either way.
        return any(
            hmac.compare_digest(_otp_at(self.otp_secret, step + drift), code.zfill(OTP_LENGTH))
            for drift in (-1, 0, 1)
        )


@lru_cache(maxsize=1)
def _operator_account() -> OperatorAccount:
    return OperatorAccount.from_env()


def authenticate_admin(username: str, password: str, otp_code: Optional[str]) -> CallerIdentity:
    """Check operator credentials and return the system-administrator identity."""

    account = _operator_account()
    if username.strip().lower() != account.username or not account.password_matches(password):
        LOGGER.info("Rejected operator login", extra={"username": username})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if account.otp_secret is not None:
        if not otp_code:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="2FA code required")
        if not account.otp_matches(otp_code):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid 2FA code")

    return CallerIdentity(id=account.user_id, is_system_admin=True)


# Bearer tokens


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _unb64url(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


@lru_cache(maxsize=1)
def token_signing_key() -> bytes:
    secret = os.getenv("AUTH_JWT_SECRET")
    if not secret:
        raise SecurityConfigurationError("AUTH_JWT_SECRET is required")
    try:
        return base64.urlsafe_b64decode(secret)
    except (ValueError, binascii.Error):
        return secret.encode("utf-8")


def _token_lifetime() -> timedelta:
    raw = os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES")
    try:
        minutes = int(raw) if raw else DEFAULT_TOKEN_MINUTES
    except ValueError as exc:
        raise SecurityConfigurationError("ACCESS_TOKEN_EXPIRE_MINUTES must be an integer") from exc
    if minutes <= 0:
        raise SecurityConfigurationError("ACCESS_TOKEN_EXPIRE_MINUTES must be positive")
    return timedelta(minutes=minutes)


def sign_claims(claims: Mapping[str, Any]) -> str:
    header = _b64url(json.dumps({"typ": "JWT", "alg": TOKEN_ALGORITHM}).encode("utf-8"))
    body = _b64url(json.dumps(dict(claims), separators=(",", ":")).encode("utf-8"))
    signature = hmac.new(token_signing_key(), f"{header}.{body}".encode("ascii"), hashlib.sha256)
    return f"{header}.{body}.{_b64url(signature.digest())}"


def read_claims(token: str) -> dict[str, Any]:
    """Verify signature and expiry, then return the token claims."""

    try:
        header, body, signature = token.split(".")
        expected = hmac.new(
            token_signing_key(), f"{header}.{body}".encode("ascii"), hashlib.sha256
        ).digest()
        if not hmac.compare_digest(_unb64url(signature), expected):
            raise InvalidTokenError("Signature mismatch")
        claims = json.loads(_unb64url(body))
        expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
    except InvalidTokenError:
        raise
    except (ValueError, KeyError, TypeError, UnicodeError, binascii.Error) as exc:
        raise InvalidTokenError("Malformed token") from exc
    if datetime.now(timezone.utc) >= expires_at:
        raise InvalidTokenError("Token expired")
    return claims


def create_access_token(identity: CallerIdentity) -> str:
    expires_at = datetime.now(timezone.utc) + _token_lifetime()
    return sign_claims({**identity.to_claims(), "exp": int(expires_at.timestamp())})


def resolve_caller(token: Optional[str]) -> Optional[CallerIdentity]:
    """Return the caller behind a bearer token, or ``None`` when untrusted."""

    if not token:
        return None
    try:
        return CallerIdentity.from_claims(read_claims(token))
    except InvalidTokenError as exc:
        LOGGER.debug("Rejected bearer token: %s", exc)
        return None


def get_current_caller(token: Optional[str] = Depends(oauth2_scheme)) -> CallerIdentity:
    """FastAPI dependency that requires an authenticated caller."""

    caller = resolve_caller(token)
    if caller is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return caller
