"""
Password hashing and JWT helpers.

Tokens carry the user id as ``sub`` plus the login session id as ``sid`` so
that ending a session invalidates the tokens issued for it.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from passlib.context import CryptContext

from lexdesk.core.config import Settings
from lexdesk.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt truncates passwords at 72 bytes
MAX_PASSWORD_BYTES = 72

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def is_password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def get_password_hash(password: str) -> str:
    if is_password_too_long(password):
        raise ValueError("Password exceeds bcrypt 72-byte limit")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if is_password_too_long(plain_password):
        logger.warning("Password verification rejected: password exceeds bcrypt 72-byte limit")
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Password verification failed: invalid hash format ({e})")
        return False


def new_session_id() -> str:
    return f"SES-{secrets.token_urlsafe(18)}"


def _encode(payload: dict[str, Any], secret: str, settings: Settings) -> str:
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    subject: str,
    settings: Settings,
    claims: Optional[dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = dict(claims or {})
    payload.update({"sub": subject, "iat": now, "exp": expire, "type": ACCESS_TOKEN})
    return _encode(payload, settings.jwt_secret_key, settings)


def create_refresh_token(subject: str, settings: Settings, session_id: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": now,
        "exp": now + timedelta(days=settings.refresh_token_expire_days),
        "type": REFRESH_TOKEN,
    }
    if session_id:
        payload["sid"] = session_id
    return _encode(payload, settings.jwt_refresh_secret_key, settings)


def decode_token(token: str, settings: Settings, expected_type: str = ACCESS_TOKEN) -> dict[str, Any]:
    """Decode and validate a token, raising UnauthorizedError on any failure."""
    secret = settings.jwt_refresh_secret_key if expected_type == REFRESH_TOKEN else settings.jwt_secret_key
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired. Please refresh your token.", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        raise UnauthorizedError("Invalid token", code="INVALID_TOKEN")

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise UnauthorizedError("Invalid token", code="INVALID_TOKEN")
    return payload
