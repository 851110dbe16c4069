"""Roles, password hashing and JWT tokens.

Passwords are hashed with passlib (pbkdf2_sha256). Tokens are HS256
JWTs signed with the configured secret and scoped by issuer/audience.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
import structlog
from passlib.context import CryptContext

from examadmin.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6

ROLES = ("super_admin", "admin", "teacher", "school_admin", "student")
ADMIN_ROLES = ("admin", "super_admin", "teacher", "school_admin")
CONTENT_ROLES = ("admin", "super_admin", "teacher")
SUPER_ROLES = ("admin", "super_admin")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# =============================================================================
# ROLES
# =============================================================================


def is_admin_role(role: str | None) -> bool:
    """Admin or super admin."""
    return role in SUPER_ROLES


def is_teacher_or_above(role: str | None) -> bool:
    """Teacher, admin or super admin."""
    return role in CONTENT_ROLES


# =============================================================================
# PASSWORDS
# =============================================================================


def hash_password(password: str) -> str:
    """Hash a plain-text password."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored hash."""
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        logger.warning("security.unknown_hash_format")
        return False


def validate_password_strength(password: str) -> list[str]:
    """List the problems with a candidate password (empty when fine)."""
    errors = []
    if len(password or "") < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return errors


# =============================================================================
# TOKENS
# =============================================================================


def _encode(payload: dict[str, Any], expires_at: datetime) -> str:
    auth = load_app_config().auth
    claims = {
        **payload,
        "iss": auth.issuer,
        "aud": auth.audience,
        "iat": datetime.now(timezone.utc),
        "exp": expires_at,
    }
    return jwt.encode(claims, auth.get_secret(), algorithm=JWT_ALGORITHM)


def create_access_token(user_id: str, email: str | None, role: str) -> tuple[str, datetime]:
    """Create a short-lived access token.

    Returns:
        (token, expiry)
    """
    minutes = load_app_config().auth.access_token_minutes
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    token = _encode(
        {"sub": user_id, "email": email, "role": role, "type": "access"},
        expires_at,
    )
    return token, expires_at


def create_refresh_token(user_id: str) -> str:
    """Create a long-lived refresh token."""
    days = load_app_config().auth.refresh_token_days
    expires_at = datetime.now(timezone.utc) + timedelta(days=days)
    return _encode({"sub": user_id, "type": "refresh"}, expires_at)


def create_token_pair(user_id: str, email: str | None, role: str) -> dict[str, Any]:
    """Access and refresh tokens for a signed-in user."""
    access_token, expires_at = create_access_token(user_id, email, role)
    return {
        "access_token": access_token,
        "refresh_token": create_refresh_token(user_id),
        "token_type": "bearer",
        "expires_at": expires_at.isoformat(),
    }


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any] | None:
    """Decode a token and check its type.

    Returns:
        The payload, or None when the token is invalid, expired or of
        another type
    """
    auth = load_app_config().auth
    try:
        payload = jwt.decode(
            token,
            auth.get_secret(),
            algorithms=[JWT_ALGORITHM],
            audience=auth.audience,
            issuer=auth.issuer,
        )
    except jwt.ExpiredSignatureError:
        logger.debug("security.token_expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug("security.token_invalid", error=str(e))
        return None

    if payload.get("type") != expected_type or not payload.get("sub"):
        return None
    return payload


def extract_bearer_token(header: str | None) -> str | None:
    """Pull the token out of an Authorization header."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
