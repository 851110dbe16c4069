"""Sign-up, sign-in and session verification.

Tokens come from examadmin.core.security; profiles live in the
users repository. Failures raise AuthenticationError (bad or missing
credentials) or PermissionDeniedError (deactivated account).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from examadmin.core.security import (
    create_token_pair,
    validate_password_strength,
    verify_password,
    verify_token,
)
from examadmin.db.schools_repository import create_school, find_duplicate_school, get_school
from examadmin.db.users_repository import (
    UserRecord,
    create_user,
    get_user,
    get_user_by_email,
    get_user_by_phone,
    update_user,
)
from examadmin.errors import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)
from examadmin.utils.validators import is_indian_phone, validate_email

logger = structlog.get_logger(__name__)


@dataclass
class AuthContext:
    """The caller behind a request."""

    user_id: str
    email: str | None
    role: str
    profile: UserRecord


def _resolve_school(
    school_id: str | None,
    new_school: dict[str, Any] | None,
    user_id: str,
) -> str | None:
    """Pick the signup school: an existing id, a duplicate, or a new one."""
    if school_id:
        return school_id

    if not new_school or not (new_school.get("name") or "").strip():
        return None

    city = new_school.get("location_city")
    state = new_school.get("location_state")
    existing = find_duplicate_school(new_school["name"], city, state)
    if existing is not None:
        logger.info("auth.school_deduplicated", school_id=existing.id)
        return existing.id

    school = create_school(
        name=new_school["name"],
        location_city=city,
        location_state=state,
        location_country=new_school.get("location_country"),
        created_by=user_id,
    )
    return school.id


def sign_up(
    email: str,
    password: str,
    name: str | None = None,
    phone: str | None = None,
    class_level: str | None = None,
    school_id: str | None = None,
    new_school: dict[str, Any] | None = None,
    preferred_language: str = "en",
) -> dict[str, Any]:
    """Register a student account.

    Returns:
        {"user": profile dict, "tokens": token pair}

    Raises:
        ValidationError: On a malformed email, phone or weak password
        ConflictError: If the email or phone is already registered
    """
    if not validate_email(email):
        raise ValidationError("Invalid email address")
    if phone and not is_indian_phone(phone):
        raise ValidationError("Invalid phone number")
    problems = validate_password_strength(password)
    if problems:
        raise ValidationError("; ".join(problems))

    if get_user_by_email(email) is not None:
        raise ConflictError("Email already registered")
    if phone and get_user_by_phone(phone) is not None:
        raise ConflictError("Phone number already registered")

    if school_id and get_school(school_id) is None:
        raise ValidationError("Selected school does not exist")

    user = create_user(
        email=email,
        password=password,
        name=name,
        phone=phone,
        role="student",
        class_level=class_level,
        preferred_language=preferred_language,
    )
    resolved_school = _resolve_school(school_id, new_school, user.id)
    if resolved_school is not None:
        user = update_user(user.id, school_id=resolved_school)

    logger.info("auth.signed_up", user_id=user.id, school_id=resolved_school)
    return {"user": user.to_dict(), "tokens": create_token_pair(user.id, user.email, user.role)}


def sign_in(identifier: str, password: str) -> dict[str, Any]:
    """Authenticate with an email or a 10 digit phone number.

    Raises:
        AuthenticationError: Unknown user, wrong password or no password set
        PermissionDeniedError: If the account is deactivated
    """
    identifier = identifier.strip()
    if is_indian_phone(identifier):
        user = get_user_by_phone(identifier)
    else:
        user = get_user_by_email(identifier)

    if user is None:
        logger.warning("auth.signin_failed", reason="unknown_user")
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")
    if not user.password_hash:
        raise AuthenticationError("Password not set for this account")
    if not verify_password(password, user.password_hash):
        logger.warning("auth.signin_failed", reason="bad_password", user_id=user.id)
        raise AuthenticationError("Invalid credentials")

    logger.info("auth.signed_in", user_id=user.id)
    return {"user": user.to_dict(), "tokens": create_token_pair(user.id, user.email, user.role)}


def verify_session(token: str | None) -> AuthContext:
    """Resolve an access token to its caller.

    Raises:
        AuthenticationError: Missing or invalid token, or unknown profile
        PermissionDeniedError: If the account is deactivated
    """
    if not token:
        raise AuthenticationError("Authentication required")

    payload = verify_token(token, expected_type="access")
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    user = get_user(payload["sub"])
    if user is None:
        raise AuthenticationError("User profile not found")
    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")

    return AuthContext(user_id=user.id, email=user.email, role=user.role, profile=user)


def refresh_tokens(refresh_token: str) -> dict[str, Any]:
    """Exchange a refresh token for a new token pair.

    Raises:
        AuthenticationError: If the refresh token or its user is invalid
    """
    payload = verify_token(refresh_token, expected_type="refresh")
    if payload is None:
        raise AuthenticationError("Invalid or expired refresh token")

    user = get_user(payload["sub"])
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid or expired refresh token")

    logger.info("auth.refreshed", user_id=user.id)
    return create_token_pair(user.id, user.email, user.role)
