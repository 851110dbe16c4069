"""Shared FastAPI dependencies: authentication, roles, rate limits."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import Depends, Header, HTTPException, Request, status

from examadmin.config.app_config import load_app_config
from examadmin.core.auth import AuthContext, verify_session
from examadmin.core.rate_limit import rate_limiter
from examadmin.core.security import extract_bearer_token
from examadmin.errors import AuthenticationError, OperationResult, PermissionDeniedError

API_PREFIX = "/api/v1"


def get_auth(authorization: str | None = Header(default=None)) -> AuthContext:
    """Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 without a valid token, 403 for a deactivated account
    """
    try:
        return verify_session(extract_bearer_token(authorization))
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e


def require_roles(*roles: str) -> Callable[..., AuthContext]:
    """Dependency factory allowing only the given roles (any role if none)."""

    def dependency(auth: AuthContext = Depends(get_auth)) -> AuthContext:
        if roles and auth.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{auth.role}' is not allowed to perform this action",
            )
        return auth

    return dependency


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(request: Request, rule_name: str) -> None:
    """Count the request against a configured limit.

    Raises:
        HTTPException: 429 with Retry-After when the limit is exceeded
    """
    rule = load_app_config().rate_limits.get(rule_name)
    if rule is None:
        return

    result = rate_limiter.check(
        f"{rule_name}:{client_ip(request)}", rule.max_requests, rule.window_seconds
    )
    if not result.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(result.retry_after)},
        )


def unwrap(result: OperationResult) -> Any:
    """Data of a successful result; a failed one becomes a 400."""
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result.data
