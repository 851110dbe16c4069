"""Authentication endpoints: signup, signin, refresh, logout."""

from fastapi import APIRouter, Depends, Request, status

from examadmin.core.auth import AuthContext, refresh_tokens, sign_in, sign_up
from examadmin.web.deps import API_PREFIX, enforce_rate_limit, get_auth
from examadmin.web.schemas import (
    AuthResponse,
    RefreshRequest,
    SignInRequest,
    SignUpRequest,
    TokenPairResponse,
)

router = APIRouter(prefix=f"{API_PREFIX}/auth", tags=["auth"])


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(body: SignUpRequest, request: Request) -> AuthResponse:
    """Register a student account, optionally adding a new school."""
    enforce_rate_limit(request, "signup")
    result = sign_up(
        email=body.email,
        password=body.password,
        name=body.name,
        phone=body.phone,
        class_level=body.class_level,
        school_id=body.school_id,
        new_school=body.new_school.model_dump() if body.new_school else None,
        preferred_language=body.preferred_language,
    )
    return AuthResponse(**result)


@router.post("/signin", response_model=AuthResponse)
async def signin(body: SignInRequest, request: Request) -> AuthResponse:
    """Sign in with email or phone and password."""
    enforce_rate_limit(request, "signin")
    return AuthResponse(**sign_in(body.identifier, body.password))


@router.post("/refresh", response_model=TokenPairResponse)
async def refresh(body: RefreshRequest) -> TokenPairResponse:
    """Exchange a refresh token for a new token pair."""
    return TokenPairResponse(**refresh_tokens(body.refresh_token))


@router.post("/logout")
async def logout(auth: AuthContext = Depends(get_auth)) -> dict:
    """Tokens are stateless; clients discard them."""
    return {"success": True, "message": "Logged out"}
