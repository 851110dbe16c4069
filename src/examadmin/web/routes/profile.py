"""The signed-in user's own profile."""

from fastapi import APIRouter, Depends

from examadmin.core import profile
from examadmin.core.auth import AuthContext
from examadmin.web.deps import API_PREFIX, get_auth
from examadmin.web.schemas import ChangePasswordRequest, ProfileUpdate

router = APIRouter(prefix=f"{API_PREFIX}/profile", tags=["profile"])


@router.get("")
async def get_profile(auth: AuthContext = Depends(get_auth)) -> dict:
    """Profile with class level and activity stats."""
    return profile.get_profile(auth.user_id)


@router.put("")
async def update_profile(body: ProfileUpdate, auth: AuthContext = Depends(get_auth)) -> dict:
    """Update name, language, avatar or class level."""
    return profile.update_profile(auth.user_id, **body.model_dump())


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest, auth: AuthContext = Depends(get_auth)
) -> dict:
    """Set a new password."""
    profile.change_password(auth.user_id, body.new_password)
    return {"success": True, "message": "Password updated"}
