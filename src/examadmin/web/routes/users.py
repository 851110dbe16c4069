"""User administration endpoints (admins only)."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from examadmin.core.auth import AuthContext
from examadmin.core.security import SUPER_ROLES, validate_password_strength
from examadmin.db.users_repository import (
    create_user,
    delete_user,
    get_user_detail,
    list_users,
    update_user,
)
from examadmin.web.deps import API_PREFIX, require_roles
from examadmin.web.schemas import UserCreate, UserUpdate

router = APIRouter(prefix=f"{API_PREFIX}/users", tags=["users"])

require_admin = require_roles(*SUPER_ROLES)


def _check_password(password: str | None) -> None:
    if password is None:
        return
    problems = validate_password_strength(password)
    if problems:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="; ".join(problems))


@router.get("")
async def list_all_users(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    school_id: str | None = None,
    class_level_id: str | None = None,
    class_level_slug: str | None = None,
    auth: AuthContext = Depends(require_admin),
) -> dict:
    """Paginated users, newest first."""
    return list_users(
        page=page,
        page_size=page_size,
        role=role,
        is_active=is_active,
        search=search,
        school_id=school_id,
        class_level_id=class_level_id,
        class_level_slug=class_level_slug,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_user(body: UserCreate, auth: AuthContext = Depends(require_admin)) -> dict:
    """Create a user of any role."""
    _check_password(body.password)
    return create_user(**body.model_dump()).to_dict()


@router.get("/{user_id}")
async def get_user(user_id: str, auth: AuthContext = Depends(require_admin)) -> dict:
    """A user with school and exam stats."""
    detail = get_user_detail(user_id)
    if detail is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
    return detail


@router.patch("/{user_id}")
async def edit_user(
    user_id: str,
    body: UserUpdate,
    auth: AuthContext = Depends(require_admin),
) -> dict:
    """Partially update a user; a new password is re-hashed."""
    _check_password(body.password)
    return update_user(user_id, **body.model_dump(exclude_unset=True)).to_dict()


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user(
    user_id: str,
    hard: bool = False,
    auth: AuthContext = Depends(require_admin),
) -> None:
    """Deactivate a user, or delete it with ?hard=true."""
    if user_id == auth.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account",
        )
    if not delete_user(user_id, hard=hard):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
