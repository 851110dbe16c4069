"""School directory endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from examadmin.config.app_config import load_app_config
from examadmin.core.auth import AuthContext
from examadmin.core.security import SUPER_ROLES, is_admin_role
from examadmin.db.schools_repository import (
    create_school,
    delete_school,
    find_duplicate_school,
    get_school_with_student_count,
    list_schools,
    school_name_exists,
    search_schools,
    suggest_schools,
    update_school,
)
from examadmin.web.deps import API_PREFIX, get_auth, require_roles
from examadmin.web.schemas import SchoolCreate, SchoolResponse, SchoolUpdate

router = APIRouter(prefix=f"{API_PREFIX}/schools", tags=["schools"])

require_admin = require_roles(*SUPER_ROLES)


@router.get("")
async def list_all_schools(
    is_verified: bool | None = None,
    is_user_added: bool | None = None,
    state: str | None = None,
    city: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=200),
    auth: AuthContext = Depends(require_admin),
) -> dict:
    """Paginated schools with verification stats."""
    return list_schools(
        is_verified=is_verified,
        is_user_added=is_user_added,
        state=state,
        city=city,
        search=search,
        page=page,
        page_size=page_size or load_app_config().exams.schools_page_size,
    )


@router.post("", response_model=SchoolResponse, status_code=status.HTTP_201_CREATED)
async def add_school(body: SchoolCreate, auth: AuthContext = Depends(get_auth)) -> SchoolResponse:
    """Add a school; only admins may mark it verified."""
    duplicate = find_duplicate_school(body.name, body.location_city, body.location_state)
    if duplicate is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"School '{duplicate.name}' already exists",
        )

    fields = body.model_dump()
    if not is_admin_role(auth.role):
        fields["is_verified"] = False
    school = create_school(created_by=auth.user_id, **fields)
    return SchoolResponse.model_validate(school)


@router.get("/search", response_model=list[SchoolResponse])
async def search(
    q: str = Query(default=""),
    limit: int = Query(default=10, ge=1, le=50),
) -> list[SchoolResponse]:
    """Schools matching a name fragment; open for the signup form."""
    return [SchoolResponse.model_validate(s) for s in search_schools(q, limit=limit)]


@router.get("/suggest")
async def suggest(
    q: str = Query(default=""),
    limit: int = Query(default=5, ge=1, le=20),
) -> list[dict]:
    """Short name/location suggestions for autocomplete."""
    return suggest_schools(q, limit=limit)


@router.get("/{school_id}")
async def get_school(school_id: str, auth: AuthContext = Depends(get_auth)) -> dict:
    """A school with its student count."""
    school = get_school_with_student_count(school_id)
    if school is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"School '{school_id}' not found",
        )
    return school


@router.put("/{school_id}", response_model=SchoolResponse)
async def edit_school(
    school_id: str,
    body: SchoolUpdate,
    auth: AuthContext = Depends(require_admin),
) -> SchoolResponse:
    """Update a school."""
    if body.name and school_name_exists(body.name, exclude_id=school_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"School '{body.name}' already exists",
        )
    school = update_school(school_id, **body.model_dump(exclude_unset=True))
    return SchoolResponse.model_validate(school)


@router.delete("/{school_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_school(school_id: str, auth: AuthContext = Depends(require_admin)) -> None:
    """Delete a school that has no students."""
    if not delete_school(school_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"School '{school_id}' not found",
        )
