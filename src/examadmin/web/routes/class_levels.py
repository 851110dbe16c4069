"""Class level endpoints, including subject mappings and scheduled exams."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from examadmin.core.auth import AuthContext
from examadmin.core.security import SUPER_ROLES
from examadmin.db.class_levels_repository import (
    ClassLevelRecord,
    add_subject_to_class_level,
    create_class_level,
    delete_class_level,
    get_class_level_stats,
    list_class_levels,
    remove_subject_from_class_level,
    resolve_class_level,
    update_class_level,
)
from examadmin.db.scheduled_exams_repository import (
    get_user_attempt_counts,
    list_scheduled_exams_for_class_level,
)
from examadmin.db.subjects_repository import get_subjects_by_class_level
from examadmin.web.deps import API_PREFIX, get_auth, require_roles, unwrap
from examadmin.web.schemas import (
    ClassLevelCreate,
    ClassLevelResponse,
    ClassLevelUpdate,
    SubjectMappingRequest,
)

router = APIRouter(prefix=f"{API_PREFIX}/class-levels", tags=["class-levels"])

require_admin = require_roles(*SUPER_ROLES)


def _get_class_level_or_404(id_or_slug: str) -> ClassLevelRecord:
    record = resolve_class_level(id_or_slug)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Class level '{id_or_slug}' not found",
        )
    return record


@router.get("")
async def list_levels(auth: AuthContext = Depends(get_auth)) -> list[dict]:
    """Active class levels with their subjects and exam counts."""
    return [summary.to_dict() for summary in list_class_levels()]


@router.post("", response_model=ClassLevelResponse, status_code=status.HTTP_201_CREATED)
async def create_level(
    body: ClassLevelCreate, auth: AuthContext = Depends(require_admin)
) -> ClassLevelResponse:
    """Create a class level."""
    record = create_class_level(**body.model_dump())
    return ClassLevelResponse.model_validate(record)


@router.get("/{id_or_slug}")
async def get_level(id_or_slug: str, auth: AuthContext = Depends(get_auth)) -> dict:
    """A class level with usage stats."""
    record = _get_class_level_or_404(id_or_slug)
    data = record.to_dict()
    data["stats"] = asdict(get_class_level_stats(record))
    return data


@router.patch("/{id_or_slug}", response_model=ClassLevelResponse)
async def update_level(
    id_or_slug: str,
    body: ClassLevelUpdate,
    auth: AuthContext = Depends(require_admin),
) -> ClassLevelResponse:
    """Partially update a class level."""
    record = _get_class_level_or_404(id_or_slug)
    updated = update_class_level(record.id, **body.model_dump(exclude_unset=True))
    return ClassLevelResponse.model_validate(updated)


@router.delete("/{id_or_slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_level(id_or_slug: str, auth: AuthContext = Depends(require_admin)) -> None:
    """Deactivate a class level."""
    record = _get_class_level_or_404(id_or_slug)
    delete_class_level(record.id)


@router.get("/{id_or_slug}/subjects")
async def list_level_subjects(
    id_or_slug: str, auth: AuthContext = Depends(get_auth)
) -> list[dict]:
    """Subjects mapped to a class level."""
    record = _get_class_level_or_404(id_or_slug)
    return [s.to_dict() for s in get_subjects_by_class_level(record.id)]


@router.post("/{id_or_slug}/subjects", status_code=status.HTTP_201_CREATED)
async def add_level_subject(
    id_or_slug: str,
    body: SubjectMappingRequest,
    auth: AuthContext = Depends(require_admin),
) -> dict:
    """Map a subject to a class level."""
    record = _get_class_level_or_404(id_or_slug)
    return unwrap(add_subject_to_class_level(record.id, body.subject_id))


@router.delete("/{id_or_slug}/subjects/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_level_subject(
    id_or_slug: str,
    subject_id: str,
    auth: AuthContext = Depends(require_admin),
) -> None:
    """Remove a subject mapping."""
    record = _get_class_level_or_404(id_or_slug)
    unwrap(remove_subject_from_class_level(record.id, subject_id))


@router.get("/{id_or_slug}/scheduled-exams")
async def list_level_scheduled_exams(
    id_or_slug: str,
    subject_id: str | None = None,
    auth: AuthContext = Depends(get_auth),
) -> list[dict]:
    """Open scheduled exams for a class level, with the caller's attempt counts."""
    record = _get_class_level_or_404(id_or_slug)
    exams = list_scheduled_exams_for_class_level(record.id, subject_id=subject_id)

    completed, in_progress = get_user_attempt_counts(auth.user_id, [e["id"] for e in exams])
    for exam in exams:
        exam["user_attempts"] = completed.get(exam["id"], 0)
        exam["has_in_progress"] = exam["id"] in in_progress
    return exams
