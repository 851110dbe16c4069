"""Scheduled exam endpoints, with stats and a sample-paper preview."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from examadmin.config.app_config import load_app_config
from examadmin.core.auth import AuthContext
from examadmin.core.exam_preview import build_exam_preview
from examadmin.core.security import CONTENT_ROLES
from examadmin.db.scheduled_exams_repository import (
    count_scheduled_exams_by_subject,
    create_scheduled_exam,
    delete_scheduled_exam,
    get_scheduled_exam,
    get_scheduled_exam_stats,
    list_scheduled_exams,
    update_scheduled_exam,
)
from examadmin.web.deps import API_PREFIX, get_auth, require_roles, unwrap
from examadmin.web.schemas import ScheduledExamCreate, ScheduledExamUpdate

router = APIRouter(prefix=f"{API_PREFIX}/scheduled-exams", tags=["scheduled-exams"])

require_content = require_roles(*CONTENT_ROLES)


@router.get("")
async def list_exams(
    subject_id: str | None = None,
    subject_slug: str | None = None,
    class_level_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    auth: AuthContext = Depends(get_auth),
) -> list[dict]:
    """Active scheduled exams; status "all" means no status filter."""
    return list_scheduled_exams(
        subject_id=subject_id,
        subject_slug=subject_slug,
        class_level_id=class_level_id,
        status=status_filter,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_exam(
    body: ScheduledExamCreate, auth: AuthContext = Depends(require_content)
) -> dict:
    """Schedule an exam for a class level and subject."""
    return unwrap(create_scheduled_exam(**body.model_dump())).to_dict()


@router.get("/counts-by-subject")
async def counts_by_subject(
    class_level_id: str | None = None, auth: AuthContext = Depends(get_auth)
) -> dict[str, int]:
    """Active scheduled exam counts keyed by subject id."""
    return count_scheduled_exams_by_subject(class_level_id=class_level_id)


@router.get("/{exam_id}")
async def get_exam(exam_id: str, auth: AuthContext = Depends(get_auth)) -> dict:
    """A scheduled exam with its joined context and attempt counts."""
    exam = get_scheduled_exam(exam_id)
    if exam is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scheduled exam '{exam_id}' not found",
        )
    return exam


@router.put("/{exam_id}")
async def replace_exam(
    exam_id: str,
    body: ScheduledExamUpdate,
    auth: AuthContext = Depends(require_content),
) -> dict:
    """Update a scheduled exam."""
    return unwrap(update_scheduled_exam(exam_id, **body.model_dump(exclude_unset=True))).to_dict()


@router.patch("/{exam_id}")
async def patch_exam(
    exam_id: str,
    body: ScheduledExamUpdate,
    auth: AuthContext = Depends(require_content),
) -> dict:
    """Partially update a scheduled exam (e.g. its status)."""
    return unwrap(update_scheduled_exam(exam_id, **body.model_dump(exclude_unset=True))).to_dict()


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(exam_id: str, auth: AuthContext = Depends(require_content)) -> None:
    """Deactivate a scheduled exam."""
    unwrap(delete_scheduled_exam(exam_id))


@router.get("/{exam_id}/stats")
async def exam_stats(exam_id: str, auth: AuthContext = Depends(require_content)) -> dict:
    """Attempt statistics for a scheduled exam."""
    if get_scheduled_exam(exam_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scheduled exam '{exam_id}' not found",
        )
    return get_scheduled_exam_stats(
        exam_id, passing_percentage=load_app_config().exams.passing_percentage
    )


@router.get("/{exam_id}/preview")
async def exam_preview(exam_id: str, auth: AuthContext = Depends(require_content)) -> dict:
    """A sample paper drawn from the exam's structure, answers removed."""
    return build_exam_preview(exam_id)
