"""Question bank endpoints, per subject and across subjects."""

import math

from fastapi import APIRouter, Depends, HTTPException, Query, status

from examadmin.core.auth import AuthContext
from examadmin.core.exam_preview import sanitize_question
from examadmin.core.security import ADMIN_ROLES, CONTENT_ROLES
from examadmin.db.questions_repository import (
    count_questions,
    create_question,
    delete_question,
    get_question_by_id,
    get_questions_by_ids,
    get_questions_by_subject,
    get_subject_question_stats,
    search_all_questions,
    update_question,
)
from examadmin.web.deps import API_PREFIX, get_auth, require_roles
from examadmin.web.schemas import QuestionCreate, QuestionIdsRequest, QuestionUpdate

router = APIRouter(prefix=API_PREFIX, tags=["questions"])

require_staff = require_roles(*ADMIN_ROLES)
require_content = require_roles(*CONTENT_ROLES)


@router.get("/subjects/{slug}/questions")
async def list_questions(
    slug: str,
    chapter_id: str | None = None,
    difficulty: str | None = None,
    question_type: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    auth: AuthContext = Depends(require_staff),
) -> dict:
    """Paginated questions of a subject, newest first."""
    filters = {
        "chapter_id": chapter_id,
        "difficulty": difficulty,
        "question_type": question_type,
        "is_active": is_active,
        "search": search,
    }
    items = get_questions_by_subject(
        slug, limit=page_size, offset=(page - 1) * page_size, **filters
    )
    total = count_questions(slug, **filters)
    return {
        "items": [q.to_dict() for q in items],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size),
    }


@router.post("/subjects/{slug}/questions", status_code=status.HTTP_201_CREATED)
async def add_question(
    slug: str,
    body: QuestionCreate,
    auth: AuthContext = Depends(require_content),
) -> dict:
    """Create a question in a subject's bank."""
    return create_question(slug, created_by=auth.user_id, **body.model_dump()).to_dict()


@router.get("/subjects/{slug}/questions/stats")
async def question_stats(slug: str, auth: AuthContext = Depends(require_staff)) -> dict:
    """Question totals by difficulty, type and chapter."""
    return get_subject_question_stats(slug)


@router.post("/subjects/{slug}/questions/by-ids")
async def questions_by_ids(
    slug: str,
    body: QuestionIdsRequest,
    auth: AuthContext = Depends(get_auth),
) -> list[dict]:
    """Several questions at once; students get them without answers."""
    questions = get_questions_by_ids(slug, body.ids)
    if auth.role == "student":
        return [sanitize_question(q) for q in questions]
    return [q.to_dict() for q in questions]


@router.get("/subjects/{slug}/questions/{question_id}")
async def get_question(
    slug: str,
    question_id: str,
    auth: AuthContext = Depends(require_staff),
) -> dict:
    """One question."""
    question = get_question_by_id(slug, question_id)
    if question is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question '{question_id}' not found",
        )
    return question.to_dict()


@router.put("/subjects/{slug}/questions/{question_id}")
async def edit_question(
    slug: str,
    question_id: str,
    body: QuestionUpdate,
    auth: AuthContext = Depends(require_content),
) -> dict:
    """Update a question."""
    return update_question(slug, question_id, **body.model_dump(exclude_unset=True)).to_dict()


@router.delete("/subjects/{slug}/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_question(
    slug: str,
    question_id: str,
    auth: AuthContext = Depends(require_content),
) -> None:
    """Deactivate a question."""
    if not delete_question(slug, question_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question '{question_id}' not found",
        )


@router.get("/questions")
async def search_questions(
    search: str | None = None,
    difficulty: str | None = None,
    question_type: str | None = None,
    is_active: bool | None = None,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth: AuthContext = Depends(require_staff),
) -> list[dict]:
    """Questions across every subject's bank, newest first."""
    return search_all_questions(
        search=search,
        difficulty=difficulty,
        question_type=question_type,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )
