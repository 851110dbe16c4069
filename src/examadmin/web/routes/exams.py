"""Exam attempt endpoints: start, answer, complete, review."""

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from examadmin.core import exam_attempts
from examadmin.core.auth import AuthContext
from examadmin.web.deps import API_PREFIX, get_auth, unwrap
from examadmin.web.schemas import StartExamRequest, SubmitAnswerRequest

router = APIRouter(prefix=f"{API_PREFIX}/exams", tags=["exams"])


@router.get("")
async def list_attempts(
    user_id: str | None = None,
    subject_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    class_level_id: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth: AuthContext = Depends(get_auth),
) -> dict:
    """Paginated attempts; students only see their own."""
    return exam_attempts.list_exams(
        auth,
        user_id=user_id,
        subject_id=subject_id,
        status=status_filter,
        class_level_id=class_level_id,
        page=page,
        page_size=page_size,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_attempt(body: StartExamRequest, auth: AuthContext = Depends(get_auth)) -> dict:
    """Start an attempt, or resume the one in progress."""
    return exam_attempts.start_exam(auth, body.scheduled_exam_id)


@router.get("/{exam_id}")
async def get_attempt(exam_id: str, auth: AuthContext = Depends(get_auth)) -> dict:
    """One attempt with its joined context."""
    return exam_attempts.get_exam(auth, exam_id)


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attempt(exam_id: str, auth: AuthContext = Depends(get_auth)) -> None:
    """Delete an attempt and its answers (admins only)."""
    unwrap(exam_attempts.delete_exam(auth, exam_id))


@router.get("/{exam_id}/answers")
async def attempt_answers(
    exam_id: str,
    detailed: bool = True,
    auth: AuthContext = Depends(get_auth),
) -> Any:
    """Answer review with questions and summary, or the raw answers."""
    if detailed:
        return exam_attempts.get_exam_answer_review(auth, exam_id)
    return exam_attempts.get_exam_answers(auth, exam_id)


@router.post("/{exam_id}/answers")
async def submit(
    exam_id: str,
    body: SubmitAnswerRequest,
    auth: AuthContext = Depends(get_auth),
) -> dict:
    """Grade and store one answer."""
    return exam_attempts.submit_answer(
        auth, exam_id, body.question_id, body.subject_slug, body.user_answer
    )


@router.post("/{exam_id}/complete")
async def complete(exam_id: str, auth: AuthContext = Depends(get_auth)) -> dict:
    """Total the answers and close the attempt."""
    return exam_attempts.complete_exam(auth, exam_id)
