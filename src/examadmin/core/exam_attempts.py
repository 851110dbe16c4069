"""Exam attempt workflows: listing, taking, grading and reviewing.

Every function takes the caller's AuthContext. Students only see and
touch their own attempts; staff roles see everyone's.
"""

from __future__ import annotations

import math
from typing import Any

import structlog

from examadmin.config.app_config import load_app_config
from examadmin.core.auth import AuthContext
from examadmin.core.scoring import (
    calculate_exam_stats,
    check_answer,
    format_correct_answer,
    format_user_answer,
    grade_answer,
    requires_manual_grading,
)
from examadmin.core.security import is_admin_role
from examadmin.db import exams_repository
from examadmin.db.chapters_repository import get_chapters_by_ids
from examadmin.db.exam_structures_repository import get_exam_structure
from examadmin.db.questions_repository import (
    get_question_by_id,
    get_question_from_table,
    get_question_table,
)
from examadmin.db.scheduled_exams_repository import OPEN_STATUSES, get_scheduled_exam_record
from examadmin.errors import (
    ConflictError,
    NotFoundError,
    OperationResult,
    PermissionDeniedError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def _is_student(auth: AuthContext) -> bool:
    return auth.role == "student"


def _load_owned_exam(auth: AuthContext, exam_id: str) -> exams_repository.ExamRecord:
    """Fetch an attempt the caller may read.

    Raises:
        NotFoundError: If the attempt doesn't exist
        PermissionDeniedError: If a student asks for someone else's attempt
    """
    exam = exams_repository.get_exam_by_id(exam_id)
    if exam is None:
        raise NotFoundError("Exam", exam_id)
    if _is_student(auth) and exam.user_id != auth.user_id:
        raise PermissionDeniedError("You can only access your own exams")
    return exam


def list_exams(
    auth: AuthContext,
    user_id: str | None = None,
    subject_id: str | None = None,
    status: str | None = None,
    class_level_id: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> dict[str, Any]:
    """Paginated attempts, restricted to the caller's own for students.

    Returns:
        {items, total, page, page_size, total_pages}
    """
    page = max(page, 1)
    page_size = max(page_size, 1)
    if _is_student(auth):
        user_id = auth.user_id

    items, total = exams_repository.list_exams(
        user_id=user_id,
        subject_id=subject_id,
        status=status,
        class_level_id=class_level_id,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size),
    }


def get_exam(auth: AuthContext, exam_id: str) -> dict[str, Any]:
    """One attempt with its joined context."""
    _load_owned_exam(auth, exam_id)
    detail = exams_repository.get_exam_detail(exam_id)
    if detail is None:
        raise NotFoundError("Exam", exam_id)
    return detail


def delete_exam(auth: AuthContext, exam_id: str) -> OperationResult:
    """Remove an attempt and its answers. Admins only.

    Raises:
        PermissionDeniedError: If the caller is not an admin
    """
    if not is_admin_role(auth.role):
        raise PermissionDeniedError("Only admins can delete exams")

    if not exams_repository.delete_exam(exam_id):
        return OperationResult.fail("Exam not found")
    return OperationResult.ok()


def get_user_exam_stats(user_id: str) -> dict[str, Any]:
    """Attempt summary for a user."""
    return exams_repository.get_user_exam_stats(user_id)


def get_exam_answers(auth: AuthContext, exam_id: str) -> list[dict[str, Any]]:
    """Raw answers of an attempt, oldest first."""
    _load_owned_exam(auth, exam_id)
    return [a.to_dict() for a in exams_repository.get_exam_answers(exam_id)]


def _passing_percentage(exam: exams_repository.ExamRecord) -> int:
    if exam.exam_structure_id:
        structure = get_exam_structure(exam.exam_structure_id)
        if structure is not None:
            return structure.passing_percentage
    return load_app_config().exams.passing_percentage


def get_exam_answer_review(auth: AuthContext, exam_id: str) -> dict[str, Any]:
    """Answers enriched with their questions for a result screen.

    Returns:
        {"exam": attempt, "answers": [...], "summary": exam stats}
    """
    exam = _load_owned_exam(auth, exam_id)
    answers = exams_repository.get_exam_answers(exam_id)

    questions = {}
    for answer in answers:
        question = get_question_from_table(answer.question_table, answer.question_id)
        if question is not None:
            questions[answer.question_id] = question

    chapter_ids = sorted({q.chapter_id for q in questions.values() if q.chapter_id})
    chapter_names = {c.id: c.name_en for c in get_chapters_by_ids(chapter_ids)}

    reviewed = []
    for answer in answers:
        question = questions.get(answer.question_id)
        item = answer.to_dict()
        if question is None:
            item.update(
                question=None,
                chapter_name=None,
                user_answer_formatted=format_user_answer(answer.user_answer, "", None),
                correct_answer_formatted="N/A",
                requires_manual_grading=False,
            )
        else:
            item.update(
                question=question.to_dict(),
                chapter_name=chapter_names.get(question.chapter_id or ""),
                is_correct=check_answer(question, answer.user_answer),
                user_answer_formatted=format_user_answer(
                    answer.user_answer, question.question_type, question.answer_data
                ),
                correct_answer_formatted=format_correct_answer(
                    question.question_type, question.answer_data
                ),
                requires_manual_grading=requires_manual_grading(question.question_type),
            )
        reviewed.append(item)

    total_marks = exam.total_marks or sum(q.marks for q in questions.values())
    summary = calculate_exam_stats(answers, total_marks, _passing_percentage(exam))

    return {"exam": exam.to_dict(), "answers": reviewed, "summary": summary.to_dict()}


def start_exam(auth: AuthContext, scheduled_exam_id: str) -> dict[str, Any]:
    """Begin (or resume) the caller's attempt at a scheduled exam.

    Returns:
        {"exam": attempt dict, "resumed": bool}

    Raises:
        NotFoundError: If the scheduled exam doesn't exist
        ValidationError: If the exam is not open
        ConflictError: If the attempt limit is reached
    """
    scheduled = get_scheduled_exam_record(scheduled_exam_id)
    if scheduled is None or not scheduled.is_active:
        raise NotFoundError("Scheduled exam", scheduled_exam_id)
    if scheduled.status not in OPEN_STATUSES:
        raise ValidationError(f"Exam is not available (status: {scheduled.status})")

    existing = exams_repository.find_in_progress_exam(auth.user_id, scheduled_exam_id)
    if existing is not None:
        logger.info("exams.resumed", exam_id=existing.id, user_id=auth.user_id)
        return {"exam": existing.to_dict(), "resumed": True}

    if scheduled.max_attempts > 0:
        completed = exams_repository.count_completed_attempts(auth.user_id, scheduled_exam_id)
        if completed >= scheduled.max_attempts:
            raise ConflictError(
                f"Maximum attempts ({scheduled.max_attempts}) reached for this exam"
            )

    exam = exams_repository.create_exam(
        user_id=auth.user_id,
        scheduled_exam_id=scheduled.id,
        subject_id=scheduled.subject_id,
        exam_structure_id=scheduled.exam_structure_id,
        total_marks=scheduled.total_marks,
        time_remaining_seconds=scheduled.duration_minutes * 60,
    )
    return {"exam": exam.to_dict(), "resumed": False}


def _load_open_exam(auth: AuthContext, exam_id: str) -> exams_repository.ExamRecord:
    exam = exams_repository.get_exam_by_id(exam_id)
    if exam is None:
        raise NotFoundError("Exam", exam_id)
    if exam.user_id != auth.user_id:
        raise PermissionDeniedError("You can only answer your own exams")
    if exam.status != "in_progress":
        raise ValidationError(f"Exam is not in progress (status: {exam.status})")
    return exam


def submit_answer(
    auth: AuthContext,
    exam_id: str,
    question_id: str,
    subject_slug: str,
    user_answer: Any,
) -> dict[str, Any]:
    """Grade and store an answer; re-answering replaces the earlier one.

    Returns:
        The stored answer plus requires_manual_grading
    """
    _load_open_exam(auth, exam_id)
    table = get_question_table(subject_slug)
    question = get_question_by_id(subject_slug, question_id)
    if question is None:
        raise NotFoundError("Question", question_id)

    grade = grade_answer(question, user_answer)
    answer = exams_repository.upsert_answer(
        exam_id=exam_id,
        question_id=question_id,
        question_table=table,
        user_answer=user_answer,
        is_correct=None if grade.requires_manual_grading else grade.is_correct,
        marks_obtained=grade.marks_obtained,
    )

    data = answer.to_dict()
    data["requires_manual_grading"] = grade.requires_manual_grading
    return data


def complete_exam(auth: AuthContext, exam_id: str) -> dict[str, Any]:
    """Total the answers and close the attempt."""
    exam = _load_open_exam(auth, exam_id)
    score = exams_repository.sum_marks_obtained(exam_id)
    percentage = round(score / exam.total_marks * 100, 2) if exam.total_marks else 0.0

    completed = exams_repository.mark_exam_completed(exam_id, score, percentage)
    return completed.to_dict()
