"""Repository functions for exam attempts (exams) and their answers."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from examadmin.db.database import dump_json, generate_id, get_db, load_json, now_iso
from examadmin.errors import NotFoundError

logger = structlog.get_logger(__name__)

# Legacy attempts count as passed at this score ratio
PASS_RATIO = 0.35


@dataclass
class ExamRecord:
    """Exam attempt record from database."""

    id: str
    user_id: str
    subject_id: str | None
    exam_structure_id: str | None
    scheduled_exam_id: str | None
    status: str
    score: int | None
    total_marks: int | None
    percentage: float | None
    current_question_index: int | None
    time_remaining_seconds: int | None
    started_at: str
    completed_at: str | None
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ExamAnswerRecord:
    """Exam answer record from database."""

    id: str
    exam_id: str
    question_id: str
    question_table: str
    user_answer: Any
    is_correct: bool | None
    marks_obtained: int
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_JOINED_SELECT = """
    SELECT e.*,
        p.name AS p_name, p.email AS p_email,
        s.name_en AS s_name_en, s.slug AS s_slug,
        es.name_en AS es_name_en,
        se.name_en AS se_name_en, se.class_level_id AS se_class_level_id,
        cl.name_en AS cl_name_en, cl.slug AS cl_slug
    FROM exams e
    LEFT JOIN profiles p ON p.id = e.user_id
    LEFT JOIN subjects s ON s.id = e.subject_id
    LEFT JOIN exam_structures es ON es.id = e.exam_structure_id
    LEFT JOIN scheduled_exams se ON se.id = e.scheduled_exam_id
    LEFT JOIN class_levels cl ON cl.id = se.class_level_id
"""


# =============================================================================
# ATTEMPTS
# =============================================================================


def list_exams(
    user_id: str | None = None,
    subject_id: str | None = None,
    status: str | None = None,
    class_level_id: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """List attempts newest first with their joined context.

    Returns:
        (items, total matching count)
    """
    clauses = []
    params: list[Any] = []
    if user_id:
        clauses.append("e.user_id = ?")
        params.append(user_id)
    if subject_id:
        clauses.append("e.subject_id = ?")
        params.append(subject_id)
    if status:
        clauses.append("e.status = ?")
        params.append(status)
    if class_level_id:
        clauses.append("se.class_level_id = ?")
        params.append(class_level_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    with get_db() as conn:
        total = conn.execute(
            f"""
            SELECT COUNT(*) FROM exams e
            LEFT JOIN scheduled_exams se ON se.id = e.scheduled_exam_id
            {where}
            """,
            params,
        ).fetchone()[0]
        rows = conn.execute(
            f"{_JOINED_SELECT} {where} ORDER BY e.started_at DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        ).fetchall()

    return [_row_to_joined_dict(row) for row in rows], total


def get_exam_by_id(exam_id: str) -> ExamRecord | None:
    """Get attempt by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM exams WHERE id = ?", (exam_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_exam_detail(exam_id: str) -> dict[str, Any] | None:
    """Get attempt with profile, subject, structure and scheduled exam."""
    with get_db() as conn:
        row = conn.execute(f"{_JOINED_SELECT} WHERE e.id = ?", (exam_id,)).fetchone()

    if row is None:
        return None

    return _row_to_joined_dict(row)


def find_in_progress_exam(user_id: str, scheduled_exam_id: str) -> ExamRecord | None:
    """The user's open attempt at a scheduled exam, if any."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT * FROM exams
            WHERE user_id = ? AND scheduled_exam_id = ? AND status = 'in_progress'
            ORDER BY started_at DESC LIMIT 1
            """,
            (user_id, scheduled_exam_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def count_completed_attempts(user_id: str, scheduled_exam_id: str) -> int:
    """Completed attempts by a user at a scheduled exam."""
    with get_db() as conn:
        return conn.execute(
            """
            SELECT COUNT(*) FROM exams
            WHERE user_id = ? AND scheduled_exam_id = ? AND status = 'completed'
            """,
            (user_id, scheduled_exam_id),
        ).fetchone()[0]


def create_exam(
    user_id: str,
    scheduled_exam_id: str | None = None,
    subject_id: str | None = None,
    exam_structure_id: str | None = None,
    total_marks: int | None = None,
    time_remaining_seconds: int | None = None,
) -> ExamRecord:
    """Start a new attempt in progress."""
    exam_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO exams (
                id, user_id, subject_id, exam_structure_id, scheduled_exam_id,
                status, score, total_marks, percentage, current_question_index,
                time_remaining_seconds, started_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, 'in_progress', NULL, ?, NULL, 0, ?, ?, ?, ?)
            """,
            (
                exam_id,
                user_id,
                subject_id,
                exam_structure_id,
                scheduled_exam_id,
                total_marks,
                time_remaining_seconds,
                now,
                now,
                now,
            ),
        )

    logger.info(
        "exams.started",
        exam_id=exam_id,
        user_id=user_id,
        scheduled_exam_id=scheduled_exam_id,
    )
    record = get_exam_by_id(exam_id)
    if record is None:
        raise NotFoundError("Exam", exam_id)
    return record


def mark_exam_completed(exam_id: str, score: int, percentage: float) -> ExamRecord:
    """Record the final score and close the attempt.

    Raises:
        NotFoundError: If the attempt doesn't exist
    """
    now = now_iso()
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE exams
            SET status = 'completed', score = ?, percentage = ?,
                completed_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (score, percentage, now, now, exam_id),
        )

    if cursor.rowcount == 0:
        raise NotFoundError("Exam", exam_id)

    logger.info("exams.completed", exam_id=exam_id, score=score, percentage=percentage)
    record = get_exam_by_id(exam_id)
    if record is None:
        raise NotFoundError("Exam", exam_id)
    return record


def delete_exam(exam_id: str) -> bool:
    """Hard-delete an attempt; its answers cascade.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM exams WHERE id = ?", (exam_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("exams.deleted", exam_id=exam_id)

    return deleted


def get_user_exam_stats(user_id: str) -> dict[str, Any]:
    """Summary of a user's attempts.

    Returns:
        Dict with total_exams, completed_exams, passed_exams, average_score
        and recent_exams (10 most recent)
    """
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM exams WHERE user_id = ? ORDER BY started_at DESC",
            (user_id,),
        ).fetchall()

    exams = [_row_to_record(row) for row in rows]
    completed = [e for e in exams if e.status == "completed"]
    passed = [
        e
        for e in completed
        if e.total_marks and e.score is not None and e.score / e.total_marks >= PASS_RATIO
    ]
    percentages = [e.percentage for e in completed if e.percentage is not None]

    return {
        "total_exams": len(exams),
        "completed_exams": len(completed),
        "passed_exams": len(passed),
        "average_score": round(sum(percentages) / len(percentages)) if percentages else 0,
        "recent_exams": [e.to_dict() for e in exams[:10]],
    }


# =============================================================================
# ANSWERS
# =============================================================================


def get_exam_answers(exam_id: str) -> list[ExamAnswerRecord]:
    """Answers of an attempt in the order they were given."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM exam_answers WHERE exam_id = ? ORDER BY created_at",
            (exam_id,),
        ).fetchall()

    return [_row_to_answer(row) for row in rows]


def upsert_answer(
    exam_id: str,
    question_id: str,
    question_table: str,
    user_answer: Any,
    is_correct: bool | None,
    marks_obtained: int,
) -> ExamAnswerRecord:
    """Save an answer, replacing an earlier answer to the same question."""
    correct = None if is_correct is None else int(is_correct)
    with get_db() as conn:
        existing = conn.execute(
            "SELECT id FROM exam_answers WHERE exam_id = ? AND question_id = ?",
            (exam_id, question_id),
        ).fetchone()

        if existing is not None:
            answer_id = existing["id"]
            conn.execute(
                """
                UPDATE exam_answers
                SET user_answer = ?, is_correct = ?, marks_obtained = ?, question_table = ?
                WHERE id = ?
                """,
                (dump_json(user_answer), correct, marks_obtained, question_table, answer_id),
            )
        else:
            answer_id = generate_id()
            conn.execute(
                """
                INSERT INTO exam_answers (
                    id, exam_id, question_id, question_table, user_answer,
                    is_correct, marks_obtained, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    answer_id,
                    exam_id,
                    question_id,
                    question_table,
                    dump_json(user_answer),
                    correct,
                    marks_obtained,
                    now_iso(),
                ),
            )
        row = conn.execute(
            "SELECT * FROM exam_answers WHERE id = ?", (answer_id,)
        ).fetchone()

    logger.info(
        "exams.answer_saved",
        exam_id=exam_id,
        question_id=question_id,
        updated=existing is not None,
    )
    return _row_to_answer(row)


def sum_marks_obtained(exam_id: str) -> int:
    """Total marks over an attempt's answers."""
    with get_db() as conn:
        return conn.execute(
            "SELECT COALESCE(SUM(marks_obtained), 0) FROM exam_answers WHERE exam_id = ?",
            (exam_id,),
        ).fetchone()[0]


def _row_to_joined_dict(row: sqlite3.Row) -> dict[str, Any]:
    data = _row_to_record(row).to_dict()
    data["profile"] = (
        {"id": row["user_id"], "name": row["p_name"], "email": row["p_email"]}
        if row["p_email"] is not None or row["p_name"] is not None
        else None
    )
    data["subject"] = (
        {"id": row["subject_id"], "name_en": row["s_name_en"], "slug": row["s_slug"]}
        if row["s_slug"] is not None
        else None
    )
    data["exam_structure"] = (
        {"id": row["exam_structure_id"], "name_en": row["es_name_en"]}
        if row["es_name_en"] is not None
        else None
    )
    data["scheduled_exam"] = (
        {"id": row["scheduled_exam_id"], "name_en": row["se_name_en"]}
        if row["se_name_en"] is not None
        else None
    )
    data["class_level"] = (
        {"id": row["se_class_level_id"], "name_en": row["cl_name_en"], "slug": row["cl_slug"]}
        if row["cl_slug"] is not None
        else None
    )
    return data


def _row_to_record(row: sqlite3.Row) -> ExamRecord:
    """Convert database row to ExamRecord."""
    return ExamRecord(
        id=row["id"],
        user_id=row["user_id"],
        subject_id=row["subject_id"],
        exam_structure_id=row["exam_structure_id"],
        scheduled_exam_id=row["scheduled_exam_id"],
        status=row["status"],
        score=row["score"],
        total_marks=row["total_marks"],
        percentage=row["percentage"],
        current_question_index=row["current_question_index"],
        time_remaining_seconds=row["time_remaining_seconds"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_answer(row: sqlite3.Row) -> ExamAnswerRecord:
    """Convert database row to ExamAnswerRecord."""
    return ExamAnswerRecord(
        id=row["id"],
        exam_id=row["exam_id"],
        question_id=row["question_id"],
        question_table=row["question_table"],
        user_answer=load_json(row["user_answer"]),
        is_correct=None if row["is_correct"] is None else bool(row["is_correct"]),
        marks_obtained=row["marks_obtained"],
        created_at=row["created_at"],
    )
