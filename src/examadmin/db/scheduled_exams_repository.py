"""Repository functions for scheduled_exams.

A scheduled exam is a concrete paper for one class level and subject,
optionally built from an exam structure. Listing joins the class level,
subject and structure so routes can render them without extra lookups.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from examadmin.db.database import build_update, generate_id, get_db, now_iso
from examadmin.errors import OperationResult
from examadmin.utils.text_utils import slug_variants
from examadmin.utils.validators import is_valid_date, is_valid_time

logger = structlog.get_logger(__name__)

EXAM_STATUSES = ("draft", "scheduled", "active", "completed", "cancelled")

# Statuses a student can see and start
OPEN_STATUSES = ("scheduled", "active")

UPDATABLE_FIELDS = {
    "class_level_id",
    "subject_id",
    "exam_structure_id",
    "name_en",
    "name_mr",
    "description_en",
    "description_mr",
    "total_marks",
    "duration_minutes",
    "scheduled_date",
    "scheduled_time",
    "status",
    "order_index",
    "is_active",
    "publish_results",
    "max_attempts",
}
NULLABLE_FIELDS = frozenset(
    {"exam_structure_id", "description_en", "description_mr", "scheduled_date", "scheduled_time"}
)

_JOINED_SELECT = """
    SELECT se.*,
        cl.name_en AS cl_name_en, cl.name_mr AS cl_name_mr, cl.slug AS cl_slug,
        s.name_en AS s_name_en, s.name_mr AS s_name_mr, s.slug AS s_slug,
        es.name_en AS es_name_en,
        es.passing_percentage AS es_passing_percentage
    FROM scheduled_exams se
    LEFT JOIN class_levels cl ON cl.id = se.class_level_id
    LEFT JOIN subjects s ON s.id = se.subject_id
    LEFT JOIN exam_structures es ON es.id = se.exam_structure_id
"""


@dataclass
class ScheduledExamRecord:
    """Scheduled exam record from database."""

    id: str
    class_level_id: str
    subject_id: str
    exam_structure_id: str | None
    name_en: str
    name_mr: str
    description_en: str | None
    description_mr: str | None
    total_marks: int
    duration_minutes: int
    scheduled_date: str | None
    scheduled_time: str | None
    status: str
    order_index: int
    is_active: bool
    publish_results: bool
    max_attempts: int
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# QUERIES
# =============================================================================


def list_scheduled_exams(
    subject_id: str | None = None,
    subject_slug: str | None = None,
    class_level_id: str | None = None,
    status: str | None = None,
) -> list[dict[str, Any]]:
    """List active scheduled exams ordered by order_index.

    Args:
        subject_id: Filter by subject ID
        subject_slug: Filter by subject slug (used when no subject_id)
        class_level_id: Filter by class level
        status: Filter by status; "all" disables the filter
    """
    clauses = ["se.is_active = 1"]
    params: list[Any] = []
    if subject_id:
        clauses.append("se.subject_id = ?")
        params.append(subject_id)
    elif subject_slug:
        variants = slug_variants(subject_slug)
        clauses.append(f"s.slug IN ({', '.join('?' for _ in variants)})")
        params.extend(variants)
    if class_level_id:
        clauses.append("se.class_level_id = ?")
        params.append(class_level_id)
    if status and status != "all":
        clauses.append("se.status = ?")
        params.append(status)

    with get_db() as conn:
        rows = conn.execute(
            f"{_JOINED_SELECT} WHERE {' AND '.join(clauses)} ORDER BY se.order_index",
            params,
        ).fetchall()

    return [_row_to_joined_dict(row) for row in rows]


def list_scheduled_exams_for_class_level(
    class_level_id: str, subject_id: str | None = None
) -> list[dict[str, Any]]:
    """Open (scheduled or active) exams of a class level."""
    sql = f"""
        {_JOINED_SELECT}
        WHERE se.class_level_id = ? AND se.is_active = 1
          AND se.status IN ({', '.join('?' for _ in OPEN_STATUSES)})
    """
    params: list[Any] = [class_level_id, *OPEN_STATUSES]
    if subject_id:
        sql += " AND se.subject_id = ?"
        params.append(subject_id)

    with get_db() as conn:
        rows = conn.execute(f"{sql} ORDER BY se.order_index", params).fetchall()

    return [_row_to_joined_dict(row) for row in rows]


def get_scheduled_exam_record(exam_id: str) -> ScheduledExamRecord | None:
    """Get scheduled exam by ID, without joins."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM scheduled_exams WHERE id = ?", (exam_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_scheduled_exam(exam_id: str) -> dict[str, Any] | None:
    """Get a scheduled exam with joins and attempt counts."""
    with get_db() as conn:
        row = conn.execute(
            f"{_JOINED_SELECT} WHERE se.id = ?", (exam_id,)
        ).fetchone()
        if row is None:
            return None
        counts = conn.execute(
            """
            SELECT COUNT(*) AS attempts,
                COALESCE(SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END), 0) AS completed
            FROM exams WHERE scheduled_exam_id = ?
            """,
            (exam_id,),
        ).fetchone()

    data = _row_to_joined_dict(row)
    data["attempts_count"] = counts["attempts"]
    data["completed_attempts"] = counts["completed"]
    return data


def get_user_attempt_counts(
    user_id: str, exam_ids: list[str]
) -> tuple[dict[str, int], set[str]]:
    """Per-exam completed attempt counts and in-progress exams for a user.

    Returns:
        (completed counts by scheduled exam id, ids with an attempt in progress)
    """
    if not exam_ids:
        return {}, set()

    placeholders = ", ".join("?" for _ in exam_ids)
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT scheduled_exam_id, status, COUNT(*) AS n FROM exams
            WHERE user_id = ? AND scheduled_exam_id IN ({placeholders})
            GROUP BY scheduled_exam_id, status
            """,
            (user_id, *exam_ids),
        ).fetchall()

    completed: dict[str, int] = {}
    in_progress: set[str] = set()
    for row in rows:
        if row["status"] == "completed":
            completed[row["scheduled_exam_id"]] = row["n"]
        elif row["status"] == "in_progress":
            in_progress.add(row["scheduled_exam_id"])
    return completed, in_progress


def get_scheduled_exam_stats(
    exam_id: str, passing_percentage: int = 35
) -> dict[str, Any]:
    """Attempt statistics for one scheduled exam.

    The passing threshold comes from the linked structure when there is one.
    """
    with get_db() as conn:
        structure = conn.execute(
            """
            SELECT es.passing_percentage FROM scheduled_exams se
            JOIN exam_structures es ON es.id = se.exam_structure_id
            WHERE se.id = ?
            """,
            (exam_id,),
        ).fetchone()
        rows = conn.execute(
            "SELECT status, percentage FROM exams WHERE scheduled_exam_id = ?",
            (exam_id,),
        ).fetchall()

    if structure is not None:
        passing_percentage = structure["passing_percentage"]

    completed = [r["percentage"] or 0 for r in rows if r["status"] == "completed"]
    in_progress = sum(1 for r in rows if r["status"] == "in_progress")
    pass_count = sum(1 for p in completed if p >= passing_percentage)

    return {
        "total_attempts": len(rows),
        "completed": len(completed),
        "in_progress": in_progress,
        "average_percentage": round(sum(completed) / len(completed), 2) if completed else 0,
        "highest": max(completed) if completed else 0,
        "lowest": min(completed) if completed else 0,
        "pass_count": pass_count,
        "pass_rate": round(pass_count / len(completed) * 100, 2) if completed else 0,
    }


def count_scheduled_exams_by_subject(class_level_id: str | None = None) -> dict[str, int]:
    """Active scheduled exam counts keyed by subject ID."""
    sql = "SELECT subject_id, COUNT(*) AS n FROM scheduled_exams WHERE is_active = 1"
    params: list[Any] = []
    if class_level_id:
        sql += " AND class_level_id = ?"
        params.append(class_level_id)
    sql += " GROUP BY subject_id"

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    return {row["subject_id"]: row["n"] for row in rows}


# =============================================================================
# WRITES
# =============================================================================


def _validate_schedule_fields(fields: dict[str, Any]) -> str | None:
    status = fields.get("status")
    if status is not None and status not in EXAM_STATUSES:
        return f"Invalid status: {status}"
    date = fields.get("scheduled_date")
    if date is not None and not is_valid_date(date):
        return f"Invalid scheduled_date: {date}"
    time = fields.get("scheduled_time")
    if time is not None and not is_valid_time(time):
        return f"Invalid scheduled_time: {time}"
    max_attempts = fields.get("max_attempts")
    if max_attempts is not None and max_attempts < 0:
        return "max_attempts cannot be negative"
    return None


def create_scheduled_exam(
    class_level_id: str,
    subject_id: str,
    name_en: str,
    name_mr: str | None = None,
    exam_structure_id: str | None = None,
    description_en: str | None = None,
    description_mr: str | None = None,
    total_marks: int | None = None,
    duration_minutes: int | None = None,
    scheduled_date: str | None = None,
    scheduled_time: str | None = None,
    status: str = "draft",
    is_active: bool = True,
    publish_results: bool = False,
    max_attempts: int = 0,
) -> OperationResult:
    """Schedule an exam.

    Marks and duration fall back to the structure's, then to 100 and 60.
    The order_index is the next one within (class level, subject).
    """
    error = _validate_schedule_fields(
        {
            "status": status,
            "scheduled_date": scheduled_date,
            "scheduled_time": scheduled_time,
            "max_attempts": max_attempts,
        }
    )
    if error:
        return OperationResult.fail(error)

    exam_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        if conn.execute(
            "SELECT 1 FROM class_levels WHERE id = ?", (class_level_id,)
        ).fetchone() is None:
            return OperationResult.fail("Class level not found")
        if conn.execute(
            "SELECT 1 FROM subjects WHERE id = ?", (subject_id,)
        ).fetchone() is None:
            return OperationResult.fail("Subject not found")

        if exam_structure_id:
            structure = conn.execute(
                "SELECT total_marks, duration_minutes FROM exam_structures WHERE id = ?",
                (exam_structure_id,),
            ).fetchone()
            if structure is None:
                return OperationResult.fail("Exam structure not found")
            if total_marks is None:
                total_marks = structure["total_marks"]
            if duration_minutes is None:
                duration_minutes = structure["duration_minutes"]

        max_order = conn.execute(
            """
            SELECT MAX(order_index) FROM scheduled_exams
            WHERE class_level_id = ? AND subject_id = ?
            """,
            (class_level_id, subject_id),
        ).fetchone()[0]

        conn.execute(
            """
            INSERT INTO scheduled_exams (
                id, class_level_id, subject_id, exam_structure_id, name_en, name_mr,
                description_en, description_mr, total_marks, duration_minutes,
                scheduled_date, scheduled_time, status, order_index, is_active,
                publish_results, max_attempts, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                exam_id,
                class_level_id,
                subject_id,
                exam_structure_id,
                name_en,
                name_mr or name_en,
                description_en,
                description_mr,
                total_marks if total_marks is not None else 100,
                duration_minutes if duration_minutes is not None else 60,
                scheduled_date,
                scheduled_time,
                status,
                0 if max_order is None else max_order + 1,
                int(is_active),
                int(publish_results),
                max_attempts,
                now,
                now,
            ),
        )

    logger.info(
        "scheduled_exams.created",
        scheduled_exam_id=exam_id,
        class_level_id=class_level_id,
        subject_id=subject_id,
    )
    return OperationResult.ok(get_scheduled_exam_record(exam_id))


def update_scheduled_exam(exam_id: str, **fields: Any) -> OperationResult:
    """Partially update a scheduled exam."""
    if get_scheduled_exam_record(exam_id) is None:
        return OperationResult.fail("Scheduled exam not found")

    error = _validate_schedule_fields(fields)
    if error:
        return OperationResult.fail(error)

    update = build_update("scheduled_exams", fields, UPDATABLE_FIELDS, nullable=NULLABLE_FIELDS)
    if update is not None:
        sql, params = update
        try:
            with get_db() as conn:
                conn.execute(sql, (*params, exam_id))
        except sqlite3.IntegrityError as e:
            logger.warning("scheduled_exams.update_failed", scheduled_exam_id=exam_id, error=str(e))
            return OperationResult.fail(f"Invalid reference: {e}")
        logger.info("scheduled_exams.updated", scheduled_exam_id=exam_id)

    return OperationResult.ok(get_scheduled_exam_record(exam_id))


def delete_scheduled_exam(exam_id: str) -> OperationResult:
    """Soft-delete a scheduled exam."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE scheduled_exams SET is_active = 0, updated_at = ? WHERE id = ?",
            (now_iso(), exam_id),
        )

    if cursor.rowcount == 0:
        return OperationResult.fail("Scheduled exam not found")

    logger.info("scheduled_exams.deleted", scheduled_exam_id=exam_id)
    return OperationResult.ok()


def _row_to_joined_dict(row: sqlite3.Row) -> dict[str, Any]:
    data = _row_to_record(row).to_dict()
    data["class_level"] = (
        {
            "id": row["class_level_id"],
            "name_en": row["cl_name_en"],
            "name_mr": row["cl_name_mr"],
            "slug": row["cl_slug"],
        }
        if row["cl_slug"] is not None
        else None
    )
    data["subject"] = (
        {
            "id": row["subject_id"],
            "name_en": row["s_name_en"],
            "name_mr": row["s_name_mr"],
            "slug": row["s_slug"],
        }
        if row["s_slug"] is not None
        else None
    )
    data["exam_structure"] = (
        {
            "id": row["exam_structure_id"],
            "name_en": row["es_name_en"],
            "passing_percentage": row["es_passing_percentage"],
        }
        if row["es_name_en"] is not None
        else None
    )
    return data


def _row_to_record(row: sqlite3.Row) -> ScheduledExamRecord:
    """Convert database row to ScheduledExamRecord."""
    return ScheduledExamRecord(
        id=row["id"],
        class_level_id=row["class_level_id"],
        subject_id=row["subject_id"],
        exam_structure_id=row["exam_structure_id"],
        name_en=row["name_en"],
        name_mr=row["name_mr"],
        description_en=row["description_en"],
        description_mr=row["description_mr"],
        total_marks=row["total_marks"],
        duration_minutes=row["duration_minutes"],
        scheduled_date=row["scheduled_date"],
        scheduled_time=row["scheduled_time"],
        status=row["status"],
        order_index=row["order_index"],
        is_active=bool(row["is_active"]),
        publish_results=bool(row["publish_results"]),
        max_attempts=row["max_attempts"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
