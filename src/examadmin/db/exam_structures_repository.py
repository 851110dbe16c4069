"""Repository functions for exam_structures (exam blueprints).

A structure's sections are stored as a JSON list of dicts:
    {code, name_en, name_mr, question_type, question_count,
     marks_per_question, total_marks, order_index,
     chapter_ids?, chapter_configs?}
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from examadmin.db.database import (
    build_update,
    dump_json,
    generate_id,
    get_db,
    load_json,
    now_iso,
)
from examadmin.errors import NotFoundError, OperationResult

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {
    "subject_id",
    "class_level_id",
    "name_en",
    "name_mr",
    "description_en",
    "description_mr",
    "class_level",
    "duration_minutes",
    "total_questions",
    "total_marks",
    "passing_percentage",
    "sections",
    "is_template",
    "order_index",
    "is_active",
}
NULLABLE_FIELDS = frozenset(
    {"subject_id", "class_level_id", "description_en", "description_mr", "class_level"}
)

JSON_FIELDS = frozenset({"sections"})


@dataclass
class ExamStructureRecord:
    """Exam structure record from database."""

    id: str
    subject_id: str | None
    class_level_id: str | None
    name_en: str
    name_mr: str
    description_en: str | None
    description_mr: str | None
    class_level: str | None
    duration_minutes: int
    total_questions: int
    total_marks: int
    passing_percentage: int
    sections: list[dict[str, Any]] = field(default_factory=list)
    is_template: bool = False
    order_index: int = 0
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def list_exam_structures(
    subject_id: str | None = None,
    class_level_id: str | None = None,
) -> list[dict[str, Any]]:
    """Active structures ordered by order_index, each with its subject.

    Returns:
        Dicts with a "subject" {id, name_en, slug} or None
    """
    clauses = ["es.is_active = 1"]
    params: list[Any] = []
    if subject_id:
        clauses.append("es.subject_id = ?")
        params.append(subject_id)
    if class_level_id:
        clauses.append("es.class_level_id = ?")
        params.append(class_level_id)

    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT es.*, s.name_en AS subject_name_en, s.slug AS subject_slug
            FROM exam_structures es
            LEFT JOIN subjects s ON s.id = es.subject_id
            WHERE {' AND '.join(clauses)}
            ORDER BY es.order_index
            """,
            params,
        ).fetchall()

    results = []
    for row in rows:
        data = _row_to_record(row).to_dict()
        data["subject"] = (
            {
                "id": row["subject_id"],
                "name_en": row["subject_name_en"],
                "slug": row["subject_slug"],
            }
            if row["subject_slug"] is not None
            else None
        )
        results.append(data)
    return results


def list_available_exam_structures(class_level_id: str | None = None) -> list[dict[str, Any]]:
    """Structures usable when scheduling an exam.

    Templates are always offered; others only for their class level.
    """
    structures = list_exam_structures()
    if class_level_id is None:
        return structures
    return [
        s
        for s in structures
        if s["is_template"] or s["class_level_id"] in (None, class_level_id)
    ]


def get_exam_structure(structure_id: str) -> ExamStructureRecord | None:
    """Get exam structure by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM exam_structures WHERE id = ?", (structure_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def create_exam_structure(
    name_en: str,
    name_mr: str | None = None,
    subject_id: str | None = None,
    class_level_id: str | None = None,
    class_level: str | None = None,
    description_en: str | None = None,
    description_mr: str | None = None,
    duration_minutes: int = 60,
    total_questions: int = 50,
    total_marks: int = 100,
    passing_percentage: int = 35,
    sections: list[dict[str, Any]] | None = None,
    is_template: bool = False,
    order_index: int = 0,
) -> ExamStructureRecord:
    """Create an exam structure.

    Returns:
        The created ExamStructureRecord
    """
    structure_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO exam_structures (
                id, subject_id, class_level_id, name_en, name_mr,
                description_en, description_mr, class_level, duration_minutes,
                total_questions, total_marks, passing_percentage, sections,
                is_template, order_index, is_active, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
            """,
            (
                structure_id,
                subject_id,
                class_level_id,
                name_en,
                name_mr or name_en,
                description_en,
                description_mr,
                class_level,
                duration_minutes,
                total_questions,
                total_marks,
                passing_percentage,
                dump_json(sections or []),
                int(is_template),
                order_index,
                now,
                now,
            ),
        )

    logger.info(
        "exam_structures.created",
        structure_id=structure_id,
        sections=len(sections or []),
    )
    record = get_exam_structure(structure_id)
    if record is None:
        raise NotFoundError("Exam structure", structure_id)
    return record


def update_exam_structure(structure_id: str, **fields: Any) -> OperationResult:
    """Partially update an exam structure."""
    if get_exam_structure(structure_id) is None:
        return OperationResult.fail("Exam structure not found")

    update = build_update(
        "exam_structures", fields, UPDATABLE_FIELDS, JSON_FIELDS, nullable=NULLABLE_FIELDS
    )
    if update is not None:
        sql, params = update
        with get_db() as conn:
            conn.execute(sql, (*params, structure_id))
        logger.info("exam_structures.updated", structure_id=structure_id)

    return OperationResult.ok(get_exam_structure(structure_id))


def delete_exam_structure(structure_id: str) -> OperationResult:
    """Soft-delete an exam structure."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE exam_structures SET is_active = 0, updated_at = ? WHERE id = ?",
            (now_iso(), structure_id),
        )

    if cursor.rowcount == 0:
        return OperationResult.fail("Exam structure not found")

    logger.info("exam_structures.deleted", structure_id=structure_id)
    return OperationResult.ok()


def _row_to_record(row: sqlite3.Row) -> ExamStructureRecord:
    """Convert database row to ExamStructureRecord."""
    return ExamStructureRecord(
        id=row["id"],
        subject_id=row["subject_id"],
        class_level_id=row["class_level_id"],
        name_en=row["name_en"],
        name_mr=row["name_mr"],
        description_en=row["description_en"],
        description_mr=row["description_mr"],
        class_level=row["class_level"],
        duration_minutes=row["duration_minutes"],
        total_questions=row["total_questions"],
        total_marks=row["total_marks"],
        passing_percentage=row["passing_percentage"],
        sections=load_json(row["sections"], []),
        is_template=bool(row["is_template"]),
        order_index=row["order_index"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
