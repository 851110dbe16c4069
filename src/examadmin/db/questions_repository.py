"""Repository functions for the per-subject question banks.

Each supported subject stores its questions in its own table with an
identical layout. Every function takes the subject slug and resolves
the table through get_question_table().
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
from examadmin.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

QUESTION_TYPES = (
    "fill_blank",
    "true_false",
    "mcq_single",
    "mcq_two",
    "mcq_three",
    "match",
    "short_answer",
    "long_answer",
    "programming",
)

DIFFICULTIES = ("easy", "medium", "hard")

SUBJECT_TABLES = {
    "scholarship": "questions_scholarship",
    "english": "questions_english",
    "information-technology": "questions_information_technology",
    "information_technology": "questions_information_technology",
}

# Canonical slug and display name per table, for cross-subject listings
TABLE_SUBJECTS = {
    "questions_scholarship": ("scholarship", "Scholarship"),
    "questions_english": ("english", "English"),
    "questions_information_technology": ("information_technology", "Information Technology"),
}

QUESTION_TABLES = tuple(TABLE_SUBJECTS)

UPDATABLE_FIELDS = {
    "question_text",
    "question_language",
    "question_type",
    "difficulty",
    "answer_data",
    "explanation",
    "tags",
    "class_level",
    "marks",
    "chapter_id",
    "is_active",
}
NULLABLE_FIELDS = frozenset({"explanation", "tags", "chapter_id"})

JSON_FIELDS = frozenset({"answer_data", "tags"})


def is_subject_supported(slug: str) -> bool:
    """Check whether a subject slug has a question bank."""
    return slug in SUBJECT_TABLES


def get_question_table(slug: str) -> str:
    """Resolve the question table for a subject slug.

    Raises:
        ValidationError: If the subject has no question bank
    """
    table = SUBJECT_TABLES.get(slug)
    if table is None:
        raise ValidationError(f"Invalid subject: {slug}")
    return table


def default_language(slug: str) -> str:
    """Scholarship papers are in Marathi, the rest in English."""
    return "mr" if slug == "scholarship" else "en"


# =============================================================================
# RECORDS
# =============================================================================


@dataclass
class QuestionRecord:
    """Question record from database."""

    id: str
    question_text: str
    question_language: str
    question_type: str
    difficulty: str
    answer_data: dict[str, Any]
    explanation: str | None
    tags: list[str]
    class_level: str
    marks: int
    chapter_id: str | None
    is_active: bool
    created_by: str | None
    created_at: str
    updated_at: str
    table: str = field(default="", repr=False)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("table")
        return data


# =============================================================================
# QUERIES
# =============================================================================


def _build_filters(
    chapter_id: str | None = None,
    difficulty: str | None = None,
    question_type: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
) -> tuple[str, list[Any]]:
    """Build a WHERE clause from optional filters."""
    clauses = []
    params: list[Any] = []
    if chapter_id:
        clauses.append("chapter_id = ?")
        params.append(chapter_id)
    if difficulty:
        clauses.append("difficulty = ?")
        params.append(difficulty)
    if question_type:
        clauses.append("question_type = ?")
        params.append(question_type)
    if is_active is not None:
        clauses.append("is_active = ?")
        params.append(int(is_active))
    if search:
        clauses.append("lower(question_text) LIKE ?")
        params.append(f"%{search.lower()}%")

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


def get_questions_by_subject(
    slug: str,
    chapter_id: str | None = None,
    difficulty: str | None = None,
    question_type: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[QuestionRecord]:
    """List questions of a subject, newest first.

    Raises:
        ValidationError: If the subject is not supported
    """
    table = get_question_table(slug)
    where, params = _build_filters(chapter_id, difficulty, question_type, is_active, search)

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM {table} {where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        ).fetchall()

    return [_row_to_record(row, table) for row in rows]


def count_questions(
    slug: str,
    chapter_id: str | None = None,
    difficulty: str | None = None,
    question_type: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
) -> int:
    """Count questions of a subject matching the filters."""
    table = get_question_table(slug)
    where, params = _build_filters(chapter_id, difficulty, question_type, is_active, search)

    with get_db() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table} {where}", params).fetchone()[0]


def get_question_by_id(slug: str, question_id: str) -> QuestionRecord | None:
    """Get a question by ID."""
    table = get_question_table(slug)
    with get_db() as conn:
        row = conn.execute(
            f"SELECT * FROM {table} WHERE id = ?", (question_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row, table)


def get_questions_by_ids(slug: str, question_ids: list[str]) -> list[QuestionRecord]:
    """Get several questions of one subject."""
    if not question_ids:
        return []

    table = get_question_table(slug)
    placeholders = ", ".join("?" for _ in question_ids)
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM {table} WHERE id IN ({placeholders})",
            tuple(question_ids),
        ).fetchall()

    return [_row_to_record(row, table) for row in rows]


def get_question_from_table(table: str, question_id: str) -> QuestionRecord | None:
    """Get a question when only its table name is known (exam answers)."""
    if table not in QUESTION_TABLES:
        raise ValidationError(f"Unknown question table: {table}")

    with get_db() as conn:
        row = conn.execute(
            f"SELECT * FROM {table} WHERE id = ?", (question_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row, table)


def get_question_counts_by_chapter(slug: str, chapter_id: str) -> dict[str, dict[str, int]]:
    """Count active questions in a chapter by difficulty then type.

    Returns:
        Nested mapping, e.g. {"easy": {"mcq_single": 4}, "medium": {...}}
    """
    table = get_question_table(slug)
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT difficulty, question_type, COUNT(*) AS n FROM {table}
            WHERE chapter_id = ? AND is_active = 1
            GROUP BY difficulty, question_type
            """,
            (chapter_id,),
        ).fetchall()

    counts: dict[str, dict[str, int]] = {}
    for row in rows:
        counts.setdefault(row["difficulty"], {})[row["question_type"]] = row["n"]
    return counts


def get_questions_for_section_practice(
    slug: str, section: str, count: int = 10
) -> list[QuestionRecord]:
    """Random active questions tagged with a section name."""
    table = get_question_table(slug)
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT * FROM {table}
            WHERE is_active = 1
              AND EXISTS (SELECT 1 FROM json_each({table}.tags) WHERE value = ?)
            ORDER BY RANDOM()
            LIMIT ?
            """,
            (section, count),
        ).fetchall()

    return [_row_to_record(row, table) for row in rows]


def get_subject_question_stats(slug: str) -> dict[str, Any]:
    """Totals of a question bank by difficulty, type and chapter."""
    table = get_question_table(slug)
    with get_db() as conn:
        total = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        active = conn.execute(
            f"SELECT COUNT(*) FROM {table} WHERE is_active = 1"
        ).fetchone()[0]
        by_difficulty = conn.execute(
            f"""
            SELECT difficulty, COUNT(*) AS n FROM {table}
            WHERE is_active = 1 GROUP BY difficulty
            """
        ).fetchall()
        by_type = conn.execute(
            f"""
            SELECT question_type, COUNT(*) AS n FROM {table}
            WHERE is_active = 1 GROUP BY question_type
            """
        ).fetchall()
        by_chapter = conn.execute(
            f"""
            SELECT chapter_id, COUNT(*) AS n FROM {table}
            WHERE is_active = 1 GROUP BY chapter_id
            """
        ).fetchall()

    return {
        "total": total,
        "active": active,
        "by_difficulty": {r["difficulty"]: r["n"] for r in by_difficulty},
        "by_type": {r["question_type"]: r["n"] for r in by_type},
        "by_chapter": {(r["chapter_id"] or "unassigned"): r["n"] for r in by_chapter},
    }


def get_chapters_with_question_counts(slug: str) -> list[dict[str, Any]]:
    """Active chapters of a subject, each with its active question count."""
    from examadmin.db.chapters_repository import get_chapters_by_subject_slug

    table = get_question_table(slug)
    chapters = get_chapters_by_subject_slug(slug)

    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT chapter_id, COUNT(*) AS n FROM {table}
            WHERE is_active = 1 AND chapter_id IS NOT NULL
            GROUP BY chapter_id
            """
        ).fetchall()
    counts = {r["chapter_id"]: r["n"] for r in rows}

    results = []
    for chapter in chapters:
        data = chapter.to_dict()
        data["question_count"] = counts.get(chapter.id, 0)
        results.append(data)
    return results


def search_all_questions(
    search: str | None = None,
    difficulty: str | None = None,
    question_type: str | None = None,
    is_active: bool | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """Search every question bank and merge the results, newest first.

    Each item carries a "subject" {slug, name} naming its bank.
    """
    where, params = _build_filters(
        difficulty=difficulty,
        question_type=question_type,
        is_active=is_active,
        search=search,
    )

    merged: list[dict[str, Any]] = []
    with get_db() as conn:
        for table, (slug, name) in TABLE_SUBJECTS.items():
            rows = conn.execute(
                f"SELECT * FROM {table} {where} ORDER BY created_at DESC LIMIT ?",
                (*params, offset + limit),
            ).fetchall()
            for row in rows:
                data = _row_to_record(row, table).to_dict()
                data["subject"] = {"slug": slug, "name": name}
                merged.append(data)

    merged.sort(key=lambda q: q["created_at"], reverse=True)
    return merged[offset : offset + limit]


# =============================================================================
# WRITES
# =============================================================================


def _validate_question_fields(fields: dict[str, Any]) -> None:
    question_type = fields.get("question_type")
    if question_type is not None and question_type not in QUESTION_TYPES:
        raise ValidationError(f"Invalid question type: {question_type}")
    difficulty = fields.get("difficulty")
    if difficulty is not None and difficulty not in DIFFICULTIES:
        raise ValidationError(f"Invalid difficulty: {difficulty}")
    marks = fields.get("marks")
    if marks is not None and marks < 0:
        raise ValidationError("Marks cannot be negative")


def insert_questions(
    slug: str,
    rows: list[dict[str, Any]],
    created_by: str | None = None,
) -> list[QuestionRecord]:
    """Bulk insert questions into a subject's bank.

    Each row needs question_text, question_type and class_level; the
    rest falls back to column defaults.

    Returns:
        The inserted records, in input order
    """
    table = get_question_table(slug)
    for row in rows:
        _validate_question_fields(row)

    now = now_iso()
    ids = []
    with get_db() as conn:
        for row in rows:
            question_id = generate_id()
            ids.append(question_id)
            conn.execute(
                f"""
                INSERT INTO {table} (
                    id, question_text, question_language, question_type,
                    difficulty, answer_data, explanation, tags, class_level,
                    marks, chapter_id, is_active, created_by, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    question_id,
                    row["question_text"],
                    row.get("question_language") or default_language(slug),
                    row["question_type"],
                    row.get("difficulty") or "medium",
                    dump_json(row.get("answer_data") or {}),
                    row.get("explanation"),
                    dump_json(row.get("tags") or []),
                    row["class_level"],
                    row.get("marks") if row.get("marks") is not None else 1,
                    row.get("chapter_id"),
                    int(row.get("is_active", True)),
                    row.get("created_by") or created_by,
                    now,
                    now,
                ),
            )

    logger.info("questions.inserted", subject=slug, count=len(ids))
    records = {q.id: q for q in get_questions_by_ids(slug, ids)}
    return [records[qid] for qid in ids if qid in records]


def create_question(
    slug: str,
    question_text: str,
    question_type: str,
    class_level: str,
    answer_data: dict[str, Any],
    difficulty: str = "medium",
    marks: int = 1,
    chapter_id: str | None = None,
    explanation: str | None = None,
    tags: list[str] | None = None,
    question_language: str | None = None,
    created_by: str | None = None,
) -> QuestionRecord:
    """Create a single question.

    Raises:
        ValidationError: On unsupported subject, type or difficulty
    """
    inserted = insert_questions(
        slug,
        [
            {
                "question_text": question_text,
                "question_type": question_type,
                "class_level": class_level,
                "answer_data": answer_data,
                "difficulty": difficulty,
                "marks": marks,
                "chapter_id": chapter_id,
                "explanation": explanation,
                "tags": tags or [],
                "question_language": question_language,
            }
        ],
        created_by=created_by,
    )
    return inserted[0]


def update_question(slug: str, question_id: str, **fields: Any) -> QuestionRecord:
    """Partially update a question.

    Raises:
        NotFoundError: If the question doesn't exist
        ValidationError: On invalid type or difficulty
    """
    table = get_question_table(slug)
    _validate_question_fields(fields)

    update = build_update(table, fields, UPDATABLE_FIELDS, JSON_FIELDS, nullable=NULLABLE_FIELDS)

    if update is not None:
        sql, params = update
        with get_db() as conn:
            cursor = conn.execute(sql, (*params, question_id))
        if cursor.rowcount == 0:
            raise NotFoundError("Question", question_id)
        logger.info("questions.updated", subject=slug, question_id=question_id)

    record = get_question_by_id(slug, question_id)
    if record is None:
        raise NotFoundError("Question", question_id)
    return record


def delete_question(slug: str, question_id: str) -> bool:
    """Soft-delete a question.

    Returns:
        True if deactivated, False if not found
    """
    table = get_question_table(slug)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE {table} SET is_active = 0, updated_at = ? WHERE id = ?",
            (now_iso(), question_id),
        )

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("questions.deleted", subject=slug, question_id=question_id)

    return deleted


def _row_to_record(row: sqlite3.Row, table: str) -> QuestionRecord:
    """Convert database row to QuestionRecord."""
    return QuestionRecord(
        id=row["id"],
        question_text=row["question_text"],
        question_language=row["question_language"],
        question_type=row["question_type"],
        difficulty=row["difficulty"],
        answer_data=load_json(row["answer_data"], {}),
        explanation=row["explanation"],
        tags=load_json(row["tags"], []),
        class_level=row["class_level"],
        marks=row["marks"],
        chapter_id=row["chapter_id"],
        is_active=bool(row["is_active"]),
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        table=table,
    )
