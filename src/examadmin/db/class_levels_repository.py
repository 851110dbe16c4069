"""Repository functions for class_levels and subject_class_mappings.

Class levels are soft-deleted (is_active = 0). Slug lookups are
case-insensitive and only see active rows.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from examadmin.db.database import build_update, generate_id, get_db, now_iso
from examadmin.errors import ConflictError, NotFoundError, OperationResult
from examadmin.utils.text_utils import generate_slug

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {
    "name_en",
    "name_mr",
    "slug",
    "description_en",
    "description_mr",
    "order_index",
    "is_active",
}
NULLABLE_FIELDS = frozenset({"description_en", "description_mr"})


@dataclass
class ClassLevelRecord:
    """Class level record from database."""

    id: str
    name_en: str
    name_mr: str
    slug: str
    description_en: str | None
    description_mr: str | None
    order_index: int
    is_active: bool
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ClassLevelStats:
    """Usage counters for a class level."""

    student_count: int = 0
    exam_structure_count: int = 0
    scheduled_exam_count: int = 0
    exam_attempt_count: int = 0


@dataclass
class ClassLevelSummary:
    """Class level with its mapped subjects, as listed on the dashboard."""

    class_level: ClassLevelRecord
    subjects: list[dict[str, Any]] = field(default_factory=list)
    exam_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = self.class_level.to_dict()
        data["subjects"] = self.subjects
        data["exam_count"] = self.exam_count
        return data


def create_class_level(
    name_en: str,
    name_mr: str | None = None,
    slug: str | None = None,
    description_en: str | None = None,
    description_mr: str | None = None,
    is_active: bool = True,
) -> ClassLevelRecord:
    """Create a class level.

    Args:
        name_en: English display name
        name_mr: Marathi display name (defaults to name_en)
        slug: URL slug (generated from name_en if omitted)
        description_en: Optional English description
        description_mr: Optional Marathi description
        is_active: Initial active flag

    Returns:
        The created ClassLevelRecord

    Raises:
        ConflictError: If the slug is already taken
    """
    slug = slug or generate_slug(name_en)
    class_level_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        max_order = conn.execute(
            "SELECT COALESCE(MAX(order_index), 0) FROM class_levels"
        ).fetchone()[0]
        try:
            conn.execute(
                """
                INSERT INTO class_levels (
                    id, name_en, name_mr, slug, description_en, description_mr,
                    order_index, is_active, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    class_level_id,
                    name_en,
                    name_mr or name_en,
                    slug,
                    description_en,
                    description_mr,
                    max_order + 1,
                    int(is_active),
                    now,
                    now,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Class level with slug '{slug}' already exists") from e

    logger.info("class_levels.created", class_level_id=class_level_id, slug=slug)
    record = get_class_level_by_id(class_level_id)
    if record is None:
        raise NotFoundError("Class level", class_level_id)
    return record


def get_class_level_by_id(class_level_id: str) -> ClassLevelRecord | None:
    """Get class level by ID (active or not)."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM class_levels WHERE id = ?", (class_level_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_class_level_by_slug(slug: str) -> ClassLevelRecord | None:
    """Get an active class level by slug, ignoring case."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM class_levels WHERE lower(slug) = lower(?) AND is_active = 1",
            (slug,),
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def resolve_class_level(id_or_slug: str) -> ClassLevelRecord | None:
    """Find a class level by ID first, then by slug."""
    record = get_class_level_by_id(id_or_slug)
    if record is not None:
        return record
    return get_class_level_by_slug(id_or_slug)


def list_class_levels() -> list[ClassLevelSummary]:
    """List active class levels with mapped subjects and exam counts.

    Returns:
        Summaries ordered by order_index
    """
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM class_levels WHERE is_active = 1 ORDER BY order_index"
        ).fetchall()

        summaries = []
        for row in rows:
            subjects = conn.execute(
                """
                SELECT s.id, s.name_en, s.name_mr, s.slug, s.icon
                FROM subject_class_mappings m
                JOIN subjects s ON s.id = m.subject_id
                WHERE m.class_level_id = ? AND m.is_active = 1 AND s.is_active = 1
                ORDER BY s.order_index
                """,
                (row["id"],),
            ).fetchall()
            exam_count = conn.execute(
                """
                SELECT COUNT(*) FROM scheduled_exams
                WHERE class_level_id = ? AND is_active = 1
                """,
                (row["id"],),
            ).fetchone()[0]
            summaries.append(
                ClassLevelSummary(
                    class_level=_row_to_record(row),
                    subjects=[dict(s) for s in subjects],
                    exam_count=exam_count,
                )
            )

    return summaries


def get_class_level_stats(class_level: ClassLevelRecord) -> ClassLevelStats:
    """Count students, structures, scheduled exams and attempts for a level.

    Students store their class level as free text, so a student matches
    when the value equals the level's id, slug or English name.
    """
    with get_db() as conn:
        student_count = conn.execute(
            """
            SELECT COUNT(*) FROM profiles
            WHERE role = 'student' AND is_active = 1
              AND class_level IN (?, ?, ?)
            """,
            (class_level.id, class_level.slug, class_level.name_en),
        ).fetchone()[0]
        structure_count = conn.execute(
            "SELECT COUNT(*) FROM exam_structures WHERE class_level_id = ? AND is_active = 1",
            (class_level.id,),
        ).fetchone()[0]
        scheduled_count = conn.execute(
            "SELECT COUNT(*) FROM scheduled_exams WHERE class_level_id = ? AND is_active = 1",
            (class_level.id,),
        ).fetchone()[0]
        attempt_count = conn.execute(
            """
            SELECT COUNT(*) FROM exams e
            JOIN scheduled_exams se ON se.id = e.scheduled_exam_id
            WHERE se.class_level_id = ?
            """,
            (class_level.id,),
        ).fetchone()[0]

    return ClassLevelStats(
        student_count=student_count,
        exam_structure_count=structure_count,
        scheduled_exam_count=scheduled_count,
        exam_attempt_count=attempt_count,
    )


def update_class_level(class_level_id: str, **fields: Any) -> ClassLevelRecord:
    """Partially update a class level.

    The slug only changes when passed explicitly.

    Raises:
        NotFoundError: If the class level doesn't exist
        ConflictError: If the new slug is already taken
    """
    if get_class_level_by_id(class_level_id) is None:
        raise NotFoundError("Class level", class_level_id)

    update = build_update("class_levels", fields, UPDATABLE_FIELDS, nullable=NULLABLE_FIELDS)
    if update is not None:
        sql, params = update
        try:
            with get_db() as conn:
                conn.execute(sql, (*params, class_level_id))
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Class level with slug '{fields.get('slug')}' already exists") from e
        logger.info("class_levels.updated", class_level_id=class_level_id)

    record = get_class_level_by_id(class_level_id)
    if record is None:
        raise NotFoundError("Class level", class_level_id)
    return record


def delete_class_level(class_level_id: str) -> bool:
    """Soft-delete a class level.

    Returns:
        True if a row was deactivated, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE class_levels SET is_active = 0, updated_at = ? WHERE id = ?",
            (now_iso(), class_level_id),
        )

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("class_levels.deleted", class_level_id=class_level_id)

    return deleted


# =============================================================================
# SUBJECT MAPPINGS
# =============================================================================


def add_subject_to_class_level(class_level_id: str, subject_id: str) -> OperationResult:
    """Map a subject to a class level, reactivating an old mapping if present."""
    now = now_iso()
    with get_db() as conn:
        subject = conn.execute(
            "SELECT id FROM subjects WHERE id = ?", (subject_id,)
        ).fetchone()
        if subject is None:
            return OperationResult.fail("Subject not found")

        existing = conn.execute(
            """
            SELECT id, is_active FROM subject_class_mappings
            WHERE class_level_id = ? AND subject_id = ?
            """,
            (class_level_id, subject_id),
        ).fetchone()

        if existing is not None and existing["is_active"]:
            return OperationResult.fail("Subject is already assigned to this class level")

        if existing is not None:
            conn.execute(
                "UPDATE subject_class_mappings SET is_active = 1, updated_at = ? WHERE id = ?",
                (now, existing["id"]),
            )
            mapping_id = existing["id"]
        else:
            mapping_id = generate_id()
            conn.execute(
                """
                INSERT INTO subject_class_mappings (
                    id, subject_id, class_level_id, is_active, created_at, updated_at
                ) VALUES (?, ?, ?, 1, ?, ?)
                """,
                (mapping_id, subject_id, class_level_id, now, now),
            )

    logger.info(
        "class_levels.subject_added",
        class_level_id=class_level_id,
        subject_id=subject_id,
        reactivated=existing is not None,
    )
    return OperationResult.ok(
        {"id": mapping_id, "class_level_id": class_level_id, "subject_id": subject_id}
    )


def remove_subject_from_class_level(class_level_id: str, subject_id: str) -> OperationResult:
    """Deactivate a subject mapping."""
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE subject_class_mappings SET is_active = 0, updated_at = ?
            WHERE class_level_id = ? AND subject_id = ? AND is_active = 1
            """,
            (now_iso(), class_level_id, subject_id),
        )

    if cursor.rowcount == 0:
        return OperationResult.fail("Subject is not assigned to this class level")

    logger.info(
        "class_levels.subject_removed",
        class_level_id=class_level_id,
        subject_id=subject_id,
    )
    return OperationResult.ok()


def _row_to_record(row: sqlite3.Row) -> ClassLevelRecord:
    """Convert database row to ClassLevelRecord."""
    return ClassLevelRecord(
        id=row["id"],
        name_en=row["name_en"],
        name_mr=row["name_mr"],
        slug=row["slug"],
        description_en=row["description_en"],
        description_mr=row["description_mr"],
        order_index=row["order_index"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
