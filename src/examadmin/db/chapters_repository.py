"""Repository functions for chapters table."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from examadmin.db.database import build_update, generate_id, get_db, now_iso
from examadmin.errors import NotFoundError
from examadmin.utils.text_utils import slug_variants

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {
    "name_en",
    "name_mr",
    "description_en",
    "description_mr",
    "order_index",
    "is_active",
}
NULLABLE_FIELDS = frozenset({"description_en", "description_mr"})


@dataclass
class ChapterRecord:
    """Chapter record from database."""

    id: str
    subject_id: str
    name_en: str
    name_mr: str
    description_en: str | None
    description_mr: str | None
    order_index: int
    is_active: bool
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def create_chapter(
    subject_id: str,
    name_en: str,
    name_mr: str | None = None,
    description_en: str | None = None,
    description_mr: str | None = None,
    order_index: int = 0,
) -> ChapterRecord:
    """Create a chapter under a subject.

    Raises:
        NotFoundError: If the subject doesn't exist
    """
    chapter_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        subject = conn.execute(
            "SELECT id FROM subjects WHERE id = ?", (subject_id,)
        ).fetchone()
        if subject is None:
            raise NotFoundError("Subject", subject_id)

        conn.execute(
            """
            INSERT INTO chapters (
                id, subject_id, name_en, name_mr, description_en, description_mr,
                order_index, is_active, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
            """,
            (
                chapter_id,
                subject_id,
                name_en,
                name_mr or name_en,
                description_en,
                description_mr,
                order_index,
                now,
                now,
            ),
        )

    logger.info("chapters.created", chapter_id=chapter_id, subject_id=subject_id)
    record = get_chapter_by_id(chapter_id)
    if record is None:
        raise NotFoundError("Chapter", chapter_id)
    return record


def get_chapter_by_id(chapter_id: str) -> ChapterRecord | None:
    """Get chapter by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM chapters WHERE id = ?", (chapter_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_chapters_by_ids(chapter_ids: list[str]) -> list[ChapterRecord]:
    """Get several chapters at once. Empty input returns []."""
    if not chapter_ids:
        return []

    placeholders = ", ".join("?" for _ in chapter_ids)
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM chapters WHERE id IN ({placeholders})",
            tuple(chapter_ids),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_chapters_by_subject_id(subject_id: str) -> list[ChapterRecord]:
    """Active chapters of a subject, ordered."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM chapters
            WHERE subject_id = ? AND is_active = 1
            ORDER BY order_index, name_en
            """,
            (subject_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_chapters_by_subject_slug(slug: str) -> list[ChapterRecord]:
    """Active chapters of the subject with this slug (either separator)."""
    with get_db() as conn:
        for candidate in slug_variants(slug):
            subject = conn.execute(
                "SELECT id FROM subjects WHERE slug = ?", (candidate,)
            ).fetchone()
            if subject is not None:
                break
        else:
            return []

    return get_chapters_by_subject_id(subject["id"])


def update_chapter(chapter_id: str, **fields: Any) -> ChapterRecord:
    """Partially update a chapter.

    Raises:
        NotFoundError: If the chapter doesn't exist
    """
    update = build_update("chapters", fields, UPDATABLE_FIELDS, nullable=NULLABLE_FIELDS)
    if update is not None:
        sql, params = update
        with get_db() as conn:
            cursor = conn.execute(sql, (*params, chapter_id))
        if cursor.rowcount == 0:
            raise NotFoundError("Chapter", chapter_id)
        logger.info("chapters.updated", chapter_id=chapter_id)

    record = get_chapter_by_id(chapter_id)
    if record is None:
        raise NotFoundError("Chapter", chapter_id)
    return record


def delete_chapter(chapter_id: str) -> bool:
    """Soft-delete a chapter.

    Returns:
        True if deactivated, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE chapters SET is_active = 0, updated_at = ? WHERE id = ?",
            (now_iso(), chapter_id),
        )

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("chapters.deleted", chapter_id=chapter_id)

    return deleted


def _row_to_record(row: sqlite3.Row) -> ChapterRecord:
    """Convert database row to ChapterRecord."""
    return ChapterRecord(
        id=row["id"],
        subject_id=row["subject_id"],
        name_en=row["name_en"],
        name_mr=row["name_mr"],
        description_en=row["description_en"],
        description_mr=row["description_mr"],
        order_index=row["order_index"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
