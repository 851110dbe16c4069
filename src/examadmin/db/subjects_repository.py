"""Repository functions for subjects.

Subjects form a two-level tree: categories (e.g. "Scholarship") hold
paper sub-subjects, standalone subjects have no children.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from examadmin.db.database import build_update, generate_id, get_db, now_iso
from examadmin.errors import ConflictError, NotFoundError, OperationResult
from examadmin.utils.text_utils import generate_slug, slug_variants

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {
    "name_en",
    "name_mr",
    "slug",
    "description_en",
    "description_mr",
    "icon",
    "order_index",
    "is_active",
    "is_category",
    "is_paper",
    "paper_number",
    "parent_subject_id",
}
NULLABLE_FIELDS = frozenset(
    {"description_en", "description_mr", "icon", "paper_number", "parent_subject_id"}
)


@dataclass
class SubjectRecord:
    """Subject record from database."""

    id: str
    parent_subject_id: str | None
    name_en: str
    name_mr: str
    slug: str
    description_en: str | None
    description_mr: str | None
    icon: str | None
    order_index: int
    is_active: bool
    is_category: bool
    is_paper: bool
    paper_number: int | None
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SubjectStats:
    """Subject catalog counters."""

    total_categories: int
    root_subjects: int
    total_chapters: int


def create_subject(
    name_en: str,
    name_mr: str | None = None,
    slug: str | None = None,
    parent_subject_id: str | None = None,
    description_en: str | None = None,
    description_mr: str | None = None,
    icon: str | None = None,
    order_index: int | None = None,
    is_category: bool = False,
    is_paper: bool = False,
    paper_number: int | None = None,
) -> SubjectRecord:
    """Create a subject.

    Raises:
        ConflictError: If the slug is already taken
    """
    slug = slug or generate_slug(name_en)
    subject_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        if order_index is None:
            order_index = _next_order_index(conn, parent_subject_id)
        try:
            conn.execute(
                """
                INSERT INTO subjects (
                    id, parent_subject_id, name_en, name_mr, slug,
                    description_en, description_mr, icon, order_index,
                    is_active, is_category, is_paper, paper_number,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?, ?, ?)
                """,
                (
                    subject_id,
                    parent_subject_id,
                    name_en,
                    name_mr or name_en,
                    slug,
                    description_en,
                    description_mr,
                    icon,
                    order_index,
                    int(is_category),
                    int(is_paper),
                    paper_number,
                    now,
                    now,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Subject with slug '{slug}' already exists") from e

    logger.info("subjects.created", subject_id=subject_id, slug=slug)
    record = get_subject_by_id(subject_id)
    if record is None:
        raise NotFoundError("Subject", subject_id)
    return record


def get_subject_by_id(subject_id: str) -> SubjectRecord | None:
    """Get subject by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM subjects WHERE id = ?", (subject_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_subject_by_slug(slug: str) -> SubjectRecord | None:
    """Get subject by slug, trying the hyphen/underscore alternate too."""
    with get_db() as conn:
        for candidate in slug_variants(slug):
            row = conn.execute(
                "SELECT * FROM subjects WHERE slug = ?", (candidate,)
            ).fetchone()
            if row is not None:
                return _row_to_record(row)

    return None


def resolve_subject(slug_or_id: str) -> SubjectRecord | None:
    """Find a subject by ID first, then by slug."""
    return get_subject_by_id(slug_or_id) or get_subject_by_slug(slug_or_id)


def get_subject_detail(slug_or_id: str) -> dict[str, Any] | None:
    """Subject as a dict, with sub_subjects when it is a category."""
    subject = resolve_subject(slug_or_id)
    if subject is None:
        return None

    data = subject.to_dict()
    if subject.is_category:
        data["sub_subjects"] = [c.to_dict() for c in get_child_subjects(subject.id)]
    return data


def list_subjects(class_level_id: str | None = None) -> list[dict[str, Any]]:
    """Build the active subject tree.

    Children whose parent is missing are promoted to roots. When a class
    level is given, a root survives if it or any of its children is mapped
    to that level, and its children are narrowed to the mapped ones.

    Returns:
        Root subjects (dicts) each with a "sub_subjects" list
    """
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM subjects WHERE is_active = 1 ORDER BY order_index"
        ).fetchall()
        mapped: set[str] | None = None
        if class_level_id is not None:
            mapped = {
                r["subject_id"]
                for r in conn.execute(
                    """
                    SELECT subject_id FROM subject_class_mappings
                    WHERE class_level_id = ? AND is_active = 1
                    """,
                    (class_level_id,),
                ).fetchall()
            }

    nodes: dict[str, dict[str, Any]] = {}
    for row in rows:
        node = _row_to_record(row).to_dict()
        node["sub_subjects"] = []
        nodes[node["id"]] = node

    roots = []
    for node in nodes.values():
        parent_id = node["parent_subject_id"]
        if parent_id and parent_id in nodes:
            nodes[parent_id]["sub_subjects"].append(node)
        else:
            roots.append(node)

    for node in nodes.values():
        node["sub_subjects"].sort(key=lambda n: n["order_index"])
    roots.sort(key=lambda n: n["order_index"])

    if mapped is None:
        return roots

    filtered = []
    for root in roots:
        children = [c for c in root["sub_subjects"] if c["id"] in mapped]
        if root["id"] in mapped or children:
            root["sub_subjects"] = children
            filtered.append(root)
    return filtered


def get_subjects_by_class_level(class_level_id: str) -> list[SubjectRecord]:
    """Active subjects mapped to a class level."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT s.* FROM subjects s
            JOIN subject_class_mappings m ON m.subject_id = s.id
            WHERE m.class_level_id = ? AND m.is_active = 1 AND s.is_active = 1
            ORDER BY s.order_index
            """,
            (class_level_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_child_subjects(parent_id: str) -> list[SubjectRecord]:
    """Active children of a subject, ordered."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM subjects
            WHERE parent_subject_id = ? AND is_active = 1
            ORDER BY order_index
            """,
            (parent_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_subjects_with_class_counts() -> list[dict[str, Any]]:
    """Active subjects with the number of class levels they are mapped to."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT s.*, (
                SELECT COUNT(*) FROM subject_class_mappings m
                WHERE m.subject_id = s.id AND m.is_active = 1
            ) AS class_count
            FROM subjects s
            WHERE s.is_active = 1
            ORDER BY s.order_index
            """
        ).fetchall()

    results = []
    for row in rows:
        data = _row_to_record(row).to_dict()
        data["class_count"] = row["class_count"]
        results.append(data)
    return results


def get_subject_stats() -> SubjectStats:
    """Count category roots, standalone roots and chapters."""
    with get_db() as conn:
        categories = conn.execute(
            """
            SELECT COUNT(*) FROM subjects
            WHERE is_active = 1 AND is_category = 1 AND parent_subject_id IS NULL
            """
        ).fetchone()[0]
        roots = conn.execute(
            """
            SELECT COUNT(*) FROM subjects
            WHERE is_active = 1 AND is_category = 0 AND parent_subject_id IS NULL
            """
        ).fetchone()[0]
        chapters = conn.execute(
            "SELECT COUNT(*) FROM chapters WHERE is_active = 1"
        ).fetchone()[0]

    return SubjectStats(
        total_categories=categories,
        root_subjects=roots,
        total_chapters=chapters,
    )


def create_child_subject(
    parent_id: str,
    name_en: str,
    name_mr: str | None = None,
    description_en: str | None = None,
    description_mr: str | None = None,
    icon: str | None = None,
    is_paper: bool = False,
    paper_number: int | None = None,
) -> OperationResult:
    """Create a sub-subject under a category.

    The slug is "<parent slug>-<slugified name>".
    """
    parent = get_subject_by_id(parent_id)
    if parent is None:
        return OperationResult.fail("Parent subject not found")
    if not parent.is_category:
        return OperationResult.fail("Parent subject is not a category")

    slug = f"{parent.slug}-{generate_slug(name_en)}"
    if get_subject_by_slug(slug) is not None:
        return OperationResult.fail(f"Subject with slug '{slug}' already exists")

    try:
        child = create_subject(
            name_en=name_en,
            name_mr=name_mr,
            slug=slug,
            parent_subject_id=parent.id,
            description_en=description_en,
            description_mr=description_mr,
            icon=icon,
            is_paper=is_paper,
            paper_number=paper_number,
        )
    except ConflictError as e:
        return OperationResult.fail(str(e))

    return OperationResult.ok(child)


def update_subject(subject_id: str, **fields: Any) -> OperationResult:
    """Partially update a subject."""
    if get_subject_by_id(subject_id) is None:
        return OperationResult.fail("Subject not found")

    update = build_update("subjects", fields, UPDATABLE_FIELDS, nullable=NULLABLE_FIELDS)
    if update is not None:
        sql, params = update
        try:
            with get_db() as conn:
                conn.execute(sql, (*params, subject_id))
        except sqlite3.IntegrityError:
            return OperationResult.fail(f"Subject with slug '{fields.get('slug')}' already exists")
        logger.info("subjects.updated", subject_id=subject_id)

    return OperationResult.ok(get_subject_by_id(subject_id))


def _next_order_index(conn: sqlite3.Connection, parent_subject_id: str | None) -> int:
    if parent_subject_id is None:
        row = conn.execute(
            "SELECT MAX(order_index) FROM subjects WHERE parent_subject_id IS NULL"
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT MAX(order_index) FROM subjects WHERE parent_subject_id = ?",
            (parent_subject_id,),
        ).fetchone()
    return 0 if row[0] is None else row[0] + 1


def _row_to_record(row: sqlite3.Row) -> SubjectRecord:
    """Convert database row to SubjectRecord."""
    return SubjectRecord(
        id=row["id"],
        parent_subject_id=row["parent_subject_id"],
        name_en=row["name_en"],
        name_mr=row["name_mr"],
        slug=row["slug"],
        description_en=row["description_en"],
        description_mr=row["description_mr"],
        icon=row["icon"],
        order_index=row["order_index"],
        is_active=bool(row["is_active"]),
        is_category=bool(row["is_category"]),
        is_paper=bool(row["is_paper"]),
        paper_number=row["paper_number"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
