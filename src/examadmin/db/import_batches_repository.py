"""Repository functions for question_import_batches.

A batch holds parsed questions (from a PDF or spreadsheet) until an
admin reviews and commits them into a subject's question bank.
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

BATCH_STATUSES = ("pending", "reviewed", "imported", "cancelled")

UPDATABLE_FIELDS = {"batch_name", "status", "parsed_questions", "metadata", "imported_at"}
NULLABLE_FIELDS = frozenset({"metadata", "imported_at"})
JSON_FIELDS = frozenset({"parsed_questions", "metadata"})


@dataclass
class ImportBatchRecord:
    """Import batch record from database."""

    id: str
    subject_slug: str
    batch_name: str
    status: str
    parsed_questions: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_by: str | None = None
    imported_at: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def question_count(self) -> int:
        return len(self.parsed_questions)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["question_count"] = self.question_count
        return data


def create_batch(
    subject_slug: str,
    batch_name: str,
    parsed_questions: list[dict[str, Any]],
    metadata: dict[str, Any] | None = None,
    created_by: str | None = None,
) -> ImportBatchRecord:
    """Store a pending batch of parsed questions."""
    batch_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO question_import_batches (
                id, subject_slug, batch_name, status, parsed_questions,
                metadata, created_by, created_at, updated_at
            ) VALUES (?, ?, ?, 'pending', ?, ?, ?, ?, ?)
            """,
            (
                batch_id,
                subject_slug,
                batch_name,
                dump_json(parsed_questions),
                dump_json(metadata or {}),
                created_by,
                now,
                now,
            ),
        )

    logger.info(
        "import_batches.created",
        batch_id=batch_id,
        subject=subject_slug,
        questions=len(parsed_questions),
    )
    record = get_batch(batch_id)
    if record is None:
        raise NotFoundError("Import batch", batch_id)
    return record


def get_batch(batch_id: str) -> ImportBatchRecord | None:
    """Get batch by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM question_import_batches WHERE id = ?", (batch_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_batches(
    status: str | None = None,
    created_by: str | None = None,
) -> list[ImportBatchRecord]:
    """Batches newest first."""
    clauses = []
    params: list[Any] = []
    if status:
        clauses.append("status = ?")
        params.append(status)
    if created_by:
        clauses.append("created_by = ?")
        params.append(created_by)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM question_import_batches {where} ORDER BY created_at DESC",
            params,
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def update_batch(batch_id: str, **fields: Any) -> ImportBatchRecord:
    """Partially update a batch; moving to "imported" stamps imported_at.

    Raises:
        NotFoundError: If the batch doesn't exist
        ValidationError: On an unknown status
    """
    status = fields.get("status")
    if status is not None and status not in BATCH_STATUSES:
        raise ValidationError(f"Invalid batch status: {status}")
    if status == "imported":
        fields["imported_at"] = now_iso()

    update = build_update(
        "question_import_batches", fields, UPDATABLE_FIELDS, JSON_FIELDS, nullable=NULLABLE_FIELDS
    )
    if update is not None:
        sql, params = update
        with get_db() as conn:
            cursor = conn.execute(sql, (*params, batch_id))
        if cursor.rowcount == 0:
            raise NotFoundError("Import batch", batch_id)
        logger.info("import_batches.updated", batch_id=batch_id, status=status)

    record = get_batch(batch_id)
    if record is None:
        raise NotFoundError("Import batch", batch_id)
    return record


def _row_to_record(row: sqlite3.Row) -> ImportBatchRecord:
    """Convert database row to ImportBatchRecord."""
    return ImportBatchRecord(
        id=row["id"],
        subject_slug=row["subject_slug"],
        batch_name=row["batch_name"],
        status=row["status"],
        parsed_questions=load_json(row["parsed_questions"], []),
        metadata=load_json(row["metadata"], {}),
        created_by=row["created_by"],
        imported_at=row["imported_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
