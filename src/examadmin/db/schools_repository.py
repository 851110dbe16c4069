"""Repository functions for schools.

Schools are matched on name_search, a normalized copy of the name kept
in sync on every write.
"""

from __future__ import annotations

import math
import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from examadmin.db.database import build_update, generate_id, get_db, now_iso
from examadmin.errors import ConflictError, NotFoundError
from examadmin.utils.text_utils import normalize_search

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {
    "name",
    "name_search",
    "location_city",
    "location_state",
    "location_country",
    "address",
    "type",
    "level",
    "founded_year",
    "is_verified",
    "is_user_added",
}
NULLABLE_FIELDS = frozenset(
    {
        "location_city",
        "location_state",
        "location_country",
        "address",
        "type",
        "level",
        "founded_year",
    }
)


@dataclass
class SchoolRecord:
    """School record from database."""

    id: str
    name: str
    name_search: str
    location_city: str | None
    location_state: str | None
    location_country: str | None
    address: str | None
    type: str | None
    level: str | None
    founded_year: int | None
    is_verified: bool
    is_user_added: bool
    created_by: str | None
    student_count: int
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def list_schools(
    is_verified: bool | None = None,
    is_user_added: bool | None = None,
    state: str | None = None,
    city: str | None = None,
    search: str | None = None,
    page: int = 1,
    page_size: int = 50,
) -> dict[str, Any]:
    """List schools by name with filters, pagination and catalog stats.

    Returns:
        Dict with items, pagination {page, page_size, total_items,
        total_pages, has_next_page, has_previous_page} and stats
        {total_items, total_verified, total_unverified, total_overall}
    """
    page = max(page, 1)
    clauses = []
    params: list[Any] = []
    if is_verified is not None:
        clauses.append("is_verified = ?")
        params.append(int(is_verified))
    if is_user_added is not None:
        clauses.append("is_user_added = ?")
        params.append(int(is_user_added))
    if state:
        clauses.append("location_state = ?")
        params.append(state)
    if city:
        clauses.append("lower(location_city) LIKE ?")
        params.append(f"%{city.lower()}%")
    if search:
        term = f"%{normalize_search(search)}%"
        clauses.append(
            "(name_search LIKE ? OR lower(location_city) LIKE ? OR lower(location_state) LIKE ?)"
        )
        params.extend([term, term, term])
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    with get_db() as conn:
        total_items = conn.execute(
            f"SELECT COUNT(*) FROM schools {where}", params
        ).fetchone()[0]
        rows = conn.execute(
            f"SELECT * FROM schools {where} ORDER BY name LIMIT ? OFFSET ?",
            (*params, page_size, (page - 1) * page_size),
        ).fetchall()
        overall = conn.execute(
            """
            SELECT COUNT(*) AS total,
                COALESCE(SUM(is_verified), 0) AS verified
            FROM schools
            """
        ).fetchone()

    total_pages = math.ceil(total_items / page_size) if page_size else 0
    return {
        "items": [_row_to_record(row).to_dict() for row in rows],
        "pagination": {
            "page": page,
            "page_size": page_size,
            "total_items": total_items,
            "total_pages": total_pages,
            "has_next_page": page < total_pages,
            "has_previous_page": page > 1,
        },
        "stats": {
            "total_items": total_items,
            "total_verified": overall["verified"],
            "total_unverified": overall["total"] - overall["verified"],
            "total_overall": overall["total"],
        },
    }


def get_school(school_id: str) -> SchoolRecord | None:
    """Get school by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM schools WHERE id = ?", (school_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_school_student_count(school_id: str) -> int:
    """Number of profiles attached to a school."""
    with get_db() as conn:
        return conn.execute(
            "SELECT COUNT(*) FROM profiles WHERE school_id = ?", (school_id,)
        ).fetchone()[0]


def get_school_with_student_count(school_id: str) -> dict[str, Any] | None:
    """School as a dict with a live student_count."""
    school = get_school(school_id)
    if school is None:
        return None

    data = school.to_dict()
    data["student_count"] = get_school_student_count(school_id)
    return data


def search_schools(query: str, limit: int = 10) -> list[SchoolRecord]:
    """Schools whose normalized name contains the query."""
    term = normalize_search(query)
    if not term:
        return []

    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM schools WHERE name_search LIKE ?
            ORDER BY is_verified DESC, name
            LIMIT ?
            """,
            (f"%{term}%", limit),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def suggest_schools(query: str, limit: int = 5) -> list[dict[str, Any]]:
    """Short suggestions for an autocomplete box."""
    suggestions = []
    for school in search_schools(query, limit=limit):
        location = ", ".join(p for p in (school.location_city, school.location_state) if p)
        suggestions.append(
            {
                "id": school.id,
                "name": school.name,
                "location": location,
                "is_verified": school.is_verified,
            }
        )
    return suggestions


def find_duplicate_school(
    name: str,
    city: str | None = None,
    state: str | None = None,
) -> SchoolRecord | None:
    """Find a school with the same normalized name and location.

    A missing city or state only matches a school with no city or state.
    """
    clauses = ["name_search = ?"]
    params: list[Any] = [normalize_search(name)]
    for column, value in (("location_city", city), ("location_state", state)):
        if value:
            clauses.append(f"lower({column}) = ?")
            params.append(value.strip().lower())
        else:
            clauses.append(f"({column} IS NULL OR {column} = '')")

    with get_db() as conn:
        row = conn.execute(
            f"SELECT * FROM schools WHERE {' AND '.join(clauses)} LIMIT 1", params
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def school_name_exists(name: str, exclude_id: str | None = None) -> bool:
    """Check whether another school already uses this name."""
    sql = "SELECT 1 FROM schools WHERE name_search = ?"
    params: list[Any] = [normalize_search(name)]
    if exclude_id:
        sql += " AND id != ?"
        params.append(exclude_id)

    with get_db() as conn:
        return conn.execute(f"{sql} LIMIT 1", params).fetchone() is not None


def create_school(
    name: str,
    location_city: str | None = None,
    location_state: str | None = None,
    location_country: str | None = None,
    address: str | None = None,
    type: str | None = None,
    level: str | None = None,
    founded_year: int | None = None,
    is_verified: bool = False,
    created_by: str | None = None,
) -> SchoolRecord:
    """Create a school.

    Schools created on behalf of a user are flagged as user-added.
    """
    school_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO schools (
                id, name, name_search, location_city, location_state,
                location_country, address, type, level, founded_year,
                is_verified, is_user_added, created_by, student_count,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                school_id,
                name.strip(),
                normalize_search(name),
                location_city,
                location_state,
                location_country or "India",
                address,
                type,
                level,
                founded_year,
                int(is_verified),
                int(bool(created_by)),
                created_by,
                now,
                now,
            ),
        )

    logger.info("schools.created", school_id=school_id, user_added=bool(created_by))
    record = get_school(school_id)
    if record is None:
        raise NotFoundError("School", school_id)
    return record


def update_school(school_id: str, **fields: Any) -> SchoolRecord:
    """Partially update a school, keeping name_search in sync.

    Raises:
        NotFoundError: If the school doesn't exist
    """
    if fields.get("name"):
        fields["name"] = fields["name"].strip()
        fields["name_search"] = normalize_search(fields["name"])

    update = build_update("schools", fields, UPDATABLE_FIELDS, nullable=NULLABLE_FIELDS)
    if update is not None:
        sql, params = update
        with get_db() as conn:
            cursor = conn.execute(sql, (*params, school_id))
        if cursor.rowcount == 0:
            raise NotFoundError("School", school_id)
        logger.info("schools.updated", school_id=school_id)

    record = get_school(school_id)
    if record is None:
        raise NotFoundError("School", school_id)
    return record


def delete_school(school_id: str) -> bool:
    """Hard-delete a school that no student references.

    Returns:
        True if deleted, False if not found

    Raises:
        ConflictError: If students are still attached
    """
    student_count = get_school_student_count(school_id)
    if student_count > 0:
        raise ConflictError(
            f"Cannot delete school with {student_count} associated students"
        )

    with get_db() as conn:
        cursor = conn.execute("DELETE FROM schools WHERE id = ?", (school_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("schools.deleted", school_id=school_id)

    return deleted


def _row_to_record(row: sqlite3.Row) -> SchoolRecord:
    """Convert database row to SchoolRecord."""
    return SchoolRecord(
        id=row["id"],
        name=row["name"],
        name_search=row["name_search"],
        location_city=row["location_city"],
        location_state=row["location_state"],
        location_country=row["location_country"],
        address=row["address"],
        type=row["type"],
        level=row["level"],
        founded_year=row["founded_year"],
        is_verified=bool(row["is_verified"]),
        is_user_added=bool(row["is_user_added"]),
        created_by=row["created_by"],
        student_count=row["student_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
