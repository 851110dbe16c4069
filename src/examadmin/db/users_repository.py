"""Repository functions for user profiles."""

from __future__ import annotations

import math
import sqlite3
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from examadmin.core.security import ROLES, hash_password
from examadmin.db.database import (
    build_update,
    dump_json,
    generate_id,
    get_db,
    load_json,
    now_iso,
)
from examadmin.errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {
    "email",
    "phone",
    "password_hash",
    "name",
    "avatar_url",
    "school_id",
    "class_level",
    "role",
    "permissions",
    "preferred_language",
    "is_active",
}
NULLABLE_FIELDS = frozenset(
    {"phone", "name", "avatar_url", "school_id", "class_level", "permissions", "preferred_language"}
)

JSON_FIELDS = frozenset({"permissions"})


@dataclass
class UserRecord:
    """User profile record from database."""

    id: str
    email: str | None
    phone: str | None
    name: str | None
    avatar_url: str | None
    school_id: str | None
    class_level: str | None
    role: str
    permissions: dict[str, Any]
    preferred_language: str
    is_active: bool
    created_at: str
    updated_at: str
    password_hash: str | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("password_hash")
        return data


def list_users(
    page: int = 1,
    page_size: int = 20,
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    school_id: str | None = None,
    class_level_id: str | None = None,
    class_level_slug: str | None = None,
) -> dict[str, Any]:
    """List users newest first.

    A class_level_id is resolved to the slug and English name that
    profiles store as free text.

    Returns:
        {items, total, page, page_size, total_pages}
    """
    page = max(page, 1)
    clauses = []
    params: list[Any] = []
    if role:
        clauses.append("p.role = ?")
        params.append(role)
    if is_active is not None:
        clauses.append("p.is_active = ?")
        params.append(int(is_active))
    if search:
        term = f"%{search.lower()}%"
        clauses.append("(lower(p.name) LIKE ? OR lower(p.email) LIKE ?)")
        params.extend([term, term])
    if school_id:
        clauses.append("p.school_id = ?")
        params.append(school_id)

    with get_db() as conn:
        if class_level_id:
            level = conn.execute(
                "SELECT slug, name_en FROM class_levels WHERE id = ?", (class_level_id,)
            ).fetchone()
            values = [class_level_id]
            if level is not None:
                values.extend([level["slug"], level["name_en"]])
            clauses.append(f"p.class_level IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        elif class_level_slug:
            clauses.append("lower(p.class_level) = lower(?)")
            params.append(class_level_slug)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        total = conn.execute(
            f"SELECT COUNT(*) FROM profiles p {where}", params
        ).fetchone()[0]
        rows = conn.execute(
            f"""
            SELECT p.*, s.name AS school_name FROM profiles p
            LEFT JOIN schools s ON s.id = p.school_id
            {where}
            ORDER BY p.created_at DESC
            LIMIT ? OFFSET ?
            """,
            (*params, page_size, (page - 1) * page_size),
        ).fetchall()

    items = []
    for row in rows:
        data = _row_to_record(row).to_dict()
        data["school"] = (
            {"id": row["school_id"], "name": row["school_name"]}
            if row["school_name"] is not None
            else None
        )
        items.append(data)

    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if page_size else 0,
    }


def get_user(user_id: str) -> UserRecord | None:
    """Get user by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM profiles WHERE id = ?", (user_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_user_by_email(email: str) -> UserRecord | None:
    """Get user by email, ignoring case."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM profiles WHERE lower(email) = lower(?)", (email.strip(),)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_user_by_phone(phone: str) -> UserRecord | None:
    """Get user by phone number."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM profiles WHERE phone = ?", (phone.strip(),)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def create_user(
    email: str | None = None,
    password: str | None = None,
    name: str | None = None,
    phone: str | None = None,
    role: str = "student",
    school_id: str | None = None,
    class_level: str | None = None,
    preferred_language: str = "en",
    avatar_url: str | None = None,
    permissions: dict[str, Any] | None = None,
    is_active: bool = True,
) -> UserRecord:
    """Create a user profile.

    Raises:
        ValidationError: On an unknown role or missing identifier
        ConflictError: If the email or phone is already registered
    """
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role}")
    if not email and not phone:
        raise ValidationError("Email or phone is required")
    if email and get_user_by_email(email) is not None:
        raise ConflictError("Email already registered")
    if phone and get_user_by_phone(phone) is not None:
        raise ConflictError("Phone number already registered")

    user_id = generate_id()
    now = now_iso()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO profiles (
                id, email, phone, password_hash, name, avatar_url, school_id,
                class_level, role, permissions, preferred_language, is_active,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                email.strip().lower() if email else None,
                phone.strip() if phone else None,
                hash_password(password) if password else None,
                name,
                avatar_url,
                school_id,
                class_level,
                role,
                dump_json(permissions or {}),
                preferred_language,
                int(is_active),
                now,
                now,
            ),
        )

    logger.info("users.created", user_id=user_id, role=role)
    record = get_user(user_id)
    if record is None:
        raise NotFoundError("User", user_id)
    return record


def update_user(user_id: str, password: str | None = None, **fields: Any) -> UserRecord:
    """Partially update a user; a given password is re-hashed.

    Raises:
        NotFoundError: If the user doesn't exist
        ValidationError: On an unknown role
        ConflictError: If the new email or phone is taken
    """
    if fields.get("role") is not None and fields["role"] not in ROLES:
        raise ValidationError(f"Invalid role: {fields['role']}")
    if password:
        fields["password_hash"] = hash_password(password)
    if fields.get("email"):
        fields["email"] = fields["email"].strip().lower()

    update = build_update(
        "profiles", fields, UPDATABLE_FIELDS, JSON_FIELDS, nullable=NULLABLE_FIELDS
    )
    if update is not None:
        sql, params = update
        try:
            with get_db() as conn:
                cursor = conn.execute(sql, (*params, user_id))
        except sqlite3.IntegrityError as e:
            raise ConflictError("Email or phone already registered") from e
        if cursor.rowcount == 0:
            raise NotFoundError("User", user_id)
        logger.info("users.updated", user_id=user_id, fields=sorted(fields))

    record = get_user(user_id)
    if record is None:
        raise NotFoundError("User", user_id)
    return record


def delete_user(user_id: str, hard: bool = False) -> bool:
    """Deactivate a user, or remove it with hard=True.

    Returns:
        True if a row changed, False if not found
    """
    with get_db() as conn:
        if hard:
            cursor = conn.execute("DELETE FROM profiles WHERE id = ?", (user_id,))
        else:
            cursor = conn.execute(
                "UPDATE profiles SET is_active = 0, updated_at = ? WHERE id = ?",
                (now_iso(), user_id),
            )

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("users.deleted", user_id=user_id, hard=hard)

    return deleted


def get_user_detail(user_id: str) -> dict[str, Any] | None:
    """User with exam stats and school."""
    from examadmin.db.exams_repository import get_user_exam_stats
    from examadmin.db.schools_repository import get_school

    user = get_user(user_id)
    if user is None:
        return None

    data = user.to_dict()
    data["exam_stats"] = get_user_exam_stats(user_id)
    school = get_school(user.school_id) if user.school_id else None
    data["school"] = {"id": school.id, "name": school.name} if school else None
    return data


def _row_to_record(row: sqlite3.Row) -> UserRecord:
    """Convert database row to UserRecord."""
    return UserRecord(
        id=row["id"],
        email=row["email"],
        phone=row["phone"],
        name=row["name"],
        avatar_url=row["avatar_url"],
        school_id=row["school_id"],
        class_level=row["class_level"],
        role=row["role"],
        permissions=load_json(row["permissions"], {}),
        preferred_language=row["preferred_language"] or "en",
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        password_hash=row["password_hash"],
    )
