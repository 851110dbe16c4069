"""The signed-in user's own profile, with activity stats."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any

import structlog

from examadmin.core.security import validate_password_strength
from examadmin.db.database import get_db
from examadmin.db.users_repository import get_user, update_user
from examadmin.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calculate_streak_days(completed_at: list[str], today: date | None = None) -> int:
    """Consecutive days with a completed exam, counting back from the latest.

    The streak is broken (0) when the latest completion is older than
    yesterday.
    """
    today = today or datetime.now(timezone.utc).date()
    days = sorted(
        {ts.date() for ts in map(_parse_timestamp, completed_at) if ts is not None},
        reverse=True,
    )
    if not days:
        return 0
    if days[0] not in (today, today - timedelta(days=1)):
        return 0

    streak = 1
    for previous, current in zip(days, days[1:]):
        if previous - current != timedelta(days=1):
            break
        streak += 1
    return streak


def _resolve_class_level(value: str | None) -> dict[str, Any] | None:
    """Match a profile's free-text class level to an active level."""
    if not value:
        return None
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT id, name_en, name_mr, slug FROM class_levels
            WHERE is_active = 1 AND (slug = ? OR lower(name_en) LIKE ?)
            ORDER BY order_index
            LIMIT 1
            """,
            (value, f"%{value.lower()}%"),
        ).fetchone()
    return dict(row) if row is not None else None


def get_profile(user_id: str) -> dict[str, Any]:
    """Profile with class level details and exam activity.

    Raises:
        NotFoundError: If the profile doesn't exist
    """
    user = get_user(user_id)
    if user is None:
        raise NotFoundError("Profile", user_id)

    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT percentage, started_at, completed_at FROM exams
            WHERE user_id = ? AND status = 'completed'
            ORDER BY completed_at DESC
            """,
            (user_id,),
        ).fetchall()

    total_seconds = 0
    for row in rows:
        started = _parse_timestamp(row["started_at"])
        completed = _parse_timestamp(row["completed_at"])
        if started and completed:
            total_seconds += int((completed - started).total_seconds())

    class_level = _resolve_class_level(user.class_level)
    data = user.to_dict()
    data.update(
        class_level_id=class_level["id"] if class_level else None,
        class_level_details=class_level,
        total_exams_taken=len(rows),
        average_score=(
            round(sum(r["percentage"] or 0 for r in rows) / len(rows)) if rows else 0
        ),
        total_time_spent_seconds=total_seconds,
        streak_days=calculate_streak_days([r["completed_at"] for r in rows]),
        last_activity_at=rows[0]["completed_at"] if rows else None,
    )
    return data


def update_profile(
    user_id: str,
    name: str | None = None,
    preferred_language: str | None = None,
    avatar_url: str | None = None,
    class_level: str | None = None,
) -> dict[str, Any]:
    """Update the editable profile fields.

    Raises:
        ValidationError: If no field is given
        NotFoundError: If the profile doesn't exist
    """
    given = {
        "name": name,
        "preferred_language": preferred_language,
        "avatar_url": avatar_url,
        "class_level": class_level,
    }
    fields = {k: v for k, v in given.items() if v is not None}
    if not fields:
        raise ValidationError("No fields to update")

    user = update_user(user_id, **fields)
    logger.info("profile.updated", user_id=user_id)
    return user.to_dict()


def change_password(user_id: str, new_password: str) -> None:
    """Set a new password after checking its strength.

    Raises:
        ValidationError: If the password is too weak
        NotFoundError: If the profile doesn't exist
    """
    problems = validate_password_strength(new_password)
    if problems:
        raise ValidationError("; ".join(problems))

    update_user(user_id, password=new_password)
    logger.info("profile.password_changed", user_id=user_id)
