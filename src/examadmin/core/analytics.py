"""Admin dashboard analytics computed from live data."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from examadmin.config.app_config import load_app_config
from examadmin.db.database import get_db
from examadmin.db.exams_repository import list_exams
from examadmin.db.questions_repository import (
    DIFFICULTIES,
    QUESTION_TABLES,
    SUBJECT_TABLES,
    TABLE_SUBJECTS,
)

logger = structlog.get_logger(__name__)


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def _growth(current: int, previous: int) -> float:
    """Period-over-period growth; any activity from zero counts as 100%."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat()


def get_dashboard_stats() -> dict[str, Any]:
    """Headline counters for the admin dashboard."""
    passing = load_app_config().exams.passing_percentage

    with get_db() as conn:
        total_users = conn.execute("SELECT COUNT(*) FROM profiles").fetchone()[0]
        active_students = conn.execute(
            "SELECT COUNT(*) FROM profiles WHERE role = 'student' AND is_active = 1"
        ).fetchone()[0]
        exam_row = conn.execute(
            """
            SELECT COUNT(*) AS total,
                COALESCE(SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END), 0) AS completed,
                COALESCE(SUM(CASE WHEN status = 'completed' AND percentage >= ? THEN 1 ELSE 0 END), 0) AS passed,
                AVG(CASE WHEN status = 'completed' THEN percentage END) AS average
            FROM exams
            """,
            (passing,),
        ).fetchone()
        active_scheduled = conn.execute(
            "SELECT COUNT(*) FROM scheduled_exams WHERE status = 'active' AND is_active = 1"
        ).fetchone()[0]

        questions_by_subject = []
        by_difficulty = dict.fromkeys(DIFFICULTIES, 0)
        for table, (slug, name) in TABLE_SUBJECTS.items():
            questions_by_subject.append(
                {
                    "subject": name,
                    "slug": slug,
                    "count": conn.execute(
                        f"SELECT COUNT(*) FROM {table} WHERE is_active = 1"
                    ).fetchone()[0],
                }
            )
            for row in conn.execute(
                f"""
                SELECT difficulty, COUNT(*) AS n FROM {table}
                WHERE is_active = 1 GROUP BY difficulty
                """
            ).fetchall():
                by_difficulty[row["difficulty"]] = by_difficulty.get(row["difficulty"], 0) + row["n"]

    return {
        "total_users": total_users,
        "active_students": active_students,
        "total_exams": exam_row["total"],
        "completed_exams": exam_row["completed"],
        "total_questions": sum(s["count"] for s in questions_by_subject),
        "average_score": round(exam_row["average"] or 0),
        "pass_rate": round(_pct(exam_row["passed"], exam_row["completed"])),
        "completion_rate": round(_pct(exam_row["completed"], exam_row["total"])),
        "active_scheduled_exams": active_scheduled,
        "questions_by_subject": questions_by_subject,
        "questions_by_difficulty": [
            {"difficulty": d, "count": n} for d, n in by_difficulty.items()
        ],
    }


def get_kpi_metrics(now: datetime | None = None) -> dict[str, Any]:
    """Growth and engagement over the last 30 days vs the 30 before."""
    now = now or datetime.now(timezone.utc)
    current_start = _iso(now - timedelta(days=30))
    previous_start = _iso(now - timedelta(days=60))

    def count_between(conn: Any, table: str, start: str, end: str | None) -> int:
        sql = f"SELECT COUNT(*) FROM {table} WHERE created_at >= ?"
        params = [start]
        if end is not None:
            sql += " AND created_at < ?"
            params.append(end)
        return conn.execute(sql, params).fetchone()[0]

    with get_db() as conn:
        new_users = count_between(conn, "profiles", current_start, None)
        previous_users = count_between(conn, "profiles", previous_start, current_start)
        new_exams = count_between(conn, "exams", current_start, None)
        previous_exams = count_between(conn, "exams", previous_start, current_start)

        active_students = conn.execute(
            "SELECT COUNT(*) FROM profiles WHERE role = 'student' AND is_active = 1"
        ).fetchone()[0]
        total_exams = conn.execute("SELECT COUNT(*) FROM exams").fetchone()[0]
        retained = conn.execute(
            """
            SELECT COUNT(DISTINCT e.user_id) FROM exams e
            JOIN profiles p ON p.id = e.user_id
            WHERE p.role = 'student' AND p.is_active = 1 AND e.started_at >= ?
            """,
            (current_start,),
        ).fetchone()[0]

        type_counts: dict[str, int] = {}
        for table in QUESTION_TABLES:
            for row in conn.execute(
                f"""
                SELECT question_type, COUNT(*) AS n FROM {table}
                WHERE is_active = 1 GROUP BY question_type
                """
            ).fetchall():
                type_counts[row["question_type"]] = type_counts.get(row["question_type"], 0) + row["n"]

    return {
        "new_users": new_users,
        "new_exams": new_exams,
        "monthly_enrollment_growth": _growth(new_users, previous_users),
        "monthly_exam_growth": _growth(new_exams, previous_exams),
        "avg_exams_per_student": round(total_exams / active_students, 1) if active_students else 0,
        "student_retention_rate": round(_pct(retained, active_students), 1),
        "previous_period": {"new_users": previous_users, "new_exams": previous_exams},
        "question_type_breakdown": [
            {"question_type": t, "count": n}
            for t, n in sorted(type_counts.items(), key=lambda kv: kv[1], reverse=True)
        ],
    }


def get_recent_activity(limit: int = 5) -> list[dict[str, Any]]:
    """Most recent attempts with who took them and what."""
    items, _ = list_exams(limit=limit)
    return items


def get_class_level_analytics() -> list[dict[str, Any]]:
    """Per class level: students, attempts, average score and pass rate."""
    passing = load_app_config().exams.passing_percentage

    with get_db() as conn:
        levels = conn.execute(
            "SELECT id, name_en, slug FROM class_levels WHERE is_active = 1 ORDER BY order_index"
        ).fetchall()

        results = []
        for level in levels:
            keys = (level["id"], level["slug"], level["name_en"])
            students = conn.execute(
                """
                SELECT COUNT(*) FROM profiles
                WHERE role = 'student' AND class_level IN (?, ?, ?)
                """,
                keys,
            ).fetchone()[0]
            exam_row = conn.execute(
                """
                SELECT COUNT(*) AS total, AVG(e.percentage) AS average,
                    COALESCE(SUM(CASE WHEN e.percentage >= ? THEN 1 ELSE 0 END), 0) AS passed
                FROM exams e
                JOIN profiles p ON p.id = e.user_id
                WHERE p.class_level IN (?, ?, ?)
                """,
                (passing, *keys),
            ).fetchone()
            results.append(
                {
                    "class_level": level["name_en"],
                    "slug": level["slug"],
                    "total_students": students,
                    "total_exams": exam_row["total"],
                    "average_score": round(exam_row["average"] or 0),
                    "pass_rate": round(_pct(exam_row["passed"], exam_row["total"])),
                }
            )

    return sorted(results, key=lambda r: r["total_students"], reverse=True)


def get_subject_analytics() -> list[dict[str, Any]]:
    """Per subject: question bank size, attempts and average score."""
    with get_db() as conn:
        subjects = conn.execute(
            "SELECT id, name_en, slug FROM subjects WHERE is_active = 1 ORDER BY order_index"
        ).fetchall()

        results = []
        for subject in subjects:
            table = SUBJECT_TABLES.get(subject["slug"])
            if table is not None:
                questions = conn.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE is_active = 1"
                ).fetchone()[0]
            else:
                questions = sum(
                    conn.execute(
                        f"""
                        SELECT COUNT(*) FROM {t} q
                        JOIN chapters c ON c.id = q.chapter_id
                        WHERE c.subject_id = ? AND q.is_active = 1
                        """,
                        (subject["id"],),
                    ).fetchone()[0]
                    for t in QUESTION_TABLES
                )
            exam_row = conn.execute(
                "SELECT COUNT(*) AS total, AVG(percentage) AS average FROM exams WHERE subject_id = ?",
                (subject["id"],),
            ).fetchone()
            results.append(
                {
                    "subject": subject["name_en"],
                    "slug": subject["slug"],
                    "total_questions": questions,
                    "total_exams": exam_row["total"],
                    "average_score": round(exam_row["average"] or 0),
                }
            )

    return sorted(results, key=lambda r: r["total_exams"], reverse=True)


def _month_buckets(now: datetime, months: int) -> list[str]:
    """YYYY-MM keys for the last N calendar months, oldest first."""
    year, month = now.year, now.month
    keys = []
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def get_monthly_trends(months: int = 6, now: datetime | None = None) -> list[dict[str, Any]]:
    """Student enrollments, attempts and completions per calendar month."""
    now = now or datetime.now(timezone.utc)
    keys = _month_buckets(now, months)
    trends = {
        key: {
            "month": datetime.strptime(key, "%Y-%m").strftime("%b"),
            "period": key,
            "enrollments": 0,
            "exams": 0,
            "completions": 0,
        }
        for key in keys
    }
    start = f"{keys[0]}-01"

    with get_db() as conn:
        for row in conn.execute(
            """
            SELECT substr(created_at, 1, 7) AS period, COUNT(*) AS n FROM profiles
            WHERE role = 'student' AND created_at >= ?
            GROUP BY period
            """,
            (start,),
        ).fetchall():
            if row["period"] in trends:
                trends[row["period"]]["enrollments"] = row["n"]

        for row in conn.execute(
            """
            SELECT substr(created_at, 1, 7) AS period, COUNT(*) AS n,
                COALESCE(SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END), 0) AS completed
            FROM exams
            WHERE created_at >= ?
            GROUP BY period
            """,
            (start,),
        ).fetchall():
            if row["period"] in trends:
                trends[row["period"]]["exams"] = row["n"]
                trends[row["period"]]["completions"] = row["completed"]

    return [trends[key] for key in keys]
