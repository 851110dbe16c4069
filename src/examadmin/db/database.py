"""SQLite database connection and schema management.

Provides connection management, schema initialization and the small
helpers every repository shares (ids, timestamps, JSON columns).
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

import structlog

from examadmin.errors import ValidationError

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/examadmin.db")

# Current database (module-level, set by init_db)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to the configured path.
    """
    global _db_path
    if db_path is None:
        from examadmin.config.app_config import load_app_config

        db_path = Path(load_app_config().database_path)
    _db_path = db_path

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Return the database path currently in use."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM class_levels").fetchall()
    """
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def generate_id() -> str:
    """Generate a new UUID4 primary key."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Current UTC time as ISO-8601 text."""
    return datetime.now(timezone.utc).isoformat()


def dump_json(value: Any) -> str | None:
    """Serialize a JSON column value (None stays NULL)."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def load_json(value: str | None, default: Any = None) -> Any:
    """Deserialize a JSON column value."""
    if value is None or value == "":
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.warning("database.invalid_json", value=value[:80])
        return default


def build_update(
    table: str,
    fields: dict[str, Any],
    allowed: set[str],
    json_fields: frozenset[str] = frozenset(),
    nullable: frozenset[str] = frozenset(),
) -> tuple[str, list[Any]] | None:
    """Build an UPDATE statement for the allowed fields that were passed.

    Fields left out are untouched. An explicit None clears a nullable
    column. Always touches updated_at. The WHERE clause expects the id
    as the last parameter.

    Returns:
        (sql, params) or None if there is nothing to update

    Raises:
        ValidationError: If None is given for a required column
    """
    assignments = []
    params: list[Any] = []
    for name, value in fields.items():
        if name not in allowed:
            continue
        if value is None:
            if name not in nullable:
                raise ValidationError(f"{name} cannot be empty")
        elif name in json_fields:
            value = dump_json(value)
        elif isinstance(value, bool):
            value = int(value)
        assignments.append(f"{name} = ?")
        params.append(value)

    if not assignments:
        return None

    assignments.append("updated_at = ?")
    params.append(now_iso())
    sql = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?"
    return sql, params


def _question_table_ddl(table: str, default_language: str) -> str:
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id TEXT PRIMARY KEY,
            question_text TEXT NOT NULL,
            question_language TEXT NOT NULL DEFAULT '{default_language}',
            question_type TEXT NOT NULL,
            difficulty TEXT NOT NULL DEFAULT 'medium'
                CHECK(difficulty IN ('easy', 'medium', 'hard')),
            answer_data TEXT NOT NULL DEFAULT '{{}}',
            explanation TEXT,
            tags TEXT DEFAULT '[]',
            class_level TEXT NOT NULL,
            marks INTEGER NOT NULL DEFAULT 1,
            chapter_id TEXT REFERENCES chapters(id) ON DELETE SET NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_by TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_{table}_chapter ON {table}(chapter_id);
        CREATE INDEX IF NOT EXISTS idx_{table}_type ON {table}(question_type);
    """


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS schools (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            name_search TEXT NOT NULL,
            location_city TEXT,
            location_state TEXT,
            location_country TEXT DEFAULT 'India',
            address TEXT,
            type TEXT,
            level TEXT,
            founded_year INTEGER,
            is_verified INTEGER NOT NULL DEFAULT 0,
            is_user_added INTEGER NOT NULL DEFAULT 0,
            created_by TEXT,
            student_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            email TEXT UNIQUE,
            phone TEXT UNIQUE,
            password_hash TEXT,
            name TEXT,
            avatar_url TEXT,
            school_id TEXT REFERENCES schools(id) ON DELETE SET NULL,
            class_level TEXT,
            role TEXT NOT NULL DEFAULT 'student',
            permissions TEXT DEFAULT '{}',
            preferred_language TEXT DEFAULT 'en',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS class_levels (
            id TEXT PRIMARY KEY,
            name_en TEXT NOT NULL,
            name_mr TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            description_en TEXT,
            description_mr TEXT,
            order_index INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS subjects (
            id TEXT PRIMARY KEY,
            parent_subject_id TEXT REFERENCES subjects(id) ON DELETE SET NULL,
            name_en TEXT NOT NULL,
            name_mr TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            description_en TEXT,
            description_mr TEXT,
            icon TEXT,
            order_index INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            is_category INTEGER NOT NULL DEFAULT 0,
            is_paper INTEGER NOT NULL DEFAULT 0,
            paper_number INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS subject_class_mappings (
            id TEXT PRIMARY KEY,
            subject_id TEXT NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
            class_level_id TEXT NOT NULL REFERENCES class_levels(id) ON DELETE CASCADE,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(subject_id, class_level_id)
        );

        CREATE TABLE IF NOT EXISTS chapters (
            id TEXT PRIMARY KEY,
            subject_id TEXT NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
            name_en TEXT NOT NULL,
            name_mr TEXT NOT NULL,
            description_en TEXT,
            description_mr TEXT,
            order_index INTEGER NOT NULL DEFAULT 1,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS exam_structures (
            id TEXT PRIMARY KEY,
            subject_id TEXT REFERENCES subjects(id) ON DELETE SET NULL,
            class_level_id TEXT REFERENCES class_levels(id) ON DELETE SET NULL,
            name_en TEXT NOT NULL,
            name_mr TEXT NOT NULL,
            description_en TEXT,
            description_mr TEXT,
            class_level TEXT,
            duration_minutes INTEGER NOT NULL DEFAULT 60,
            total_questions INTEGER NOT NULL DEFAULT 50,
            total_marks INTEGER NOT NULL DEFAULT 100,
            passing_percentage INTEGER NOT NULL DEFAULT 35,
            sections TEXT NOT NULL DEFAULT '[]',
            is_template INTEGER NOT NULL DEFAULT 0,
            order_index INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS scheduled_exams (
            id TEXT PRIMARY KEY,
            class_level_id TEXT NOT NULL REFERENCES class_levels(id) ON DELETE CASCADE,
            subject_id TEXT NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
            exam_structure_id TEXT REFERENCES exam_structures(id) ON DELETE SET NULL,
            name_en TEXT NOT NULL,
            name_mr TEXT NOT NULL,
            description_en TEXT,
            description_mr TEXT,
            total_marks INTEGER NOT NULL DEFAULT 100,
            duration_minutes INTEGER NOT NULL DEFAULT 60,
            scheduled_date TEXT,
            scheduled_time TEXT,
            status TEXT NOT NULL DEFAULT 'draft'
                CHECK(status IN ('draft', 'scheduled', 'active', 'completed', 'cancelled')),
            order_index INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            publish_results INTEGER NOT NULL DEFAULT 0,
            max_attempts INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS exams (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            subject_id TEXT REFERENCES subjects(id) ON DELETE SET NULL,
            exam_structure_id TEXT REFERENCES exam_structures(id) ON DELETE SET NULL,
            scheduled_exam_id TEXT REFERENCES scheduled_exams(id) ON DELETE SET NULL,
            status TEXT NOT NULL DEFAULT 'in_progress'
                CHECK(status IN ('in_progress', 'completed', 'abandoned')),
            score INTEGER,
            total_marks INTEGER,
            percentage REAL,
            current_question_index INTEGER DEFAULT 0,
            time_remaining_seconds INTEGER,
            started_at TEXT NOT NULL,
            completed_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS exam_answers (
            id TEXT PRIMARY KEY,
            exam_id TEXT NOT NULL REFERENCES exams(id) ON DELETE CASCADE,
            question_id TEXT NOT NULL,
            question_table TEXT NOT NULL,
            user_answer TEXT,
            is_correct INTEGER,
            marks_obtained INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS question_import_batches (
            id TEXT PRIMARY KEY,
            subject_slug TEXT NOT NULL,
            batch_name TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'reviewed', 'imported', 'cancelled')),
            parsed_questions TEXT NOT NULL DEFAULT '[]',
            metadata TEXT DEFAULT '{}',
            created_by TEXT,
            imported_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_profiles_role ON profiles(role);
        CREATE INDEX IF NOT EXISTS idx_schools_name_search ON schools(name_search);
        CREATE INDEX IF NOT EXISTS idx_chapters_subject ON chapters(subject_id);
        CREATE INDEX IF NOT EXISTS idx_exams_user ON exams(user_id);
        CREATE INDEX IF NOT EXISTS idx_exams_scheduled ON exams(scheduled_exam_id);
        CREATE INDEX IF NOT EXISTS idx_exam_answers_exam ON exam_answers(exam_id);
        """
    )

    conn.executescript(_question_table_ddl("questions_scholarship", "mr"))
    conn.executescript(_question_table_ddl("questions_english", "en"))
    conn.executescript(_question_table_ddl("questions_information_technology", "en"))
