"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository modules, one per table family
"""

from examadmin.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
