"""
Database connection management.

Provides SQLite connections for data persistence.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "ai_video_cache.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection.

    WAL mode lets analytics readers run while workers write, and the
    busy timeout makes concurrent writers wait for the lock instead of
    failing immediately.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection
    """
    path = Path(db_path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=30)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    return conn
