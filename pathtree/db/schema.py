"""Database initialisation.

``init_db(conn)`` is idempotent: safe to call on an existing database.
"""

from __future__ import annotations

import sqlite3

from pathtree.config import settings


def _read_schema() -> str:
    """Load the bundled schema.sql."""
    return settings.schema_path.read_text(encoding="utf-8")


def init_db(conn: sqlite3.Connection) -> None:
    """Create the ``nodes`` table and its indexes.

    Every DDL statement uses ``IF NOT EXISTS``, so calling this on a
    database that already holds a tree leaves its rows untouched.

    Args:
        conn: An open, configured SQLite connection.
    """
    # executescript() commits any pending transaction first
    conn.executescript(_read_schema())
