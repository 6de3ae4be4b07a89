"""SQLite schema for the request history.

Mirrors the WAL-mode, ``CREATE ... IF NOT EXISTS`` style used for every
SQLite table in the service.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def init_request_history_table(conn: sqlite3.Connection) -> None:
    """Create the request_history table if it does not already exist.

    One row per accepted request.  Timestamps are POSIX seconds so the
    rolling-window cutoff is a plain numeric comparison.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS request_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sender TEXT NOT NULL,
            requested_at REAL NOT NULL
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_request_history_sender ON request_history (sender)"
    )

    conn.commit()


def init_history_db(db_path: Path) -> sqlite3.Connection:
    """Open (creating if needed) the request history database.

    Args:
        db_path: Path to the SQLite database file.  Parent directories are
            created.

    Returns:
        An open sqlite3.Connection with WAL mode enabled and the
        ``request_history`` table in place.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    init_request_history_table(conn)
    return conn
