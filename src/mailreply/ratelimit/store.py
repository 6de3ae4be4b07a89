"""Persisted sender -> timestamp history behind an atomic read-modify-write contract.

``HistoryStore.transaction()`` yields the whole history as a mutable
``dict[str, list[float]]`` and persists it when the block exits cleanly; an
exception inside the block discards the changes.

Both implementations assume a single-threaded caller.  The JSON store holds
no lock at all, and the SQLite store relies on ``BEGIN IMMEDIATE`` only, so a
concurrent pipeline must serialize calls to ``transaction()`` itself.
"""

from __future__ import annotations

import json
import os
import sqlite3
import tempfile
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Any, Protocol

import structlog

logger = structlog.get_logger()

History = dict[str, list[float]]


class HistoryStore(Protocol):
    """Storage for the per-sender request history."""

    def load(self) -> History: ...

    def transaction(self) -> AbstractContextManager[History]: ...


def _coerce(raw: Any) -> History:
    """Keep only ``{str: [number, ...]}`` entries from decoded JSON."""
    if not isinstance(raw, dict):
        return {}
    history: History = {}
    for sender, stamps in raw.items():
        if not isinstance(stamps, list):
            continue
        history[str(sender)] = [
            float(s) for s in stamps if isinstance(s, (int, float)) and not isinstance(s, bool)
        ]
    return history


class JsonHistoryStore:
    """History kept in a JSON file of ``{"sender": [timestamp, ...]}``.

    The file (and its directory) is created empty if absent.  Writes go to a
    temporary file in the same directory followed by ``os.replace`` so a
    crash never leaves a truncated history behind.  An unreadable file is
    renamed to ``<name>.corrupt`` and history starts over empty.

    Args:
        path: Location of the JSON file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        if not self._path.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self.save({})
            logger.info("request_history_created", path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> History:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            self._quarantine()
            return {}
        return _coerce(raw)

    def _quarantine(self) -> None:
        """Move an unreadable history file aside so the next save cannot erase it."""
        corrupt = self._path.with_name(f"{self._path.name}.corrupt")
        os.replace(self._path, corrupt)
        logger.error(
            "request_history_corrupt",
            path=str(self._path),
            moved_to=str(corrupt),
        )

    def save(self, history: History) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(history, fh, indent=4)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @contextmanager
    def transaction(self) -> Iterator[History]:
        history = self.load()
        yield history
        self.save(history)


class SqliteHistoryStore:
    """History kept in the ``request_history`` table.

    Follows the service's SQLite store pattern: takes an open connection,
    parameterized queries only, commit after every write.

    Args:
        conn: An open sqlite3.Connection whose database already has the
              ``request_history`` table (see ``init_request_history_table``).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def load(self) -> History:
        history: History = {}
        rows = self._conn.execute(
            "SELECT sender, requested_at FROM request_history ORDER BY sender, requested_at"
        ).fetchall()
        for sender, requested_at in rows:
            history.setdefault(sender, []).append(float(requested_at))
        return history

    @contextmanager
    def transaction(self) -> Iterator[History]:
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            history = self.load()
            yield history
            self._conn.execute("DELETE FROM request_history")
            self._conn.executemany(
                "INSERT INTO request_history (sender, requested_at) VALUES (?, ?)",
                [(sender, stamp) for sender, stamps in history.items() for stamp in stamps],
            )
        except BaseException:
            self._conn.rollback()
            raise
        self._conn.commit()
