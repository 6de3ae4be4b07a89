"""Tests for the JSON and SQLite history stores."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mailreply.ratelimit.schema import init_history_db
from mailreply.ratelimit.store import JsonHistoryStore, SqliteHistoryStore

# ---------------------------------------------------------------------------
# JSON file store
# ---------------------------------------------------------------------------


class TestJsonHistoryStore:
    """File-backed history."""

    def test_creates_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "history.json"

        store = JsonHistoryStore(path)

        assert path.exists()
        assert store.load() == {}

    def test_transaction_persists(self, tmp_path: Path) -> None:
        store = JsonHistoryStore(tmp_path / "history.json")

        with store.transaction() as history:
            history["ayse@firma.com.tr"] = [1.0, 2.0]

        assert json.loads(store.path.read_text(encoding="utf-8")) == {
            "ayse@firma.com.tr": [1.0, 2.0]
        }

    def test_failed_transaction_discards_changes(self, tmp_path: Path) -> None:
        store = JsonHistoryStore(tmp_path / "history.json")

        with pytest.raises(RuntimeError):
            with store.transaction() as history:
                history["ayse@firma.com.tr"] = [1.0]
                raise RuntimeError("boom")

        assert store.load() == {}

    def test_corrupt_file_reads_as_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        path.write_text("{not json", encoding="utf-8")

        assert JsonHistoryStore(path).load() == {}

    def test_corrupt_file_is_kept_aside(self, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        path.write_text('{"ayse@firma.com.tr": [1.0, 2.0', encoding="utf-8")
        store = JsonHistoryStore(path)

        with store.transaction() as history:
            history["mehmet@firma.com.tr"] = [3.0]

        corrupt = tmp_path / "history.json.corrupt"
        assert corrupt.read_text(encoding="utf-8") == '{"ayse@firma.com.tr": [1.0, 2.0'
        assert json.loads(path.read_text(encoding="utf-8")) == {"mehmet@firma.com.tr": [3.0]}

    def test_malformed_entries_dropped(self, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        path.write_text(
            json.dumps({"a@x.com": [1, "x", True, 2.5], "b@x.com": "nope"}), encoding="utf-8"
        )

        assert JsonHistoryStore(path).load() == {"a@x.com": [1.0, 2.5]}

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = JsonHistoryStore(tmp_path / "history.json")

        with store.transaction() as history:
            history["a@x.com"] = [1.0]

        assert [p.name for p in tmp_path.iterdir()] == ["history.json"]


# ---------------------------------------------------------------------------
# SQLite store
# ---------------------------------------------------------------------------


class TestSqliteHistoryStore:
    """Table-backed history."""

    def test_transaction_persists(self, tmp_path: Path) -> None:
        conn = init_history_db(tmp_path / "db" / "history.db")
        store = SqliteHistoryStore(conn)

        with store.transaction() as history:
            history["ayse@firma.com.tr"] = [1.0, 2.0]
            history["mehmet@firma.com.tr"] = [3.0]

        assert store.load() == {
            "ayse@firma.com.tr": [1.0, 2.0],
            "mehmet@firma.com.tr": [3.0],
        }
        conn.close()

    def test_failed_transaction_rolls_back(self, tmp_path: Path) -> None:
        conn = init_history_db(tmp_path / "history.db")
        store = SqliteHistoryStore(conn)
        with store.transaction() as history:
            history["ayse@firma.com.tr"] = [1.0]

        with pytest.raises(RuntimeError):
            with store.transaction() as history:
                history.clear()
                raise RuntimeError("boom")

        assert store.load() == {"ayse@firma.com.tr": [1.0]}
        conn.close()

    def test_schema_is_idempotent(self, tmp_path: Path) -> None:
        path = tmp_path / "history.db"
        init_history_db(path).close()

        conn = init_history_db(path)
        tables = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='request_history'"
        ).fetchall()
        conn.close()

        assert tables == [("request_history",)]
