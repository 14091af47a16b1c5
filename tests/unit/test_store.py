"""
Unit tests for SQLite audit storage.

Tests cover:
- Database initialization
- Appending records and reading them back
- Session and tenant/time-window queries
- Snapshot serialization
- Closed-connection errors
"""

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Generator

import pytest

from toolgate.errors import StorageReadError, StorageWriteError
from toolgate.schema import AuditRecord
from toolgate.store import AuditStore, to_json


@pytest.fixture
def store(temp_dir: Path) -> Generator[AuditStore, None, None]:
    database = AuditStore(temp_dir / "audit.db")
    yield database
    database.close()


def _record(**overrides: Any) -> AuditRecord:
    values: dict[str, Any] = {
        "session_id": "sess-1",
        "tenant_id": "studio-1",
        "user_id": "user-1",
        "tool": "list_clients",
        "args": {"query": "ada"},
        "result": [{"id": "c1"}],
        "ok": True,
        "duration_ms": 12,
    }
    values.update(overrides)
    return AuditRecord(**values)


class TestInitialization:
    """Tests for schema creation."""

    def test_creates_tables(self, temp_dir: Path) -> None:
        path = temp_dir / "audit.db"
        AuditStore(path).close()

        conn = sqlite3.connect(path)
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        columns = [row[1] for row in conn.execute("PRAGMA table_info(tool_audit)")]
        conn.close()

        assert {"schema_version", "tool_audit"} <= tables
        assert columns == [
            "id",
            "session_id",
            "tenant_id",
            "user_id",
            "tool",
            "args_json",
            "result_json",
            "ok",
            "error",
            "duration_ms",
            "simulated",
            "created_at",
        ]

    def test_reopen_existing(self, temp_dir: Path) -> None:
        path = temp_dir / "audit.db"
        with AuditStore(path) as first:
            first.append(_record())
        with AuditStore(path) as second:
            assert second.count() == 1

    def test_in_memory(self) -> None:
        with AuditStore(":memory:") as mem:
            mem.append(_record())
            assert mem.count() == 1


class TestAppend:
    """Tests for writing records."""

    def test_roundtrip(self, store: AuditStore) -> None:
        record = _record()
        row_id = store.append(record)

        [stored] = store.session_history("sess-1")
        assert stored.id == row_id
        assert stored.tool == "list_clients"
        assert stored.args == {"query": "ada"}
        assert stored.result == [{"id": "c1"}]
        assert stored.ok is True
        assert stored.duration_ms == 12
        assert stored.created_at == record.created_at

    def test_failed_call_has_null_result(self, store: AuditStore) -> None:
        store.append(_record(ok=False, result={"ignored": True}, error="Unknown tool: x"))

        row = store._query("test", "SELECT result_json, error FROM tool_audit", ())[0]
        assert row["result_json"] is None
        assert row["error"] == "Unknown tool: x"

    def test_simulated_flag(self, store: AuditStore) -> None:
        store.append(_record(simulated=True))
        assert store.session_history("sess-1")[0].simulated is True

    def test_unusual_values_serialized(self, store: AuditStore) -> None:
        when = datetime(2024, 5, 1, 9, 30, tzinfo=UTC)
        store.append(_record(result={"when": when, "tags": {"a"}}))

        [stored] = store.session_history("sess-1")
        assert stored.result["when"] == "2024-05-01T09:30:00Z"
        assert stored.result["tags"] == ["a"]

    def test_append_after_close(self, store: AuditStore) -> None:
        store.close()
        with pytest.raises(StorageWriteError):
            store.append(_record())


class TestQueries:
    """Tests for session and tenant queries."""

    def test_session_history_in_creation_order(self, store: AuditStore) -> None:
        base = datetime(2024, 5, 1, tzinfo=UTC)
        store.append(_record(tool="second", created_at=base + timedelta(seconds=1)))
        store.append(_record(tool="first", created_at=base))
        store.append(_record(tool="other", session_id="sess-2", created_at=base))

        assert [r.tool for r in store.session_history("sess-1")] == ["first", "second"]

    def test_unknown_session(self, store: AuditStore) -> None:
        assert store.session_history("missing") == []

    def test_records_since_filters_tenant_and_time(self, store: AuditStore) -> None:
        now = datetime.now(UTC)
        store.append(_record(tool="old", created_at=now - timedelta(days=2)))
        store.append(_record(tool="recent", created_at=now - timedelta(minutes=5)))
        store.append(_record(tool="foreign", tenant_id="studio-2", created_at=now))

        records = store.records_since("studio-1", now - timedelta(hours=1))
        assert [r.tool for r in records] == ["recent"]

    def test_records_since_naive_datetime_is_utc(self, store: AuditStore) -> None:
        store.append(_record(created_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC)))

        assert len(store.records_since("studio-1", datetime(2024, 5, 1, 11, 59))) == 1
        assert store.records_since("studio-1", datetime(2024, 5, 1, 12, 1)) == []

    def test_read_after_close(self, store: AuditStore) -> None:
        store.close()
        with pytest.raises(StorageReadError):
            store.session_history("sess-1")


class TestToJson:
    """Tests for snapshot serialization."""

    def test_sorted_keys(self) -> None:
        assert to_json({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'

    def test_unknown_type_falls_back_to_str(self) -> None:
        class Opaque:
            def __str__(self) -> str:
                return "opaque"

        assert to_json({"x": Opaque()}) == '{"x": "opaque"}'
