"""
SQLite storage for the Toolgate audit trail.

All tool invocations are stored in a single ``tool_audit`` table whose
row shape is a stable contract for compliance consumers:

    session_id, tool, args_json, result_json (NULL on failure), ok,
    error (NULL on success), duration_ms, simulated, created_at

plus ``id`` (insertion order), ``tenant_id`` and ``user_id``.

Design Principles:
    - Append-only: rows are never updated or deleted
    - One connection shared between the writer thread and readers,
      serialized by a lock
"""

import json
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic_core import to_jsonable_python

from toolgate.errors import StorageConnectionError, StorageReadError, StorageWriteError
from toolgate.schema import AuditRecord

# Schema version for migrations
SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

-- One row per Gateway.execute call
CREATE TABLE IF NOT EXISTS tool_audit (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    tenant_id TEXT NOT NULL DEFAULT '',
    user_id TEXT NOT NULL DEFAULT '',
    tool TEXT NOT NULL,
    args_json TEXT NOT NULL,
    result_json TEXT,
    ok INTEGER NOT NULL,
    error TEXT,
    duration_ms INTEGER NOT NULL DEFAULT 0,
    simulated INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tool_audit_session ON tool_audit(session_id, created_at);
CREATE INDEX IF NOT EXISTS idx_tool_audit_tenant ON tool_audit(tenant_id, created_at);
"""


def now_iso() -> str:
    """Get current UTC time in ISO format."""
    return datetime.now(UTC).isoformat()


def to_json(data: Any) -> str:
    """Serialize a snapshot, falling back to str() for unknown types."""
    return json.dumps(to_jsonable_python(data, fallback=str), sort_keys=True)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so stored strings compare correctly."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AuditStore:
    """
    SQLite database for audit records.

    Usage:
        store = AuditStore("toolgate.db")
        store.append(record)
        history = store.session_history("sess-1")
        store.close()

    Or use as context manager:
        with AuditStore("toolgate.db") as store:
            ...
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
                     Will be created if it doesn't exist.
        """
        self.db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise StorageConnectionError(
                db_path=self.db_path,
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        """Initialize database schema if needed."""
        try:
            cursor = self._conn.executescript(CREATE_TABLES_SQL)
            cursor.close()

            cursor = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = cursor.fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "AuditStore":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Write Operations
    # =========================================================================

    def append(self, record: AuditRecord) -> int:
        """
        Insert an audit record.

        Args:
            record: The record to persist

        Returns:
            The row ID assigned to the record

        Raises:
            StorageWriteError: If serialization or the insert fails
        """
        try:
            args_json = to_json(record.args)
            result_json = to_json(record.result) if record.ok else None
        except (TypeError, ValueError) as e:
            raise StorageWriteError(
                operation="append",
                underlying_error=f"Cannot serialize snapshot: {e}",
            ) from e

        try:
            with self._lock:
                if self._conn is None:
                    raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
                cursor = self._conn.execute(
                    """
                    INSERT INTO tool_audit (
                        session_id, tenant_id, user_id, tool, args_json,
                        result_json, ok, error, duration_ms, simulated, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.session_id,
                        record.tenant_id,
                        record.user_id,
                        record.tool,
                        args_json,
                        result_json,
                        int(record.ok),
                        record.error,
                        record.duration_ms,
                        int(record.simulated),
                        _as_utc(record.created_at).isoformat(timespec="microseconds"),
                    ),
                )
                self._conn.commit()
                return cursor.lastrowid
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="append",
                underlying_error=str(e),
            ) from e

    # =========================================================================
    # Read Operations
    # =========================================================================

    def _query(self, operation: str, sql: str, params: tuple[Any, ...]) -> list[sqlite3.Row]:
        """Run a read query under the connection lock."""
        try:
            with self._lock:
                if self._conn is None:
                    raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageReadError(
                operation=operation,
                underlying_error=str(e),
            ) from e

    def session_history(self, session_id: str) -> list[AuditRecord]:
        """
        Get all records for a session.

        Returns:
            AuditRecords in creation order
        """
        rows = self._query(
            "session_history",
            "SELECT * FROM tool_audit WHERE session_id = ? ORDER BY created_at, id",
            (session_id,),
        )
        return [self._row_to_record(row) for row in rows]

    def records_since(self, tenant_id: str, since: datetime) -> list[AuditRecord]:
        """
        Get a tenant's records created at or after ``since``.

        Returns:
            AuditRecords in creation order
        """
        rows = self._query(
            "records_since",
            """
            SELECT * FROM tool_audit
            WHERE tenant_id = ? AND created_at >= ?
            ORDER BY created_at, id
            """,
            (tenant_id, _as_utc(since).isoformat(timespec="microseconds")),
        )
        return [self._row_to_record(row) for row in rows]

    def count(self) -> int:
        """Total number of audit rows."""
        rows = self._query("count", "SELECT COUNT(*) AS n FROM tool_audit", ())
        return rows[0]["n"]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> AuditRecord:
        """Rebuild an AuditRecord from a database row."""
        return AuditRecord(
            id=row["id"],
            session_id=row["session_id"],
            tenant_id=row["tenant_id"],
            user_id=row["user_id"],
            tool=row["tool"],
            args=json.loads(row["args_json"]),
            result=json.loads(row["result_json"]) if row["result_json"] is not None else None,
            ok=bool(row["ok"]),
            error=row["error"],
            duration_ms=row["duration_ms"],
            simulated=bool(row["simulated"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
