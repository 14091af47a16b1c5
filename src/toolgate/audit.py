"""
Audit logging for Toolgate.

Every gateway call (success or failure) produces one AuditRecord for:
- Debugging: replay what the agent did in a session
- Compliance: audit trail for financial/GDPR actions
- Analytics: success rates, durations, tool usage

Writes are fire-and-forget. append() only enqueues; a daemon thread hands
records to the sink. A failing sink or a full queue is logged and never
raised back to the caller, so a broken audit store cannot block tool
execution or change its result.
"""

import logging
import queue
import threading
from datetime import UTC, datetime
from typing import Any, Protocol

from toolgate.schema import AuditRecord, AuditStats

logger = logging.getLogger(__name__)

_STOP = object()


class AuditSink(Protocol):
    """Durable destination for audit records (see AuditStore)."""

    def append(self, record: AuditRecord) -> Any: ...

    def session_history(self, session_id: str) -> list[AuditRecord]: ...

    def records_since(self, tenant_id: str, since: datetime) -> list[AuditRecord]: ...


def compute_stats(records: list[AuditRecord], since: datetime) -> AuditStats:
    """
    Aggregate a window of records.

    An empty window yields zero counts and rates.
    """
    total = len(records)
    successful = sum(1 for r in records if r.ok)
    usage: dict[str, int] = {}
    for record in records:
        usage[record.tool] = usage.get(record.tool, 0) + 1

    return AuditStats(
        total=total,
        successful=successful,
        failed=total - successful,
        success_rate=(successful / total) * 100 if total else 0.0,
        avg_duration_ms=round(sum(r.duration_ms for r in records) / total) if total else 0,
        tool_usage=usage,
        since=since,
        until=datetime.now(UTC),
    )


class AuditLogger:
    """
    Non-blocking audit writer with a synchronous read path.

    Usage:
        audit = AuditLogger(AuditStore("toolgate.db"))
        audit.append(record)               # returns immediately
        audit.get_session_history("s-1")   # waits for pending writes first
        audit.close()

    Attributes:
        sink: Where records are persisted
        flush_timeout: Seconds read paths wait for pending writes
        dropped: Records discarded because the queue was full
        failed: Records the sink refused
    """

    def __init__(
        self,
        sink: AuditSink,
        queue_size: int = 1000,
        flush_timeout: float = 5.0,
    ) -> None:
        self.sink = sink
        self.flush_timeout = flush_timeout
        self.dropped = 0
        self.failed = 0
        self._counter_lock = threading.Lock()
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=queue_size)
        self._closed = False
        self._thread = threading.Thread(
            target=self._run,
            name="toolgate-audit-writer",
            daemon=True,
        )
        self._thread.start()

    # =========================================================================
    # Write Path
    # =========================================================================

    def append(self, record: AuditRecord) -> bool:
        """
        Queue a record for writing.

        Never blocks and never raises.

        Returns:
            True if queued, False if the record was dropped
        """
        if self._closed:
            logger.error("Audit logger closed; dropping record for %s", record.tool)
            self._count_dropped()
            return False
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            logger.error("Audit queue full; dropping record for %s", record.tool)
            self._count_dropped()
            return False
        return True

    def _count_dropped(self) -> None:
        with self._counter_lock:
            self.dropped += 1

    def flush(self, timeout: float | None = None) -> bool:
        """
        Wait until every record queued so far has reached the sink.

        Args:
            timeout: Seconds to wait (defaults to flush_timeout)

        Returns:
            True if all pending records were handled in time
        """
        if self._closed or not self._thread.is_alive():
            return self._queue.unfinished_tasks == 0
        timeout = self.flush_timeout if timeout is None else timeout
        done = threading.Event()
        try:
            self._queue.put(done, timeout=timeout)
        except queue.Full:
            logger.warning("Audit flush timed out with a full queue")
            return False
        if not done.wait(timeout):
            logger.warning("Audit flush timed out after %.1fs", timeout)
            return False
        return True

    def close(self, timeout: float | None = None) -> None:
        """Drain pending records and stop the writer thread."""
        if self._closed:
            return
        timeout = self.flush_timeout if timeout is None else timeout
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.error("Audit queue still full on close; pending records may be lost")
        self._closed = True
        self._thread.join(timeout)

    def _run(self) -> None:
        """Writer thread: hand queued records to the sink in order."""
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                if isinstance(item, threading.Event):
                    item.set()
                    continue
                self._write(item)
            finally:
                self._queue.task_done()

    def _write(self, record: AuditRecord) -> None:
        try:
            self.sink.append(record)
        except Exception:
            with self._counter_lock:
                self.failed += 1
            logger.exception(
                "Failed to write audit record for %s (session %s)",
                record.tool,
                record.session_id,
            )
            return
        logger.debug(
            "Logged: %s (ok=%s, duration=%dms, simulated=%s)",
            record.tool,
            record.ok,
            record.duration_ms,
            record.simulated,
        )

    # =========================================================================
    # Read Path
    # =========================================================================

    def get_session_history(self, session_id: str) -> list[AuditRecord]:
        """Records for a session, in creation order."""
        self.flush()
        return self.sink.session_history(session_id)

    def get_stats(self, tenant_id: str, since: datetime) -> AuditStats:
        """
        Aggregate a tenant's records created at or after ``since``.

        Returns:
            AuditStats with counts, success rate (percent), average
            duration and per-tool usage
        """
        self.flush()
        return compute_stats(self.sink.records_since(tenant_id, since), since)
