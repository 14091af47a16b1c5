"""
Storage module for Toolgate.

SQLite persistence for the audit trail: one append-only ``tool_audit``
row per gateway call, queryable by session and by tenant/time window.
"""

from toolgate.store.db import AuditStore, to_json

__all__ = [
    "AuditStore",
    "to_json",
]
