"""
Toolgate - Execution gateway for agent-initiated tool calls.

Toolgate sits between an LLM agent and the functions that change the world
(sending email, creating invoices, ...). Every call goes through:
- Schema validation of the arguments (pydantic)
- Scope-based authorization (deny-by-default)
- Risk-tiered confirmation gating by execution mode
- Non-blocking audit logging to SQLite

Example usage:
    gateway = Gateway()
    gateway.register(send_invoice)
    gateway.freeze()
    result = gateway.execute(ctx, "send_invoice", {"invoiceId": "X"})

    $ toolgate history <session_id>
    $ toolgate stats <tenant_id> --hours 24
"""

__version__ = "0.1.0"
__author__ = "Toolgate Contributors"

from toolgate.engine import Gateway
from toolgate.schema import (
    AuditRecord,
    AuditStats,
    ConfirmationRequest,
    ExecutionContext,
    ExecutionMode,
    ExecutionResult,
    GatewayConfig,
    RiskLevel,
)
from toolgate.tools import ToolDefinition, ToolParameters, ToolRegistry, tool

__all__ = [
    "__version__",
    "__author__",
    "AuditRecord",
    "AuditStats",
    "ConfirmationRequest",
    "ExecutionContext",
    "ExecutionMode",
    "ExecutionResult",
    "Gateway",
    "GatewayConfig",
    "RiskLevel",
    "ToolDefinition",
    "ToolParameters",
    "ToolRegistry",
    "tool",
]
