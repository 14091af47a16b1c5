"""
Schema definitions for Toolgate.

This module defines the Pydantic models used throughout Toolgate:
- ExecutionContext: Who is calling, with which scopes and in which mode
- ExecutionResult: The normalized outcome of every Gateway.execute call
- ConfirmationRequest: What a human must approve before a risky retry
- GuardrailDecision: The result of guardrail evaluation
- AuditRecord/AuditStats: The compliance trail and its aggregates
- ToolSpec: A tool as exposed to a calling agent
- GatewayConfig: Runtime configuration loaded from YAML

Design Decisions:
    - Models are immutable (frozen=True) and reject unknown fields
    - Per-call models (context, result) are cheap to build and discard
"""

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class RiskLevel(str, Enum):
    """Blast radius of a tool, driving the confirmation policy."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExecutionMode(str, Enum):
    """
    Execution policy chosen by the caller.

    READ_ONLY blocks every medium/high risk tool, AUTO_SAFE asks for
    confirmation before running them, AUTO_FULL runs everything.
    """

    READ_ONLY = "read_only"
    AUTO_SAFE = "auto_safe"
    AUTO_FULL = "auto_full"


class GuardrailOutcome(str, Enum):
    """Outcome of a guardrail evaluation."""

    ALLOW = "allow"
    BLOCK = "block"
    CONFIRM = "confirm"


# =============================================================================
# Runtime Models
# =============================================================================


class ExecutionContext(BaseModel):
    """
    Identity and permissions for a single tool call.

    Built once per call by the caller and never mutated by the gateway.

    Attributes:
        tenant_id: Tenant (studio) the user belongs to
        user_id: User making the request
        session_id: Conversation session, used to group audit records
        scopes: Capability strings granted to the caller
        mode: Execution mode controlling risky tools
        dry_run: Run handlers without real side effects; bypasses mode checks
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tenant_id: str = Field(..., description="Tenant the user belongs to")
    user_id: str = Field(..., description="User making the request")
    session_id: str = Field(..., description="Session ID for audit grouping")
    scopes: frozenset[str] = Field(
        default_factory=frozenset,
        description="Scopes granted to the caller",
    )
    mode: ExecutionMode = Field(
        default=ExecutionMode.READ_ONLY,
        description="Execution mode",
    )
    dry_run: bool = Field(
        default=False,
        description="Simulate side effects (shadow mode)",
    )


class ConfirmationRequest(BaseModel):
    """
    A risky action waiting for human sign-off.

    Nothing is stored server-side; the caller replays ``args`` with
    ``marker`` set to true once the human approves.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tool: str = Field(..., description="Tool awaiting confirmation")
    args: dict[str, Any] = Field(default_factory=dict, description="Original arguments")
    reason: str = Field(..., description="Human-readable reason")
    marker: str = Field(default="confirm", description="Key to set when resubmitting")

    def confirmed_args(self) -> dict[str, Any]:
        """Arguments to resubmit after the human approved."""
        return {**self.args, self.marker: True}


class ExecutionResult(BaseModel):
    """
    Normalized outcome of Gateway.execute.

    Attributes:
        ok: Whether the handler ran and returned successfully
        data: Handler result when ok
        error: Error message when not ok
        simulated: True when the call ran in dry-run mode
        error_type: Exception class name behind ``error``
        error_code: Numeric error code behind ``error``
        confirmation: Set when the call needs human confirmation
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ok: bool
    data: Any = None
    error: str | None = None
    simulated: bool = False
    error_type: str | None = None
    error_code: int | None = None
    confirmation: ConfirmationRequest | None = None

    @property
    def confirmation_required(self) -> bool:
        """Whether the caller should ask a human and retry."""
        return self.confirmation is not None

    @classmethod
    def success(cls, data: Any, simulated: bool = False) -> "ExecutionResult":
        """Create a successful result."""
        return cls(ok=True, data=data, simulated=simulated)


class GuardrailDecision(BaseModel):
    """
    Result of evaluating a tool call against the guardrails.

    Attributes:
        outcome: allow, block or confirm
        reason: Human-readable explanation of the decision
        rule: Which guardrail rule produced this decision
        missing_scopes: Required scopes the caller lacks (scope denials)
        granted_scopes: Scopes the caller holds
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    outcome: GuardrailOutcome
    reason: str
    rule: str | None = None
    missing_scopes: tuple[str, ...] = ()
    granted_scopes: tuple[str, ...] = ()

    @property
    def allowed(self) -> bool:
        """Whether the handler may run."""
        return self.outcome == GuardrailOutcome.ALLOW

    @classmethod
    def allow(cls, reason: str, rule: str | None = None) -> "GuardrailDecision":
        """Create an ALLOW decision."""
        return cls(outcome=GuardrailOutcome.ALLOW, reason=reason, rule=rule)

    @classmethod
    def block(cls, reason: str, rule: str | None = None, **scopes: Any) -> "GuardrailDecision":
        """Create a BLOCK decision."""
        return cls(outcome=GuardrailOutcome.BLOCK, reason=reason, rule=rule, **scopes)

    @classmethod
    def confirm(cls, reason: str, rule: str | None = None) -> "GuardrailDecision":
        """Create a CONFIRM decision."""
        return cls(outcome=GuardrailOutcome.CONFIRM, reason=reason, rule=rule)


class ToolSpec(BaseModel):
    """A tool as exposed to a calling agent's action catalog."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_function_spec(self) -> dict[str, Any]:
        """Render in the function-calling format used by LLM APIs."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


# =============================================================================
# Audit Models
# =============================================================================


class AuditRecord(BaseModel):
    """
    One tool invocation in the compliance trail.

    Records are append-only: the gateway never updates or deletes them.

    Attributes:
        id: Database row ID (None until persisted)
        session_id: Session the call belongs to
        tenant_id: Tenant of the caller
        user_id: Calling user
        tool: Requested tool name (may be unknown)
        args: Argument snapshot
        result: Result snapshot (None on failure)
        ok: Whether the call succeeded
        error: Error text on failure
        duration_ms: Elapsed wall-clock time
        simulated: Whether the call ran in dry-run mode
        created_at: When the record was created
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int | None = None
    session_id: str
    tenant_id: str = ""
    user_id: str = ""
    tool: str
    args: Any = None
    result: Any = None
    ok: bool
    error: str | None = None
    duration_ms: int = Field(default=0, ge=0)
    simulated: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AuditStats(BaseModel):
    """Aggregate audit figures for one tenant over a time window."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 0.0
    avg_duration_ms: int = 0
    tool_usage: dict[str, int] = Field(default_factory=dict)
    since: datetime
    until: datetime


# =============================================================================
# Configuration
# =============================================================================


class GatewayConfig(BaseModel):
    """
    Runtime configuration for a Gateway.

    Attributes:
        db_path: SQLite file holding the audit trail (":memory:" allowed)
        audit_queue_size: Records buffered before new ones are dropped
        flush_timeout_seconds: How long read paths wait for pending writes
        confirm_marker: Argument key that carries a human confirmation
        log_level: Level passed to configure_logging by the CLI
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    db_path: str = Field(default="toolgate.db", description="Audit database path")
    audit_queue_size: int = Field(
        default=1000,
        description="Maximum buffered audit records",
        gt=0,
    )
    flush_timeout_seconds: float = Field(
        default=5.0,
        description="Wait for pending audit writes on reads",
        gt=0,
    )
    confirm_marker: str = Field(
        default="confirm",
        description="Argument key carrying a confirmation",
        min_length=1,
    )
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            msg = f"Invalid log level: {v}"
            raise ValueError(msg)
        return level


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> GatewayConfig:
    """
    Load a gateway configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated GatewayConfig object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return GatewayConfig.model_validate(data or {})


def load_config_from_string(content: str) -> GatewayConfig:
    """Load a gateway configuration from a YAML string."""
    data = yaml.safe_load(content)
    return GatewayConfig.model_validate(data or {})
