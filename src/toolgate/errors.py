"""
Exception hierarchy for Toolgate.

All Toolgate exceptions inherit from GatewayError, allowing callers to catch
all gateway-specific exceptions with a single except clause.

Exception Categories:
    - Policy errors: the guardrail refused the call (scopes, mode, confirmation)
    - Tool errors: unknown tool, invalid arguments, handler failure
    - Configuration errors: duplicate, late or reserved-field registration (fatal at startup)
    - Storage errors: audit database operation failed

Inside Gateway.execute every error is converted into an ExecutionResult;
only configuration errors are meant to propagate.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Policy errors: 1xxx
ERROR_POLICY_DENIED = 1001
ERROR_POLICY_MISSING_SCOPES = 1002
ERROR_POLICY_MODE_BLOCKED = 1003
ERROR_POLICY_CONFIRMATION_REQUIRED = 1004

# Tool errors: 2xxx
ERROR_TOOL_NOT_FOUND = 2001
ERROR_TOOL_INVALID_ARGS = 2002
ERROR_TOOL_HANDLER_FAILED = 2003

# Configuration errors: 3xxx
ERROR_CONFIG_DUPLICATE_TOOL = 3001
ERROR_CONFIG_REGISTRY_FROZEN = 3002
ERROR_CONFIG_RESERVED_FIELD = 3003

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class GatewayError(Exception):
    """
    Base exception for all Toolgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Policy Errors
# =============================================================================


@dataclass
class PolicyDeniedError(GatewayError):
    """
    Raised when the guardrail refuses a tool call.

    Attributes:
        tool: Name of the tool that was blocked
        reason: Why the guardrail denied this action
        rule: Which guardrail rule caused the denial
    """

    tool: str = ""
    reason: str = ""
    rule: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Policy denied {self.tool}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_POLICY_DENIED
        self.context.update({
            "tool": self.tool,
            "reason": self.reason,
            "rule": self.rule,
        })


@dataclass
class AuthorizationError(PolicyDeniedError):
    """Raised when the caller lacks one or more required scopes."""

    missing_scopes: list[str] = field(default_factory=list)
    granted_scopes: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            granted = ", ".join(self.granted_scopes) or "(none)"
            self.message = (
                f"Missing required scopes for {self.tool}: "
                f"{', '.join(self.missing_scopes)} (granted: {granted})"
            )
        if self.code == 0:
            self.code = ERROR_POLICY_MISSING_SCOPES
        if not self.suggestion:
            self.suggestion = "Grant the missing scopes to the calling user"
        if not self.rule:
            self.rule = "required_scopes"
        super().__post_init__()
        self.context.update({
            "missing_scopes": self.missing_scopes,
            "granted_scopes": self.granted_scopes,
        })


@dataclass
class ModeBlockedError(PolicyDeniedError):
    """Raised when the execution mode forbids the tool's risk level."""

    mode: str = ""
    risk: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Read-only mode forbids {self.risk} risk tools: "
                f"{self.tool} cannot be executed"
            )
        if self.code == 0:
            self.code = ERROR_POLICY_MODE_BLOCKED
        if not self.suggestion:
            self.suggestion = "Switch to auto_safe mode to enable confirmable actions"
        super().__post_init__()
        self.context.update({"mode": self.mode, "risk": self.risk})


@dataclass
class ConfirmationRequiredError(PolicyDeniedError):
    """
    Raised when a risky action needs explicit human sign-off.

    The caller is expected to show ``reason`` to a human and, on approval,
    resubmit the same arguments with the confirmation marker set.
    """

    tool_args: dict[str, Any] = field(default_factory=dict)
    risk: str = ""
    marker: str = "confirm"

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.reason:
            self.reason = f"This action is {self.risk} risk and requires confirmation"
        if not self.message:
            self.message = f"Confirmation required for {self.tool}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_POLICY_CONFIRMATION_REQUIRED
        if not self.suggestion:
            self.suggestion = f"Resubmit the same arguments with {self.marker}=true"
        if not self.rule:
            self.rule = "confirm_risky"
        super().__post_init__()
        self.context.update({
            "tool_args": self.tool_args,
            "risk": self.risk,
            "marker": self.marker,
        })


# =============================================================================
# Tool Errors
# =============================================================================


@dataclass
class ToolError(GatewayError):
    """
    Base class for tool lookup, validation and handler errors.

    Attributes:
        tool: Name of the tool involved
        tool_args: Arguments that were provided
    """

    tool: str = ""
    tool_args: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "tool": self.tool,
            "tool_args": self.tool_args,
        })


@dataclass
class UnknownToolError(ToolError):
    """Raised when a tool is not registered."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown tool: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check tool name spelling or register the tool"
        super().__post_init__()


@dataclass
class ValidationError(ToolError):
    """
    Raised when tool arguments do not match the declared parameters.

    Attributes:
        violations: Field-level violations, as dicts with
            ``field``, ``rule``, ``constraint`` and ``message`` keys
    """

    violations: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            details = "; ".join(
                f"{v.get('field') or '<root>'}: {v.get('message')}"
                for v in self.violations
            )
            self.message = f"Validation failed for {self.tool}: {details}"
        if self.code == 0:
            self.code = ERROR_TOOL_INVALID_ARGS
        super().__post_init__()
        self.context["violations"] = self.violations


@dataclass
class HandlerError(ToolError):
    """Raised when a tool handler fails; keeps the original message."""

    underlying_error: str = ""
    error_class: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = self.underlying_error or f"Tool {self.tool} failed"
        if self.code == 0:
            self.code = ERROR_TOOL_HANDLER_FAILED
        super().__post_init__()
        self.context.update({
            "underlying_error": self.underlying_error,
            "error_class": self.error_class,
        })


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigurationError(GatewayError):
    """
    Base class for startup-time programming errors.

    These are never converted into an ExecutionResult; they should
    abort process startup.
    """

    tool: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["tool"] = self.tool


@dataclass
class DuplicateToolError(ConfigurationError):
    """Raised when a tool name is registered twice."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool already registered: {self.tool}"
        if self.code == 0:
            self.code = ERROR_CONFIG_DUPLICATE_TOOL
        if not self.suggestion:
            self.suggestion = "Tool names must be unique; rename one of the tools"
        super().__post_init__()


@dataclass
class RegistryFrozenError(ConfigurationError):
    """Raised when registering after the bootstrap phase has ended."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Registry is frozen; cannot register {self.tool}"
        if self.code == 0:
            self.code = ERROR_CONFIG_REGISTRY_FROZEN
        if not self.suggestion:
            self.suggestion = "Register all tools before calling freeze()"
        super().__post_init__()


@dataclass
class ReservedFieldError(ConfigurationError):
    """Raised when a parameter model declares the confirmation marker key."""

    field_name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Parameters for {self.tool} declare reserved field "
                f"'{self.field_name}' (the confirmation marker)"
            )
        if self.code == 0:
            self.code = ERROR_CONFIG_RESERVED_FIELD
        if not self.suggestion:
            self.suggestion = "Rename the field or configure a different confirm_marker"
        super().__post_init__()
        self.context["field_name"] = self.field_name


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(GatewayError):
    """
    Base class for audit storage errors.

    Attributes:
        operation: The operation that failed (e.g., "append", "query")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when database connection fails."""

    db_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error
