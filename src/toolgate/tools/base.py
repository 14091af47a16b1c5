"""
Base types for tool definitions.

This module defines the core abstractions for tools in Toolgate:
- ToolParameters: Base class for a tool's declared parameter model
- ToolDefinition: Name, schema, scopes, risk and handler of one tool
- tool(): Decorator that turns a handler function into a ToolDefinition

Design Principles:
    - Definitions are immutable once built
    - Handlers receive validated, typed arguments; validation happens first
    - Handlers raise on failure; the gateway wraps the error
    - Handlers see ctx.dry_run and must avoid real side effects when set
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable

from pydantic import BaseModel, ConfigDict

from toolgate.schema import RiskLevel

if TYPE_CHECKING:
    from toolgate.schema import ExecutionContext


Handler = Callable[["ExecutionContext", Any], Any]


class ToolParameters(BaseModel):
    """
    Base class for tool parameter models.

    Unknown fields are rejected and the validated arguments are frozen,
    so a handler cannot mutate what the audit trail recorded.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")


class NoParameters(ToolParameters):
    """Parameter model for tools that take no arguments."""


@dataclass(frozen=True)
class ToolDefinition:
    """
    A tool registered with the gateway.

    Attributes:
        name: Unique tool name in snake_case (e.g. "crm_clients_search")
        description: Human-readable description shown to the calling agent
        parameters: Pydantic model class describing the arguments
        handler: Callable receiving (context, typed_args)
        scopes: Scopes a caller must ALL hold to run this tool
        risk: Risk level driving the confirmation policy
    """

    name: str
    description: str
    handler: Handler
    parameters: type[BaseModel] = NoParameters
    scopes: frozenset[str] = field(default_factory=frozenset)
    risk: RiskLevel = RiskLevel.LOW

    def __post_init__(self) -> None:
        """Normalize scopes and risk, and check the name format."""
        if not self.name:
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)
        for part in self.name.split("."):
            if not part.replace("_", "").isalnum():
                msg = f"Invalid tool name format: {self.name}"
                raise ValueError(msg)
        if not callable(self.handler):
            msg = f"Handler for {self.name} is not callable"
            raise TypeError(msg)
        if not (isinstance(self.parameters, type) and issubclass(self.parameters, BaseModel)):
            msg = f"Parameters for {self.name} must be a pydantic model class"
            raise TypeError(msg)
        # Unknown argument keys must be rejected, not silently dropped
        if self.parameters.model_config.get("extra") != "forbid":
            msg = (
                f"Parameters for {self.name} must forbid extra fields "
                "(subclass ToolParameters or set extra='forbid')"
            )
            raise TypeError(msg)

        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "scopes", frozenset(self.scopes))
        object.__setattr__(self, "risk", RiskLevel(self.risk))

    def __repr__(self) -> str:
        """String representation of the tool."""
        return f"<Tool: {self.name} risk={self.risk.value}>"


def tool(
    name: str,
    description: str,
    parameters: type[BaseModel] = NoParameters,
    scopes: Iterable[str] = (),
    risk: RiskLevel | str = RiskLevel.LOW,
) -> Callable[[Handler], ToolDefinition]:
    """
    Build a ToolDefinition from a handler function.

    Example:
        class SearchArgs(ToolParameters):
            query: str = Field(min_length=1)

        @tool("crm_clients_search", "Search clients", SearchArgs,
              scopes=["CRM_READ"])
        def search_clients(ctx, args):
            return crm.search(ctx.tenant_id, args.query)
    """

    def decorator(handler: Handler) -> ToolDefinition:
        return ToolDefinition(
            name=name,
            description=description,
            handler=handler,
            parameters=parameters,
            scopes=frozenset(scopes),
            risk=RiskLevel(risk),
        )

    return decorator
