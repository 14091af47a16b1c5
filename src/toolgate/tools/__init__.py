"""
Tools module for Toolgate.

Domain modules describe each side-effecting action as a ToolDefinition
and register it with a ToolRegistry during startup.

Architecture:
    - ToolDefinition: Name, parameter model, scopes, risk and handler
    - ToolParameters: Base pydantic model for tool arguments
    - ToolRegistry: Central registry for looking up tools by name
    - tool(): Decorator building a ToolDefinition from a handler

Policy enforcement happens in the gateway BEFORE handler execution,
never inside handlers.
"""

from toolgate.tools.base import (
    NoParameters,
    ToolDefinition,
    ToolParameters,
    tool,
)
from toolgate.tools.registry import ToolRegistry

__all__ = [
    "NoParameters",
    "ToolDefinition",
    "ToolParameters",
    "ToolRegistry",
    "tool",
]
