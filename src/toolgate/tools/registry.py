"""
Tool registry for Toolgate.

The registry is the central location for all registered tools.
Tools must be registered before they can be executed.

Design:
    - Registration happens during a single-threaded bootstrap phase
    - Duplicate names are fatal: the existing registration is kept
    - freeze() ends the bootstrap; afterwards the dict is never mutated,
      so concurrent lookups need no locking
    - Catalog listings only ever include tools the caller may run

Usage:
    registry = ToolRegistry()
    registry.register(search_clients)
    registry.freeze()

    definition = registry.get("crm_clients_search")
"""

import logging
from collections import Counter
from typing import Any, Iterable, Iterator

from toolgate.errors import DuplicateToolError, RegistryFrozenError, UnknownToolError
from toolgate.schema import RiskLevel, ToolSpec
from toolgate.tools.base import ToolDefinition
from toolgate.validation import SchemaValidator

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for looking up tools by name.

    Attributes:
        _tools: Internal mapping of tool names to definitions
        _validators: Schema validators, built once per tool at registration
        _frozen: Whether the bootstrap phase has ended
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._tools: dict[str, ToolDefinition] = {}
        self._validators: dict[str, SchemaValidator] = {}
        self._frozen = False

    def register(self, definition: ToolDefinition) -> None:
        """
        Register a tool in the registry.

        Args:
            definition: The tool definition to register

        Raises:
            DuplicateToolError: If a tool with that name is already registered
            RegistryFrozenError: If freeze() has been called
            ValueError: If definition is None
        """
        if definition is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)

        if self._frozen:
            raise RegistryFrozenError(tool=definition.name)

        if definition.name in self._tools:
            logger.error("Duplicate tool registration rejected: %s", definition.name)
            raise DuplicateToolError(tool=definition.name)

        validator = SchemaValidator(definition.parameters)
        self._validators[definition.name] = validator
        self._tools[definition.name] = definition
        logger.info(
            "Registered tool: %s (scopes: %s, risk: %s)",
            definition.name,
            ", ".join(sorted(definition.scopes)) or "-",
            definition.risk.value,
        )

    def freeze(self) -> None:
        """End the bootstrap phase; further registration is an error."""
        self._frozen = True
        logger.debug("Tool registry frozen with %d tools", len(self._tools))

    @property
    def frozen(self) -> bool:
        """Whether the registry is read-only."""
        return self._frozen

    def get(self, name: str) -> ToolDefinition:
        """
        Look up a tool by name.

        Raises:
            UnknownToolError: If no tool with that name is registered
        """
        definition = self._tools.get(name)
        if definition is None:
            raise UnknownToolError(tool=name)
        return definition

    def get_optional(self, name: str) -> ToolDefinition | None:
        """Look up a tool by name, returning None if not found."""
        return self._tools.get(name)

    def validator_for(self, name: str) -> SchemaValidator:
        """
        Get the argument validator for a registered tool.

        Raises:
            UnknownToolError: If no tool with that name is registered
        """
        validator = self._validators.get(name)
        if validator is None:
            raise UnknownToolError(tool=name)
        return validator

    def list_tools(self) -> list[str]:
        """List all registered tool names in sorted order."""
        return sorted(self._tools.keys())

    def list_for_scopes(self, granted_scopes: Iterable[str]) -> list[ToolSpec]:
        """
        List the tools a caller holding ``granted_scopes`` may run.

        A tool is included only if ALL its required scopes are granted.
        Tools requiring other scopes are omitted entirely.

        Args:
            granted_scopes: Scopes held by the caller

        Returns:
            ToolSpec entries sorted by tool name
        """
        granted = frozenset(granted_scopes)
        return [
            ToolSpec(
                name=definition.name,
                description=definition.description,
                parameters=self._validators[definition.name].json_schema(),
            )
            for name, definition in sorted(self._tools.items())
            if definition.scopes <= granted
        ]

    def to_function_specs(self, granted_scopes: Iterable[str]) -> list[dict[str, Any]]:
        """Scope-filtered catalog in the function-calling format."""
        return [spec.to_function_spec() for spec in self.list_for_scopes(granted_scopes)]

    def stats(self) -> dict[str, Any]:
        """
        Summarize the registry for monitoring.

        Returns:
            Dict with total_tools, by_risk (every risk level) and by_scope
        """
        by_risk = {level.value: 0 for level in RiskLevel}
        by_scope: Counter[str] = Counter()
        for definition in self._tools.values():
            by_risk[definition.risk.value] += 1
            by_scope.update(definition.scopes)
        return {
            "total_tools": len(self._tools),
            "by_risk": by_risk,
            "by_scope": dict(by_scope),
        }

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDefinition]:
        """Iterate over all registered tools."""
        return iter(list(self._tools.values()))

    def __contains__(self, name: object) -> bool:
        """Check if a tool is registered using 'in' operator."""
        return name in self._tools

    def __repr__(self) -> str:
        """String representation of the registry."""
        tools = ", ".join(self.list_tools())
        return f"<ToolRegistry: [{tools}]>"
