"""
Guardrail Engine for Toolgate.

The Guardrail Engine is the security boundary of Toolgate. Every tool call
must pass through it after argument validation and before the handler runs.

Design Principles:
    - Deny-by-default: any (mode, risk) pair missing from the table blocks
    - Pure: decisions depend only on the tool, the context and the
      confirmation flag; the engine holds no per-call state
    - Auditable: all decisions include a reason and the rule that fired

How it works:
    1. Scope check: every required scope must be granted
    2. Dry-run bypass: dry-run calls skip the mode/risk table
    3. Mode/risk table lookup: allow, block or ask for confirmation
    4. A confirmation request becomes allow when the caller confirmed
"""

import logging
from typing import Iterable

from toolgate.errors import (
    AuthorizationError,
    ConfirmationRequiredError,
    ModeBlockedError,
    PolicyDeniedError,
)
from toolgate.schema import (
    ExecutionContext,
    ExecutionMode,
    GuardrailDecision,
    GuardrailOutcome,
    RiskLevel,
)
from toolgate.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

ALLOW = GuardrailOutcome.ALLOW
BLOCK = GuardrailOutcome.BLOCK
CONFIRM = GuardrailOutcome.CONFIRM

# Outcome for every (mode, risk) pair when not in dry-run.
DECISION_TABLE: dict[tuple[ExecutionMode, RiskLevel], GuardrailOutcome] = {
    (ExecutionMode.READ_ONLY, RiskLevel.LOW): ALLOW,
    (ExecutionMode.READ_ONLY, RiskLevel.MEDIUM): BLOCK,
    (ExecutionMode.READ_ONLY, RiskLevel.HIGH): BLOCK,
    (ExecutionMode.AUTO_SAFE, RiskLevel.LOW): ALLOW,
    (ExecutionMode.AUTO_SAFE, RiskLevel.MEDIUM): CONFIRM,
    (ExecutionMode.AUTO_SAFE, RiskLevel.HIGH): CONFIRM,
    (ExecutionMode.AUTO_FULL, RiskLevel.LOW): ALLOW,
    (ExecutionMode.AUTO_FULL, RiskLevel.MEDIUM): ALLOW,
    (ExecutionMode.AUTO_FULL, RiskLevel.HIGH): ALLOW,
}

ROLE_MODES: dict[str, ExecutionMode] = {
    "admin": ExecutionMode.AUTO_FULL,
    "owner": ExecutionMode.AUTO_FULL,
    "photographer": ExecutionMode.AUTO_SAFE,
    "manager": ExecutionMode.AUTO_SAFE,
    "viewer": ExecutionMode.READ_ONLY,
    "client": ExecutionMode.READ_ONLY,
}


def lookup_outcome(mode: ExecutionMode, risk: RiskLevel) -> GuardrailOutcome:
    """Table outcome for a (mode, risk) pair, BLOCK when unknown."""
    return DECISION_TABLE.get((mode, risk), BLOCK)


def would_require_confirmation(mode: ExecutionMode | str, risk: RiskLevel | str) -> bool:
    """
    Whether a tool of ``risk`` would need confirmation in ``mode``.

    Useful for a UI that warns before the action is attempted. Blocked
    combinations return False: they are refused, not confirmed.
    """
    return lookup_outcome(ExecutionMode(mode), RiskLevel(risk)) == CONFIRM


def explain(mode: ExecutionMode | str, risk: RiskLevel | str, tool_name: str) -> str:
    """Human-readable explanation of how the guardrail treats a tool."""
    mode = ExecutionMode(mode)
    risk = RiskLevel(risk)
    outcome = lookup_outcome(mode, risk)

    if outcome == BLOCK:
        return (
            f"{tool_name} is blocked because you're in {mode.value} mode. "
            "Switch to auto_safe mode to enable confirmable actions."
        )
    if outcome == CONFIRM:
        return f"{tool_name} is {risk.value} risk and requires your confirmation before executing."
    return f"{tool_name} is allowed to execute automatically."


def recommended_mode(role: str) -> ExecutionMode:
    """Suggested execution mode for a user role; unknown roles get READ_ONLY."""
    return ROLE_MODES.get(role.lower(), ExecutionMode.READ_ONLY)


class GuardrailEngine:
    """
    Central guardrail evaluator for Toolgate.

    Usage:
        engine = GuardrailEngine()
        decision = engine.evaluate(definition, ctx, confirmed=False)
        if decision.allowed:
            # proceed with handler execution
        else:
            # block, or ask a human and retry

    The engine is stateless and safe to share between threads.
    """

    def evaluate(
        self,
        definition: ToolDefinition,
        context: ExecutionContext,
        confirmed: bool = False,
    ) -> GuardrailDecision:
        """
        Evaluate a tool call against scopes, mode and risk.

        Args:
            definition: The tool being called
            context: The caller's identity, scopes and mode
            confirmed: Whether the caller sent the confirmation marker

        Returns:
            GuardrailDecision with outcome and reason
        """
        scope_decision = self.check_scopes(definition, context.scopes)
        if not scope_decision.allowed:
            logger.warning(
                "BLOCKED: %s - missing scopes: %s",
                definition.name,
                ", ".join(scope_decision.missing_scopes),
            )
            return scope_decision

        decision = self.check_mode(definition, context, confirmed)
        if decision.outcome == BLOCK:
            logger.warning("BLOCKED: %s - %s", definition.name, decision.reason)
        elif decision.outcome == CONFIRM:
            logger.warning(
                "CONFIRM REQUIRED: %s (risk: %s)",
                definition.name,
                definition.risk.value,
            )
        else:
            logger.debug("ALLOWED: %s - %s", definition.name, decision.reason)
        return decision

    def enforce(
        self,
        definition: ToolDefinition,
        context: ExecutionContext,
        confirmed: bool = False,
        tool_args: dict | None = None,
        marker: str = "confirm",
    ) -> GuardrailDecision:
        """
        Evaluate and raise unless the call is allowed.

        Args:
            definition: The tool being called
            context: The caller's identity, scopes and mode
            confirmed: Whether the caller sent the confirmation marker
            tool_args: Arguments to echo back in a confirmation request
            marker: Argument key the caller must set to confirm

        Returns:
            The ALLOW decision

        Raises:
            AuthorizationError: Missing scopes
            ModeBlockedError: Mode forbids the tool's risk level
            ConfirmationRequiredError: Human confirmation needed
        """
        decision = self.evaluate(definition, context, confirmed)

        if decision.outcome == ALLOW:
            return decision

        if decision.outcome == CONFIRM:
            raise ConfirmationRequiredError(
                tool=definition.name,
                tool_args=dict(tool_args or {}),
                risk=definition.risk.value,
                marker=marker,
                reason=decision.reason,
                rule=decision.rule,
            )

        if decision.rule == "required_scopes":
            raise AuthorizationError(
                tool=definition.name,
                reason=decision.reason,
                missing_scopes=list(decision.missing_scopes),
                granted_scopes=list(decision.granted_scopes),
            )

        if decision.rule == "read_only_mode":
            raise ModeBlockedError(
                tool=definition.name,
                reason=decision.reason,
                rule=decision.rule,
                mode=context.mode.value,
                risk=definition.risk.value,
            )

        raise PolicyDeniedError(
            tool=definition.name,
            reason=decision.reason,
            rule=decision.rule,
        )

    def check_scopes(
        self,
        definition: ToolDefinition,
        granted_scopes: Iterable[str],
    ) -> GuardrailDecision:
        """
        Check that ALL required scopes are granted.

        Returns:
            ALLOW, or BLOCK listing the missing and granted scopes
        """
        granted = frozenset(granted_scopes)
        missing = definition.scopes - granted
        if missing:
            return GuardrailDecision.block(
                f"Missing required scopes: {', '.join(sorted(missing))}",
                rule="required_scopes",
                missing_scopes=tuple(sorted(missing)),
                granted_scopes=tuple(sorted(granted)),
            )
        return GuardrailDecision.allow("All required scopes granted", rule="required_scopes")

    def check_mode(
        self,
        definition: ToolDefinition,
        context: ExecutionContext,
        confirmed: bool = False,
    ) -> GuardrailDecision:
        """
        Apply the dry-run bypass and the mode/risk decision table.

        Precedence: dry-run, then the table (low risk always allows,
        read_only blocks risky tools, auto_safe asks for confirmation,
        auto_full allows everything).
        """
        risk = definition.risk
        mode = context.mode

        if context.dry_run:
            return GuardrailDecision.allow(
                f"Dry run: {definition.name} (risk: {risk.value})",
                rule="dry_run",
            )

        outcome = lookup_outcome(mode, risk)

        if outcome == ALLOW:
            if risk == RiskLevel.LOW:
                return GuardrailDecision.allow(f"{definition.name} is low risk", rule="low_risk")
            return GuardrailDecision.allow(
                f"Auto-approved in {mode.value} mode",
                rule=f"{mode.value}_mode",
            )

        if outcome == CONFIRM:
            if confirmed:
                return GuardrailDecision.allow(
                    f"{definition.name} confirmed by user",
                    rule="confirmed",
                )
            return GuardrailDecision.confirm(
                f"This action is {risk.value} risk and requires confirmation",
                rule="confirm_risky",
            )

        if mode == ExecutionMode.READ_ONLY:
            return GuardrailDecision.block(
                f"Read-only mode forbids {risk.value} risk tools",
                rule="read_only_mode",
            )

        return GuardrailDecision.block(
            f"No rule allows {risk.value} risk tools in {mode.value} mode",
            rule="deny_by_default",
        )
