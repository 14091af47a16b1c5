"""
Guardrail module for Toolgate.

This module implements the authorization model: scope checks plus a
deny-by-default decision table over execution mode and risk level.

Key concepts:
    - GuardrailDecision: allow / block / confirm plus a reason
    - GuardrailEngine: evaluates a tool call for a caller
    - DECISION_TABLE: the (mode, risk) outcomes outside dry-run
"""

from toolgate.policy.engine import (
    DECISION_TABLE,
    GuardrailEngine,
    explain,
    recommended_mode,
    would_require_confirmation,
)

__all__ = [
    "DECISION_TABLE",
    "GuardrailEngine",
    "explain",
    "recommended_mode",
    "would_require_confirmation",
]
