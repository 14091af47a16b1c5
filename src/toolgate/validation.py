"""
Argument validation for tool calls.

Raw arguments arrive as JSON-like dicts produced by a calling agent.
SchemaValidator checks them against the tool's pydantic parameter model
and produces either typed arguments or field-level violations.

Validation runs in strict JSON mode: values must already have the
declared JSON type ("5" is not an integer), while strings are still
accepted for enums and ISO dates the way an API client would send them.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

import pydantic
from pydantic import BaseModel


@dataclass(frozen=True)
class FieldViolation:
    """
    One rule broken by one argument.

    Attributes:
        field: Dotted path to the offending field ("" for the whole payload)
        rule: Violated rule identifier (e.g. "missing", "greater_than_equal")
        constraint: The constraint value, when the rule has one (e.g. 1)
        message: Human-readable explanation
    """

    field: str
    rule: str
    constraint: Any = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "field": self.field,
            "rule": self.rule,
            "constraint": self.constraint,
            "message": self.message,
        }


@dataclass(frozen=True)
class ParseOutcome:
    """Either typed arguments or the violations that prevented them."""

    args: BaseModel | None = None
    violations: list[FieldViolation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether the arguments were valid."""
        return self.args is not None and not self.violations


def _constraint_value(ctx: Mapping[str, Any] | None) -> Any:
    """Pick the constraint out of a pydantic error context."""
    if not ctx:
        return None
    value = next(iter(ctx.values()))
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return str(value)


class SchemaValidator:
    """
    Validates raw arguments against a pydantic parameter model.

    Usage:
        validator = SchemaValidator(SendInvoiceArgs)
        outcome = validator.parse({"invoiceId": "X"})
        if outcome.ok:
            handler(ctx, outcome.args)
        else:
            report(outcome.violations)
    """

    def __init__(self, model: type[BaseModel]) -> None:
        self.model = model

    def parse(self, raw_args: Any) -> ParseOutcome:
        """
        Validate raw arguments.

        Args:
            raw_args: Arguments as received from the caller (None means {})

        Returns:
            ParseOutcome with typed args or field violations
        """
        if raw_args is None:
            raw_args = {}

        if not isinstance(raw_args, Mapping):
            return ParseOutcome(violations=[
                FieldViolation(
                    field="",
                    rule="dict_type",
                    constraint="object",
                    message=f"Arguments must be an object, got {type(raw_args).__name__}",
                )
            ])

        try:
            payload = json.dumps(dict(raw_args))
        except (TypeError, ValueError) as e:
            return ParseOutcome(violations=[
                FieldViolation(
                    field="",
                    rule="json_serializable",
                    message=f"Arguments are not JSON-serializable: {e}",
                )
            ])

        try:
            args = self.model.model_validate_json(payload, strict=True)
        except pydantic.ValidationError as e:
            return ParseOutcome(violations=[
                FieldViolation(
                    field=".".join(str(part) for part in error["loc"]),
                    rule=error["type"],
                    constraint=_constraint_value(error.get("ctx")),
                    message=error["msg"],
                )
                for error in e.errors(include_url=False)
            ])

        return ParseOutcome(args=args)

    def json_schema(self) -> dict[str, Any]:
        """The externally-visible parameter shape as JSON Schema."""
        schema = self.model.model_json_schema()
        schema.pop("title", None)
        return schema

    def __repr__(self) -> str:
        return f"<SchemaValidator: {self.model.__name__}>"
