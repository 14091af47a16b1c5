"""
Unit tests for schema models and config loading.

Tests cover:
- Enum values
- ExecutionContext coercion and immutability
- ConfirmationRequest and ExecutionResult helpers
- GatewayConfig validation and YAML loading
"""

from pathlib import Path

import pydantic
import pytest

from toolgate.schema import (
    AuditRecord,
    ConfirmationRequest,
    ExecutionContext,
    ExecutionMode,
    ExecutionResult,
    GatewayConfig,
    GuardrailDecision,
    GuardrailOutcome,
    RiskLevel,
    ToolSpec,
    load_config,
    load_config_from_string,
)


class TestEnums:
    """Tests for enum values."""

    def test_risk_levels(self) -> None:
        assert [r.value for r in RiskLevel] == ["low", "medium", "high"]

    def test_execution_modes(self) -> None:
        assert [m.value for m in ExecutionMode] == ["read_only", "auto_safe", "auto_full"]


class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_defaults(self) -> None:
        ctx = ExecutionContext(tenant_id="t", user_id="u", session_id="s")

        assert ctx.scopes == frozenset()
        assert ctx.mode == ExecutionMode.READ_ONLY
        assert ctx.dry_run is False

    def test_scopes_coerced_to_frozenset(self) -> None:
        ctx = ExecutionContext(
            tenant_id="t",
            user_id="u",
            session_id="s",
            scopes=["CRM_READ", "CRM_READ", "CRM_WRITE"],
            mode="auto_full",
        )

        assert ctx.scopes == frozenset({"CRM_READ", "CRM_WRITE"})
        assert ctx.mode == ExecutionMode.AUTO_FULL

    def test_immutable(self) -> None:
        ctx = ExecutionContext(tenant_id="t", user_id="u", session_id="s")
        with pytest.raises(pydantic.ValidationError):
            ctx.dry_run = True  # type: ignore[misc]

    def test_unknown_mode_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            ExecutionContext(tenant_id="t", user_id="u", session_id="s", mode="yolo")

    def test_extra_fields_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            ExecutionContext(tenant_id="t", user_id="u", session_id="s", role="admin")


class TestResults:
    """Tests for ExecutionResult and ConfirmationRequest."""

    def test_success(self) -> None:
        result = ExecutionResult.success({"a": 1}, simulated=True)

        assert result.ok is True
        assert result.data == {"a": 1}
        assert result.simulated is True
        assert result.confirmation_required is False

    def test_confirmed_args_sets_marker(self) -> None:
        request = ConfirmationRequest(
            tool="send_invoice",
            args={"invoiceId": "X"},
            reason="high risk",
        )

        assert request.confirmed_args() == {"invoiceId": "X", "confirm": True}
        assert request.args == {"invoiceId": "X"}

    def test_confirmed_args_custom_marker(self) -> None:
        request = ConfirmationRequest(tool="t", args={}, reason="r", marker="__confirm")
        assert request.confirmed_args() == {"__confirm": True}

    def test_confirmation_required_property(self) -> None:
        request = ConfirmationRequest(tool="t", reason="r")
        result = ExecutionResult(ok=False, error="needs confirmation", confirmation=request)
        assert result.confirmation_required is True


class TestGuardrailDecision:
    """Tests for GuardrailDecision factories."""

    def test_factories(self) -> None:
        assert GuardrailDecision.allow("ok").allowed is True
        assert GuardrailDecision.confirm("ask").outcome == GuardrailOutcome.CONFIRM

        blocked = GuardrailDecision.block(
            "missing",
            rule="required_scopes",
            missing_scopes=("A",),
            granted_scopes=(),
        )
        assert blocked.allowed is False
        assert blocked.missing_scopes == ("A",)


class TestToolSpec:
    """Tests for ToolSpec rendering."""

    def test_function_spec(self) -> None:
        spec = ToolSpec(name="list_clients", description="List", parameters={"type": "object"})

        assert spec.to_function_spec() == {
            "type": "function",
            "function": {
                "name": "list_clients",
                "description": "List",
                "parameters": {"type": "object"},
            },
        }


class TestAuditRecord:
    """Tests for AuditRecord validation."""

    def test_created_at_is_utc(self) -> None:
        record = AuditRecord(session_id="s", tool="t", ok=True)
        assert record.created_at.tzinfo is not None

    def test_negative_duration_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            AuditRecord(session_id="s", tool="t", ok=True, duration_ms=-1)


class TestGatewayConfig:
    """Tests for configuration."""

    def test_defaults(self) -> None:
        config = GatewayConfig()

        assert config.db_path == "toolgate.db"
        assert config.audit_queue_size == 1000
        assert config.flush_timeout_seconds == 5.0
        assert config.confirm_marker == "confirm"
        assert config.log_level == "INFO"

    def test_log_level_normalized(self) -> None:
        assert GatewayConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            GatewayConfig(log_level="chatty")

    def test_queue_size_must_be_positive(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            GatewayConfig(audit_queue_size=0)

    def test_load_from_string(self) -> None:
        config = load_config_from_string(
            """
db_path: /var/lib/toolgate/audit.db
audit_queue_size: 50
confirm_marker: __confirm
"""
        )

        assert config.db_path == "/var/lib/toolgate/audit.db"
        assert config.audit_queue_size == 50
        assert config.confirm_marker == "__confirm"

    def test_empty_yaml_gives_defaults(self) -> None:
        assert load_config_from_string("") == GatewayConfig()

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            load_config_from_string("retries: 3")

    def test_load_from_file(self, temp_dir: Path) -> None:
        path = temp_dir / "toolgate.yaml"
        path.write_text("flush_timeout_seconds: 1.5\nlog_level: warning\n")

        config = load_config(path)

        assert config.flush_timeout_seconds == 1.5
        assert config.log_level == "WARNING"

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(temp_dir / "missing.yaml")
