"""
Integration tests for the Toolgate CLI.

Tests cover:
- --version
- history (table and JSON output)
- stats (table and JSON output)
- explain
- Missing database and config handling
"""

import json
from pathlib import Path
from typing import Callable

import pytest
from typer.testing import CliRunner

from toolgate import ExecutionContext, Gateway, GatewayConfig, ToolDefinition, __version__
from toolgate.cli import app

runner = CliRunner()


@pytest.fixture
def audit_db(
    temp_dir: Path,
    send_invoice: ToolDefinition,
    list_clients: ToolDefinition,
    make_context: Callable[..., ExecutionContext],
) -> Path:
    """An audit database holding a short session."""
    path = temp_dir / "audit.db"
    with Gateway(config=GatewayConfig(db_path=str(path))) as gw:
        gw.register_all([send_invoice, list_clients])
        ctx = make_context(scopes=["INVOICE_WRITE"])
        gw.execute(ctx, "list_clients", {"query": "ada"})
        gw.execute(ctx, "send_invoice", {"invoiceId": "X"})
        gw.execute(ctx, "send_invoice", {"invoiceId": "X", "confirm": True})
    return path


class TestVersion:
    """Tests for --version."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestHistory:
    """Tests for the history command."""

    def test_history_json(self, audit_db: Path) -> None:
        result = runner.invoke(app, ["history", "sess-1", "--db", str(audit_db), "--json"])

        assert result.exit_code == 0
        records = json.loads(result.stdout)
        assert [r["tool"] for r in records] == ["list_clients", "send_invoice", "send_invoice"]
        assert [r["ok"] for r in records] == [True, False, True]
        assert records[1]["result"] is None
        assert "Confirmation required" in records[1]["error"]

    def test_history_table(self, audit_db: Path) -> None:
        result = runner.invoke(app, ["history", "sess-1", "--db", str(audit_db)])

        assert result.exit_code == 0
        assert "list_clients" in result.output
        assert "send_invoice" in result.output

    def test_history_empty_session(self, audit_db: Path) -> None:
        result = runner.invoke(app, ["history", "nobody", "--db", str(audit_db)])

        assert result.exit_code == 0
        assert "No audit records" in result.output

    def test_missing_database(self, temp_dir: Path) -> None:
        result = runner.invoke(app, ["history", "sess-1", "--db", str(temp_dir / "missing.db")])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_database_from_config(self, audit_db: Path, temp_dir: Path) -> None:
        config = temp_dir / "toolgate.yaml"
        config.write_text(f"db_path: {audit_db}\n")

        result = runner.invoke(app, ["history", "sess-1", "--config", str(config), "--json"])

        assert result.exit_code == 0
        assert len(json.loads(result.stdout)) == 3


class TestStats:
    """Tests for the stats command."""

    def test_stats_json(self, audit_db: Path) -> None:
        result = runner.invoke(app, ["stats", "studio-1", "--db", str(audit_db), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total"] == 3
        assert data["successful"] == 2
        assert data["failed"] == 1
        assert data["tool_usage"] == {"list_clients": 1, "send_invoice": 2}

    def test_stats_other_tenant(self, audit_db: Path) -> None:
        result = runner.invoke(app, ["stats", "studio-2", "--db", str(audit_db), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total"] == 0
        assert data["success_rate"] == 0.0

    def test_stats_since_future(self, audit_db: Path) -> None:
        result = runner.invoke(
            app,
            ["stats", "studio-1", "--since", "2999-01-01", "--db", str(audit_db), "--json"],
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["total"] == 0

    def test_stats_summary(self, audit_db: Path) -> None:
        result = runner.invoke(app, ["stats", "studio-1", "--db", str(audit_db)])

        assert result.exit_code == 0
        assert "Success rate" in result.output
        assert "send_invoice" in result.output


class TestExplain:
    """Tests for the explain command."""

    def test_confirm(self) -> None:
        result = runner.invoke(app, ["explain", "auto_safe", "high", "send_invoice"])

        assert result.exit_code == 0
        assert "requires your confirmation" in result.output
        assert "Confirmation required before execution." in result.output

    def test_blocked(self) -> None:
        result = runner.invoke(app, ["explain", "read_only", "medium"])

        assert result.exit_code == 0
        assert "this tool is blocked" in result.output
        assert "Confirmation required" not in result.output

    def test_allowed(self) -> None:
        result = runner.invoke(app, ["explain", "auto_full", "high", "send_invoice"])

        assert result.exit_code == 0
        assert "allowed to execute automatically" in result.output

    def test_invalid_mode(self) -> None:
        result = runner.invoke(app, ["explain", "turbo", "high"])
        assert result.exit_code != 0
