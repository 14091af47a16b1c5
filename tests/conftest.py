"""
Pytest configuration and fixtures for Toolgate tests.

This module provides shared fixtures used across unit and integration
tests: sample tools modelled on a studio CRM, recording handlers and
execution contexts.
"""

import tempfile
from pathlib import Path
from typing import Any, Callable, Generator

import pytest
from pydantic import Field

from toolgate import (
    ExecutionContext,
    Gateway,
    GatewayConfig,
    RiskLevel,
    ToolDefinition,
    ToolParameters,
)


class InvoiceArgs(ToolParameters):
    invoiceId: str = Field(min_length=1)


class SearchArgs(ToolParameters):
    query: str = Field(default="", max_length=100)
    limit: int = Field(default=10, ge=1, le=50)


class UpdateClientArgs(ToolParameters):
    clientId: str
    email: str | None = None


class RecordingHandler:
    """Handler that records every call it receives."""

    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[ExecutionContext, Any]] = []

    def __call__(self, ctx: ExecutionContext, args: Any) -> Any:
        self.calls.append((ctx, args))
        if self.error is not None:
            raise self.error
        return self.result

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def send_invoice_handler() -> RecordingHandler:
    return RecordingHandler(result={"sent": True})


@pytest.fixture
def list_clients_handler() -> RecordingHandler:
    return RecordingHandler(result=[{"id": "c1", "name": "Ada"}])


@pytest.fixture
def update_client_handler() -> RecordingHandler:
    return RecordingHandler(result={"updated": True})


@pytest.fixture
def send_invoice(send_invoice_handler: RecordingHandler) -> ToolDefinition:
    """High risk tool requiring INVOICE_WRITE."""
    return ToolDefinition(
        name="send_invoice",
        description="Email an invoice to the client",
        handler=send_invoice_handler,
        parameters=InvoiceArgs,
        scopes=frozenset({"INVOICE_WRITE"}),
        risk=RiskLevel.HIGH,
    )


@pytest.fixture
def list_clients(list_clients_handler: RecordingHandler) -> ToolDefinition:
    """Low risk tool with no required scopes."""
    return ToolDefinition(
        name="list_clients",
        description="List CRM clients",
        handler=list_clients_handler,
        parameters=SearchArgs,
        risk=RiskLevel.LOW,
    )


@pytest.fixture
def update_client(update_client_handler: RecordingHandler) -> ToolDefinition:
    """Medium risk tool requiring CRM_READ and CRM_WRITE."""
    return ToolDefinition(
        name="update_client",
        description="Update a client record",
        handler=update_client_handler,
        parameters=UpdateClientArgs,
        scopes=frozenset({"CRM_READ", "CRM_WRITE"}),
        risk=RiskLevel.MEDIUM,
    )


@pytest.fixture
def gateway(
    temp_dir: Path,
    send_invoice: ToolDefinition,
    list_clients: ToolDefinition,
    update_client: ToolDefinition,
) -> Generator[Gateway, None, None]:
    """A frozen gateway with the sample tools and a temporary database."""
    gw = Gateway(config=GatewayConfig(db_path=str(temp_dir / "audit.db")))
    gw.register_all([send_invoice, list_clients, update_client])
    gw.freeze()
    yield gw
    gw.close()


@pytest.fixture
def make_context() -> Callable[..., ExecutionContext]:
    """Factory for execution contexts with sensible defaults."""

    def _make(**overrides: Any) -> ExecutionContext:
        values: dict[str, Any] = {
            "tenant_id": "studio-1",
            "user_id": "user-1",
            "session_id": "sess-1",
            "scopes": [],
            "mode": "auto_safe",
            "dry_run": False,
        }
        values.update(overrides)
        return ExecutionContext(**values)

    return _make
