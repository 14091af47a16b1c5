"""
CLI entry point for Toolgate.

The gateway itself is a library embedded in an agent server; the CLI
exposes its read-only compliance endpoints over an audit database.

Commands:
    history     Show the audit trail of one session
    stats       Aggregate audit figures for a tenant over a time window
    explain     Explain how the guardrail treats a mode/risk combination
"""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from toolgate import __version__
from toolgate.audit import AuditLogger
from toolgate.errors import GatewayError
from toolgate.logging import configure_logging
from toolgate.policy import explain as explain_guardrail
from toolgate.policy import would_require_confirmation
from toolgate.schema import ExecutionMode, GatewayConfig, RiskLevel, load_config
from toolgate.store import AuditStore

app = typer.Typer(
    name="toolgate",
    help="Inspect the audit trail and guardrails of a tool execution gateway.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

DbOption = Annotated[
    Optional[Path],
    typer.Option(
        "--db",
        help="Path to the audit SQLite database. Overrides the config file.",
        resolve_path=True,
    ),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to a gateway config YAML file.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output results in JSON format."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]toolgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Logging level for gateway messages."),
    ] = "WARNING",
) -> None:
    """
    Toolgate - validation, guardrails and audit for agent tool calls.
    """
    configure_logging(log_level)


def _open_audit(db: Optional[Path], config_path: Optional[Path]) -> tuple[AuditStore, AuditLogger]:
    """Open the audit store selected by --db / --config."""
    config = load_config(config_path) if config_path else GatewayConfig()
    db_path = db if db is not None else Path(config.db_path)
    if not db_path.exists():
        console.print(f"[red]Error:[/red] Audit database not found: {db_path}")
        raise typer.Exit(code=1)
    store = AuditStore(db_path)
    return store, AuditLogger(store, flush_timeout=config.flush_timeout_seconds)


@app.command()
def history(
    session_id: Annotated[str, typer.Argument(help="Session ID to show.")],
    db: DbOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show every tool call recorded for a session, oldest first.
    """
    store, audit = _open_audit(db, config)
    try:
        records = audit.get_session_history(session_id)
    except GatewayError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1) from e
    finally:
        audit.close()
        store.close()

    if json_output:
        print(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        console.print(f"[yellow]No audit records for session {session_id}[/yellow]")
        return

    table = Table(title=f"Session {session_id}")
    table.add_column("Time", style="dim")
    table.add_column("Tool", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Error", overflow="fold")

    for record in records:
        status = "[green]ok[/green]" if record.ok else "[red]failed[/red]"
        if record.simulated:
            status += " [dim](dry run)[/dim]"
        table.add_row(
            record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            record.tool,
            status,
            f"{record.duration_ms}ms",
            record.error or "",
        )

    console.print(table)


@app.command()
def stats(
    tenant_id: Annotated[str, typer.Argument(help="Tenant ID to aggregate.")],
    since: Annotated[
        Optional[datetime],
        typer.Option("--since", help="Start of the window (ISO date/time, UTC)."),
    ] = None,
    hours: Annotated[
        float,
        typer.Option("--hours", help="Window length when --since is not given."),
    ] = 24.0,
    db: DbOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show call counts, success rate, average duration and tool usage.
    """
    if since is None:
        since = datetime.now(UTC) - timedelta(hours=hours)
    elif since.tzinfo is None:
        since = since.replace(tzinfo=UTC)

    store, audit = _open_audit(db, config)
    try:
        result = audit.get_stats(tenant_id, since)
    except GatewayError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1) from e
    finally:
        audit.close()
        store.close()

    if json_output:
        print(result.model_dump_json(indent=2))
        return

    console.print(f"\n[bold]Tenant:[/bold] {tenant_id}")
    console.print(
        f"[bold]Window:[/bold] {result.since.isoformat(timespec='seconds')} "
        f"→ {result.until.isoformat(timespec='seconds')}"
    )
    console.print(
        f"[bold]Calls:[/bold] {result.total} "
        f"([green]{result.successful} ok[/green], [red]{result.failed} failed[/red])"
    )
    console.print(f"[bold]Success rate:[/bold] {result.success_rate:.1f}%")
    console.print(f"[bold]Avg duration:[/bold] {result.avg_duration_ms}ms")

    if result.tool_usage:
        table = Table(title="Tool usage")
        table.add_column("Tool", style="cyan")
        table.add_column("Calls", justify="right")
        for name, count in sorted(result.tool_usage.items(), key=lambda kv: (-kv[1], kv[0])):
            table.add_row(name, str(count))
        console.print(table)


@app.command()
def explain(
    mode: Annotated[ExecutionMode, typer.Argument(help="Execution mode.")],
    risk: Annotated[RiskLevel, typer.Argument(help="Tool risk level.")],
    tool_name: Annotated[str, typer.Argument(help="Tool name for the message.")] = "this tool",
) -> None:
    """
    Explain whether a tool would run, be blocked, or need confirmation.
    """
    console.print(explain_guardrail(mode, risk, tool_name))
    if would_require_confirmation(mode, risk):
        console.print("[yellow]Confirmation required before execution.[/yellow]")


if __name__ == "__main__":
    app()
