"""
Execution Gateway for Toolgate.

The Gateway is the only component callers use at runtime. It coordinates:
- Tool Registry: finds the tool definition
- Schema Validator: turns raw arguments into typed arguments
- Guardrail Engine: decides allow / block / confirm
- Audit Logger: records the call

Execution Flow (per call):
    1. Look up the tool (unknown tool fails fast)
    2. Strip the confirmation marker and validate the arguments
    3. Enforce scopes and the mode/risk table
    4. Invoke the handler, wrapping any exception in HandlerError
    5. Queue exactly one audit record, whatever happened
    6. Return a normalized ExecutionResult

execute() never raises. Confirmation is stateless: nothing is remembered
between calls, a confirmed resubmission is validated and authorized
again from scratch.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Iterable

from toolgate.audit import AuditLogger, AuditSink
from toolgate.errors import (
    ConfirmationRequiredError,
    GatewayError,
    HandlerError,
    ReservedFieldError,
    ValidationError,
)
from toolgate.policy import GuardrailEngine
from toolgate.schema import (
    AuditRecord,
    AuditStats,
    ConfirmationRequest,
    ExecutionContext,
    ExecutionResult,
    GatewayConfig,
    ToolSpec,
)
from toolgate.store import AuditStore
from toolgate.tools import ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _run_awaitable(awaitable: Awaitable[Any]) -> Any:
    """
    Drive an async handler's result to completion from synchronous code.

    execute() may be called from a thread that already runs an event loop;
    the coroutine then gets its own loop in a helper thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_await(awaitable))

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="toolgate-handler") as pool:
        return pool.submit(asyncio.run, _await(awaitable)).result()


class Gateway:
    """
    Tool execution gateway.

    Usage:
        gateway = Gateway(config=GatewayConfig(db_path="audit.db"))
        gateway.register(send_invoice)
        gateway.freeze()

        result = gateway.execute(ctx, "send_invoice", {"invoiceId": "X"})
        if result.confirmation_required:
            # ask the human, then:
            result = gateway.execute(ctx, "send_invoice",
                                     result.confirmation.confirmed_args())

    Attributes:
        config: Gateway configuration
        registry: Tool registry
        guardrails: Guardrail engine
        audit: Audit logger
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        registry: ToolRegistry | None = None,
        sink: AuditSink | None = None,
        guardrails: GuardrailEngine | None = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            config: Configuration (defaults to GatewayConfig())
            registry: Tool registry (defaults to an empty registry)
            sink: Audit sink (defaults to an AuditStore at config.db_path)
            guardrails: Guardrail engine (defaults to GuardrailEngine())
        """
        self.config = config or GatewayConfig()
        self.registry = registry if registry is not None else ToolRegistry()
        self.guardrails = guardrails or GuardrailEngine()

        self._owns_sink = sink is None
        if sink is None:
            sink = AuditStore(self.config.db_path)
        self.sink = sink
        self.audit = AuditLogger(
            sink,
            queue_size=self.config.audit_queue_size,
            flush_timeout=self.config.flush_timeout_seconds,
        )

    def close(self) -> None:
        """Drain the audit queue and close the sink if the gateway opened it."""
        self.audit.close()
        if self._owns_sink and isinstance(self.sink, AuditStore):
            self.sink.close()

    def __enter__(self) -> "Gateway":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Bootstrap
    # =========================================================================

    def register(self, definition: ToolDefinition) -> None:
        """
        Register a tool during startup.

        Raises:
            DuplicateToolError: If the name is taken (fatal configuration error)
            RegistryFrozenError: If freeze() was already called
            ReservedFieldError: If the parameters declare the confirmation marker
        """
        marker = self.config.confirm_marker
        for name, info in definition.parameters.model_fields.items():
            if marker in (name, info.alias, info.validation_alias):
                logger.error(
                    "Tool %s declares reserved parameter %r",
                    definition.name,
                    marker,
                )
                raise ReservedFieldError(tool=definition.name, field_name=marker)
        self.registry.register(definition)

    def register_all(self, definitions: Iterable[ToolDefinition]) -> None:
        """Register several tools, stopping at the first error."""
        for definition in definitions:
            self.register(definition)

    def freeze(self) -> None:
        """End the bootstrap phase; the registry becomes read-only."""
        self.registry.freeze()

    # =========================================================================
    # Runtime
    # =========================================================================

    def list_for_scopes(self, granted_scopes: Iterable[str]) -> list[ToolSpec]:
        """Action catalog of the tools a caller with these scopes may run."""
        return self.registry.list_for_scopes(granted_scopes)

    def execute(
        self,
        context: ExecutionContext,
        tool_name: str,
        raw_args: Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """
        Execute a tool call under validation, guardrails and audit.

        Args:
            context: Caller identity, scopes, mode and dry-run flag
            tool_name: Name of the tool to execute
            raw_args: Raw arguments; may carry the confirmation marker

        Returns:
            ExecutionResult; never raises
        """
        start = time.perf_counter()
        submitted, confirmed = self._split_confirmation(raw_args)
        audit_args: Any = submitted

        try:
            definition = self.registry.get(tool_name)

            outcome = self.registry.validator_for(tool_name).parse(submitted)
            if not outcome.ok:
                raise ValidationError(
                    tool=tool_name,
                    tool_args=submitted if isinstance(submitted, dict) else {},
                    violations=[v.to_dict() for v in outcome.violations],
                )
            audit_args = outcome.args.model_dump(mode="json")

            self.guardrails.enforce(
                definition,
                context,
                confirmed=confirmed,
                tool_args=submitted,
                marker=self.config.confirm_marker,
            )

            data = self._invoke(definition, context, outcome.args)
        except ConfirmationRequiredError as e:
            result = ExecutionResult(
                ok=False,
                error=e.message,
                error_type=type(e).__name__,
                error_code=e.code,
                simulated=context.dry_run,
                confirmation=ConfirmationRequest(
                    tool=e.tool,
                    args=e.tool_args,
                    reason=e.reason,
                    marker=e.marker,
                ),
            )
        except GatewayError as e:
            result = ExecutionResult(
                ok=False,
                error=e.message,
                error_type=type(e).__name__,
                error_code=e.code,
                simulated=context.dry_run,
            )
        except Exception as e:
            logger.exception("Unexpected gateway failure executing %s", tool_name)
            result = ExecutionResult(
                ok=False,
                error=f"Internal gateway error: {e}",
                error_type=type(e).__name__,
                simulated=context.dry_run,
            )
        else:
            result = ExecutionResult.success(data, simulated=context.dry_run)

        duration_ms = int((time.perf_counter() - start) * 1000)
        self._record(context, tool_name, audit_args, result, duration_ms)

        logger.info(
            "Executed %s (ok=%s, duration=%dms, simulated=%s)",
            tool_name,
            result.ok,
            duration_ms,
            result.simulated,
        )
        return result

    async def execute_async(
        self,
        context: ExecutionContext,
        tool_name: str,
        raw_args: Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """execute() in a worker thread, for callers running an event loop."""
        return await asyncio.to_thread(self.execute, context, tool_name, raw_args)

    def _split_confirmation(self, raw_args: Any) -> tuple[Any, bool]:
        """
        Remove the confirmation marker from the arguments.

        Only a literal ``True`` counts as a confirmation.

        Returns:
            (arguments without the marker, confirmed)
        """
        if raw_args is None:
            return {}, False
        if not isinstance(raw_args, Mapping):
            return raw_args, False

        args = dict(raw_args)
        marker = args.pop(self.config.confirm_marker, None)
        return args, marker is True

    def _invoke(self, definition: ToolDefinition, context: ExecutionContext, args: Any) -> Any:
        """
        Run the handler; any exception becomes a HandlerError.

        Coroutine handlers are awaited to completion before returning.
        """
        try:
            result = definition.handler(context, args)
            if inspect.isawaitable(result):
                result = _run_awaitable(result)
            return result
        except Exception as e:
            logger.warning("Handler for %s failed: %s", definition.name, e)
            raise HandlerError(
                tool=definition.name,
                tool_args=args.model_dump(mode="json"),
                underlying_error=str(e) or type(e).__name__,
                error_class=type(e).__name__,
            ) from e

    def _record(
        self,
        context: ExecutionContext,
        tool_name: str,
        args: Any,
        result: ExecutionResult,
        duration_ms: int,
    ) -> None:
        """Queue the audit record for this call; failures are only logged."""
        try:
            record = AuditRecord(
                session_id=context.session_id,
                tenant_id=context.tenant_id,
                user_id=context.user_id,
                tool=str(tool_name),
                args=args,
                result=result.data if result.ok else None,
                ok=result.ok,
                error=result.error,
                duration_ms=duration_ms,
                simulated=context.dry_run,
            )
            self.audit.append(record)
        except Exception:
            logger.exception("Failed to queue audit record for %s", tool_name)

    # =========================================================================
    # Compliance / Observability
    # =========================================================================

    def get_session_history(self, session_id: str) -> list[AuditRecord]:
        """Audit records for a session, in creation order."""
        return self.audit.get_session_history(session_id)

    def get_stats(self, tenant_id: str, since: datetime) -> AuditStats:
        """Aggregate audit figures for a tenant since a point in time."""
        return self.audit.get_stats(tenant_id, since)
