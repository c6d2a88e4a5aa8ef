# extension_sdk/table/table_base.py
# SPDX-License-Identifier: Apache-2.0
"""
Adapter SDK - Extension Table Protocol V1.0

Purpose
-------
Expose an arbitrary typed data source as a virtual table inside a host query
engine that talks a fixed, untyped extension RPC protocol:

- Column schema derived once from a typed row definition
- Version-tolerant decoding of the host's JSON query context
- Dispatch of "columns" / "generate" actions to a user-supplied generator
- Normalized error taxonomy surfaced as host failure statuses
- Wire-level handler producing the host's status/response envelope

Deliberate Non-Goals
--------------------
- No query planning or expression evaluation. Constraints are decoded and
  handed to the generator; whether to use them is the generator's business.
- No retries. Requests are idempotent reads; retry belongs to the host.
- No transport, registration, or process lifecycle.

Mode Strategy
-------------
mode: "thin" (default)
    - NoopDeadline: the caller's deadline is forwarded but not enforced.

mode: "standalone"
    - SimpleDeadline: ctx.deadline_ms supplied by the caller is enforced
      around the generator and surfaces as DeadlineExceeded.

Wire Contract
-------------
Request (from host):

    {"action": "columns"}
    {"action": "generate", "context": "<JSON query context>"}

Route / columns response:

    [{"id": "column", "name": "<col>", "type": "TEXT|INTEGER|BIGINT|DOUBLE", "op": "0"}, ...]

Generate response:

    [{"<col>": "<rendered value>", ...}, ...]   # one map per row

Envelope returned by WireTableHandler:

    {"status": {"code": 0, "message": "OK"}, "response": [...]}
    {"status": {"code": 1, "message": "<error>"}, "response": [], "error": "<CODE>"}
"""

from __future__ import annotations

import asyncio
import hashlib
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Type,
    Union,
)

from extension_sdk.core.async_bridge import AsyncBridge
from extension_sdk.core.error_context import attach_context
from extension_sdk.core.operation_context import OperationContext
from extension_sdk.table.errors import (
    ConstructionError,
    ContextParseError,
    DeadlineExceeded,
    GenerationError,
    RequestError,
    TablePluginError,
)
from extension_sdk.table.query_context import QueryContext, parse_query_context
from extension_sdk.table.schema import (
    ColumnDefinition,
    RowDefinition,
    RowSchema,
    derive_schema,
    routes_for,
    serialize_rows,
)

LOG = logging.getLogger(__name__)

TABLE_PROTOCOL_VERSION = "1.0.0"
TABLE_PROTOCOL_ID = "table/v1.0"

#: Registry the host files table plugins under.
TABLE_REGISTRY_NAME = "table"

ACTION_COLUMNS = "columns"
ACTION_GENERATE = "generate"

STATUS_OK = 0
STATUS_FAILURE = 1

GENERATE_ERROR_PREFIX = "error generating table: "

GenerateFn = Callable[
    [OperationContext, QueryContext],
    Union[Iterable[RowDefinition], Awaitable[Iterable[RowDefinition]]],
]


# =============================================================================
# Host status / response types
# =============================================================================

@dataclass(frozen=True)
class ExtensionStatus:
    """Status object the host expects alongside every response."""
    code: int = STATUS_OK
    message: str = "OK"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class ExtensionResponse:
    """Status plus row/route payload; the payload is empty on failure."""
    status: ExtensionStatus
    response: List[Dict[str, str]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status.code == STATUS_OK

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "status": self.status.to_dict(),
            "response": [dict(r) for r in self.response],
        }
        if self.error is not None:
            out["error"] = self.error
        return out


# =============================================================================
# Metrics + deadline policies
# =============================================================================

class MetricsSink(Protocol):
    """
    Metrics collection protocol (low-cardinality; SIEM-safe).
    """
    def observe(
        self,
        *,
        component: str,
        op: str,
        ms: float,
        ok: bool,
        code: str = "OK",
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ...

    def counter(
        self,
        *,
        component: str,
        name: str,
        value: int = 1,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ...


class NoopMetrics:
    def observe(self, **_: Any) -> None:
        ...
    def counter(self, **_: Any) -> None:
        ...


class DeadlinePolicy(Protocol):
    async def wrap(self, awaitable: Awaitable[Any], ctx: Optional[OperationContext]) -> Any:
        ...


class NoopDeadline:
    async def wrap(self, awaitable: Awaitable[Any], ctx: Optional[OperationContext]) -> Any:
        return await awaitable


class SimpleDeadline:
    """Enforce the caller's ctx.deadline_ms using asyncio.wait_for."""
    async def wrap(self, awaitable: Awaitable[Any], ctx: Optional[OperationContext]) -> Any:
        if ctx is None or ctx.deadline_ms is None:
            return await awaitable
        rem = ctx.remaining_ms()
        if rem is not None and rem <= 0:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise DeadlineExceeded("deadline already exceeded", details={"remaining_ms": 0})
        try:
            return await asyncio.wait_for(awaitable, timeout=rem / 1000.0)
        except asyncio.TimeoutError as e:
            raise DeadlineExceeded("operation timed out", details={"remaining_ms": 0}) from e


# =============================================================================
# Table plugin
# =============================================================================

class TablePlugin:
    """
    Table plugin: typed rows in, host wire maps out.

    Responsibilities:
        - Derive and cache the column schema at construction.
        - Dispatch "columns" and "generate" actions.
        - Decode the query context and forward it, with the caller's
          OperationContext, to the generator.
        - Serialize generated rows; surface every failure as a
          TablePluginError subclass.

    The only state shared between calls is the immutable schema, so one
    instance may serve concurrent calls without locking.
    """

    _component = "table"

    def __init__(
        self,
        name: str,
        row_template: Union[RowDefinition, Type[RowDefinition]],
        generate: GenerateFn,
        *,
        metrics: Optional[MetricsSink] = None,
        mode: str = "thin",
        deadline_policy: Optional[DeadlinePolicy] = None,
    ) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ConstructionError("plugin name must be a non-empty string")
        if generate is None or not callable(generate):
            raise ConstructionError(f"plugin {name!r}: generate must be callable")

        self._name = name
        self._schema: RowSchema = derive_schema(row_template)
        self._generate = generate
        self._generate_is_async = inspect.iscoroutinefunction(generate) or (
            inspect.iscoroutinefunction(getattr(generate, "__call__", None))
        )
        self._metrics: MetricsSink = metrics or NoopMetrics()

        m = (mode or "thin").strip().lower()
        if m not in {"thin", "standalone"}:
            m = "thin"
        self._mode = m

        if self._mode == "standalone":
            if metrics is None:
                LOG.warning("Using standalone table plugin %r without metrics sink", name)
            self._deadline = deadline_policy or SimpleDeadline()
        else:
            self._deadline = deadline_policy or NoopDeadline()

        LOG.debug(
            "table plugin %r ready with columns %s",
            name,
            list(self._schema.column_names),
        )

    # ---- accessors ----------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def registry_name(self) -> str:
        return TABLE_REGISTRY_NAME

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def schema(self) -> RowSchema:
        return self._schema

    def columns(self) -> Tuple[ColumnDefinition, ...]:
        return self._schema.columns

    def routes(self) -> List[Dict[str, str]]:
        """Column schema in the host's route-response shape."""
        return routes_for(self._schema.columns)

    def ping(self) -> ExtensionStatus:
        return ExtensionStatus(code=STATUS_OK, message="OK")

    # ---- lifecycle helpers --------------------------------------------------

    async def __aenter__(self) -> "TablePlugin":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release resources owned by the plugin. Override when needed."""
        return None

    def shutdown(self) -> None:
        """Host shutdown notification. No-op by default."""
        return None

    # ---- internal helpers ---------------------------------------------------

    @staticmethod
    def _tenant_hash(tenant: Optional[str]) -> Optional[str]:
        if not tenant:
            return None
        return hashlib.sha256(tenant.encode("utf-8")).hexdigest()[:12]

    def _record(
        self,
        op: str,
        t0: float,
        ok: bool,
        *,
        code: str = "OK",
        ctx: Optional[OperationContext] = None,
        **extra: Any,
    ) -> None:
        try:
            ms = (time.monotonic() - t0) * 1000.0
            x = dict(extra or {})
            x.setdefault("table", self._name)
            if ctx:
                th = self._tenant_hash(ctx.tenant)
                if th:
                    x.setdefault("tenant_hash", th)
            self._metrics.observe(
                component=self._component,
                op=op,
                ms=ms,
                ok=ok,
                code=code,
                extra=x,
            )
        except Exception:
            # never let metrics break caller
            LOG.debug("metrics sink failed for op %s", op, exc_info=True)

    def _run_sync_generator(
        self,
        ctx: OperationContext,
        query_ctx: QueryContext,
    ) -> Any:
        # worker thread: a yielding callback does its work while being listed
        rows = self._generate(ctx, query_ctx)
        if rows is None or inspect.isawaitable(rows) or hasattr(rows, "__aiter__"):
            return rows
        return list(rows)

    async def _invoke_generator(
        self,
        ctx: OperationContext,
        query_ctx: QueryContext,
    ) -> List[RowDefinition]:
        if self._generate_is_async:
            rows = await self._generate(ctx, query_ctx)
        else:
            rows = await asyncio.to_thread(self._run_sync_generator, ctx, query_ctx)
        if inspect.isawaitable(rows):
            rows = await rows
        if rows is None:
            return []
        if hasattr(rows, "__aiter__"):
            return [row async for row in rows]
        return list(rows)

    async def _generate_rows(
        self,
        request: Mapping[str, Any],
        ctx: OperationContext,
    ) -> List[Dict[str, str]]:
        if "context" not in request:
            raise ContextParseError("generate request has no 'context'")
        try:
            query_ctx = parse_query_context(request["context"])
        except ContextParseError as e:
            LOG.debug("table %r: rejecting query context: %s", self._name, e.message)
            raise ContextParseError(
                f"error parsing context JSON: {e.message}", details=e.details
            ) from e

        try:
            rows = await self._deadline.wrap(
                self._invoke_generator(ctx, query_ctx), ctx
            )
        except DeadlineExceeded:
            raise
        except Exception as e:
            text = e.message if isinstance(e, TablePluginError) else str(e)
            LOG.warning("table %r: generator failed: %s", self._name, text)
            raise GenerationError(GENERATE_ERROR_PREFIX + text) from e

        return serialize_rows(rows, self._schema)

    # ---- public API ---------------------------------------------------------

    async def call(
        self,
        request: Mapping[str, Any],
        *,
        ctx: Optional[OperationContext] = None,
    ) -> List[Dict[str, str]]:
        """
        Dispatch one host request.

        Raises:
            RequestError: missing or unknown action.
            ContextParseError: the generate context does not decode.
            GenerationError: the generator raised.
            RowContractError: a generated row does not fit the schema.
            DeadlineExceeded: standalone mode and the caller's deadline passed.
        """
        ctx = ctx or OperationContext()
        action = request.get("action") if isinstance(request, Mapping) else None
        op = action if action in (ACTION_COLUMNS, ACTION_GENERATE) else "unknown"
        t0 = time.monotonic()
        try:
            if not isinstance(request, Mapping):
                raise RequestError("request must be a string-keyed map")
            if action is None:
                raise RequestError("table plugin request has no action")
            if not isinstance(action, str):
                raise RequestError(f"invalid action {action!r}")

            LOG.debug("table %r: dispatching action %r", self._name, action)
            if action == ACTION_COLUMNS:
                result = self.routes()
            elif action == ACTION_GENERATE:
                result = await self._generate_rows(request, ctx)
            else:
                raise RequestError(f"unknown action: {action}")

            self._record(op, t0, True, ctx=ctx, rows=len(result))
            return result
        except TablePluginError as e:
            self._record(op, t0, False, code=e.code or type(e).__name__, ctx=ctx)
            attach_context(
                e,
                self._component,
                plugin=self._name,
                action=action,
                request_id=ctx.request_id,
            )
            raise
        except Exception as e:
            self._record(op, t0, False, code="UnhandledException", ctx=ctx)
            attach_context(
                e,
                self._component,
                plugin=self._name,
                action=action,
                request_id=ctx.request_id,
            )
            raise

    def call_sync(
        self,
        request: Mapping[str, Any],
        *,
        ctx: Optional[OperationContext] = None,
        timeout: Optional[float] = None,
    ) -> List[Dict[str, str]]:
        """Blocking variant of `call` for synchronous transports."""
        return AsyncBridge.run_async(self.call(request, ctx=ctx), timeout=timeout)


# =============================================================================
# Wire-Level Handler
# =============================================================================

def _error_to_wire(e: Exception) -> ExtensionResponse:
    """
    Map TablePluginError (or unexpected Exception) to a failure response.
    """
    if isinstance(e, TablePluginError):
        return ExtensionResponse(
            status=ExtensionStatus(code=STATUS_FAILURE, message=e.message),
            error=e.code or type(e).__name__.upper(),
        )
    return ExtensionResponse(
        status=ExtensionStatus(
            code=STATUS_FAILURE, message=str(e) or "internal error"
        ),
        error="UNAVAILABLE",
    )


def _success_to_wire(result: List[Dict[str, str]]) -> ExtensionResponse:
    return ExtensionResponse(status=ExtensionStatus(), response=result)


class WireTableHandler:
    """
    Reference wire adapter for TablePlugin.

    Transport-agnostic: a Thrift server, socket loop or test harness hands
    it the host's request map and sends back the returned envelope.
    """

    def __init__(self, plugin: TablePlugin):
        self._plugin = plugin

    @property
    def plugin(self) -> TablePlugin:
        return self._plugin

    async def handle(
        self,
        request: Mapping[str, Any],
        *,
        ctx: Optional[Union[OperationContext, Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Handle one request; plugin failures become failure statuses."""
        if ctx is not None and not isinstance(ctx, OperationContext):
            ctx = OperationContext.from_dict(ctx)
        try:
            rows = await self._plugin.call(request, ctx=ctx)
            return _success_to_wire(rows).to_dict()
        except Exception as e:
            return _error_to_wire(e).to_dict()

    def handle_sync(
        self,
        request: Mapping[str, Any],
        *,
        ctx: Optional[Union[OperationContext, Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        return AsyncBridge.run_async(self.handle(request, ctx=ctx))

    def ping(self) -> Dict[str, Any]:
        return self._plugin.ping().to_dict()


__all__ = [
    "TABLE_PROTOCOL_VERSION",
    "TABLE_PROTOCOL_ID",
    "TABLE_REGISTRY_NAME",
    "ACTION_COLUMNS",
    "ACTION_GENERATE",
    "STATUS_OK",
    "STATUS_FAILURE",
    "GENERATE_ERROR_PREFIX",
    "GenerateFn",
    "ExtensionStatus",
    "ExtensionResponse",
    "MetricsSink",
    "NoopMetrics",
    "DeadlinePolicy",
    "NoopDeadline",
    "SimpleDeadline",
    "TablePlugin",
    "WireTableHandler",
    "_error_to_wire",
    "_success_to_wire",
]
