# SPDX-License-Identifier: Apache-2.0
"""
Table Conformance - Deadline enforcement.

Thin mode forwards the caller's deadline to the generator untouched.
Standalone mode enforces it and reports DeadlineExceeded.
"""

import asyncio

import pytest

from extension_sdk.table import (
    DeadlineExceeded,
    NoopDeadline,
    OperationContext,
    SimpleDeadline,
    WireTableHandler,
)
from tests.mock.mock_table_plugin import EXAMPLE_ROW, EXAMPLE_WIRE_ROW, TrackingGenerator, make_mock_plugin

pytestmark = pytest.mark.asyncio

GENERATE = {"action": "generate", "context": "{}"}


class SlowGenerator(TrackingGenerator):
    def __init__(self, delay_s: float) -> None:
        super().__init__(rows=[EXAMPLE_ROW])
        self.delay_s = delay_s

    async def __call__(self, ctx, query_ctx):
        self.calls.append((ctx, query_ctx))
        await asyncio.sleep(self.delay_s)
        return list(self.rows)


def _expired_ctx() -> OperationContext:
    return OperationContext(request_id="t_deadline", deadline_ms=OperationContext.now_ms() - 1)


async def test_remaining_budget_nonnegative():
    ctx = OperationContext(deadline_ms=OperationContext.now_ms() - 1000)
    assert ctx.remaining_ms() == 0
    assert ctx.expired()


async def test_thin_mode_does_not_enforce():
    gen = TrackingGenerator()
    plugin = make_mock_plugin(gen)
    assert plugin.mode == "thin"
    rows = await plugin.call(GENERATE, ctx=_expired_ctx())
    assert rows == [EXAMPLE_WIRE_ROW]
    assert gen.last_ctx.expired()


async def test_standalone_expired_deadline_fails_fast():
    gen = TrackingGenerator()
    plugin = make_mock_plugin(gen, mode="standalone")
    with pytest.raises(DeadlineExceeded) as exc_info:
        await plugin.call(GENERATE, ctx=_expired_ctx())
    assert exc_info.value.code == "DEADLINE_EXCEEDED"
    assert not gen.called


async def test_standalone_slow_generator_times_out():
    gen = SlowGenerator(delay_s=2.0)
    plugin = make_mock_plugin(gen, mode="standalone")
    ctx = OperationContext(deadline_ms=OperationContext.now_ms() + 50)
    with pytest.raises(DeadlineExceeded):
        await plugin.call(GENERATE, ctx=ctx)
    assert gen.called


async def test_standalone_within_budget_succeeds():
    plugin = make_mock_plugin(SlowGenerator(delay_s=0.01), mode="standalone")
    ctx = OperationContext(deadline_ms=OperationContext.now_ms() + 5_000)
    assert await plugin.call(GENERATE, ctx=ctx) == [EXAMPLE_WIRE_ROW]


async def test_standalone_without_deadline_is_unbounded():
    plugin = make_mock_plugin(mode="standalone")
    assert await plugin.call(GENERATE) == [EXAMPLE_WIRE_ROW]


async def test_columns_ignore_deadline():
    plugin = make_mock_plugin(mode="standalone")
    routes = await plugin.call({"action": "columns"}, ctx=_expired_ctx())
    assert routes == plugin.routes()


async def test_deadline_envelope():
    handler = WireTableHandler(make_mock_plugin(mode="standalone"))
    res = await handler.handle(GENERATE, ctx={"deadline_ms": OperationContext.now_ms() - 1})
    assert res["status"]["code"] == 1
    assert res["error"] == "DEADLINE_EXCEEDED"
    assert res["response"] == []


async def test_explicit_policy_overrides_mode():
    gen = TrackingGenerator()
    plugin = make_mock_plugin(gen, mode="standalone", deadline_policy=NoopDeadline())
    assert await plugin.call(GENERATE, ctx=_expired_ctx()) == [EXAMPLE_WIRE_ROW]

    gen = TrackingGenerator()
    plugin = make_mock_plugin(gen, deadline_policy=SimpleDeadline())
    with pytest.raises(DeadlineExceeded):
        await plugin.call(GENERATE, ctx=_expired_ctx())
