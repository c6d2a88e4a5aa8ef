# SPDX-License-Identifier: Apache-2.0
"""
Core - Running plugin coroutines from synchronous transports.
"""

import asyncio
import contextvars
import threading

import pytest

from extension_sdk.core.async_bridge import (
    AsyncBridge,
    AsyncBridgeTimeoutError,
    DEFAULT_MAX_WORKERS,
    run_async,
)

request_var: contextvars.ContextVar = contextvars.ContextVar("request_var", default=None)


@pytest.fixture(autouse=True)
def _reset_bridge():
    yield
    AsyncBridge.shutdown(wait=True)
    AsyncBridge.configure(DEFAULT_MAX_WORKERS)


async def _value(v):
    await asyncio.sleep(0)
    return v


async def _fail():
    raise LookupError("nope")


def test_run_without_running_loop():
    assert run_async(_value(42)) == 42


def test_exceptions_propagate_unchanged():
    with pytest.raises(LookupError, match="nope"):
        AsyncBridge.run_async(_fail())


def test_timeout():
    with pytest.raises(AsyncBridgeTimeoutError):
        AsyncBridge.run_async(asyncio.sleep(5), timeout=0.05)
    assert issubclass(AsyncBridgeTimeoutError, TimeoutError)


def test_running_loop_uses_worker_thread_and_keeps_contextvars():
    async def probe():
        return threading.current_thread().name, request_var.get()

    async def outer():
        request_var.set("req-7")
        return AsyncBridge.run_async(probe())

    thread_name, seen = asyncio.run(outer())
    assert thread_name.startswith("extension_async_")
    assert seen == "req-7"


def test_configure_rejects_non_positive():
    with pytest.raises(ValueError):
        AsyncBridge.configure(0)


def test_shutdown_is_idempotent():
    AsyncBridge.shutdown()
    AsyncBridge.shutdown()
