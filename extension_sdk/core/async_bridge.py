# extension_sdk/core/async_bridge.py
# SPDX-License-Identifier: Apache-2.0

"""
Async bridge for extension plugins.

Plugins are async-first, but most extension transports (Thrift servers,
simple socket loops) dispatch requests from plain worker threads. This
module runs a plugin coroutine from such a synchronous call site.

Event loop strategy
-------------------
- No running loop in the current thread: run the coroutine via
  `asyncio.run`.
- A loop is already running (e.g. the transport itself is async, or a
  notebook): hop to a shared worker thread and `asyncio.run` there,
  propagating the caller's contextvars so logging/tracing context survives.

Timeouts are optional and surface as `AsyncBridgeTimeoutError`.
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Coroutine, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

#: Worker threads used when a loop is already running in the caller's thread.
DEFAULT_MAX_WORKERS: int = 4


class AsyncBridgeTimeoutError(TimeoutError):
    """Raised when an async operation exceeds its timeout in AsyncBridge."""


class AsyncBridge:
    """
    Helper for running plugin coroutines from sync transports.

    The shared executor is created lazily, guarded by a class-level lock,
    and lives until `shutdown()` (or process exit).
    """

    _lock = threading.RLock()
    _executor: Optional[ThreadPoolExecutor] = None
    _max_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def configure(cls, max_workers: int) -> None:
        """
        Set the worker count for the shared executor.

        Only affects executors created after the call.
        """
        if max_workers <= 0:
            raise ValueError("max_workers must be a positive integer")
        with cls._lock:
            if cls._executor is not None:
                logger.debug(
                    "AsyncBridge.configure: executor already created; "
                    "new max_workers will apply only to future executors."
                )
            cls._max_workers = max_workers

    @classmethod
    def _get_or_create_executor(cls) -> ThreadPoolExecutor:
        # caller holds cls._lock
        if cls._executor is None:
            cls._executor = ThreadPoolExecutor(
                max_workers=cls._max_workers,
                thread_name_prefix="extension_async_",
            )
            logger.debug(
                "AsyncBridge: created ThreadPoolExecutor(max_workers=%d)",
                cls._max_workers,
            )
        return cls._executor

    @staticmethod
    async def _with_timeout(
        coro: Coroutine[Any, Any, T],
        timeout: Optional[float],
    ) -> T:
        if timeout is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise AsyncBridgeTimeoutError(
                f"Async operation exceeded timeout={timeout!r} seconds"
            ) from exc

    @classmethod
    def run_async(
        cls,
        coro: Coroutine[Any, Any, T],
        timeout: Optional[float] = None,
    ) -> T:
        """
        Execute a coroutine from synchronous code and return its result.

        Exceptions raised by the coroutine propagate unchanged.
        """
        try:
            asyncio.get_running_loop()
            loop_running = True
        except RuntimeError:
            loop_running = False

        if loop_running:
            logger.debug("AsyncBridge.run_async: running loop detected; using executor")
            ctx = contextvars.copy_context()

            def _runner() -> T:
                return asyncio.run(cls._with_timeout(coro, timeout))

            with cls._lock:
                executor = cls._get_or_create_executor()
            return executor.submit(ctx.run, _runner).result()

        return asyncio.run(cls._with_timeout(coro, timeout))

    @classmethod
    def shutdown(cls, *, wait: bool = False) -> None:
        """Best-effort cleanup of the shared executor. Safe to call repeatedly."""
        with cls._lock:
            if cls._executor is not None:
                cls._executor.shutdown(wait=wait)
                cls._executor = None
                logger.debug("AsyncBridge: executor shutdown (wait=%s)", wait)


def run_async(
    coro: Coroutine[Any, Any, T],
    timeout: Optional[float] = None,
) -> T:
    """Convenience wrapper around AsyncBridge.run_async."""
    return AsyncBridge.run_async(coro, timeout=timeout)


__all__ = [
    "AsyncBridge",
    "AsyncBridgeTimeoutError",
    "DEFAULT_MAX_WORKERS",
    "run_async",
]
