# extension_sdk/table/errors.py
# SPDX-License-Identifier: Apache-2.0
"""
Normalized error taxonomy for table plugins.

Every failure a table plugin can surface to the host maps to exactly one
subclass below. The wire handler turns them into failure statuses; nothing
here is ever swallowed.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class TablePluginError(Exception):
    """
    Base class for all table plugin errors.

    Attributes:
        message: Human-readable message; this is what the host sees.
        code: Stable UPPER_SNAKE_CASE code for metrics and diagnostics.
        details: Optional SIEM-safe structured details.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = dict(details or {})

    def __str__(self) -> str:
        base = self.message or self.__class__.__name__
        if self.code:
            base += f" [code={self.code}]"
        if self.details:
            base += f" details={self.details}"
        return base


class ConstructionError(TablePluginError):
    """Malformed row definition or generator at plugin build time."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "CONSTRUCTION_ERROR")
        super().__init__(message, **kw)


class RequestError(TablePluginError):
    """Missing or unknown action; the generator is never reached."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "BAD_REQUEST")
        super().__init__(message, **kw)


class ContextParseError(TablePluginError, ValueError):
    """Malformed query context or constraint payload."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "CONTEXT_PARSE_ERROR")
        super().__init__(message, **kw)


class GenerationError(TablePluginError):
    """The implementer's row generator failed."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "GENERATION_ERROR")
        super().__init__(message, **kw)


class RowContractError(TablePluginError):
    """A generated row does not match the plugin's column schema."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "ROW_CONTRACT_ERROR")
        super().__init__(message, **kw)


class DeadlineExceeded(TablePluginError):
    """The caller's ctx.deadline_ms passed before generation finished."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "DEADLINE_EXCEEDED")
        super().__init__(message, **kw)


__all__ = [
    "TablePluginError",
    "ConstructionError",
    "RequestError",
    "ContextParseError",
    "GenerationError",
    "RowContractError",
    "DeadlineExceeded",
]
