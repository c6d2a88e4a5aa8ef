# extension_sdk/core/operation_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Request-scoped context for extension plugin calls.

The host hands every call a bare string map; anything the caller knows about
the request beyond that (correlation id, tenant, an absolute deadline) rides
in an `OperationContext` that the plugin forwards untouched to the row
generator.

Typical usage
-------------

    from extension_sdk.core.operation_context import OperationContext

    ctx = OperationContext(
        request_id="req-123",
        deadline_ms=OperationContext.now_ms() + 5_000,
        attrs={"caller": "osqueryd"},
    )

    rows = await plugin.call({"action": "generate", "context": "{}"}, ctx=ctx)

Notes
-----
- `deadline_ms` is an absolute epoch timestamp in milliseconds. The plugin
  never invents one; it only honors what the caller supplies.
- Instances are frozen so a single context can be shared by concurrent
  calls. Use `with_updates` to derive a new one.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class OperationContext:
    """
    Caller context forwarded from the transport into the row generator.

    Attributes:
        request_id: Correlation ID for tracing.
        tenant: Tenant / host identifier (never logged raw).
        deadline_ms: Absolute epoch ms after which the caller gives up.
        traceparent: W3C traceparent header, when the transport has one.
        attrs: Free-form attributes for middleware and generators.
    """

    request_id: Optional[str] = None
    tenant: Optional[str] = None
    deadline_ms: Optional[int] = None
    traceparent: Optional[str] = None
    attrs: Mapping[str, Any] = field(default_factory=dict)

    @staticmethod
    def now_ms() -> int:
        return int(time.time() * 1000)

    def remaining_ms(self) -> Optional[int]:
        """Return non-negative ms remaining until deadline, or None."""
        if self.deadline_ms is None:
            return None
        return max(0, self.deadline_ms - self.now_ms())

    def expired(self) -> bool:
        rem = self.remaining_ms()
        return rem is not None and rem <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "tenant": self.tenant,
            "deadline_ms": self.deadline_ms,
            "traceparent": self.traceparent,
            "attrs": dict(self.attrs or {}),
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "OperationContext":
        """
        Build a context from a wire-level dict. Unknown keys are ignored.
        """
        if not data:
            return cls()
        return cls(
            request_id=data.get("request_id"),
            tenant=data.get("tenant"),
            deadline_ms=data.get("deadline_ms"),
            traceparent=data.get("traceparent"),
            attrs=dict(data.get("attrs") or {}),
        )

    def with_updates(
        self,
        *,
        request_id: Optional[str] = None,
        tenant: Optional[str] = None,
        deadline_ms: Optional[int] = None,
        traceparent: Optional[str] = None,
        attrs: Optional[Mapping[str, Any]] = None,
    ) -> "OperationContext":
        """
        Return a new context with the given fields replaced.

        `attrs` is merged over the existing attrs rather than replacing them.
        """
        new_attrs = dict(self.attrs or {})
        if attrs:
            new_attrs.update(attrs)
        return replace(
            self,
            request_id=request_id if request_id is not None else self.request_id,
            tenant=tenant if tenant is not None else self.tenant,
            deadline_ms=deadline_ms if deadline_ms is not None else self.deadline_ms,
            traceparent=traceparent if traceparent is not None else self.traceparent,
            attrs=new_attrs,
        )

    def get_attr(self, key: str, default: Any = None) -> Any:
        """Safe lookup helper for attrs."""
        return self.attrs.get(key, default) if self.attrs is not None else default


__all__ = [
    "OperationContext",
]
