# extension_sdk/core/error_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Error context utilities for extension plugins.

Plugins surface every failure to the host as a bare status message, which
says little about *which* plugin or request produced it. These helpers
attach structured debugging metadata to an exception as it propagates, so
the transport or a log handler can report it without changing the
exception's type or message.

Typical usage
-------------

    from extension_sdk.core.error_context import attach_context, get_context

    try:
        rows = await plugin.call(request)
    except Exception as exc:
        attach_context(exc, "table", plugin="processes", action="generate")
        raise

Later, in a transport error handler:

    except Exception as exc:
        context = get_context(exc)
        logger.error("plugin call failed", extra=dict(context))

Two attributes are written on the exception: `__extension_context__`
(canonical) and `__<component>_context__` (e.g. `__table_context__`).
Repeated calls merge; the first `component` recorded is kept.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Optional

logger = logging.getLogger(__name__)

_CANONICAL_ATTR = "__extension_context__"


def _component_attr(component: str) -> str:
    return f"__{component}_context__"


def attach_context(
    exc: BaseException,
    component: str,
    **context: Any,
) -> None:
    """
    Attach debugging context to an exception.

    Parameters
    ----------
    exc:
        The exception to enrich. Its message and type are left untouched.

    component:
        Origin of the context, e.g. "table" or "wire". Used as a context key
        and to build the component-specific attribute name.

    **context:
        Arbitrary metadata. Common keys: plugin, action, request_id,
        error_stage. Never pass raw tenant identifiers.

    Attachment failures are logged at debug level and never mask `exc`.
    """
    try:
        merged: MutableMapping[str, Any] = {}
        existing = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(existing, Mapping):
            merged.update(existing)

        merged.setdefault("component", component)
        merged.update(context)

        setattr(exc, _CANONICAL_ATTR, merged)
        setattr(exc, _component_attr(component), merged)
    except Exception as attachment_error:  # noqa: BLE001
        logger.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
            extra={"component": component},
        )


def get_context(
    exc: BaseException,
    *,
    component: Optional[str] = None,
) -> Mapping[str, Any]:
    """
    Retrieve attached context from an exception.

    When `component` is given, its specific attribute is tried first before
    falling back to the canonical one. Returns an empty dict when nothing is
    attached.
    """
    candidates = []
    if component:
        candidates.append(_component_attr(component))
    candidates.append(_CANONICAL_ATTR)

    for attr in candidates:
        ctx = getattr(exc, attr, None)
        if isinstance(ctx, Mapping):
            return ctx
    return {}


def has_context(
    exc: BaseException,
    *,
    component: Optional[str] = None,
) -> bool:
    """True if the exception carries non-empty attached context."""
    return len(get_context(exc, component=component)) > 0


def clear_context(
    exc: BaseException,
    *,
    component: Optional[str] = None,
) -> None:
    """
    Remove attached context from an exception.

    With `component`, only that component's attribute is removed together
    with the canonical one; otherwise every `__<name>_context__` attribute
    is removed.
    """
    if component:
        names = [_CANONICAL_ATTR, _component_attr(component)]
    else:
        names = [
            attr
            for attr in vars(exc)
            if attr.startswith("__") and attr.endswith("_context__")
        ]

    for attr in names:
        if attr in vars(exc):
            try:
                delattr(exc, attr)
            except AttributeError as clear_error:
                logger.debug(
                    "Failed to delete %s from %s: %s",
                    attr,
                    type(exc).__name__,
                    clear_error,
                )


__all__ = [
    "attach_context",
    "get_context",
    "has_context",
    "clear_context",
]
