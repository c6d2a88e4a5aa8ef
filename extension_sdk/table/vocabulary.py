# extension_sdk/table/vocabulary.py
# SPDX-License-Identifier: Apache-2.0
"""
Closed vocabularies shared by the host and table plugins: column affinities
and constraint operator codes.
"""

from __future__ import annotations

import enum
from typing import Any

from extension_sdk.table.errors import ContextParseError


class ColumnType(str, enum.Enum):
    """Column affinity as understood by the host's query planner."""

    TEXT = "TEXT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    DOUBLE = "DOUBLE"

    @classmethod
    def from_wire(cls, value: Any) -> "ColumnType":
        """Map a wire affinity string to a ColumnType."""
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        raise ContextParseError(
            f"unknown column affinity {value!r}",
            details={"affinity": repr(value)},
        )


class Operator(enum.IntEnum):
    """Constraint operators, keyed by the host's wire integer codes."""

    UNIQUE = 1
    EQUALS = 2
    GREATER_THAN = 4
    LESS_THAN_OR_EQUALS = 8
    LESS_THAN = 16
    GREATER_THAN_OR_EQUALS = 32
    MATCH = 64
    LIKE = 65
    GLOB = 66
    REGEXP = 67

    @classmethod
    def from_code(cls, code: int) -> "Operator":
        try:
            return cls(code)
        except ValueError as e:
            raise ContextParseError(
                f"unknown operator code {code!r}",
                details={"op": code},
            ) from e


__all__ = [
    "ColumnType",
    "Operator",
]
