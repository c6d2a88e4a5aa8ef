# extension_sdk/table/query_context.py
# SPDX-License-Identifier: Apache-2.0
"""
Query context model and parsers.

The host describes the constraints of a query as a JSON payload:

    {
        "constraints": [
            {"name": "domain", "list": [{"op": 2, "expr": "kolide.co"}], "affinity": "TEXT"},
            {"name": "email",  "list": [],                             "affinity": "TEXT"}
        ]
    }

Older hosts encode the same request "stringy": operator codes as strings
(`"op": "2"`) and an empty list as an empty string (`"list": ""`). Both
encodings decode to equal `QueryContext` objects; the parsers here never
need to know which host version produced the payload.

Constraints are transported, not evaluated.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from extension_sdk.table.errors import ContextParseError
from extension_sdk.table.vocabulary import ColumnType, Operator

LOG = logging.getLogger(__name__)

RawJSON = Union[str, bytes, bytearray]

_LEGACY_OP = re.compile(r"[+-]?\d+")


class _JSONNumber(str):
    """A JSON number kept as the exact text the host sent."""

    __slots__ = ()

    def __repr__(self) -> str:
        return str.__str__(self)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


@dataclass(frozen=True)
class Constraint:
    """One (operator, expression) comparison the host wants on a column."""
    operator: Operator
    expression: str


@dataclass(frozen=True)
class ConstraintList:
    """
    Constraints for a single column.

    Attributes:
        affinity: Column affinity reported by the host.
        constraints: Constraints in host order.
    """
    affinity: ColumnType
    constraints: Tuple[Constraint, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "constraints", tuple(self.constraints))

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self.constraints)

    def __len__(self) -> int:
        return len(self.constraints)


@dataclass(frozen=True)
class QueryContext:
    """
    Decoded per-request query context handed to the row generator.

    `constraints` maps column name to its ConstraintList and is read-only.
    """
    constraints: Mapping[str, ConstraintList] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "constraints", MappingProxyType(dict(self.constraints))
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryContext):
            return NotImplemented
        return dict(self.constraints) == dict(other.constraints)

    def __hash__(self) -> int:
        return hash(frozenset(self.constraints.items()))

    def get(self, column: str) -> Optional[ConstraintList]:
        return self.constraints.get(column)

    def column_names(self) -> List[str]:
        return sorted(self.constraints)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-JSON rendering, stable key order; for logs and the CLI."""
        return {
            "constraints": {
                name: {
                    "affinity": clist.affinity.value,
                    "constraints": [
                        {"op": c.operator.name, "code": int(c.operator), "expr": c.expression}
                        for c in clist.constraints
                    ],
                }
                for name, clist in sorted(self.constraints.items())
            }
        }


# =============================================================================
# Decoding helpers
# =============================================================================

def _loads(raw: RawJSON, what: str) -> Any:
    # numbers stay as their wire text; see _JSONNumber
    try:
        return json.loads(
            raw,
            parse_int=_JSONNumber,
            parse_float=_JSONNumber,
            parse_constant=_reject_constant,
        )
    except (TypeError, ValueError, RecursionError) as e:
        raise ContextParseError(f"invalid {what} JSON: {e}") from e


def _kind(value: Any) -> str:
    return "number" if isinstance(value, _JSONNumber) else type(value).__name__


def _operator_from_wire(value: Any) -> Operator:
    # strict: JSON number (decoded by _loads, or passed in already decoded)
    if isinstance(value, int) and not isinstance(value, bool):
        return Operator.from_code(value)
    # legacy: decimal integer carried as a JSON string
    if isinstance(value, str) and _LEGACY_OP.fullmatch(value):
        return Operator.from_code(int(value))
    raise ContextParseError(f"invalid constraint op {value!r}")


def _expression_from_wire(value: Any) -> str:
    if isinstance(value, _JSONNumber):
        return str.__str__(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return json.dumps(value)
    raise ContextParseError(f"invalid constraint expr {value!r}")


def _constraint_from_wire(item: Any, index: int) -> Constraint:
    if not isinstance(item, Mapping):
        raise ContextParseError(
            f"constraint [{index}] must be an object, got {type(item).__name__}"
        )
    if "op" not in item or "expr" not in item:
        raise ContextParseError(f"constraint [{index}] requires 'op' and 'expr'")
    return Constraint(
        operator=_operator_from_wire(item["op"]),
        expression=_expression_from_wire(item["expr"]),
    )


def constraints_from_wire(value: Any) -> Tuple[Constraint, ...]:
    """
    Decode an already-parsed constraint list value.

    Accepts a JSON array of {op, expr} objects, or the legacy empty string
    standing for an empty list.
    """
    if isinstance(value, list):
        return tuple(_constraint_from_wire(item, i) for i, item in enumerate(value))
    if value == "":
        return ()
    raise ContextParseError(
        f"constraint list must be an array or empty string, got {_kind(value)}"
    )


def parse_constraint_list(fragment: RawJSON) -> Tuple[Constraint, ...]:
    """
    Parse one column's constraint list from raw JSON text.

    Blank text and the JSON empty-string literal both mean "no constraints".
    """
    if isinstance(fragment, (str, bytes, bytearray)) and not fragment.strip():
        return ()
    return constraints_from_wire(_loads(fragment, "constraint list"))


def _constraint_list_from_wire(item: Any, index: int) -> Tuple[str, ConstraintList]:
    if not isinstance(item, Mapping):
        raise ContextParseError(
            f"constraints[{index}] must be an object, got {type(item).__name__}"
        )
    name = item.get("name")
    if not isinstance(name, str) or isinstance(name, _JSONNumber) or not name:
        raise ContextParseError(f"constraints[{index}] has no column name")
    try:
        affinity = ColumnType.from_wire(item.get("affinity"))
        constraints = constraints_from_wire(item.get("list", ""))
    except ContextParseError as e:
        raise ContextParseError(
            f"column {name!r}: {e.message}", details={"column": name}
        ) from e
    return name, ConstraintList(affinity=affinity, constraints=constraints)


def parse_query_context(raw: RawJSON) -> QueryContext:
    """
    Parse the `context` field of a generate request.

    Raises:
        ContextParseError: malformed JSON, a non-object payload, or any
            constraint entry whose list or affinity does not decode.
    """
    payload = _loads(raw, "query context")
    if not isinstance(payload, Mapping):
        raise ContextParseError(
            f"query context must be a JSON object, got {type(payload).__name__}"
        )

    entries = payload.get("constraints")
    if entries is None:
        return QueryContext()
    if not isinstance(entries, list):
        raise ContextParseError("query context 'constraints' must be an array")

    out: Dict[str, ConstraintList] = {}
    for i, item in enumerate(entries):
        name, clist = _constraint_list_from_wire(item, i)
        if name in out:
            LOG.debug("duplicate constraint entry for column %r; keeping last", name)
        out[name] = clist
    return QueryContext(constraints=out)


__all__ = [
    "Constraint",
    "ConstraintList",
    "QueryContext",
    "constraints_from_wire",
    "parse_constraint_list",
    "parse_query_context",
]
