# extension_sdk/table/schema.py
# SPDX-License-Identifier: Apache-2.0
"""
Row definitions, column schema derivation and row serialization.

A table's rows are described declaratively, once, by a frozen dataclass:

    @dataclass(frozen=True)
    class ProcessRow(RowDefinition):
        name: str = column("name")
        pid: int = column("pid")
        start_time: int = column("start_time", ColumnType.BIGINT)
        cpu: float = column("cpu")

`derive_columns(ProcessRow)` validates that description when the plugin is
built and yields the ordered ColumnDefinitions that become the plugin's
route table. At call time `serialize_row` only walks the cached bindings;
nothing is re-inspected per row.

Rows that are not dataclasses override `RowDefinition.row_schema()` and
return an explicit `RowSchema`.
"""

from __future__ import annotations

import abc
import dataclasses
import numbers
import typing
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from extension_sdk.table.errors import ConstructionError, RowContractError
from extension_sdk.table.vocabulary import ColumnType

COLUMN_METADATA_KEY = "extension_sdk.column"

# Implicit affinity for plain annotations. BIGINT is always explicit.
_IMPLICIT_TYPES: Mapping[Any, ColumnType] = {
    str: ColumnType.TEXT,
    int: ColumnType.INTEGER,
    float: ColumnType.DOUBLE,
}


@dataclass(frozen=True)
class ColumnDefinition:
    """A column as advertised to the host."""
    name: str
    type: ColumnType

    def to_route(self) -> Dict[str, str]:
        return {"id": "column", "name": self.name, "type": self.type.value, "op": "0"}


def text_column(name: str) -> ColumnDefinition:
    return ColumnDefinition(name, ColumnType.TEXT)


def integer_column(name: str) -> ColumnDefinition:
    return ColumnDefinition(name, ColumnType.INTEGER)


def bigint_column(name: str) -> ColumnDefinition:
    return ColumnDefinition(name, ColumnType.BIGINT)


def double_column(name: str) -> ColumnDefinition:
    return ColumnDefinition(name, ColumnType.DOUBLE)


@dataclass(frozen=True)
class ColumnBinding:
    """
    Binds a column to the row attribute that holds its value.

    Attributes:
        column: Advertised column.
        attr: Attribute name read from each row instance.
    """
    column: ColumnDefinition
    attr: str


@dataclass(frozen=True)
class RowSchema:
    """Ordered, validated column bindings for one row type."""
    bindings: Tuple[ColumnBinding, ...]

    @classmethod
    def of(cls, *bindings: ColumnBinding) -> "RowSchema":
        schema = cls(tuple(bindings))
        schema.validate()
        return schema

    @property
    def columns(self) -> Tuple[ColumnDefinition, ...]:
        return tuple(b.column for b in self.bindings)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(b.column.name for b in self.bindings)

    def validate(self) -> None:
        if not self.bindings:
            raise ConstructionError("row definition declares no columns")
        seen = set()
        for b in self.bindings:
            name = b.column.name
            if not isinstance(name, str) or not name:
                raise ConstructionError(f"attribute {b.attr!r} has an empty column name")
            if not isinstance(b.column.type, ColumnType):
                raise ConstructionError(
                    f"column {name!r} has unsupported type {b.column.type!r}"
                )
            if name in seen:
                raise ConstructionError(f"duplicate column name {name!r}")
            seen.add(name)


def column(name: str, type: Optional[ColumnType] = None, **kw: Any) -> Any:
    """
    Declare a dataclass field as a table column.

    `type` may be omitted for `str`, `int` and `float` annotations. Extra
    keyword arguments (e.g. `default`) pass through to `dataclasses.field`.
    """
    metadata = dict(kw.pop("metadata", None) or {})
    metadata[COLUMN_METADATA_KEY] = (name, type)
    return dataclasses.field(metadata=metadata, **kw)


class RowDefinition(abc.ABC):
    """
    Capability shared by every row type a table plugin emits.

    A row exposes an ordered sequence of named, typed values matching the
    schema returned by `row_schema()`. The default implementation derives
    that schema from dataclass fields declared with `column()`.
    """

    @classmethod
    def row_schema(cls) -> RowSchema:
        if not dataclasses.is_dataclass(cls):
            raise ConstructionError(
                f"{cls.__name__} is not a dataclass; override row_schema()"
            )
        try:
            hints = typing.get_type_hints(cls)
        except Exception as e:
            raise ConstructionError(
                f"cannot resolve annotations of {cls.__name__}: {e}"
            ) from e

        bindings: List[ColumnBinding] = []
        for f in dataclasses.fields(cls):
            spec = f.metadata.get(COLUMN_METADATA_KEY)
            if spec is None:
                raise ConstructionError(
                    f"{cls.__name__}.{f.name} is not declared with column()"
                )
            name, col_type = spec
            if col_type is None:
                col_type = _IMPLICIT_TYPES.get(hints.get(f.name))
                if col_type is None:
                    raise ConstructionError(
                        f"{cls.__name__}.{f.name}: no column type for annotation "
                        f"{hints.get(f.name)!r}"
                    )
            bindings.append(ColumnBinding(ColumnDefinition(name, col_type), f.name))
        return RowSchema.of(*bindings)


def _row_type(template: Union[RowDefinition, Type[RowDefinition]]) -> Type[RowDefinition]:
    row_type = template if isinstance(template, type) else type(template)
    if not issubclass(row_type, RowDefinition):
        raise ConstructionError(
            f"row template must be a RowDefinition, got {row_type.__name__}"
        )
    return row_type


def derive_schema(template: Union[RowDefinition, Type[RowDefinition]]) -> RowSchema:
    """Validate a row template (instance or class) and return its schema."""
    schema = _row_type(template).row_schema()
    if not isinstance(schema, RowSchema):
        raise ConstructionError("row_schema() must return a RowSchema")
    schema.validate()
    return schema


def derive_columns(
    template: Union[RowDefinition, Type[RowDefinition]],
) -> Tuple[ColumnDefinition, ...]:
    """Ordered column definitions for a row template."""
    return derive_schema(template).columns


# =============================================================================
# Serialization
# =============================================================================

def render_value(value: Any, col: ColumnDefinition) -> str:
    """Render one value to the host's canonical text for its column type."""
    t = col.type
    if t is ColumnType.TEXT:
        if isinstance(value, str):
            return value
    elif t is ColumnType.INTEGER or t is ColumnType.BIGINT:
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, numbers.Integral):
            return str(int(value))
    elif t is ColumnType.DOUBLE:
        if isinstance(value, numbers.Real) and not isinstance(value, bool):
            return repr(float(value))
    raise RowContractError(
        f"column {col.name!r} ({t.value}) cannot render {type(value).__name__} value",
        details={"column": col.name},
    )


def serialize_row(row: RowDefinition, schema: RowSchema) -> Dict[str, str]:
    """Convert one row into the host's string-keyed map, in schema order."""
    out: Dict[str, str] = {}
    for b in schema.bindings:
        try:
            value = getattr(row, b.attr)
        except AttributeError as e:
            raise RowContractError(
                f"row {type(row).__name__} has no value for column {b.column.name!r}",
                details={"column": b.column.name},
            ) from e
        out[b.column.name] = render_value(value, b.column)
    return out


def serialize_rows(
    rows: Iterable[Any],
    schema: RowSchema,
) -> List[Dict[str, str]]:
    """
    Serialize generated rows in order.

    Every row must be a RowDefinition whose own column set matches `schema`.
    """
    row_schemas: Dict[type, RowSchema] = {}
    out: List[Dict[str, str]] = []
    for i, row in enumerate(rows):
        row_type = type(row)
        own = row_schemas.get(row_type)
        if own is None:
            if not isinstance(row, RowDefinition):
                raise RowContractError(
                    f"row [{i}] is {row_type.__name__}, not a RowDefinition"
                )
            try:
                own = derive_schema(row_type)
            except ConstructionError as e:
                raise RowContractError(f"row [{i}]: {e.message}") from e
            if own.columns != schema.columns:
                raise RowContractError(
                    f"row [{i}] ({row_type.__name__}) columns {list(own.column_names)} "
                    f"do not match table columns {list(schema.column_names)}"
                )
            row_schemas[row_type] = own
        out.append(serialize_row(row, own))
    return out


def routes_for(columns: Sequence[ColumnDefinition]) -> List[Dict[str, str]]:
    return [c.to_route() for c in columns]


__all__ = [
    "COLUMN_METADATA_KEY",
    "ColumnDefinition",
    "ColumnBinding",
    "RowSchema",
    "RowDefinition",
    "column",
    "text_column",
    "integer_column",
    "bigint_column",
    "double_column",
    "derive_schema",
    "derive_columns",
    "render_value",
    "serialize_row",
    "serialize_rows",
    "routes_for",
]
