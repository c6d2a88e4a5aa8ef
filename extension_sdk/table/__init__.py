# extension_sdk/table/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Extension Table Protocol V1 - Public API

This module provides the public interface for table plugins.
All public types and handlers are re-exported here for clean imports.
"""

from extension_sdk.core.operation_context import OperationContext
from extension_sdk.table.errors import (
    TablePluginError,
    ConstructionError,
    RequestError,
    ContextParseError,
    GenerationError,
    RowContractError,
    DeadlineExceeded,
)
from extension_sdk.table.vocabulary import (
    ColumnType,
    Operator,
)
from extension_sdk.table.query_context import (
    Constraint,
    ConstraintList,
    QueryContext,
    constraints_from_wire,
    parse_constraint_list,
    parse_query_context,
)
from extension_sdk.table.schema import (
    ColumnDefinition,
    ColumnBinding,
    RowSchema,
    RowDefinition,
    column,
    text_column,
    integer_column,
    bigint_column,
    double_column,
    derive_schema,
    derive_columns,
    render_value,
    serialize_row,
    serialize_rows,
)
from extension_sdk.table.table_base import (
    # Protocol version
    TABLE_PROTOCOL_VERSION,
    TABLE_PROTOCOL_ID,
    TABLE_REGISTRY_NAME,
    GENERATE_ERROR_PREFIX,

    # Host envelope types
    ExtensionStatus,
    ExtensionResponse,

    # Metrics and policies
    MetricsSink,
    NoopMetrics,
    DeadlinePolicy,
    NoopDeadline,
    SimpleDeadline,

    # Plugin + wire handler
    TablePlugin,
    WireTableHandler,
)

__all__ = [
    "TABLE_PROTOCOL_VERSION",
    "TABLE_PROTOCOL_ID",
    "TABLE_REGISTRY_NAME",
    "GENERATE_ERROR_PREFIX",
    "OperationContext",
    "TablePluginError",
    "ConstructionError",
    "RequestError",
    "ContextParseError",
    "GenerationError",
    "RowContractError",
    "DeadlineExceeded",
    "ColumnType",
    "Operator",
    "Constraint",
    "ConstraintList",
    "QueryContext",
    "constraints_from_wire",
    "parse_constraint_list",
    "parse_query_context",
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
    "ExtensionStatus",
    "ExtensionResponse",
    "MetricsSink",
    "NoopMetrics",
    "DeadlinePolicy",
    "NoopDeadline",
    "SimpleDeadline",
    "TablePlugin",
    "WireTableHandler",
]
