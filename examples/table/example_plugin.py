# SPDX-License-Identifier: Apache-2.0
"""
Example table plugins.

  • example  - fixed single-row table covering every column type
  • env      - process environment variables; honors `key = ...`
                 constraints itself (the adapter only decodes them)
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

from extension_sdk.core.operation_context import OperationContext
from extension_sdk.table import (
    ColumnType,
    Operator,
    QueryContext,
    RowDefinition,
    TablePlugin,
    column,
)


@dataclass(frozen=True)
class ExampleRow(RowDefinition):
    text: str = column("text")
    integer: int = column("integer")
    big_int: int = column("big_int", ColumnType.BIGINT)
    double: float = column("double")


async def generate_example(ctx: OperationContext, query_ctx: QueryContext) -> List[ExampleRow]:
    return [ExampleRow(text="hello world", integer=123, big_int=-1234567890, double=3.14159)]


@dataclass(frozen=True)
class EnvRow(RowDefinition):
    key: str = column("key")
    value: str = column("value")
    length: int = column("length")


def generate_env(ctx: OperationContext, query_ctx: QueryContext) -> List[EnvRow]:
    wanted = None
    clist = query_ctx.get("key")
    if clist is not None:
        wanted = {c.expression for c in clist if c.operator is Operator.EQUALS} or None

    rows = []
    for key, value in sorted(os.environ.items()):
        if wanted is not None and key not in wanted:
            continue
        rows.append(EnvRow(key=key, value=value, length=len(value)))
    return rows


def build_plugin() -> TablePlugin:
    return TablePlugin("example", ExampleRow, generate_example)


def build_env_plugin() -> TablePlugin:
    return TablePlugin("env", EnvRow, generate_env)
