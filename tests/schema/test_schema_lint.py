# SPDX-License-Identifier: Apache-2.0
"""
Schema meta-lint for the table wire formats (Draft 2020-12).

- Every schema loads, declares Draft 2020-12, and has a unique $id
- $id matches the file's path under schema/
- Metaschema conformance
- Enum arrays are deduped and sorted for diff stability
- If a schema provides "examples", each example validates against it
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List

import pytest
from jsonschema import Draft202012Validator

from extension_sdk.table import ColumnType, Operator
from tests.utils.schema_registry import (
    DRAFT_202012,
    get_schema,
    get_validator,
    iter_schema_files,
    list_schemas,
    schema_id,
    schemas_root,
)

SCHEMA_FILES: List[Path] = iter_schema_files()


def _rel(p: Path) -> str:
    return p.relative_to(schemas_root()).as_posix()


def _walk_enums(node: Any) -> Iterable[list]:
    if isinstance(node, dict):
        if isinstance(node.get("enum"), list):
            yield node["enum"]
        for v in node.values():
            yield from _walk_enums(v)
    elif isinstance(node, list):
        for v in node:
            yield from _walk_enums(v)


def test_schemas_present():
    assert SCHEMA_FILES, f"no schemas under {schemas_root()}"
    assert len(list_schemas()) == len(SCHEMA_FILES)


@pytest.mark.parametrize("path", SCHEMA_FILES, ids=_rel)
def test_schema_header(path):
    schema = get_schema(schema_id(_rel(path)))
    assert schema["$schema"] == DRAFT_202012
    assert schema["$id"] == schema_id(_rel(path))


@pytest.mark.parametrize("path", SCHEMA_FILES, ids=_rel)
def test_metaschema_conformance(path):
    Draft202012Validator.check_schema(get_schema(schema_id(_rel(path))))


@pytest.mark.parametrize("path", SCHEMA_FILES, ids=_rel)
def test_enums_sorted_and_unique(path):
    for enum in _walk_enums(get_schema(schema_id(_rel(path)))):
        assert len(enum) == len(set(map(repr, enum))), f"duplicate enum values in {path}"
        assert enum == sorted(enum), f"unsorted enum in {path}: {enum}"


@pytest.mark.parametrize("path", SCHEMA_FILES, ids=_rel)
def test_examples_validate(path):
    sid = schema_id(_rel(path))
    validator = get_validator(sid)
    for example in get_schema(sid).get("examples", []):
        validator.validate(example)


def test_vocabulary_matches_enums():
    defs = get_schema(schema_id("table/table.types.json"))["$defs"]
    assert defs["affinity"]["enum"] == sorted(t.value for t in ColumnType)
    assert defs["op_code"]["enum"] == sorted(int(o) for o in Operator)
