# extension_sdk/cli.py
# SPDX-License-Identifier: Apache-2.0
"""
Extension SDK CLI

Developer entrypoint for table plugins: inspect a plugin's routes, decode a
query-context payload, drive a generate call through the wire handler, or
run the table conformance suite.
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import os
import sys
import time
from typing import Any, List, Optional

from extension_sdk.table.errors import ContextParseError
from extension_sdk.table.query_context import parse_query_context
from extension_sdk.table.table_base import (
    ACTION_COLUMNS,
    ACTION_GENERATE,
    STATUS_OK,
    TABLE_PROTOCOL_ID,
    TABLE_PROTOCOL_VERSION,
    TablePlugin,
    WireTableHandler,
)

try:
    import pytest
except ImportError:  # pragma: no cover
    pytest = None  # type: ignore[assignment]


TABLE_TEST_PATH = "tests/table"

# Configuration from environment
PYTEST_JOBS = os.environ.get("PYTEST_JOBS", "auto")
COV_FAIL_UNDER = os.environ.get("COV_FAIL_UNDER", "80")
PYTEST_EXTRA_ARGS = os.environ.get("PYTEST_ARGS", "").split()


# --------------------------------------------------------------------------- #
# Internal helpers
# --------------------------------------------------------------------------- #

def _print_json(obj: Any) -> None:
    print(json.dumps(obj, indent=2, sort_keys=False))


def load_plugin(target: str) -> TablePlugin:
    """
    Resolve "package.module:attr" to a TablePlugin.

    `attr` may be a plugin instance or a zero-argument factory returning one.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"expected MODULE:ATTR, got {target!r}")
    module = importlib.import_module(module_name)
    obj = getattr(module, attr)
    if not isinstance(obj, TablePlugin) and callable(obj):
        obj = obj()
    if not isinstance(obj, TablePlugin):
        raise TypeError(f"{target} is not a TablePlugin (got {type(obj).__name__})")
    return obj


def _repo_root() -> str:
    """Best-effort guess of repo root."""
    here = os.path.abspath(os.path.dirname(__file__))
    return os.path.dirname(here)


def _build_pytest_args(
    quiet_mode: bool = False,
    verbose_mode: bool = False,
    passthrough_args: Optional[List[str]] = None,
) -> List[str]:
    args = [TABLE_TEST_PATH, *PYTEST_EXTRA_ARGS, *(passthrough_args or [])]

    if quiet_mode:
        args.append("-q")
    elif verbose_mode:
        args.append("-vv")
    else:
        args.append("-v")

    if PYTEST_JOBS != "1":
        args.extend(["-n", PYTEST_JOBS])

    args.extend([
        "--cov=extension_sdk",
        f"--cov-fail-under={COV_FAIL_UNDER}",
        "--cov-report=term",
    ])
    return args


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #

def _cmd_describe(args: argparse.Namespace) -> int:
    plugin = load_plugin(args.plugin)
    handler = WireTableHandler(plugin)
    res = handler.handle_sync({"action": ACTION_COLUMNS})
    _print_json({
        "protocol": TABLE_PROTOCOL_ID,
        "version": TABLE_PROTOCOL_VERSION,
        "registry": plugin.registry_name,
        "name": plugin.name,
        **res,
    })
    return 0 if res["status"]["code"] == STATUS_OK else 1


def _cmd_parse_context(args: argparse.Namespace) -> int:
    try:
        qctx = parse_query_context(args.context)
    except ContextParseError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    _print_json(qctx.to_dict())
    return 0


def _cmd_generate(args: argparse.Namespace) -> int:
    plugin = load_plugin(args.plugin)
    handler = WireTableHandler(plugin)
    res = handler.handle_sync({"action": ACTION_GENERATE, "context": args.context})
    _print_json(res)
    return 0 if res["status"]["code"] == STATUS_OK else 1


def _cmd_test(args: argparse.Namespace, passthrough_args: List[str]) -> int:
    if pytest is None:  # pragma: no cover
        print(
            "error: pytest is required to run conformance tests.\n"
            "Install test dependencies via:\n"
            "    pip install .[test]",
            file=sys.stderr,
        )
        return 1

    os.chdir(_repo_root())
    if not os.path.isdir(TABLE_TEST_PATH):
        print(f"error: test path does not exist: {TABLE_TEST_PATH}", file=sys.stderr)
        return 2

    if not args.quiet:
        print("Running Table Protocol V1 conformance...")
        print(f"   Config: jobs={PYTEST_JOBS}, cov_threshold={COV_FAIL_UNDER}%")

    start = time.time()
    rc = int(pytest.main(_build_pytest_args(args.quiet, args.verbose, passthrough_args)))
    if not args.quiet:
        if rc == 0:
            print(f"Table protocol conformance passed in {time.time() - start:.1f}s")
        else:
            print("\nConformance failures detected.")
    return rc


# --------------------------------------------------------------------------- #
# main
# --------------------------------------------------------------------------- #

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extension-sdk",
        description="Extension SDK CLI - table plugin tooling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  extension-sdk describe examples.table.example_plugin:build_plugin
  extension-sdk parse-context '{"constraints":[{"name":"pid","list":[{"op":2,"expr":"1"}],"affinity":"INTEGER"}]}'
  extension-sdk generate examples.table.example_plugin:build_plugin --context '{}'
  extension-sdk test-table-conformance -- -x --tb=short

Configuration (environment variables):
  PYTEST_JOBS=4          Run 4 parallel jobs (default: auto)
  COV_FAIL_UNDER=90      Require 90% coverage (default: 80)
  PYTEST_ARGS="-x -s"    Additional pytest arguments
        """.strip(),
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Detailed output")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")

    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    p = sub.add_parser("describe", help="Print a plugin's column routes")
    p.add_argument("plugin", help="MODULE:ATTR of a TablePlugin or factory")

    p = sub.add_parser("parse-context", help="Decode a query-context JSON payload")
    p.add_argument("context", help="JSON query context")

    p = sub.add_parser("generate", help="Run a generate call through the wire handler")
    p.add_argument("plugin", help="MODULE:ATTR of a TablePlugin or factory")
    p.add_argument("--context", default="{}", help="JSON query context (default: {})")

    sub.add_parser("test-table-conformance", help="Run the table conformance suite")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    cli_args = list(sys.argv[1:] if argv is None else argv)
    passthrough_args: List[str] = []
    if "--" in cli_args:
        split_index = cli_args.index("--")
        passthrough_args = cli_args[split_index + 1:]
        cli_args = cli_args[:split_index]

    parser = build_parser()
    try:
        args = parser.parse_args(cli_args)
    except SystemExit as e:
        return int(e.code or 0)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "describe":
            return _cmd_describe(args)
        if args.command == "parse-context":
            return _cmd_parse_context(args)
        if args.command == "generate":
            return _cmd_generate(args)
        if args.command == "test-table-conformance":
            return _cmd_test(args, passthrough_args)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    # This should never happen due to argparse required=True
    print(f"error: unknown command '{args.command}'\n", file=sys.stderr)
    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
