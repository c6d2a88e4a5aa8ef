# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the table conformance suite.

The plugin under test defaults to the in-repo mock. Point
EXTENSION_TABLE_PLUGIN at "package.module:attr" (a TablePlugin or a
zero-argument factory) to run the plugin-agnostic checks against your own
plugin; or pass --table-plugin on the command line.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import pytest

from extension_sdk.cli import load_plugin
from extension_sdk.table import TablePlugin, WireTableHandler
from tests.mock.mock_table_plugin import TrackingGenerator, make_mock_plugin

PLUGIN_ENV = "EXTENSION_TABLE_PLUGIN"


def pytest_addoption(parser):
    parser.addoption(
        "--table-plugin",
        action="store",
        default=None,
        help="MODULE:ATTR of the table plugin to run generic conformance checks against",
    )


def _plugin_target(config) -> Optional[str]:
    return config.getoption("--table-plugin") or os.getenv(PLUGIN_ENV)


@pytest.fixture(autouse=True)
def _capture_sdk_logs(caplog):
    caplog.set_level(logging.DEBUG, logger="extension_sdk")
    yield


@pytest.fixture
def tracking_generator() -> TrackingGenerator:
    return TrackingGenerator()


@pytest.fixture
def mock_plugin(tracking_generator) -> TablePlugin:
    return make_mock_plugin(tracking_generator)


@pytest.fixture
def plugin(request) -> TablePlugin:
    """
    Plugin for plugin-agnostic checks (routes shape, ping, dispatch errors).
    """
    target = _plugin_target(request.config)
    if target:
        return load_plugin(target)
    return make_mock_plugin()


@pytest.fixture
def wire_handler(mock_plugin) -> WireTableHandler:
    return WireTableHandler(mock_plugin)
