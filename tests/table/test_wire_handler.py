# SPDX-License-Identifier: Apache-2.0
"""
Table Conformance - Wire-level envelopes.

Asserts:
  • Success envelope: status code 0 / "OK" with the payload in `response`
  • Failure envelope: status code 1, the error message, an empty response
    and the normalized error code
  • OperationContext built from a wire ctx dict (unknown keys ignored)
"""

from typing import Any, Dict, List

import pytest

from extension_sdk.table import (
    ExtensionResponse,
    ExtensionStatus,
    OperationContext,
    TablePlugin,
    WireTableHandler,
)
from tests.mock.mock_table_plugin import (
    EXAMPLE_ROUTES,
    EXAMPLE_WIRE_ROW,
    ExampleRow,
    TrackingGenerator,
    make_mock_plugin,
)

pytestmark = pytest.mark.asyncio


class BrokenRoutesPlugin(TablePlugin):
    def routes(self) -> List[Dict[str, str]]:
        raise RuntimeError("route table unavailable")


def _assert_failure(res: Dict[str, Any], code: str) -> None:
    assert res["status"]["code"] == 1
    assert isinstance(res["status"]["message"], str) and res["status"]["message"]
    assert res["response"] == []
    assert res["error"] == code


async def test_columns_envelope(wire_handler):
    res = await wire_handler.handle({"action": "columns"})
    assert res == {"status": {"code": 0, "message": "OK"}, "response": EXAMPLE_ROUTES}


async def test_generate_envelope(wire_handler):
    res = await wire_handler.handle({"action": "generate", "context": "{}"})
    assert res == {"status": {"code": 0, "message": "OK"}, "response": [EXAMPLE_WIRE_ROW]}


async def test_bad_action_envelope(wire_handler, tracking_generator):
    res = await wire_handler.handle({"action": "bad"})
    _assert_failure(res, "BAD_REQUEST")
    assert "bad" in res["status"]["message"]
    assert not tracking_generator.called


async def test_parse_error_envelope(wire_handler, tracking_generator):
    res = await wire_handler.handle({"action": "generate", "context": "{[]}"})
    _assert_failure(res, "CONTEXT_PARSE_ERROR")
    assert res["status"]["message"].startswith("error parsing context JSON: ")
    assert not tracking_generator.called


async def test_generation_error_envelope():
    handler = WireTableHandler(make_mock_plugin(TrackingGenerator(error=Exception("foobar"))))
    res = await handler.handle({"action": "generate", "context": "{}"})
    _assert_failure(res, "GENERATION_ERROR")
    assert res["status"]["message"] == "error generating table: foobar"


async def test_unexpected_exception_envelope():
    handler = WireTableHandler(BrokenRoutesPlugin("broken", ExampleRow, TrackingGenerator()))
    res = await handler.handle({"action": "columns"})
    _assert_failure(res, "UNAVAILABLE")
    assert res["status"]["message"] == "route table unavailable"


async def test_non_mapping_request_envelope(wire_handler):
    res = await wire_handler.handle(["action", "columns"])  # type: ignore[arg-type]
    _assert_failure(res, "BAD_REQUEST")


async def test_ctx_dict_becomes_operation_context(wire_handler, tracking_generator):
    await wire_handler.handle(
        {"action": "generate", "context": "{}"},
        ctx={"request_id": "r-1", "tenant": "t", "attrs": {"a": 1}, "unknown": "x"},
    )
    ctx = tracking_generator.last_ctx
    assert isinstance(ctx, OperationContext)
    assert ctx.request_id == "r-1"
    assert ctx.tenant == "t"
    assert ctx.get_attr("a") == 1


async def test_ctx_instance_passes_through(wire_handler, tracking_generator):
    ctx = OperationContext(request_id="r-2")
    await wire_handler.handle({"action": "generate", "context": "{}"}, ctx=ctx)
    assert tracking_generator.last_ctx is ctx


async def test_ping(wire_handler):
    assert wire_handler.ping() == {"code": 0, "message": "OK"}


async def test_plugin_property(wire_handler, mock_plugin):
    assert wire_handler.plugin is mock_plugin


async def test_response_types_to_dict():
    ok = ExtensionResponse(status=ExtensionStatus(), response=[{"a": "1"}])
    assert ok.ok
    assert ok.to_dict() == {"status": {"code": 0, "message": "OK"}, "response": [{"a": "1"}]}

    failed = ExtensionResponse(status=ExtensionStatus(1, "nope"), error="BAD_REQUEST")
    assert not failed.ok
    assert failed.to_dict() == {
        "status": {"code": 1, "message": "nope"},
        "response": [],
        "error": "BAD_REQUEST",
    }
