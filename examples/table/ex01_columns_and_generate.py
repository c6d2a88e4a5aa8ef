# SPDX-License-Identifier: Apache-2.0
"""
Demonstrates: routes, columns/generate dispatch, constraint decoding, errors
Expected: prints the env table's routes, the rows matching a `key = ...`
constraint in both host encodings, then a failure status for a bad context
"""
import argparse
import asyncio
import json

from examples.table.example_plugin import build_env_plugin
from extension_sdk.table import OperationContext, WireTableHandler


def _context(op, key: str, empty_list) -> str:
    return json.dumps({
        "constraints": [
            {"name": "key", "list": [{"op": op, "expr": key}], "affinity": "TEXT"},
            {"name": "value", "list": empty_list, "affinity": "TEXT"},
        ]
    })


async def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--key", default="PATH")
    args = ap.parse_args()

    handler = WireTableHandler(build_env_plugin())
    ctx = OperationContext(request_id="ex01")

    print(json.dumps(handler.ping()))
    print(json.dumps(await handler.handle({"action": "columns"}, ctx=ctx), indent=2))

    # legacy ("stringy") and current encodings of the same request
    for op, empty in (("2", ""), (2, [])):
        res = await handler.handle(
            {"action": "generate", "context": _context(op, args.key, empty)}, ctx=ctx
        )
        print(json.dumps(res, indent=2))

    print(json.dumps(await handler.handle({"action": "generate", "context": "{[]}"}, ctx=ctx)))


if __name__ == "__main__":
    asyncio.run(main())
