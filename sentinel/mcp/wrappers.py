"""Commitment injection for MCP tools/call payloads"""

import copy
from typing import Any, Optional

TOOLS_CALL = "tools/call"

# Tools whose arguments carry payment/TAP commitments
JOB_TOOLS = frozenset({
    "sentinel.create_job",
    "sentinel.checkpoint",
    "sentinel.settle",
})


def tool_call_body(name: str, arguments: Optional[dict[str, Any]] = None, request_id: Any = 1) -> dict:
    """MCP tool invocation format"""
    return {
        "jsonrpc": "2.0",
        "method": TOOLS_CALL,
        "params": {
            "name": name,
            "arguments": dict(arguments or {}),
        },
        "id": request_id,
    }


def tool_name(body: Any) -> Optional[str]:
    """Name of the invoked tool, None for anything but a tools/call"""
    if not isinstance(body, dict) or body.get("method") != TOOLS_CALL:
        return None
    params = body.get("params")
    if not isinstance(params, dict):
        return None
    name = params.get("name")
    return name if isinstance(name, str) else None


def ensure_commitments(
    body: dict,
    payment_commitment: Optional[str] = None,
    tap_commitment: Optional[str] = None,
) -> dict:
    """
    Return a copy of a tools/call body with commitments added to its
    arguments. Values the caller already supplied are never overwritten;
    other JSON-RPC methods come back unchanged.
    """
    result = copy.deepcopy(body)
    if not isinstance(result, dict) or result.get("method") != TOOLS_CALL:
        return result

    params = result.get("params")
    if not isinstance(params, dict):
        params = {}
        result["params"] = params
    arguments = params.get("arguments")
    if not isinstance(arguments, dict):
        arguments = {}
        params["arguments"] = arguments

    if payment_commitment and not arguments.get("paymentCommitment"):
        arguments["paymentCommitment"] = payment_commitment
    if tap_commitment and not arguments.get("tapCommitment"):
        arguments["tapCommitment"] = tap_commitment
    return result
