# MCP upstream forwarding and commitment injection

from .client import MCPClient, MCPClientError
from .wrappers import JOB_TOOLS, ensure_commitments, tool_call_body, tool_name

__all__ = [
    "MCPClient",
    "MCPClientError",
    "JOB_TOOLS",
    "ensure_commitments",
    "tool_call_body",
    "tool_name",
]
