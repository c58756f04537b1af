"""
MCP Upstream Client

Forwards JSON-RPC payloads to the upstream MCP server.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class MCPClientError(Exception):
    """Base exception for MCP client errors"""
    pass


class MCPClient:
    """
    Client for the upstream MCP (Model Context Protocol) server.

    Usage:
        client = MCPClient("http://localhost:3001/mcp")
        status, result = await client.forward(tool_call_body("sentinel.create_job", {...}))
    """

    def __init__(
        self,
        mcp_url: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.mcp_url = mcp_url
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close connection"""
        await self._http_client.aclose()

    async def forward(self, body: dict[str, Any]) -> tuple[int, Any]:
        """
        Post a JSON-RPC body upstream.

        Returns:
            Upstream status code and decoded JSON body

        Raises:
            MCPClientError: on transport failure or a non-JSON reply
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            response = await self._http_client.post(self.mcp_url, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise MCPClientError(f"Upstream MCP request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            raise MCPClientError(f"Upstream MCP returned non-JSON reply ({response.status_code})")

        if response.status_code >= 400:
            logger.error(f"Upstream MCP call failed: {response.status_code} - {response.text}")
        return response.status_code, data
