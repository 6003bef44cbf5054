"""
MCP-backed tools.

Spawns an MCP server as a subprocess and exposes each tool it advertises as
a Tool the model can call.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client

from convollm.tools.base import Tool

logger = logging.getLogger(__name__)


class McpTool(Tool):
    """One tool hosted by an MCP server."""

    def __init__(self, server: McpToolServer, name: str, description: str, parameters: dict[str, Any]):
        self.name = name
        self.description = description
        self.parameters = parameters
        self._server = server

    async def run(self, app_id, user_id, channel, arguments):
        # MCP tools only see the model's arguments; identity stays in our logs
        logger.debug(f"MCP tool '{self.name}' called for user {user_id} on channel {channel}")
        return await self._server.call(self.name, arguments)


class McpToolServer:
    """
    Tool source backed by an MCP server over stdio.

    Use as an async context manager; the subprocess lives for the duration
    of the ``async with`` block.

    Args:
        command: argv of the server, e.g. ["node", "tools/index.js"]
        env: Optional environment for the subprocess
    """

    def __init__(self, command: list[str], env: dict[str, str] | None = None):
        if not command:
            raise ValueError("MCP server command must not be empty")
        self._command = command
        self._env = env
        self._initialized = False
        self._session = None
        self._stdio_context = None
        self._session_context = None

    async def initialize(self) -> None:
        """Start the MCP server subprocess and perform the handshake."""
        server_params = StdioServerParameters(
            command=self._command[0],
            args=list(self._command[1:]),
            env=self._env,
        )

        stdio_context = stdio_client(server_params)
        read_stream, write_stream = await stdio_context.__aenter__()
        self._stdio_context = stdio_context

        try:
            session_context = ClientSession(read_stream, write_stream)
            self._session = await session_context.__aenter__()
            self._session_context = session_context
            await self._session.initialize()
        except Exception:
            logger.error(f"MCP handshake failed: {' '.join(self._command)}")
            await self.shutdown()
            raise

        self._initialized = True
        logger.info(f"MCP server started: {' '.join(self._command)}")

    async def shutdown(self) -> None:
        """Close the session and terminate the subprocess."""
        if self._session_context is not None:
            await self._session_context.__aexit__(None, None, None)
            self._session_context = None
            self._session = None

        if self._stdio_context is not None:
            await self._stdio_context.__aexit__(None, None, None)
            self._stdio_context = None

        self._initialized = False

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, *_args):
        await self.shutdown()
        return None

    async def list_tools(self) -> list[McpTool]:
        """List the server's tools as Tool objects."""
        if not self._initialized:
            raise RuntimeError("MCP server not initialized")

        result = await self._session.list_tools()
        return [
            McpTool(
                server=self,
                name=tool.name,
                description=tool.description or "",
                parameters=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in result.tools
        ]

    async def call(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Call a tool on the server and join its text content blocks."""
        if not self._initialized:
            raise RuntimeError("MCP server not initialized")

        result = await self._session.call_tool(tool_name, arguments)

        text_parts = [content.text for content in result.content if hasattr(content, "text")]
        return " ".join(text_parts)
