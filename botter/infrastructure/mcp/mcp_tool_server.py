"""
Tool server client speaking the Model Context Protocol.

Each operation opens its own client session: the turn's session id travels as
an HTTP header, and headers are fixed per connection.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import structlog
from mcp import ClientSession, types
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client

from botter.domain.models.tool import ServerInfo, TextOutput, ToolDeclaration, ToolOutput, UnsupportedOutput

logger = structlog.get_logger(__name__)

SESSION_HEADER = "x-session-id"


class McpToolServer:
    """A tool server reachable over streamable HTTP or SSE"""

    def __init__(self, url: str, transport: Optional[str] = None):
        self.url = url
        self.name = url
        self.transport = transport or ("sse" if url.rstrip("/").endswith("/sse") else "streamable-http")

    @asynccontextmanager
    async def _open_streams(self, headers: Optional[Dict[str, str]]) -> AsyncIterator[Tuple[Any, Any]]:
        if self.transport == "sse":
            async with sse_client(self.url, headers=headers) as (read_stream, write_stream):
                yield read_stream, write_stream
        else:
            async with streamablehttp_client(self.url, headers=headers) as (read_stream, write_stream, _):
                yield read_stream, write_stream

    @asynccontextmanager
    async def connect(self, session_id: Optional[str] = None) -> AsyncIterator[Tuple[ClientSession, types.InitializeResult]]:
        """Open an initialized client session"""

        headers = {SESSION_HEADER: session_id} if session_id else None
        async with self._open_streams(headers) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream) as session:
                init_result = await session.initialize()
                yield session, init_result

    async def initialize(self) -> ServerInfo:
        """Capability handshake"""

        async with self.connect() as (_, init_result):
            return ServerInfo(
                name=init_result.serverInfo.name,
                version=init_result.serverInfo.version,
                supports_tools=init_result.capabilities.tools is not None
            )

    async def list_tools(self) -> List[ToolDeclaration]:
        async with self.connect() as (session, _):
            result = await session.list_tools()

        return [
            ToolDeclaration(
                name=tool.name,
                description=tool.description or "",
                input_schema=dict(tool.inputSchema or {"type": "object", "properties": {}})
            )
            for tool in result.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any], session_id: str) -> List[ToolOutput]:
        """Invoke a tool on behalf of a session"""

        async with self.connect(session_id) as (session, _):
            result = await session.call_tool(tool_name, arguments)

        if result.isError:
            logger.warning("Tool reported an error", tool=tool_name, server=self.name)

        return [to_tool_output(item) for item in result.content]


def to_tool_output(item: Any) -> ToolOutput:
    if isinstance(item, types.TextContent):
        return TextOutput(text=item.text)
    return UnsupportedOutput(content_type=str(getattr(item, "type", type(item).__name__)))
