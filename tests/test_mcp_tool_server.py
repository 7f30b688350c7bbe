from contextlib import asynccontextmanager

import anyio
import pytest
from mcp import types
from mcp.server.fastmcp import FastMCP, Image
from mcp.server.lowlevel import Server
from mcp.shared.memory import create_client_server_memory_streams

from botter.domain.models.tool import TextOutput, UnsupportedOutput
from botter.domain.tool.tool_registry import ToolRegistry
from botter.infrastructure.mcp.mcp_tool_server import SESSION_HEADER, McpToolServer, to_tool_output


def salon_server() -> FastMCP:
    server = FastMCP("salon")

    @server.tool()
    def book_slot(day: str) -> str:
        """Book a haircut slot"""
        return f"booked {day}"

    @server.tool()
    def storefront() -> Image:
        """Photo of the salon"""
        return Image(data=b"\x89PNG", format="png")

    @server.tool()
    def closed() -> str:
        """Always fails"""
        raise ValueError("salon is closed")

    return server


class InProcessToolServer(McpToolServer):
    """Serves an in-process MCP server over memory streams, recording connection headers"""

    def __init__(self, server):
        super().__init__("http://salon.local/mcp")
        self.server = getattr(server, "_mcp_server", server)
        self.headers = []

    @asynccontextmanager
    async def _open_streams(self, headers):
        self.headers.append(headers)
        async with create_client_server_memory_streams() as (client_streams, server_streams):
            async with anyio.create_task_group() as tg:
                tg.start_soon(
                    self.server.run,
                    server_streams[0],
                    server_streams[1],
                    self.server.create_initialization_options()
                )
                try:
                    yield client_streams
                finally:
                    tg.cancel_scope.cancel()


def test_transport_follows_url():
    assert McpToolServer("http://localhost:8000/sse").transport == "sse"
    assert McpToolServer("http://localhost:8000/mcp").transport == "streamable-http"
    assert McpToolServer("http://localhost:8000/mcp", transport="sse").transport == "sse"


def test_text_content_is_forwarded():
    assert to_tool_output(types.TextContent(type="text", text="42")) == TextOutput(text="42")


def test_other_content_is_unsupported():
    image = types.ImageContent(type="image", data="aGk=", mimeType="image/png")
    assert to_tool_output(image) == UnsupportedOutput(content_type="image")


@pytest.mark.asyncio
async def test_initialize_reports_tool_capability():
    info = await InProcessToolServer(salon_server()).initialize()

    assert info.name == "salon"
    assert info.supports_tools is True


@pytest.mark.asyncio
async def test_server_without_tools_handler_does_not_support_tools():
    info = await InProcessToolServer(Server("bare")).initialize()

    assert info.name == "bare"
    assert info.supports_tools is False


@pytest.mark.asyncio
async def test_list_tools_maps_declarations():
    declarations = await InProcessToolServer(salon_server()).list_tools()

    by_name = {d.name: d for d in declarations}
    assert set(by_name) == {"book_slot", "storefront", "closed"}
    assert by_name["book_slot"].description == "Book a haircut slot"
    assert "day" in by_name["book_slot"].input_schema["properties"]


@pytest.mark.asyncio
async def test_call_tool_sends_session_header_and_maps_content():
    server = InProcessToolServer(salon_server())

    text = await server.call_tool("book_slot", {"day": "monday"}, "u1")
    image = await server.call_tool("storefront", {}, "u1")

    assert text == [TextOutput(text="booked monday")]
    assert image == [UnsupportedOutput(content_type="image")]
    assert server.headers == [{SESSION_HEADER: "u1"}, {SESSION_HEADER: "u1"}]


@pytest.mark.asyncio
async def test_tool_error_result_is_returned_as_text():
    outputs = await InProcessToolServer(salon_server()).call_tool("closed", {}, "u1")

    assert len(outputs) == 1
    assert isinstance(outputs[0], TextOutput)
    assert "salon is closed" in outputs[0].text


@pytest.mark.asyncio
async def test_registry_handshake_opens_connections_without_session_header():
    server = InProcessToolServer(salon_server())

    registry = await ToolRegistry.build([server])

    assert registry.resolve("book_slot") is server
    assert server.headers == [None, None]
