from typing import Dict, List, Any, Optional, Protocol, Sequence
import structlog

from botter.domain.errors import ConfigurationError
from botter.domain.models.tool import ServerInfo, ToolDeclaration, ToolOutput

logger = structlog.get_logger(__name__)


class ToolServer(Protocol):
    """A remote process exposing named tools"""

    name: str

    async def initialize(self) -> ServerInfo: ...

    async def list_tools(self) -> List[ToolDeclaration]: ...

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any], session_id: str) -> List[ToolOutput]: ...


class ToolRegistry:
    """Registry mapping tool names to the servers implementing them"""

    def __init__(self, servers: Sequence[ToolServer] = ()):
        self.servers: List[ToolServer] = list(servers)
        self.tools: Dict[str, ToolDeclaration] = {}
        self.tool_servers: Dict[str, ToolServer] = {}

    @classmethod
    async def build(cls, servers: Sequence[ToolServer]) -> "ToolRegistry":
        """Handshake with every server and register the tools it advertises"""

        registry = cls(servers)
        for server in registry.servers:
            try:
                info = await server.initialize()
            except Exception as exc:
                raise ConfigurationError(f"failed to initialize tool server {server.name}: {exc}") from exc

            logger.info(
                "Tool server init success",
                server=server.name,
                server_name=info.name,
                server_version=info.version,
                supports_tools=info.supports_tools
            )

            if not info.supports_tools:
                continue

            try:
                declarations = await server.list_tools()
            except Exception as exc:
                raise ConfigurationError(f"failed to list tools of {server.name}: {exc}") from exc

            logger.info("Tools available", server=server.name, tools_count=len(declarations))

            for declaration in declarations:
                registry.register_tool(declaration, server)

        return registry

    def register_tool(self, declaration: ToolDeclaration, server: ToolServer):
        """Register a tool; a later registration of the same name wins"""

        previous = self.tool_servers.get(declaration.name)
        if previous is not None:
            logger.warning(
                "Tool name collision, later registration wins",
                tool=declaration.name,
                previous_server=previous.name,
                server=server.name
            )

        self.tools[declaration.name] = declaration
        self.tool_servers[declaration.name] = server

    def resolve(self, tool_name: str) -> Optional[ToolServer]:
        """Get the server implementing a tool"""

        return self.tool_servers.get(tool_name)

    @property
    def declarations(self) -> List[ToolDeclaration]:
        """Declarations to advertise to the model, one per tool name"""

        return list(self.tools.values())

    def get_tool_info(self, tool_name: str) -> Optional[ToolDeclaration]:
        return self.tools.get(tool_name)
