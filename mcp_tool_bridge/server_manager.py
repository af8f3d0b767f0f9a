"""Registry of remote MCP tool servers plus local project context."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import asyncio
import logging

from .client import MCPClient, ConnectionState, RetryPolicy, NotInitializedError
from .config import Config
from .context import ContextProvider
from .models import CallToolResult, Resource


@dataclass(frozen=True)
class InitOutcome:
    """Result of initializing one server."""
    server_id: str
    state: ConnectionState
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is ConnectionState.READY


class ToolServerRegistry:
    """Owns a fixed, ordered set of tool server clients.

    Registration order is the construction order and decides which server
    wins when several declare the same tool name.
    """

    def __init__(self, servers: Sequence[Tuple[str, MCPClient]],
                 context_provider: Optional[ContextProvider] = None,
                 names: Optional[Dict[str, str]] = None):
        self._servers: Tuple[Tuple[str, MCPClient], ...] = tuple(servers)
        self._clients: Dict[str, MCPClient] = dict(self._servers)
        if len(self._clients) != len(self._servers):
            raise ValueError("Duplicate server id in registry")
        self._names = dict(names or {})
        self.context_provider = context_provider
        self._tool_index: Dict[str, str] = {}
        self.is_initialized = False
        self.logger = logging.getLogger("server_manager")

    @classmethod
    def from_config(cls, config: Config,
                    context_provider: Optional[ContextProvider] = None) -> "ToolServerRegistry":
        """Build a registry from the enabled servers in a configuration."""
        servers = []
        names = {}
        for server_id, server_config in config.tool_servers.items():
            if not server_config.enabled:
                continue
            client = MCPClient(
                url=server_config.url,
                timeout=server_config.timeout,
                verify_ssl=server_config.verify_ssl,
                retry_policy=RetryPolicy(server_config.max_retries, server_config.retry_backoff),
                headers=server_config.headers,
            )
            servers.append((server_id, client))
            names[server_id] = server_config.name or server_id
        return cls(servers, context_provider, names)

    @property
    def server_ids(self) -> List[str]:
        return [server_id for server_id, _ in self._servers]

    def get_client(self, server_id: str) -> MCPClient:
        if server_id not in self._clients:
            available_servers = self.server_ids
            error_msg = f"Server '{server_id}' not found. Available servers: {available_servers}"
            self.logger.error(error_msg)
            raise ValueError(error_msg)
        return self._clients[server_id]

    async def _initialize_one(self, server_id: str, client: MCPClient) -> InitOutcome:
        try:
            await client.initialize()
        except Exception as e:
            self.logger.warning(f"Server '{server_id}' failed to initialize: {e}")
            return InitOutcome(server_id, ConnectionState.FAILED, str(e))
        self.logger.info(f"Server '{server_id}' ready with {len(client.tools)} tools")
        return InitOutcome(server_id, client.state)

    async def initialize_all(self) -> List[InitOutcome]:
        """Initialize every server concurrently, best effort.

        Returns one outcome per server in registration order. A failing
        server never prevents the others from becoming ready.
        """
        outcomes = await asyncio.gather(*(
            self._initialize_one(server_id, client) for server_id, client in self._servers
        ))
        self._rebuild_index()
        self.is_initialized = True

        ready = sum(1 for outcome in outcomes if outcome.ok)
        self.logger.info(f"Initialized {ready}/{len(outcomes)} tool servers")
        return list(outcomes)

    def _rebuild_index(self):
        index: Dict[str, str] = {}
        for server_id, client in self._servers:
            if not client.is_ready:
                continue
            for tool in client.tools:
                if tool.name in index:
                    self.logger.debug(
                        f"Tool '{tool.name}' on '{server_id}' shadowed by '{index[tool.name]}'"
                    )
                    continue
                index[tool.name] = server_id
        self._tool_index = index

    async def refresh_catalog(self, server_id: str) -> None:
        """Re-fetch one server's tool catalog and rebuild the lookup index."""
        client = self.get_client(server_id)
        await client.refresh_tools()
        self._rebuild_index()

    def find_owner(self, tool_name: str) -> Optional[str]:
        return self._tool_index.get(tool_name)

    async def dispatch(self, tool_name: str, arguments: Dict[str, Any]) -> CallToolResult:
        """Route a tool call to the server whose catalog declares it.

        Unknown tools and unavailable servers are reported in the result
        rather than raised. Transport failures propagate.
        """
        server_id = self._tool_index.get(tool_name)
        if server_id is None:
            self.logger.warning(f"Dispatch of unknown tool: {tool_name}")
            return CallToolResult.error(f"Unknown tool: {tool_name}")

        client = self._clients[server_id]
        if not client.is_ready:
            return CallToolResult.error(f"Server '{server_id}' is not ready")

        self.logger.info(f"Dispatching '{tool_name}' to '{server_id}'")
        return await client.call_tool(tool_name, arguments)

    def describe_available_tools(self) -> str:
        """Human-readable listing of every ready server's tools."""
        sections = []
        for server_id, client in self._servers:
            if not client.is_ready or not client.tools:
                continue
            lines = [f"[{server_id}] {self._names.get(server_id, server_id)}"]
            for tool in sorted(client.tools, key=lambda t: t.name):
                signature = f"{tool.name}({', '.join(tool.parameters())})"
                description = tool.description.strip().splitlines()[0] if tool.description.strip() else ""
                lines.append(f"- {signature}: {description}" if description else f"- {signature}")
            sections.append("\n".join(lines))

        if not sections:
            return "No tools available."
        return "Available Tools:\n\n" + "\n\n".join(sections)

    async def list_resources(self, server_id: str) -> List[Resource]:
        client = self.get_client(server_id)
        if not client.is_ready:
            raise NotInitializedError(f"Server '{server_id}' is not ready")
        return await client.list_resources()

    async def read_resource(self, server_id: str, uri: str) -> str:
        client = self.get_client(server_id)
        if not client.is_ready:
            raise NotInitializedError(f"Server '{server_id}' is not ready")
        return await client.read_resource(uri)

    def list_servers(self) -> Dict[str, Dict[str, Any]]:
        """List all registered servers with their connection details."""
        servers = {}
        for server_id, client in self._servers:
            servers[server_id] = {
                "server_id": server_id,
                "name": self._names.get(server_id, server_id),
                "url": client.url,
                "state": client.state.value,
                "protocol_version": client.protocol_version,
                "server_name": client.server_info.name if client.server_info else None,
                "tool_count": len(client.tools),
            }
        return servers

    def build_context(self, current_focus: Optional[str] = None) -> str:
        if self.context_provider is None:
            return ""
        return self.context_provider.build_context(current_focus)

    def read_file(self, path: str) -> Optional[str]:
        if self.context_provider is None:
            return None
        return self.context_provider.read_file(path)

    def write_file(self, path: str, content: str) -> bool:
        if self.context_provider is None:
            return False
        return self.context_provider.write_file(path, content)

    def list_files(self, path: str = ".") -> List[str]:
        if self.context_provider is None:
            return []
        return self.context_provider.list_files(path)

    async def close_all(self):
        """Close every client connection."""
        for server_id, client in self._servers:
            try:
                await client.close()
            except Exception as e:
                self.logger.warning(f"Error closing '{server_id}': {e}")
