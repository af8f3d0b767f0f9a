"""Configuration management for MCP Tool Bridge."""

import json
import os
from typing import Optional, Dict
from dataclasses import dataclass, field


@dataclass
class ToolServerConfig:
    """Remote tool server configuration."""
    url: str
    name: Optional[str] = None
    description: Optional[str] = None
    timeout: int = 30
    verify_ssl: bool = True
    max_retries: int = 0
    retry_backoff: float = 1.0
    enabled: bool = True
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class ClientConfig:
    """Tool-calling client configuration."""
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/mcp_tool_bridge.log"
    wire_log_file: Optional[str] = "logs/mcp_wire.log"
    enable_tools: bool = True
    include_context: bool = True


@dataclass
class ServerConfig:
    """Workspace tool server configuration."""
    host: str = "127.0.0.1"
    port: int = 8000
    project_root: str = "."


@dataclass
class Config:
    """Main configuration."""
    tool_servers: Dict[str, ToolServerConfig]
    client: ClientConfig = field(default_factory=ClientConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary for logging setup."""
        return {
            "log_level": self.client.log_level,
            "log_file": self.client.log_file,
            "wire_log_file": self.client.wire_log_file,
            "host": self.server.host,
            "port": self.server.port,
        }


def default_tool_servers() -> Dict[str, ToolServerConfig]:
    """Public tool servers used when no configuration file exists."""
    return {
        "exa": ToolServerConfig(
            url="https://mcp.exa.ai",
            name="Exa",
            description="Web search and similar-content lookup",
        ),
        "grep": ToolServerConfig(
            url="https://mcp.grep.app",
            name="Grep.app",
            description="Code search across GitHub repositories",
        ),
        "deepwiki": ToolServerConfig(
            url="https://mcp.deepwiki.com",
            name="DeepWiki",
            description="Documentation and knowledge base search",
        ),
    }


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file.

    Server order in the file is the registration order used for tool
    name tie-breaks.
    """
    if config_path is None:
        for path in ["config.json", "../config.json", "./config.json"]:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return Config(tool_servers=default_tool_servers())

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if "tool_servers" not in data:
            raise KeyError("'tool_servers' not found in config")

        tool_servers = {}
        for server_id, server_data in data["tool_servers"].items():
            if not server_data.get("name"):
                server_data["name"] = server_id.title()
            tool_servers[server_id] = ToolServerConfig(**server_data)

        return Config(
            tool_servers=tool_servers,
            client=ClientConfig(**data.get("client", {})),
            server=ServerConfig(**data.get("server", {})),
        )

    except (FileNotFoundError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Failed to load config from {config_path}: {e}")


def get_server_config(config: Config, server_id: str) -> ToolServerConfig:
    """Get configuration for a specific tool server."""
    if server_id not in config.tool_servers:
        available_servers = list(config.tool_servers.keys())
        raise ValueError(f"Server '{server_id}' not found. Available servers: {available_servers}")

    return config.tool_servers[server_id]


def list_servers(config: Config) -> Dict[str, str]:
    """List all configured tool servers with their display names."""
    return {
        server_id: server_config.name or server_id
        for server_id, server_config in config.tool_servers.items()
    }
