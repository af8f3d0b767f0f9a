"""MCP protocol models."""

from typing import Any, Dict, List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"


class MCPRequest(BaseModel):
    """MCP request model."""
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[Union[str, int]] = None
    method: str
    params: Optional[Dict[str, Any]] = None


class MCPError(BaseModel):
    """MCP error model."""
    code: int
    message: str
    data: Optional[Any] = None


class MCPResponse(BaseModel):
    """MCP response model.

    Some servers spell the version member ``protocol-version``; both
    spellings are accepted on input.
    """
    jsonrpc: str = Field(
        default=JSONRPC_VERSION,
        validation_alias=AliasChoices("jsonrpc", "protocol-version"),
    )
    id: Optional[Union[str, int]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[MCPError] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class ServerInfo(BaseModel):
    """Server information model."""
    name: str
    version: str


class ServerCapabilities(BaseModel):
    """Capabilities advertised by a server during the handshake."""
    tools: Optional[Dict[str, Any]] = None
    resources: Optional[Dict[str, Any]] = None
    prompts: Optional[Dict[str, Any]] = None


class InitializeResult(BaseModel):
    """Initialize method result."""
    protocolVersion: str
    capabilities: ServerCapabilities
    serverInfo: ServerInfo


class Tool(BaseModel):
    """Tool definition model."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    inputSchema: Dict[str, Any] = Field(default_factory=dict)

    def parameters(self) -> List[str]:
        """Parameter names in schema order, optional ones suffixed with ``?``."""
        properties = self.inputSchema.get("properties") or {}
        required = set(self.inputSchema.get("required") or [])
        return [
            name if name in required else f"{name}?"
            for name in properties
        ]


class ListToolsResult(BaseModel):
    """List tools result."""
    tools: List[Tool] = Field(default_factory=list)


class CallToolRequest(BaseModel):
    """Call tool request."""
    name: str
    arguments: Dict[str, Any]


class ContentItem(BaseModel):
    """A single piece of tool output: ``text``, ``image`` or ``resource``."""
    type: str
    text: Optional[str] = None
    data: Optional[str] = None
    mimeType: Optional[str] = None
    resource: Optional[Dict[str, Any]] = None


class CallToolResult(BaseModel):
    """Call tool result."""
    content: List[ContentItem]
    isError: bool = False

    @classmethod
    def error(cls, message: str) -> "CallToolResult":
        """Build an error-flagged result carrying a single text item."""
        return cls(content=[ContentItem(type="text", text=message)], isError=True)

    @classmethod
    def text(cls, text: str) -> "CallToolResult":
        return cls(content=[ContentItem(type="text", text=text)])


class Resource(BaseModel):
    """Resource definition model."""
    uri: str
    name: str
    description: Optional[str] = None
    mimeType: Optional[str] = None


class ListResourcesResult(BaseModel):
    """List resources result."""
    resources: List[Resource] = Field(default_factory=list)


class ResourceContents(BaseModel):
    """One entry of a resources/read result."""
    uri: Optional[str] = None
    mimeType: Optional[str] = None
    text: Optional[str] = None
    blob: Optional[str] = None


class ReadResourceResult(BaseModel):
    """Read resource result."""
    contents: List[ResourceContents] = Field(default_factory=list)
