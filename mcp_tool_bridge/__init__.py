"""Tool-calling bridge between generated text and remote MCP tool servers."""

from .client import (
    MCPClient, ConnectionState, RetryPolicy, MCPClientError, TransportError,
    RPCError, HandshakeError, NotInitializedError,
)
from .server_manager import ToolServerRegistry, InitOutcome
from .tool_calls import ToolCall, ToolCallEngine, extract_tool_calls, render_result
from .prompt import PromptAssembler

__version__ = "0.1.0"

__all__ = [
    "MCPClient",
    "ConnectionState",
    "RetryPolicy",
    "MCPClientError",
    "TransportError",
    "RPCError",
    "HandshakeError",
    "NotInitializedError",
    "ToolServerRegistry",
    "InitOutcome",
    "ToolCall",
    "ToolCallEngine",
    "extract_tool_calls",
    "render_result",
    "PromptAssembler",
]
