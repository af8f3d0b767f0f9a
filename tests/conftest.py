"""Pytest configuration and shared fixtures."""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from mcp_tool_bridge.client import MCPClient


class FakeToolServer:
    """In-memory JSON-RPC tool server served through httpx.MockTransport."""

    def __init__(self, tools: Optional[List[Dict[str, Any]]] = None,
                 results: Optional[Dict[str, Dict[str, Any]]] = None,
                 capabilities: Optional[Dict[str, Any]] = None,
                 errors: Optional[Dict[str, Dict[str, Any]]] = None,
                 resources: Optional[Dict[str, str]] = None,
                 name: str = "fake-server"):
        self.tools = tools or []
        self.results = results or {}
        self.capabilities = {"tools": {}} if capabilities is None else capabilities
        self.errors = errors or {}
        self.resources = resources or {}
        self.name = name
        self.requests: List[Dict[str, Any]] = []

    def _result(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if method == "initialize":
            return {
                "protocolVersion": "2024-11-05",
                "capabilities": self.capabilities,
                "serverInfo": {"name": self.name, "version": "1.0.0"},
            }
        if method == "tools/list":
            return {"tools": self.tools}
        if method == "tools/call":
            name = params["name"]
            if name in self.results:
                return self.results[name]
            return {"content": [{"type": "text", "text": f"{name} called"}], "isError": False}
        if method == "resources/list":
            return {"resources": [{"uri": uri, "name": uri} for uri in self.resources]}
        if method == "resources/read":
            return {"contents": [{"uri": params["uri"], "text": self.resources[params["uri"]]}]}
        raise AssertionError(f"unexpected method {method}")

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        method = body["method"]
        if method in self.errors:
            return httpx.Response(200, json={
                "jsonrpc": "2.0", "id": body["id"], "error": self.errors[method]
            })
        return httpx.Response(200, json={
            "jsonrpc": "2.0", "id": body["id"], "result": self._result(method, body.get("params") or {})
        })

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, url: str = "http://tools.example.com/mcp", **kwargs) -> MCPClient:
        return MCPClient(url, transport=self.transport(), **kwargs)


def make_tool(name: str, description: str = "", properties: Optional[Dict[str, Any]] = None,
              required: Optional[List[str]] = None) -> Dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "inputSchema": {
            "type": "object",
            "properties": properties or {},
            "required": required or [],
        },
    }


@pytest.fixture
def fake_server():
    """Factory for in-memory tool servers."""
    return FakeToolServer


@pytest.fixture
def tool():
    """Factory for tool definitions."""
    return make_tool


@pytest.fixture
def unreachable_client():
    """Client whose transport always refuses the connection."""
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    return MCPClient("http://down.example.com/mcp", transport=httpx.MockTransport(refuse))


@pytest.fixture
def sample_initialize_result():
    """Sample initialize result for testing."""
    return {
        "protocolVersion": "2024-11-05",
        "capabilities": {"tools": {}},
        "serverInfo": {
            "name": "test-server",
            "version": "1.0.0"
        }
    }


@pytest.fixture
def sample_tool_definition():
    """Sample tool definition for testing."""
    return {
        "name": "test_tool",
        "description": "A test tool",
        "inputSchema": {
            "type": "object",
            "properties": {
                "param1": {"type": "string"},
                "param2": {"type": "integer"}
            },
            "required": ["param1"]
        }
    }
