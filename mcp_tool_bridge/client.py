"""MCP client for JSON-RPC over HTTP tool servers."""

import asyncio
import enum
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from .models import (
    MCPRequest, MCPResponse, InitializeResult, ServerCapabilities, ServerInfo,
    Tool, ListToolsResult, CallToolResult, Resource, ListResourcesResult,
    ReadResourceResult, PROTOCOL_VERSION,
)


CLIENT_INFO = {"name": "mcp-tool-bridge", "version": "0.1.0"}
CLIENT_CAPABILITIES = {
    "roots": {"listChanged": True},
    "sampling": {},
}


class MCPClientError(Exception):
    """Base class for MCP client errors."""
    pass


class TransportError(MCPClientError):
    """Connection failure, timeout, bad HTTP status or malformed response."""
    pass


class RPCError(TransportError):
    """Server answered with a JSON-RPC error object."""

    def __init__(self, method: str, code: int, message: str, data: Any = None):
        super().__init__(f"MCP error for method '{method}': [{code}] {message}")
        self.method = method
        self.code = code
        self.message = message
        self.data = data


class HandshakeError(MCPClientError):
    """The initialize exchange failed."""
    pass


class NotInitializedError(MCPClientError):
    """A method was called on a connection that is not ready."""
    pass


class ConnectionState(str, enum.Enum):
    UNCONNECTED = "unconnected"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class RetryPolicy:
    """Retry settings for a single exchange.

    Only connect errors, timeouts and 5xx responses are retried. Protocol
    errors reported by the server are never retried.
    """
    max_retries: int = 0
    backoff: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.backoff + attempt * 0.5


class MCPClient:
    """Client for a single remote MCP tool server."""

    def __init__(self, url: str, timeout: float = 30, verify_ssl: bool = True,
                 retry_policy: Optional[RetryPolicy] = None,
                 headers: Optional[Dict[str, str]] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.retry_policy = retry_policy or RetryPolicy()
        self.headers = dict(headers or {})
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        self.state = ConnectionState.UNCONNECTED
        self.protocol_version: Optional[str] = None
        self.capabilities: Optional[ServerCapabilities] = None
        self.server_info: Optional[ServerInfo] = None
        self._tools: Tuple[Tool, ...] = ()
        self.logger = logging.getLogger(f"mcp_client.{url}")

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY

    @property
    def tools(self) -> Tuple[Tool, ...]:
        """Cached tool catalog snapshot."""
        return self._tools

    def get_tool(self, name: str) -> Optional[Tool]:
        for tool in self._tools:
            if tool.name == name:
                return tool
        return None

    def _mask_sensitive_data(self, data: Any) -> Any:
        """Mask sensitive data in requests/responses for logging."""
        if isinstance(data, dict):
            masked_data = {}
            for key, value in data.items():
                if key.lower() in ['password', 'token', 'apikey', 'api_key', 'authorization']:
                    masked_data[key] = "***MASKED***"
                else:
                    masked_data[key] = self._mask_sensitive_data(value)
            return masked_data
        if isinstance(data, list):
            return [self._mask_sensitive_data(item) for item in data]
        return data

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            kwargs: Dict[str, Any] = {"timeout": self.timeout, "verify": self.verify_ssl}
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self):
        """Close the HTTP client connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _should_retry(self, error: httpx.HTTPError, attempt: int) -> bool:
        if attempt >= self.retry_policy.max_retries:
            return False
        if isinstance(error, (httpx.ConnectError, httpx.TimeoutException)):
            return True
        return isinstance(error, httpx.HTTPStatusError) and error.response.status_code >= 500

    async def _make_request(self, method: str, params: Optional[Dict[str, Any]] = None) -> MCPResponse:
        """Perform one JSON-RPC exchange and return the parsed response.

        Each call gets its own id and waits only for its own response, so
        concurrent calls on the same client never block each other.
        """
        request = MCPRequest(id=uuid.uuid4().hex, method=method, params=params)
        request_data = request.model_dump()
        headers = {"Content-Type": "application/json", **self.headers}

        masked_request = self._mask_sensitive_data(request_data)
        self.logger.info(f"MCP Request: {method} - ID: {request.id}")
        self.logger.debug(f"Request Data: {json.dumps(masked_request, indent=2)}")

        attempt = 0
        while True:
            start_time = time.time()
            client = await self._get_client()
            try:
                response = await client.post(self.url, json=request_data, headers=headers)
                response.raise_for_status()
                break
            except httpx.HTTPError as e:
                duration = time.time() - start_time
                if self._should_retry(e, attempt):
                    self.logger.warning(
                        f"MCP HTTP Error (retry {attempt + 1}/{self.retry_policy.max_retries}): "
                        f"{method} - ID: {request.id} - Duration: {duration:.3f}s - Error: {e}"
                    )
                    await asyncio.sleep(self.retry_policy.delay(attempt))
                    attempt += 1
                    continue
                self.logger.error(
                    f"MCP HTTP Error (no retry): {method} - ID: {request.id} - "
                    f"Duration: {duration:.3f}s - Error: {e}"
                )
                raise TransportError(f"HTTP error for method '{method}': {e}") from e

        duration = time.time() - start_time
        self.logger.info(
            f"MCP Response: {method} - ID: {request.id} - Duration: {duration:.3f}s - "
            f"Status: {response.status_code}"
        )

        try:
            parsed = MCPResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            self.logger.error(f"Malformed response for {method}: {e}")
            raise TransportError(f"Malformed response for method '{method}': {e}") from e

        if parsed.id is not None and str(parsed.id) != request.id:
            raise TransportError(
                f"Response id {parsed.id!r} does not match request id {request.id!r}"
            )

        if parsed.result is None and parsed.error is None:
            self.logger.error(f"Response for {method} has neither result nor error")
            raise TransportError(f"Response for method '{method}' has neither result nor error")

        self.logger.debug(f"Response Data: {json.dumps(self._mask_sensitive_data(parsed.model_dump()), indent=2)}")
        return parsed

    async def _call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Exchange that raises RPCError on a protocol-level error."""
        response = await self._make_request(method, params)
        if response.error is not None:
            self.logger.error(f"MCP API Error: {method} - {response.error.message}")
            raise RPCError(method, response.error.code, response.error.message, response.error.data)
        return response.result

    def _ensure_ready(self):
        if self.state is not ConnectionState.READY:
            raise NotInitializedError(
                f"MCP client for {self.url} is {self.state.value}. Call initialize() first."
            )

    async def initialize(self) -> InitializeResult:
        """Perform the handshake and cache the tool catalog.

        Raises:
            HandshakeError: the server was unreachable, answered with an
                error or returned a malformed result.
        """
        self.state = ConnectionState.INITIALIZING
        self._tools = ()
        self.logger.info(f"Initializing connection to {self.url}")
        params = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": CLIENT_CAPABILITIES,
            "clientInfo": CLIENT_INFO,
        }
        try:
            result = InitializeResult.model_validate(await self._call("initialize", params))
        except (TransportError, ValidationError) as e:
            self.state = ConnectionState.FAILED
            self.logger.error(f"Initialization failed for {self.url}: {e}")
            raise HandshakeError(f"Initialization failed for {self.url}: {e}") from e

        self.protocol_version = result.protocolVersion
        self.capabilities = result.capabilities
        self.server_info = result.serverInfo
        self.state = ConnectionState.READY
        self.logger.info(
            f"Connected to {result.serverInfo.name} {result.serverInfo.version} "
            f"(protocol {result.protocolVersion})"
        )

        if result.capabilities.tools is not None:
            try:
                self._tools = tuple(await self.list_tools())
            except MCPClientError as e:
                self.logger.warning(f"Tool catalog fetch failed for {self.url}, catalog left empty: {e}")
                self._tools = ()
        return result

    async def list_tools(self) -> List[Tool]:
        """List available tools from the server."""
        self._ensure_ready()
        result = await self._call("tools/list")
        try:
            return ListToolsResult.model_validate(result).tools
        except ValidationError as e:
            raise TransportError(f"Malformed tools/list result: {e}") from e

    async def refresh_tools(self) -> Tuple[Tool, ...]:
        """Re-fetch the catalog and replace the cached snapshot."""
        self._tools = tuple(await self.list_tools())
        return self._tools

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> CallToolResult:
        """Call a tool on the server.

        Errors reported by the server come back as an error-flagged result;
        only transport failures raise.
        """
        self._ensure_ready()
        response = await self._make_request("tools/call", {"name": name, "arguments": arguments})
        if response.error is not None:
            self.logger.warning(f"Tool '{name}' reported error: {response.error.message}")
            return CallToolResult.error(f"Error calling tool: {response.error.message}")
        try:
            return CallToolResult.model_validate(response.result)
        except ValidationError as e:
            raise TransportError(f"Malformed tools/call result for '{name}': {e}") from e

    async def list_resources(self) -> List[Resource]:
        """List available resources."""
        self._ensure_ready()
        result = await self._call("resources/list")
        try:
            return ListResourcesResult.model_validate(result).resources
        except ValidationError as e:
            raise TransportError(f"Malformed resources/list result: {e}") from e

    async def read_resource(self, uri: str) -> str:
        """Read a resource and return the text of its first content entry."""
        self._ensure_ready()
        result = await self._call("resources/read", {"uri": uri})
        try:
            contents = ReadResourceResult.model_validate(result).contents
        except ValidationError as e:
            raise TransportError(f"Malformed resources/read result: {e}") from e
        if not contents:
            return ""
        return contents[0].text or ""
