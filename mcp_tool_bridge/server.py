"""Workspace MCP server exposing local project files as tools and resources."""

import logging
import mimetypes
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .models import (
    MCPRequest, MCPResponse, MCPError, InitializeResult, ServerCapabilities,
    ServerInfo, Tool, ListToolsResult, CallToolRequest, CallToolResult,
    Resource, ListResourcesResult, ReadResourceResult, ResourceContents,
    PROTOCOL_VERSION,
)
from .config import Config, load_config
from .context import ProjectContextProvider


SERVER_NAME = "mcp-tool-bridge-workspace"
SERVER_VERSION = "0.1.0"
FILE_URI_PREFIX = "file:///"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class InvalidParams(Exception):
    """Tool or resource request with missing or bad parameters."""
    pass


class MCPServer:
    """MCP server for the files of one project."""

    def __init__(self, config_path: Optional[str] = None, project_root: Optional[str] = None,
                 config: Optional[Config] = None):
        self.config = config if config is not None else load_config(config_path)
        self.logger = logging.getLogger("mcp_server")

        self.provider = ProjectContextProvider(project_root or self.config.server.project_root)
        self.app = FastAPI(title="MCP Tool Bridge Workspace Server", version=SERVER_VERSION)
        self.setup_routes()
        self.tools = self._register_tools()
        self._handlers: Dict[str, Callable[[Dict[str, Any]], CallToolResult]] = {
            "read_file": self._read_file,
            "write_file": self._write_file,
            "list_files": self._list_files,
            "get_codebase_context": self._get_codebase_context,
        }
        self.logger.info(f"Workspace server initialized for {self.provider.root}")

    def _register_tools(self) -> List[Tool]:
        """Register available tools."""
        return [
            Tool(
                name="read_file",
                description="Read the content of a file in the project",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "File path relative to the project root"
                        }
                    },
                    "required": ["path"]
                }
            ),
            Tool(
                name="write_file",
                description="Write content to a file in the project, creating it if needed",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "File path relative to the project root"
                        },
                        "content": {
                            "type": "string",
                            "description": "Full new content of the file"
                        }
                    },
                    "required": ["path", "content"]
                }
            ),
            Tool(
                name="list_files",
                description="List the files and directories in a project directory",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "Directory path relative to the project root (default: project root)"
                        }
                    },
                    "required": []
                }
            ),
            Tool(
                name="get_codebase_context",
                description="Summarize the project structure, optionally including one file",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "file_path": {
                            "type": "string",
                            "description": "File to include in the summary"
                        }
                    },
                    "required": []
                }
            ),
        ]

    def setup_routes(self):
        """Setup FastAPI routes."""

        @self.app.post("/")
        async def handle_mcp_request(request: Request):
            """Handle MCP JSON-RPC requests."""
            try:
                body = await request.json()
            except (ValueError, UnicodeDecodeError) as e:
                result = self._create_error_response(None, PARSE_ERROR, f"Parse error: {e}")
                return JSONResponse(content=result.model_dump())

            request_id = body.get("id") if isinstance(body, dict) else None
            try:
                mcp_request = MCPRequest.model_validate(body)
            except ValidationError as e:
                result = self._create_error_response(request_id, INVALID_REQUEST, f"Invalid request: {e}")
                return JSONResponse(content=result.model_dump())

            try:
                result = await run_in_threadpool(self.handle, mcp_request)
            except Exception as e:
                self.logger.exception(f"Internal error handling {mcp_request.method}")
                result = self._create_error_response(request_id, INTERNAL_ERROR, f"Internal error: {e}")

            return JSONResponse(content=result.model_dump())

    def handle(self, request: MCPRequest) -> MCPResponse:
        """Route one request to its method handler."""
        self.logger.info(f"Request: {request.method} - ID: {request.id}")
        if request.method == "initialize":
            return self._handle_initialize(request)
        if request.method == "tools/list":
            return self._handle_list_tools(request)
        if request.method == "tools/call":
            return self._handle_call_tool(request)
        if request.method == "resources/list":
            return self._handle_list_resources(request)
        if request.method == "resources/read":
            return self._handle_read_resource(request)
        return self._create_error_response(
            request.id, METHOD_NOT_FOUND, f"Method not found: {request.method}"
        )

    def _handle_initialize(self, request: MCPRequest) -> MCPResponse:
        """Handle initialize method."""
        result = InitializeResult(
            protocolVersion=PROTOCOL_VERSION,
            capabilities=ServerCapabilities(tools={}, resources={}),
            serverInfo=ServerInfo(name=SERVER_NAME, version=SERVER_VERSION)
        )
        return MCPResponse(id=request.id, result=result.model_dump(exclude_none=True))

    def _handle_list_tools(self, request: MCPRequest) -> MCPResponse:
        """Handle tools/list method."""
        result = ListToolsResult(tools=self.tools)
        return MCPResponse(id=request.id, result=result.model_dump())

    def _handle_call_tool(self, request: MCPRequest) -> MCPResponse:
        """Handle tools/call method."""
        if not request.params:
            return self._create_error_response(
                request.id, INVALID_PARAMS, "Missing params for tools/call"
            )

        try:
            tool_request = CallToolRequest.model_validate(request.params)
        except ValidationError as e:
            return self._create_error_response(
                request.id, INVALID_PARAMS, f"Invalid tool call: {e}"
            )

        handler = self._handlers.get(tool_request.name)
        if handler is None:
            return self._create_error_response(
                request.id, INVALID_PARAMS, f"Unknown tool: {tool_request.name}"
            )

        try:
            result = handler(tool_request.arguments)
        except InvalidParams as e:
            return self._create_error_response(
                request.id, INVALID_PARAMS, f"Invalid tool call: {e}"
            )

        return MCPResponse(id=request.id, result=result.model_dump(exclude_none=True))

    def _handle_list_resources(self, request: MCPRequest) -> MCPResponse:
        """Handle resources/list method."""
        resources = []
        for path in self.provider.source_files():
            relative = path.relative_to(self.provider.root).as_posix()
            resources.append(Resource(
                uri=f"{FILE_URI_PREFIX}{relative}",
                name=relative,
                mimeType=mimetypes.guess_type(path.name)[0] or "text/plain",
            ))
        result = ListResourcesResult(resources=resources)
        return MCPResponse(id=request.id, result=result.model_dump(exclude_none=True))

    def _handle_read_resource(self, request: MCPRequest) -> MCPResponse:
        """Handle resources/read method."""
        uri = (request.params or {}).get("uri")
        if not isinstance(uri, str) or not uri.startswith(FILE_URI_PREFIX):
            return self._create_error_response(
                request.id, INVALID_PARAMS, f"Unsupported resource uri: {uri}"
            )

        relative = uri[len(FILE_URI_PREFIX):]
        content = self.provider.read_file(relative)
        if content is None:
            return self._create_error_response(
                request.id, INVALID_PARAMS, f"Resource not found: {uri}"
            )

        result = ReadResourceResult(contents=[ResourceContents(
            uri=uri,
            mimeType=mimetypes.guess_type(relative)[0] or "text/plain",
            text=content,
        )])
        return MCPResponse(id=request.id, result=result.model_dump(exclude_none=True))

    @staticmethod
    def _require(arguments: Dict[str, Any], name: str) -> str:
        value = arguments.get(name)
        if value is None:
            raise InvalidParams(f"{name} is required")
        return str(value)

    def _read_file(self, arguments: Dict[str, Any]) -> CallToolResult:
        path = self._require(arguments, "path")
        content = self.provider.read_file(path)
        if content is None:
            return CallToolResult.error(f"File not found: {path}")
        return CallToolResult.text(content)

    def _write_file(self, arguments: Dict[str, Any]) -> CallToolResult:
        path = self._require(arguments, "path")
        content = self._require(arguments, "content")
        if not self.provider.write_file(path, content):
            return CallToolResult.error(f"Failed to write file: {path}")
        return CallToolResult.text(f"File written successfully: {path}")

    def _list_files(self, arguments: Dict[str, Any]) -> CallToolResult:
        path = str(arguments.get("path") or ".")
        return CallToolResult.text("\n".join(self.provider.list_files(path)))

    def _get_codebase_context(self, arguments: Dict[str, Any]) -> CallToolResult:
        return CallToolResult.text(self.provider.build_context(arguments.get("file_path")))

    def _create_error_response(self, request_id: Optional[Any], code: int, message: str) -> MCPResponse:
        """Create an error response."""
        return MCPResponse(
            id=request_id,
            error=MCPError(code=code, message=message)
        )


def create_app(config_path: Optional[str] = None, project_root: Optional[str] = None,
               config: Optional[Config] = None) -> FastAPI:
    """Create and return the FastAPI app."""
    server = MCPServer(config_path, project_root, config)
    return server.app
