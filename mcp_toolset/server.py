"""
MCP stdio server exposing the remote toolset.

The server is a single process that:
1. Fetches the toolset manifest once at startup
2. Registers one RemoteToolHandler per remote tool
3. Reads JSON-RPC requests from stdin
4. Writes JSON-RPC responses to stdout

Usage:

    from mcp_toolset.server import RemoteToolsetServer

    server = RemoteToolsetServer.create(endpoint, api_key)
    server.start()

Tool failures are reported as ``isError`` tool results, never as
protocol errors; the process keeps serving.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from types import MappingProxyType
from typing import IO, Any, Mapping

import requests

from mcp_toolset import __version__
from mcp_toolset.errors import ConfigError
from mcp_toolset.hooks import ServerHooks
from mcp_toolset.invoker import ToolInvoker
from mcp_toolset.manifest import ManifestFetcher
from mcp_toolset.models import ToolDescriptor
from mcp_toolset.registry import ToolRegistry, augment_schema
from mcp_toolset.transport import DEFAULT_TIMEOUT, HttpTransport

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-toolset"
PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
INVALID_REQUEST = -32600


@dataclass
class ToolCallResult:
    """Textual result of one tool call, as the client sees it."""
    text: str
    is_error: bool = False

    def to_mcp(self) -> dict[str, Any]:
        return {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response."""
    id: int | str | None
    result: Any = None
    error: dict | None = None

    def to_dict(self) -> dict[str, Any]:
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": self.id}
        if self.error is not None:
            message["error"] = self.error
        else:
            message["result"] = self.result
        return message

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class JsonRpcError(Exception):
    """A request-level failure carrying a JSON-RPC error code."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class ToolHandler(ABC):
    """
    Base class for a tool exposed over stdio.

    Subclasses define what a tool does. The server handles transport.
    """

    name: str = ""
    description: str = ""

    @abstractmethod
    def handle(self, arguments: dict[str, Any], cancel: threading.Event | None = None) -> ToolCallResult:
        """
        Execute the tool with the given arguments.

        Args:
            arguments: Decoded JSON arguments from the client
            cancel: Set when the client cancels the request

        Returns:
            The result to send back; failures set ``is_error``.
        """
        ...

    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON schema for the tool's arguments."""
        ...

    def describe(self) -> dict[str, Any]:
        """Return the tool entry for tools/list."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }


class RemoteToolHandler(ToolHandler):
    """
    Proxies one remote tool.

    Bound to its own descriptor at construction; the schema is augmented
    once and cached.
    """

    def __init__(self, tool: ToolDescriptor, invoker: ToolInvoker):
        self.tool = tool
        self.invoker = invoker
        self.name = tool.name
        self.description = tool.description
        self._schema = augment_schema(tool)

    def input_schema(self) -> dict[str, Any]:
        return self._schema

    def handle(self, arguments: dict[str, Any], cancel: threading.Event | None = None) -> ToolCallResult:
        try:
            args_json = json.dumps(arguments if arguments is not None else {}, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            return ToolCallResult(f"Tool '{self.name}': failed to marshal arguments: {e}", is_error=True)

        logger.info(f"[API-CALL] Executing tool '{self.name}'")

        result = self.invoker.execute(self.tool, args_json, cancel=cancel)
        if result.is_error:
            logger.warning(f"[API-CALL] Tool '{self.name}' execution failed: {result.error}")
            return ToolCallResult(f"Tool '{self.name}' execution failed: {result.error}", is_error=True)

        response = result.payload

        logger.info(f"[API-CALL] Tool '{self.name}' response received: {len(response)} bytes")

        try:
            parsed = json.loads(response)
        except ValueError as e:
            return ToolCallResult(f"Tool '{self.name}': failed to parse tool response: {e}", is_error=True)

        return ToolCallResult(json.dumps(parsed, indent=2, ensure_ascii=False))


class StdioToolServer:
    """
    JSON-RPC tool server that communicates via stdin/stdout.

    Protocol:
    - One JSON-RPC message per line
    - Supports methods:
        - "initialize"             → server info and capabilities
        - "ping"                   → health check
        - "tools/list"             → registered tool schemas
        - "tools/call"             → calls a tool by name (on a worker thread)
        - "notifications/cancelled" → cancels an in-flight tools/call
    - Messages without an id are notifications and get no response
    """

    def __init__(
        self,
        name: str = SERVER_NAME,
        version: str = __version__,
        hooks: ServerHooks | None = None,
        max_workers: int = 8,
    ):
        self.name = name
        self.version = version
        self.hooks = hooks or ServerHooks()
        self.max_workers = max_workers
        self._handlers: Mapping[str, ToolHandler] = MappingProxyType({})
        self._inflight: dict[Any, threading.Event] = {}
        self._inflight_lock = threading.Lock()
        self._write_lock = threading.Lock()

    def register(self, handler: ToolHandler) -> None:
        """Register a tool handler."""
        if not handler.name:
            raise ValueError(f"ToolHandler {handler.__class__.__name__} has no name")
        self._handlers = MappingProxyType({**self._handlers, handler.name: handler})
        logger.info(f"Registered tool: {handler.name}")

    @property
    def handlers(self) -> Mapping[str, ToolHandler]:
        return self._handlers

    def run(self, stdin: IO[str] | None = None, stdout: IO[str] | None = None) -> None:
        """
        Main loop: read requests from stdin, dispatch, write responses to stdout.

        Blocks until stdin is closed. In-flight tool calls finish before
        this returns.
        """
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout

        logger.info(f"Tool server starting with {len(self._handlers)} tools: "
                    f"{list(self._handlers.keys())}")

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="tool-call") as pool:
            for line in stdin:
                line = line.strip()
                if not line:
                    continue

                try:
                    request = json.loads(line)
                except json.JSONDecodeError as e:
                    self._write(stdout, JsonRpcResponse(None, error=_error(PARSE_ERROR, f"Parse error: {e}")))
                    continue

                if isinstance(request, dict) and not _valid_id(request.get("id")):
                    self._write(stdout, self.handle_message(request))
                elif isinstance(request, dict) and request.get("method") == "tools/call" and "id" in request:
                    self._track(request["id"])
                    pool.submit(self._serve, request, stdout)
                else:
                    self._serve(request, stdout)

        logger.info("Tool server stopped: stdin closed")

    def handle_message(self, request: Any) -> JsonRpcResponse | None:
        """Process one decoded message. Returns None for notifications."""
        if not isinstance(request, dict):
            return JsonRpcResponse(None, error=_error(INVALID_REQUEST, "Invalid request: not an object"))
        if not _valid_id(request.get("id")):
            return JsonRpcResponse(
                None, error=_error(INVALID_REQUEST, "Invalid request: id must be a string, number or null")
            )

        is_notification = "id" not in request
        request_id = request.get("id")
        method = request.get("method", "")
        params = request.get("params") or {}

        self.hooks.fire_before_any(method, params)
        try:
            result = self._dispatch(method, params, request_id)
        except JsonRpcError as e:
            self.hooks.fire_on_error(method, e)
            return None if is_notification else JsonRpcResponse(request_id, error=_error(e.code, e.message))
        except Exception as e:
            logger.exception(f"Unexpected error handling {method}")
            self.hooks.fire_on_error(method, e)
            return None if is_notification else JsonRpcResponse(request_id, error=_error(INTERNAL_ERROR, str(e)))

        self.hooks.fire_on_success(method, result)
        return None if is_notification else JsonRpcResponse(request_id, result=result)

    def _dispatch(self, method: str, params: dict, request_id: Any) -> Any:
        """Route a method call to the appropriate handler."""

        if method == "initialize":
            return {
                "protocolVersion": _negotiate_version(params.get("protocolVersion")),
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": self.name, "version": self.version},
            }

        if method == "ping":
            return {}

        if method == "tools/list":
            return {"tools": [h.describe() for h in self._handlers.values()]}

        if method == "tools/call":
            return self._call_tool(params, request_id)

        if method == "notifications/cancelled":
            if _valid_id(params.get("requestId")):
                self._cancel(params.get("requestId"))
            return None

        if method.startswith("notifications/"):
            return None

        raise JsonRpcError(METHOD_NOT_FOUND, f"Unknown method: '{method}'")

    def _call_tool(self, params: dict, request_id: Any) -> dict[str, Any]:
        tool_name = params.get("name", "")
        arguments = params.get("arguments") or {}

        handler = self._handlers.get(tool_name)
        if not handler:
            raise JsonRpcError(
                INVALID_PARAMS,
                f"Unknown tool: '{tool_name}'. Available: {list(self._handlers.keys())}",
            )
        if not isinstance(arguments, dict):
            raise JsonRpcError(INVALID_PARAMS, f"Arguments for tool '{tool_name}' must be an object")

        with self._inflight_lock:
            cancel = self._inflight.get(request_id)

        self.hooks.fire_before_call_tool(tool_name, arguments)
        result = handler.handle(arguments, cancel=cancel).to_mcp()
        self.hooks.fire_after_call_tool(tool_name, result)
        return result

    def _serve(self, request: Any, stdout: IO[str]) -> None:
        try:
            response = self.handle_message(request)
        finally:
            if isinstance(request, dict):
                with self._inflight_lock:
                    self._inflight.pop(request.get("id"), None)
        if response is not None:
            self._write(stdout, response)

    def _track(self, request_id: Any) -> None:
        with self._inflight_lock:
            self._inflight[request_id] = threading.Event()

    def _cancel(self, request_id: Any) -> None:
        with self._inflight_lock:
            event = self._inflight.get(request_id)
        if event is not None:
            logger.info(f"Cancelling request {request_id}")
            event.set()

    def _write(self, stdout: IO[str], response: JsonRpcResponse) -> None:
        """Write one JSON-RPC message; worker threads share stdout."""
        with self._write_lock:
            stdout.write(response.to_json() + "\n")
            stdout.flush()


class RemoteToolsetServer:
    """
    The bridge process: remote manifest → registry → stdio server.

    Construction is synchronous and all-or-nothing. If the manifest cannot
    be fetched or a tool cannot be registered, the error propagates and no
    server exists.
    """

    def __init__(
        self,
        endpoint: str,
        registry: ToolRegistry,
        invoker: ToolInvoker,
        hooks: ServerHooks | None = None,
        max_workers: int = 8,
    ):
        self.endpoint = endpoint
        self.registry = registry
        self.invoker = invoker
        self.server = StdioToolServer(hooks=hooks, max_workers=max_workers)

        for tool in registry.snapshot().values():
            self.server.register(RemoteToolHandler(tool, invoker))

    @classmethod
    def create(
        cls,
        endpoint: str,
        api_key: str,
        hooks: ServerHooks | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> "RemoteToolsetServer":
        """Fetch the manifest and build a ready-to-run server."""
        if not endpoint or not api_key:
            raise ConfigError("Both endpoint URL and API key are required")

        transport = HttpTransport(api_key, timeout=timeout, session=session)
        manifest = ManifestFetcher(endpoint, transport).fetch()
        registry = ToolRegistry.from_manifest(manifest)
        return cls(endpoint, registry, ToolInvoker(transport), hooks=hooks)

    def start(self, stdin: IO[str] | None = None, stdout: IO[str] | None = None) -> None:
        """Log the available tools and serve until stdin closes."""
        logger.info("Starting MCP toolset server...")
        logger.info(f"Endpoint: {self.endpoint}")
        logger.info(f"Available tools: {len(self.registry)}")
        for tool in self.registry:
            logger.info(f"  - {tool.name}: {tool.description}")

        try:
            self.server.run(stdin, stdout)
        finally:
            self.invoker.transport.close()


def _error(code: int, message: str) -> dict[str, Any]:
    return {"code": code, "message": message}


def _valid_id(request_id: Any) -> bool:
    return request_id is None or (isinstance(request_id, (str, int, float)) and not isinstance(request_id, bool))


def _negotiate_version(requested: Any) -> str:
    if requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return PROTOCOL_VERSION
