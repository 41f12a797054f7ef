"""
MCP Toolset — stdio MCP server for a remote HTTP toolset.

Architecture:
    ┌───────────┐   stdio    ┌──────────────┐   HTTP    ┌────────────────┐
    │ AI client │ ───────── │ mcp-toolset   │ ──────── │ Remote toolset │
    │  (MCP)    │  JSON-RPC  │ (this process)│  JSON /   │ API            │
    └───────────┘   pipes    └──────────────┘  multipart └────────────────┘

At startup the ManifestFetcher pulls the toolset manifest once and the
ToolRegistry snapshots its tool descriptors. The StdioToolServer exposes
one RemoteToolHandler per tool; each call goes through the ToolInvoker,
which encodes the arguments (JSON or multipart with files) and unwraps the
remote response envelope.
"""

__version__ = "0.1.0"

from mcp_toolset.errors import (
    CancelledError,
    ConfigError,
    DecodeError,
    FileAccessError,
    RemoteError,
    ToolsetError,
    TransportError,
)
from mcp_toolset.models import InvocationResult, InvokeEndpoints, ToolDescriptor, ToolsetManifest
from mcp_toolset.manifest import ManifestFetcher, fetch_manifest
from mcp_toolset.mime import detect_mime
from mcp_toolset.invoker import ToolInvoker
from mcp_toolset.registry import ToolRegistry, augment_schema
from mcp_toolset.server import RemoteToolHandler, RemoteToolsetServer, StdioToolServer, ToolHandler


# Bridge requires langchain — lazy import to keep the server standalone
def remote_to_langchain_tool(*args, **kwargs):
    from mcp_toolset.bridge import remote_to_langchain_tool as _impl
    return _impl(*args, **kwargs)


def langchain_tools(*args, **kwargs):
    from mcp_toolset.bridge import langchain_tools as _impl
    return _impl(*args, **kwargs)


__all__ = [
    "CancelledError",
    "ConfigError",
    "DecodeError",
    "FileAccessError",
    "RemoteError",
    "ToolsetError",
    "TransportError",
    "InvocationResult",
    "InvokeEndpoints",
    "ToolDescriptor",
    "ToolsetManifest",
    "ManifestFetcher",
    "fetch_manifest",
    "detect_mime",
    "ToolInvoker",
    "ToolRegistry",
    "augment_schema",
    "RemoteToolHandler",
    "RemoteToolsetServer",
    "StdioToolServer",
    "ToolHandler",
    "remote_to_langchain_tool",
    "langchain_tools",
]
