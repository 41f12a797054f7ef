"""
Bridge between the remote toolset and LangChain.

Wraps the same RemoteToolHandlers the stdio server uses as LangChain
StructuredTools, so an in-process agent can call the remote tools
without going through MCP.

Usage:
    from mcp_toolset.bridge import langchain_tools

    tools = langchain_tools(registry, invoker)
    agent = create_react_agent(model, tools)
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.tools import StructuredTool

from mcp_toolset.invoker import ToolInvoker
from mcp_toolset.registry import ToolRegistry
from mcp_toolset.server import RemoteToolHandler

logger = logging.getLogger(__name__)


def remote_to_langchain_tool(
    handler: RemoteToolHandler,
    description_override: str | None = None,
) -> StructuredTool:
    """
    Create a LangChain StructuredTool that proxies to a remote tool.

    The tool's args schema is the augmented JSON schema, so upload-capable
    tools advertise ``_uploaded_file_paths`` here too.

    Args:
        handler: The handler bound to the remote tool
        description_override: Optional override for the tool description

    Returns:
        A StructuredTool whose result is the handler's text rendering.
    """
    name = handler.name

    def _call_remote(**kwargs: Any) -> str:
        """Proxy call to the remote tool."""
        result = handler.handle(kwargs)
        if result.is_error:
            return f"Error calling {name}: {result.text}"
        return result.text

    return StructuredTool(
        name=name,
        description=description_override or handler.description or f"Remote tool: {name}",
        args_schema=handler.input_schema(),
        func=_call_remote,
    )


def langchain_tools(registry: ToolRegistry, invoker: ToolInvoker) -> list[StructuredTool]:
    """One StructuredTool per tool in the registry's current snapshot."""
    tools = [
        remote_to_langchain_tool(RemoteToolHandler(tool, invoker))
        for tool in registry.snapshot().values()
    ]
    logger.info(f"Bridged {len(tools)} remote tools to LangChain")
    return tools
