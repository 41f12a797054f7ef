"""
Observer hooks around protocol events.

Hooks are best-effort: an exception raised by a hook is logged and
swallowed, so nothing in the server depends on them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

BeforeAnyHook = Callable[[str, Any], None]
OnSuccessHook = Callable[[str, Any], None]
OnErrorHook = Callable[[str, Exception], None]
BeforeCallToolHook = Callable[[str, dict], None]
AfterCallToolHook = Callable[[str, dict], None]


@dataclass
class ServerHooks:
    """Callback lists invoked by StdioToolServer."""
    before_any: list[BeforeAnyHook] = field(default_factory=list)
    on_success: list[OnSuccessHook] = field(default_factory=list)
    on_error: list[OnErrorHook] = field(default_factory=list)
    before_call_tool: list[BeforeCallToolHook] = field(default_factory=list)
    after_call_tool: list[AfterCallToolHook] = field(default_factory=list)

    def fire_before_any(self, method: str, params: Any) -> None:
        self._fire(self.before_any, method, params)

    def fire_on_success(self, method: str, result: Any) -> None:
        self._fire(self.on_success, method, result)

    def fire_on_error(self, method: str, error: Exception) -> None:
        self._fire(self.on_error, method, error)

    def fire_before_call_tool(self, name: str, arguments: dict) -> None:
        self._fire(self.before_call_tool, name, arguments)

    def fire_after_call_tool(self, name: str, result: dict) -> None:
        self._fire(self.after_call_tool, name, result)

    @staticmethod
    def _fire(callbacks: list[Callable[..., None]], *args: Any) -> None:
        for callback in callbacks:
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Hook {getattr(callback, '__name__', callback)!r} failed")


def logging_hooks(log: logging.Logger | None = None) -> ServerHooks:
    """Hooks that log every request, response and tool call."""
    log = log or logging.getLogger("mcp_toolset.rpc")
    hooks = ServerHooks()

    def log_request(method: str, params: Any) -> None:
        log.info(f"[RPC] Received method: {method}")

    def log_success(method: str, result: Any) -> None:
        try:
            rendered = json.dumps(result, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            log.info(f"[RPC] Response for method {method} (failed to marshal)")
            return
        log.debug(f"[RPC] Response for method {method}: {rendered}")

    def log_error(method: str, error: Exception) -> None:
        log.error(f"[RPC] Error for method {method}: {error}")

    def log_tool_call(name: str, arguments: dict) -> None:
        try:
            rendered = json.dumps(arguments, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            log.info(f"[RPC-TOOL] Call to tool '{name}' with arguments (failed to marshal)")
            return
        log.info(f"[RPC-TOOL] Call to tool '{name}' with arguments: {rendered}")

    def log_tool_result(name: str, result: dict) -> None:
        content = result.get("content") or []
        if result.get("isError"):
            log.info(f"[RPC-TOOL] Tool '{name}' response (error)")
        elif content and content[0].get("type") == "text":
            log.info(f"[RPC-TOOL] Tool '{name}' response (text): {content[0].get('text', '')}")
        elif content:
            log.info(f"[RPC-TOOL] Tool '{name}' response ({content[0].get('type', 'unknown content type')})")
        else:
            log.info(f"[RPC-TOOL] Tool '{name}' response (empty)")

    hooks.before_any.append(log_request)
    hooks.on_success.append(log_success)
    hooks.on_error.append(log_error)
    hooks.before_call_tool.append(log_tool_call)
    hooks.after_call_tool.append(log_tool_result)
    return hooks
