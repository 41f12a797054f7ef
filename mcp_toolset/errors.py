"""
Error taxonomy for the toolset bridge.

Startup code lets these propagate (the process exits). Call-time code
converts them into an ``isError`` tool result for the client.
"""

from __future__ import annotations

from typing import Any


class ToolsetError(Exception):
    """Base exception for everything the bridge raises on purpose."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(ToolsetError):
    """Missing endpoint, API key or invocation target."""
    pass


class TransportError(ToolsetError):
    """Connection failure or a non-200 response."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message, {"status": status, "body": body})

    @classmethod
    def from_status(cls, status: int, body: str) -> "TransportError":
        return cls(f"unexpected status code: {status}, body: {body}", status, body)


class DecodeError(ToolsetError):
    """A payload did not have the expected JSON shape."""
    pass


class RemoteError(ToolsetError):
    """The remote envelope reported ``isSuccess: false``."""

    def __init__(self, message: str, error_code: str | None = None):
        self.error_code = error_code
        super().__init__(f"API error: {message}", {"error_code": error_code})


class FileAccessError(ToolsetError):
    """A local file referenced for upload could not be opened or read."""

    def __init__(self, path: str, cause: Exception | None = None):
        self.path = path
        self.cause = cause
        message = f"failed to open file {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, {"path": path})


class CancelledError(ToolsetError):
    """The caller cancelled the invocation before the request went out."""
    pass
