"""
Tool invocation client.

Turns (tool, JSON arguments) into the HTTP request the remote endpoint
expects and unwraps the envelope from the response:

    allow_upload_files = False  →  POST invoke_endpoints.json
                                   Content-Type: application/json
                                   body: arguments, verbatim

    allow_upload_files = True   →  POST invoke_endpoints.form
                                   multipart/form-data
                                     json = arguments
                                     file = <each _uploaded_file_paths entry>

A body that is not an envelope is returned as-is. Only a non-200 status or
``isSuccess: false`` is an error.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from contextlib import ExitStack
from typing import Any, Iterator

from requests_toolbelt import MultipartEncoder
from urllib3.fields import RequestField

from mcp_toolset.errors import (
    CancelledError,
    ConfigError,
    DecodeError,
    FileAccessError,
    RemoteError,
    ToolsetError,
)
from mcp_toolset.mime import detect_mime
from mcp_toolset.models import (
    FORM_FIELD_FILE,
    FORM_FIELD_JSON,
    UPLOADED_FILE_PATHS_FIELD,
    Envelope,
    InvocationResult,
    ToolDescriptor,
)
from mcp_toolset.transport import Transport

logger = logging.getLogger(__name__)


class FormEncoder(MultipartEncoder):
    """
    Streaming multipart encoder with backslash-escaped header parameters.

    ``fields`` is a list of ``(name, (filename, data[, content_type]))``.
    Parameters are quoted as ``\\`` → ``\\\\`` and ``"`` → ``\\"`` rather
    than urllib3's percent-encoding.
    """

    def _iter_fields(self) -> Iterator[RequestField]:
        for name, (filename, data, *rest) in self.fields:
            field = RequestField(name=name, data=data, filename=filename)
            field.make_multipart(content_type=rest[0] if rest else None)
            disposition = f'form-data; name="{quote_param(name)}"'
            if filename is not None:
                disposition += f'; filename="{quote_param(filename)}"'
            field.headers["Content-Disposition"] = disposition
            yield field


def quote_param(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class ToolInvoker:
    """Executes remote tool calls over a shared transport."""

    def __init__(self, transport: Transport):
        self.transport = transport

    def invoke(
        self,
        tool: ToolDescriptor,
        arguments: bytes | str,
        cancel: threading.Event | None = None,
    ) -> bytes:
        """
        Call a remote tool and return its JSON result as bytes.

        Args:
            tool: The descriptor to invoke
            arguments: Raw JSON arguments text
            cancel: Optional event; if set before the request goes out the
                call is abandoned

        Raises:
            ConfigError: the tool has no endpoint for its encoding mode
            FileAccessError: an upload path cannot be opened (nothing is sent)
            DecodeError: upload arguments are not valid JSON
            TransportError: connection failure or non-200 status
            RemoteError: the envelope reports failure
            CancelledError: ``cancel`` was set
        """
        if isinstance(arguments, str):
            arguments = arguments.encode("utf-8")

        endpoint = tool.endpoint
        if not endpoint:
            raise ConfigError(f"tool {tool.name} has no invoke endpoint")

        if tool.allow_upload_files:
            with ExitStack() as stack:
                fields = self._build_form(arguments, stack)
                encoder = FormEncoder(fields)
                self._check_cancelled(tool, cancel)
                logger.debug(f"POST {endpoint} (multipart, {len(fields) - 1} files, {encoder.len} bytes)")
                body = self.transport.post(endpoint, data=encoder, content_type=encoder.content_type)
        else:
            self._check_cancelled(tool, cancel)
            body = self.transport.post(endpoint, data=arguments, content_type="application/json")

        return self._unwrap(body)

    def execute(
        self,
        tool: ToolDescriptor,
        arguments: bytes | str,
        cancel: threading.Event | None = None,
    ) -> InvocationResult:
        """Like invoke(), but reports failures in the result instead of raising."""
        try:
            return InvocationResult(payload=self.invoke(tool, arguments, cancel))
        except ToolsetError as e:
            return InvocationResult.from_error(e)

    def _build_form(self, arguments: bytes, stack: ExitStack) -> list[tuple[str, tuple]]:
        """
        Build multipart parts, opening every upload file up front.

        The JSON field always comes first. Files stay open until ``stack``
        closes; the encoder streams them while the request is sent.
        """
        paths = _uploaded_file_paths(arguments)
        parts: list[tuple[str, tuple]] = [
            (FORM_FIELD_JSON, (None, arguments)),
        ]

        for path in paths:
            try:
                handle = stack.enter_context(open(path, "rb"))
            except OSError as e:
                raise FileAccessError(path, e) from e
            mime = detect_mime(path)
            parts.append((FORM_FIELD_FILE, (os.path.basename(path), handle, mime)))

        return parts

    @staticmethod
    def _check_cancelled(tool: ToolDescriptor, cancel: threading.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            raise CancelledError(f"call to tool {tool.name} was cancelled")

    @staticmethod
    def _unwrap(body: bytes) -> bytes:
        envelope = Envelope.parse(body)
        if envelope is None:
            return body

        if not envelope.is_success:
            raise RemoteError(envelope.error_message, envelope.error_code)

        if envelope.has_data:
            return envelope.data_json()
        return body


def _uploaded_file_paths(arguments: bytes) -> list[str]:
    try:
        parsed: Any = json.loads(arguments)
    except ValueError as e:
        raise DecodeError(f"failed to parse {UPLOADED_FILE_PATHS_FIELD}: {e}") from e

    if not isinstance(parsed, dict):
        return []
    paths = parsed.get(UPLOADED_FILE_PATHS_FIELD)
    if not isinstance(paths, list):
        return []
    return [p if isinstance(p, str) else str(p) for p in paths]
