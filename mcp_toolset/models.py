"""
Data shapes shared by the fetcher, the invoker and the registry.

The remote service wraps every response in an envelope:

    {"isSuccess": true, "data": {...}, "error": null, "errorCode": null}

Tool input schemas are kept as plain dicts; the bridge only ever looks at
``type`` and ``properties``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from mcp_toolset.errors import DecodeError

# Hidden argument carrying local paths for multipart uploads
UPLOADED_FILE_PATHS_FIELD = "_uploaded_file_paths"

# Multipart field names expected by the form endpoints
FORM_FIELD_JSON = "json"
FORM_FIELD_FILE = "file"

UPLOADED_FILE_PATHS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "description": "List of file paths to be uploaded",
    "items": {
        "type": "string",
        "description": "Path to the uploaded file",
    },
}


@dataclass(frozen=True)
class InvokeEndpoints:
    """JSON-mode and form-mode invocation URLs."""
    json: str = ""
    form: str = ""


@dataclass(frozen=True)
class ToolDescriptor:
    """One remote tool, immutable once fetched."""
    name: str
    description: str = ""
    input_schema: dict[str, Any] | None = None
    allow_upload_files: bool = False
    invoke_endpoints: InvokeEndpoints = field(default_factory=InvokeEndpoints)

    @property
    def endpoint(self) -> str:
        """The URL matching this tool's encoding mode."""
        if self.allow_upload_files:
            return self.invoke_endpoints.form
        return self.invoke_endpoints.json

    @classmethod
    def from_record(cls, record: Any) -> "ToolDescriptor":
        """
        Build a descriptor from one raw manifest tool record.

        Accepts both manifest generations: ``invoke_endpoints: {json, form}``
        with ``allow_upload_files``, and a single ``invoke_endpoint`` URL with
        no upload flag. A blank member of the pair falls back to the single URL.
        """
        if not isinstance(record, dict):
            raise DecodeError(f"tool record is not an object: {record!r}")

        name = record.get("name")
        if not isinstance(name, str) or not name:
            raise DecodeError(f"tool record has no name: {record!r}")

        schema = record.get("input_schema")
        if schema is not None and not isinstance(schema, dict):
            raise DecodeError(f"input schema for tool {name} is not an object")

        single = record.get("invoke_endpoint") or ""
        pair = record.get("invoke_endpoints") or {}
        if not isinstance(single, str) or not isinstance(pair, dict):
            raise DecodeError(f"invoke endpoints for tool {name} are malformed")

        return cls(
            name=name,
            description=record.get("description") or "",
            input_schema=schema,
            allow_upload_files=bool(record.get("allow_upload_files", False)),
            invoke_endpoints=InvokeEndpoints(
                json=pair.get("json") or single,
                form=pair.get("form") or single,
            ),
        )


@dataclass(frozen=True)
class ToolsetManifest:
    """The startup-time description of everything the remote service exposes."""
    namespace: str = ""
    name: str = ""
    generation: int = 0
    tools: tuple[ToolDescriptor, ...] = ()

    @classmethod
    def from_data(cls, data: Any) -> "ToolsetManifest":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise DecodeError("manifest data is not an object")

        records = data.get("tools") or []
        if not isinstance(records, list):
            raise DecodeError("manifest tools is not a list")

        try:
            generation = int(data.get("generation") or 0)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"manifest generation is not a number: {e}") from e

        return cls(
            namespace=data.get("namespace") or "",
            name=data.get("name") or "",
            generation=generation,
            tools=tuple(ToolDescriptor.from_record(r) for r in records),
        )


@dataclass
class Envelope:
    """The remote service's success/data/error wrapper."""
    is_success: bool
    data: Any = None
    has_data: bool = False
    error: str | None = None
    error_code: str | None = None

    @property
    def error_message(self) -> str:
        return self.error or "unknown error"

    def data_json(self) -> bytes:
        return json.dumps(self.data, ensure_ascii=False).encode("utf-8")

    @classmethod
    def parse(cls, body: bytes | str) -> "Envelope | None":
        """
        Parse an enveloped body.

        Returns None when the body is not JSON, not an object, or carries no
        boolean ``isSuccess``.
        """
        try:
            parsed = json.loads(body)
        except (TypeError, ValueError):
            return None

        if not isinstance(parsed, dict) or not isinstance(parsed.get("isSuccess"), bool):
            return None

        error = parsed.get("error")
        error_code = parsed.get("errorCode")
        return cls(
            is_success=parsed["isSuccess"],
            data=parsed.get("data"),
            has_data=parsed.get("data") is not None,
            error=error if isinstance(error, str) else None,
            error_code=error_code if isinstance(error_code, str) else None,
        )


@dataclass
class InvocationResult:
    """Outcome of one remote invocation: raw JSON payload or an error message."""
    payload: bytes | None = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def from_error(cls, error: Exception) -> "InvocationResult":
        return cls(error=str(error))
