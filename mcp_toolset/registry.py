"""
Tool Registry — the in-memory set of remote tool descriptors.

The registry holds one immutable snapshot (name → ToolDescriptor). Loading a
manifest builds a new snapshot and swaps the reference in a single
assignment, so readers never lock and never see a half-built mapping. A
caller that grabbed ``snapshot()`` keeps the descriptors it was dispatched
with even if a newer snapshot is swapped in later.

Usage:
    registry = ToolRegistry.from_manifest(manifest)
    tool = registry.get("summarize")
    schema = augment_schema(tool)
"""

from __future__ import annotations

import copy
import logging
import threading
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from mcp_toolset.models import (
    UPLOADED_FILE_PATHS_FIELD,
    UPLOADED_FILE_PATHS_SCHEMA,
    ToolDescriptor,
    ToolsetManifest,
)

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Copy-on-write registry of tool descriptors keyed by name."""

    def __init__(self):
        self._snapshot: Mapping[str, ToolDescriptor] = MappingProxyType({})
        self._manifest: ToolsetManifest | None = None
        # Serialises writers only; readers go straight to self._snapshot
        self._write_lock = threading.Lock()

    @classmethod
    def from_manifest(cls, manifest: ToolsetManifest) -> "ToolRegistry":
        registry = cls()
        registry.load(manifest)
        return registry

    def load(self, manifest: ToolsetManifest) -> None:
        """Replace the snapshot with the tools of ``manifest``."""
        tools: dict[str, ToolDescriptor] = {}
        for tool in manifest.tools:
            if tool.name in tools:
                logger.warning(f"Duplicate tool name in manifest: {tool.name} (last one wins)")
            tools[tool.name] = tool

        with self._write_lock:
            self._snapshot = MappingProxyType(tools)
            self._manifest = manifest

        logger.info(f"Registry loaded {len(tools)} tools: {list(tools)}")

    @property
    def manifest(self) -> ToolsetManifest | None:
        return self._manifest

    def snapshot(self) -> Mapping[str, ToolDescriptor]:
        """The current read-only name → descriptor mapping."""
        return self._snapshot

    def get(self, name: str) -> ToolDescriptor | None:
        return self._snapshot.get(name)

    def list_tools(self) -> list[ToolDescriptor]:
        return list(self._snapshot.values())

    def list_tool_names(self) -> list[str]:
        return list(self._snapshot.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._snapshot

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(list(self._snapshot.values()))

    def __len__(self) -> int:
        return len(self._snapshot)


def augment_schema(tool: ToolDescriptor) -> dict[str, Any]:
    """
    Return the schema to advertise for ``tool``.

    The declared schema is deep-copied, never mutated. Missing ``type``
    defaults to ``"object"``. Upload-capable tools also get the hidden
    file-paths property so callers know how to attach files.
    """
    schema: dict[str, Any] = copy.deepcopy(tool.input_schema) if tool.input_schema else {}

    schema.setdefault("type", "object")

    if tool.allow_upload_files:
        properties = schema.get("properties")
        if properties is None:
            properties = schema["properties"] = {}
        if isinstance(properties, dict):
            properties[UPLOADED_FILE_PATHS_FIELD] = copy.deepcopy(UPLOADED_FILE_PATHS_SCHEMA)

    return schema
