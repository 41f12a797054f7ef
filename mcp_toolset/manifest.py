"""
Manifest fetcher: one authenticated GET at startup.

Usage:
    fetcher = ManifestFetcher(endpoint, HttpTransport(api_key))
    manifest = fetcher.fetch()
"""

from __future__ import annotations

import json
import logging

from mcp_toolset.errors import ConfigError, DecodeError, RemoteError
from mcp_toolset.models import ToolsetManifest
from mcp_toolset.transport import DEFAULT_TIMEOUT, HttpTransport, Transport

logger = logging.getLogger(__name__)


class ManifestFetcher:
    """Fetches and validates the toolset manifest."""

    def __init__(self, endpoint: str, transport: Transport):
        if not endpoint:
            raise ConfigError("manifest endpoint is required")
        self.endpoint = endpoint
        self.transport = transport

    def fetch(self) -> ToolsetManifest:
        """
        Fetch the manifest.

        Raises:
            TransportError: connection failure or non-200 status
            DecodeError: body is not the expected envelope, or a tool record
                is malformed
            RemoteError: the envelope reports failure
            ConfigError: a tool has no endpoint for its encoding mode
        """
        body = self.transport.get(self.endpoint)

        try:
            envelope = json.loads(body)
        except ValueError as e:
            raise DecodeError(f"failed to unmarshal response: {e}") from e
        if not isinstance(envelope, dict):
            raise DecodeError("failed to unmarshal response: not a JSON object")
        if not isinstance(envelope.get("isSuccess", False), bool):
            raise DecodeError("failed to unmarshal response: isSuccess is not a boolean")

        if not envelope.get("isSuccess"):
            raise RemoteError(
                envelope.get("error") or "unknown error",
                envelope.get("errorCode"),
            )

        manifest = ToolsetManifest.from_data(envelope.get("data"))

        for tool in manifest.tools:
            if not tool.endpoint:
                raise ConfigError(f"tool {tool.name} has no invoke endpoint")

        logger.info(
            f"Fetched toolset {manifest.namespace}/{manifest.name} "
            f"(generation {manifest.generation}): {len(manifest.tools)} tools"
        )
        return manifest


def fetch_manifest(endpoint: str, api_key: str, timeout: float = DEFAULT_TIMEOUT) -> ToolsetManifest:
    """One-shot helper: fetch with a throwaway transport."""
    transport = HttpTransport(api_key, timeout=timeout)
    try:
        return ManifestFetcher(endpoint, transport).fetch()
    finally:
        transport.close()
