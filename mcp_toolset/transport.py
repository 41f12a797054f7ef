"""
Transport layer for talking to the remote toolset API.

Currently implements:
  - HttpTransport: authenticated HTTP over a requests Session

Every request carries the static API key header and a bounded timeout.
Any status other than 200 is a TransportError, whatever the body says.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import requests

from mcp_toolset.errors import ConfigError, TransportError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-KEY"
DEFAULT_TIMEOUT = 30.0


class Transport(ABC):
    """Abstract transport for the remote toolset API."""

    @abstractmethod
    def get(self, url: str) -> bytes:
        """GET a URL and return the response body."""
        ...

    @abstractmethod
    def post(self, url: str, data: Any, content_type: str) -> bytes:
        """POST a body (bytes or a readable stream) and return the response body."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release pooled connections."""
        ...


class HttpTransport(Transport):
    """
    HTTP transport backed by a requests Session.

    The session is safe to share between the worker threads serving
    concurrent tool calls; nothing else here is mutable after __init__.
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        if not api_key:
            raise ConfigError("API key is required")
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def get(self, url: str) -> bytes:
        return self._request(
            "GET",
            url,
            headers={"accept": "application/json"},
        )

    def post(self, url: str, data: Any, content_type: str) -> bytes:
        # Readable bodies (multipart encoders) are streamed by requests
        headers = {"Accept": "application/json", "Content-Type": content_type}
        return self._request("POST", url, headers=headers, data=data)

    def close(self) -> None:
        self._session.close()

    def _request(self, method: str, url: str, headers: dict[str, str], **kwargs: Any) -> bytes:
        headers[API_KEY_HEADER] = self.api_key
        logger.debug(f"{method} {url}")

        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise TransportError(f"failed to execute request: {e}") from e

        body = response.content
        if response.status_code != 200:
            raise TransportError.from_status(
                response.status_code,
                body.decode("utf-8", errors="replace"),
            )

        return body
