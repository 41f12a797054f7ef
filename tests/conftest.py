"""
Shared fixtures: a real requests Session with a stub adapter mounted, so
request bodies (including multipart) are encoded exactly as in production.
"""

from __future__ import annotations

import json
import threading
from typing import Any

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from mcp_toolset.invoker import ToolInvoker
from mcp_toolset.models import InvokeEndpoints, ToolDescriptor
from mcp_toolset.transport import HttpTransport

API_KEY = "secret-key"
BASE_URL = "http://toolset.test"
MANIFEST_URL = f"{BASE_URL}/manifest"


class StubAdapter(BaseAdapter):
    """Answers requests from a route table and records what was sent."""

    def __init__(self):
        super().__init__()
        self.routes: dict[tuple[str, str], tuple[int, bytes]] = {}
        self.sent: list[requests.PreparedRequest] = []
        self.streamed: list[bool] = []
        self.barrier: threading.Barrier | None = None

    def add(self, method: str, url: str, status: int = 200, body: Any = b"") -> None:
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[(method, url)] = (status, body)

    def send(self, request, **kwargs):
        streamed = hasattr(request.body, "read")
        if streamed:
            request.body = request.body.read()
        self.streamed.append(streamed)
        self.sent.append(request)
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        route = self.routes.get((request.method, request.url))
        if route is None:
            raise requests.ConnectionError(f"no route to {request.method} {request.url}")

        status, body = route
        response = requests.Response()
        response.status_code = status
        response._content = body
        response.headers = CaseInsensitiveDict({"Content-Type": "application/json"})
        response.url = request.url
        response.request = request
        response.encoding = "utf-8"
        return response

    def close(self):
        pass


def envelope(data: Any = None, success: bool = True, error: str | None = None) -> dict:
    body: dict[str, Any] = {"isSuccess": success}
    if data is not None:
        body["data"] = data
    if error is not None:
        body["error"] = error
    return body


def make_tool(name: str = "echo", upload: bool = False, schema: dict | None = None) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        description=f"{name} tool",
        input_schema=schema,
        allow_upload_files=upload,
        invoke_endpoints=InvokeEndpoints(
            json=f"{BASE_URL}/tools/{name}/json",
            form=f"{BASE_URL}/tools/{name}/form",
        ),
    )


@pytest.fixture
def stub() -> StubAdapter:
    return StubAdapter()


@pytest.fixture
def session(stub) -> requests.Session:
    s = requests.Session()
    s.mount("http://", stub)
    return s


@pytest.fixture
def transport(session) -> HttpTransport:
    return HttpTransport(API_KEY, session=session)


@pytest.fixture
def invoker(transport) -> ToolInvoker:
    return ToolInvoker(transport)
