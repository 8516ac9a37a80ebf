from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import fitz
import httpx
import pytest

from wesign_mcp.client import SessionTokens, WeSignClient
from wesign_mcp.config import Settings
from wesign_mcp.tools import WeSignGateway, build_gateway

API_URL = "https://wesign.test"
API_PREFIX = "/userapi/v3"

Reply = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


class FakeWeSign:
    """Scripted stand-in for the upstream API, mounted through httpx.MockTransport.

    Routes are keyed by (method, path) with the ``/userapi/v3`` prefix removed.
    A route may hold one reply or a list that is consumed in order (the last
    entry repeats). Unrouted requests get a 404.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, *replies: Reply) -> "FakeWeSign":
        self.routes[(method.upper(), path)] = list(replies)
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and self._path(r) == path]

    def body(self, method: str, path: str, index: int = -1) -> Any:
        return json.loads(self.calls(method, path)[index].content)

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        return path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self.routes.get((request.method, self._path(request)))
        if not replies:
            return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})

        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if callable(reply):
            return reply(request)
        status, payload = reply
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)


@pytest.fixture
def upstream() -> FakeWeSign:
    return FakeWeSign()


@pytest.fixture
def settings() -> Settings:
    return Settings(WESIGN_API_URL=API_URL, MCP_TRANSPORT="http")


@pytest.fixture
def client(upstream: FakeWeSign) -> WeSignClient:
    return WeSignClient(API_URL, transport=httpx.MockTransport(upstream))


@pytest.fixture
def gateway(upstream: FakeWeSign, settings: Settings) -> WeSignGateway:
    return build_gateway(settings, transport=httpx.MockTransport(upstream))


@pytest.fixture
def authed_gateway(gateway: WeSignGateway) -> WeSignGateway:
    gateway.client.set_tokens(SessionTokens(access_token="access-1", refresh_token="refresh-1", auth_token="auth-1"))
    return gateway


@pytest.fixture
def make_pdf(tmp_path):
    def _make(name: str = "contract.pdf", pages: int = 1, text: Optional[str] = None) -> str:
        path = tmp_path / name
        doc = fitz.open()
        for i in range(pages):
            page = doc.new_page(width=612, height=792)
            page.insert_text((72, 72), text or f"Page {i + 1}")
        doc.save(str(path))
        doc.close()
        return str(path)

    return _make
