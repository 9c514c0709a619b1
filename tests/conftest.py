"""Test configuration for splashkit tests."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from splashkit.auth.flow import CredentialFlow
from splashkit.auth.scope import AuthScope
from splashkit.auth.types import AuthToken

FIXTURES = Path(__file__).parent / "fixtures"
OAUTH_BASE = "https://unsplash.test/oauth"

TOKEN_JSON = {
    "access_token": "09134xxx",
    "refresh_token": "refresh123",
    "token_type": "bearer",
    "scope": "public read_photos write_photos",
    "created_at": 1436544465,
}

ResponseFactory = Callable[[], httpx.Response]


def load_page(name: str) -> str:
    return (FIXTURES / name).read_text()


def code_page(code: str) -> str:
    return f"<!DOCTYPE html><html><head><title>Code</title></head><body><code>{code}</code></body></html>"


def html_response(body: str, status: int = 200) -> ResponseFactory:
    return lambda: httpx.Response(status, text=body, headers={"Content-Type": "text/html"})


def json_response(data: Any, status: int = 200) -> ResponseFactory:
    return lambda: httpx.Response(status, json=data)


def form_data(request: httpx.Request) -> dict[str, list[str]]:
    return parse_qs(request.content.decode(), keep_blank_values=True)


class ImmediateExecutor(Executor):
    """Runs submitted work inline so flows complete before authorize() returns."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        return future


class FakeProvider:
    """Scripted OAuth provider served through httpx.MockTransport.

    Each route answers with its queued responses in order and keeps repeating
    the last one.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[ResponseFactory]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *responses: ResponseFactory) -> FakeProvider:
        self.routes.setdefault((method, f"/oauth{path}"), []).extend(responses)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, text="Not Found")
        factory = queue.pop(0) if len(queue) > 1 else queue[0]
        return factory()

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == f"/oauth{path}"]

    def flow(self) -> CredentialFlow:
        client = httpx.Client(transport=httpx.MockTransport(self.handle))
        return CredentialFlow(client, oauth_base_url=OAUTH_BASE)


class MemoryStorage:
    """Token storage keeping the token in memory."""

    def __init__(self, token: Optional[AuthToken] = None) -> None:
        self.token = token
        self.saved: list[AuthToken] = []
        self.cleared = 0

    def save(self, token: AuthToken) -> None:
        self.token = token
        self.saved.append(token)

    def load(self) -> Optional[AuthToken]:
        return self.token

    def clear(self) -> None:
        self.token = None
        self.cleared += 1


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def auth_token() -> AuthToken:
    return AuthToken("token123", "bearer", "refresh123", AuthScope.PUBLIC + AuthScope.READ_USER, 1436544465)


@pytest.fixture
def executor() -> ImmediateExecutor:
    return ImmediateExecutor()
