"""Shared fixtures: an in-process fake backend and a controllable clock."""

import inspect
import json
from typing import Any, Callable, Optional

import httpx
import pytest

from clau_insights.client import AsyncInsightsClient
from clau_insights.store import MemoryStore

BASE_URL = "http://clau.test"
USER_ID = "u1"
TOKEN = "tok-123"


def sse(*frames: dict[str, Any]) -> bytes:
    return b"".join(f"data: {json.dumps(f)}\n\n".encode() for f in frames)


def ok(data: Any, status_code: int = 200, headers: Optional[dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(status_code, json={"success": True, "data": data}, headers=headers)


def fail(status_code: int, message: str = "nope") -> httpx.Response:
    return httpx.Response(status_code, json={"success": False, "message": message})


def event_stream(body: Any) -> httpx.Response:
    return httpx.Response(200, headers={"Content-Type": "text/event-stream"}, content=body)


class FakeBackend:
    """Routes requests by (method, path) to handlers; records every call."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], Any]] = {}

    def route(self, method: str, path: str, handler: Callable[[httpx.Request], Any]) -> None:
        self._routes[(method, f"/api{path}")] = handler

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.calls if r.method == method and r.url.path == f"/api{path}")

    def requests(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.calls if r.method == method and r.url.path == f"/api{path}"]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self._routes.get((request.method, request.url.path))
        if handler is None:
            return fail(404, "Not found")
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def body_of(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content) if request.content else {}


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_client(backend: FakeBackend, store: MemoryStore, clock: FakeClock):
    def _make(**kwargs: Any) -> AsyncInsightsClient:
        kwargs.setdefault("store", store)
        kwargs.setdefault("clock", clock)
        return AsyncInsightsClient(
            access_token=TOKEN,
            user_id=USER_ID,
            base_url=BASE_URL,
            transport=backend.transport,
            **kwargs,
        )
    return _make
