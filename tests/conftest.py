"""Shared fixtures: a fake clock and a scripted backend behind httpx.MockTransport."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Union

import httpx
import pytest

from ocr_client.clients.document_api import DocumentApiClient
from ocr_client.core.settings import ClientSettings

BASE_URL = "https://api.test"

Scripted = Union[tuple[int, Any], Exception, Callable[[httpx.Request], httpx.Response]]


class FakeTicker:
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Clock whose sleeps advance simulated time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.current = start
        self.sleeps: list[float] = []
        self.tickers: list[FakeTicker] = []

    def now(self) -> float:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds
        await asyncio.sleep(0)

    def start_ticker(self, interval: float, callback: Callable[[], None]) -> FakeTicker:
        ticker = FakeTicker(interval, callback)
        self.tickers.append(ticker)
        return ticker

    def advance(self, seconds: float) -> None:
        """Move time forward and fire every live ticker once."""
        self.current += seconds
        for ticker in self.tickers:
            if not ticker.cancelled:
                ticker.callback()


class BackendStub:
    """Routes requests by (method, path) to scripted responses.

    Each route holds a queue; the last entry repeats once the queue is drained.
    Entries are ``(status, json_body)`` tuples, exceptions to raise, or
    callables building a response from the request.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Scripted]] = {}

    def add(self, method: str, path: str, *responses: Scripted) -> "BackendStub":
        self._routes.setdefault((method, path), []).extend(responses)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"detail": "not found"})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        status, body = item
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def client(self, settings: ClientSettings) -> DocumentApiClient:
        return DocumentApiClient(settings=settings, transport=httpx.MockTransport(self.handler))

    def factory(self, settings: ClientSettings) -> Callable[[], DocumentApiClient]:
        return lambda: self.client(settings)


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(
        OCR_API_BASE_URL=BASE_URL,
        OCR_API_KEY="test-key",
        OCR_POLL_INTERVAL_SECONDS=5.0,
        OCR_POLL_MAX_ATTEMPTS=120,
        OCR_BATCH_POLL_INTERVAL_SECONDS=5.0,
        OCR_BATCH_POLL_MAX_ATTEMPTS=120,
        OCR_PROGRESS_TICK_SECONDS=1.0,
        OCR_MAX_CONCURRENT_UPLOADS=1,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> BackendStub:
    return BackendStub()
