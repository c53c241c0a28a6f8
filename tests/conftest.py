"""Configuração de fixtures para testes."""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import pytest

from fetch_cache import (
    CacheStore,
    FetchCacheService,
    HttpTransport,
    ImmediateScheduler,
    InMemoryMetrics,
    LocalSignalChannel,
)


class FakeClock:
    """Relógio controlado manualmente."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Reply:
    """Resposta programada da API falsa."""

    payload: Any = None
    status: int = 200
    delay: float = 0.0
    text: str | None = None


class FakeApi:
    """API HTTP falsa para httpx.MockTransport.

    Respostas de uma rota são consumidas em ordem; a última se repete.
    ``gate`` segura todas as respostas até ser liberado.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self._routes: dict[str, list[Reply]] = {}

    def reply(self, payload: Any = None, status: int = 200, delay: float = 0.0, text: str | None = None) -> Reply:
        return Reply(payload=payload, status=status, delay=delay, text=text)

    def route(self, path: str, *replies: Reply) -> None:
        self._routes[path] = list(replies)

    def call_count(self, path: str | None = None) -> int:
        if path is None:
            return len(self.calls)
        return self.calls.count(path)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)

        replies = self._routes.get(path)
        if not replies:
            return httpx.Response(404, json={"detail": "not found"})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]

        if self.gate is not None:
            await self.gate.wait()
        if reply.delay:
            await asyncio.sleep(reply.delay)

        if reply.text is not None:
            return httpx.Response(reply.status, text=reply.text)
        return httpx.Response(reply.status, json=reply.payload)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def metrics() -> InMemoryMetrics:
    return InMemoryMetrics()


@pytest.fixture
def transport(api: FakeApi) -> HttpTransport:
    return HttpTransport(base_url="http://testserver", transport=httpx.MockTransport(api.handle))


@pytest.fixture
def service(clock: FakeClock, transport: HttpTransport, metrics: InMemoryMetrics) -> FetchCacheService:
    """Serviço isolado com relógio falso, API falsa e debounce curto."""
    return FetchCacheService(
        store=CacheStore(clock=clock, metrics=metrics),
        transport=transport,
        scheduler=ImmediateScheduler(),
        channel=LocalSignalChannel(),
        metrics=metrics,
        debounce_delay=0.05,
    )


@pytest.fixture
def sample_payload() -> dict:
    """Resposta de exemplo da API."""
    return {
        "engineers": [
            {"id": 1, "name": "Ada", "active": True},
            {"id": 2, "name": "Linus", "active": False},
        ],
        "total": 2,
        "ratio": 0.5,
        "next": None,
    }
