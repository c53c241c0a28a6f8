"""Serviço de cache de fetch: dono do estado compartilhado entre sessões."""

import logging
from typing import Any

from .config import DEBOUNCE_DELAY_SECONDS, get_timeout_seconds
from .metrics import CacheMetrics, NoOpMetrics
from .orchestrator import FetchOrchestrator, Transform
from .pending import PendingRegistry
from .scheduling import Scheduler, create_scheduler
from .signals import LocalSignalChannel, SignalChannel
from .store import CacheStore
from .transport import HttpTransport

logger = logging.getLogger(__name__)


class FetchCacheService:
    """Agrupa CacheStore, PendingRegistry, transporte, agendador e canal de sinais.

    Deve ser construído uma vez na inicialização do processo e injetado
    em quem precisa de sessões. Instâncias são independentes entre si,
    o que permite testes isolados.

    Example:
        ```python
        service = FetchCacheService()

        session = service.attach(
            "/engineers",
            transform=Transform(parse_engineers, tag="engineers-v1"),
            invalidation_signal="engineers-changed",
        )
        await session.drain()
        print(session.data, session.loading, session.error)

        service.emit("engineers-changed")   # refresh com debounce
        await session.refetch()             # refresh forçado

        await service.aclose()
        ```
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        registry: PendingRegistry | None = None,
        transport: HttpTransport | None = None,
        scheduler: Scheduler | None = None,
        channel: SignalChannel | None = None,
        metrics: CacheMetrics | None = None,
        debounce_delay: float = DEBOUNCE_DELAY_SECONDS,
    ) -> None:
        """Inicializa o serviço.

        Args:
            store: Cache de respostas (default: CacheStore())
            registry: Registro de fetches pendentes (default: PendingRegistry())
            transport: Transporte HTTP (default: HttpTransport com config do ambiente)
            scheduler: Estratégia de agendamento (default: create_scheduler())
            channel: Canal de sinais de invalidação (default: LocalSignalChannel())
            metrics: Coletor de métricas (default: NoOpMetrics)
            debounce_delay: Janela de silêncio dos sinais em segundos
        """
        self._metrics = metrics or NoOpMetrics()
        self._store = store or CacheStore(metrics=self._metrics)
        self._registry = registry or PendingRegistry()
        self._transport = transport or HttpTransport(timeout=get_timeout_seconds())
        self._scheduler = scheduler or create_scheduler()
        self._channel = channel or LocalSignalChannel()
        self._debounce_delay = debounce_delay
        self._sessions: list[FetchOrchestrator] = []

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def registry(self) -> PendingRegistry:
        return self._registry

    @property
    def transport(self) -> HttpTransport:
        return self._transport

    @property
    def channel(self) -> SignalChannel:
        return self._channel

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics

    def attach(
        self,
        identifier: str,
        *,
        transform: Transform | None = None,
        auto_fetch: bool = True,
        invalidation_signal: str | None = None,
        cache_enabled: bool = True,
        initial_data: Any = None,
    ) -> FetchOrchestrator:
        """Cria uma sessão para o identificador e dispara o fetch inicial.

        Com ``auto_fetch`` deve ser chamado de dentro do event loop.

        Returns:
            Sessão com data, loading, error e refetch()
        """
        session = FetchOrchestrator(
            identifier,
            store=self._store,
            registry=self._registry,
            transport=self._transport,
            scheduler=self._scheduler,
            channel=self._channel,
            metrics=self._metrics,
            transform=transform,
            auto_fetch=auto_fetch,
            invalidation_signal=invalidation_signal,
            cache_enabled=cache_enabled,
            initial_data=initial_data,
            debounce_delay=self._debounce_delay,
        )
        self._sessions = [s for s in self._sessions if not s.detached]
        self._sessions.append(session)
        session.mount()
        logger.debug(f"Sessão anexada: {identifier}")
        return session

    def emit(self, signal: str) -> int:
        """Emite um sinal de invalidação no canal do serviço."""
        return self._channel.emit(signal)

    # ========== Administração ==========

    def evict_cache(self, identifier: str | None = None) -> int:
        """Remove entradas do cache (uma ou todas)."""
        count = self._store.evict(identifier)
        logger.debug(f"Cache despejado ({identifier or 'tudo'}): {count} entradas")
        return count

    def evict_pending(self, identifier: str | None = None) -> int:
        """Esquece fetches pendentes (uma ou todas) sem cancelá-los."""
        return self._registry.evict(identifier)

    def pending_count(self) -> int:
        return self._registry.count

    def cache_size(self) -> int:
        return self._store.size

    async def aclose(self) -> None:
        """Desanexa todas as sessões e fecha o transporte HTTP."""
        for session in self._sessions:
            session.detach()
        self._sessions.clear()
        await self._transport.aclose()

    async def __aenter__(self) -> "FetchCacheService":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
