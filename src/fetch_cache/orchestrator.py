"""Orquestração por sessão: cache, deduplicação e estado publicado.

Cada consumidor recebe um ``FetchOrchestrator`` que decide, a cada
chamada, entre servir do cache, servir e revalidar em background, ou
bloquear e buscar na rede. O estado observável é o trio
``{data, loading, error}`` mais ``refetch()``.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .cancellation import CancellationScope
from .config import DEBOUNCE_DELAY_SECONDS
from .debounce import EventDebouncer
from .metrics import CacheMetrics, NoOpMetrics
from .pending import PendingRegistry
from .scheduling import PRIORITY_BACKGROUND, Scheduler
from .signals import SignalChannel
from .store import CacheStore
from .transport import HttpTransport

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class FetchStatus(str, Enum):
    """Estados da máquina de fetch de uma sessão."""

    IDLE = "idle"
    SERVING_FROM_CACHE = "serving_from_cache"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Transform:
    """Transformação aplicada ao JSON recebido.

    ``tag`` é uma versão estável escolhida pelo chamador e faz parte da
    chave do cache: trocar a função sem trocar a tag reaproveita entradas
    antigas, trocar a tag as invalida.
    """

    func: Callable[[Any], Any]
    tag: str

    def __post_init__(self) -> None:
        if not self.tag:
            raise ValueError("Transform exige uma tag não vazia")

    def __call__(self, data: Any) -> Any:
        return self.func(data)


@dataclass(frozen=True)
class FetchState:
    """Snapshot imutável do estado publicado de uma sessão."""

    data: Any = None
    loading: bool = False
    error: str | None = None
    status: FetchStatus = FetchStatus.IDLE


StateListener = Callable[[FetchState], None]


class FetchOrchestrator:
    """Máquina de estados de fetch de um consumidor.

    Fluxo de ``request``:
    1. Sem force e com fetch pendente para o identificador: aguarda o
       mesmo fetch (nenhuma chamada de rede nova). Se esse fetch falhar,
       segue para os passos 2 e 3.
    2. Sem force e com cache habilitado: serve a entrada válida; se ela
       não for fresca e nada estiver pendente, agenda revalidação em
       background sem ligar ``loading``.
    3. Caso contrário: liga ``loading`` e busca na rede.

    Falhas publicam ``error`` mas nunca apagam dados já exibidos: se o
    cache ainda tiver entrada válida, ela é servida de novo.

    Todas as publicações passam pelo ``CancellationScope`` corrente;
    resultados que chegam depois de ``detach``/``rebind`` são descartados.
    """

    def __init__(
        self,
        identifier: str,
        *,
        store: CacheStore,
        registry: PendingRegistry,
        transport: HttpTransport,
        scheduler: Scheduler,
        channel: SignalChannel | None = None,
        metrics: CacheMetrics | None = None,
        transform: Transform | None = None,
        auto_fetch: bool = True,
        invalidation_signal: str | None = None,
        cache_enabled: bool = True,
        initial_data: Any = None,
        debounce_delay: float = DEBOUNCE_DELAY_SECONDS,
    ) -> None:
        if not identifier:
            raise ValueError("identifier não pode ser vazio")
        if invalidation_signal and channel is None:
            raise ValueError("invalidation_signal exige um SignalChannel")

        self._store = store
        self._registry = registry
        self._transport = transport
        self._scheduler = scheduler
        self._channel = channel
        self._metrics = metrics or NoOpMetrics()

        self._identifier = identifier
        self._transform = transform
        self._auto_fetch = auto_fetch
        self._invalidation_signal = invalidation_signal
        self._cache_enabled = cache_enabled
        self._initial_data = initial_data

        self._listeners: list[StateListener] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._detached = False
        self._settled_status = FetchStatus.IDLE

        self._debounce_delay = debounce_delay
        self._debouncer: EventDebouncer | None = None
        self._state = self._initial_state()
        self._scope = self._bind()

    # ========== Estado publicado ==========

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def transform(self) -> Transform | None:
        return self._transform

    @property
    def cache_enabled(self) -> bool:
        return self._cache_enabled

    @property
    def invalidation_signal(self) -> str | None:
        return self._invalidation_signal

    @property
    def state(self) -> FetchState:
        return self._state

    @property
    def data(self) -> Any:
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def scope(self) -> CancellationScope:
        return self._scope

    @property
    def detached(self) -> bool:
        return self._detached

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Inscreve listener chamado a cada publicação de estado."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, scope: CancellationScope, **changes: Any) -> None:
        if scope.cancelled or scope is not self._scope:
            logger.debug(f"Publicação descartada para escopo cancelado: {scope.identifier}")
            return

        self._state = replace(self._state, **changes)
        if self._state.status is not FetchStatus.LOADING:
            self._settled_status = self._state.status

        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.warning(f"Listener de estado falhou para {self._identifier}: {e}")

    # ========== Ciclo de vida ==========

    def _initial_state(self) -> FetchState:
        entry = self._store.read(self._identifier, self._tag) if self._cache_enabled else None
        if entry is not None:
            self._settled_status = FetchStatus.SERVING_FROM_CACHE
            return FetchState(data=entry.value, loading=False, status=FetchStatus.SERVING_FROM_CACHE)
        self._settled_status = FetchStatus.IDLE
        return FetchState(data=self._initial_data, loading=self._auto_fetch, status=FetchStatus.IDLE)

    def _bind(self) -> CancellationScope:
        scope = CancellationScope(self._identifier)
        # Um debouncer por escopo: o latch não atravessa rebind
        debouncer = EventDebouncer(
            self._signal_refresh,
            self._scheduler,
            spawn=self._spawn,
            delay=self._debounce_delay,
        )
        self._debouncer = debouncer
        scope.add_callback(debouncer.cancel)

        if self._invalidation_signal and self._channel is not None:
            unsubscribe = self._channel.subscribe(
                self._invalidation_signal,
                lambda: debouncer.trigger(scope),
            )
            scope.add_callback(unsubscribe)

        return scope

    def mount(self) -> asyncio.Task[Any] | None:
        """Dispara o fetch inicial quando ``auto_fetch`` está ligado."""
        if not self._auto_fetch or self._detached:
            return None
        return self._spawn(self._mount(self._scope))

    async def _mount(self, scope: CancellationScope) -> None:
        if scope.cancelled:
            return
        try:
            await self.request()
        except Exception as e:
            # Já publicado em error
            logger.debug(f"Fetch inicial falhou para {scope.identifier}: {e}")

    def rebind(
        self,
        identifier: str = _UNSET,
        *,
        transform: Transform | None = _UNSET,
        cache_enabled: bool = _UNSET,
        invalidation_signal: str | None = _UNSET,
    ) -> None:
        """Atualiza parâmetros da sessão.

        Trocar identifier, invalidation_signal ou cache_enabled derruba o
        escopo atual e monta a sessão de novo. Trocar só o transform vale
        a partir da próxima requisição.
        """
        if self._detached:
            raise RuntimeError("Sessão já foi desanexada")
        if transform is not _UNSET:
            self._transform = transform

        changed = False
        if identifier is not _UNSET and identifier != self._identifier:
            if not identifier:
                raise ValueError("identifier não pode ser vazio")
            self._identifier = identifier
            changed = True
        if cache_enabled is not _UNSET and cache_enabled != self._cache_enabled:
            self._cache_enabled = cache_enabled
            changed = True
        if invalidation_signal is not _UNSET and invalidation_signal != self._invalidation_signal:
            if invalidation_signal and self._channel is None:
                raise ValueError("invalidation_signal exige um SignalChannel")
            self._invalidation_signal = invalidation_signal
            changed = True

        if not changed:
            return

        self._scope.cancel()
        self._state = self._initial_state()
        self._scope = self._bind()
        self._publish(self._scope)
        self.mount()

    def detach(self) -> None:
        """Encerra a sessão: cancela timers agendados e descarta publicações futuras."""
        if self._detached:
            return
        self._detached = True
        self._scope.cancel()
        self._listeners.clear()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Aguarda todas as tasks criadas pela sessão (mount, revalidação, debounce)."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ========== Requisições ==========

    @property
    def _tag(self) -> str | None:
        return self._transform.tag if self._transform else None

    def _apply(self, transform: Transform | None, raw: Any) -> Any:
        return transform(raw) if transform is not None else raw

    async def request(self, force_refresh: bool = False) -> Any:
        """Obtém os dados do identificador da sessão.

        Args:
            force_refresh: Ignora cache e fetch pendente, sempre vai à rede

        Returns:
            Dados (transformados) servidos à sessão

        Raises:
            FetchCacheError: Falha do fetch em primeiro plano
        """
        scope = self._scope
        identifier = self._identifier
        transform = self._transform

        if not force_refresh:
            pending = self._registry.join(identifier)
            if pending is not None:
                self._metrics.record_dedup(identifier)
                logger.debug(f"Aguardando fetch existente para: {identifier}")
                try:
                    raw = await asyncio.shield(pending)
                except Exception as e:
                    # Segue para o cache e, sem ele, para um fetch próprio
                    logger.debug(f"Fetch compartilhado falhou para {identifier}, tentando de novo: {e}")
                else:
                    data = self._apply(transform, raw)
                    self._publish(scope, data=data, loading=False, error=None, status=FetchStatus.SUCCESS)
                    return data

        if not force_refresh and self._cache_enabled:
            entry = self._store.read(identifier, self._tag)
            if entry is not None:
                age = entry.age(self._store.now())
                self._publish(
                    scope,
                    data=entry.value,
                    loading=False,
                    error=None,
                    status=FetchStatus.SERVING_FROM_CACHE,
                )
                if self._store.is_fresh(entry):
                    self._metrics.record_hit(identifier, age)
                    logger.debug(f"Cache hit: {identifier}")
                else:
                    self._metrics.record_stale(identifier, age)
                    logger.debug(f"Cache envelhecido ({age:.1f}s): {identifier}")
                    if not self._registry.is_pending(identifier):
                        self._spawn(self._revalidate(scope, identifier, transform))
                return entry.value
            self._metrics.record_miss(identifier)
            logger.debug(f"Cache miss: {identifier}")

        self._publish(scope, loading=True, error=None, status=FetchStatus.LOADING)
        return await self._fetch(scope, identifier, transform)

    async def refetch(self) -> Any:
        """Sempre força uma chamada de rede."""
        return await self.request(force_refresh=True)

    async def _fetch(
        self,
        scope: CancellationScope,
        identifier: str,
        transform: Transform | None,
        silent: bool = False,
    ) -> Any:
        """Executa uma tentativa de rede registrada no PendingRegistry.

        Com ``silent`` a falha não é publicada em ``error``.
        """
        cache_enabled = self._cache_enabled
        task = asyncio.get_running_loop().create_task(self._transport.get_json(identifier))
        self._registry.register(identifier, task)
        task.add_done_callback(lambda t: self._registry.release(identifier, t))

        started = time.perf_counter()
        try:
            raw = await asyncio.shield(task)
            data = self._apply(transform, raw)
        except Exception as e:
            self._metrics.record_error(identifier, e)
            logger.warning(f"Erro ao buscar dados de {identifier}: {e}")
            if silent:
                if self._state.loading:
                    self._publish(scope, loading=False, status=self._settled_status)
            else:
                self._publish_failure(scope, identifier, transform, e)
            raise

        self._metrics.record_fetch(identifier, time.perf_counter() - started)
        if cache_enabled:
            self._store.write(identifier, data, transform.tag if transform else None)
        self._publish(scope, data=data, loading=False, error=None, status=FetchStatus.SUCCESS)
        return data

    def _publish_failure(
        self,
        scope: CancellationScope,
        identifier: str,
        transform: Transform | None,
        error: Exception,
    ) -> None:
        changes: dict[str, Any] = {"loading": False, "error": str(error), "status": FetchStatus.ERROR}
        if self._cache_enabled:
            fallback = self._store.read(identifier, transform.tag if transform else None)
            if fallback is not None:
                changes["data"] = fallback.value
        self._publish(scope, **changes)

    async def _revalidate(
        self,
        scope: CancellationScope,
        identifier: str,
        transform: Transform | None,
    ) -> None:
        """Stale-while-revalidate: refresh em background, falhas silenciosas."""
        with scope.track():
            await self._scheduler.wait_turn(PRIORITY_BACKGROUND)
        if scope.cancelled or self._registry.is_pending(identifier):
            return
        try:
            await self._fetch(scope, identifier, transform, silent=True)
        except Exception as e:
            logger.debug(f"Revalidação em background falhou para {identifier}: {e}")

    async def _signal_refresh(self) -> Any:
        """Refresh forçado disparado por sinal; falhas não publicam erro."""
        scope = self._scope
        self._publish(scope, loading=True, status=FetchStatus.LOADING)
        return await self._fetch(scope, self._identifier, self._transform, silent=True)
