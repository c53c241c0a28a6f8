"""Estratégias de agendamento para refreshes adiados.

A estratégia é escolhida uma vez (``create_scheduler``) e injetada no
serviço; quem agenda só conhece ``await scheduler.wait_turn(priority)``.

Ordem de preferência:
- ``priority``: fila com prioridades (user-blocking > user-visible > background)
- ``idle``: espera o event loop ficar ocioso, com timeout de fallback
- ``immediate``: apenas cede uma iteração do loop
"""

import asyncio
import heapq
import itertools
import logging
from typing import Any, Protocol

from .config import IDLE_TIMEOUT_SECONDS, get_scheduler_name

logger = logging.getLogger(__name__)

PRIORITY_USER_BLOCKING = "user-blocking"
PRIORITY_USER_VISIBLE = "user-visible"
PRIORITY_BACKGROUND = "background"

_PRIORITY_RANK = {
    PRIORITY_USER_BLOCKING: 0,
    PRIORITY_USER_VISIBLE: 1,
    PRIORITY_BACKGROUND: 2,
}


class Scheduler(Protocol):
    """Protocol para estratégias de agendamento."""

    async def wait_turn(self, priority: str = PRIORITY_USER_VISIBLE) -> None:
        """Suspende até ser a vez do chamador executar."""
        ...


class ImmediateScheduler:
    """Continuação assíncrona imediata (próxima iteração do loop)."""

    async def wait_turn(self, priority: str = PRIORITY_USER_VISIBLE) -> None:
        await asyncio.sleep(0)


class PriorityScheduler:
    """Fila de prioridades liberando um chamador por iteração do loop.

    Chamadores enfileirados na mesma iteração são liberados por prioridade
    e, dentro da mesma prioridade, por ordem de chegada. Um chamador
    cancelado enquanto espera é descartado da fila.
    """

    def __init__(self) -> None:
        self._queue: list[tuple[int, int, asyncio.Future[None]]] = []
        self._sequence = itertools.count()
        self._dispatch_handle: asyncio.Handle | None = None

    @property
    def queued(self) -> int:
        return sum(1 for _, _, waiter in self._queue if not waiter.done())

    async def wait_turn(self, priority: str = PRIORITY_USER_VISIBLE) -> None:
        if priority not in _PRIORITY_RANK:
            raise ValueError(f"Prioridade desconhecida: {priority!r}")

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        heapq.heappush(self._queue, (_PRIORITY_RANK[priority], next(self._sequence), waiter))
        self._schedule_dispatch(loop)
        await waiter

    def _schedule_dispatch(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._dispatch_handle is None:
            self._dispatch_handle = loop.call_soon(self._dispatch, loop)

    def _dispatch(self, loop: asyncio.AbstractEventLoop) -> None:
        self._dispatch_handle = None
        while self._queue:
            _, _, waiter = heapq.heappop(self._queue)
            if not waiter.done():
                waiter.set_result(None)
                break
        if self._queue:
            self._schedule_dispatch(loop)


class IdleScheduler:
    """Espera o event loop ficar ocioso antes de liberar o chamador.

    Ociosidade é medida pelo atraso do loop: dorme ``probe_interval`` e,
    se o despertar atrasou menos que ``lag_threshold``, considera o loop
    livre. Se o loop nunca ficar ocioso, libera após ``timeout``.
    """

    def __init__(
        self,
        timeout: float = IDLE_TIMEOUT_SECONDS,
        probe_interval: float = 0.01,
        lag_threshold: float = 0.005,
    ) -> None:
        self._timeout = timeout
        self._probe_interval = probe_interval
        self._lag_threshold = lag_threshold

    async def wait_turn(self, priority: str = PRIORITY_USER_VISIBLE) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout

        while True:
            started = loop.time()
            await asyncio.sleep(self._probe_interval)
            now = loop.time()
            if now - started - self._probe_interval <= self._lag_threshold:
                return
            if now >= deadline:
                logger.debug("Loop não ficou ocioso, liberando por timeout")
                return


_SCHEDULERS: dict[str, type[Any]] = {
    "priority": PriorityScheduler,
    "idle": IdleScheduler,
    "immediate": ImmediateScheduler,
}


def create_scheduler(name: str | None = None) -> Scheduler:
    """Cria a estratégia de agendamento pelo nome.

    Args:
        name: priority, idle ou immediate (usa FETCH_CACHE_SCHEDULER se não fornecido)

    Raises:
        ValueError: Se o nome não for conhecido
    """
    name = name or get_scheduler_name()
    try:
        scheduler_cls = _SCHEDULERS[name]
    except KeyError:
        raise ValueError(f"Agendador desconhecido: {name!r} (use {', '.join(_SCHEDULERS)})") from None
    logger.debug(f"Agendador selecionado: {name}")
    return scheduler_cls()
