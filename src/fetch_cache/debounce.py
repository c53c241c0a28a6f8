"""Debounce de sinais de invalidação em um único refresh forçado."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from .cancellation import CancellationScope
from .config import DEBOUNCE_DELAY_SECONDS
from .scheduling import PRIORITY_USER_VISIBLE, Scheduler

logger = logging.getLogger(__name__)

Spawn = Callable[[Coroutine[Any, Any, None]], asyncio.Task[None]]


class EventDebouncer:
    """Converte rajadas de sinais em no máximo um refresh por período quieto.

    Cada ``trigger`` cancela o timer anterior e agenda outro para daqui a
    ``delay`` segundos. Quando o timer vence:
    - se um refresh disparado por este debouncer ainda está em curso
      (``is_pending``), o disparo é descartado;
    - senão, espera a vez no agendador e executa ``action``.

    Falhas de ``action`` são registradas em debug e descartadas.
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[Any]],
        scheduler: Scheduler,
        spawn: Spawn | None = None,
        delay: float = DEBOUNCE_DELAY_SECONDS,
        priority: str = PRIORITY_USER_VISIBLE,
    ) -> None:
        """Inicializa o debouncer.

        Args:
            action: Refresh a executar (normalmente ``refetch``)
            scheduler: Estratégia de agendamento injetada
            spawn: Cria a task do timer (default: asyncio.create_task)
            delay: Janela de silêncio em segundos
            priority: Prioridade passada ao agendador
        """
        self._action = action
        self._scheduler = scheduler
        self._spawn = spawn or asyncio.create_task
        self._delay = delay
        self._priority = priority
        self._timer: asyncio.Task[None] | None = None
        self._is_pending = False

    @property
    def is_pending(self) -> bool:
        return self._is_pending

    def trigger(self, scope: CancellationScope) -> None:
        """Registra uma ocorrência do sinal."""
        if scope.cancelled:
            return
        self.cancel()
        self._timer = self._spawn(self._run(scope))

    def cancel(self) -> None:
        """Cancela o timer agendado, se ainda não disparou."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _run(self, scope: CancellationScope) -> None:
        owns_latch = False
        try:
            with scope.track():
                await asyncio.sleep(self._delay)
                if self._is_pending:
                    logger.debug(f"Refresh já em curso para {scope.identifier}, descartando sinal")
                    return
                self._is_pending = True
                owns_latch = True
                await self._scheduler.wait_turn(self._priority)
        except asyncio.CancelledError:
            if owns_latch:
                self._is_pending = False
            raise

        if self._timer is asyncio.current_task():
            self._timer = None

        try:
            if scope.cancelled:
                return
            await self._action()
        except Exception as e:
            logger.debug(f"Refresh por sinal falhou para {scope.identifier}: {e}")
        finally:
            self._is_pending = False
