"""Escopo de cancelamento cooperativo de uma sessão."""

import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)


class CancellationScope:
    """Token de vida útil de uma sessão para um identificador.

    Disparar o escopo cancela as tasks rastreadas que ainda estão em fase
    agendada (timer de debounce, espera pelo agendador), executa os
    callbacks de teardown e invalida continuações: ``cancelled`` passa a
    ser True e a sessão descarta publicações de estado.

    Um fetch HTTP já em curso não é abortado.
    """

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        self._cancelled = False
        self._tasks: set[asyncio.Task[Any]] = set()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @contextmanager
    def track(self, task: asyncio.Task[Any] | None = None) -> Iterator[None]:
        """Marca a task (default: a atual) como cancelável durante o bloco."""
        task = task or asyncio.current_task()
        if task is None:
            raise RuntimeError("track() exige uma task asyncio")
        if self._cancelled:
            task.cancel()
        self._tasks.add(task)
        try:
            yield
        finally:
            self._tasks.discard(task)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Registra callback executado uma vez ao disparar o escopo."""
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def cancel(self) -> None:
        """Dispara o escopo. Idempotente."""
        if self._cancelled:
            return
        self._cancelled = True

        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        self._tasks.clear()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Erro em callback de teardown para {self.identifier}: {e}")

        logger.debug(f"Escopo cancelado para: {self.identifier}")
