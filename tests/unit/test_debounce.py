"""Testes para o EventDebouncer."""

import asyncio

import pytest

from fetch_cache.cancellation import CancellationScope
from fetch_cache.debounce import EventDebouncer
from fetch_cache.scheduling import ImmediateScheduler, PriorityScheduler


class CountingAction:
    """Ação assíncrona que conta chamadas."""

    def __init__(self, delay: float = 0.0, error: Exception | None = None) -> None:
        self.calls = 0
        self._delay = delay
        self._error = error

    async def __call__(self) -> str:
        self.calls += 1
        await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return "ok"


class TestEventDebouncer:
    """Testes para EventDebouncer."""

    @pytest.mark.asyncio
    async def test_burst_collapses_to_single_call(self) -> None:
        """5 sinais dentro da janela devem gerar uma única execução."""
        action = CountingAction()
        debouncer = EventDebouncer(action, ImmediateScheduler(), delay=0.05)
        scope = CancellationScope("/x")

        for _ in range(5):
            debouncer.trigger(scope)
            await asyncio.sleep(0.005)

        await asyncio.sleep(0.1)

        assert action.calls == 1
        assert debouncer.is_pending is False

    @pytest.mark.asyncio
    async def test_separate_bursts_run_separately(self) -> None:
        """Rajadas separadas por silêncio devem executar uma vez cada."""
        action = CountingAction()
        debouncer = EventDebouncer(action, PriorityScheduler(), delay=0.02)
        scope = CancellationScope("/x")

        debouncer.trigger(scope)
        await asyncio.sleep(0.06)
        debouncer.trigger(scope)
        await asyncio.sleep(0.06)

        assert action.calls == 2

    @pytest.mark.asyncio
    async def test_trigger_dropped_while_pending(self) -> None:
        """Disparo durante refresh em curso deve ser descartado."""
        action = CountingAction(delay=0.15)
        debouncer = EventDebouncer(action, ImmediateScheduler(), delay=0.02)
        scope = CancellationScope("/x")

        debouncer.trigger(scope)
        await asyncio.sleep(0.04)
        assert debouncer.is_pending is True

        debouncer.trigger(scope)
        await asyncio.sleep(0.2)

        assert action.calls == 1
        assert debouncer.is_pending is False

    @pytest.mark.asyncio
    async def test_latch_cleared_after_failure(self) -> None:
        """Falha deve liberar o latch como o sucesso."""
        action = CountingAction(error=RuntimeError("falhou"))
        debouncer = EventDebouncer(action, ImmediateScheduler(), delay=0.01)
        scope = CancellationScope("/x")

        debouncer.trigger(scope)
        await asyncio.sleep(0.05)
        assert debouncer.is_pending is False

        debouncer.trigger(scope)
        await asyncio.sleep(0.05)
        assert action.calls == 2

    @pytest.mark.asyncio
    async def test_scope_cancel_stops_scheduled_trigger(self) -> None:
        """Cancelar o escopo deve impedir o disparo agendado."""
        action = CountingAction()
        debouncer = EventDebouncer(action, ImmediateScheduler(), delay=0.02)
        scope = CancellationScope("/x")

        debouncer.trigger(scope)
        scope.cancel()
        await asyncio.sleep(0.05)

        assert action.calls == 0
        assert debouncer.is_pending is False

    @pytest.mark.asyncio
    async def test_trigger_on_cancelled_scope_ignored(self) -> None:
        action = CountingAction()
        debouncer = EventDebouncer(action, ImmediateScheduler(), delay=0.01)
        scope = CancellationScope("/x")
        scope.cancel()

        debouncer.trigger(scope)
        await asyncio.sleep(0.03)

        assert action.calls == 0

    @pytest.mark.asyncio
    async def test_custom_spawn_receives_timer(self) -> None:
        """Timer deve ser criado pelo spawn injetado."""
        spawned: list[asyncio.Task[None]] = []

        def spawn(coro):
            task = asyncio.create_task(coro)
            spawned.append(task)
            return task

        action = CountingAction()
        debouncer = EventDebouncer(action, ImmediateScheduler(), spawn=spawn, delay=0.01)
        scope = CancellationScope("/x")

        debouncer.trigger(scope)
        debouncer.trigger(scope)
        await asyncio.gather(*spawned, return_exceptions=True)

        assert len(spawned) == 2
        assert spawned[0].cancelled()
        assert action.calls == 1
