"""Testes para o PendingRegistry."""

import asyncio

import pytest

from fetch_cache.pending import PendingRegistry


async def _value(result: str, delay: float = 0.0) -> str:
    await asyncio.sleep(delay)
    return result


class TestPendingRegistry:
    """Testes para PendingRegistry."""

    @pytest.mark.asyncio
    async def test_join_without_entry_returns_none(self) -> None:
        """Deve retornar None sem fetch pendente."""
        registry = PendingRegistry()
        assert registry.join("/x") is None
        assert registry.count == 0

    @pytest.mark.asyncio
    async def test_register_and_join(self) -> None:
        """Deve devolver a mesma task registrada."""
        registry = PendingRegistry()
        task = asyncio.create_task(_value("r"))

        registry.register("/x", task)

        assert registry.join("/x") is task
        assert registry.is_pending("/x")
        assert registry.count == 1
        await task

    @pytest.mark.asyncio
    async def test_register_overwrites(self) -> None:
        """Último registro deve vencer."""
        registry = PendingRegistry()
        old = asyncio.create_task(_value("old"))
        new = asyncio.create_task(_value("new"))

        registry.register("/x", old)
        registry.register("/x", new)

        assert registry.join("/x") is new
        await asyncio.gather(old, new)

    @pytest.mark.asyncio
    async def test_release_only_same_task(self) -> None:
        """release de task substituída não deve remover a nova."""
        registry = PendingRegistry()
        old = asyncio.create_task(_value("old"))
        new = asyncio.create_task(_value("new"))
        registry.register("/x", old)
        registry.register("/x", new)

        assert registry.release("/x", old) is False
        assert registry.join("/x") is new
        assert registry.release("/x", new) is True
        assert registry.join("/x") is None
        await asyncio.gather(old, new)

    @pytest.mark.asyncio
    async def test_release_on_settlement(self) -> None:
        """Callback de conclusão deve liberar a entrada."""
        registry = PendingRegistry()
        task = asyncio.create_task(_value("r", 0.01))
        registry.register("/x", task)
        task.add_done_callback(lambda t: registry.release("/x", t))

        await task
        await asyncio.sleep(0)

        assert registry.count == 0

    @pytest.mark.asyncio
    async def test_evict_does_not_cancel(self) -> None:
        """evict deve esquecer o mapeamento sem cancelar a task."""
        registry = PendingRegistry()
        task = asyncio.create_task(_value("r", 0.01))
        registry.register("/x", task)
        registry.register("/y", asyncio.create_task(_value("y")))

        assert registry.evict("/x") == 1
        assert registry.join("/x") is None
        assert await task == "r"

        assert registry.evict() == 1
        assert registry.count == 0
