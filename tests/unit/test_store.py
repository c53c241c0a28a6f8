"""Testes para o CacheStore."""

import pytest

from fetch_cache.metrics import InMemoryMetrics
from fetch_cache.store import CacheStore


class TestCacheStoreReadWrite:
    """Testes de leitura e escrita."""

    def test_read_absent_returns_none(self, clock) -> None:
        """Deve retornar None sem entrada."""
        store = CacheStore(clock=clock)
        assert store.read("/api/engineers", None) is None

    def test_write_then_read(self, clock) -> None:
        """Deve devolver valor e instante de captura."""
        store = CacheStore(clock=clock)
        store.write("/api/engineers", [{"id": 1}], None)

        entry = store.read("/api/engineers", None)

        assert entry is not None
        assert entry.value == [{"id": 1}]
        assert entry.captured_at == clock.now
        assert entry.transform_tag is None

    def test_write_overwrites_and_restamps(self, clock) -> None:
        """Deve substituir a entrada inteira."""
        store = CacheStore(clock=clock)
        store.write("/x", {"a": 1}, None)
        clock.advance(10)
        store.write("/x", {"b": 2}, None)

        entry = store.read("/x", None)

        assert entry.value == {"b": 2}
        assert entry.captured_at == clock.now

    def test_read_returns_independent_copy(self, clock) -> None:
        """Alterar o valor lido não deve alterar o cache."""
        store = CacheStore(clock=clock)
        store.write("/x", {"items": [1, 2]}, None)

        first = store.read("/x", None)
        first.value["items"].append(3)

        assert store.read("/x", None).value == {"items": [1, 2]}

    def test_value_without_snapshot_is_cached_as_object(self, clock) -> None:
        """Valor que o MsgPack não representa deve ser cacheado como objeto."""
        metrics = InMemoryMetrics()
        store = CacheStore(clock=clock, metrics=metrics)
        value = {1, 2, 3}

        store.write("/x", value, "ids-v1")
        entry = store.read("/x", "ids-v1")

        assert entry is not None
        assert entry.value is value
        assert store.size == 1
        assert metrics.get_stats().errors == 0

    def test_tuple_keeps_its_shape(self, clock) -> None:
        """Tupla não deve voltar como lista."""
        store = CacheStore(clock=clock)
        store.write("/x", (1, (2, 3)), None)

        assert store.read("/x", None).value == (1, (2, 3))
        assert store.peek("/x").value == (1, (2, 3))

    def test_object_entry_replaced_wholesale(self, clock) -> None:
        """Nova escrita deve substituir o objeto guardado."""
        store = CacheStore(clock=clock)
        first = frozenset({1})
        store.write("/x", first, None)
        clock.advance(3)
        store.write("/x", [1, 2], None)

        entry = store.read("/x", None)

        assert entry.value == [1, 2]
        assert entry.captured_at == clock.now


class TestCacheStorePolicy:
    """Testes de validade, frescor e transform."""

    def test_valid_just_before_window(self, clock) -> None:
        """Deve servir entrada com idade menor que a validade."""
        store = CacheStore(clock=clock)
        store.write("/x", 1, None)
        clock.advance(299.9)
        assert store.read("/x", None) is not None

    def test_expired_entry_evicted_on_read(self, clock) -> None:
        """Entrada com idade >= 5 minutos deve ser removida na leitura."""
        store = CacheStore(clock=clock)
        store.write("/x", 1, None)
        clock.advance(300)

        assert store.size == 1
        assert store.read("/x", None) is None
        assert store.size == 0

    def test_fresh_below_thirty_seconds(self, clock) -> None:
        """Deve ser fresca abaixo de 30 segundos."""
        store = CacheStore(clock=clock)
        store.write("/x", 1, None)
        clock.advance(29.9)
        assert store.is_fresh(store.read("/x", None)) is True

    def test_stale_at_thirty_seconds(self, clock) -> None:
        """Deve deixar de ser fresca aos 30 segundos mas continuar válida."""
        store = CacheStore(clock=clock)
        store.write("/x", 1, None)
        clock.advance(30)

        entry = store.read("/x", None)

        assert entry is not None
        assert store.is_fresh(entry) is False

    def test_transform_tag_mismatch_is_miss(self, clock) -> None:
        """Tag diferente deve invalidar e remover a entrada."""
        store = CacheStore(clock=clock)
        store.write("/x", [1], "a")

        assert store.read("/x", "b") is None
        assert store.size == 0

    def test_untransformed_read_of_transformed_entry_is_miss(self, clock) -> None:
        """Leitura sem transform não deve servir valor transformado."""
        store = CacheStore(clock=clock)
        store.write("/x", [1], "a")
        assert store.read("/x", None) is None

    def test_peek_ignores_policy(self, clock) -> None:
        """peek deve devolver entrada mesmo expirada."""
        store = CacheStore(clock=clock)
        store.write("/x", 1, "a")
        clock.advance(1000)

        entry = store.peek("/x")

        assert entry.value == 1
        assert store.size == 1

    def test_invalid_windows_raise(self) -> None:
        """Deve rejeitar janelas inconsistentes."""
        with pytest.raises(ValueError):
            CacheStore(validity_window=0)
        with pytest.raises(ValueError):
            CacheStore(validity_window=10, freshness_window=20)


class TestCacheStoreEvict:
    """Testes de remoção."""

    def test_evict_one(self, clock) -> None:
        store = CacheStore(clock=clock)
        store.write("/a", 1, None)
        store.write("/b", 2, None)

        assert store.evict("/a") == 1
        assert store.read("/a", None) is None
        assert store.read("/b", None).value == 2

    def test_evict_missing_returns_zero(self, clock) -> None:
        store = CacheStore(clock=clock)
        assert store.evict("/nada") == 0

    def test_evict_all(self, clock) -> None:
        store = CacheStore(clock=clock)
        store.write("/a", 1, None)
        store.write("/b", 2, None)

        assert store.evict() == 2
        assert store.size == 0
