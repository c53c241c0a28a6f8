"""Métricas do cache de fetch usando OpenTelemetry."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Protocol

from opentelemetry import metrics as otel_metrics

logger = logging.getLogger(__name__)


class CacheMetrics(Protocol):
    """Protocol para coletores de métricas."""

    def record_hit(self, identifier: str, age: float) -> None:
        """Registra entrada fresca servida do cache."""
        ...

    def record_stale(self, identifier: str, age: float) -> None:
        """Registra entrada envelhecida servida com revalidação."""
        ...

    def record_miss(self, identifier: str) -> None:
        """Registra cache miss."""
        ...

    def record_dedup(self, identifier: str) -> None:
        """Registra requisição que reaproveitou um fetch pendente."""
        ...

    def record_fetch(self, identifier: str, latency: float) -> None:
        """Registra fetch de rede concluído com sucesso."""
        ...

    def record_error(self, identifier: str, error: Exception) -> None:
        """Registra falha de fetch ou de snapshot."""
        ...


class NoOpMetrics:
    """Coletor de métricas que não faz nada (default)."""

    def record_hit(self, identifier: str, age: float) -> None:
        pass

    def record_stale(self, identifier: str, age: float) -> None:
        pass

    def record_miss(self, identifier: str) -> None:
        pass

    def record_dedup(self, identifier: str) -> None:
        pass

    def record_fetch(self, identifier: str, latency: float) -> None:
        pass

    def record_error(self, identifier: str, error: Exception) -> None:
        pass


@dataclass
class IdentifierStats:
    """Estatísticas de um identificador (endpoint)."""

    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    dedups: int = 0
    fetches: int = 0
    errors: int = 0
    total_fetch_latency: float = 0.0

    @property
    def total_reads(self) -> int:
        return self.hits + self.stale_hits + self.misses

    @property
    def hit_ratio(self) -> float:
        total = self.total_reads
        return (self.hits + self.stale_hits) / total if total > 0 else 0.0

    @property
    def avg_fetch_latency_ms(self) -> float:
        return (self.total_fetch_latency / self.fetches * 1000) if self.fetches > 0 else 0.0


@dataclass
class CacheStats:
    """Estatísticas agregadas."""

    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    dedups: int = 0
    fetches: int = 0
    errors: int = 0
    fetch_latencies: list[float] = field(default_factory=list)

    @property
    def total_reads(self) -> int:
        return self.hits + self.stale_hits + self.misses

    @property
    def hit_ratio(self) -> float:
        total = self.total_reads
        return (self.hits + self.stale_hits) / total if total > 0 else 0.0

    @property
    def avg_fetch_latency_ms(self) -> float:
        if not self.fetch_latencies:
            return 0.0
        return sum(self.fetch_latencies) / len(self.fetch_latencies) * 1000


class OpenTelemetryMetrics:
    """Coletor de métricas usando OpenTelemetry.

    Métricas exportadas:
    - fetch_cache.hits (counter): entradas servidas do cache, com atributo fresh
    - fetch_cache.misses (counter): leituras sem entrada utilizável
    - fetch_cache.dedups (counter): requisições que aguardaram fetch pendente
    - fetch_cache.fetches (counter): fetches de rede concluídos
    - fetch_cache.errors (counter): falhas, com atributo error_type
    - fetch_cache.fetch_latency (histogram): latência dos fetches em segundos
    - fetch_cache.entry_age (histogram): idade das entradas servidas em segundos
    """

    def __init__(self, meter_name: str = "fetch_cache") -> None:
        meter = otel_metrics.get_meter(meter_name)

        self._hits_counter = meter.create_counter(
            "fetch_cache.hits",
            description="Entradas servidas do cache",
            unit="1",
        )
        self._misses_counter = meter.create_counter(
            "fetch_cache.misses",
            description="Leituras sem entrada utilizável",
            unit="1",
        )
        self._dedups_counter = meter.create_counter(
            "fetch_cache.dedups",
            description="Requisições deduplicadas",
            unit="1",
        )
        self._fetches_counter = meter.create_counter(
            "fetch_cache.fetches",
            description="Fetches de rede concluídos",
            unit="1",
        )
        self._errors_counter = meter.create_counter(
            "fetch_cache.errors",
            description="Falhas de fetch ou snapshot",
            unit="1",
        )
        self._latency_histogram = meter.create_histogram(
            "fetch_cache.fetch_latency",
            description="Latência dos fetches de rede",
            unit="s",
        )
        self._age_histogram = meter.create_histogram(
            "fetch_cache.entry_age",
            description="Idade das entradas servidas",
            unit="s",
        )

    def record_hit(self, identifier: str, age: float) -> None:
        self._hits_counter.add(1, {"identifier": identifier, "fresh": True})
        self._age_histogram.record(age, {"identifier": identifier})

    def record_stale(self, identifier: str, age: float) -> None:
        self._hits_counter.add(1, {"identifier": identifier, "fresh": False})
        self._age_histogram.record(age, {"identifier": identifier})

    def record_miss(self, identifier: str) -> None:
        self._misses_counter.add(1, {"identifier": identifier})

    def record_dedup(self, identifier: str) -> None:
        self._dedups_counter.add(1, {"identifier": identifier})

    def record_fetch(self, identifier: str, latency: float) -> None:
        self._fetches_counter.add(1, {"identifier": identifier})
        self._latency_histogram.record(latency, {"identifier": identifier})

    def record_error(self, identifier: str, error: Exception) -> None:
        self._errors_counter.add(1, {"identifier": identifier, "error_type": type(error).__name__})


class InMemoryMetrics:
    """Coletor de métricas em memória com estatísticas por identificador.

    Útil para desenvolvimento e testes.

    Attributes:
        max_samples: Máximo de amostras de latência mantidas
    """

    def __init__(self, max_samples: int = 1000) -> None:
        self._max_samples = max_samples
        self._lock = Lock()
        self._overall = CacheStats()
        self._by_identifier: dict[str, IdentifierStats] = defaultdict(IdentifierStats)

    def record_hit(self, identifier: str, age: float) -> None:
        with self._lock:
            self._overall.hits += 1
            self._by_identifier[identifier].hits += 1

    def record_stale(self, identifier: str, age: float) -> None:
        with self._lock:
            self._overall.stale_hits += 1
            self._by_identifier[identifier].stale_hits += 1

    def record_miss(self, identifier: str) -> None:
        with self._lock:
            self._overall.misses += 1
            self._by_identifier[identifier].misses += 1

    def record_dedup(self, identifier: str) -> None:
        with self._lock:
            self._overall.dedups += 1
            self._by_identifier[identifier].dedups += 1

    def record_fetch(self, identifier: str, latency: float) -> None:
        with self._lock:
            self._overall.fetches += 1
            self._overall.fetch_latencies.append(latency)
            self._trim_samples(self._overall.fetch_latencies)

            self._by_identifier[identifier].fetches += 1
            self._by_identifier[identifier].total_fetch_latency += latency

    def record_error(self, identifier: str, error: Exception) -> None:
        with self._lock:
            self._overall.errors += 1
            self._by_identifier[identifier].errors += 1

    def _trim_samples(self, samples: list[Any]) -> None:
        """Remove amostras antigas se exceder limite."""
        if len(samples) > self._max_samples:
            del samples[: len(samples) - self._max_samples]

    def get_stats(self) -> CacheStats:
        """Retorna cópia das estatísticas agregadas."""
        with self._lock:
            return CacheStats(
                hits=self._overall.hits,
                stale_hits=self._overall.stale_hits,
                misses=self._overall.misses,
                dedups=self._overall.dedups,
                fetches=self._overall.fetches,
                errors=self._overall.errors,
                fetch_latencies=self._overall.fetch_latencies.copy(),
            )

    def get_identifier_stats(self, identifier: str) -> IdentifierStats | None:
        """Retorna cópia das estatísticas de um identificador."""
        with self._lock:
            if identifier not in self._by_identifier:
                return None
            stats = self._by_identifier[identifier]
            return IdentifierStats(
                hits=stats.hits,
                stale_hits=stats.stale_hits,
                misses=stats.misses,
                dedups=stats.dedups,
                fetches=stats.fetches,
                errors=stats.errors,
                total_fetch_latency=stats.total_fetch_latency,
            )

    def reset(self) -> None:
        """Reseta todas as estatísticas."""
        with self._lock:
            self._overall = CacheStats()
            self._by_identifier.clear()
