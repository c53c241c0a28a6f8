"""fetch-cache: cache de respostas e deduplicação de requisições para asyncio.

Cache em memória de endpoints JSON com stale-while-revalidate, fetches
concorrentes colapsados em uma única chamada de rede e refresh com
debounce disparado por sinais de invalidação.

Uso básico:
    ```python
    from fetch_cache import FetchCacheService, Transform

    service = FetchCacheService()

    session = service.attach("/engineers")
    await session.drain()
    session.data, session.loading, session.error

    # Transform com tag estável (faz parte da chave do cache)
    active = service.attach(
        "/engineers",
        transform=Transform(lambda rows: [r for r in rows if r["active"]], tag="active-v1"),
        invalidation_signal="engineers-changed",
    )

    service.emit("engineers-changed")
    await active.refetch()
    ```

Com métricas OpenTelemetry:
    ```python
    from fetch_cache import FetchCacheService, OpenTelemetryMetrics

    service = FetchCacheService(metrics=OpenTelemetryMetrics())
    ```
"""

__version__ = "0.1.0"

# Cancelamento
from .cancellation import CancellationScope

# Debounce
from .debounce import EventDebouncer

# Exceções
from .exceptions import (
    CacheSerializationError,
    DecodeError,
    FetchCacheError,
    TransportError,
)

# Métricas
from .metrics import (
    CacheMetrics,
    CacheStats,
    IdentifierStats,
    InMemoryMetrics,
    NoOpMetrics,
    OpenTelemetryMetrics,
)

# Sessões
from .orchestrator import FetchOrchestrator, FetchState, FetchStatus, Transform

# Deduplicação
from .pending import PendingRegistry

# Agendamento
from .scheduling import (
    IdleScheduler,
    ImmediateScheduler,
    PriorityScheduler,
    Scheduler,
    create_scheduler,
)

# Serialização
from .serializer import MsgPackSerializer, Serializer

# Serviço
from .service import FetchCacheService

# Sinais
from .signals import LocalSignalChannel, SignalChannel

# Cache
from .store import CacheEntry, CacheStore

# Transporte
from .transport import HttpTransport, compose_url

__all__ = [
    # Serviço e sessões
    "FetchCacheService",
    "FetchOrchestrator",
    "FetchState",
    "FetchStatus",
    "Transform",
    # Cache e deduplicação
    "CacheEntry",
    "CacheStore",
    "PendingRegistry",
    # Transporte
    "HttpTransport",
    "compose_url",
    # Agendamento, sinais e cancelamento
    "Scheduler",
    "PriorityScheduler",
    "IdleScheduler",
    "ImmediateScheduler",
    "create_scheduler",
    "SignalChannel",
    "LocalSignalChannel",
    "EventDebouncer",
    "CancellationScope",
    # Serialização
    "MsgPackSerializer",
    "Serializer",
    # Métricas
    "CacheMetrics",
    "CacheStats",
    "IdentifierStats",
    "NoOpMetrics",
    "InMemoryMetrics",
    "OpenTelemetryMetrics",
    # Exceções
    "FetchCacheError",
    "TransportError",
    "DecodeError",
    "CacheSerializationError",
]
