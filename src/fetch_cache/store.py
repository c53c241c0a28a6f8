"""Cache em memória de respostas de endpoints com política de frescor e validade."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import FRESHNESS_WINDOW_SECONDS, VALIDITY_WINDOW_SECONDS
from .exceptions import CacheSerializationError
from .metrics import CacheMetrics, NoOpMetrics
from .serializer import MsgPackSerializer, Serializer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Entrada devolvida por CacheStore.read.

    Attributes:
        value: Cópia do snapshot, ou o próprio objeto gravado quando não há snapshot
        captured_at: Instante (relógio do store) em que o valor foi gravado
        transform_tag: Versão do transform que produziu o valor
    """

    value: Any
    captured_at: float
    transform_tag: str | None = None

    def age(self, now: float) -> float:
        return now - self.captured_at


@dataclass(frozen=True)
class _StoredEntry:
    payload: bytes | None
    value: Any
    captured_at: float
    transform_tag: str | None


class CacheStore:
    """Mapa identificador -> entrada com carimbo de tempo.

    Uma entrada é válida enquanto ``idade < validity_window`` e fresca
    enquanto ``idade < freshness_window``. Entradas expiradas ou gravadas
    com outro transform_tag são removidas na leitura.

    Valores que o serializer representa sem perda ficam como snapshot e
    cada leitura devolve uma cópia nova. Os demais (sets, tuplas, objetos
    de domínio) são guardados como o próprio objeto, substituído inteiro
    a cada escrita.

    Não há lock: todas as operações são síncronas e rodam no mesmo event loop.

    Example:
        ```python
        store = CacheStore()
        store.write("/engineers", [{"id": 1}], None)
        entry = store.read("/engineers", None)
        if entry and not store.is_fresh(entry):
            ...  # revalidar em background
        ```
    """

    def __init__(
        self,
        validity_window: float = VALIDITY_WINDOW_SECONDS,
        freshness_window: float = FRESHNESS_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        serializer: Serializer | None = None,
        metrics: CacheMetrics | None = None,
    ) -> None:
        """Inicializa o store.

        Args:
            validity_window: Idade máxima (segundos) de uma entrada servível
            freshness_window: Idade abaixo da qual não há revalidação
            clock: Fonte de tempo monotônica
            serializer: Serializer de snapshots (default: MsgPackSerializer)
            metrics: Coletor de métricas (default: NoOpMetrics)

        Raises:
            ValueError: Se as janelas forem inconsistentes
        """
        if validity_window <= 0 or freshness_window < 0:
            raise ValueError("Janelas de cache devem ser positivas")
        if freshness_window > validity_window:
            raise ValueError("freshness_window não pode exceder validity_window")

        self._validity_window = validity_window
        self._freshness_window = freshness_window
        self._clock = clock
        self._serializer = serializer or MsgPackSerializer()
        self._metrics = metrics or NoOpMetrics()
        self._entries: dict[str, _StoredEntry] = {}

    @property
    def size(self) -> int:
        """Número de entradas armazenadas (inclusive as ainda não despejadas)."""
        return len(self._entries)

    def now(self) -> float:
        return self._clock()

    def read(self, identifier: str, transform_tag: str | None) -> CacheEntry | None:
        """Lê entrada utilizável para o identificador.

        Returns:
            CacheEntry ou None se ausente, expirada ou de outro transform
        """
        stored = self._entries.get(identifier)
        if stored is None:
            return None

        if self._clock() - stored.captured_at >= self._validity_window:
            logger.debug(f"Entrada expirada removida: {identifier}")
            del self._entries[identifier]
            return None

        if stored.transform_tag != transform_tag:
            logger.debug(
                f"Transform divergente para {identifier}: {stored.transform_tag!r} != {transform_tag!r}"
            )
            del self._entries[identifier]
            return None

        try:
            value = self._materialize(stored)
        except CacheSerializationError as e:
            logger.warning(f"Snapshot ilegível para {identifier}, removendo: {e}")
            self._metrics.record_error(identifier, e)
            del self._entries[identifier]
            return None

        return CacheEntry(value=value, captured_at=stored.captured_at, transform_tag=stored.transform_tag)

    def peek(self, identifier: str) -> CacheEntry | None:
        """Lookup sem aplicar política de validade nem de transform."""
        stored = self._entries.get(identifier)
        if stored is None:
            return None
        return CacheEntry(
            value=self._materialize(stored),
            captured_at=stored.captured_at,
            transform_tag=stored.transform_tag,
        )

    def write(self, identifier: str, value: Any, transform_tag: str | None) -> None:
        """Sobrescreve a entrada do identificador com ``captured_at = agora``."""
        payload = self._snapshot(identifier, value)
        self._entries[identifier] = _StoredEntry(
            payload=payload,
            value=None if payload is not None else value,
            captured_at=self._clock(),
            transform_tag=transform_tag,
        )
        if payload is not None:
            logger.debug(f"Cache set para {identifier} ({len(payload)} bytes)")
        else:
            logger.debug(f"Cache set para {identifier} (objeto {type(value).__name__})")

    def _snapshot(self, identifier: str, value: Any) -> bytes | None:
        """Snapshot do valor, ou None quando o serializer não o representa sem perda."""
        try:
            payload = self._serializer.serialize(value)
            restored = self._serializer.deserialize(payload)
        except CacheSerializationError as e:
            logger.debug(f"Sem snapshot para {identifier}, guardando objeto: {e}")
            return None
        if restored != value:
            logger.debug(f"Snapshot com perda para {identifier}, guardando objeto")
            return None
        return payload

    def _materialize(self, stored: _StoredEntry) -> Any:
        if stored.payload is None:
            return stored.value
        return self._serializer.deserialize(stored.payload)

    def evict(self, identifier: str | None = None) -> int:
        """Remove uma entrada ou todas.

        Returns:
            Número de entradas removidas
        """
        if identifier is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        return 1 if self._entries.pop(identifier, None) is not None else 0

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.age(self._clock()) < self._freshness_window
