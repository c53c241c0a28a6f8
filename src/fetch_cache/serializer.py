"""Snapshots de valores do cache usando MsgPack.

Valores JSON-compatíveis ficam no cache como bytes: cada leitura devolve
uma cópia nova, então um consumidor que altera o dict recebido não
contamina a entrada compartilhada.
"""

from typing import Any, Protocol

import msgpack

from .exceptions import CacheSerializationError


class Serializer(Protocol):
    """Protocol para serializers de snapshot."""

    def serialize(self, data: Any) -> bytes:
        """Converte dados em snapshot imutável."""
        ...

    def deserialize(self, data: bytes) -> Any:
        """Reconstrói uma cópia independente do snapshot."""
        ...


class MsgPackSerializer:
    """Serializer de snapshots baseado em MessagePack.

    Aceita dados compatíveis com JSON (None, bool, int, float, str,
    list, dict). Tuplas voltam como listas.
    """

    def serialize(self, data: Any) -> bytes:
        try:
            packed = msgpack.packb(data, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as e:
            raise CacheSerializationError(f"Valor não suportado no cache: {e}") from e
        if packed is None:
            raise CacheSerializationError("msgpack.packb retornou None")
        return packed

    def deserialize(self, data: bytes) -> Any:
        try:
            return msgpack.unpackb(data, raw=False, strict_map_key=False)
        except (msgpack.UnpackException, ValueError) as e:
            raise CacheSerializationError(f"Snapshot de cache corrompido: {e}") from e
