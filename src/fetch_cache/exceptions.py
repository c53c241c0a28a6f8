"""Exceções do fetch-cache."""


class FetchCacheError(Exception):
    """Erro base para operações de fetch e cache."""

    def __init__(self, message: str, identifier: str | None = None) -> None:
        self.identifier = identifier
        super().__init__(message)


class TransportError(FetchCacheError):
    """Falha de rede ou resposta HTTP fora da faixa 2xx."""

    def __init__(
        self,
        message: str,
        identifier: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, identifier=identifier)


class DecodeError(FetchCacheError):
    """Corpo da resposta não é JSON válido."""

    pass


class CacheSerializationError(FetchCacheError):
    """Valor não pode ser convertido em snapshot para o cache."""

    pass
