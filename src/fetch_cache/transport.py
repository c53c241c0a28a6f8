"""Transporte HTTP: composição de URL, GET e decodificação JSON."""

import asyncio
import logging
from typing import Any

import httpx

from .config import get_api_base_url, get_api_origin
from .exceptions import DecodeError, TransportError

logger = logging.getLogger(__name__)

_ABSOLUTE_PREFIXES = ("http://", "https://")


def compose_url(identifier: str, base_url: str) -> str:
    """Monta a URL alvo de um identificador.

    URLs absolutas passam direto; caminhos relativos são concatenados
    à URL base com uma única barra entre eles.
    """
    if identifier.startswith(_ABSOLUTE_PREFIXES):
        return identifier
    path = identifier if identifier.startswith("/") else f"/{identifier}"
    return f"{base_url.rstrip('/')}{path}"


class HttpTransport:
    """GET JSON sobre httpx.AsyncClient.

    O cliente é criado sob demanda. Quando a URL base é relativa
    (default ``/api``), ``origin`` é usado como ``base_url`` do cliente
    para resolvê-la.

    Attributes:
        base_url: URL base para identificadores relativos
        timeout: Timeout HTTP em segundos (None = sem timeout)
    """

    def __init__(
        self,
        base_url: str | None = None,
        origin: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Inicializa o transporte.

        Args:
            base_url: URL base (usa FETCH_CACHE_API_BASE_URL se não fornecida)
            origin: Origem do cliente HTTP (usa FETCH_CACHE_API_ORIGIN se não fornecida)
            timeout: Timeout das requisições; None desativa
            transport: Transporte httpx customizado (ex: httpx.MockTransport)
        """
        self._base_url = (base_url or get_api_base_url()).rstrip("/")
        self._origin = origin if origin is not None else get_api_origin()
        self._timeout = timeout
        self._transport = transport

        self._client: httpx.AsyncClient | None = None
        # asyncio.Lock é criado lazy para evitar "no current event loop"
        # quando o transporte é instanciado antes de existir um event loop
        self._client_lock: asyncio.Lock | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_lock(self) -> asyncio.Lock:
        if self._client_lock is None:
            self._client_lock = asyncio.Lock()
        return self._client_lock

    async def _get_client(self) -> httpx.AsyncClient:
        """Obtém ou cria o cliente HTTP (double-checked locking)."""
        if self._client is None:
            async with self._get_lock():
                if self._client is None:
                    kwargs: dict[str, Any] = {"timeout": self._timeout}
                    if self._origin:
                        kwargs["base_url"] = self._origin
                    if self._transport is not None:
                        kwargs["transport"] = self._transport
                    self._client = httpx.AsyncClient(**kwargs)
        return self._client

    def url_for(self, identifier: str) -> str:
        return compose_url(identifier, self._base_url)

    async def get_json(self, identifier: str) -> Any:
        """Executa GET e devolve o corpo JSON decodificado.

        Raises:
            TransportError: Falha de rede ou status fora de 2xx
            DecodeError: Corpo não é JSON válido
        """
        url = self.url_for(identifier)
        client = await self._get_client()

        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout ao buscar {url}: {e}", identifier=identifier) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Falha de rede ao buscar {url}: {e}", identifier=identifier) from e

        if not response.is_success:
            raise TransportError(
                f"Erro HTTP! status: {response.status_code}",
                identifier=identifier,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Resposta inválida de {url}: {e}", identifier=identifier) from e

    async def aclose(self) -> None:
        """Fecha o cliente HTTP."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
