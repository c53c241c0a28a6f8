"""Registro de fetches em andamento (deduplicação de requisições)."""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class PendingRegistry:
    """Mapa identificador -> task de fetch em andamento.

    Requisições não forçadas para um identificador com task registrada
    aguardam essa task em vez de abrir outra conexão. Um refresh forçado
    registra uma task nova por cima da anterior (last writer wins); quando
    a anterior termina, ``release`` não remove a nova porque compara
    identidade.

    Exemplo:
        ```python
        registry = PendingRegistry()

        task = registry.join("/engineers")
        if task is None:
            task = asyncio.create_task(transport.get_json("/engineers"))
            registry.register("/engineers", task)
            task.add_done_callback(lambda t: registry.release("/engineers", t))
        result = await asyncio.shield(task)
        ```
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}

    @property
    def count(self) -> int:
        """Número de fetches em andamento."""
        return len(self._pending)

    def join(self, identifier: str) -> asyncio.Task[Any] | None:
        """Retorna a task em andamento para o identificador, sem alterar nada."""
        return self._pending.get(identifier)

    def is_pending(self, identifier: str) -> bool:
        return identifier in self._pending

    def register(self, identifier: str, task: asyncio.Task[Any]) -> None:
        """Instala a task para o identificador, sobrescrevendo a anterior."""
        previous = self._pending.get(identifier)
        if previous is not None and previous is not task:
            logger.debug(f"Fetch pendente substituído para: {identifier}")
        self._pending[identifier] = task

    def release(self, identifier: str, task: asyncio.Task[Any]) -> bool:
        """Remove o mapeamento só se a task registrada for a mesma.

        Returns:
            True se removido
        """
        if self._pending.get(identifier) is task:
            del self._pending[identifier]
            return True
        return False

    def evict(self, identifier: str | None = None) -> int:
        """Esquece fetches pendentes sem cancelá-los.

        Quem já aguarda a task continua recebendo o resultado; apenas
        novas requisições deixam de ser deduplicadas contra ela.

        Returns:
            Número de mapeamentos removidos
        """
        if identifier is None:
            count = len(self._pending)
            self._pending.clear()
            return count
        return 1 if self._pending.pop(identifier, None) is not None else 0
