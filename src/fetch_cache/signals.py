"""Canal publish/subscribe de sinais de invalidação."""

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

SignalHandler = Callable[[], None]


class SignalChannel(Protocol):
    """Protocol para canais de sinais nomeados.

    Um sinal não carrega payload: só a ocorrência importa.
    """

    def subscribe(self, name: str, handler: SignalHandler) -> Callable[[], None]:
        """Inscreve handler no sinal; retorna função que cancela a inscrição."""
        ...

    def emit(self, name: str) -> int:
        """Emite o sinal; retorna quantos handlers foram notificados."""
        ...


class LocalSignalChannel:
    """Canal em memória, síncrono, para um único processo.

    Example:
        ```python
        channel = LocalSignalChannel()
        unsubscribe = channel.subscribe("engineers-changed", on_change)
        channel.emit("engineers-changed")
        unsubscribe()
        ```
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[SignalHandler]] = defaultdict(list)

    def subscribe(self, name: str, handler: SignalHandler) -> Callable[[], None]:
        if not name:
            raise ValueError("Nome do sinal não pode ser vazio")
        self._handlers[name].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(name)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._handlers[name]

        return unsubscribe

    def emit(self, name: str) -> int:
        handlers = list(self._handlers.get(name, ()))
        for handler in handlers:
            try:
                handler()
            except Exception as e:
                logger.warning(f"Handler do sinal {name!r} falhou: {e}")
        return len(handlers)

    def subscriber_count(self, name: str) -> int:
        return len(self._handlers.get(name, ()))
