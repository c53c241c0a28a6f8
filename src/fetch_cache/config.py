"""Configuração via variáveis de ambiente e constantes de política do cache."""

import logging
import os

logger = logging.getLogger(__name__)

# Janelas de política do cache (segundos)
VALIDITY_WINDOW_SECONDS = 5 * 60
FRESHNESS_WINDOW_SECONDS = 30

# Debounce de sinais de invalidação
DEBOUNCE_DELAY_SECONDS = 0.5

# Fallback do agendador idle
IDLE_TIMEOUT_SECONDS = 2.0

DEFAULT_API_BASE_URL = "/api"
DEFAULT_SCHEDULER = "priority"


def get_api_base_url() -> str:
    """Obtém a URL base da API.

    Usa FETCH_CACHE_API_BASE_URL quando definida (sem barra final);
    caso contrário usa o caminho relativo /api.
    """
    env_url = os.getenv("FETCH_CACHE_API_BASE_URL")
    if env_url:
        return env_url.rstrip("/")
    return DEFAULT_API_BASE_URL


def get_api_origin() -> str | None:
    """Origem usada para resolver URLs base relativas (ex: http://localhost:5000)."""
    origin = os.getenv("FETCH_CACHE_API_ORIGIN")
    return origin.rstrip("/") if origin else None


def get_scheduler_name() -> str:
    """Nome da estratégia de agendamento escolhida na inicialização."""
    return os.getenv("FETCH_CACHE_SCHEDULER", DEFAULT_SCHEDULER).strip().lower()


def get_timeout_seconds() -> float | None:
    """Timeout HTTP em segundos; None quando não configurado."""
    raw = os.getenv("FETCH_CACHE_TIMEOUT_SECONDS")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"FETCH_CACHE_TIMEOUT_SECONDS inválido: {raw!r}, ignorando")
        return None
