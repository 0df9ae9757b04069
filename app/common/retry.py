"""
Reintento con backoff exponencial para errores de rate limit.
"""
import logging
import time
from typing import Callable, Optional, TypeVar

from app.common.errors import is_rate_limit_error
from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(
    operation: Callable[[], T],
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """
    Ejecutar `operation` reintentando solo cuando el error es de rate limit.

    La espera es base_delay * 2 ** (intento - 1). Cualquier otro error, o el
    último intento, se propaga sin cambios.
    """
    max_retries = max_retries or settings.RETRY_MAX_ATTEMPTS
    base_delay = settings.RETRY_BASE_DELAY if base_delay is None else base_delay

    for attempt in range(1, max_retries + 1):
        try:
            return operation()
        except Exception as exc:
            if not is_rate_limit_error(exc) or attempt == max_retries:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"Rate limited, waiting {delay}s before retry {attempt + 1}/{max_retries}")
            sleep(delay)

    raise RuntimeError("Max retries exceeded")

