"""Retry policy for talking to remote arr instances."""
import logging
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


# Transport-level failures only. HTTP status errors (remote validation,
# 404 on a stale id) are final and must reach the caller untouched.
RETRYABLE_EXCEPTIONS = (
    httpx.TransportError,
    ConnectionRefusedError,
    ConnectionResetError,
    TimeoutError,
)


def retry_policy(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> dict[str, Any]:
    """Keyword arguments for tenacity ``retry`` or ``AsyncRetrying``.

    The last exception is re-raised as-is once attempts run out.
    """
    return {
        "stop": stop_after_attempt(max(1, max_attempts)),
        "wait": wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        "retry": retry_if_exception_type(exceptions),
        "before_sleep": before_sleep_log(logger, logging.WARNING),
        "reraise": True,
    }
