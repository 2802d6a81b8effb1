"""Retry wrapper for external delivery calls."""

from __future__ import annotations

import asyncio
import logging
import random
import socket
from typing import Awaitable, Callable, TypeVar

from gridscout.core.config import RetryConfig
from gridscout.core.errors import DeliveryFailed

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

TRANSIENT_STATUSES = {408, 429}
TRANSIENT_CODES = {
    "ECONNRESET",
    "ECONNREFUSED",
    "ETIMEDOUT",
    "EAI_AGAIN",
    "UND_ERR_CONNECT_TIMEOUT",
    "UND_ERR_HEADERS_TIMEOUT",
}


def is_transient_error(error: BaseException) -> bool:
    """Classify a delivery failure as worth retrying.

    HTTP-like ``status`` attributes win: 5xx, 429 and 408 are transient,
    every other status is not. Without a status, known connection error
    codes and connection/timeout exceptions are transient.
    """

    status = getattr(error, "status", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status >= 500 or status in TRANSIENT_STATUSES

    code = getattr(error, "code", None)
    if isinstance(code, str) and code in TRANSIENT_CODES:
        return True

    if isinstance(error, socket.gaierror):
        return error.errno == socket.EAI_AGAIN
    return isinstance(error, (ConnectionResetError, ConnectionRefusedError, TimeoutError, asyncio.TimeoutError))


def backoff_delay(attempt: int, config: RetryConfig, rng: Callable[[], float] = random.random) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""

    return config.base_delay * 2 ** (attempt - 1) + rng() * config.max_jitter


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    config: RetryConfig = RetryConfig(),
    *,
    sleep: Sleep = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> T:
    """Run ``operation`` with exponential backoff on transient failures.

    Raises ``DeliveryFailed`` once attempts are exhausted or on the first
    non-transient failure.
    """

    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:  # noqa: BLE001 - classified below
            if attempt >= config.max_attempts or not is_transient_error(exc):
                raise DeliveryFailed(operation_name, exc) from exc
            delay = backoff_delay(attempt, config, rng)
            LOGGER.info(
                "%s failed (attempt %d/%d), retrying in %.3fs: %s",
                operation_name,
                attempt,
                config.max_attempts,
                delay,
                exc,
            )
            await sleep(delay)

