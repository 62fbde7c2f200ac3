"""Retry with exponential backoff, guarded by a circuit breaker."""

from __future__ import annotations

import logging
import threading
import time
from asyncio import sleep
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .errors import (
    BlockNotFound,
    ChainError,
    ConnectionFailed,
    IndexerError,
    InvalidConfig,
    MetadataUpdateFailed,
)

T = TypeVar("T")

log = logging.getLogger("indexer")


@dataclass
class RetryConfig:
    """How often and how patiently to retry. Delays are in seconds."""

    max_retries: int = 5
    initial_delay: float = 0.5
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0


class CircuitBreaker:
    """Opens after ``threshold`` consecutive failures and stays open for ``cooldown`` seconds."""

    def __init__(
        self,
        threshold: int,
        cooldown: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self._failures = 0
        self._open_until: float | None = None

    def is_open(self) -> bool:
        with self._lock:
            return self._open_until is not None and self._clock() < self._open_until

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._open_until = None

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._failures >= self.threshold:
                self._open_until = self._clock() + self.cooldown
                self._failures = 0


def is_retryable_error(err: BaseException) -> bool:
    """Tell whether repeating the operation that raised ``err`` may help."""
    if isinstance(err, (BlockNotFound, InvalidConfig)):
        return False
    if isinstance(err, ChainError):
        return err.retryable
    if isinstance(err, (ConnectionFailed, MetadataUpdateFailed)):
        source = err.source
        return source.retryable if isinstance(source, ChainError) else True
    return True


async def retry_with_backoff(
    op: Callable[[], Awaitable[T]],
    config: RetryConfig,
    circuit_breaker: CircuitBreaker,
) -> T:
    """Await ``op()`` until it succeeds, retrying retryable errors with backoff."""
    if config.max_retries < 1:
        raise ValueError("max_retries must be at least 1")
    delay = config.initial_delay
    attempt = 0
    while True:
        attempt += 1
        if circuit_breaker.is_open():
            raise ChainError("circuit open")
        try:
            return await op()
        except IndexerError as err:
            if not is_retryable_error(err) or attempt >= config.max_retries:
                raise
            log.warning("retrying in %.3fs after error: %s", delay, err)
            await sleep(delay)
            next_ms = int(delay * 1000 * config.backoff_multiplier)
            delay = min(next_ms / 1000, config.max_delay)