"""
Publish-side circuit breaker and retry backoff for Redis fan-out.

The breaker counts publishes that exhausted their retries. Once
``failure_threshold`` of them happen in a row it stays open for
``cooldown_seconds``; after that a single trial publish is let through
and its outcome decides whether the breaker closes or re-opens.
"""

from __future__ import annotations

import random
import threading
import time
from enum import Enum
from typing import Callable

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)

MAX_RETRY_DELAY = 10.0


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class EventCircuitBreaker:
    """Thread-safe breaker; state is derived from the cooldown deadline."""

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._open_until: float | None = None
        self._trial_running = False
        self._skipped = 0

    def _state_locked(self) -> CircuitState:
        if self._open_until is None:
            return CircuitState.CLOSED
        if self._clock() < self._open_until:
            return CircuitState.OPEN
        return CircuitState.HALF_OPEN

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state_locked()

    def allow_publish(self) -> bool:
        """False while open, or while the half-open trial is still running."""
        with self._lock:
            state = self._state_locked()
            if state == CircuitState.CLOSED:
                return True
            if state == CircuitState.HALF_OPEN and not self._trial_running:
                self._trial_running = True
                return True
            self._skipped += 1
            return False

    def record_success(self) -> None:
        with self._lock:
            if self._open_until is not None:
                logger.info("Event publishing recovered")
            self._consecutive_failures = 0
            self._open_until = None
            self._trial_running = False

    def record_failure(self) -> None:
        with self._lock:
            self._consecutive_failures += 1
            trial_failed = self._trial_running
            self._trial_running = False
            if trial_failed or self._consecutive_failures >= self.failure_threshold:
                self._open_until = self._clock() + self.cooldown_seconds
                logger.error(
                    "Event publishing suspended",
                    consecutive_failures=self._consecutive_failures,
                    cooldown_seconds=self.cooldown_seconds,
                )

    def reset(self) -> None:
        with self._lock:
            self._consecutive_failures = 0
            self._open_until = None
            self._trial_running = False
            self._skipped = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "state": self._state_locked().value,
                "consecutive_failures": self._consecutive_failures,
                "skipped_publishes": self._skipped,
            }


_breaker: EventCircuitBreaker | None = None
_breaker_lock = threading.Lock()


def get_event_circuit_breaker() -> EventCircuitBreaker:
    global _breaker
    with _breaker_lock:
        if _breaker is None:
            _breaker = EventCircuitBreaker(
                failure_threshold=settings.redis_publish_max_retries + 2,
            )
        return _breaker


def calculate_retry_delay_with_jitter(attempt: int, base_delay: float = 0.5) -> float:
    """
    Full-jitter backoff: uniform in [0, base_delay * 2**attempt], capped.

    ``attempt`` is 0 for the first retry.
    """
    ceiling = min(base_delay * (2 ** attempt), MAX_RETRY_DELAY)
    return random.uniform(0, ceiling)
