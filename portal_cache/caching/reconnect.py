"""Bounded reconnection policy and connection state machine for the cache client.

The cache is an optimization, so reconnection gives up after a fixed number of
attempts or an hour of cumulative retrying. Once ``FAILED`` the state machine
stays there; recovering requires a new state machine (``RedisCacheClient.reset``).
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from ..constants import CONSTANTS
from .base import ConnectionState

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconnectPolicy:
    """Linear backoff with a cap and two abort conditions."""

    delay_step_ms: int = CONSTANTS.RECONNECT_DELAY_STEP_MS
    max_delay_ms: int = CONSTANTS.RECONNECT_MAX_DELAY_MS
    max_attempts: int = CONSTANTS.RECONNECT_MAX_ATTEMPTS
    max_total_retry_seconds: float = CONSTANTS.RECONNECT_MAX_TOTAL_SECONDS

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.delay_step_ms <= 0:
            raise ValueError("delay_step_ms must be positive")
        if self.max_delay_ms < self.delay_step_ms:
            raise ValueError("max_delay_ms must be at least delay_step_ms")
        if self.max_attempts < 0:
            raise ValueError("max_attempts cannot be negative")
        if self.max_total_retry_seconds <= 0:
            raise ValueError("max_total_retry_seconds must be positive")

    def calculate_delay(self, attempt: int) -> float:
        """Calculate the delay before retry number ``attempt`` (1-indexed).

        Returns:
            Delay in seconds
        """
        delay_ms = min(attempt * self.delay_step_ms, self.max_delay_ms)
        return delay_ms / CONSTANTS.MS_PER_SECOND

    def should_abort(self, attempt: int, elapsed_seconds: float) -> bool:
        """Whether retrying must stop after failure number ``attempt``."""
        return attempt > self.max_attempts or elapsed_seconds > self.max_total_retry_seconds


class ConnectionStateMachine:
    """Tracks connection state and retry bookkeeping for one client.

    All mutation goes through the lock, so the reconnect task and operations
    reporting transport errors can race safely. Nothing outside the owning
    client mutates it; others read ``state`` or ``snapshot()``.
    """

    def __init__(
        self,
        policy: ReconnectPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "redis",
    ):
        self.policy = policy or ReconnectPolicy()
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()

        self._state = ConnectionState.CONNECTING
        self._attempt = 0
        self._retry_started_at: float | None = None
        self._last_error: str | None = None

        logger.info("Cache connection connecting", name=self.name)

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def attempt(self) -> int:
        with self._lock:
            return self._attempt

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def is_failed(self) -> bool:
        return self.state is ConnectionState.FAILED

    def mark_connecting(self) -> None:
        """Record that a connection attempt is in progress."""
        with self._lock:
            if self._state in (ConnectionState.FAILED, ConnectionState.CONNECTING):
                return
            previous = self._state
            self._state = ConnectionState.CONNECTING

        logger.info(
            "Cache connection connecting",
            name=self.name,
            previous_state=previous.value,
            attempt=self.attempt,
        )

    def mark_connected(self) -> None:
        """Record a successful connection and reset retry bookkeeping."""
        with self._lock:
            if self._state is ConnectionState.FAILED:
                return
            previous = self._state
            self._state = ConnectionState.CONNECTED
            attempts = self._attempt
            self._attempt = 0
            self._retry_started_at = None
            self._last_error = None

        logger.info(
            "Cache connection established",
            name=self.name,
            previous_state=previous.value,
            attempts=attempts,
        )

    def record_failure(self, error: BaseException) -> float | None:
        """Record a transport failure and decide whether to retry.

        Args:
            error: The failure that ended the last connection attempt

        Returns:
            Delay in seconds before the next attempt, or None once ``FAILED``
        """
        with self._lock:
            if self._state is ConnectionState.FAILED:
                return None

            now = self._clock()
            if self._retry_started_at is None:
                self._retry_started_at = now
            self._attempt += 1
            self._last_error = str(error)
            attempt = self._attempt
            elapsed = now - self._retry_started_at

            if self.policy.should_abort(attempt, elapsed):
                self._state = ConnectionState.FAILED
                delay = None
            else:
                self._state = ConnectionState.RETRYING
                delay = self.policy.calculate_delay(attempt)

        if delay is None:
            logger.error(
                "Cache connection retries exhausted",
                name=self.name,
                attempts=attempt,
                elapsed_seconds=round(elapsed, 3),
                error=str(error),
            )
        else:
            logger.warning(
                "Cache connection error, retrying",
                name=self.name,
                attempt=attempt,
                delay=delay,
                error=str(error),
            )
        return delay

    def snapshot(self) -> dict[str, Any]:
        """Read-only view of the current state for stats and health output."""
        with self._lock:
            elapsed = (
                self._clock() - self._retry_started_at
                if self._retry_started_at is not None
                else 0.0
            )
            return {
                "state": self._state.value,
                "attempt": self._attempt,
                "retry_elapsed_seconds": round(elapsed, 3),
                "last_error": self._last_error,
            }
