"""
Circuit breaker that stops calling a remote after repeated failures.
"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from shared.logging import get_logger

FailureClassifier = Callable[[BaseException], bool]


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenException(Exception):
    """Raised instead of calling the remote while the circuit is open."""

    def __init__(self, name: str, retry_in: float):
        super().__init__(f"Circuit breaker '{name}' is open, next attempt in {retry_in:.1f}s")
        self.name = name
        self.retry_in = retry_in


class CircuitBreaker:
    """Blocks calls to a remote that keeps failing.

    After ``failure_threshold`` consecutive failures the circuit opens and
    calls fail fast. Once ``recovery_timeout`` seconds have passed one call is
    let through (half-open): success closes the circuit, failure reopens it.

    ``is_failure`` decides which exceptions count against the remote. Errors it
    rejects still propagate, but they prove the remote is answering and reset
    the failure count like a success does.
    """

    def __init__(self,
                 failure_threshold: int = 5,
                 recovery_timeout: float = 60.0,
                 name: str = "default",
                 is_failure: Optional[FailureClassifier] = None):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.is_failure = is_failure or (lambda error: True)
        self.logger = get_logger(f"circuit_breaker.{name}")

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitBreakerState:
        if self._state == CircuitBreakerState.OPEN and self.retry_in() == 0.0:
            self._state = CircuitBreakerState.HALF_OPEN
            self.logger.info("Circuit breaker half-open, allowing a trial call")
        return self._state

    def retry_in(self) -> float:
        """Seconds until an open circuit lets a call through."""
        if self._state != CircuitBreakerState.OPEN:
            return 0.0
        return max(0.0, self._opened_at + self.recovery_timeout - time.monotonic())

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run ``func`` unless the circuit is open."""
        if self.state == CircuitBreakerState.OPEN:
            raise CircuitBreakerOpenException(self.name, self.retry_in())

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if self.is_failure(e):
                self.record_failure(e)
            else:
                self.record_success()
            raise

        self.record_success()
        return result

    def record_success(self):
        if self._state == CircuitBreakerState.HALF_OPEN:
            self.logger.info("Circuit breaker closed after successful trial call")
        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._success_count += 1

    def record_failure(self, error: Optional[BaseException] = None):
        self._failure_count += 1
        self._success_count = 0

        if self._state == CircuitBreakerState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitBreakerState.OPEN
            self._opened_at = time.monotonic()
            self.logger.warning(
                "Circuit breaker opened",
                failure_count=self._failure_count,
                threshold=self.failure_threshold,
                error=str(error) if error is not None else None
            )

    def get_state(self) -> Dict[str, Any]:
        """Snapshot of the breaker for logs and error details."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "retry_in": round(self.retry_in(), 3),
        }

    def is_open(self) -> bool:
        return self.state == CircuitBreakerState.OPEN
