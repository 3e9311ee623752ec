"""Circuit breaker for the advisory-text collaborator.

Purpose: Stop calling a failing text service so recommendations stay fast;
the caller falls back to template text while the circuit is open.

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Collaborator failing, calls rejected immediately
- HALF_OPEN: Cooldown over, one trial call allowed
"""
import time
from enum import Enum
from typing import Any, Callable, Optional

from bankvisit.logging_config import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when the circuit is open (fail fast)."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(f"Circuit '{name}' is OPEN. Retry after {retry_after:.1f}s")
        self.retry_after = retry_after


class CircuitBreaker:
    """Counts consecutive failures of one collaborator and opens after a threshold."""

    def __init__(
        self,
        name: str = "advisory",
        failure_threshold: int = 3,
        cooldown_seconds: float = 60,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            name: Collaborator name, used in logs
            failure_threshold: Consecutive failures before opening
            cooldown_seconds: Time open before a half-open trial
            clock: Monotonic seconds source (default: time.monotonic)
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock or time.monotonic
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self._state = CircuitState.CLOSED

    @property
    def state(self) -> str:
        return self._state.value

    def _remaining_cooldown(self) -> float:
        if self.opened_at is None:
            return 0.0
        return max(0.0, self.cooldown_seconds - (self.clock() - self.opened_at))

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Run func under protection.

        Raises:
            CircuitBreakerOpen: If the circuit is open and cooling down
            Exception: Whatever func raises (counted as a failure)
        """
        if self._state == CircuitState.OPEN:
            remaining = self._remaining_cooldown()
            if remaining > 0:
                raise CircuitBreakerOpen(self.name, remaining)
            self._state = CircuitState.HALF_OPEN
            logger.info("circuit_half_open", circuit=self.name)

        try:
            result = func(*args, **kwargs)
        except Exception:
            self._record_failure()
            raise

        self._record_success()
        return result

    def _record_success(self):
        self.failure_count = 0
        if self._state == CircuitState.HALF_OPEN:
            logger.info("circuit_closed", circuit=self.name)
        self._state = CircuitState.CLOSED
        self.opened_at = None

    def _record_failure(self):
        self.failure_count += 1

        if self._state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self.opened_at = self.clock()
            logger.warning(
                "circuit_opened",
                circuit=self.name,
                failures=self.failure_count,
                cooldown_seconds=self.cooldown_seconds,
            )
