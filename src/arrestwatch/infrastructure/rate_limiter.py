"""
Request throttle for listing fetches.

Every request waits at least the configured minimum delay before it
starts. The delay grows while pages keep coming back blocked or failing,
and shrinks back toward the minimum once pages load cleanly again.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Optional

from arrestwatch.constants import DEFAULT_MIN_DELAY_MS, MAX_BACKOFF_DELAY_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class ThrottleConfig:
    """Configuration for the request throttle."""
    # Floor for the pre-request delay (seconds)
    min_delay: float = DEFAULT_MIN_DELAY_MS / 1000

    # Ceiling for the pre-request delay (seconds)
    max_delay: float = MAX_BACKOFF_DELAY_SECONDS

    # Fraction of failed outcomes in the window that triggers backoff
    error_rate_threshold: float = 0.1

    # Outcomes considered when adjusting
    window_size: int = 10

    # Delay multiplier applied while failures exceed the threshold
    error_backoff_multiplier: float = 2.0

    # Delay multiplier applied after a clean window
    success_recovery_multiplier: float = 0.8

    @classmethod
    def from_min_delay_ms(cls, min_delay_ms: int) -> "ThrottleConfig":
        return cls(min_delay=min_delay_ms / 1000)


@dataclass
class ThrottleMetrics:
    """Snapshot of throttle state."""
    current_delay: float
    error_rate: float
    outcomes_in_window: int
    total_requests: int
    total_failures: int
    total_blocked: int
    total_wait_time: float
    last_request_time: Optional[datetime]


@dataclass
class RequestOutcome:
    """One finished request."""
    timestamp: datetime
    duration: float  # seconds
    success: bool
    blocked: bool = False


class RequestThrottle:
    """
    Paces requests with a minimum delay that adapts to failures.

    Usage:
        throttle = RequestThrottle(ThrottleConfig.from_min_delay_ms(750))

        await throttle.wait()
        ...
        throttle.record_outcome(duration, success=True)
    """

    def __init__(self, config: Optional[ThrottleConfig] = None):
        self.config = config or ThrottleConfig()

        self._current_delay = self.config.min_delay
        self._last_request_time: Optional[float] = None
        self._outcomes: Deque[RequestOutcome] = deque(maxlen=self.config.window_size)
        self._lock = asyncio.Lock()

        self._total_requests = 0
        self._total_failures = 0
        self._total_blocked = 0
        self._total_wait_time = 0.0

    async def wait(self) -> float:
        """
        Sleep the current delay before a request.

        Returns:
            Time waited (seconds)
        """
        async with self._lock:
            wait_time = self._current_delay
            if wait_time > 0:
                await asyncio.sleep(wait_time)
                self._total_wait_time += wait_time
            self._last_request_time = time.time()
            return wait_time

    def record_outcome(self, duration: float, success: bool = True, blocked: bool = False) -> None:
        """
        Record a finished request and adjust the delay.

        Args:
            duration: Time the page handler took (seconds)
            success: Whether the page was processed
            blocked: Whether the page stayed behind a challenge
        """
        self._outcomes.append(
            RequestOutcome(
                timestamp=datetime.now(),
                duration=duration,
                success=success and not blocked,
                blocked=blocked,
            )
        )
        self._total_requests += 1
        if not success or blocked:
            self._total_failures += 1
        if blocked:
            self._total_blocked += 1

        self._adjust_delay()

    def _adjust_delay(self) -> None:
        recent = list(self._outcomes)
        failures = sum(1 for o in recent if not o.success)
        error_rate = failures / len(recent)

        new_delay = self._current_delay
        last = recent[-1]

        if not last.success and error_rate > self.config.error_rate_threshold:
            new_delay = max(new_delay, self.config.min_delay) * self.config.error_backoff_multiplier
            logger.debug(
                f"Throttle: failures high ({error_rate:.0%}), backing off to {new_delay:.2f}s"
            )
        elif last.success and new_delay > self.config.min_delay:
            new_delay *= self.config.success_recovery_multiplier
            logger.debug(f"Throttle: page succeeded, recovering to {new_delay:.2f}s")

        self._current_delay = max(self.config.min_delay, min(self.config.max_delay, new_delay))

    def get_metrics(self) -> ThrottleMetrics:
        recent = list(self._outcomes)
        failures = sum(1 for o in recent if not o.success)
        return ThrottleMetrics(
            current_delay=self._current_delay,
            error_rate=failures / len(recent) if recent else 0.0,
            outcomes_in_window=len(recent),
            total_requests=self._total_requests,
            total_failures=self._total_failures,
            total_blocked=self._total_blocked,
            total_wait_time=self._total_wait_time,
            last_request_time=datetime.fromtimestamp(self._last_request_time)
            if self._last_request_time else None,
        )

    def reset(self) -> None:
        """Reset the throttle to its initial state."""
        self._current_delay = self.config.min_delay
        self._last_request_time = None
        self._outcomes.clear()
        self._total_requests = 0
        self._total_failures = 0
        self._total_blocked = 0
        self._total_wait_time = 0.0

    @property
    def current_delay(self) -> float:
        return self._current_delay
