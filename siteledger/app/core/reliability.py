"""
Reliability utilities.

Circuit breaker guarding calls to external services (the attendance feed).
"""

import time
import logging
from typing import Callable, Any

from siteledger.app.core.config import settings

logger = logging.getLogger("siteledger.reliability")


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker.

    After ``failure_threshold`` consecutive failures the circuit opens and
    rejects calls for ``reset_timeout`` seconds. The first call after that is
    a trial (HALF_OPEN): success closes the circuit, failure reopens it.
    """

    def __init__(self, name: str, failure_threshold: int = 5, reset_timeout: float = 60, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.clock = clock
        self.failures = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if self.clock() - self.last_failure_time >= self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        if self.state == "HALF_OPEN" or self.failures:
            self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = self.clock()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit opened", extra={"circuit": self.name, "failures": self.failures})
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


# Shared breaker for the attendance/earnings feed
attendance_feed_breaker = CircuitBreaker(
    "attendance_feed",
    failure_threshold=settings.attendance_feed_failure_threshold,
    reset_timeout=settings.attendance_feed_reset_seconds,
)
