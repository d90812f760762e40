"""
Request Pacing

Token bucket shared by every thread that calls the exchange. Tokens refill
continuously at ``refill_rate`` per second up to ``capacity``.
"""

import logging
import threading
import time
from typing import Callable, Optional

LOG = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket rate limiter"""

    def __init__(
        self,
        capacity: int = 5,
        refill_rate: float = 2.0,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize rate limiter.

        Args:
            capacity: Maximum burst size
            refill_rate: Tokens added per second
            clock: Monotonic time source (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        if capacity < 1 or refill_rate <= 0:
            raise ValueError("capacity must be >= 1 and refill_rate > 0")

        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._tokens = float(capacity)
        self._last_refill = self._clock()
        self._lock = threading.Lock()

    def _refill(self):
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def try_acquire(self) -> bool:
        """Take a token if one is available, without waiting"""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def acquire(self, timeout: float = 30.0) -> bool:
        """
        Take a token, waiting for a refill if necessary.

        Args:
            timeout: Maximum seconds to wait

        Returns:
            True if a token was acquired, False on timeout
        """
        deadline = self._clock() + timeout
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return True
                wait = (1.0 - self._tokens) / self.refill_rate

            if self._clock() + wait > deadline:
                LOG.warning(f"Rate limiter timeout after {timeout:.1f}s")
                return False
            self._sleep(min(wait, 0.25))

    @property
    def available(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens
