"""Input hygiene and rate limiting for calls to external services."""

from __future__ import annotations

import re
import threading
import time

from memoir.utils.exceptions import RateLimiterConfigurationError

CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_input(text: str) -> str:
    """Remove control characters that can break terminal logs or JSON."""
    return CONTROL_CHARS_RE.sub("", text)


class RateLimiter:
    """Simple token bucket rate limiter to guard API usage."""

    def __init__(self, rate: int, per: float = 60.0) -> None:
        if rate <= 0:
            raise RateLimiterConfigurationError("rate must be positive")
        if per <= 0:
            raise RateLimiterConfigurationError("per must be positive")
        self._rate = rate
        self._per = per
        self._allowance = float(rate)
        self._last_check = time.monotonic()
        self._lock = threading.Lock()

    def acquire(self) -> None:
        with self._lock:
            current = time.monotonic()
            time_passed = current - self._last_check
            self._last_check = current
            self._allowance += time_passed * (self._rate / self._per)
            if self._allowance > self._rate:
                self._allowance = float(self._rate)
            if self._allowance < 1.0:
                sleep_time = (1.0 - self._allowance) * (self._per / self._rate)
                time.sleep(sleep_time)
                self._allowance = 0.0
                self._last_check = time.monotonic()
            else:
                self._allowance -= 1.0


__all__ = ["RateLimiter", "sanitize_input"]
