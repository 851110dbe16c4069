"""In-memory fixed-window rate limiter for the auth endpoints.

State is per process; keys look like "signin:<client ip>".
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

# Expired windows are dropped at most this often
SWEEP_INTERVAL_SECONDS = 60


@dataclass
class RateLimitResult:
    """Decision for one request."""

    allowed: bool
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window resets."""
        return max(1, int(self.reset_at - time.time()) + 1)


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Counts requests per key inside fixed time windows."""

    def __init__(self) -> None:
        self._windows: dict[str, _Window] = {}
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        """Count a request for key and decide whether it may proceed."""
        now = time.time()
        if now >= self._next_sweep:
            self._sweep(now)

        window = self._windows.get(key)
        if window is None or window.reset_at <= now:
            window = _Window(count=0, reset_at=now + window_seconds)
            self._windows[key] = window

        if window.count >= max_requests:
            logger.warning("rate_limit.exceeded", key=key)
            return RateLimitResult(allowed=False, remaining=0, reset_at=window.reset_at)

        window.count += 1
        return RateLimitResult(
            allowed=True,
            remaining=max_requests - window.count,
            reset_at=window.reset_at,
        )

    def _sweep(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if window.reset_at <= now]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + SWEEP_INTERVAL_SECONDS
        if expired:
            logger.debug("rate_limit.swept", expired=len(expired), remaining=len(self._windows))

    def reset(self) -> None:
        """Forget every window."""
        self._windows.clear()


rate_limiter = RateLimiter()
