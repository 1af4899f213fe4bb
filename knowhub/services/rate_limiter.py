"""
Fixed-window request limiter keyed by client identity.

A window opens on an identity's first request and lasts
``window_seconds``; within it at most ``max_requests`` are allowed.
The window resets on expiry, never by sliding.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from knowhub.core.errors import RateLimitExceeded
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.services.rate_limiter")


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    reset_in: int


@dataclass
class _Window:
    started_at: float
    count: int = 0


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, identity: str) -> RateLimitDecision:
        """Count one request for ``identity`` and report whether it is allowed."""
        now = self._clock()
        with self._lock:
            self._prune(now)
            window = self._windows.get(identity)
            if window is None:
                window = _Window(started_at=now)
                self._windows[identity] = window

            reset_at = window.started_at + self.window_seconds
            reset_in = max(0, math.ceil(reset_at - now))

            if window.count >= self.max_requests:
                return RateLimitDecision(False, self.max_requests, 0, reset_at, reset_in)

            window.count += 1
            return RateLimitDecision(
                True,
                self.max_requests,
                self.max_requests - window.count,
                reset_at,
                reset_in,
            )

    def check(self, identity: str) -> RateLimitDecision:
        """Like ``hit`` but raises RateLimitExceeded when the budget is spent."""
        decision = self.hit(identity)
        if not decision.allowed:
            logger.info("[RATE] %s exhausted %d requests", identity, self.max_requests)
            raise RateLimitExceeded(identity, decision.limit, retry_after=decision.reset_in)
        return decision

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
