"""
Single-value TTL holder used by the global feature generators.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable


class FeatureCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Any | None = None
        self._generated_at: float | None = None
        self._lock = threading.Lock()

    def get(self) -> Any | None:
        with self._lock:
            if self._generated_at is None:
                return None
            if self._clock() - self._generated_at >= self.ttl_seconds:
                self._value = None
                self._generated_at = None
                return None
            return self._value

    def set(self, value: Any) -> None:
        with self._lock:
            self._value = value
            self._generated_at = self._clock()

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._generated_at = None
