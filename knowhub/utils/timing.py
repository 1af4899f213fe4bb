"""
Stage timing for the search pipeline.

    timings: dict[str, float] = {}
    async with Timer("embed", sink=timings):
        vector = await embedder.embed(query)
    # timings == {"embed": 12.3}   (milliseconds)

``timed`` wraps a whole coroutine function the same way.
"""

from __future__ import annotations

import inspect
import functools
import time
from typing import Any, Callable

from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.timing")


class Timer:
    """Context-manager timer (sync + async) that logs and optionally records."""

    def __init__(self, label: str = "", sink: dict[str, float] | None = None):
        self.label = label
        self.sink = sink
        self._start: float = 0.0
        self.elapsed_s: float = 0.0

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed_s * 1000

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *_: Any) -> None:
        self.elapsed_s = time.perf_counter() - self._start
        if not self.label:
            return
        if self.sink is not None:
            self.sink[self.label] = round(self.elapsed_ms, 1)
        logger.debug("%s completed in %.1fms", self.label, self.elapsed_ms)

    async def __aenter__(self) -> "Timer":
        return self.__enter__()

    async def __aexit__(self, *exc: Any) -> None:
        self.__exit__(*exc)


def timed(label: str | None = None) -> Callable:
    """Log the wall-clock time of every call to the wrapped coroutine function."""

    def decorator(fn: Callable) -> Callable:
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"timed() wraps coroutine functions, got {fn!r}")
        _label = label or fn.__qualname__

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async with Timer(_label):
                return await fn(*args, **kwargs)

        return wrapper

    return decorator
