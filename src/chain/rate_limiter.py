from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque


class RateLimitError(RuntimeError):
    """Raised when a non-blocking acquire would exceed the rate limit."""


@dataclass
class _WindowConfig:
    max_calls: int
    per_seconds: float


class SlidingWindowRateLimiter:
    """
    Sliding-window limiter for coroutines sharing one event loop.

    - Ensures at most `max_calls` start within any `per_seconds` window.
    - If `blocking=True`, awaits until a slot is available.
    - If `blocking=False`, raises `RateLimitError` when a slot isn't available.

    The check-and-append runs without an await in between, so no lock is needed
    on a single loop. Not safe across threads or processes.
    """

    def __init__(
        self,
        max_calls: int,
        per_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_calls <= 0:
            raise ValueError("max_calls must be > 0")
        if per_seconds <= 0:
            raise ValueError("per_seconds must be > 0")
        self._cfg = _WindowConfig(max_calls=max_calls, per_seconds=per_seconds)
        self._events: Deque[float] = deque()
        self._clock = clock
        self._sleep = sleep

    def _prune(self, now: float) -> None:
        window_start = now - self._cfg.per_seconds
        while self._events and self._events[0] <= window_start:
            self._events.popleft()

    def _next_available_delay(self, now: float) -> float:
        if len(self._events) < self._cfg.max_calls:
            return 0.0
        oldest = self._events[0]
        return max(0.0, (oldest + self._cfg.per_seconds) - now)

    def try_acquire(self) -> bool:
        now = self._clock()
        self._prune(now)
        if self._next_available_delay(now) == 0.0:
            self._events.append(now)
            return True
        return False

    async def acquire(self, *, blocking: bool = True) -> None:
        """
        Acquire a permit to proceed.

        - If `blocking`, sleeps until allowed.
        - If not, raises RateLimitError if a slot is not immediately available.
        """
        while True:
            if self.try_acquire():
                return
            if not blocking:
                raise RateLimitError("rate limit exceeded; no slot available")
            delay = self._next_available_delay(self._clock())
            await self._sleep(min(max(delay, 0.01), 1.0))
