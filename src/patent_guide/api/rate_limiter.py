"""Sliding-window rate limiting for the HTTP surface."""

import asyncio
import time
from collections import deque
from typing import Deque, Dict, Optional

from fastapi import Request
from structlog import get_logger

logger = get_logger()


class RateLimitExceeded(Exception):
    """Raised when a client has used up its window."""


class RateLimiter:
    """Per-key sliding window: at most ``rate_limit`` hits per ``time_window`` seconds."""

    def __init__(self, rate_limit: int = 50, time_window: int = 60):
        self.rate_limit = rate_limit
        self.time_window = time_window
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = time.monotonic()
        logger.info("rate_limiter_initialized", rate_limit=rate_limit, time_window=time_window)

    def _trim(self, key: str, now: float) -> Deque[float]:
        """Drop expired hits for ``key``; empty windows are removed from the map."""
        window = self._windows.get(key)
        if window is None:
            return deque()
        while window and now - window[0] >= self.time_window:
            window.popleft()
        if not window:
            del self._windows[key]
        return window

    def _sweep(self, now: float) -> None:
        """Evict every expired window, at most once per ``time_window``."""
        if now - self._last_sweep < self.time_window:
            return
        for key in list(self._windows):
            self._trim(key, now)
        self._last_sweep = now

    async def check_rate_limit(self, key: str) -> None:
        now = time.monotonic()
        async with self._lock:
            self._sweep(now)
            window = self._trim(key, now)
            if len(window) >= self.rate_limit:
                logger.warning(
                    "rate_limit_exceeded",
                    key=key,
                    current_requests=len(window),
                    rate_limit=self.rate_limit,
                )
                raise RateLimitExceeded(
                    f"Rate limit of {self.rate_limit} requests per {self.time_window} seconds exceeded"
                )
            window.append(now)
            self._windows[key] = window

    async def get_remaining_requests(self, key: str) -> int:
        async with self._lock:
            window = self._trim(key, time.monotonic())
            return max(0, self.rate_limit - len(window))

    @property
    def tracked_keys(self) -> int:
        return len(self._windows)

    def reset(self) -> None:
        self._windows.clear()
        self._last_sweep = time.monotonic()


async def rate_limit_middleware(request: Request, rate_limiter: Optional[RateLimiter] = None) -> None:
    """Charge the request against its ``client-ip:path`` window."""
    if rate_limiter is None:
        return
    client_ip = request.client.host if request.client else "unknown"
    await rate_limiter.check_rate_limit(f"{client_ip}:{request.url.path}")
