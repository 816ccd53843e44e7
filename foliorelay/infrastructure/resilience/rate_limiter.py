"""Client-side request pacing.

Keeps outgoing calls under a known per-window quota before the remote
service has to reject them with a 429. Each key (usually a provider name)
gets its own sliding window.
"""

import time
import asyncio
import logging
from collections import deque
from typing import Deque, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 20
DEFAULT_TIME_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Sliding window rate limiter keyed by provider."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        time_window: float = DEFAULT_TIME_WINDOW_SECONDS,
    ):
        """Initializes the rate limiter.

        Args:
            max_requests: Maximum number of requests allowed per key in the time window.
            time_window: The time window in seconds.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.time_window = time_window
        self._windows: Dict[str, Deque[float]] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        logger.info(f"RateLimiter initialized: {max_requests} requests / {time_window} seconds per key")

    def _loop_lock(self) -> asyncio.Lock:
        """The lock for the running event loop, created on first use inside it."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def _window(self, key: str) -> Deque[float]:
        """Returns the key's timestamps with entries older than the window removed."""
        window = self._windows.setdefault(key, deque())
        now = time.monotonic()
        while window and now - window[0] >= self.time_window:
            window.popleft()
        return window

    def _wait_needed(self, window: Deque[float]) -> float:
        if len(window) < self.max_requests:
            return 0.0
        return max(0.0, window[0] + self.time_window - time.monotonic())

    async def get_wait_time(self, key: str = "default") -> float:
        """Estimates the time needed before the next request for `key` can be made."""
        async with self._loop_lock():
            return self._wait_needed(self._window(key))

    async def wait_for_permission(self, key: str = "default") -> float:
        """Waits until a request for `key` is permitted, then records it.

        Returns:
            Total seconds spent waiting.
        """
        waited = 0.0
        while True:
            async with self._loop_lock():
                window = self._window(key)
                wait_time = self._wait_needed(window)
                if wait_time <= 0:
                    window.append(time.monotonic())
                    logger.debug(f"Rate limit permission granted for '{key}'.")
                    return waited

            logger.debug(f"Rate limit reached for '{key}'. Waiting for {wait_time:.2f} seconds.")
            await asyncio.sleep(wait_time)
            waited += wait_time
