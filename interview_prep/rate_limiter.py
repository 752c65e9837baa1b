"""Sliding-window request limiters.

Both limiters are plain objects owned by whoever constructs them: the pipeline
controller holds one window for the whole session, the HTTP app holds one
keyed limiter for its lifetime. All mutation happens synchronously inside one
event-loop turn, so no locking is needed.
"""

import time
from collections import deque
from typing import Callable


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` calls to ``check`` per ``window`` seconds."""

    def __init__(
        self,
        max_requests: int = 3,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._requests and now - self._requests[0] >= self.window:
            self._requests.popleft()

    def check(self) -> bool:
        """Record a request and return True, or return False if the quota is used up."""
        now = self._clock()
        self._prune(now)
        if len(self._requests) >= self.max_requests:
            return False
        self._requests.append(now)
        return True

    def retry_after(self) -> float:
        """Seconds until the next request would be admitted (0 when admitted now)."""
        now = self._clock()
        self._prune(now)
        if len(self._requests) < self.max_requests:
            return 0.0
        return max(0.0, self.window - (now - self._requests[0]))

    @property
    def is_empty(self) -> bool:
        self._prune(self._clock())
        return not self._requests

    def reset(self) -> None:
        self._requests.clear()


class KeyedRateLimiter:
    """One sliding window per caller key (client address on the server)."""

    def __init__(
        self,
        max_requests: int = 10,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._windows: dict[str, SlidingWindowRateLimiter] = {}

    def _window_for(self, key: str) -> SlidingWindowRateLimiter:
        window = self._windows.get(key)
        if window is None:
            window = SlidingWindowRateLimiter(self.max_requests, self.window, self._clock)
            self._windows[key] = window
        return window

    def check(self, key: str) -> bool:
        # Drop idle windows so the map does not grow with every caller ever seen.
        for stale in [k for k, w in self._windows.items() if k != key and w.is_empty]:
            del self._windows[stale]
        return self._window_for(key).check()

    def retry_after(self, key: str) -> float:
        window = self._windows.get(key)
        return window.retry_after() if window else 0.0

    def reset(self) -> None:
        self._windows.clear()
