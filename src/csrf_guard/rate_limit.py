"""Per-client sliding-window limiter for the issuance endpoint."""

from collections import deque
import logging
from threading import Lock
import time
from typing import Callable, Deque, Dict, Optional

logger = logging.getLogger("csrf_guard.rate_limit")


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per ``window_seconds`` per client."""

    def __init__(
        self,
        max_requests: int = 1000,
        window_seconds: float = 60.0,
        *,
        prune_every: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prune_every = max(1, prune_every)
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = Lock()
        self._hits_since_prune = 0

    def hit(self, client_id: str) -> Optional[float]:
        """Record a request for ``client_id``.

        Returns ``None`` when the request is allowed, otherwise the number of
        seconds until the oldest request leaves the window. Rejected requests
        are not recorded.
        """
        now = self._clock()
        with self._lock:
            window = self._hits.get(client_id)
            if window is None:
                window = self._hits[client_id] = deque()
            while window and now - window[0] >= self.window_seconds:
                window.popleft()

            if len(window) >= self.max_requests:
                retry_after = window[0] + self.window_seconds - now
                logger.info("Rate limit exceeded for %s; retry in %.1fs", client_id, retry_after)
                return retry_after

            window.append(now)
            self._hits_since_prune += 1
            if self._hits_since_prune >= self.prune_every:
                self._prune(now)
            return None

    def reset(self, client_id: Optional[str] = None) -> None:
        with self._lock:
            if client_id is None:
                self._hits.clear()
            else:
                self._hits.pop(client_id, None)

    def _prune(self, now: float) -> None:
        # Drops clients idle for a full window; runs every ``prune_every`` allowed hits.
        self._hits_since_prune = 0
        stale = [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]
        for key in stale:
            del self._hits[key]


__all__ = ["SlidingWindowRateLimiter"]
