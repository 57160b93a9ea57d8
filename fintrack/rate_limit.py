# fintrack/rate_limit.py

import math
import threading
import time
from collections import deque

from fastapi import Request

from .errors import RateLimitError


class SlidingWindowLimiter:
    """Allow at most ``limit`` hits per client within the trailing ``window`` seconds."""

    def __init__(self, name: str, limit: int, window: int, message: str, clock=time.monotonic):
        self.name = name
        self.limit = limit
        self.window = window
        self.message = message
        self._clock = clock
        self._hits = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def _sweep(self, now):
        # forget clients whose newest hit has left the window
        cutoff = now - self.window
        for client in [c for c, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[client]
        self._last_sweep = now

    def hit(self, client: str):
        """Record a hit; return (allowed, remaining, retry_after_seconds)."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window:
                self._sweep(now)
            hits = self._hits.setdefault(client, deque())
            while hits and hits[0] <= now - self.window:
                hits.popleft()
            if len(hits) >= self.limit:
                retry_after = hits[0] + self.window - now
                return False, 0, max(1, math.ceil(retry_after))
            hits.append(now)
            return True, self.limit - len(hits), 0

    def reset(self):
        with self._lock:
            self._hits.clear()

    def __len__(self):
        return len(self._hits)


def default_limiters():
    return {
        "auth": SlidingWindowLimiter(
            "auth", 5, 15 * 60,
            "Too many authentication attempts. Please try again after 15 minutes.",
        ),
        "transactions": SlidingWindowLimiter(
            "transactions", 100, 60 * 60,
            "Too many transaction requests. Please try again after an hour.",
        ),
        "analytics": SlidingWindowLimiter(
            "analytics", 50, 60 * 60,
            "Too many analytics requests. Please try again after an hour.",
        ),
        "general": SlidingWindowLimiter(
            "general", 200, 15 * 60,
            "Too many requests. Please try again later.",
        ),
    }


def client_ip(request: Request) -> str:
    # proxy headers are not trusted; run uvicorn with --proxy-headers behind a proxy
    return request.client.host if request.client else "unknown"


def rate_limit(name: str):
    """Dependency factory enforcing the named limiter for a route group."""

    def dependency(request: Request):
        if not request.app.state.settings.rate_limit_enabled:
            return
        limiter = request.app.state.limiters[name]
        allowed, remaining, retry_after = limiter.hit(client_ip(request))
        if not allowed:
            raise RateLimitError(
                limiter.message,
                headers={
                    "Retry-After": str(retry_after),
                    "RateLimit-Limit": str(limiter.limit),
                    "RateLimit-Remaining": "0",
                },
            )

    return dependency
