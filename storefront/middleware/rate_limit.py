"""
Sliding-window rate limiting per client IP and path
"""
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

EXEMPT_PATHS = ("/health", "/metrics", "/docs", "/redoc", "/openapi.json")


class RateLimiter:
    """
    Counts requests per key over a trailing window

    Owned by the application (created in the factory, cleared on shutdown).
    State is per process. Keys idle for a whole window are swept at most
    once per window.
    """

    def __init__(self, limit: int, window: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def allow(self, key: str) -> bool:
        now = self.clock()
        if now - self._last_sweep >= self.window:
            self._sweep(now)

        hits = self._hits[key]
        while hits and hits[0] <= now - self.window:
            hits.popleft()

        if len(hits) >= self.limit:
            return False

        hits.append(now)
        return True

    def _sweep(self, now: float) -> None:
        self._last_sweep = now
        cutoff = now - self.window
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in idle:
            del self._hits[key]

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    def reset(self) -> None:
        self._hits.clear()


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else "127.0.0.1"
    return f"{ip}:{request.url.path}"


async def rate_limit_middleware(request: Request, call_next):
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None or request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    key = client_key(request)
    if not limiter.allow(key):
        logger.warning("rate_limited", key=key)
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many requests"},
            headers={"Retry-After": str(int(limiter.window))},
        )
    return await call_next(request)
