"""Per-client request rate limiting."""
import time
from typing import Callable
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
import structlog

log = structlog.get_logger()


class FixedWindowLimiter:
    """Allows ``limit`` hits per key in each ``window`` second window."""

    def __init__(self, limit: int, window: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self.clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    def hit(self, key: str) -> tuple[bool, float]:
        """
        Register one request for ``key``.

        Returns:
            (allowed, seconds until the current window resets)
        """
        now = self.clock()
        started, count = self._windows.get(key, (now, 0))
        if now - started >= self.window:
            started, count = now, 0
        count += 1
        self._windows[key] = (started, count)
        return count <= self.limit, max(0.0, self.window - (now - started))

    def __len__(self):
        return len(self._windows)

    def prune(self):
        """Forget windows that have already expired."""
        now = self.clock()
        self._windows = {k: v for k, v in self._windows.items() if now - v[0] < self.window}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Limits requests under ``path_prefix`` per client address."""

    def __init__(self, app, limit: int, window_seconds: float, path_prefix: str = "/api/"):
        super().__init__(app)
        self.limiter = FixedWindowLimiter(limit, window_seconds)
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        allowed, reset_in = self.limiter.hit(client)
        if not allowed:
            log.warning("rate_limit.exceeded", client=client, path=request.url.path)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "TooManyRequests",
                    "message": "Too many requests, please try again later.",
                },
                headers={"Retry-After": str(int(reset_in) + 1)},
            )
        if len(self.limiter) > 10000:
            self.limiter.prune()
        return await call_next(request)
