import logging
import math
import time
from collections import deque

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger("storyteller.api.middleware")


def client_key(request: Request) -> str:
    """Identify the caller for rate limiting (peer address)."""
    return request.client.host if request.client else "unknown"


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        client = client_key(request)
        logger.info(f"Request: {request.method} {request.url.path} | Client: {client}")
        response: Response = await call_next(request)
        logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code} | Client: {client}")
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory request quota per client over a rolling window.

    Only paths under ``path_prefix`` count against the quota.
    """

    def __init__(self, app, *, max_requests: int, window_seconds: float, path_prefix: str = "/api/"):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.path_prefix = path_prefix
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = 0.0

    def _check(self, key: str, now: float) -> tuple[bool, int, float]:
        """Record a hit for *key*; return (allowed, remaining, seconds until a slot frees)."""
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()
        if len(hits) >= self.max_requests:
            return False, 0, hits[0] + self.window_seconds - now
        hits.append(now)
        return True, self.max_requests - len(hits), hits[0] + self.window_seconds - now

    def _sweep(self, now: float) -> None:
        """Forget clients with no hit inside the window."""
        cutoff = now - self.window_seconds
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]
        self._last_sweep = now

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix) or request.method == "OPTIONS":
            return await call_next(request)

        key = client_key(request)
        allowed, remaining, reset_in = self._check(key, time.monotonic())
        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(max(0, math.ceil(reset_in))),
        }
        if not allowed:
            retry_after = math.ceil(self.window_seconds)
            logger.warning(f"Rate limit exceeded for {key} on {request.url.path}")
            headers["Retry-After"] = str(retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "Too many requests, please try again later",
                    "retryAfter": retry_after,
                },
                headers=headers,
            )

        response: Response = await call_next(request)
        response.headers.update(headers)
        return response
