"""Per-IP fixed-window rate limiting backed by Redis counters."""

import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from strive.redis_client import get_redis

_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Allow `requests_per_window` requests per client IP per window.

    Without Redis the limiter is a pass-through.
    """

    def __init__(self, app: Any, requests_per_window: int = 100, window_seconds: int = 900) -> None:  # noqa: ANN401
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds

    def _key(self, request: Request) -> str:
        client_ip = request.client.host if request.client else "unknown"
        return f"ratelimit:{client_ip}:{int(time.time()) // self.window_seconds}"

    async def _hit(self, key: str) -> int | None:
        try:
            redis = get_redis()
        except RuntimeError:
            return None
        pipe = redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.window_seconds + 1)
        results: list[Any] = await pipe.execute()
        return int(results[0])

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        count = await self._hit(self._key(request))
        if count is None:
            return await call_next(request)

        limit_headers = {"X-RateLimit-Limit": str(self.requests_per_window)}
        if count > self.requests_per_window:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests, please try again later"},
                headers={**limit_headers, "Retry-After": str(self.window_seconds), "X-RateLimit-Remaining": "0"},
            )

        response = await call_next(request)
        response.headers.update({
            **limit_headers,
            "X-RateLimit-Remaining": str(max(0, self.requests_per_window - count)),
        })
        return response
