"""Redis-backed fixed window rate limiting middleware."""

import re
import time
from typing import Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tapfarm.redis_client import get_redis

logger = structlog.get_logger()

# Paths exempt from rate limiting
_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})

_PLAYER_PATH = re.compile(r"^/api/v1/players/(\d+)/")


def rate_limit_key(request: Request, window: int) -> str:
    """Player routes are limited per player (one player, many devices), the rest per IP."""
    match = _PLAYER_PATH.match(request.url.path)
    if match:
        return f"ratelimit:player:{match.group(1)}:{window}"
    client_ip = request.client.host if request.client else "unknown"
    return f"ratelimit:ip:{client_ip}:{window}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests using Redis counters."""

    def __init__(self, app: Any, requests_per_window: int = 600, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        window = int(time.time()) // self.window_seconds
        rate_key = rate_limit_key(request, window)

        try:
            redis = get_redis()
        except RuntimeError:
            # Redis not configured, no rate limiting
            return await call_next(request)

        try:
            pipe = redis.pipeline()
            pipe.incr(rate_key)
            pipe.expire(rate_key, self.window_seconds + 1)
            results: list[Any] = await pipe.execute()
        except RedisError as exc:
            logger.warning("rate_limit_unavailable", error=str(exc))
            return await call_next(request)

        current_count: int = results[0]
        remaining = max(0, self.requests_per_window - current_count)

        if current_count > self.requests_per_window:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later.", "code": "RateLimited", "retryable": True},
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(self.requests_per_window),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_window)
        return response
