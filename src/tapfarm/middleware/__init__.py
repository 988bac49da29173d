"""Middleware registration."""

from fastapi import FastAPI

from tapfarm.config import Settings
from tapfarm.middleware.cors import setup_cors
from tapfarm.middleware.error_handler import setup_error_handlers
from tapfarm.middleware.logging import setup_logging
from tapfarm.middleware.rate_limit import RateLimitMiddleware
from tapfarm.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order (last added = outermost):
    CORS wraps everything, then the request id, then rate limiting, so a 429
    still carries both CORS headers and X-Request-Id.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
