"""Global error handlers: consistent JSON error responses.

Every error body carries ``detail`` and, for failures the client can act on,
a ``code`` and a ``retryable`` flag: validation outcomes are final, store
and write-conflict failures can be retried because all commands are
idempotent.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tapfarm.progression.errors import ConcurrentUpdateError, ProgressionError

logger = structlog.get_logger()


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle request body/path validation errors."""
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": exc.errors()},
        )

    @app.exception_handler(ProgressionError)
    async def progression_error_handler(request: Request, exc: ProgressionError) -> JSONResponse:
        """Command rejected by validation; nothing was written."""
        logger.info("command_rejected", path=request.url.path, code=exc.code, reason=str(exc))
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": str(exc), "code": exc.code, "retryable": False},
        )

    @app.exception_handler(ConcurrentUpdateError)
    async def conflict_handler(request: Request, exc: ConcurrentUpdateError) -> JSONResponse:
        logger.warning("write_conflict", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc), "code": exc.code, "retryable": True},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(OperationalError)
    @app.exception_handler(DBAPIError)
    async def store_unavailable_handler(request: Request, exc: DBAPIError) -> JSONResponse:
        """The record store failed; the command did not apply."""
        logger.error("store_unavailable", path=request.url.path, error=str(exc.orig))
        return JSONResponse(
            status_code=503,
            content={"detail": "Store unavailable", "code": "StoreUnavailable", "retryable": True},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
