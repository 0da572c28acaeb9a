"""Structured error responses."""
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
import structlog
from .correlation import get_correlation_id
from ..store.base import StoreError

log = structlog.get_logger()


def _error_body(request: Request, error: str, message: str, status_code: int, **extra) -> dict:
    body = {
        "error": error,
        "message": message,
        "status_code": status_code,
        "correlation_id": get_correlation_id(),
        "path": str(request.url.path),
    }
    body.update(extra)
    return body


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    log.warning("http.exception", status_code=exc.status_code, detail=exc.detail, path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, str(exc.detail), str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    log.warning("request.validation_failed", errors=len(exc.errors()), path=request.url.path)
    return JSONResponse(
        status_code=400,
        content=_error_body(
            request,
            "ValidationFailed",
            "Request validation failed",
            400,
            details=jsonable_encoder(exc.errors()),
        ),
    )


async def store_exception_handler(request: Request, exc: StoreError):
    log.error("store.unavailable", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=503,
        content=_error_body(request, "StoreUnavailable", "Event store is unavailable", 503),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StoreError, store_exception_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns any unhandled exception into a structured 500 response."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            log.error(
                "unhandled.exception",
                error=str(exc),
                error_type=exc.__class__.__name__,
                path=request.url.path,
                exc_info=True
            )
            return JSONResponse(
                status_code=500,
                content=_error_body(request, "InternalServerError", "An unexpected error occurred", 500),
            )
