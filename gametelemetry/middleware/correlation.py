"""Request correlation IDs."""
import uuid
from contextvars import ContextVar
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

CORRELATION_HEADER = "X-Correlation-ID"
MAX_CORRELATION_ID_LENGTH = 128

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def _inbound_id(request: Request) -> str | None:
    value = request.headers.get(CORRELATION_HEADER, "").strip()
    if not value or len(value) > MAX_CORRELATION_ID_LENGTH:
        return None
    return value


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Reuses the caller's X-Correlation-ID or mints one, binds it to the
    structlog context for the request and echoes it on the response.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = _inbound_id(request) or uuid.uuid4().hex

        correlation_id_var.set(correlation_id)
        request.state.correlation_id = correlation_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            http_method=request.method,
            http_path=request.url.path,
        )

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def get_correlation_id() -> str:
    return correlation_id_var.get()
