"""HTTP metrics and access logging."""
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog
from ..metrics import Metrics

log = structlog.get_logger()


def route_template(request: Request) -> str:
    """Matched route path, e.g. /api/events/{event_id}, or the raw path when nothing matched."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Times every request except the /metrics scrape itself."""

    def __init__(self, app, metrics: Metrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        self.metrics.http_requests_active.inc()
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration = time.perf_counter() - started
            self.metrics.http_requests_active.dec()
            self.metrics.observe_request(request.method, route_template(request), status, duration)
            log.info(
                "http_request",
                http_status=status,
                route=route_template(request),
                duration_ms=round(duration * 1000, 2),
            )
