"""
Game Telemetry API - telemetry ingestion, aggregation and crash alerting.

Features:
- Event ingestion (single and batch) with crash threshold alerts
- Summaries, time series and top crash errors per game
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from .config import get_settings
from .logging import setup_logging, get_logger
from .api.router import router as events_router
from .api.metrics_router import router as metrics_router
from .middleware.correlation import CorrelationMiddleware
from .middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from .middleware.metrics import MetricsMiddleware
from .middleware.rate_limit import RateLimitMiddleware
from .middleware.security import SecurityHeadersMiddleware
from .middleware.validation import ValidationMiddleware
from .health import HealthChecker
from .services import wiring

settings = get_settings()

setup_logging(json_output=settings.LOG_JSON, level=settings.LOG_LEVEL)
logger = get_logger()

health_checker = HealthChecker(store=wiring.store, version=wiring.VERSION)

app = FastAPI(
    title="Game Telemetry API",
    version=wiring.VERSION,
    description="Game-client telemetry ingestion, aggregation and crash alerting",
)

# Last added runs first: correlation ID wraps everything else
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(ValidationMiddleware, max_size=settings.MAX_REQUEST_SIZE)
app.add_middleware(
    RateLimitMiddleware,
    limit=settings.RATE_LIMIT_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
app.add_middleware(MetricsMiddleware, metrics=wiring.metrics)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID", "Retry-After"],
)
app.add_middleware(CorrelationMiddleware)

register_exception_handlers(app)

app.include_router(events_router)
app.include_router(metrics_router)

metrics_app = make_asgi_app(registry=wiring.metrics.registry)
app.mount("/metrics", metrics_app)


@app.get("/api/health")
async def api_health():
    return {"status": "ok", "timestamp": health_checker.liveness()["timestamp"]}


@app.get("/health")
async def health():
    """Liveness probe."""
    return health_checker.liveness()


@app.get("/health/ready")
async def health_ready():
    """
    Readiness probe.

    Returns:
        200: Service is ready to handle traffic
        503: Service is not ready
    """
    result = await health_checker.readiness()
    status_code = 200 if result["status"] == "ready" else 503
    return JSONResponse(content=result, status_code=status_code)


@app.on_event("startup")
async def startup_event():
    logger.info(
        "service_starting",
        version=wiring.VERSION,
        env=settings.ENV,
        store=settings.STORE_ADAPTER,
        alerts_enabled=wiring.notifier.enabled,
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("service_stopping")
    wiring.metrics.mark_down()
    await wiring.shutdown()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gametelemetry.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
    )
