"""
Structured logging configuration using structlog.

Standardized log format:
{
    "ts": "2025-11-18T04:30:00.123456Z",
    "level": "info",
    "service": "game-telemetry",
    "correlation_id": "uuid-v4",
    "event": "event.created",
    "module": "gametelemetry.services.events",
    "func_name": "create_event",
    "lineno": 42,
    ...additional context...
}
"""
import structlog
import logging
from typing import Any

SERVICE_NAME = "game-telemetry"


def add_service_name(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add service name to all log entries."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(json_output: bool = True, level: str = "INFO"):
    """
    Configure structured logging with standardized fields.

    Args:
        json_output: If True, output JSON logs. If False, use console format.
        level: Minimum log level name (e.g. "INFO", "DEBUG").
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    shared_processors = [
        # correlation_id is bound by the correlation middleware
        structlog.contextvars.merge_contextvars,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        structlog.processors.add_log_level,
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
    )

    # uvicorn access lines are replaced by the metrics middleware's http_request log
    logging.getLogger("uvicorn.access").handlers = []


def get_logger():
    """Get a configured structlog logger."""
    return structlog.get_logger()
