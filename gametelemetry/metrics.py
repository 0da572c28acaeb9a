"""
Prometheus metrics for the game telemetry service.

HTTP traffic is labelled by route template so per-event URLs do not create
new series. Ingestion and alerting have their own counters.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry

BATCH_SIZE_BUCKETS = (1, 5, 10, 25, 50, 100)


class Metrics:
    """Registry-scoped collectors for one service instance."""

    def __init__(self, service_name: str = "game-telemetry", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )
        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )
        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of in-flight HTTP requests",
            registry=self.registry,
        )

        self.app_info = Info("app", "Application information", registry=self.registry)
        self.app_info.info({"service": service_name, "version": version})
        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Telemetry
        self.events_ingested_total = Counter(
            "telemetry_events_ingested_total",
            "Telemetry events stored",
            ["event_type"],
            registry=self.registry,
        )
        self.batch_size = Histogram(
            "telemetry_batch_size",
            "Events per batch ingestion request",
            buckets=BATCH_SIZE_BUCKETS,
            registry=self.registry,
        )
        self.alerts_total = Counter(
            "telemetry_alerts_total",
            "Crash threshold evaluations by outcome",
            ["outcome"],
            registry=self.registry,
        )

    def observe_request(self, method: str, path: str, status: int, duration: float):
        self.http_requests_total.labels(
            service=self.service_name, method=method, path=path, status=status
        ).inc()
        self.http_request_duration.labels(
            service=self.service_name, method=method, path=path
        ).observe(duration)

    def record_ingested(self, event_type: str, count: int = 1):
        self.events_ingested_total.labels(event_type=event_type).inc(count)

    def record_batch(self, size: int):
        self.batch_size.observe(size)

    def record_alert(self, outcome: str):
        """Count one crash threshold evaluation outcome."""
        self.alerts_total.labels(outcome=outcome).inc()

    def mark_down(self):
        self.app_up.labels(service=self.service_name, version=self.version).set(0)
