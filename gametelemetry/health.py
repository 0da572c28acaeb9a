"""
Health checks for liveness and readiness probes.
"""
import time
from typing import Dict, Any
import psutil
from .event_models import Clock, utcnow
from .logging import get_logger
from .store.base import EventStore

logger = get_logger()


def _ratio_status(available: float, threshold: float) -> str:
    if available < threshold:
        return "error"
    if available < threshold * 2:
        return "warning"
    return "ok"


class HealthChecker:
    """
    Health checker for the telemetry service.

    - Liveness: is the process serving requests?
    - Readiness: can it reach the event store, and are disk and memory sufficient?
    """

    def __init__(
        self,
        store: EventStore,
        service_name: str = "game-telemetry",
        version: str = "0.1.0",
        clock: Clock = utcnow,
    ):
        self.store = store
        self.service_name = service_name
        self.version = version
        self.clock = clock

    def _timestamp(self) -> str:
        return self.clock().isoformat().replace("+00:00", "Z")

    def liveness(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "service": self.service_name,
            "version": self.version,
            "timestamp": self._timestamp(),
        }

    async def readiness(self) -> Dict[str, Any]:
        """
        Readiness check.

        Only ``error`` results make the service not ready; ``warning`` is
        reported but tolerated.
        """
        checks = {
            "store": await self._check_store(),
            "disk_space": self._check_disk_space(),
            "memory": self._check_memory(),
        }
        ready = all(check["status"] != "error" for check in checks.values())

        return {
            "status": "ready" if ready else "not_ready",
            "service": self.service_name,
            "version": self.version,
            "timestamp": self._timestamp(),
            "checks": checks,
        }

    async def _check_store(self) -> Dict[str, Any]:
        start = time.time()
        try:
            healthy = await self.store.health_check()
        except Exception as e:
            logger.warning("store_health_check_failed", error=str(e))
            return {"status": "error", "error": str(e)}

        if not healthy:
            return {"status": "error", "backend": type(self.store).__name__}
        return {
            "status": "ok",
            "backend": type(self.store).__name__,
            "latency_ms": round((time.time() - start) * 1000, 2),
        }

    def _check_disk_space(self, threshold_gb: float = 1.0) -> Dict[str, Any]:
        """
        Check available disk space.

        Args:
            threshold_gb: Minimum available disk space in GB (default: 1.0)
        """
        try:
            disk = psutil.disk_usage("/")
            available_gb = disk.free / (1024**3)
            return {
                "status": _ratio_status(available_gb, threshold_gb),
                "available_gb": round(available_gb, 2),
                "used_percent": disk.percent,
            }
        except Exception as e:
            logger.warning("disk_health_check_failed", error=str(e))
            return {"status": "error", "error": str(e)}

    def _check_memory(self, threshold_mb: float = 50.0) -> Dict[str, Any]:
        try:
            memory = psutil.virtual_memory()
            available_mb = memory.available / (1024**2)
            return {
                "status": _ratio_status(available_mb, threshold_mb),
                "available_mb": round(available_mb, 2),
                "used_percent": memory.percent,
            }
        except Exception as e:
            logger.warning("memory_health_check_failed", error=str(e))
            return {"status": "error", "error": str(e)}
