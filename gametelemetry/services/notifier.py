"""Outbound webhook notifications (Discord embed format)."""
from datetime import datetime
from typing import Any
import httpx
import structlog
from ..event_models import Severity

log = structlog.get_logger()

FOOTER_TEXT = "Game Telemetry API"
CRASH_COLOR = 0xFF0000

SEVERITY_COLORS = {
    Severity.INFO: 0x3498DB,
    Severity.WARNING: 0xF39C12,
    Severity.CRITICAL: 0xFF0000,
}

SEVERITY_ICONS = {
    Severity.INFO: "ℹ️",
    Severity.WARNING: "⚠️",
    Severity.CRITICAL: "🚨",
}


class NotificationError(Exception):
    """Raised when a notification could not be delivered."""


def _iso(now: datetime) -> str:
    return now.isoformat().replace("+00:00", "Z")


def crash_alert_embed(game_id: str, crash_count: int, threshold: int, now: datetime) -> dict[str, Any]:
    """Embed announcing that a game's crash rate crossed the threshold."""
    return {
        "title": f"🚨 Crash Alert: {game_id}",
        "color": CRASH_COLOR,
        "description": "Crash rate has exceeded threshold!",
        "fields": [
            {"name": "Crashes in last hour", "value": str(crash_count), "inline": True},
            {"name": "Threshold", "value": str(threshold), "inline": True},
        ],
        "timestamp": _iso(now),
        "footer": {"text": FOOTER_TEXT},
    }


def custom_alert_embed(title: str, message: str, severity: Severity, now: datetime) -> dict[str, Any]:
    severity = Severity(severity)
    return {
        "title": f"{SEVERITY_ICONS[severity]} {title}",
        "description": message,
        "color": SEVERITY_COLORS[severity],
        "timestamp": _iso(now),
    }


class WebhookNotifier:
    """
    Posts embeds to a chat webhook.

    Every request is bounded by ``timeout`` so an unreachable webhook cannot
    stall the caller for long.
    """

    def __init__(self, url: str | None, timeout: float = 5.0, client: httpx.AsyncClient | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(self, embed: dict[str, Any]) -> None:
        """
        Deliver one embed.

        Raises:
            NotificationError: On transport failure, timeout or non-2xx reply
        """
        if not self.enabled:
            raise NotificationError("webhook URL not configured")
        try:
            response = await self._get_client().post(self.url, json={"embeds": [embed]})
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"{type(e).__name__}: {e}") from e
        log.debug("webhook.delivered", status_code=response.status_code)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
