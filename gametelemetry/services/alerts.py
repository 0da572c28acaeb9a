"""Crash threshold alerting."""
from datetime import timedelta
from enum import Enum
import structlog
from .cooldown import CooldownTracker
from .notifier import NotificationError, WebhookNotifier, crash_alert_embed, custom_alert_embed
from ..event_models import Clock, EventType, Severity, utcnow
from ..metrics import Metrics
from ..store.base import EventStore
from ..store.query import EventFilter

log = structlog.get_logger()


class AlertOutcome(str, Enum):
    """Result of one crash threshold evaluation."""
    DISABLED = "disabled"
    BELOW_THRESHOLD = "below_threshold"
    SUPPRESSED = "suppressed"
    SENT = "sent"
    DELIVERY_FAILED = "delivery_failed"


class AlertDispatcher:
    """
    Turns per-game crash rates into rate-limited webhook notifications.

    A game is either quiet or cooling down. When the crash count over the
    last ``window`` reaches ``threshold`` and the game is quiet, one alert is
    delivered and the game cools down for ``cooldown.cooldown``. A failed
    delivery leaves the game quiet so the next qualifying crash retries.
    """

    def __init__(
        self,
        store: EventStore,
        notifier: WebhookNotifier,
        cooldown: CooldownTracker | None = None,
        threshold: int = 10,
        window: timedelta = timedelta(hours=1),
        clock: Clock = utcnow,
        metrics: Metrics | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.cooldown = cooldown or CooldownTracker()
        self.threshold = threshold
        self.window = window
        self.clock = clock
        self.metrics = metrics

    def _record(self, outcome: AlertOutcome) -> AlertOutcome:
        if self.metrics is not None:
            self.metrics.record_alert(outcome.value)
        return outcome

    async def evaluate_crash_threshold(self, game_id: str) -> AlertOutcome:
        """
        Count recent crashes for ``game_id`` and alert if the threshold is met.

        Store failures propagate; delivery failures are logged and reported as
        ``AlertOutcome.DELIVERY_FAILED``.
        """
        if not self.notifier.enabled:
            log.debug("alert.webhook_not_configured", game_id=game_id)
            return self._record(AlertOutcome.DISABLED)

        async with self.cooldown.lock(game_id):
            now = self.clock()
            crash_count = await self.store.count(
                EventFilter(game_id=game_id, event_type=EventType.CRASH, since=now - self.window)
            )
            if crash_count < self.threshold:
                return self._record(AlertOutcome.BELOW_THRESHOLD)

            if self.cooldown.is_cooling(game_id, now):
                log.debug("alert.cooldown_active", game_id=game_id, crash_count=crash_count)
                return self._record(AlertOutcome.SUPPRESSED)

            try:
                await self.notifier.send(crash_alert_embed(game_id, crash_count, self.threshold, now))
            except NotificationError as e:
                log.error("alert.delivery_failed", game_id=game_id, error=str(e))
                return self._record(AlertOutcome.DELIVERY_FAILED)

            self.cooldown.mark_sent(game_id, now)
            log.info("alert.sent", game_id=game_id, crash_count=crash_count, threshold=self.threshold)
            return self._record(AlertOutcome.SENT)

    async def send_custom_alert(self, title: str, message: str, severity: Severity = Severity.INFO) -> bool:
        """
        Deliver an arbitrary titled message. No threshold, no cooldown.

        Returns:
            True if delivered, False if disabled or delivery failed
        """
        if not self.notifier.enabled:
            return False
        try:
            await self.notifier.send(custom_alert_embed(title, message, severity, self.clock()))
        except NotificationError as e:
            log.error("alert.custom_failed", title=title, error=str(e))
            return False
        return True
