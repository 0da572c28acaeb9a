"""Process-wide service instances built from configuration."""
from datetime import timedelta
from ..config import get_settings
from ..metrics import Metrics
from ..store.factory import create_default_store
from .aggregation import AggregationService
from .alerts import AlertDispatcher
from .cooldown import CooldownTracker
from .events import EventsService
from .notifier import WebhookNotifier

VERSION = "0.1.0"

settings = get_settings()

metrics = Metrics(service_name="game-telemetry", version=VERSION)

store = create_default_store(settings)

notifier = WebhookNotifier(
    url=settings.DISCORD_WEBHOOK_URL,
    timeout=settings.WEBHOOK_TIMEOUT_SECONDS,
)

dispatcher = AlertDispatcher(
    store=store,
    notifier=notifier,
    cooldown=CooldownTracker(timedelta(seconds=settings.ALERT_COOLDOWN_SECONDS)),
    threshold=settings.DISCORD_ALERT_THRESHOLD,
    metrics=metrics,
)

events_service = EventsService(store=store, dispatcher=dispatcher, metrics=metrics)

aggregation_service = AggregationService(store=store)


async def shutdown():
    """Close outbound clients and the store connection."""
    await notifier.close()
    await store.close()
