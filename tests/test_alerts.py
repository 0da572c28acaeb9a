"""Tests for crash threshold alerting."""
import asyncio
from datetime import timedelta
import httpx
import orjson
import pytest
from unittest.mock import AsyncMock, Mock
from gametelemetry.event_models import EventCreate, Severity
from gametelemetry.metrics import Metrics
from gametelemetry.services.alerts import AlertDispatcher, AlertOutcome
from gametelemetry.services.cooldown import CooldownTracker
from gametelemetry.services.events import EventsService
from gametelemetry.services.notifier import NotificationError, WebhookNotifier, crash_alert_embed
from gametelemetry.store.base import StoreError


def make_dispatcher(store, notifier, clock, threshold=10):
    return AlertDispatcher(
        store=store,
        notifier=notifier,
        cooldown=CooldownTracker(timedelta(minutes=5)),
        threshold=threshold,
        clock=clock,
    )


async def add_crashes(store, clock, game_id, n):
    service = EventsService(store, clock=clock)
    await service.create_events([EventCreate(game_id=game_id, event_type="crash") for _ in range(n)])


@pytest.mark.asyncio
async def test_count_at_threshold_sends(store, notifier, clock):
    """Test a crash count exactly at the threshold alerts."""
    await add_crashes(store, clock, "g1", 10)
    dispatcher = make_dispatcher(store, notifier, clock)

    assert await dispatcher.evaluate_crash_threshold("g1") == AlertOutcome.SENT
    assert len(notifier.sent) == 1
    embed = notifier.sent[0]
    assert embed["title"] == "🚨 Crash Alert: g1"
    assert embed["fields"][0]["value"] == "10"
    assert embed["fields"][1]["value"] == "10"
    assert dispatcher.cooldown.last_sent("g1") == clock.now


@pytest.mark.asyncio
async def test_count_below_threshold_does_nothing(store, notifier, clock):
    """Test one crash below the threshold does not alert."""
    await add_crashes(store, clock, "g1", 9)
    dispatcher = make_dispatcher(store, notifier, clock)

    assert await dispatcher.evaluate_crash_threshold("g1") == AlertOutcome.BELOW_THRESHOLD
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_only_last_hour_counts(store, notifier, clock):
    service = EventsService(store, clock=clock)
    await service.create_events(
        [EventCreate(game_id="g1", event_type="crash", timestamp=clock.now - timedelta(minutes=61))] * 10
        + [EventCreate(game_id="g1", event_type="crash")] * 9
    )
    dispatcher = make_dispatcher(store, notifier, clock)

    assert await dispatcher.evaluate_crash_threshold("g1") == AlertOutcome.BELOW_THRESHOLD


@pytest.mark.asyncio
async def test_crash_burst_scenario(store, notifier, clock):
    """
    12 crashes alert once after the 10th; 5 more within 4 minutes stay quiet;
    one more crash 6 minutes after the alert alerts again.
    """
    dispatcher = make_dispatcher(store, notifier, clock)
    service = EventsService(store, dispatcher=dispatcher, clock=clock)

    for i in range(1, 13):
        await service.create_event(EventCreate(game_id="g1", event_type="crash"))
        assert len(notifier.sent) == (0 if i < 10 else 1)
        if i < 12:
            clock.advance(seconds=5)
    alerted_at = dispatcher.cooldown.last_sent("g1")

    for _ in range(5):
        clock.advance(seconds=45)
        await service.create_event(EventCreate(game_id="g1", event_type="crash"))
    assert clock.now - alerted_at < timedelta(minutes=4)
    assert len(notifier.sent) == 1

    clock.now = alerted_at + timedelta(minutes=6)
    await service.create_event(EventCreate(game_id="g1", event_type="crash"))
    assert len(notifier.sent) == 2
    assert notifier.sent[1]["fields"][0]["value"] == "18"


@pytest.mark.asyncio
async def test_cooldown_is_per_game(store, notifier, clock):
    await add_crashes(store, clock, "g1", 10)
    await add_crashes(store, clock, "g2", 10)
    dispatcher = make_dispatcher(store, notifier, clock)

    assert await dispatcher.evaluate_crash_threshold("g1") == AlertOutcome.SENT
    assert await dispatcher.evaluate_crash_threshold("g1") == AlertOutcome.SUPPRESSED
    assert await dispatcher.evaluate_crash_threshold("g2") == AlertOutcome.SENT


@pytest.mark.asyncio
async def test_concurrent_evaluations_deliver_once(store, notifier, clock):
    """Test two concurrent evaluations for one game cannot both deliver."""
    await add_crashes(store, clock, "g1", 10)
    dispatcher = make_dispatcher(store, notifier, clock)

    outcomes = await asyncio.gather(
        dispatcher.evaluate_crash_threshold("g1"),
        dispatcher.evaluate_crash_threshold("g1"),
        dispatcher.evaluate_crash_threshold("g1"),
    )

    assert sorted(outcomes) == sorted([AlertOutcome.SENT, AlertOutcome.SUPPRESSED, AlertOutcome.SUPPRESSED])
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_delivery_failure_leaves_cooldown_unset(store, notifier, clock):
    """Test a failed delivery is retried by the next evaluation."""
    await add_crashes(store, clock, "g1", 10)
    dispatcher = make_dispatcher(store, notifier, clock)

    notifier.fail = True
    assert await dispatcher.evaluate_crash_threshold("g1") == AlertOutcome.DELIVERY_FAILED
    assert dispatcher.cooldown.last_sent("g1") is None

    notifier.fail = False
    assert await dispatcher.evaluate_crash_threshold("g1") == AlertOutcome.SENT
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_delivery_failure_does_not_fail_ingestion(store, notifier, clock):
    dispatcher = make_dispatcher(store, notifier, clock, threshold=1)
    service = EventsService(store, dispatcher=dispatcher, clock=clock)
    notifier.fail = True

    stored = await service.create_event(EventCreate(game_id="g1", event_type="crash"))

    assert await store.find_by_id(stored.id) is not None


@pytest.mark.asyncio
async def test_store_failure_propagates_from_evaluation(notifier, clock):
    failing = Mock()
    failing.count = AsyncMock(side_effect=StoreError("down"))
    dispatcher = make_dispatcher(failing, notifier, clock)

    with pytest.raises(StoreError):
        await dispatcher.evaluate_crash_threshold("g1")
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_disabled_notifier_skips_evaluation(clock):
    store = Mock()
    store.count = AsyncMock(return_value=100)
    dispatcher = make_dispatcher(store, WebhookNotifier(url=None), clock)

    assert await dispatcher.evaluate_crash_threshold("g1") == AlertOutcome.DISABLED
    store.count.assert_not_awaited()


@pytest.mark.asyncio
async def test_disabled_outcome_is_counted(clock):
    store = Mock()
    metrics = Metrics()
    dispatcher = AlertDispatcher(store=store, notifier=WebhookNotifier(url=None), clock=clock, metrics=metrics)

    await dispatcher.evaluate_crash_threshold("g1")

    assert metrics.registry.get_sample_value("telemetry_alerts_total", {"outcome": "disabled"}) == 1


@pytest.mark.asyncio
async def test_custom_alert_has_no_cooldown(store, notifier, clock):
    dispatcher = make_dispatcher(store, notifier, clock)

    assert await dispatcher.send_custom_alert("Deploy", "v1.2 rolled out") is True
    assert await dispatcher.send_custom_alert("Deploy", "v1.3 rolled out", Severity.WARNING) is True

    assert len(notifier.sent) == 2
    assert notifier.sent[0]["title"] == "ℹ️ Deploy"
    assert notifier.sent[0]["color"] == 0x3498DB
    assert notifier.sent[1]["title"] == "⚠️ Deploy"
    assert notifier.sent[1]["description"] == "v1.3 rolled out"


@pytest.mark.asyncio
async def test_custom_alert_failure_returns_false(store, notifier, clock):
    notifier.fail = True
    dispatcher = make_dispatcher(store, notifier, clock)

    assert await dispatcher.send_custom_alert("Outage", "db down", Severity.CRITICAL) is False


def test_cooldown_tracker_window(clock):
    tracker = CooldownTracker(timedelta(minutes=5))
    assert tracker.is_cooling("g1", clock.now) is False

    tracker.mark_sent("g1", clock.now)
    assert tracker.is_cooling("g1", clock.now + timedelta(minutes=4, seconds=59)) is True
    assert tracker.is_cooling("g1", clock.now + timedelta(minutes=5)) is False
    assert tracker.is_cooling("g2", clock.now) is False
    assert tracker.lock("g1") is tracker.lock("g1")
    assert tracker.lock("g1") is not tracker.lock("g2")

    lock = tracker.lock("g1")
    tracker.reset()
    assert tracker.last_sent("g1") is None
    assert tracker.lock("g1") is not lock


@pytest.mark.asyncio
async def test_webhook_notifier_posts_embed(clock):
    """Test the real notifier posts Discord embeds over httpx."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = WebhookNotifier(url="https://discord.test/api/webhooks/1", client=client)

    await notifier.send(crash_alert_embed("g1", 12, 10, clock.now))

    assert len(requests) == 1
    body = orjson.loads(requests[0].content)
    assert body["embeds"][0]["title"] == "🚨 Crash Alert: g1"
    assert body["embeds"][0]["timestamp"] == "2026-03-01T12:30:00Z"
    assert body["embeds"][0]["footer"] == {"text": "Game Telemetry API"}
    await notifier.close()


@pytest.mark.asyncio
async def test_webhook_notifier_raises_on_error_status(clock):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    notifier = WebhookNotifier(url="https://discord.test/api/webhooks/1", client=client)

    with pytest.raises(NotificationError):
        await notifier.send(crash_alert_embed("g1", 12, 10, clock.now))
    await notifier.close()


@pytest.mark.asyncio
async def test_webhook_notifier_raises_on_timeout(clock):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = WebhookNotifier(url="https://discord.test/api/webhooks/1", client=client)

    with pytest.raises(NotificationError):
        await notifier.send(crash_alert_embed("g1", 12, 10, clock.now))
    await notifier.close()


def test_notifier_disabled_without_url():
    assert WebhookNotifier(url=None).enabled is False
    assert WebhookNotifier(url="").enabled is False
    assert WebhookNotifier(url="https://discord.test/hook").enabled is True
