"""Shared fixtures: controllable clock and recording webhook notifier."""
import asyncio
from datetime import datetime, timedelta, timezone
import pytest
from gametelemetry.services.notifier import NotificationError, WebhookNotifier
from gametelemetry.store.memory import InMemoryEventStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier(WebhookNotifier):
    """Notifier that records embeds instead of posting them."""

    def __init__(self):
        super().__init__(url="https://hooks.test/webhook")
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, embed):
        # Yield so concurrent evaluations can interleave
        await asyncio.sleep(0)
        if self.fail:
            raise NotificationError("webhook unreachable")
        self.sent.append(embed)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return InMemoryEventStore()
