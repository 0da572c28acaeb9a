"""Event ingestion and retrieval."""
import asyncio
from collections import Counter
from datetime import datetime
from typing import Sequence
from pydantic import BaseModel
import structlog
from .alerts import AlertDispatcher
from ..event_models import Clock, EventCreate, EventType, NewEvent, Severity, StoredEvent, utcnow
from ..metrics import Metrics
from ..store.base import EventStore
from ..store.query import EventFilter, TIMESTAMP_DESC

log = structlog.get_logger()

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000


class EventQuery(BaseModel):
    """Filters and paging for raw event listing."""
    game_id: str | None = None
    event_type: EventType | None = None
    severity: Severity | None = None
    from_: datetime | None = None
    to: datetime | None = None
    limit: int | None = None
    offset: int | None = None


class EventPage(BaseModel):
    events: list[StoredEvent]
    total: int


class EventsService:
    """
    Normalizes and stores telemetry events.

    Crash events trigger a threshold evaluation after they are stored. The
    evaluation is a post-commit hook: its failures are logged and never
    change the result of the ingestion call.
    """

    def __init__(
        self,
        store: EventStore,
        dispatcher: AlertDispatcher | None = None,
        clock: Clock = utcnow,
        metrics: Metrics | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock
        self.metrics = metrics

    def _normalize(self, data: EventCreate, now) -> NewEvent:
        return NewEvent(
            game_id=data.game_id,
            event_type=data.event_type,
            severity=data.severity or Severity.INFO,
            payload=data.payload or {},
            timestamp=data.timestamp or now,
            processed_at=now,
        )

    async def _after_commit(self, game_id: str):
        if self.dispatcher is None:
            return
        try:
            await self.dispatcher.evaluate_crash_threshold(game_id)
        except Exception as e:
            log.error("alert.evaluation_failed", game_id=game_id, error=str(e), error_type=type(e).__name__)

    async def create_event(self, data: EventCreate) -> StoredEvent:
        stored = await self.store.insert_one(self._normalize(data, self.clock()))
        log.debug("event.created", id=stored.id, game_id=stored.game_id, event_type=stored.event_type.value)
        if self.metrics is not None:
            self.metrics.record_ingested(stored.event_type.value)

        if stored.event_type == EventType.CRASH:
            await self._after_commit(stored.game_id)
        return stored

    async def create_events(self, batch: Sequence[EventCreate]) -> list[StoredEvent]:
        docs = [self._normalize(data, self.clock()) for data in batch]
        inserted = await self.store.insert_many(docs)
        log.debug("event.batch_created", count=len(inserted))
        if self.metrics is not None:
            self.metrics.record_batch(len(inserted))
            for event_type, count in Counter(e.event_type.value for e in inserted).items():
                self.metrics.record_ingested(event_type, count)

        # One evaluation per game, however many crashes it had in the batch
        crashed_games = dict.fromkeys(d.game_id for d in batch if d.event_type == EventType.CRASH)
        for game_id in crashed_games:
            await self._after_commit(game_id)
        return inserted

    async def get_events(self, query: EventQuery) -> EventPage:
        flt = EventFilter(
            game_id=query.game_id,
            event_type=query.event_type,
            severity=query.severity,
            since=query.from_,
            until=query.to,
        )
        limit = min(query.limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
        offset = query.offset or 0

        events, total = await asyncio.gather(
            self.store.find(flt, sort=TIMESTAMP_DESC, offset=offset, limit=limit),
            self.store.count(flt),
        )
        return EventPage(events=events, total=total)

    async def get_event(self, event_id: str) -> StoredEvent | None:
        return await self.store.find_by_id(event_id)
