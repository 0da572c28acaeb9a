"""Read-side aggregate queries over stored events."""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Literal
from pydantic import BaseModel, JsonValue
from ..event_models import CamelModel, Clock, EventType, Severity, utcnow
from ..store.base import EventStore
from ..store.query import Count, EventFilter, FieldValue, FirstOf, Interval, MaxOf, Sort, TimeBucket

Metric = Literal["crashes", "sessions", "events"]

METRIC_EVENT_TYPES: dict[str, EventType | None] = {
    "crashes": EventType.CRASH,
    "sessions": EventType.SESSION,
    "events": None,
}

# Group reported for crashes whose payload carries no errorType
UNKNOWN_ERROR_TYPE = "unknown"
TOP_ERRORS_WINDOW = timedelta(hours=24)
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def window_start(now: datetime, hours: int) -> datetime:
    """Start of a trailing window of `hours`, clamped to the earliest representable time."""
    try:
        return now - timedelta(hours=hours)
    except OverflowError:
        return EARLIEST


class SummaryMetrics(CamelModel):
    game_id: str
    period: str
    crash_count: int
    session_count: int
    event_count: int
    critical_count: int


class TimeSeriesPoint(BaseModel):
    timestamp: str
    value: int


class ErrorGroup(CamelModel):
    error_type: JsonValue
    count: int
    last_seen: datetime
    sample: JsonValue


class AggregationService:
    """Computes summaries, time series and error rankings from the event store."""

    def __init__(self, store: EventStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    async def get_summary(self, game_id: str, hours: int = 24) -> SummaryMetrics:
        since = window_start(self.clock(), hours)

        crash_count, session_count, event_count, critical_count = await asyncio.gather(
            self.store.count(EventFilter(game_id=game_id, event_type=EventType.CRASH, since=since)),
            self.store.count(EventFilter(game_id=game_id, event_type=EventType.SESSION, since=since)),
            self.store.count(EventFilter(game_id=game_id, since=since)),
            self.store.count(EventFilter(game_id=game_id, severity=Severity.CRITICAL, since=since)),
        )

        return SummaryMetrics(
            game_id=game_id,
            period=f"{hours}h",
            crash_count=crash_count,
            session_count=session_count,
            event_count=event_count,
            critical_count=critical_count,
        )

    async def get_time_series(
        self,
        game_id: str,
        metric: Metric = "events",
        interval: Interval = "hour",
        hours: int = 24,
    ) -> list[TimeSeriesPoint]:
        """
        Count matching events per hour or day bucket, oldest bucket first.

        Only buckets with at least one event are returned.
        """
        match = EventFilter(
            game_id=game_id,
            event_type=METRIC_EVENT_TYPES[metric],
            since=window_start(self.clock(), hours),
        )
        rows = await self.store.aggregate(
            match,
            group_by=TimeBucket(interval),
            reducers={"value": Count()},
            sort=Sort("key", descending=False),
        )
        return [TimeSeriesPoint(timestamp=row["key"], value=row["value"]) for row in rows]

    async def get_top_errors(self, game_id: str, limit: int = 10) -> list[ErrorGroup]:
        """
        Rank crash error types over the last 24 hours.

        ``sample`` is the payload of whichever event the store scanned first
        for the group; it is a representative, not the earliest or latest.
        """
        match = EventFilter(
            game_id=game_id,
            event_type=EventType.CRASH,
            since=self.clock() - TOP_ERRORS_WINDOW,
        )
        rows = await self.store.aggregate(
            match,
            group_by=FieldValue("payload.errorType", missing=UNKNOWN_ERROR_TYPE),
            reducers={
                "count": Count(),
                "last_seen": MaxOf("timestamp"),
                "sample": FirstOf("payload"),
            },
            sort=Sort("count", descending=True),
            limit=limit,
        )
        return [
            ErrorGroup(
                error_type=row["key"],
                count=row["count"],
                last_seen=row["last_seen"],
                sample=row["sample"],
            )
            for row in rows
        ]

    async def get_games_list(self) -> list[Any]:
        return await self.store.distinct("game_id")
