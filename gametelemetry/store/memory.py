"""In-memory event store."""
from typing import Any, Sequence
import structlog
from .base import EventStore
from .query import (
    EventFilter,
    GroupKey,
    Reducer,
    Sort,
    TIMESTAMP_DESC,
    get_field,
    hashable,
    run_aggregation,
    sort_events,
)
from ..event_models import NewEvent, StoredEvent

log = structlog.get_logger()


class InMemoryEventStore(EventStore):
    """In-memory implementation of the event store.

    Events are kept in insertion order, which is also the scan order used
    for aggregation.
    """

    def __init__(self):
        self._events: list[StoredEvent] = []
        self._by_id: dict[str, StoredEvent] = {}

    def _store(self, event: NewEvent) -> StoredEvent:
        stored = StoredEvent(**event.model_dump())
        self._events.append(stored)
        self._by_id[stored.id] = stored
        return stored

    async def insert_one(self, event: NewEvent) -> StoredEvent:
        stored = self._store(event)
        log.debug("store.inserted", id=stored.id, game_id=stored.game_id, adapter="memory")
        return stored

    async def insert_many(self, events: Sequence[NewEvent]) -> list[StoredEvent]:
        # Build every record before appending so a bad item leaves the store untouched
        staged = [StoredEvent(**e.model_dump()) for e in events]
        for stored in staged:
            self._events.append(stored)
            self._by_id[stored.id] = stored
        log.debug("store.batch_inserted", count=len(staged), adapter="memory")
        return staged

    async def find(
        self,
        filter: EventFilter,
        sort: Sort | None = TIMESTAMP_DESC,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[StoredEvent]:
        matched = sort_events([e for e in self._events if filter.matches(e)], sort)
        end = None if limit is None else offset + limit
        return matched[offset:end]

    async def count(self, filter: EventFilter) -> int:
        return sum(1 for e in self._events if filter.matches(e))

    async def find_by_id(self, event_id: str) -> StoredEvent | None:
        return self._by_id.get(event_id)

    async def distinct(self, field: str) -> list[Any]:
        seen: dict[Any, Any] = {}
        for event in self._events:
            value = get_field(event, field)
            seen.setdefault(hashable(value), value)
        return list(seen.values())

    async def aggregate(
        self,
        match: EventFilter,
        group_by: GroupKey,
        reducers: dict[str, Reducer],
        sort: Sort | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        return run_aggregation(list(self._events), match, group_by, reducers, sort, limit)

    async def health_check(self) -> bool:
        """In-memory store is always healthy."""
        return True
