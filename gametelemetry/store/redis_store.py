"""Redis-backed event store."""
from typing import Any, Sequence
import structlog
import orjson
from redis.asyncio import Redis
from redis.exceptions import RedisError
from .base import EventStore, StoreError
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
from ..event_models import NewEvent, StoredEvent, ensure_utc
from ..config import get_settings

log = structlog.get_logger()
settings = get_settings()


class RedisEventStore(EventStore):
    """Redis implementation of the event store.

    Layout (``<prefix>`` defaults to ``telemetry``):

    - ``<prefix>:events``        hash, event id -> JSON document
    - ``<prefix>:events:by_ts``  sorted set, event id scored by epoch timestamp
    - ``<prefix>:games``         set of known game ids

    Writes go through a MULTI/EXEC pipeline so a batch is stored entirely or
    not at all. Filters narrow the scan by timestamp range via the sorted set;
    the remaining predicates, sorting and grouping run client-side, so the
    aggregation scan order is ascending timestamp.
    """

    def __init__(self, redis_url: str | None = None, key_prefix: str | None = None):
        """
        Initialize Redis event store.

        Args:
            redis_url: Redis connection URL (defaults to settings.REDIS_URL)
            key_prefix: Key namespace (defaults to settings.REDIS_KEY_PREFIX)
        """
        self.redis_url = redis_url or str(settings.REDIS_URL)
        prefix = key_prefix or settings.REDIS_KEY_PREFIX
        self._events_key = f"{prefix}:events"
        self._index_key = f"{prefix}:events:by_ts"
        self._games_key = f"{prefix}:games"
        self._client: Redis | None = None

    def _get_client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=False,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return self._client

    async def _write(self, stored: list[StoredEvent]) -> None:
        documents = {e.id: orjson.dumps(e.model_dump(mode="json")) for e in stored}
        scores = {e.id: e.timestamp.timestamp() for e in stored}
        games = {e.game_id for e in stored}
        try:
            async with self._get_client().pipeline(transaction=True) as pipe:
                pipe.hset(self._events_key, mapping=documents)
                pipe.zadd(self._index_key, scores)
                pipe.sadd(self._games_key, *games)
                await pipe.execute()
        except RedisError as e:
            log.error("redis.insert_failed", error=str(e), count=len(stored))
            raise StoreError(f"failed to insert {len(stored)} event(s)") from e

    async def insert_one(self, event: NewEvent) -> StoredEvent:
        stored = StoredEvent(**event.model_dump())
        await self._write([stored])
        log.debug("store.inserted", id=stored.id, game_id=stored.game_id, adapter="redis")
        return stored

    async def insert_many(self, events: Sequence[NewEvent]) -> list[StoredEvent]:
        stored = [StoredEvent(**e.model_dump()) for e in events]
        if stored:
            await self._write(stored)
        log.debug("store.batch_inserted", count=len(stored), adapter="redis")
        return stored

    async def _scan(self, filter: EventFilter | None = None) -> list[StoredEvent]:
        """Load candidate events in ascending timestamp order."""
        client = self._get_client()
        low = "-inf"
        high = "+inf"
        if filter is not None and filter.since is not None:
            low = ensure_utc(filter.since).timestamp()
        if filter is not None and filter.until is not None:
            high = ensure_utc(filter.until).timestamp()

        try:
            ids = await client.zrangebyscore(self._index_key, low, high)
            if not ids:
                return []
            documents = await client.hmget(self._events_key, ids)
        except RedisError as e:
            log.error("redis.scan_failed", error=str(e))
            raise StoreError("failed to read events") from e

        events = []
        for raw in documents:
            if raw is None:
                continue
            event = StoredEvent.model_validate(orjson.loads(raw))
            if filter is None or filter.matches(event):
                events.append(event)
        return events

    async def find(
        self,
        filter: EventFilter,
        sort: Sort | None = TIMESTAMP_DESC,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[StoredEvent]:
        matched = sort_events(await self._scan(filter), sort)
        end = None if limit is None else offset + limit
        return matched[offset:end]

    async def count(self, filter: EventFilter) -> int:
        return len(await self._scan(filter))

    async def find_by_id(self, event_id: str) -> StoredEvent | None:
        try:
            raw = await self._get_client().hget(self._events_key, event_id)
        except RedisError as e:
            log.error("redis.get_failed", error=str(e), event_id=event_id)
            raise StoreError(f"failed to read event {event_id}") from e
        if raw is None:
            return None
        return StoredEvent.model_validate(orjson.loads(raw))

    async def distinct(self, field: str) -> list[Any]:
        if field == "game_id":
            try:
                members = await self._get_client().smembers(self._games_key)
            except RedisError as e:
                log.error("redis.distinct_failed", error=str(e), field=field)
                raise StoreError("failed to list games") from e
            return sorted(m.decode() if isinstance(m, bytes) else m for m in members)

        seen: dict[Any, Any] = {}
        for event in await self._scan():
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
        return run_aggregation(await self._scan(match), match, group_by, reducers, sort, limit)

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is accessible, False otherwise
        """
        try:
            return bool(await self._get_client().ping())
        except Exception as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
