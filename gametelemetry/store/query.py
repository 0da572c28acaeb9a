"""Query building blocks for event stores.

Filters, sort orders, group keys and reducers are plain objects so that every
backend shares the same semantics. Backends that cannot push grouping down to
the database evaluate it client-side with :func:`run_aggregation`.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Literal
import orjson
from pydantic import BaseModel

from ..event_models import EventType, Severity, StoredEvent, ensure_utc

Interval = Literal["hour", "day"]

BUCKET_FORMATS: dict[str, str] = {
    "hour": "%Y-%m-%dT%H:00:00Z",
    "day": "%Y-%m-%dT00:00:00Z",
}

_MISSING = object()


class EventFilter(BaseModel):
    """Conjunctive event predicate. ``since``/``until`` bounds are inclusive."""
    game_id: str | None = None
    event_type: EventType | None = None
    severity: Severity | None = None
    since: datetime | None = None
    until: datetime | None = None

    def matches(self, event: StoredEvent) -> bool:
        if self.game_id is not None and event.game_id != self.game_id:
            return False
        if self.event_type is not None and event.event_type != self.event_type:
            return False
        if self.severity is not None and event.severity != self.severity:
            return False
        if self.since is not None and event.timestamp < ensure_utc(self.since):
            return False
        if self.until is not None and event.timestamp > ensure_utc(self.until):
            return False
        return True


@dataclass(frozen=True)
class Sort:
    field: str = "timestamp"
    descending: bool = True


TIMESTAMP_DESC = Sort("timestamp", descending=True)


def get_field(event: StoredEvent, path: str) -> Any:
    """
    Extract a value from an event by field path.

    Supports top-level attributes (``game_id``, ``timestamp``...) and dotted
    access into the payload (``payload.errorType``). Returns ``None`` when the
    path does not resolve.
    """
    if path == "payload":
        return event.payload
    if path.startswith("payload."):
        value: Any = event.payload
        for part in path[len("payload."):].split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
        return value
    return getattr(event, path, None)


def hashable(value: Any) -> Any:
    """Stable hashable form of a JSON value, used as a grouping key."""
    if isinstance(value, (dict, list)):
        return orjson.dumps(value, option=orjson.OPT_SORT_KEYS)
    # True == 1 in Python; JSON keeps them distinct
    return type(value).__name__, value


class GroupKey(ABC):
    """Derives the grouping key of an event."""

    @abstractmethod
    def key(self, event: StoredEvent) -> Any:
        pass


@dataclass(frozen=True)
class TimeBucket(GroupKey):
    """Truncates the event timestamp to the start of its UTC hour or day."""
    interval: Interval = "hour"

    def key(self, event: StoredEvent) -> str:
        return event.timestamp.strftime(BUCKET_FORMATS[self.interval])


@dataclass(frozen=True)
class FieldValue(GroupKey):
    """Groups by the value at ``path``; absent and null values share ``missing``."""
    path: str
    missing: Any = None

    def key(self, event: StoredEvent) -> Any:
        value = get_field(event, self.path)
        return self.missing if value is None else value


class Reducer(ABC):
    """Per-group accumulator."""

    @abstractmethod
    def start(self, event: StoredEvent) -> Any:
        pass

    @abstractmethod
    def step(self, acc: Any, event: StoredEvent) -> Any:
        pass


class Count(Reducer):
    def start(self, event):
        return 1

    def step(self, acc, event):
        return acc + 1


@dataclass(frozen=True)
class MaxOf(Reducer):
    field: str

    def start(self, event):
        return get_field(event, self.field)

    def step(self, acc, event):
        value = get_field(event, self.field)
        if acc is None or (value is not None and value > acc):
            return value
        return acc


@dataclass(frozen=True)
class FirstOf(Reducer):
    """Keeps the value from the first event scanned for the group."""
    field: str

    def start(self, event):
        return get_field(event, self.field)

    def step(self, acc, event):
        return acc


def sort_events(events: list[StoredEvent], sort: Sort | None) -> list[StoredEvent]:
    if sort is None:
        return events
    return sorted(events, key=lambda e: get_field(e, sort.field), reverse=sort.descending)


def run_aggregation(
    events: Iterable[StoredEvent],
    match: EventFilter,
    group_by: GroupKey,
    reducers: dict[str, Reducer],
    sort: Sort | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """
    Filter, group and reduce events.

    Each result row has the group key under ``"key"`` plus one entry per
    reducer. Groups appear in first-seen scan order unless ``sort`` is given;
    the sort is stable so ties keep scan order.
    """
    groups: dict[Any, dict[str, Any]] = {}
    for event in events:
        if not match.matches(event):
            continue
        raw_key = group_by.key(event)
        slot = hashable(raw_key)
        row = groups.get(slot, _MISSING)
        if row is _MISSING:
            row = {"key": raw_key}
            for name, reducer in reducers.items():
                row[name] = reducer.start(event)
            groups[slot] = row
        else:
            for name, reducer in reducers.items():
                row[name] = reducer.step(row[name], event)

    rows = list(groups.values())
    if sort is not None:
        rows.sort(key=lambda r: r[sort.field], reverse=sort.descending)
    if limit is not None:
        rows = rows[:limit]
    return rows
