"""Tests for store query building blocks."""
from datetime import datetime, timezone
from gametelemetry.event_models import EventType, Severity, StoredEvent
from gametelemetry.store.query import (
    Count,
    EventFilter,
    FieldValue,
    FirstOf,
    MaxOf,
    Sort,
    TimeBucket,
    get_field,
    run_aggregation,
)


def event_at(ts, payload=None, game_id="g1", event_type=EventType.CRASH, severity=Severity.INFO):
    return StoredEvent(
        game_id=game_id,
        event_type=event_type,
        severity=severity,
        payload=payload or {},
        timestamp=ts,
        processed_at=ts,
    )


def test_hour_bucket_truncates_to_start_of_hour():
    event = event_at(datetime(2026, 3, 1, 14, 59, 59, 999999, tzinfo=timezone.utc))
    assert TimeBucket("hour").key(event) == "2026-03-01T14:00:00Z"


def test_day_bucket_truncates_to_start_of_utc_day():
    event = event_at(datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc))
    assert TimeBucket("day").key(event) == "2026-03-01T00:00:00Z"


def test_bucket_uses_utc_for_offset_timestamps():
    # 01:30 at +03:00 is 22:30 UTC on the previous day
    event = event_at(datetime.fromisoformat("2026-03-02T01:30:00+03:00"))
    assert TimeBucket("day").key(event) == "2026-03-01T00:00:00Z"
    assert TimeBucket("hour").key(event) == "2026-03-01T22:00:00Z"


def test_naive_timestamp_is_treated_as_utc():
    event = event_at(datetime(2026, 3, 1, 8, 15))
    assert event.timestamp.tzinfo is not None
    assert TimeBucket("hour").key(event) == "2026-03-01T08:00:00Z"


def test_get_field_reads_nested_payload():
    event = event_at(
        datetime(2026, 3, 1, tzinfo=timezone.utc),
        payload={"error": {"type": "OOM"}, "errorType": "OOM"},
    )
    assert get_field(event, "payload.errorType") == "OOM"
    assert get_field(event, "payload.error.type") == "OOM"
    assert get_field(event, "payload.missing.deeper") is None
    assert get_field(event, "game_id") == "g1"


def test_field_value_groups_absent_and_null_together():
    ts = datetime(2026, 3, 1, tzinfo=timezone.utc)
    key = FieldValue("payload.errorType", missing="unknown")
    assert key.key(event_at(ts, payload={})) == "unknown"
    assert key.key(event_at(ts, payload={"errorType": None})) == "unknown"
    assert key.key(event_at(ts, payload={"errorType": "OOM"})) == "OOM"


def test_filter_bounds_are_inclusive():
    ts = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
    event = event_at(ts)
    assert EventFilter(since=ts, until=ts).matches(event)
    assert not EventFilter(since=datetime(2026, 3, 1, 12, 0, 1, tzinfo=timezone.utc)).matches(event)


def test_filter_combines_predicates():
    ts = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
    event = event_at(ts, severity=Severity.CRITICAL)
    assert EventFilter(game_id="g1", event_type=EventType.CRASH, severity=Severity.CRITICAL).matches(event)
    assert not EventFilter(game_id="g2").matches(event)
    assert not EventFilter(event_type=EventType.SESSION).matches(event)
    assert not EventFilter(severity=Severity.INFO).matches(event)


def test_run_aggregation_groups_unhashable_values():
    ts = datetime(2026, 3, 1, tzinfo=timezone.utc)
    events = [
        event_at(ts, payload={"errorType": {"code": 7}}),
        event_at(ts, payload={"errorType": {"code": 7}}),
        event_at(ts, payload={"errorType": ["a"]}),
    ]
    rows = run_aggregation(
        events,
        EventFilter(),
        FieldValue("payload.errorType"),
        {"count": Count()},
        sort=Sort("count", descending=True),
    )
    assert rows == [{"key": {"code": 7}, "count": 2}, {"key": ["a"], "count": 1}]


def test_run_aggregation_reducers():
    events = [
        event_at(datetime(2026, 3, 1, 10, tzinfo=timezone.utc), payload={"errorType": "OOM", "i": 1}),
        event_at(datetime(2026, 3, 1, 12, tzinfo=timezone.utc), payload={"errorType": "OOM", "i": 2}),
        event_at(datetime(2026, 3, 1, 11, tzinfo=timezone.utc), payload={"errorType": "OOM", "i": 3}),
    ]
    [row] = run_aggregation(
        events,
        EventFilter(),
        FieldValue("payload.errorType"),
        {"count": Count(), "last": MaxOf("timestamp"), "sample": FirstOf("payload")},
    )
    assert row["count"] == 3
    assert row["last"] == datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
    assert row["sample"] == {"errorType": "OOM", "i": 1}


def test_run_aggregation_keeps_bool_and_int_apart():
    ts = datetime(2026, 3, 1, tzinfo=timezone.utc)
    events = [
        event_at(ts, payload={"errorType": True}),
        event_at(ts, payload={"errorType": 1}),
        event_at(ts, payload={"errorType": 1}),
        event_at(ts, payload={"errorType": "1"}),
    ]
    rows = run_aggregation(events, EventFilter(), FieldValue("payload.errorType"), {"count": Count()})

    assert rows == [
        {"key": True, "count": 1},
        {"key": 1, "count": 2},
        {"key": "1", "count": 1},
    ]
    assert [type(row["key"]) for row in rows] == [bool, int, str]
