"""Telemetry event models shared by the store, services and API."""
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict
import uuid

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic.alias_generators import to_camel

# Open, semi-structured event payload (string keys, any JSON value).
Payload = Dict[str, JsonValue]

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EventType(str, Enum):
    CRASH = "crash"
    PERFORMANCE = "performance"
    SESSION = "session"
    CUSTOM = "custom"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class CamelModel(BaseModel):
    """Base model exposing camelCase names on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventCreate(CamelModel):
    """A raw event submission, before defaults are applied."""
    game_id: str = Field(..., min_length=1, max_length=50)
    event_type: EventType
    severity: Severity | None = None
    payload: Payload | None = None
    timestamp: datetime | None = None


class NewEvent(CamelModel):
    """A normalized event ready to be persisted (no id yet)."""
    game_id: str
    event_type: EventType
    severity: Severity = Severity.INFO
    payload: Payload = Field(default_factory=dict)
    timestamp: datetime
    processed_at: datetime

    @field_validator("timestamp", "processed_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class StoredEvent(NewEvent):
    """A persisted event with its store-assigned identifier."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
