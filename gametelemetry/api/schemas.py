from pydantic import Field
from typing import List
from ..event_models import CamelModel, EventCreate, StoredEvent
from ..services.aggregation import ErrorGroup, TimeSeriesPoint

MAX_BATCH_SIZE = 100


class BatchEventsRequest(CamelModel):
    events: List[EventCreate] = Field(..., min_length=1, max_length=MAX_BATCH_SIZE)


class BatchEventsResponse(CamelModel):
    inserted: int
    events: List[StoredEvent]


class EventListResponse(CamelModel):
    events: List[StoredEvent]
    total: int


class TimeSeriesResponse(CamelModel):
    game_id: str
    metric: str
    interval: str
    data: List[TimeSeriesPoint]


class TopErrorsResponse(CamelModel):
    game_id: str
    errors: List[ErrorGroup]


class GamesResponse(CamelModel):
    games: List[str]
