from datetime import datetime
from fastapi import APIRouter, HTTPException, Query
from .schemas import BatchEventsRequest, BatchEventsResponse, EventListResponse
from ..event_models import EventCreate, EventType, Severity, StoredEvent
from ..services.events import EventQuery
from ..services.wiring import events_service

router = APIRouter(prefix="/api/events", tags=["events"])


@router.post("", response_model=StoredEvent, status_code=201)
async def create_event(req: EventCreate):
    return await events_service.create_event(req)


@router.post("/batch", response_model=BatchEventsResponse, status_code=201)
async def create_events(req: BatchEventsRequest):
    events = await events_service.create_events(req.events)
    return BatchEventsResponse(inserted=len(events), events=events)


@router.get("", response_model=EventListResponse)
async def list_events(
    game_id: str | None = Query(None, alias="gameId"),
    event_type: EventType | None = Query(None, alias="eventType"),
    severity: Severity | None = None,
    from_: datetime | None = Query(None, alias="from"),
    to: datetime | None = None,
    limit: int | None = Query(None, ge=0),
    offset: int | None = Query(None, ge=0),
):
    page = await events_service.get_events(
        EventQuery(
            game_id=game_id,
            event_type=event_type,
            severity=severity,
            from_=from_,
            to=to,
            limit=limit,
            offset=offset,
        )
    )
    return EventListResponse(events=page.events, total=page.total)


@router.get("/{event_id}", response_model=StoredEvent)
async def get_event(event_id: str):
    event = await events_service.get_event(event_id)
    if event is None:
        raise HTTPException(404, detail="Event not found")
    return event
