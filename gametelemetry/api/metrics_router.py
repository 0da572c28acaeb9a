"""Aggregate metrics endpoints."""
from fastapi import APIRouter, Query
from .schemas import GamesResponse, TimeSeriesResponse, TopErrorsResponse
from ..services.aggregation import Interval, Metric, SummaryMetrics
from ..services.wiring import aggregation_service

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


@router.get("/summary", response_model=SummaryMetrics)
async def get_summary(
    game_id: str = Query(..., alias="gameId", min_length=1),
    hours: int = Query(24, ge=1),
):
    """Rolling event counts for one game."""
    return await aggregation_service.get_summary(game_id, hours)


@router.get("/timeseries", response_model=TimeSeriesResponse)
async def get_time_series(
    game_id: str = Query(..., alias="gameId", min_length=1),
    metric: Metric = "events",
    interval: Interval = "hour",
    hours: int = Query(24, ge=1),
):
    """Event counts per hour or day bucket."""
    data = await aggregation_service.get_time_series(game_id, metric, interval, hours)
    return TimeSeriesResponse(game_id=game_id, metric=metric, interval=interval, data=data)


@router.get("/errors", response_model=TopErrorsResponse)
async def get_top_errors(
    game_id: str = Query(..., alias="gameId", min_length=1),
    limit: int = Query(10, ge=1),
):
    """Most frequent crash error types over the last 24 hours."""
    errors = await aggregation_service.get_top_errors(game_id, limit)
    return TopErrorsResponse(game_id=game_id, errors=errors)


@router.get("/games", response_model=GamesResponse)
async def list_games():
    """All game ids that have sent events."""
    return GamesResponse(games=await aggregation_service.get_games_list())
