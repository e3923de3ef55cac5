"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.schemas import (
    AverageTemperatureResponse,
    HealthResponse,
    IngestionSummary,
    ObservationRecord,
    SchedulerState,
)
from datastore.observation_table import ObservationTable, build_default_table
from services.aggregator import TemperatureAggregator
from services.ingestion import IngestionCoordinator, build_default_coordinator

logger = logging.getLogger(__name__)

router = APIRouter()

AVERAGE_WINDOW = timedelta(hours=24)


def get_table() -> ObservationTable:
    return build_default_table()


def get_coordinator() -> IngestionCoordinator:
    return build_default_coordinator()


@router.get(
    "/observations/{station_id}",
    response_model=ObservationRecord,
    summary="Fetch the latest observation for a station.",
)
async def get_latest_observation(
    station_id: str,
    table: ObservationTable = Depends(get_table),
) -> ObservationRecord:
    observation = table.latest_for_station(station_id)
    if observation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No observations found for station {station_id!r}.",
        )
    return ObservationRecord.from_observation(observation)


@router.get(
    "/observations/{station_id}/average-temperature",
    response_model=AverageTemperatureResponse,
    summary="Average temperature for a station over the last 24 hours.",
)
async def get_average_temperature(
    station_id: str,
    table: ObservationTable = Depends(get_table),
) -> AverageTemperatureResponse:
    window_end = datetime.now(timezone.utc)
    window_start = window_end - AVERAGE_WINDOW
    summary = TemperatureAggregator().aggregate(
        table.observations_since(station_id, window_start)
    )
    if summary.mean_temperature is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No observations in the last 24 hours for station {station_id!r}.",
        )
    return AverageTemperatureResponse(
        station_id=station_id,
        average_temperature=summary.mean_temperature,
        observation_count=summary.observation_count,
        window_start=window_start,
        window_end=window_end,
    )


@router.post(
    "/ingestions",
    response_model=IngestionSummary,
    summary="Run an ingestion cycle now, waiting for any cycle already in progress.",
)
def trigger_ingestion(
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> IngestionSummary:
    try:
        return coordinator.run()
    except (OSError, ValueError, RuntimeError) as exc:
        logger.exception("Manual ingestion run failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Ingestion failed: {exc}",
        ) from exc


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    request: Request,
    table: ObservationTable = Depends(get_table),
) -> HealthResponse:
    scheduler = getattr(request.app.state, "scheduler", None)
    state = scheduler.state if scheduler is not None else SchedulerState.disabled
    return HealthResponse(scheduler=state, observation_count=table.count())


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
