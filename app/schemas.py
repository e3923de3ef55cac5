"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.records import Observation


class SchedulerState(str, Enum):
    """Lifecycle states of the periodic ingestion loop."""

    starting = "starting"
    waiting_for_readiness = "waiting_for_readiness"
    running = "running"
    stopped = "stopped"
    stopped_fatal = "stopped_fatal"
    disabled = "disabled"


class ObservationRecord(BaseModel):
    """Serialized form of an observation, used by the API and the on-disk store."""

    station_id: str = Field(..., min_length=1, description="ICAO station identifier.")
    observation_time: datetime = Field(..., description="Observation time in UTC.")
    temperature: float = Field(..., description="Temperature in degrees Celsius.")
    raw_text: str = Field(..., min_length=1, description="Raw METAR report.")

    @field_validator("observation_time")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def from_observation(cls, observation: Observation) -> "ObservationRecord":
        return cls(
            station_id=observation.station_id,
            observation_time=observation.observation_time,
            temperature=observation.temperature,
            raw_text=observation.raw_text,
        )

    def to_observation(self) -> Observation:
        return Observation(
            station_id=self.station_id,
            observation_time=self.observation_time,
            temperature=self.temperature,
            raw_text=self.raw_text,
        )


class AverageTemperatureResponse(BaseModel):
    """Mean temperature for a station over the trailing window."""

    station_id: str
    average_temperature: float
    observation_count: int = Field(..., ge=1)
    window_start: datetime
    window_end: datetime


class IngestionSummary(BaseModel):
    """Counters describing a single fetch/parse/dedup/persist cycle."""

    fetched_bytes: int = Field(default=0, ge=0)
    decompressed_bytes: int = Field(default=0, ge=0)
    parsed_count: int = Field(default=0, ge=0)
    skipped_rows: int = Field(default=0, ge=0)
    parse_failed: bool = Field(
        default=False,
        description="True when the feed could not be parsed at all, as opposed to holding no rows.",
    )
    batch_duplicates: int = Field(default=0, ge=0)
    existing_duplicates: int = Field(default=0, ge=0)
    inserted_count: int = Field(default=0, ge=0)
    started_at: datetime
    finished_at: Optional[datetime] = None
    processing_ms: Optional[int] = Field(
        default=None, description="Duration in milliseconds from start to finish."
    )


class HealthResponse(BaseModel):
    status: str = "ok"
    scheduler: SchedulerState
    observation_count: int = Field(..., ge=0)
