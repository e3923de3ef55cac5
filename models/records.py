"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Tuple

ObservationKey = Tuple[str, datetime]


@dataclass(frozen=True, slots=True)
class Observation:
    """A single METAR observation parsed from the feed.

    ``observation_time`` is always timezone-aware UTC; naive values are taken
    to be UTC. Observations are identified by their natural key
    ``(station_id, observation_time)``.
    """

    station_id: str
    observation_time: datetime
    temperature: float
    raw_text: str

    def __post_init__(self) -> None:
        moment = self.observation_time
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        else:
            moment = moment.astimezone(timezone.utc)
        object.__setattr__(self, "observation_time", moment)

    @property
    def key(self) -> ObservationKey:
        return (self.station_id, self.observation_time)
