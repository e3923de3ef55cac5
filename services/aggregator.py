"""Temperature statistics over a set of observations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from models.records import Observation


@dataclass
class TemperatureSummary:
    """Computed statistics for a batch of observations."""

    observation_count: int = 0
    min_temperature: float | None = None
    max_temperature: float | None = None
    mean_temperature: float | None = None


class TemperatureAggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(self, observations: Iterable[Observation]) -> TemperatureSummary:
        summary = TemperatureSummary()
        total = 0.0

        for observation in observations:
            summary.observation_count += 1
            value = observation.temperature
            total += value

            if summary.min_temperature is None or value < summary.min_temperature:
                summary.min_temperature = value
            if summary.max_temperature is None or value > summary.max_temperature:
                summary.max_temperature = value

        if summary.observation_count:
            summary.mean_temperature = total / summary.observation_count

        return summary
