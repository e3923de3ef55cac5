"""Background loop that keeps the observation store up to date."""

from __future__ import annotations

import logging
import math
from threading import Event, Thread
from typing import Optional

from app.schemas import SchedulerState
from services.ingestion import IngestionCoordinator
from services.readiness import ReadinessGate, ReadinessState

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 10.0


def clamp_interval(seconds: float) -> float:
    """Apply the polling floor so the remote feed is never hammered."""
    if not math.isfinite(seconds) or seconds < MIN_INTERVAL_SECONDS:
        logger.warning(
            "Configured update interval of %ss is invalid or below the minimum of %ss; using the minimum",
            seconds,
            MIN_INTERVAL_SECONDS,
            extra={"interval_seconds": MIN_INTERVAL_SECONDS},
        )
        return MIN_INTERVAL_SECONDS
    return seconds


class Scheduler:
    """Waits for the store, then ingests and prunes on a fixed interval.

    States: ``starting`` → ``waiting_for_readiness`` → ``running`` →
    ``stopped``, or ``stopped_fatal`` when the store never becomes readable.
    A failing cycle is logged and the loop carries on at the next tick.
    """

    def __init__(
        self,
        coordinator: IngestionCoordinator,
        gate: ReadinessGate,
        interval: float,
        grace_period: float = 2.0,
        stop_event: Optional[Event] = None,
    ) -> None:
        self.coordinator = coordinator
        self.gate = gate
        self.interval = clamp_interval(interval)
        self.grace_period = max(grace_period, 0.0)
        self.stop_event = stop_event or Event()
        self.state = SchedulerState.starting
        self.cycles = 0
        self._thread: Optional[Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = Thread(target=self.run, name="metar-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run(self) -> SchedulerState:
        """Drive the loop on the calling thread until stopped."""
        self.state = SchedulerState.starting
        logger.info(
            "Scheduler starting", extra={"interval_seconds": self.interval, "state": self.state.value}
        )
        if self.grace_period and self.stop_event.wait(self.grace_period):
            return self._transition(SchedulerState.stopped)

        self._transition(SchedulerState.waiting_for_readiness)
        outcome = self.gate.wait(self.stop_event)
        if outcome is ReadinessState.cancelled:
            return self._transition(SchedulerState.stopped)
        if outcome is not ReadinessState.ready:
            logger.error("Observation store never became ready; periodic updates are disabled")
            return self._transition(SchedulerState.stopped_fatal)

        self._transition(SchedulerState.running)
        while not self.stop_event.is_set():
            self.tick()
            if self.stop_event.wait(self.interval):
                break
        return self._transition(SchedulerState.stopped)

    def tick(self) -> None:
        """Run one ingestion cycle followed by the retention sweep."""
        self.cycles += 1
        try:
            self.coordinator.run()
        except Exception:
            logger.exception("Error during periodic ingestion")
        try:
            self.coordinator.prune_expired()
        except Exception:
            logger.exception("Error during retention sweep")

    def _transition(self, state: SchedulerState) -> SchedulerState:
        self.state = state
        logger.info("Scheduler state changed", extra={"state": state.value})
        return state


def build_scheduler(
    coordinator: IngestionCoordinator,
    interval: float,
    grace_period: float = 2.0,
) -> Scheduler:
    """Wire a scheduler whose readiness probe reads the coordinator's store."""
    gate = ReadinessGate(probe=coordinator.table.earliest)
    return Scheduler(
        coordinator=coordinator,
        gate=gate,
        interval=interval,
        grace_period=grace_period,
    )
