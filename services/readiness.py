"""Startup gate that waits for the observation store to answer reads."""

from __future__ import annotations

import logging
import time
from enum import Enum
from threading import Event
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_WAIT = 30.0


class ReadinessState(str, Enum):
    waiting = "waiting"
    ready = "ready"
    failed = "failed"
    cancelled = "cancelled"


class ReadinessGate:
    """Polls ``probe`` until it returns without raising, or gives up.

    ``stop_event`` only needs ``wait(timeout) -> bool`` and ``is_set()``, which
    lets tests drive the gate with a fake clock.
    """

    def __init__(
        self,
        probe: Callable[[], object],
        max_wait: float = DEFAULT_MAX_WAIT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe = probe
        self.max_wait = max_wait
        self.poll_interval = poll_interval
        self._clock = clock
        self.state = ReadinessState.waiting
        self.attempts = 0

    def wait(self, stop_event: Event) -> ReadinessState:
        self.state = ReadinessState.waiting
        self.attempts = 0
        started = self._clock()

        while True:
            if stop_event.is_set():
                return self._finish(ReadinessState.cancelled)

            self.attempts += 1
            try:
                self._probe()
            except Exception as exc:  # noqa: BLE001 - any failure means "not ready yet"
                logger.debug(
                    "Store not ready yet: %s", exc, extra={"attempts": self.attempts}
                )
            else:
                return self._finish(ReadinessState.ready)

            if self._clock() - started >= self.max_wait:
                logger.error(
                    "Timed out waiting for the observation store after %.0f seconds",
                    self.max_wait,
                    extra={"attempts": self.attempts},
                )
                return self._finish(ReadinessState.failed)

            if stop_event.wait(self.poll_interval):
                return self._finish(ReadinessState.cancelled)

    def _finish(self, state: ReadinessState) -> ReadinessState:
        self.state = state
        if state is ReadinessState.ready:
            logger.info("Observation store is ready", extra={"attempts": self.attempts})
        elif state is ReadinessState.cancelled:
            logger.info("Waiting for the observation store was cancelled")
        return state
