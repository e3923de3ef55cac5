"""Tests for the store readiness gate."""

from __future__ import annotations

import logging

from services.readiness import ReadinessGate, ReadinessState
from tests.conftest import FakeClock, FakeStopEvent


class FlakyProbe:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1
        if self.failures < 0 or self.calls <= self.failures:
            raise RuntimeError("no such table: observations")


def test_ready_on_first_successful_probe() -> None:
    clock = FakeClock()
    event = FakeStopEvent(clock)
    gate = ReadinessGate(probe=FlakyProbe(failures=0), clock=clock)

    assert gate.wait(event) is ReadinessState.ready
    assert gate.state is ReadinessState.ready
    assert gate.attempts == 1
    assert event.waits == []


def test_probe_errors_are_retried_on_poll_interval() -> None:
    clock = FakeClock()
    event = FakeStopEvent(clock)
    probe = FlakyProbe(failures=2)
    gate = ReadinessGate(probe=probe, clock=clock)

    assert gate.wait(event) is ReadinessState.ready
    assert probe.calls == 3
    assert event.waits == [1.0, 1.0]


def test_times_out_when_store_never_answers(caplog) -> None:
    clock = FakeClock()
    event = FakeStopEvent(clock)
    gate = ReadinessGate(probe=FlakyProbe(failures=-1), clock=clock)

    with caplog.at_level(logging.ERROR, logger="services.readiness"):
        outcome = gate.wait(event)

    assert outcome is ReadinessState.failed
    assert gate.state is ReadinessState.failed
    assert 30.0 <= clock.now <= 31.0
    assert any("Timed out" in r.getMessage() for r in caplog.records)


def test_custom_bounds_are_respected() -> None:
    clock = FakeClock()
    event = FakeStopEvent(clock)
    gate = ReadinessGate(probe=FlakyProbe(failures=-1), max_wait=5.0, poll_interval=0.5, clock=clock)

    assert gate.wait(event) is ReadinessState.failed
    assert gate.attempts == 11
    assert clock.now == 5.0


def test_cancellation_during_poll_is_distinct_from_timeout() -> None:
    clock = FakeClock()
    event = FakeStopEvent(clock, stop_after_waits=3)
    probe = FlakyProbe(failures=-1)
    gate = ReadinessGate(probe=probe, clock=clock)

    assert gate.wait(event) is ReadinessState.cancelled
    assert probe.calls == 3
    assert clock.now == 3.0


def test_already_cancelled_does_not_probe() -> None:
    clock = FakeClock()
    event = FakeStopEvent(clock)
    event.set()
    probe = FlakyProbe(failures=0)

    assert ReadinessGate(probe=probe, clock=clock).wait(event) is ReadinessState.cancelled
    assert probe.calls == 0
