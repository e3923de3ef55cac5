from __future__ import annotations

import gzip
from datetime import datetime
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

import httpx
import pytest

from datastore.observation_table import ObservationTable, build_default_table
from services.feed_fetcher import FeedFetcher, build_default_fetcher
from services.ingestion import IngestionCoordinator, build_default_coordinator
from services.record_parser import RecordParser
from settings import get_settings

FEED_URL = "https://feed.test/data/cache/metars.cache.csv.gz"
FEED_HEADER = "raw_text,station_id,observation_time,latitude,longitude,temp_c,dewpoint_c"

Row = Sequence[object]


def _iso(value: object) -> str:
    if isinstance(value, datetime):
        return value.isoformat().replace("+00:00", "Z")
    return "" if value is None else str(value)


def build_csv(rows: Iterable[Row], preamble: Sequence[str] = ()) -> str:
    """Render ``(station_id, observation_time, temp_c, raw_text)`` rows in feed layout."""
    lines = list(preamble) + [FEED_HEADER]
    for station_id, observation_time, temperature, raw_text in rows:
        lines.append(
            ",".join(
                [
                    _iso(raw_text),
                    _iso(station_id),
                    _iso(observation_time),
                    "40.64",
                    "-73.76",
                    _iso(temperature),
                    "5.0",
                ]
            )
        )
    return "\n".join(lines) + "\n"


def gzip_feed(rows: Iterable[Row], preamble: Sequence[str] = ()) -> bytes:
    return gzip.compress(build_csv(rows, preamble).encode("utf-8"))


class FeedServer:
    """In-process stand-in for the remote feed, served through ``httpx.MockTransport``."""

    def __init__(self, body: bytes = b"", status_code: int = 200) -> None:
        self.body = body
        self.status_code = status_code
        self.requests: List[httpx.Request] = []
        self.error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, content=self.body)

    def fetcher(self) -> FeedFetcher:
        client = httpx.Client(transport=httpx.MockTransport(self.handler))
        return FeedFetcher(url=FEED_URL, client=client)


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStopEvent:
    """Stop event whose waits advance a fake clock instead of sleeping."""

    def __init__(self, clock: FakeClock, stop_after_waits: Optional[int] = None) -> None:
        self.clock = clock
        self.stop_after_waits = stop_after_waits
        self.waits: List[Optional[float]] = []
        self._set = False

    def is_set(self) -> bool:
        return self._set

    def set(self) -> None:
        self._set = True

    def wait(self, timeout: Optional[float] = None) -> bool:
        if self._set:
            return True
        self.waits.append(timeout)
        self.clock.advance(timeout or 0.0)
        if self.stop_after_waits is not None and len(self.waits) >= self.stop_after_waits:
            self._set = True
        return self._set


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch) -> Iterator[None]:
    monkeypatch.setenv("METAR_STORE_PATH", "")
    monkeypatch.setenv("METAR_ENABLE_PERIODIC_UPDATES", "false")
    caches = (get_settings, build_default_table, build_default_fetcher, build_default_coordinator)
    for cache in caches:
        cache.cache_clear()
    yield
    for cache in caches:
        cache.cache_clear()


@pytest.fixture()
def table() -> ObservationTable:
    return ObservationTable(name="test")


@pytest.fixture()
def feed() -> FeedServer:
    return FeedServer()


@pytest.fixture()
def make_coordinator(feed: FeedServer) -> Callable[..., IngestionCoordinator]:
    def factory(table: ObservationTable, **kwargs) -> IngestionCoordinator:
        return IngestionCoordinator(
            fetcher=feed.fetcher(), parser=RecordParser(), table=table, **kwargs
        )

    return factory
