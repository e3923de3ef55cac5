"""Fetch, deduplicate and persist METAR observations."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from threading import Lock
from typing import Callable, List, Optional

from app.schemas import IngestionSummary
from datastore.observation_table import ObservationTable, build_default_table
from models.records import Observation, ObservationKey
from services.feed_fetcher import FeedFetcher, build_default_fetcher
from services.record_parser import ParseReport, RecordParser
from settings import get_settings

logger = logging.getLogger(__name__)

RETENTION_WINDOW = timedelta(hours=24)

# Shared by every coordinator in the process: scheduled and on-demand runs,
# single inserts and the retention sweep are serialized against each other.
_INGESTION_LOCK = Lock()


class IngestionCoordinator:
    """Runs the fetch → parse → dedup → persist cycle against the store."""

    def __init__(
        self,
        fetcher: FeedFetcher,
        parser: RecordParser,
        table: ObservationTable,
        retention: timedelta = RETENTION_WINDOW,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.fetcher = fetcher
        self.parser = parser
        self.table = table
        self.retention = retention
        self._clock = clock
        self._lock = _INGESTION_LOCK

    def run(self) -> IngestionSummary:
        """Ingest the latest feed snapshot. Concurrent callers wait their turn."""
        with self._lock:
            return self._run_locked()

    def ingest_single(self, observation: Optional[Observation]) -> None:
        if observation is None:
            raise ValueError("Observation cannot be None.")
        with self._lock:
            self.table.insert_one(observation)
        logger.info(
            "Ingested single observation",
            extra={
                "station_id": observation.station_id,
                "observation_time": observation.observation_time.isoformat(),
            },
        )

    def prune_expired(self, now: Optional[datetime] = None) -> int:
        """Delete observations older than the retention window; returns the count."""
        reference = now or self._clock()
        cutoff = reference - self.retention
        with self._lock:
            deleted = self.table.delete_older_than(cutoff)
        logger.info(
            "Retention sweep finished",
            extra={"deleted_count": deleted, "cutoff": cutoff.isoformat()},
        )
        return deleted

    def _run_locked(self) -> IngestionSummary:
        start_time = time.perf_counter()
        summary = IngestionSummary(started_at=self._clock())

        compressed = self.fetcher.fetch()
        summary.fetched_bytes = len(compressed)
        payload = self.fetcher.decompress(compressed)
        summary.decompressed_bytes = len(payload)

        report = self.parser.parse_report(payload)
        candidates = self._candidates(report)
        summary.parsed_count = len(candidates)
        summary.skipped_rows = report.skipped_rows
        summary.parse_failed = report.failed

        unique = self._dedupe_batch(candidates)
        summary.batch_duplicates = len(candidates) - len(unique)

        new_observations = [
            observation
            for observation in unique
            if not self.table.exists(observation.station_id, observation.observation_time)
        ]
        summary.existing_duplicates = len(unique) - len(new_observations)

        summary.inserted_count = self.table.insert_many(new_observations)

        summary.finished_at = self._clock()
        summary.processing_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Ingestion run finished",
            extra={
                "fetched_bytes": summary.fetched_bytes,
                "parsed_count": summary.parsed_count,
                "skipped_rows": summary.skipped_rows,
                "batch_duplicates": summary.batch_duplicates,
                "existing_duplicates": summary.existing_duplicates,
                "inserted_count": summary.inserted_count,
                "processing_ms": summary.processing_ms,
            },
        )
        return summary

    @staticmethod
    def _candidates(report: Optional[ParseReport]) -> List[Observation]:
        # Failures upstream degrade to an empty list; None means a broken parser.
        if report is None or report.observations is None:
            raise RuntimeError("Feed parser returned no batch; expected a list of observations.")
        return list(report.observations)

    @staticmethod
    def _dedupe_batch(observations: List[Observation]) -> List[Observation]:
        seen: set[ObservationKey] = set()
        unique: List[Observation] = []
        for observation in observations:
            if observation.key in seen:
                continue
            seen.add(observation.key)
            unique.append(observation)
        return unique


@lru_cache
def build_default_coordinator() -> IngestionCoordinator:
    """Factory that wires the coordinator with the configured feed and store."""
    settings = get_settings()
    return IngestionCoordinator(
        fetcher=build_default_fetcher(),
        parser=RecordParser(),
        table=build_default_table(),
        retention=timedelta(hours=settings.retention_hours),
    )
