"""CSV decoding of the METAR feed into observations."""

from __future__ import annotations

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Sequence

from models.records import Observation

logger = logging.getLogger(__name__)

STATION_COLUMN = "station_id"
TIME_COLUMN = "observation_time"
TEMPERATURE_COLUMN = "temp_c"
RAW_TEXT_COLUMN = "raw_text"
REQUIRED_COLUMNS = (STATION_COLUMN, TIME_COLUMN, TEMPERATURE_COLUMN, RAW_TEXT_COLUMN)


@dataclass
class ParseReport:
    """Outcome of decoding one feed payload."""

    observations: List[Observation] = field(default_factory=list)
    rows_read: int = 0
    skipped_rows: int = 0
    header_found: bool = False
    failed: bool = False


class RecordParser:
    """Turns decompressed CSV bytes into :class:`Observation` values.

    Malformed rows are skipped. A payload that cannot be decoded at all yields
    an empty result with ``ParseReport.failed`` set, so callers that only use
    :meth:`parse` see the same empty list as for a feed without rows.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def parse(self, data: Optional[bytes]) -> List[Observation]:
        return self.parse_report(data).observations

    def parse_report(self, data: Optional[bytes]) -> ParseReport:
        report = ParseReport()
        if not data:
            return report

        try:
            text = data.decode(self.encoding)
            rows = csv.reader(io.StringIO(text, newline=""))
            columns = self._locate_header(rows)
            if columns is None:
                logger.warning(
                    "Feed has no header row with the required columns",
                    extra={"reason": ", ".join(REQUIRED_COLUMNS)},
                )
                return report
            report.header_found = True

            for row_number, row in self._numbered(rows):
                report.rows_read += 1
                observation = self._build_observation(row_number, row, columns)
                if observation is None:
                    report.skipped_rows += 1
                    continue
                report.observations.append(observation)
        except (csv.Error, UnicodeDecodeError) as exc:
            logger.error("Error parsing feed CSV: %s", exc, extra={"reason": type(exc).__name__})
            return ParseReport(header_found=report.header_found, failed=True)

        logger.debug(
            "Parsed feed",
            extra={"parsed_count": len(report.observations), "skipped_rows": report.skipped_rows},
        )
        return report

    @staticmethod
    def _locate_header(rows: Iterator[List[str]]) -> Optional[Dict[str, int]]:
        # The upstream cache prepends a few status lines before the real header.
        for row in rows:
            normalized = {name.strip().lower(): index for index, name in enumerate(row)}
            if all(column in normalized for column in REQUIRED_COLUMNS):
                return {column: normalized[column] for column in REQUIRED_COLUMNS}
        return None

    @staticmethod
    def _numbered(rows: Iterator[List[str]]) -> Iterator[tuple[int, List[str]]]:
        for row in rows:
            if not any(cell.strip() for cell in row):
                continue
            yield rows.line_num, row  # type: ignore[attr-defined]

    def _build_observation(
        self, row_number: int, row: Sequence[str], columns: Dict[str, int]
    ) -> Optional[Observation]:
        station_raw = self._field(row, columns[STATION_COLUMN])
        timestamp_raw = self._field(row, columns[TIME_COLUMN])
        temperature_raw = self._field(row, columns[TEMPERATURE_COLUMN])
        raw_text = self._field(row, columns[RAW_TEXT_COLUMN])

        if not station_raw:
            return self._skip(row_number, "missing station_id")
        if not timestamp_raw:
            return self._skip(row_number, "missing observation_time", station_raw)
        if not temperature_raw:
            return self._skip(row_number, "missing temp_c", station_raw)
        if not raw_text:
            return self._skip(row_number, "missing raw_text", station_raw)

        try:
            observation_time = self._parse_timestamp(timestamp_raw)
        except ValueError:
            return self._skip(row_number, "invalid observation_time", station_raw)

        try:
            temperature = float(temperature_raw)
        except ValueError:
            return self._skip(row_number, "invalid temp_c", station_raw)
        if not math.isfinite(temperature):
            return self._skip(row_number, "invalid temp_c", station_raw)

        return Observation(
            station_id=station_raw,
            observation_time=observation_time,
            temperature=temperature,
            raw_text=raw_text,
        )

    @staticmethod
    def _field(row: Sequence[str], index: int) -> str:
        if index >= len(row):
            return ""
        return row[index].strip()

    @staticmethod
    def _skip(row_number: int, reason: str, station_id: Optional[str] = None) -> None:
        logger.debug(
            "Skipping row",
            extra={"row_number": row_number, "reason": reason, "station_id": station_id},
        )
        return None

    @staticmethod
    def _parse_timestamp(value: str) -> datetime:
        candidate = value.strip()
        if not candidate:
            raise ValueError("Timestamp is empty.")

        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"

        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValueError("Invalid timestamp format") from exc

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)

        return parsed.astimezone(timezone.utc)
