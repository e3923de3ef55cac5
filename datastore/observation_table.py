from __future__ import annotations
import json
import logging
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, Optional

from app.schemas import ObservationRecord
from models.records import Observation, ObservationKey
from settings import get_settings

logger = logging.getLogger(__name__)


class DuplicateObservationError(ValueError):
    """Raised when an insert would violate the ``(station_id, observation_time)`` key."""

    def __init__(self, key: ObservationKey) -> None:
        station_id, observation_time = key
        super().__init__(
            f"Observation for station {station_id!r} at {observation_time.isoformat()} already exists."
        )
        self.key = key


class ObservationTable:
    """Keyed observation store with optional JSON persistence.

    Writes are all-or-nothing: a batch that conflicts with the natural key, or
    that cannot be flushed to disk, leaves the table as it was.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: Dict[ObservationKey, Observation] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert_one(self, observation: Observation) -> None:
        self.insert_many([observation])

    def insert_many(self, observations: Iterable[Observation]) -> int:
        batch = list(observations)
        if not batch:
            return 0

        with self._lock:
            seen: set[ObservationKey] = set()
            for observation in batch:
                key = observation.key
                if key in self._items or key in seen:
                    raise DuplicateObservationError(key)
                seen.add(key)

            for observation in batch:
                self._items[observation.key] = observation
            try:
                self._persist()
            except OSError:
                for key in seen:
                    self._items.pop(key, None)
                raise
        return len(batch)

    def exists(self, station_id: str, observation_time: datetime) -> bool:
        with self._lock:
            return (station_id, observation_time) in self._items

    def get_item(self, station_id: str, observation_time: datetime) -> Optional[Observation]:
        with self._lock:
            return self._items.get((station_id, observation_time))

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            expired = [
                key for key, item in self._items.items() if item.observation_time < cutoff
            ]
            if not expired:
                return 0
            removed = {key: self._items.pop(key) for key in expired}
            try:
                self._persist()
            except OSError:
                self._items.update(removed)
                raise
        return len(expired)

    def earliest(self) -> Optional[Observation]:
        """Return the oldest observation; used as the readiness probe."""

        with self._lock:
            if not self._items:
                return None
            return min(self._items.values(), key=lambda item: item.observation_time)

    def latest_for_station(self, station_id: str) -> Optional[Observation]:
        with self._lock:
            candidates = [
                item for item in self._items.values() if item.station_id == station_id
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda item: item.observation_time)

    def observations_since(self, station_id: str, since: datetime) -> list[Observation]:
        with self._lock:
            matches = [
                item
                for item in self._items.values()
                if item.station_id == station_id and item.observation_time >= since
            ]
        return sorted(matches, key=lambda item: item.observation_time)

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def scan(self) -> list[Observation]:
        """Return all stored observations ordered by station and time."""

        with self._lock:
            items = list(self._items.values())
        return sorted(items, key=lambda item: (item.station_id, item.observation_time))

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = [
            ObservationRecord.from_observation(item).model_dump(mode="json")
            for item in self._items.values()
        ]
        tmp_path = self.persistence_path.with_suffix(self.persistence_path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True))
        tmp_path.replace(self.persistence_path)

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable observation store file %s", self.persistence_path
            )
            data = []

        for payload in data:
            observation = ObservationRecord.model_validate(payload).to_observation()
            self._items[observation.key] = observation


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> ObservationTable:
    settings = get_settings()
    table_name = settings.store_name if name is None else name
    table_path = settings.store_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return ObservationTable(name=table_name, persistence_path=persistence)
