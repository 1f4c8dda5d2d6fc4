"""
File-backed schedule repository.

Layout under ``data_dir``:
    providers.json                         provider directory
    booking_index.json                     booking_id -> [provider_id, date]
    schedules/<provider_id>/<date>.json    {"version": n, "bookings": [...]}
    .store.lock                            inter-process write lock

Writers hold ``.store.lock`` for the whole read-check-write, so the version
check holds across processes and engines sharing the directory. Every file
is replaced atomically from a uniquely named temp file. The index is written
before the schedule files: a write interrupted in between leaves at most an
index entry pointing at nothing, never a stored booking that cannot be found.
"""

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from filelock import FileLock, Timeout

from booking_engine.errors import ScheduleLockTimeout
from booking_engine.repository.base import ScheduleKey, ScheduleRepository, schedule_key
from booking_engine.schemas.scheduling_schema import Booking, Provider

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".store.lock"


class JsonScheduleRepository(ScheduleRepository):
    def __init__(self, data_dir: str = "./data/schedule", lock_timeout: float = 10.0) -> None:
        self._data_dir = Path(data_dir)
        (self._data_dir / "schedules").mkdir(parents=True, exist_ok=True)
        self._lock_timeout = lock_timeout
        self._file_lock = FileLock(str(self.lock_path), timeout=lock_timeout)

    @property
    def lock_path(self) -> Path:
        return self._data_dir / LOCK_FILENAME

    # ------------------------------------------------------------------ #
    # Paths and raw file access
    # ------------------------------------------------------------------ #

    def _providers_path(self) -> Path:
        return self._data_dir / "providers.json"

    def _index_path(self) -> Path:
        return self._data_dir / "booking_index.json"

    def _schedule_path(self, key: ScheduleKey) -> Path:
        provider_id, day = key
        return self._data_dir / "schedules" / provider_id / f"{day.isoformat()}.json"

    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_json(self, path: Path, data: Any) -> None:
        """Save JSON atomically via a temp file unique to this write."""
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                dir=path.parent,
                prefix=f"{path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as f:
                temp_path = Path(f.name)
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError):
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise

    def _load_schedule(self, key: ScheduleKey) -> dict[str, Any]:
        return self._read_json(self._schedule_path(key), {"version": 0, "bookings": []})

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the store-wide write lock. A timeout surfaces as ScheduleLockTimeout."""
        try:
            self._file_lock.acquire()
        except Timeout:
            logger.warning(
                "Timed out after %.2fs waiting for %s", self._lock_timeout, self.lock_path
            )
            raise ScheduleLockTimeout(
                f"Schedule store at {self._data_dir} is busy; retry the request"
            ) from None
        try:
            yield
        finally:
            self._file_lock.release()

    # ------------------------------------------------------------------ #
    # Providers
    # ------------------------------------------------------------------ #

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        raw = self._read_json(self._providers_path(), {}).get(provider_id)
        return Provider.model_validate(raw) if raw is not None else None

    def upsert_provider(self, provider: Provider) -> None:
        with self._exclusive():
            providers = self._read_json(self._providers_path(), {})
            providers[provider.provider_id] = provider.model_dump(mode="json")
            self._write_json(self._providers_path(), providers)

    # ------------------------------------------------------------------ #
    # Bookings
    # ------------------------------------------------------------------ #

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        location = self._read_json(self._index_path(), {}).get(booking_id)
        if location is None:
            return None
        provider_id, day = location
        key = schedule_key(provider_id, date.fromisoformat(day))
        for raw in self._load_schedule(key)["bookings"]:
            if raw["booking_id"] == booking_id:
                return Booking.model_validate(raw)
        logger.warning("Booking %s indexed but missing from %s", booking_id, key)
        return None

    def list_bookings(self, provider_id: str, day: date) -> list[Booking]:
        data = self._load_schedule(schedule_key(provider_id, day))
        bookings = [Booking.model_validate(raw) for raw in data["bookings"]]
        return sorted(bookings, key=lambda b: b.start_time)

    def schedule_version(self, provider_id: str, day: date) -> int:
        return int(self._load_schedule(schedule_key(provider_id, day))["version"])

    def save_bookings(
        self,
        bookings: Iterable[Booking],
        expected_versions: dict[ScheduleKey, int],
    ) -> None:
        bookings = list(bookings)
        with self._exclusive():
            keys = set(expected_versions) | {
                schedule_key(b.provider_id, b.date) for b in bookings
            }
            schedules = {key: self._load_schedule(key) for key in keys}
            self._check_versions(
                expected_versions,
                {key: int(data["version"]) for key, data in schedules.items()},
            )

            index = self._read_json(self._index_path(), {})
            touched: set[ScheduleKey] = set()
            for booking in bookings:
                key = schedule_key(booking.provider_id, booking.date)
                rows = [
                    r for r in schedules[key]["bookings"]
                    if r["booking_id"] != booking.booking_id
                ]
                rows.append(booking.model_dump(mode="json"))
                schedules[key]["bookings"] = rows
                index[booking.booking_id] = [booking.provider_id, booking.date.isoformat()]
                touched.add(key)

            # Index first, so every stored booking is reachable by id
            self._write_json(self._index_path(), index)
            for key in sorted(touched):
                schedules[key]["version"] = int(schedules[key]["version"]) + 1
                self._write_json(self._schedule_path(key), schedules[key])
        logger.debug("Persisted %d booking(s) to %s", len(bookings), self._data_dir)
