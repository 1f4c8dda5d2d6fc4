"""
Availability queries over the schedule repository.

Wraps the pure calculator with provider/service lookups, the minimum lead
time and a short-lived cache keyed by (provider, date, service). Cached
slots are only served while the schedule version they were computed from
is still current; the transaction manager also drops a provider/date
whenever it writes there.
"""

import logging
import threading
import time as _time
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from booking_engine.repository.base import ScheduleKey, ScheduleRepository, ServiceCatalog
from booking_engine.scheduling.availability import compute_slots
from booking_engine.schemas.booking_schema import DateAvailability
from booking_engine.schemas.scheduling_schema import DAY_NAMES, Provider, Service
from booking_engine.services.validation import earliest_bookable, resolve_offering

logger = logging.getLogger(__name__)

CacheKey = tuple[str, date, str]


class AvailabilityCache:
    """TTL cache of unfiltered slot tuples. A TTL of 0 disables it.

    Entries remember the schedule version they were computed from and are
    ignored once the repository reports a newer one.
    """

    def __init__(
        self,
        ttl_seconds: float = 30.0,
        clock: Callable[[], float] = _time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, tuple[float, int, tuple[time, ...]]] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey, version: int) -> Optional[tuple[time, ...]]:
        if self._ttl <= 0:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, cached_version, slots = entry
            if cached_version != version or self._clock() >= expires_at:
                del self._entries[key]
                return None
            return slots

    def put(self, key: CacheKey, version: int, slots: tuple[time, ...]) -> None:
        if self._ttl <= 0:
            return
        now = self._clock()
        with self._lock:
            expired = [k for k, entry in self._entries.items() if entry[0] <= now]
            for k in expired:
                del self._entries[k]
            self._entries[key] = (now + self._ttl, version, slots)

    def invalidate(self, provider_id: str, day: Optional[date] = None) -> None:
        """Drop entries for a provider, optionally only for one date."""
        with self._lock:
            stale = [
                k for k in self._entries
                if k[0] == provider_id and (day is None or k[1] == day)
            ]
            for k in stale:
                del self._entries[k]

    def invalidate_keys(self, keys: list[ScheduleKey]) -> None:
        for provider_id, day in keys:
            self.invalidate(provider_id, day)

    def __len__(self) -> int:
        return len(self._entries)


class AvailabilityService:
    def __init__(
        self,
        repository: ScheduleRepository,
        catalog: ServiceCatalog,
        cache: Optional[AvailabilityCache] = None,
        slot_granularity_minutes: int = 0,
        min_lead_minutes: int = 0,
    ) -> None:
        self._repository = repository
        self._catalog = catalog
        self._cache = cache or AvailabilityCache(ttl_seconds=0)
        self._granularity = slot_granularity_minutes
        self._min_lead = min_lead_minutes

    @property
    def cache(self) -> AvailabilityCache:
        return self._cache

    def granularity_for(self, service: Service) -> int:
        """Configured grid step, or the service duration when unset."""
        return self._granularity or service.duration_minutes

    def _day_slots(self, provider: Provider, service: Service, day: date) -> tuple[time, ...]:
        key = (provider.provider_id, day, service.service_id)
        version = self._repository.schedule_version(provider.provider_id, day)
        cached = self._cache.get(key, version)
        if cached is not None:
            return cached
        slots = tuple(
            compute_slots(
                provider.windows,
                self._repository.list_occupying(provider.provider_id, day),
                day,
                service.duration_minutes,
                self.granularity_for(service),
            )
        )
        self._cache.put(key, version, slots)
        return slots

    def open_slots(
        self, provider: Provider, service: Service, day: date, now: datetime
    ) -> list[time]:
        """Bookable start times for an already-resolved provider and service."""
        cutoff = earliest_bookable(now, self._min_lead)
        slots = [
            t for t in self._day_slots(provider, service, day)
            if datetime.combine(day, t) > cutoff
        ]
        logger.debug(
            "Availability for %s/%s on %s: %d slot(s)",
            provider.provider_id, service.service_id, day.isoformat(), len(slots),
        )
        return slots

    def get_available_dates(
        self,
        provider_id: str,
        service_id: str,
        start: date,
        now: datetime,
        days: int = 14,
        limit: int = 5,
    ) -> list[DateAvailability]:
        """Get up to ``limit`` dates with open slots in ``[start, start + days)``."""
        provider, service = resolve_offering(
            self._repository, self._catalog, provider_id, service_id
        )
        results: list[DateAvailability] = []
        for offset in range(days):
            if len(results) >= limit:
                break
            day = start + timedelta(days=offset)
            slots = self.open_slots(provider, service, day, now)
            if slots:
                results.append(
                    DateAvailability(
                        date=day,
                        day_name=DAY_NAMES[day.weekday()],
                        slot_count=len(slots),
                        first_slot=slots[0],
                    )
                )
        return results

    def next_available(
        self, provider_id: str, service_id: str, now: datetime, days: int = 14
    ) -> Optional[datetime]:
        found = self.get_available_dates(
            provider_id, service_id, now.date(), now, days=days, limit=1
        )
        if not found or found[0].first_slot is None:
            return None
        return datetime.combine(found[0].date, found[0].first_slot)
