"""In-process repository and catalog implementations."""

import logging
import threading
from datetime import date
from typing import Iterable, Optional

from booking_engine.repository.base import (
    ScheduleKey,
    ScheduleRepository,
    ServiceCatalog,
    schedule_key,
)
from booking_engine.schemas.scheduling_schema import Booking, Provider, Service

logger = logging.getLogger(__name__)


class InMemoryServiceCatalog(ServiceCatalog):
    def __init__(self, services: Optional[Iterable[Service]] = None) -> None:
        self._services: dict[str, Service] = {s.service_id: s for s in services or []}

    def get_service(self, service_id: str) -> Optional[Service]:
        return self._services.get(service_id)

    def list_services(self) -> list[Service]:
        return list(self._services.values())

    def add_service(self, service: Service) -> None:
        self._services[service.service_id] = service


class InMemoryScheduleRepository(ScheduleRepository):
    def __init__(self, providers: Optional[Iterable[Provider]] = None) -> None:
        self._providers: dict[str, Provider] = {p.provider_id: p for p in providers or []}
        self._bookings: dict[str, Booking] = {}
        self._index: dict[ScheduleKey, list[str]] = {}
        self._versions: dict[ScheduleKey, int] = {}
        self._guard = threading.Lock()

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self._providers.get(provider_id)

    def upsert_provider(self, provider: Provider) -> None:
        with self._guard:
            self._providers[provider.provider_id] = provider

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    def list_bookings(self, provider_id: str, day: date) -> list[Booking]:
        with self._guard:
            ids = list(self._index.get(schedule_key(provider_id, day), []))
            bookings = [self._bookings[i] for i in ids]
        return sorted(bookings, key=lambda b: b.start_time)

    def schedule_version(self, provider_id: str, day: date) -> int:
        return self._versions.get(schedule_key(provider_id, day), 0)

    def save_bookings(
        self,
        bookings: Iterable[Booking],
        expected_versions: dict[ScheduleKey, int],
    ) -> None:
        bookings = list(bookings)
        with self._guard:
            self._check_versions(expected_versions, self._versions)
            touched: set[ScheduleKey] = set()
            for booking in bookings:
                key = schedule_key(booking.provider_id, booking.date)
                if booking.booking_id not in self._bookings:
                    self._index.setdefault(key, []).append(booking.booking_id)
                self._bookings[booking.booking_id] = booking
                touched.add(key)
            for key in touched:
                self._versions[key] = self._versions.get(key, 0) + 1
        logger.debug("Saved %d booking(s) across %d schedule(s)", len(bookings), len(touched))

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        with self._guard:
            self._bookings.clear()
            self._index.clear()
            self._versions.clear()
