"""Storage ports for the provider directory, service catalog and bookings."""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional

from booking_engine.errors import ConcurrentWriteError
from booking_engine.schemas.scheduling_schema import Booking, Provider, Service

ScheduleKey = tuple[str, date]


def schedule_key(provider_id: str, day: date) -> ScheduleKey:
    return (provider_id, day)


class ServiceCatalog(ABC):
    @abstractmethod
    def get_service(self, service_id: str) -> Optional[Service]:
        """Look up a service by id. Returns None if unknown."""
        raise NotImplementedError

    @abstractmethod
    def list_services(self) -> list[Service]:
        raise NotImplementedError


class ScheduleRepository(ABC):
    """
    Durable store of provider working hours and committed bookings.

    Each (provider_id, date) key carries a version counter that increases on
    every booking write to that key. Writers pass the versions they read;
    a mismatch raises ConcurrentWriteError and nothing is written.
    """

    @abstractmethod
    def get_provider(self, provider_id: str) -> Optional[Provider]:
        raise NotImplementedError

    @abstractmethod
    def upsert_provider(self, provider: Provider) -> None:
        """Create or replace a provider. Owned by the provider/admin collaborator."""
        raise NotImplementedError

    @abstractmethod
    def get_booking(self, booking_id: str) -> Optional[Booking]:
        raise NotImplementedError

    @abstractmethod
    def list_bookings(self, provider_id: str, day: date) -> list[Booking]:
        """All bookings for a provider on a date, any status, ordered by start."""
        raise NotImplementedError

    @abstractmethod
    def schedule_version(self, provider_id: str, day: date) -> int:
        raise NotImplementedError

    @abstractmethod
    def save_bookings(
        self,
        bookings: Iterable[Booking],
        expected_versions: dict[ScheduleKey, int],
    ) -> None:
        """
        Insert or replace bookings as one unit of work.

        Raises:
            ConcurrentWriteError: If any key's version differs from expected.
        """
        raise NotImplementedError

    def list_occupying(self, provider_id: str, day: date) -> list[Booking]:
        """Bookings that hold the provider's time on ``day``."""
        return [b for b in self.list_bookings(provider_id, day) if b.is_occupying]

    @staticmethod
    def _check_versions(
        expected_versions: dict[ScheduleKey, int],
        current: dict[ScheduleKey, int],
    ) -> None:
        for key, expected in expected_versions.items():
            actual = current.get(key, 0)
            if actual != expected:
                raise ConcurrentWriteError(key, expected, actual)
