"""
Booking engine facade: the transport-agnostic operation surface.

A REST or RPC binding wraps these methods one-to-one. Dates and times may be
passed as objects or as ``YYYY-MM-DD`` / ``HH:MM`` strings. ``now`` defaults
to the engine clock and can be passed explicitly for deterministic callers.

Usage:
    engine = build_engine()
    slots = engine.get_availability("anna", "haircut", "2025-03-17").slots
    booking = engine.create_booking("user-1", "anna", "haircut", "2025-03-17", slots[0])
    engine.cancel_booking(booking.booking_id, "user-1", reason="sick")
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional

from booking_engine.catalog import get_all_providers, get_all_services
from booking_engine.config import AppConfig, settings
from booking_engine.errors import NotFound
from booking_engine.events import EventPublisher
from booking_engine.logging_context import get_request_logger, set_request_id
from booking_engine.repository.base import ScheduleRepository, ServiceCatalog
from booking_engine.repository.json_store import JsonScheduleRepository
from booking_engine.repository.memory import InMemoryScheduleRepository, InMemoryServiceCatalog
from booking_engine.schemas.booking_schema import (
    AvailabilityResponse,
    BookingResponse,
    DateAvailability,
    RescheduleResponse,
    StatusResponse,
)
from booking_engine.schemas.scheduling_schema import Booking, Provider
from booking_engine.services.availability_service import AvailabilityCache, AvailabilityService
from booking_engine.services.booking_manager import BookingTransactionManager
from booking_engine.services.locks import ScheduleLockManager
from booking_engine.services.validation import coerce_date, coerce_time, resolve_offering
from booking_engine.utils import DateLike, TimeLike

logger = get_request_logger(__name__)


class BookingEngine:
    """Wires the repository, calculator, lock manager and publisher together."""

    def __init__(
        self,
        repository: ScheduleRepository,
        catalog: ServiceCatalog,
        config: Optional[AppConfig] = None,
        publisher: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        config = config or settings
        self._repository = repository
        self._catalog = catalog
        self._config = config
        self._clock = clock
        self.publisher = publisher or EventPublisher()
        self.cache = AvailabilityCache(ttl_seconds=config.cache.availability_ttl_seconds)
        self.availability = AvailabilityService(
            repository,
            catalog,
            cache=self.cache,
            slot_granularity_minutes=config.scheduling.slot_granularity_minutes,
            min_lead_minutes=config.scheduling.min_lead_minutes,
        )
        self.manager = BookingTransactionManager(
            repository,
            catalog,
            locks=ScheduleLockManager(config.concurrency.lock_timeout_seconds),
            publisher=self.publisher,
            cache=self.cache,
            min_lead_minutes=config.scheduling.min_lead_minutes,
            cancellation_cutoff_minutes=config.scheduling.cancellation_cutoff_minutes,
            max_write_retries=config.concurrency.max_write_retries,
        )

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_availability(
        self,
        provider_id: str,
        service_id: str,
        day: DateLike,
        now: Optional[datetime] = None,
    ) -> AvailabilityResponse:
        """Ordered bookable start times. Read-only and idempotent."""
        day = coerce_date(day)
        provider, service = resolve_offering(
            self._repository, self._catalog, provider_id, service_id
        )
        slots = self.availability.open_slots(provider, service, day, self._now(now))
        return AvailabilityResponse(
            provider_id=provider_id,
            service_id=service_id,
            date=day,
            duration_minutes=service.duration_minutes,
            slots=slots,
        )

    def get_available_dates(
        self,
        provider_id: str,
        service_id: str,
        start: Optional[DateLike] = None,
        days: Optional[int] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[DateAvailability]:
        """Get the next dates with open slots, scanning the configured horizon."""
        now = self._now(now)
        return self.availability.get_available_dates(
            provider_id,
            service_id,
            coerce_date(start) if start is not None else now.date(),
            now,
            days=days if days is not None else self._config.scheduling.availability_horizon_days,
            limit=limit if limit is not None else self._config.scheduling.max_dates_returned,
        )

    def next_available(
        self, provider_id: str, service_id: str, now: Optional[datetime] = None
    ) -> Optional[datetime]:
        return self.availability.next_available(
            provider_id,
            service_id,
            self._now(now),
            days=self._config.scheduling.availability_horizon_days,
        )

    def get_booking(self, booking_id: str) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found.", booking_id)
        return booking

    def list_bookings(self, provider_id: str, day: DateLike) -> list[Booking]:
        return self._repository.list_bookings(provider_id, coerce_date(day))

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create_booking(
        self,
        user_id: str,
        provider_id: str,
        service_id: str,
        day: DateLike,
        start_time: TimeLike,
        now: Optional[datetime] = None,
    ) -> BookingResponse:
        set_request_id()
        booking = self.manager.create_booking(
            user_id,
            provider_id,
            service_id,
            coerce_date(day),
            coerce_time(start_time),
            self._now(now),
        )
        return BookingResponse(
            booking_id=booking.booking_id,
            status=booking.status,
            provider_id=booking.provider_id,
            service_id=booking.service_id,
            date=booking.date,
            start_time=booking.start_time,
            end_time=booking.end_time,
        )

    def cancel_booking(
        self,
        booking_id: str,
        user_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> StatusResponse:
        set_request_id()
        booking = self.manager.cancel_booking(booking_id, user_id, self._now(now), reason)
        return StatusResponse(booking_id=booking.booking_id, status=booking.status)

    def mark_no_show(self, booking_id: str, now: Optional[datetime] = None) -> StatusResponse:
        """Administrative: called by an external scheduler once the start has passed."""
        set_request_id()
        booking = self.manager.mark_no_show(booking_id, self._now(now))
        return StatusResponse(booking_id=booking.booking_id, status=booking.status)

    def complete_booking(self, booking_id: str, now: Optional[datetime] = None) -> StatusResponse:
        set_request_id()
        booking = self.manager.complete_booking(booking_id, self._now(now))
        return StatusResponse(booking_id=booking.booking_id, status=booking.status)

    def reschedule_booking(
        self,
        booking_id: str,
        user_id: str,
        new_day: DateLike,
        new_start_time: TimeLike,
        now: Optional[datetime] = None,
    ) -> RescheduleResponse:
        set_request_id()
        _, replacement = self.manager.reschedule_booking(
            booking_id,
            user_id,
            coerce_date(new_day),
            coerce_time(new_start_time),
            self._now(now),
        )
        return RescheduleResponse(
            previous_booking_id=booking_id,
            booking_id=replacement.booking_id,
            status=replacement.status,
        )

    # ------------------------------------------------------------------ #
    # Provider directory hook
    # ------------------------------------------------------------------ #

    def update_provider(self, provider: Provider) -> None:
        """Replace a provider's record (working hours, offered services)."""
        self._repository.upsert_provider(provider)
        self.cache.invalidate(provider.provider_id)
        logger.info("Provider %s updated (%d windows)", provider.provider_id, len(provider.windows))


def build_engine(
    config: Optional[AppConfig] = None,
    seed: bool = True,
    clock: Callable[[], datetime] = datetime.now,
) -> BookingEngine:
    """Build an engine on the configured store, seeded with the salon directory."""
    config = config or settings
    if config.store.backend == "json":
        repository: ScheduleRepository = JsonScheduleRepository(
            config.store.data_dir, lock_timeout=config.concurrency.lock_timeout_seconds
        )
    else:
        repository = InMemoryScheduleRepository()
    catalog = InMemoryServiceCatalog(get_all_services())
    if seed:
        for provider in get_all_providers():
            repository.upsert_provider(provider)
    logger.info("Engine built on '%s' store", config.store.backend)
    return BookingEngine(repository, catalog, config=config, clock=clock)


def next_weekday(after: date, weekday: int) -> date:
    """First date strictly after ``after`` falling on ``weekday`` (0 = Monday)."""
    days_ahead = (weekday - after.weekday() - 1) % 7 + 1
    return after + timedelta(days=days_ahead)
