"""
Booking transaction manager: atomic check-and-commit on a provider's schedule.

Create flow:
    validate (no lock) -> hold (provider, date) -> re-read occupying bookings
    -> conflict check -> versioned write -> release -> publish event

Validation errors are raised before any lock is taken. Contention surfaces
as SlotConflict (pick another slot) or ScheduleLockTimeout (retry as-is).
The only internal retry is a bounded re-read when storage reports that the
schedule version moved underneath a write.
"""

from datetime import date, datetime, time
from typing import Callable, Optional

from booking_engine.errors import (
    AlreadyTerminal,
    ConcurrentWriteError,
    NotConfirmed,
    NotFound,
    NotOwner,
    OutsideWorkingHours,
    ScheduleLockTimeout,
    SlotConflict,
    StillFuture,
    TooCloseToStartTime,
)
from booking_engine.events import BookingEvent, BookingEventType, EventPublisher
from booking_engine.logging_context import get_request_logger
from booking_engine.repository.base import ScheduleKey, ScheduleRepository, ServiceCatalog, schedule_key
from booking_engine.scheduling.availability import fits_working_hours
from booking_engine.scheduling.conflicts import Interval, find_conflicts
from booking_engine.scheduling.lifecycle import BookingLifecycle, BookingTrigger
from booking_engine.schemas.scheduling_schema import Booking, BookingStatus, Provider, Service
from booking_engine.services.availability_service import AvailabilityCache
from booking_engine.services.locks import ScheduleLockManager
from booking_engine.services.validation import check_lead_time, resolve_offering
from booking_engine.utils import add_minutes, format_time

logger = get_request_logger(__name__)

CANCELLABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class BookingTransactionManager:
    """Owns every write to bookings. One instance is shared by all callers."""

    def __init__(
        self,
        repository: ScheduleRepository,
        catalog: ServiceCatalog,
        locks: Optional[ScheduleLockManager] = None,
        publisher: Optional[EventPublisher] = None,
        cache: Optional[AvailabilityCache] = None,
        lifecycle: Optional[BookingLifecycle] = None,
        min_lead_minutes: int = 0,
        cancellation_cutoff_minutes: int = 0,
        max_write_retries: int = 3,
    ) -> None:
        self._repository = repository
        self._catalog = catalog
        self._locks = locks or ScheduleLockManager()
        self._publisher = publisher or EventPublisher()
        self._cache = cache
        self._lifecycle = lifecycle or BookingLifecycle()
        self._min_lead = min_lead_minutes
        self._cancel_cutoff = cancellation_cutoff_minutes
        self._max_retries = max_write_retries

    # ------------------------------------------------------------------ #
    # Create
    # ------------------------------------------------------------------ #

    def create_booking(
        self,
        user_id: str,
        provider_id: str,
        service_id: str,
        day: date,
        start_time: time,
        now: datetime,
    ) -> Booking:
        """
        Atomically check the slot and commit a Confirmed booking.

        Raises:
            UnknownProvider, UnknownService, ServiceNotOfferedByProvider,
            PastOrInvalidDate, OutsideWorkingHours: before any locking.
            SlotConflict: an occupying booking overlaps the interval.
            ScheduleLockTimeout: exclusive access was not obtained in time.
        """
        provider, service = resolve_offering(
            self._repository, self._catalog, provider_id, service_id
        )
        end_time = self._validate_slot(provider, service, day, start_time, now)
        candidate = Interval.from_start(day, start_time, service.duration_minutes)
        key = schedule_key(provider_id, day)

        booking = self._lifecycle.new_booking(
            user_id=user_id,
            provider_id=provider_id,
            service_id=service_id,
            day=day,
            start_time=start_time,
            end_time=end_time,
            now=now,
        )

        with self._locks.hold(key):
            self._commit_with_retry(
                [key],
                lambda: self._ensure_free(key, candidate),
                [booking],
            )

        self._after_write([key])
        logger.info(
            "Booking %s confirmed: %s/%s on %s %s-%s for %s",
            booking.booking_id, provider_id, service_id, day.isoformat(),
            format_time(start_time), format_time(end_time), user_id,
        )
        self._publish(BookingEventType.CONFIRMED, booking, now)
        return booking

    def _validate_slot(
        self,
        provider: Provider,
        service: Service,
        day: date,
        start_time: time,
        now: datetime,
    ) -> time:
        """Lead-time and working-hours checks. Returns the derived end time."""
        check_lead_time(datetime.combine(day, start_time), now, self._min_lead)
        try:
            end_time = add_minutes(start_time, service.duration_minutes)
        except ValueError:
            raise OutsideWorkingHours(
                f"{service.service_id} starting {format_time(start_time)} runs past midnight."
            ) from None
        if not fits_working_hours(provider.windows, day, start_time, service.duration_minutes):
            raise OutsideWorkingHours(
                f"{format_time(start_time)}-{format_time(end_time)} on {day.isoformat()} "
                f"is outside {provider.provider_id}'s working hours."
            )
        return end_time

    def _ensure_free(
        self,
        key: ScheduleKey,
        candidate: Interval,
        ignore_booking_id: Optional[str] = None,
    ) -> None:
        provider_id, day = key
        conflicts = find_conflicts(
            candidate, self._repository.list_occupying(provider_id, day), ignore_booking_id
        )
        if conflicts:
            logger.info(
                "Slot conflict for %s on %s at %s: held by %s",
                provider_id, day.isoformat(), format_time(candidate.start.time()),
                ", ".join(b.booking_id for b in conflicts),
            )
            raise SlotConflict(
                f"{format_time(candidate.start.time())}-{format_time(candidate.end.time())} "
                f"on {day.isoformat()} is no longer available."
            )

    def _commit_with_retry(
        self,
        keys: list[ScheduleKey],
        check: Callable[[], None],
        bookings: list[Booking],
    ) -> None:
        """Read versions, run ``check``, write. Re-run on a storage version race."""
        for attempt in range(self._max_retries + 1):
            versions = {k: self._repository.schedule_version(*k) for k in keys}
            check()
            try:
                self._repository.save_bookings(bookings, versions)
                return
            except ConcurrentWriteError as exc:
                logger.warning(
                    "Concurrent write on %s (attempt %d/%d): %s",
                    exc.key, attempt + 1, self._max_retries + 1, exc,
                )
        raise ScheduleLockTimeout(
            f"Schedule kept changing during {self._max_retries + 1} write attempts; "
            "retry the request"
        )

    # ------------------------------------------------------------------ #
    # Cancel
    # ------------------------------------------------------------------ #

    def cancel_booking(
        self,
        booking_id: str,
        user_id: str,
        now: datetime,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Cancel a pending or confirmed future booking. The slot frees implicitly.

        Raises:
            NotFound, NotOwner, AlreadyTerminal, TooCloseToStartTime.
        """
        booking = self._get(booking_id)
        if booking.user_id != user_id:
            raise NotOwner(f"Booking {booking_id} belongs to another user.", booking_id)
        key = schedule_key(booking.provider_id, booking.date)

        with self._locks.hold(key):
            booking = self._get(booking_id)
            self._check_cancellable(booking, now)
            cancelled = self._lifecycle.transition(booking, BookingTrigger.CANCEL, now, reason)
            self._commit_with_retry([key], lambda: None, [cancelled])

        self._after_write([key])
        logger.info("Booking %s cancelled by %s (reason: %s)", booking_id, user_id, reason or "-")
        self._publish(BookingEventType.CANCELLED, cancelled, now, reason=reason)
        return cancelled

    def _check_cancellable(self, booking: Booking, now: datetime) -> None:
        if booking.status not in CANCELLABLE_STATUSES:
            raise AlreadyTerminal(
                f"Booking {booking.booking_id} is already {booking.status.value}.",
                booking.booking_id,
            )
        minutes_left = (booking.starts_at - now).total_seconds() / 60
        if minutes_left <= 0 or minutes_left < self._cancel_cutoff:
            raise TooCloseToStartTime(
                f"Booking {booking.booking_id} starts at "
                f"{booking.starts_at.isoformat(timespec='minutes')}; cancellations close "
                f"{self._cancel_cutoff} minute(s) before the start.",
                booking.booking_id,
            )

    # ------------------------------------------------------------------ #
    # Post-appointment transitions
    # ------------------------------------------------------------------ #

    def mark_no_show(self, booking_id: str, now: datetime) -> Booking:
        """Raises NotFound, NotConfirmed, StillFuture."""
        return self._close_out(
            booking_id, now, BookingTrigger.MARK_NO_SHOW, BookingEventType.MARKED_NO_SHOW
        )

    def complete_booking(self, booking_id: str, now: datetime) -> Booking:
        """Raises NotFound, NotConfirmed, StillFuture."""
        return self._close_out(
            booking_id, now, BookingTrigger.COMPLETE, BookingEventType.COMPLETED
        )

    def _close_out(
        self,
        booking_id: str,
        now: datetime,
        trigger: BookingTrigger,
        event_type: BookingEventType,
    ) -> Booking:
        booking = self._get(booking_id)
        key = schedule_key(booking.provider_id, booking.date)

        with self._locks.hold(key):
            booking = self._get(booking_id)
            if booking.status != BookingStatus.CONFIRMED:
                raise NotConfirmed(
                    f"Booking {booking_id} is {booking.status.value}, not confirmed.",
                    booking_id,
                )
            if now < booking.starts_at:
                raise StillFuture(
                    f"Booking {booking_id} starts at "
                    f"{booking.starts_at.isoformat(timespec='minutes')}.",
                    booking_id,
                )
            updated = self._lifecycle.transition(booking, trigger, now)
            self._commit_with_retry([key], lambda: None, [updated])

        self._after_write([key])
        logger.info("Booking %s -> %s", booking_id, updated.status.value)
        self._publish(event_type, updated, now)
        return updated

    # ------------------------------------------------------------------ #
    # Reschedule
    # ------------------------------------------------------------------ #

    def reschedule_booking(
        self,
        booking_id: str,
        user_id: str,
        new_day: date,
        new_start_time: time,
        now: datetime,
    ) -> tuple[Booking, Booking]:
        """
        Move a booking to a new slot as one unit of work.

        The replacement is created Confirmed and the original is cancelled
        with reason "rescheduled". The original's own interval does not count
        as a conflict. Returns (cancelled_original, replacement).
        """
        original = self._get(booking_id)
        if original.user_id != user_id:
            raise NotOwner(f"Booking {booking_id} belongs to another user.", booking_id)
        provider, service = resolve_offering(
            self._repository, self._catalog, original.provider_id, original.service_id
        )
        end_time = self._validate_slot(provider, service, new_day, new_start_time, now)
        candidate = Interval.from_start(new_day, new_start_time, service.duration_minutes)
        old_key = schedule_key(original.provider_id, original.date)
        new_key = schedule_key(original.provider_id, new_day)
        keys = sorted({old_key, new_key})

        with self._locks.hold(*keys):
            original = self._get(booking_id)
            self._check_cancellable(original, now)
            replacement = self._lifecycle.new_booking(
                user_id=user_id,
                provider_id=original.provider_id,
                service_id=original.service_id,
                day=new_day,
                start_time=new_start_time,
                end_time=end_time,
                now=now,
            )
            cancelled = self._lifecycle.transition(
                original, BookingTrigger.CANCEL, now, "rescheduled"
            )
            self._commit_with_retry(
                keys,
                lambda: self._ensure_free(new_key, candidate, ignore_booking_id=booking_id),
                [cancelled, replacement],
            )

        self._after_write(keys)
        logger.info(
            "Booking %s rescheduled to %s (%s %s)",
            booking_id, replacement.booking_id, new_day.isoformat(), format_time(new_start_time),
        )
        self._publish(
            BookingEventType.RESCHEDULED, replacement, now, previous_booking_id=booking_id
        )
        return cancelled, replacement

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _get(self, booking_id: str) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found.", booking_id)
        return booking

    def _after_write(self, keys: list[ScheduleKey]) -> None:
        if self._cache is not None:
            self._cache.invalidate_keys(keys)

    def _publish(
        self,
        event_type: BookingEventType,
        booking: Booking,
        now: datetime,
        **payload: object,
    ) -> None:
        self._publisher.publish(BookingEvent.from_booking(event_type, booking, now, **payload))
