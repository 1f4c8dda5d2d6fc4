"""
Typed booking error taxonomy.

Every error carries a stable ``code`` so callers can branch on the kind of
failure without parsing messages. Errors fall into three groups:

- BookingValidationError: bad input, rejected before any locking. Safe to
  retry once the input is corrected.
- BookingContentionError: expected under load. Callers re-query availability
  (SlotConflict) or retry the same request (ScheduleLockTimeout).
- BookingStateError: the booking is not in a state that allows the operation.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for all booking engine errors."""

    code: str = "booking_error"
    category: str = "error"

    def __init__(self, message: str, booking_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.booking_id = booking_id

    def to_dict(self) -> dict:
        return {"code": self.code, "category": self.category, "message": self.message}


# --------------------------------------------------------------------- #
# Validation
# --------------------------------------------------------------------- #


class BookingValidationError(BookingError):
    category = "validation"


class UnknownProvider(BookingValidationError):
    code = "unknown_provider"


class UnknownService(BookingValidationError):
    code = "unknown_service"


class ServiceNotOfferedByProvider(BookingValidationError):
    code = "service_not_offered_by_provider"


class PastOrInvalidDate(BookingValidationError):
    code = "past_or_invalid_date"


class OutsideWorkingHours(BookingValidationError):
    code = "outside_working_hours"


# --------------------------------------------------------------------- #
# Contention
# --------------------------------------------------------------------- #


class BookingContentionError(BookingError):
    category = "contention"


class SlotConflict(BookingContentionError):
    """Another occupying booking overlaps the requested interval."""

    code = "slot_conflict"


class ScheduleLockTimeout(BookingContentionError):
    """Exclusive access to the provider's schedule could not be obtained in time."""

    code = "schedule_lock_timeout"


# --------------------------------------------------------------------- #
# State
# --------------------------------------------------------------------- #


class BookingStateError(BookingError):
    category = "state"


class NotFound(BookingStateError):
    code = "not_found"


class AlreadyTerminal(BookingStateError):
    code = "already_terminal"


class NotOwner(BookingStateError):
    code = "not_owner"


class TooCloseToStartTime(BookingStateError):
    code = "too_close_to_start_time"


class NotConfirmed(BookingStateError):
    code = "not_confirmed"


class StillFuture(BookingStateError):
    code = "still_future"


# --------------------------------------------------------------------- #
# Storage
# --------------------------------------------------------------------- #


class ConcurrentWriteError(Exception):
    """Raised by a repository when the schedule changed since it was read.

    This is a transient storage signal, not a double-booking. The transaction
    manager re-reads and re-checks a bounded number of times.
    """

    def __init__(self, key: tuple, expected: int, actual: int) -> None:
        super().__init__(
            f"Schedule {key} changed: expected version {expected}, found {actual}"
        )
        self.key = key
        self.expected = expected
        self.actual = actual
