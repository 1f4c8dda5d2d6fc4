from booking_engine.scheduling.availability import (
    SlotSequence,
    compute_slots,
    fits_working_hours,
)
from booking_engine.scheduling.conflicts import (
    Interval,
    booking_interval,
    find_conflicts,
    has_conflict,
    overlaps,
)
from booking_engine.scheduling.lifecycle import (
    BookingLifecycle,
    BookingTrigger,
    InvalidTransitionError,
)

__all__ = [
    "compute_slots",
    "fits_working_hours",
    "SlotSequence",
    "Interval",
    "overlaps",
    "booking_interval",
    "find_conflicts",
    "has_conflict",
    "BookingLifecycle",
    "BookingTrigger",
    "InvalidTransitionError",
]
