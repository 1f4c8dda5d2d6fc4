"""
Interval overlap detection shared by the read and write paths.

The availability calculator filters candidate slots with ``overlaps`` and
the transaction manager uses the same predicate as the final guard before
committing, so the two can never disagree about what counts as a conflict.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from booking_engine.schemas.scheduling_schema import Booking


@dataclass(frozen=True)
class Interval:
    """Half-open time interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(f"Interval end {self.end} must be after start {self.start}")

    @classmethod
    def from_start(cls, day: date, start: time, duration_minutes: int) -> "Interval":
        begin = datetime.combine(day, start)
        return cls(begin, begin + timedelta(minutes=duration_minutes))

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open overlap: touching intervals (back-to-back) do not conflict."""
    return a.start < b.end and b.start < a.end


def booking_interval(booking: Booking) -> Interval:
    return Interval(booking.starts_at, booking.ends_at)


def find_conflicts(
    candidate: Interval,
    bookings: Iterable[Booking],
    ignore_booking_id: Optional[str] = None,
) -> list[Booking]:
    """Return occupying bookings whose interval overlaps ``candidate``."""
    return [
        b
        for b in bookings
        if b.is_occupying
        and b.booking_id != ignore_booking_id
        and overlaps(candidate, booking_interval(b))
    ]


def has_conflict(
    candidate: Interval,
    bookings: Iterable[Booking],
    ignore_booking_id: Optional[str] = None,
) -> bool:
    return bool(find_conflicts(candidate, bookings, ignore_booking_id))
