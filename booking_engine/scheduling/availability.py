"""
Availability calculator: pure slot enumeration over working windows.

Given a provider's weekly working windows, the occupying bookings for a
date and a service duration, produce the ordered start times at which the
service fits. No I/O and no side effects, so results are safe to cache per
(provider, date, service) until a booking write touches that key.

Usage:
    slots = compute_slots(provider.windows, bookings, date(2025, 3, 17), 30, 30)
    list(slots)  # [time(9, 0), time(9, 30), ...]
    list(slots)  # same again: the sequence is restartable
"""

import heapq
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, Optional, Sequence

from booking_engine.scheduling.conflicts import Interval, booking_interval, overlaps
from booking_engine.schemas.scheduling_schema import Booking, WorkingWindow


class SlotSequence:
    """Lazy, finite, restartable sequence of slot start times.

    Every ``iter()`` re-runs the enumeration from scratch.
    """

    def __init__(
        self,
        windows: Sequence[WorkingWindow],
        busy: Sequence[Interval],
        day: date,
        duration_minutes: int,
        granularity_minutes: int,
        start_after: Optional[datetime] = None,
    ) -> None:
        self._windows = tuple(windows)
        self._busy = tuple(busy)
        self._day = day
        self._duration = timedelta(minutes=duration_minutes)
        self._step = timedelta(minutes=granularity_minutes)
        self._start_after = start_after

    def __iter__(self) -> Iterator[time]:
        last: Optional[datetime] = None
        per_window = [self._window_candidates(w) for w in self._windows]
        for start in heapq.merge(*per_window):
            if start == last:
                continue
            last = start
            yield start.time()

    def _window_candidates(self, window: WorkingWindow) -> Iterator[datetime]:
        current = datetime.combine(self._day, window.start_time)
        window_end = datetime.combine(self._day, window.end_time)
        while current + self._duration <= window_end:
            if self._is_free(current):
                yield current
            current += self._step

    def _is_free(self, start: datetime) -> bool:
        if self._start_after is not None and start <= self._start_after:
            return False
        candidate = Interval(start, start + self._duration)
        return not any(overlaps(candidate, busy) for busy in self._busy)

    def first(self) -> Optional[time]:
        return next(iter(self), None)

    def __repr__(self) -> str:
        return (
            f"SlotSequence(day={self._day.isoformat()}, windows={len(self._windows)}, "
            f"busy={len(self._busy)})"
        )


def compute_slots(
    windows: Iterable[WorkingWindow],
    existing_bookings: Iterable[Booking],
    day: date,
    service_duration: int,
    slot_granularity: int,
    start_after: Optional[datetime] = None,
) -> SlotSequence:
    """
    Enumerate valid start times for a service on ``day``.

    Args:
        windows: The provider's weekly windows; only those on ``day``'s weekday apply.
        existing_bookings: Occupying bookings for the same provider and date.
        day: The requested date.
        service_duration: Service length in minutes (> 0).
        slot_granularity: Step between candidate starts in minutes (> 0).
        start_after: Only candidates strictly after this instant are kept.

    Returns:
        A SlotSequence ordered by start time. Empty when no window matches.
    """
    if service_duration <= 0:
        raise ValueError(f"service_duration must be > 0, got {service_duration}")
    if slot_granularity <= 0:
        raise ValueError(f"slot_granularity must be > 0, got {slot_granularity}")

    weekday = day.weekday()
    day_windows = [w for w in windows if w.day_of_week == weekday]
    busy = [
        booking_interval(b)
        for b in existing_bookings
        if b.is_occupying and b.date == day
    ]
    return SlotSequence(
        day_windows, busy, day, service_duration, slot_granularity, start_after
    )


def fits_working_hours(
    windows: Iterable[WorkingWindow],
    day: date,
    start: time,
    duration_minutes: int,
) -> bool:
    """True when ``[start, start + duration)`` lies inside one working window on ``day``."""
    requested = Interval.from_start(day, start, duration_minutes)
    weekday = day.weekday()
    for window in windows:
        if window.day_of_week != weekday:
            continue
        if (
            datetime.combine(day, window.start_time) <= requested.start
            and requested.end <= datetime.combine(day, window.end_time)
        ):
            return True
    return False
