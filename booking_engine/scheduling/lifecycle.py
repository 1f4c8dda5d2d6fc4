"""
Finite state machine for booking status transitions.

Defines the five booking statuses and the explicit transitions between
them. A booking's status changes only through ``BookingLifecycle.transition``;
the Booking model itself is frozen, so any other write is rejected.

    pending --confirm--> confirmed --complete--> completed
    pending|confirmed --cancel--> cancelled
    confirmed --mark_no_show--> no_show   (only once the start has passed)

Usage:
    lifecycle = BookingLifecycle()
    booking = lifecycle.new_booking(...)            # status == confirmed
    booking = lifecycle.transition(booking, BookingTrigger.CANCEL, now)
    assert booking.status == BookingStatus.CANCELLED
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Callable, Optional

from booking_engine.schemas.scheduling_schema import (
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
)

logger = logging.getLogger(__name__)


class BookingTrigger(str, Enum):
    """Events that cause status transitions."""
    CONFIRM = "confirm"
    COMPLETE = "complete"
    CANCEL = "cancel"
    MARK_NO_SHOW = "mark_no_show"


Guard = Callable[[Booking, datetime], bool]


def _start_elapsed(booking: Booking, now: datetime) -> bool:
    return now >= booking.starts_at


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    trigger: BookingTrigger
    guard: Optional[Guard] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the booking's current status."""

    def __init__(self, message: str, status: BookingStatus, trigger: BookingTrigger) -> None:
        super().__init__(message)
        self.status = status
        self.trigger = trigger


class BookingLifecycle:
    """
    Deterministic state machine governing booking status.

    Every transition must be explicitly defined. Requests without a matching
    transition (or whose guard fails) are rejected with the list of triggers
    that are valid from the current status.
    """

    INITIAL_STATUS = BookingStatus.CONFIRMED

    TRANSITIONS: list[Transition] = [
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingTrigger.CONFIRM),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingTrigger.COMPLETE,
                   guard=_start_elapsed),
        Transition(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW, BookingTrigger.MARK_NO_SHOW,
                   guard=_start_elapsed),
    ]

    def new_booking(
        self,
        user_id: str,
        provider_id: str,
        service_id: str,
        day: date,
        start_time: time,
        end_time: time,
        now: datetime,
        booking_id: Optional[str] = None,
    ) -> Booking:
        """Create a booking in the initial status."""
        return Booking(
            booking_id=booking_id or f"BK-{uuid.uuid4().hex[:10].upper()}",
            user_id=user_id,
            provider_id=provider_id,
            service_id=service_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            status=self.INITIAL_STATUS,
            created_at=now,
        )

    def transition(
        self,
        booking: Booking,
        trigger: BookingTrigger,
        now: datetime,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Apply a trigger to a booking.

        Args:
            booking: The booking in its current status.
            trigger: The event triggering the transition.
            now: Current time, used by guards and recorded on the booking.
            reason: Stored as the cancellation reason for CANCEL.

        Returns:
            A new Booking in the target status.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_status != booking.status or t.trigger != trigger:
                continue
            if t.guard is not None and not t.guard(booking, now):
                continue

            update: dict = {"status": t.to_status, "updated_at": now}
            if t.to_status == BookingStatus.CANCELLED:
                update["cancelled_at"] = now
                update["cancellation_reason"] = reason

            logger.debug(
                "Booking %s: %s -> %s (trigger: %s)",
                booking.booking_id, booking.status.value, t.to_status.value, trigger.value,
            )
            return booking.model_copy(update=update)

        valid = [t.value for t in self.get_valid_triggers(booking.status)]
        raise InvalidTransitionError(
            f"No valid transition from '{booking.status.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}",
            status=booking.status,
            trigger=trigger,
        )

    def can_transition(self, booking: Booking, trigger: BookingTrigger, now: datetime) -> bool:
        return any(
            t.from_status == booking.status
            and t.trigger == trigger
            and (t.guard is None or t.guard(booking, now))
            for t in self.TRANSITIONS
        )

    def get_valid_triggers(self, status: BookingStatus) -> list[BookingTrigger]:
        """Return all triggers defined from ``status`` (guards not evaluated)."""
        return [t.trigger for t in self.TRANSITIONS if t.from_status == status]

    @staticmethod
    def is_terminal(status: BookingStatus) -> bool:
        return status in TERMINAL_STATUSES
