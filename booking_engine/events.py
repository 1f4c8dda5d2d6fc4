"""
Booking lifecycle events for the notification collaborator.

The engine publishes an event after each successful state change and does
not wait for, or depend on, its delivery: a failing handler is logged and
the booking operation still succeeds.

Usage:
    publisher = EventPublisher()
    publisher.subscribe(BookingEventType.CONFIRMED, notify_customer)
    publisher.subscribe_all(audit_log.append)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from booking_engine.schemas.scheduling_schema import Booking, BookingStatus

logger = logging.getLogger(__name__)


class BookingEventType(str, Enum):
    CONFIRMED = "BookingConfirmed"
    CANCELLED = "BookingCancelled"
    COMPLETED = "BookingCompleted"
    MARKED_NO_SHOW = "BookingMarkedNoShow"
    RESCHEDULED = "BookingRescheduled"


@dataclass(frozen=True)
class BookingEvent:
    """A booking state change, as seen by downstream consumers."""
    event_type: BookingEventType
    booking_id: str
    user_id: str
    provider_id: str
    status: BookingStatus
    occurred_at: datetime
    payload: dict = field(default_factory=dict)

    @classmethod
    def from_booking(
        cls,
        event_type: BookingEventType,
        booking: Booking,
        occurred_at: datetime,
        **payload: object,
    ) -> "BookingEvent":
        return cls(
            event_type=event_type,
            booking_id=booking.booking_id,
            user_id=booking.user_id,
            provider_id=booking.provider_id,
            status=booking.status,
            occurred_at=occurred_at,
            payload={
                "service_id": booking.service_id,
                "date": booking.date.isoformat(),
                "start_time": booking.start_time.strftime("%H:%M"),
                "end_time": booking.end_time.strftime("%H:%M"),
                **payload,
            },
        )


EventHandler = Callable[[BookingEvent], None]


class EventPublisher:
    """In-process fan-out of booking events. One event type, many handlers."""

    def __init__(self) -> None:
        self._handlers: dict[Optional[BookingEventType], list[EventHandler]] = {}

    def subscribe(self, event_type: BookingEventType, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Registered handler for %s", event_type.value)

    def subscribe_all(self, handler: EventHandler) -> None:
        self._handlers.setdefault(None, []).append(handler)

    def publish(self, event: BookingEvent) -> None:
        handlers = self._handlers.get(event.event_type, []) + self._handlers.get(None, [])
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %r failed for %s on booking %s",
                    handler, event.event_type.value, event.booking_id,
                )
