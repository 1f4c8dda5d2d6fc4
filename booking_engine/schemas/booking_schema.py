"""Booking and availability request/response models."""

import datetime as dt
from datetime import date, time
from typing import Optional

from pydantic import BaseModel, Field

from booking_engine.schemas.scheduling_schema import BookingStatus


class BookingResponse(BaseModel):
    """Booking creation result."""
    booking_id: str
    status: BookingStatus
    provider_id: str = ""
    service_id: str = ""
    date: Optional[dt.date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class StatusResponse(BaseModel):
    """Result of a lifecycle operation on an existing booking."""
    booking_id: str
    status: BookingStatus


class RescheduleResponse(BaseModel):
    """Old booking (now cancelled) and its replacement."""
    previous_booking_id: str
    booking_id: str
    status: BookingStatus


class AvailabilityResponse(BaseModel):
    """Ordered start times for one provider, service and date."""
    provider_id: str
    service_id: str
    date: date
    duration_minutes: int
    slots: list[time] = Field(default_factory=list)

    @property
    def available(self) -> bool:
        return bool(self.slots)


class DateAvailability(BaseModel):
    """Summary of availability for a single date."""
    date: date
    day_name: str
    slot_count: int
    first_slot: Optional[time] = None
