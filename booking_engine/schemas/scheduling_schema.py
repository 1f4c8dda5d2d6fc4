"""Provider, service and booking data models."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that hold a provider's time
OCCUPYING_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED}
)
TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class WorkingWindow(BaseModel):
    """A recurring weekly block of working time. day_of_week: 0 = Monday."""

    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def _end_after_start(self) -> "WorkingWindow":
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Working window must end after it starts "
                f"({self.start_time} - {self.end_time})"
            )
        return self


class Provider(BaseModel):
    """A service provider with weekly working hours and offered services."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    name: str = ""
    windows: list[WorkingWindow] = Field(default_factory=list)
    service_ids: frozenset[str] = Field(default_factory=frozenset)

    def offers(self, service_id: str) -> bool:
        return service_id in self.service_ids


class Service(BaseModel):
    """Catalog entry. Referenced by bookings, never owned by the engine."""

    model_config = ConfigDict(frozen=True)

    service_id: str
    name: str = ""
    duration_minutes: int = Field(gt=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)


class Booking(BaseModel):
    """
    A committed reservation of a provider's time.

    Frozen: status and timestamps change only through BookingLifecycle,
    which returns a new Booking. Bookings are never deleted.
    """

    model_config = ConfigDict(frozen=True)

    booking_id: str
    user_id: str
    provider_id: str
    service_id: str
    date: date
    start_time: time
    end_time: time
    status: BookingStatus = BookingStatus.CONFIRMED
    created_at: datetime
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "Booking":
        if self.end_time <= self.start_time:
            raise ValueError("Booking must end after it starts")
        return self

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.date, self.end_time)

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
