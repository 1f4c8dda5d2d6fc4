"""Input checks shared by the read and write paths. All run before any locking."""

from datetime import date, datetime, time, timedelta

from booking_engine.errors import (
    PastOrInvalidDate,
    ServiceNotOfferedByProvider,
    UnknownProvider,
    UnknownService,
)
from booking_engine.repository.base import ScheduleRepository, ServiceCatalog
from booking_engine.schemas.scheduling_schema import Provider, Service
from booking_engine.utils import DateLike, TimeLike, parse_date, parse_time


def resolve_offering(
    repository: ScheduleRepository,
    catalog: ServiceCatalog,
    provider_id: str,
    service_id: str,
) -> tuple[Provider, Service]:
    """Look up provider and service and check the provider offers it."""
    provider = repository.get_provider(provider_id)
    if provider is None:
        raise UnknownProvider(f"Provider {provider_id!r} not found.")
    service = catalog.get_service(service_id)
    if service is None:
        raise UnknownService(f"Service {service_id!r} not found.")
    if not provider.offers(service_id):
        raise ServiceNotOfferedByProvider(
            f"Provider {provider_id!r} does not offer service {service_id!r}."
        )
    return provider, service


def coerce_date(value: DateLike) -> date:
    try:
        return parse_date(value)
    except (ValueError, TypeError, AttributeError):
        raise PastOrInvalidDate(f"Invalid date: {value!r} (expected YYYY-MM-DD)") from None


def coerce_time(value: TimeLike) -> time:
    try:
        return parse_time(value)
    except (ValueError, TypeError, AttributeError):
        raise PastOrInvalidDate(f"Invalid time: {value!r} (expected HH:MM)") from None


def earliest_bookable(now: datetime, min_lead_minutes: int) -> datetime:
    return now + timedelta(minutes=min_lead_minutes)


def check_lead_time(starts_at: datetime, now: datetime, min_lead_minutes: int) -> None:
    """Bookings must start strictly after now + the minimum lead time."""
    if starts_at <= earliest_bookable(now, min_lead_minutes):
        raise PastOrInvalidDate(
            f"Start {starts_at.isoformat(timespec='minutes')} is in the past or "
            f"within the {min_lead_minutes}-minute minimum lead time."
        )
