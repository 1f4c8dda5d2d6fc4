"""Shared test fixtures and helpers."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

import pytest

from booking_engine.config import (
    AppConfig,
    CacheConfig,
    ConcurrencyConfig,
    SchedulingConfig,
    StoreConfig,
)
from booking_engine.engine import BookingEngine
from booking_engine.events import EventPublisher
from booking_engine.repository.memory import InMemoryScheduleRepository, InMemoryServiceCatalog
from booking_engine.scheduling.lifecycle import BookingLifecycle
from booking_engine.schemas.scheduling_schema import (
    Booking,
    BookingStatus,
    Provider,
    Service,
    WorkingWindow,
)
from booking_engine.services.booking_manager import BookingTransactionManager
from booking_engine.services.locks import ScheduleLockManager

MONDAY = date(2025, 3, 17)
TUESDAY = date(2025, 3, 18)
SUNDAY = date(2025, 3, 16)
# A week before MONDAY, so every test slot is in the future
NOW = datetime(2025, 3, 10, 8, 0)


def hm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def make_window(day_of_week: int = 0, start: str = "09:00", end: str = "12:00") -> WorkingWindow:
    return WorkingWindow(day_of_week=day_of_week, start_time=hm(start), end_time=hm(end))


def make_provider(
    provider_id: str = "anna",
    windows: Optional[list[WorkingWindow]] = None,
    service_ids: Optional[list[str]] = None,
) -> Provider:
    """Provider working Monday 09:00-12:00 and offering a haircut by default."""
    return Provider(
        provider_id=provider_id,
        name=provider_id.title(),
        windows=windows if windows is not None else [make_window()],
        service_ids=frozenset(service_ids if service_ids is not None else ["haircut"]),
    )


def make_service(service_id: str = "haircut", duration: int = 30) -> Service:
    return Service(
        service_id=service_id,
        name=service_id.title(),
        duration_minutes=duration,
        price=Decimal("35.00"),
    )


def make_booking(
    start: str,
    end: str,
    day: date = MONDAY,
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_id: str = "BK-TEST",
    user_id: str = "user-1",
    provider_id: str = "anna",
) -> Booking:
    return Booking(
        booking_id=booking_id,
        user_id=user_id,
        provider_id=provider_id,
        service_id="haircut",
        date=day,
        start_time=hm(start),
        end_time=hm(end),
        status=status,
        created_at=NOW,
    )


def make_config(
    granularity: int = 0,
    min_lead: int = 0,
    cancel_cutoff: int = 0,
    lock_timeout: float = 2.0,
    max_write_retries: int = 3,
    cache_ttl: float = 30.0,
) -> AppConfig:
    return AppConfig(
        scheduling=SchedulingConfig(
            slot_granularity_minutes=granularity,
            min_lead_minutes=min_lead,
            cancellation_cutoff_minutes=cancel_cutoff,
            availability_horizon_days=14,
            max_dates_returned=5,
        ),
        concurrency=ConcurrencyConfig(
            lock_timeout_seconds=lock_timeout, max_write_retries=max_write_retries
        ),
        cache=CacheConfig(availability_ttl_seconds=cache_ttl),
        store=StoreConfig(backend="memory", data_dir=""),
        log_level="INFO",
        engine_name="test",
    )


@pytest.fixture
def catalog():
    return InMemoryServiceCatalog(
        [
            make_service("haircut", 30),
            make_service("colour", 90),
            make_service("beard-trim", 15),
        ]
    )


@pytest.fixture
def repository():
    return InMemoryScheduleRepository(
        [make_provider(), make_provider("marco", service_ids=["beard-trim"])]
    )


@pytest.fixture
def events():
    return []


@pytest.fixture
def publisher(events):
    pub = EventPublisher()
    pub.subscribe_all(events.append)
    return pub


@pytest.fixture
def manager(repository, catalog, publisher):
    return BookingTransactionManager(
        repository,
        catalog,
        locks=ScheduleLockManager(timeout_seconds=2.0),
        publisher=publisher,
    )


@pytest.fixture
def engine(repository, catalog, publisher):
    return BookingEngine(
        repository, catalog, config=make_config(), publisher=publisher, clock=lambda: NOW
    )


@pytest.fixture
def lifecycle():
    return BookingLifecycle()
