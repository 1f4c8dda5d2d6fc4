from booking_engine.repository.base import (
    ScheduleKey,
    ScheduleRepository,
    ServiceCatalog,
    schedule_key,
)
from booking_engine.repository.json_store import JsonScheduleRepository
from booking_engine.repository.memory import InMemoryScheduleRepository, InMemoryServiceCatalog

__all__ = [
    "ScheduleKey",
    "ScheduleRepository",
    "ServiceCatalog",
    "schedule_key",
    "InMemoryScheduleRepository",
    "InMemoryServiceCatalog",
    "JsonScheduleRepository",
]
