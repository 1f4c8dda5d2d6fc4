"""Salon service catalog and provider directory used to seed demo engines."""

import logging
from datetime import time
from decimal import Decimal

from booking_engine.schemas.scheduling_schema import Provider, Service, WorkingWindow

logger = logging.getLogger(__name__)

SERVICE_CATALOG: dict[str, dict] = {
    "haircut": {
        "name": "Haircut & Style",
        "duration_minutes": 30,
        "price": "35.00",
    },
    "beard-trim": {
        "name": "Beard Trim",
        "duration_minutes": 15,
        "price": "15.00",
    },
    "colour": {
        "name": "Full Colour",
        "duration_minutes": 90,
        "price": "120.00",
    },
    "blow-dry": {
        "name": "Blow Dry",
        "duration_minutes": 45,
        "price": "40.00",
    },
    "manicure": {
        "name": "Manicure",
        "duration_minutes": 60,
        "price": "45.00",
    },
}

# provider_id -> (name, offered services, {weekday: [(start, end), ...]})
PROVIDER_DIRECTORY: dict[str, tuple[str, list[str], dict[int, list[tuple[str, str]]]]] = {
    "anna": (
        "Anna K.",
        ["haircut", "colour", "blow-dry"],
        {
            0: [("09:00", "12:00"), ("13:00", "17:00")],
            1: [("09:00", "12:00"), ("13:00", "17:00")],
            3: [("10:00", "18:00")],
            5: [("09:00", "13:00")],
        },
    ),
    "marco": (
        "Marco B.",
        ["haircut", "beard-trim"],
        {day: [("08:00", "16:00")] for day in range(0, 5)},
    ),
    "lena": (
        "Lena S.",
        ["manicure", "blow-dry"],
        {2: [("11:00", "19:00")], 4: [("11:00", "19:00")], 5: [("10:00", "14:00")]},
    ),
}


def _parse(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def get_all_services() -> list[Service]:
    """Return every catalog service as a Service model."""
    return [
        Service(
            service_id=sid,
            name=info["name"],
            duration_minutes=info["duration_minutes"],
            price=Decimal(info["price"]),
        )
        for sid, info in SERVICE_CATALOG.items()
    ]


def get_all_providers() -> list[Provider]:
    """Return every directory entry as a Provider model."""
    providers = []
    for pid, (name, services, hours) in PROVIDER_DIRECTORY.items():
        windows = [
            WorkingWindow(day_of_week=day, start_time=_parse(start), end_time=_parse(end))
            for day, spans in sorted(hours.items())
            for start, end in spans
        ]
        providers.append(
            Provider(provider_id=pid, name=name, windows=windows, service_ids=frozenset(services))
        )
    logger.debug("Loaded %d providers from directory", len(providers))
    return providers
