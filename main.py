"""
Console entry point for the salon booking engine.

Runs the engine against the JSON store so bookings persist between calls,
or plays a scripted walkthrough against an in-memory store.

Usage:
    python main.py availability anna haircut 2025-03-17
    python main.py dates anna haircut
    python main.py book user-1 anna haircut 2025-03-17 09:00
    python main.py cancel BK-1234ABCD user-1 --reason "running late"
    python main.py no-show BK-1234ABCD
    python main.py demo
"""

import argparse
import dataclasses
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional

from booking_engine.config import StoreConfig, settings
from booking_engine.engine import BookingEngine, build_engine, next_weekday
from booking_engine.errors import BookingError
from booking_engine.events import BookingEvent
from booking_engine.logging_context import get_request_id, set_request_id
from booking_engine.utils import format_time

logger = logging.getLogger(__name__)

GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"


def _print_event(event: BookingEvent) -> None:
    print(f"{DIM}  event: {event.event_type.value} {event.booking_id} ({event.status.value}){RESET}")


def _engine_for(args: argparse.Namespace) -> BookingEngine:
    store = StoreConfig(backend="json", data_dir=args.data_dir or settings.store.data_dir)
    engine = build_engine(dataclasses.replace(settings, store=store))
    engine.publisher.subscribe_all(_print_event)
    return engine


def _run_availability(engine: BookingEngine, args: argparse.Namespace) -> None:
    result = engine.get_availability(args.provider, args.service, args.date)
    slots = ", ".join(format_time(t) for t in result.slots) or "none"
    print(f"{args.provider} / {args.service} on {result.date.isoformat()}: {slots}")


def _run_dates(engine: BookingEngine, args: argparse.Namespace) -> None:
    for entry in engine.get_available_dates(args.provider, args.service):
        first = format_time(entry.first_slot) if entry.first_slot else "-"
        print(f"{entry.date.isoformat()} {entry.day_name:<9} {entry.slot_count:>3} slots, first {first}")


def _run_book(engine: BookingEngine, args: argparse.Namespace) -> None:
    result = engine.create_booking(args.user, args.provider, args.service, args.date, args.time)
    print(f"{GREEN}{result.booking_id}{RESET} {result.status.value}")


def _run_cancel(engine: BookingEngine, args: argparse.Namespace) -> None:
    result = engine.cancel_booking(args.booking_id, args.user, reason=args.reason)
    print(f"{result.booking_id} {result.status.value}")


def _run_no_show(engine: BookingEngine, args: argparse.Namespace) -> None:
    result = engine.mark_no_show(args.booking_id)
    print(f"{result.booking_id} {result.status.value}")


def _run_complete(engine: BookingEngine, args: argparse.Namespace) -> None:
    result = engine.complete_booking(args.booking_id)
    print(f"{result.booking_id} {result.status.value}")


def _run_reschedule(engine: BookingEngine, args: argparse.Namespace) -> None:
    result = engine.reschedule_booking(args.booking_id, args.user, args.date, args.time)
    print(f"{args.booking_id} -> {GREEN}{result.booking_id}{RESET} {result.status.value}")


def _run_demo() -> None:
    """Walk through availability, a booking race, and cancellation in memory."""
    engine = build_engine(dataclasses.replace(settings, store=StoreConfig(backend="memory")))
    engine.publisher.subscribe_all(_print_event)
    now = datetime.now()
    monday = next_weekday(now.date(), 0)

    print(f"Anna's haircut slots on {monday.isoformat()}:")
    slots = engine.get_availability("anna", "haircut", monday).slots
    print("  " + ", ".join(format_time(t) for t in slots))

    print("Two customers race for 10:00:")
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [
            pool.submit(engine.create_booking, user, "anna", "haircut", monday, "10:00")
            for user in ("alice", "bob")
        ]
    winner: Optional[str] = None
    for user, future in zip(("alice", "bob"), futures):
        try:
            winner = future.result().booking_id
            print(f"  {GREEN}{user}: confirmed {winner}{RESET}")
        except BookingError as exc:
            print(f"  {RED}{user}: {exc.code}{RESET}")

    slots = engine.get_availability("anna", "haircut", monday).slots
    print("  slots now: " + ", ".join(format_time(t) for t in slots))

    if winner is not None:
        owner = engine.get_booking(winner).user_id
        engine.cancel_booking(winner, owner, reason="changed plans")
        slots = engine.get_availability("anna", "haircut", monday).slots
        print("After cancellation: " + ", ".join(format_time(t) for t in slots))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Salon booking engine console.")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory for the JSON schedule store (default: STORE_DATA_DIR).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("availability", help="List open start times for a date.")
    p.add_argument("provider")
    p.add_argument("service")
    p.add_argument("date", help="YYYY-MM-DD")

    p = sub.add_parser("dates", help="List upcoming dates with open slots.")
    p.add_argument("provider")
    p.add_argument("service")

    p = sub.add_parser("book", help="Create a booking.")
    p.add_argument("user")
    p.add_argument("provider")
    p.add_argument("service")
    p.add_argument("date", help="YYYY-MM-DD")
    p.add_argument("time", help="HH:MM")

    p = sub.add_parser("cancel", help="Cancel a booking.")
    p.add_argument("booking_id")
    p.add_argument("user")
    p.add_argument("--reason", default=None)

    p = sub.add_parser("no-show", help="Mark a past confirmed booking as a no-show.")
    p.add_argument("booking_id")

    p = sub.add_parser("complete", help="Mark a past confirmed booking as completed.")
    p.add_argument("booking_id")

    p = sub.add_parser("reschedule", help="Move a booking to a new slot.")
    p.add_argument("booking_id")
    p.add_argument("user")
    p.add_argument("date", help="YYYY-MM-DD")
    p.add_argument("time", help="HH:MM")

    sub.add_parser("demo", help="Run an in-memory walkthrough.")
    return parser


COMMANDS = {
    "availability": _run_availability,
    "dates": _run_dates,
    "book": _run_book,
    "cancel": _run_cancel,
    "no-show": _run_no_show,
    "complete": _run_complete,
    "reschedule": _run_reschedule,
}


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "demo":
        _run_demo()
        return 0

    engine = _engine_for(args)
    set_request_id()
    try:
        COMMANDS[args.command](engine, args)
    except BookingError as exc:
        report = {**exc.to_dict(), "request_id": get_request_id()}
        print(json.dumps(report), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
