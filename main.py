"""
Command-line entry point for the team scheduler.

Runs the scheduling service against the configured SQL datastore and the
Google Calendar provider. Useful for seeding a database, inspecting slots
and exercising assignment without the web front end.

Usage:
    python main.py seed
    python main.py add-slot 2 09:00 12:00 --duration 30
    python main.py add-member "Ada Lovelace" ada@example.com
    python main.py slots 2025-03-18
    python main.py book "Jane Doe" jane@example.com "Intro call" 2025-03-18T09:00:00+00:00 2025-03-18T09:30:00+00:00
    python main.py pending
    python main.py assign <meeting-id> <member-id>
    python main.py team
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional

from team_scheduler.config import settings
from team_scheduler.errors import SchedulingError
from team_scheduler.providers.google_calendar import GoogleCalendarProvider
from team_scheduler.services.scheduling_service import SchedulingService
from team_scheduler.storage.sql import SqlDatastore

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Book and assign team meetings.")
    parser.add_argument(
        "--database-url",
        default=settings.database.url,
        help="SQLAlchemy database URL (default: DATABASE_URL or sqlite:///scheduler.db).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="Insert the default Mon-Fri 9am-5pm slot template.")

    slot = sub.add_parser("add-slot", help="Add a weekly bookable window (Sunday = 0).")
    slot.add_argument("day_of_week", type=int)
    slot.add_argument("start", help="HH:MM")
    slot.add_argument("end", help="HH:MM")
    slot.add_argument("--duration", type=int, default=30, help="Slot length in minutes.")

    add = sub.add_parser("add-member", help="Add a team member.")
    add.add_argument("name")
    add.add_argument("email")

    slots = sub.add_parser("slots", help="List bookable slots for a date.")
    slots.add_argument("date", help="YYYY-MM-DD")

    book = sub.add_parser("book", help="Book a meeting into a slot.")
    book.add_argument("customer_name")
    book.add_argument("customer_email")
    book.add_argument("title")
    book.add_argument("start", type=datetime.fromisoformat, help="ISO 8601 with offset")
    book.add_argument("end", type=datetime.fromisoformat, help="ISO 8601 with offset")
    book.add_argument("--description", default=None)

    sub.add_parser("pending", help="List meetings waiting for an owner.")

    assign = sub.add_parser("assign", help="Claim a pending meeting for a team member.")
    assign.add_argument("meeting_id")
    assign.add_argument("member_id")

    sub.add_parser("team", help="List active team members in rotation order.")
    return parser


async def _run(args: argparse.Namespace, service: SchedulingService, store: SqlDatastore) -> None:
    out = sys.stdout
    if args.command == "seed":
        added = await store.seed_default_slot_template()
        out.write(f"Seeded {added} slot template entries.\n")
    elif args.command == "add-slot":
        entry = await service.add_slot_template_entry(
            args.day_of_week, args.start, args.end, args.duration
        )
        out.write(f"{entry.id}\n")
    elif args.command == "add-member":
        member = await service.add_team_member(args.name, args.email)
        out.write(f"{member.id}\t{member.name}\t{member.email}\n")
    elif args.command == "slots":
        for slot in await service.available_slots(args.date):
            out.write(f"{slot.start.isoformat()}\t{slot.end.isoformat()}\n")
    elif args.command == "book":
        meeting = await service.book_meeting(
            {
                "customer_name": args.customer_name,
                "customer_email": args.customer_email,
                "title": args.title,
                "description": args.description,
                "start": args.start,
                "end": args.end,
            }
        )
        out.write(f"{meeting.id}\n")
    elif args.command == "pending":
        for meeting in await service.pending_meetings():
            out.write(
                f"{meeting.id}\t{meeting.start.isoformat()}\t{meeting.title}"
                f"\t{meeting.customer_email}\n"
            )
    elif args.command == "assign":
        result = await service.assign_meeting(args.meeting_id, args.member_id)
        out.write(result.message + "\n")
    elif args.command == "team":
        for member in await service.team_members():
            out.write(f"{member.id}\t{member.load}\t{member.name}\t{member.email}\n")


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    store = SqlDatastore(args.database_url, echo=settings.database.echo)
    provider = GoogleCalendarProvider(
        api_url=settings.calendar.api_url,
        timeout=settings.calendar.event_create_timeout_sec,
    )
    service = SchedulingService(store, provider, settings)
    try:
        asyncio.run(_run(args, service, store))
    except SchedulingError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        store.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
