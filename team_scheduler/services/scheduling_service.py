"""
Scheduling service: the operations the HTTP layer calls.

Wires the slot generator, availability filter, assignment engine and load
ranking to a datastore and calendar provider. Input validation happens
here, before any computation, and every call tags its log lines with a
request id.

Usage:
    service = SchedulingService(InMemoryDatastore(), GoogleCalendarProvider())
    slots = await service.available_slots("2025-03-18")
"""

import uuid
from datetime import date, datetime, time
from typing import Any, Optional, Union

import pydantic

from team_scheduler.config import AppConfig, settings
from team_scheduler.errors import NotFoundError, ValidationError
from team_scheduler.logging_context import get_request_logger, set_request_id
from team_scheduler.providers.base import CalendarProvider
from team_scheduler.scheduling.assignment import AssignmentEngine
from team_scheduler.scheduling.availability import filter_available_slots, upcoming_slots
from team_scheduler.scheduling.load_ranking import next_in_rotation, rank_by_load
from team_scheduler.scheduling.slot_generator import generate_slots
from team_scheduler.schemas.meeting_schema import AssignmentResult, BookingRequest, Meeting
from team_scheduler.schemas.slot_schema import CandidateSlot, SlotTemplateEntry
from team_scheduler.schemas.team_schema import CalendarCredential, TeamMember
from team_scheduler.storage.base import Datastore
from team_scheduler.storage.sessions import SessionStore
from team_scheduler.utils import is_valid_email, parse_date, parse_time_of_day, utcnow

logger = get_request_logger(__name__)


def _describe(exc: pydantic.ValidationError) -> str:
    parts = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err["loc"]) or "request"
        parts.append(f"{where}: {err['msg']}")
    return "; ".join(parts)


class SchedulingService:
    """Booking, availability and assignment entry points."""

    def __init__(
        self,
        datastore: Datastore,
        provider: CalendarProvider,
        config: AppConfig = settings,
        session_store: Optional[SessionStore] = None,
    ) -> None:
        self._store = datastore
        self._provider = provider
        self._config = config
        self._sessions = session_store
        self._engine = AssignmentEngine(
            datastore, provider, event_timeout=config.calendar.event_create_timeout_sec
        )

    # ------------------------------------------------------------------ #
    # Availability
    # ------------------------------------------------------------------ #

    async def available_slots(
        self, target: Union[str, date, None], now: Optional[datetime] = None
    ) -> list[CandidateSlot]:
        """Bookable slots for ``target``.

        Falls back to the time-filtered template slots if the calendar check
        fails as a whole; a provider outage never empties the booking page.
        """
        set_request_id()
        target_date = self._coerce_date(target)
        now = now or utcnow()

        entries = await self._store.list_active_slot_template_entries()
        candidates = generate_slots(target_date, entries, self._config.business.tzinfo)
        if not candidates:
            return []

        members = await self._store.list_active_team_members_with_calendar()
        try:
            return await filter_available_slots(
                candidates,
                now,
                members,
                self._provider,
                concurrency=self._config.calendar.availability_concurrency,
                timeout=self._config.calendar.freebusy_timeout_sec,
            )
        except Exception:
            logger.exception(
                "Availability check failed for %s; returning template slots", target_date
            )
            return upcoming_slots(candidates, now)

    @staticmethod
    def _coerce_date(target: Union[str, date, None]) -> date:
        if isinstance(target, datetime):
            return target.date()
        if isinstance(target, date):
            return target
        if target is None or not str(target).strip():
            raise ValidationError("Date parameter required")
        try:
            return parse_date(str(target))
        except ValueError:
            raise ValidationError(f"Invalid date {target!r}, expected YYYY-MM-DD") from None

    # ------------------------------------------------------------------ #
    # Booking
    # ------------------------------------------------------------------ #

    async def book_meeting(self, request: Union[BookingRequest, dict[str, Any]]) -> Meeting:
        """Create a pending meeting from a customer booking."""
        set_request_id()
        if not isinstance(request, BookingRequest):
            try:
                request = BookingRequest.model_validate(request)
            except pydantic.ValidationError as exc:
                raise ValidationError(f"Invalid booking: {_describe(exc)}") from None

        meeting = Meeting(
            id=str(uuid.uuid4()),
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            title=request.title,
            description=request.description,
            start=request.start,
            end=request.end,
            created_at=utcnow(),
        )
        await self._store.create_meeting(meeting)
        logger.info(
            "Meeting booked: %s for %s at %s", meeting.id, meeting.customer_email, meeting.start
        )
        return meeting

    async def pending_meetings(self) -> list[Meeting]:
        return await self._store.list_pending_meetings()

    # ------------------------------------------------------------------ #
    # Assignment
    # ------------------------------------------------------------------ #

    async def assign_meeting(self, meeting_id: str, member_id: str) -> AssignmentResult:
        set_request_id()
        if not meeting_id or not str(meeting_id).strip():
            raise ValidationError("Meeting ID required")
        if not member_id or not str(member_id).strip():
            raise ValidationError("Team member ID required")
        return await self._engine.assign(str(meeting_id), str(member_id))

    # ------------------------------------------------------------------ #
    # Slot template
    # ------------------------------------------------------------------ #

    async def add_slot_template_entry(
        self,
        day_of_week: int,
        start: Union[str, time],
        end: Union[str, time],
        duration_minutes: int = 30,
    ) -> SlotTemplateEntry:
        """Add a weekly window; times are HH:MM wall-clock in the business zone."""
        try:
            start_time = start if isinstance(start, time) else parse_time_of_day(start)
            end_time = end if isinstance(end, time) else parse_time_of_day(end)
            entry = SlotTemplateEntry(
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                duration_minutes=duration_minutes,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid slot template entry: {_describe(exc)}") from None
        except ValueError as exc:
            raise ValidationError(f"Invalid time of day: {exc}") from None
        stored = await self._store.add_slot_template_entry(entry)
        logger.info(
            "Slot template entry added: day %d %s-%s every %d min",
            stored.day_of_week, stored.start_time, stored.end_time, stored.duration_minutes,
        )
        return stored

    # ------------------------------------------------------------------ #
    # Team
    # ------------------------------------------------------------------ #

    async def team_members(self) -> list[TeamMember]:
        """Active members in rotation order."""
        return rank_by_load(await self._store.list_active_team_members())

    async def next_in_rotation(self) -> Optional[TeamMember]:
        return next_in_rotation(await self._store.list_active_team_members())

    async def add_team_member(self, name: str, email: str) -> TeamMember:
        if not name or not name.strip():
            raise ValidationError("Name and email required")
        if not is_valid_email(email):
            raise ValidationError(f"Invalid email address {email!r}")
        return await self._store.add_team_member(name.strip(), email)

    async def connect_calendar(
        self, member_id: str, credential: CalendarCredential
    ) -> TeamMember:
        """Attach a calendar credential and opt the member in to availability checks."""
        member = await self._store.set_calendar_credential(member_id, credential)
        logger.info("Calendar connected for member %s (%s)", member_id, credential.calendar_id)
        return member

    async def connect_calendar_from_session(
        self, member_id: str, session_id: str, calendar_id: str = "primary"
    ) -> TeamMember:
        """Connect a calendar using tokens parked in the session store by the OAuth callback."""
        if self._sessions is None:
            raise ValidationError("No session store configured")
        tokens = self._sessions.get(session_id)
        if not tokens or not tokens.get("access_token"):
            raise NotFoundError("session", session_id)
        credential = CalendarCredential(
            access_token=tokens["access_token"],
            refresh_token=tokens.get("refresh_token"),
            calendar_id=calendar_id,
        )
        return await self.connect_calendar(member_id, credential)
