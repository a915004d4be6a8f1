"""Shared test fixtures and helpers."""

import asyncio
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytest

from team_scheduler.config import AppConfig, BusinessConfig, CalendarConfig
from team_scheduler.errors import ProviderError
from team_scheduler.providers.base import EventDetails
from team_scheduler.schemas.meeting_schema import Meeting, MeetingStatus
from team_scheduler.schemas.slot_schema import SlotTemplateEntry
from team_scheduler.schemas.team_schema import CalendarCredential, TeamMember
from team_scheduler.storage.memory import InMemoryDatastore
from team_scheduler.storage.sql import SqlDatastore

UTC = timezone.utc
TUESDAY = date(2025, 3, 18)


def at(hour: int, minute: int = 0, day: date = TUESDAY) -> datetime:
    """Aware UTC datetime on ``day``."""
    return datetime.combine(day, time(hour, minute), tzinfo=UTC)


def make_entry(
    day_of_week: int = 2,
    start: str = "09:00",
    end: str = "10:00",
    duration: int = 30,
    is_active: bool = True,
) -> SlotTemplateEntry:
    """Helper to create a SlotTemplateEntry (Tuesday 09:00-10:00/30m by default)."""
    return SlotTemplateEntry(
        day_of_week=day_of_week,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        duration_minutes=duration,
        is_active=is_active,
    )


def make_member(
    member_id: str,
    load: int = 0,
    is_active: bool = True,
    token: Optional[str] = None,
    valid: bool = True,
) -> TeamMember:
    """Helper to create a TeamMember; a token opts the member in to calendar sync."""
    credential = CalendarCredential(access_token=token, valid=valid) if token else None
    return TeamMember(
        id=member_id,
        name=f"Member {member_id}",
        email=f"{member_id}@example.com",
        is_active=is_active,
        load=load,
        credential=credential,
        calendar_sync_enabled=credential is not None,
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
    )


def make_meeting(
    meeting_id: str = "mtg-1",
    start: Optional[datetime] = None,
    duration: int = 30,
    title: str = "Intro call",
) -> Meeting:
    """Helper to create a pending Meeting with sensible defaults."""
    start = start or at(9)
    return Meeting(
        id=meeting_id,
        customer_name="Jane Doe",
        customer_email="jane@customer.test",
        title=title,
        description="Wants a product demo",
        start=start,
        end=start + timedelta(minutes=duration),
        status=MeetingStatus.PENDING,
        created_at=datetime(2025, 3, 1, tzinfo=UTC),
    )


def make_config(
    timezone_name: str = "UTC",
    concurrency: int = 10,
    freebusy_timeout: float = 1.0,
    event_timeout: float = 1.0,
) -> AppConfig:
    return AppConfig(
        business=BusinessConfig(timezone=timezone_name),
        calendar=CalendarConfig(
            availability_concurrency=concurrency,
            freebusy_timeout_sec=freebusy_timeout,
            event_create_timeout_sec=event_timeout,
        ),
    )


class FakeCalendarProvider:
    """In-process CalendarProvider keyed by access token.

    ``busy`` maps a token to busy (start, end) intervals; tokens listed in
    ``failing`` raise ProviderError; ``delay`` simulates network latency.
    """

    def __init__(
        self,
        busy: Optional[dict[str, list[tuple[datetime, datetime]]]] = None,
        failing: Optional[set[str]] = None,
        delay: float = 0.0,
        event_error: Optional[BaseException] = None,
        event_delay: float = 0.0,
    ) -> None:
        self.busy = busy or {}
        self.failing = failing or set()
        self.delay = delay
        self.event_error = event_error
        self.event_delay = event_delay
        self.freebusy_calls: list[tuple[str, datetime, datetime]] = []
        self.created_events: list[tuple[str, EventDetails]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def is_free(self, credential: CalendarCredential, start: datetime, end: datetime) -> bool:
        self.freebusy_calls.append((credential.access_token, start, end))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if credential.access_token in self.failing:
                raise ProviderError(f"calendar for {credential.access_token} unreachable")
            return not any(
                b_start < end and start < b_end
                for b_start, b_end in self.busy.get(credential.access_token, [])
            )
        finally:
            self.in_flight -= 1

    async def create_event(self, credential: CalendarCredential, details: EventDetails) -> str:
        if self.event_delay:
            await asyncio.sleep(self.event_delay)
        if self.event_error is not None:
            raise self.event_error
        self.created_events.append((credential.access_token, details))
        return f"evt-{details.meeting_id}"


@pytest.fixture
def provider():
    return FakeCalendarProvider()


@pytest.fixture(params=["memory", "sql"])
def datastore(request, tmp_path):
    """Every Datastore implementation, for contract-style tests."""
    if request.param == "memory":
        yield InMemoryDatastore()
        return
    store = SqlDatastore(f"sqlite:///{tmp_path / 'scheduler.db'}")
    yield store
    store.dispose()
