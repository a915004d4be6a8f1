"""End-to-end tests for the scheduling service over both datastores."""

from datetime import date

import pytest

from team_scheduler.errors import (
    DatastoreError,
    DuplicateEmailError,
    NotFoundError,
    ValidationError,
)
from team_scheduler.schemas.meeting_schema import MeetingStatus
from team_scheduler.schemas.team_schema import CalendarCredential
from team_scheduler.services.scheduling_service import SchedulingService
from team_scheduler.storage.memory import InMemoryDatastore
from team_scheduler.storage.sessions import InMemorySessionStore
from tests.conftest import FakeCalendarProvider, at, make_config, make_entry


def _booking(**overrides):
    data = {
        "customer_name": "Jane Doe",
        "customer_email": "Jane@Customer.test",
        "title": "Intro call",
        "description": "Wants a product demo",
        "start": at(9, 30),
        "end": at(10, 0),
    }
    data.update(overrides)
    return data


@pytest.fixture
def service(datastore, provider):
    return SchedulingService(datastore, provider, make_config())


class TestAvailableSlots:
    @pytest.mark.asyncio
    async def test_template_slots_without_calendars(self, service, datastore):
        await datastore.add_slot_template_entry(make_entry())
        slots = await service.available_slots("2025-03-18", now=at(8))
        assert [(s.start, s.end) for s in slots] == [(at(9), at(9, 30)), (at(9, 30), at(10))]

    @pytest.mark.asyncio
    async def test_busy_member_leaves_only_free_slot(self, datastore, provider):
        provider.busy = {"tok-ada": [(at(9), at(9, 30))]}
        await datastore.add_slot_template_entry(make_entry())
        ada = await datastore.add_team_member("Ada", "ada@team.test")
        await datastore.set_calendar_credential(ada.id, CalendarCredential(access_token="tok-ada"))

        service = SchedulingService(datastore, provider, make_config())
        slots = await service.available_slots(date(2025, 3, 18), now=at(8))

        assert [(s.start, s.end) for s in slots] == [(at(9, 30), at(10))]

    @pytest.mark.asyncio
    async def test_day_without_template_is_empty(self, service, datastore, provider):
        await datastore.add_slot_template_entry(make_entry(day_of_week=3))
        assert await service.available_slots("2025-03-18", now=at(8)) == []
        assert provider.freebusy_calls == []

    @pytest.mark.asyncio
    async def test_default_template_covers_weekdays(self, service, datastore):
        await datastore.seed_default_slot_template()
        assert len(await service.available_slots("2025-03-18", now=at(0))) == 16
        assert await service.available_slots("2025-03-16", now=at(0)) == []

    @pytest.mark.asyncio
    async def test_falls_back_when_availability_check_breaks(self, datastore):
        class BrokenProvider(FakeCalendarProvider):
            async def is_free(self, credential, start, end):
                raise RuntimeError("unexpected payload")

        await datastore.add_slot_template_entry(make_entry())
        ada = await datastore.add_team_member("Ada", "ada@team.test")
        await datastore.set_calendar_credential(ada.id, CalendarCredential(access_token="tok"))

        service = SchedulingService(datastore, BrokenProvider(), make_config())
        slots = await service.available_slots("2025-03-18", now=at(9, 10))

        assert [s.start for s in slots] == [at(9, 30)]

    @pytest.mark.asyncio
    async def test_invalid_credential_member_is_not_queried(self, datastore, provider):
        await datastore.add_slot_template_entry(make_entry())
        ada = await datastore.add_team_member("Ada", "ada@team.test")
        await datastore.set_calendar_credential(
            ada.id, CalendarCredential(access_token="tok", valid=False)
        )
        service = SchedulingService(datastore, provider, make_config())
        assert len(await service.available_slots("2025-03-18", now=at(8))) == 2
        assert provider.freebusy_calls == []

    @pytest.mark.asyncio
    async def test_business_timezone_anchors_slots(self, datastore, provider):
        await datastore.add_slot_template_entry(make_entry())
        service = SchedulingService(datastore, provider, make_config("America/New_York"))
        slots = await service.available_slots("2025-03-18", now=at(0))
        # 09:00 EDT
        assert slots[0].start == at(13)

    @pytest.mark.parametrize("target", [None, "", "   "])
    @pytest.mark.asyncio
    async def test_missing_date(self, service, target):
        with pytest.raises(ValidationError, match="Date parameter required"):
            await service.available_slots(target)

    @pytest.mark.parametrize("target", ["18/03/2025", "2025-02-30", "tomorrow"])
    @pytest.mark.asyncio
    async def test_malformed_date(self, service, target):
        with pytest.raises(ValidationError, match="Invalid date"):
            await service.available_slots(target)

    @pytest.mark.asyncio
    async def test_datastore_failure_is_surfaced(self, provider):
        class BrokenStore(InMemoryDatastore):
            async def list_active_slot_template_entries(self):
                raise DatastoreError("connection refused")

        service = SchedulingService(BrokenStore(), provider, make_config())
        with pytest.raises(DatastoreError):
            await service.available_slots("2025-03-18", now=at(8))


class TestSlotTemplate:
    @pytest.mark.asyncio
    async def test_add_entry_from_strings(self, service):
        entry = await service.add_slot_template_entry(2, "13:00", "14:30", 45)
        assert entry.id
        slots = await service.available_slots("2025-03-18", now=at(8))
        assert [(s.start, s.end) for s in slots] == [(at(13), at(13, 45)), (at(13, 45), at(14, 30))]

    @pytest.mark.parametrize(
        "day,start,end,duration",
        [
            (2, "9am", "10:00", 30),
            (2, "10:00", "09:00", 30),
            (7, "09:00", "10:00", 30),
            (2, "09:00", "10:00", 0),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_entry_rejected(self, service, datastore, day, start, end, duration):
        with pytest.raises(ValidationError):
            await service.add_slot_template_entry(day, start, end, duration)
        assert await datastore.list_active_slot_template_entries() == []


class TestBooking:
    @pytest.mark.asyncio
    async def test_booking_creates_pending_meeting(self, service, datastore):
        meeting = await service.book_meeting(_booking())

        assert meeting.status == MeetingStatus.PENDING
        assert meeting.assigned_to is None
        assert meeting.customer_email == "jane@customer.test"
        assert meeting.description == "Wants a product demo"
        assert [m.id for m in await service.pending_meetings()] == [meeting.id]
        assert (await datastore.get_meeting(meeting.id)).start == at(9, 30)

    @pytest.mark.asyncio
    async def test_pending_meetings_sorted_by_start(self, service):
        late = await service.book_meeting(_booking(start=at(14), end=at(14, 30)))
        early = await service.book_meeting(_booking(start=at(9), end=at(9, 30)))
        assert [m.id for m in await service.pending_meetings()] == [early.id, late.id]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"customer_email": "not-an-email"},
            {"customer_name": "  "},
            {"title": ""},
            {"end": at(9, 0)},
            {"start": at(9, 30).replace(tzinfo=None)},
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_booking_rejected(self, service, overrides):
        with pytest.raises(ValidationError, match="Invalid booking"):
            await service.book_meeting(_booking(**overrides))
        assert await service.pending_meetings() == []

    @pytest.mark.asyncio
    async def test_missing_field_rejected(self, service):
        data = _booking()
        del data["title"]
        with pytest.raises(ValidationError):
            await service.book_meeting(data)


class TestAssignment:
    @pytest.mark.asyncio
    async def test_book_then_assign(self, service, datastore, provider):
        ada = await service.add_team_member("Ada", "ada@team.test")
        await service.connect_calendar(ada.id, CalendarCredential(access_token="tok-ada"))
        meeting = await service.book_meeting(_booking())

        result = await service.assign_meeting(meeting.id, ada.id)

        assert result.success
        assert result.message == "Meeting assigned and calendar event created!"
        assert result.external_event_id == f"evt-{meeting.id}"
        assert await service.pending_meetings() == []
        assert (await service.team_members())[0].load == 1

    @pytest.mark.asyncio
    async def test_unknown_member_keeps_meeting_pending(self, service):
        meeting = await service.book_meeting(_booking())
        with pytest.raises(NotFoundError):
            await service.assign_meeting(meeting.id, "nobody")
        pending = await service.pending_meetings()
        assert [m.id for m in pending] == [meeting.id]
        assert pending[0].status == MeetingStatus.PENDING

    @pytest.mark.parametrize("meeting_id,member_id", [("", "m"), ("mtg", ""), ("  ", "m")])
    @pytest.mark.asyncio
    async def test_blank_ids_rejected(self, service, meeting_id, member_id):
        with pytest.raises(ValidationError):
            await service.assign_meeting(meeting_id, member_id)

    @pytest.mark.asyncio
    async def test_rotation_follows_load(self, service):
        ada = await service.add_team_member("Ada", "ada@team.test")
        bob = await service.add_team_member("Bob", "bob@team.test")
        first = await service.book_meeting(_booking())

        rotation_pick = await service.next_in_rotation()
        await service.assign_meeting(first.id, rotation_pick.id)

        other = bob if rotation_pick.id == ada.id else ada
        assert (await service.next_in_rotation()).id == other.id
        assert [m.load for m in await service.team_members()] == [0, 1]


class TestTeam:
    @pytest.mark.asyncio
    async def test_duplicate_email(self, service):
        await service.add_team_member("Ada", "ada@team.test")
        with pytest.raises(DuplicateEmailError):
            await service.add_team_member("Ada Again", " ADA@team.test ")

    @pytest.mark.parametrize("name,email", [("", "a@b.co"), ("Ada", "nope"), ("Ada", "")])
    @pytest.mark.asyncio
    async def test_invalid_member_input(self, service, name, email):
        with pytest.raises(ValidationError):
            await service.add_team_member(name, email)

    @pytest.mark.asyncio
    async def test_inactive_members_hidden(self, service, datastore):
        ada = await service.add_team_member("Ada", "ada@team.test")
        await datastore.set_team_member_active(ada.id, False)
        assert await service.team_members() == []
        assert await service.next_in_rotation() is None


class TestCalendarSessions:
    @pytest.mark.asyncio
    async def test_connect_from_session(self, datastore, provider):
        sessions = InMemorySessionStore(ttl_sec=60)
        session_id = sessions.put({"access_token": "tok", "refresh_token": "ref"})
        service = SchedulingService(datastore, provider, make_config(), session_store=sessions)
        ada = await service.add_team_member("Ada", "ada@team.test")

        member = await service.connect_calendar_from_session(ada.id, session_id, "ada-cal")

        assert member.is_calendar_eligible
        assert member.credential.refresh_token == "ref"
        assert member.credential.calendar_id == "ada-cal"

    @pytest.mark.asyncio
    async def test_unknown_session(self, datastore, provider):
        service = SchedulingService(
            datastore, provider, make_config(), session_store=InMemorySessionStore(ttl_sec=60)
        )
        ada = await service.add_team_member("Ada", "ada@team.test")
        with pytest.raises(NotFoundError):
            await service.connect_calendar_from_session(ada.id, "missing")

    @pytest.mark.asyncio
    async def test_no_session_store(self, service):
        with pytest.raises(ValidationError):
            await service.connect_calendar_from_session("m", "s")
