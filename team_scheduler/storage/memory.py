"""
In-memory datastore.

Used by tests and the local demo. State lives in plain dicts owned by the
instance; every mutation happens under one ``asyncio.Lock`` so a claim is
a single atomic step with respect to other coroutines. Records are copied
on the way in and out so callers never hold live references.
"""

import asyncio
import logging
import uuid
from typing import Optional

from team_scheduler.errors import AlreadyAssignedError, DuplicateEmailError, NotFoundError
from team_scheduler.schemas.meeting_schema import Meeting, MeetingStatus
from team_scheduler.schemas.slot_schema import SlotTemplateEntry
from team_scheduler.schemas.team_schema import CalendarCredential, TeamMember
from team_scheduler.storage.base import DEFAULT_SLOT_TEMPLATE
from team_scheduler.utils import normalize_email, utcnow

logger = logging.getLogger(__name__)


class InMemoryDatastore:
    """Dict-backed ``Datastore``."""

    def __init__(self) -> None:
        self._members: dict[str, TeamMember] = {}
        self._meetings: dict[str, Meeting] = {}
        self._template: list[SlotTemplateEntry] = []
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Team members
    # ------------------------------------------------------------------ #

    async def list_active_team_members(self) -> list[TeamMember]:
        active = [m for m in self._members.values() if m.is_active]
        return [m.model_copy(deep=True) for m in sorted(active, key=lambda m: (m.load, m.id))]

    async def list_active_team_members_with_calendar(self) -> list[TeamMember]:
        return [m for m in await self.list_active_team_members() if m.is_calendar_eligible]

    async def get_team_member(self, member_id: str) -> Optional[TeamMember]:
        member = self._members.get(member_id)
        return member.model_copy(deep=True) if member else None

    async def add_team_member(self, name: str, email: str) -> TeamMember:
        email = normalize_email(email)
        async with self._lock:
            if any(m.email == email for m in self._members.values()):
                raise DuplicateEmailError(email)
            member = TeamMember(
                id=str(uuid.uuid4()), name=name, email=email, created_at=utcnow()
            )
            self._members[member.id] = member
        logger.info("Team member added: %s (%s)", member.id, email)
        return member.model_copy(deep=True)

    async def set_team_member_active(self, member_id: str, active: bool) -> TeamMember:
        async with self._lock:
            member = self._members.get(member_id)
            if member is None:
                raise NotFoundError("team member", member_id)
            member.is_active = active
            return member.model_copy(deep=True)

    async def set_calendar_credential(
        self, member_id: str, credential: Optional[CalendarCredential]
    ) -> TeamMember:
        async with self._lock:
            member = self._members.get(member_id)
            if member is None:
                raise NotFoundError("team member", member_id)
            member.credential = credential.model_copy() if credential else None
            member.calendar_sync_enabled = credential is not None
            return member.model_copy(deep=True)

    async def mark_credential_invalid(self, member_id: str) -> None:
        async with self._lock:
            member = self._members.get(member_id)
            if member is not None and member.credential is not None:
                member.credential.valid = False

    # ------------------------------------------------------------------ #
    # Meetings
    # ------------------------------------------------------------------ #

    async def create_meeting(self, meeting: Meeting) -> Meeting:
        async with self._lock:
            self._meetings[meeting.id] = meeting.model_copy(deep=True)
        return meeting

    async def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        meeting = self._meetings.get(meeting_id)
        return meeting.model_copy(deep=True) if meeting else None

    async def list_pending_meetings(self) -> list[Meeting]:
        pending = [m for m in self._meetings.values() if m.status == MeetingStatus.PENDING]
        return [m.model_copy(deep=True) for m in sorted(pending, key=lambda m: m.start)]

    async def claim_meeting(
        self, meeting_id: str, member_id: str
    ) -> tuple[Meeting, TeamMember]:
        async with self._lock:
            meeting = self._meetings.get(meeting_id)
            if meeting is None:
                raise NotFoundError("meeting", meeting_id)
            if meeting.status != MeetingStatus.PENDING:
                raise AlreadyAssignedError(meeting_id, meeting.assigned_to)
            member = self._members.get(member_id)
            if member is None or not member.is_active:
                raise NotFoundError("team member", member_id)

            claimed = meeting.model_copy(
                update={"status": MeetingStatus.ASSIGNED, "assigned_to": member_id}
            )
            self._meetings[meeting_id] = claimed
            member.load += 1
            return claimed.model_copy(deep=True), member.model_copy(deep=True)

    async def set_external_event_id(self, meeting_id: str, event_id: str) -> None:
        async with self._lock:
            meeting = self._meetings.get(meeting_id)
            if meeting is None:
                raise NotFoundError("meeting", meeting_id)
            self._meetings[meeting_id] = meeting.model_copy(
                update={"external_event_id": event_id}
            )

    # ------------------------------------------------------------------ #
    # Slot template
    # ------------------------------------------------------------------ #

    async def list_active_slot_template_entries(self) -> list[SlotTemplateEntry]:
        return [e.model_copy() for e in self._template if e.is_active]

    async def add_slot_template_entry(self, entry: SlotTemplateEntry) -> SlotTemplateEntry:
        async with self._lock:
            stored = entry.model_copy(update={"id": entry.id or str(uuid.uuid4())})
            self._template.append(stored)
        return stored.model_copy()

    async def seed_default_slot_template(self) -> int:
        if self._template:
            return 0
        for entry in DEFAULT_SLOT_TEMPLATE:
            await self.add_slot_template_entry(entry)
        return len(DEFAULT_SLOT_TEMPLATE)
