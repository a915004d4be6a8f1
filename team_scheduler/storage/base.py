"""Datastore capability consumed by the scheduling core."""

from datetime import time
from typing import Optional, Protocol

from team_scheduler.schemas.meeting_schema import Meeting
from team_scheduler.schemas.slot_schema import SlotTemplateEntry
from team_scheduler.schemas.team_schema import CalendarCredential, TeamMember

# Monday to Friday, 9am to 5pm, 30 minute slots (Sunday = 0).
DEFAULT_SLOT_TEMPLATE: tuple[SlotTemplateEntry, ...] = tuple(
    SlotTemplateEntry(
        day_of_week=day, start_time=time(9, 0), end_time=time(17, 0), duration_minutes=30
    )
    for day in range(1, 6)
)


class Datastore(Protocol):
    """Persistence operations the scheduler needs.

    ``claim_meeting`` must be atomic: the pending -> assigned transition and
    the assignee's load increment either both happen or neither does.
    Implementations raise ``DatastoreError`` for backend failures.
    """

    async def list_active_team_members(self) -> list[TeamMember]: ...

    async def list_active_team_members_with_calendar(self) -> list[TeamMember]: ...

    async def get_team_member(self, member_id: str) -> Optional[TeamMember]: ...

    async def add_team_member(self, name: str, email: str) -> TeamMember: ...

    async def set_team_member_active(self, member_id: str, active: bool) -> TeamMember: ...

    async def set_calendar_credential(
        self, member_id: str, credential: Optional[CalendarCredential]
    ) -> TeamMember: ...

    async def mark_credential_invalid(self, member_id: str) -> None: ...

    async def create_meeting(self, meeting: Meeting) -> Meeting: ...

    async def get_meeting(self, meeting_id: str) -> Optional[Meeting]: ...

    async def list_pending_meetings(self) -> list[Meeting]: ...

    async def claim_meeting(
        self, meeting_id: str, member_id: str
    ) -> tuple[Meeting, TeamMember]:
        """Assign a pending meeting and bump the member's load in one unit.

        Returns the claimed meeting and the assignee as committed by the
        claim, so the reported load includes any concurrent claims.

        Raises:
            NotFoundError: meeting missing, or member missing/inactive.
            AlreadyAssignedError: meeting is no longer pending.
        """
        ...

    async def set_external_event_id(self, meeting_id: str, event_id: str) -> None: ...

    async def list_active_slot_template_entries(self) -> list[SlotTemplateEntry]: ...

    async def add_slot_template_entry(self, entry: SlotTemplateEntry) -> SlotTemplateEntry: ...

    async def seed_default_slot_template(self) -> int:
        """Insert ``DEFAULT_SLOT_TEMPLATE`` if no entries exist; return rows added."""
        ...
