"""
Meeting assignment: atomic claim, then best-effort calendar event.

Flow per call: Validate member -> Claim (status + load, one atomic unit)
-> Create calendar event -> Record event id. Only the first two steps can
fail the call. Anything that goes wrong after the claim is reported as a
warning on an otherwise successful result, because who owns the meeting
must never be rolled back over a calendar integration problem.
"""

import asyncio
from typing import Optional

from team_scheduler.errors import DatastoreError, NotFoundError, ProviderAuthError, ProviderError
from team_scheduler.logging_context import get_request_logger
from team_scheduler.providers.base import CalendarProvider, EventDetails
from team_scheduler.schemas.meeting_schema import AssignmentResult, Meeting
from team_scheduler.schemas.team_schema import TeamMember
from team_scheduler.storage.base import Datastore

logger = get_request_logger(__name__)

WARNING_NO_CREDENTIAL = "no_calendar_credential"
WARNING_EVENT_FAILED = "calendar_event_failed"
WARNING_EVENT_NOT_RECORDED = "event_id_not_recorded"

_MESSAGES = {
    None: "Meeting assigned and calendar event created!",
    WARNING_NO_CREDENTIAL: "Meeting assigned successfully! No calendar is connected, "
    "so please add it to your calendar manually.",
    WARNING_EVENT_FAILED: "Meeting assigned, but calendar event creation failed. "
    "Please create manually.",
    WARNING_EVENT_NOT_RECORDED: "Meeting assigned and calendar event created, "
    "but the event link could not be saved.",
}


class AssignmentEngine:
    """Awards pending meetings to team members on a first-come basis."""

    def __init__(
        self,
        datastore: Datastore,
        provider: CalendarProvider,
        event_timeout: float = 10.0,
    ) -> None:
        self._store = datastore
        self._provider = provider
        self._event_timeout = event_timeout

    async def assign(self, meeting_id: str, member_id: str) -> AssignmentResult:
        """Claim ``meeting_id`` for ``member_id``.

        Raises:
            NotFoundError: meeting or member does not exist, or member is inactive.
            AlreadyAssignedError: another member claimed the meeting first.
            DatastoreError: the claim itself could not be performed.
        """
        member = await self._store.get_team_member(member_id)
        if member is None or not member.is_active:
            raise NotFoundError("team member", member_id)

        meeting, member = await self._store.claim_meeting(meeting_id, member_id)
        logger.info("Meeting %s assigned to member %s", meeting_id, member_id)

        event_id, warning = await self._create_event(meeting, member)
        if event_id is not None:
            meeting = meeting.model_copy(update={"external_event_id": event_id})

        return AssignmentResult(
            meeting=meeting,
            assignee=member,
            external_event_id=meeting.external_event_id,
            calendar_warning=warning is not None,
            warning=warning,
            message=_MESSAGES[warning],
        )

    async def _create_event(
        self, meeting: Meeting, member: TeamMember
    ) -> tuple[Optional[str], Optional[str]]:
        """Returns (recorded event id, warning code)."""
        credential = member.credential
        if credential is None or not credential.valid:
            return None, WARNING_NO_CREDENTIAL

        details = EventDetails(
            meeting_id=meeting.id,
            title=meeting.title,
            start=meeting.start,
            end=meeting.end,
            description=meeting.description,
            attendee_emails=(meeting.customer_email, member.email),
        )
        try:
            event_id = await asyncio.wait_for(
                self._provider.create_event(credential, details), self._event_timeout
            )
        except ProviderAuthError as exc:
            logger.warning("Calendar credential rejected for member %s: %s", member.id, exc)
            await self._invalidate_credential(member.id)
            return None, WARNING_EVENT_FAILED
        except ProviderError as exc:
            logger.warning("Calendar event creation failed for meeting %s: %s", meeting.id, exc)
            return None, WARNING_EVENT_FAILED
        except asyncio.TimeoutError:
            logger.warning(
                "Calendar event creation timed out after %.1fs for meeting %s",
                self._event_timeout, meeting.id,
            )
            return None, WARNING_EVENT_FAILED

        try:
            await self._store.set_external_event_id(meeting.id, event_id)
        except DatastoreError:
            logger.exception("Could not record event %s for meeting %s", event_id, meeting.id)
            return None, WARNING_EVENT_NOT_RECORDED
        return event_id, None

    async def _invalidate_credential(self, member_id: str) -> None:
        try:
            await self._store.mark_credential_invalid(member_id)
        except DatastoreError:
            logger.exception("Could not mark credential invalid for member %s", member_id)
