"""Calendar provider capability consumed by availability and assignment."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol

from team_scheduler.schemas.team_schema import CalendarCredential


@dataclass(frozen=True)
class EventDetails:
    """Everything needed to put an assigned meeting on a calendar."""
    meeting_id: str
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    attendee_emails: tuple[str, ...] = field(default_factory=tuple)


class CalendarProvider(Protocol):
    """External calendar capability.

    Both calls raise ``ProviderError`` (``ProviderAuthError`` for rejected
    credentials) on any network, HTTP or auth failure.
    """

    async def is_free(
        self, credential: CalendarCredential, start: datetime, end: datetime
    ) -> bool:
        """True when the calendar has no busy block overlapping [start, end)."""
        ...

    async def create_event(
        self, credential: CalendarCredential, details: EventDetails
    ) -> str:
        """Create the event and return the provider's event id."""
        ...
