"""Team member and calendar credential models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CalendarCredential(BaseModel):
    """OAuth tokens and target calendar for one team member."""
    access_token: str
    refresh_token: Optional[str] = None
    calendar_id: str = "primary"
    valid: bool = True


class TeamMember(BaseModel):
    """A team member who can claim pending meetings."""
    id: str
    name: str
    email: str
    is_active: bool = True
    load: int = Field(default=0, ge=0)
    credential: Optional[CalendarCredential] = None
    calendar_sync_enabled: bool = False
    created_at: datetime

    @property
    def has_usable_credential(self) -> bool:
        return self.credential is not None and self.credential.valid

    @property
    def is_calendar_eligible(self) -> bool:
        """Active, opted in to sync, and holding a credential that still works."""
        return self.is_active and self.calendar_sync_enabled and self.has_usable_credential
