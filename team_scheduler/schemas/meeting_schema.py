"""Meeting, booking and assignment data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from team_scheduler.schemas.team_schema import TeamMember
from team_scheduler.utils import is_valid_email, normalize_email


class MeetingStatus(str, Enum):
    """Lifecycle of a booked meeting."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"


class Meeting(BaseModel):
    """A customer meeting, pending until a team member claims it."""
    id: str
    customer_name: str
    customer_email: str
    title: str
    description: Optional[str] = None
    start: datetime
    end: datetime
    status: MeetingStatus = MeetingStatus.PENDING
    assigned_to: Optional[str] = None
    external_event_id: Optional[str] = None
    created_at: datetime

    @model_validator(mode="after")
    def _check_invariants(self) -> "Meeting":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        if (self.assigned_to is None) != (self.status == MeetingStatus.PENDING):
            raise ValueError("assigned_to must be set exactly when status is not pending")
        if self.external_event_id is not None and self.assigned_to is None:
            raise ValueError("external_event_id requires an assignee")
        return self


class BookingRequest(BaseModel):
    """Validated booking request data from a customer."""
    customer_name: str
    customer_email: str
    title: str
    description: Optional[str] = None
    start: datetime
    end: datetime

    @field_validator("customer_name", "title")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("customer_email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("is not a valid email address")
        return normalize_email(value)

    @field_validator("start", "end")
    @classmethod
    def _timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("must include a timezone offset")
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "BookingRequest":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class AssignmentResult(BaseModel):
    """Outcome of a successful claim, with any non-fatal calendar warning."""
    success: bool = True
    meeting: Meeting
    assignee: TeamMember
    external_event_id: Optional[str] = None
    calendar_warning: bool = False
    warning: Optional[str] = None
    message: str = ""
