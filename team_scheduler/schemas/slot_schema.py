"""Weekly slot template and transient candidate slot models."""

from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SlotTemplateEntry(BaseModel):
    """One recurring weekly window in which meetings can be booked.

    ``day_of_week`` counts from Sunday = 0 to Saturday = 6.
    """
    id: Optional[str] = None
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    duration_minutes: int = Field(default=30, gt=0)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_window(self) -> "SlotTemplateEntry":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class CandidateSlot(BaseModel):
    """A bookable [start, end) interval produced for a single request."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    duration_minutes: int
