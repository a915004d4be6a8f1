"""Exception hierarchy shared by scheduling, storage and provider code."""

from typing import Optional


class SchedulingError(Exception):
    """Base class for every error the scheduler raises on purpose."""


class ValidationError(SchedulingError):
    """Malformed or missing input, rejected before any computation."""


class NotFoundError(SchedulingError):
    """A meeting or team member does not exist (or is inactive)."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind.capitalize()} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class AlreadyAssignedError(SchedulingError):
    """The meeting was claimed by someone else first."""

    def __init__(self, meeting_id: str, assigned_to: Optional[str] = None) -> None:
        super().__init__(f"Meeting {meeting_id} is already assigned")
        self.meeting_id = meeting_id
        self.assigned_to = assigned_to


class DuplicateEmailError(SchedulingError):
    """A team member with this email already exists."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Team member with email {email} already exists")
        self.email = email


class ProviderError(SchedulingError):
    """An external calendar call failed or timed out."""


class ProviderAuthError(ProviderError):
    """The calendar provider rejected the stored credential."""


class DatastoreError(SchedulingError):
    """The datastore failed; fatal to the current request only."""
