"""Least-loaded ordering of team members for the assignment rotation."""

from typing import Iterable, Optional

from team_scheduler.schemas.team_schema import TeamMember


def rank_by_load(members: Iterable[TeamMember]) -> list[TeamMember]:
    """Active members, fewest assigned meetings first, ties broken by id."""
    return sorted(
        (m for m in members if m.is_active),
        key=lambda m: (m.load, m.id),
    )


def next_in_rotation(members: Iterable[TeamMember]) -> Optional[TeamMember]:
    """The member who should pick up the next meeting, if anyone is active."""
    ranked = rank_by_load(members)
    return ranked[0] if ranked else None
