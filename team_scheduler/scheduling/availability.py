"""
Calendar-aware availability filtering.

A candidate slot stays bookable when it starts strictly after ``now`` and
at least one calendar-synced team member is free for the whole slot.
Free/busy lookups fan out concurrently but share one semaphore, so a
single request never has more than ``concurrency`` calls in flight
against the provider.

A member whose lookup fails or times out is treated as busy for that
slot only; the other members are still asked.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Iterable, Sequence, TypeVar

from team_scheduler.errors import ProviderError
from team_scheduler.logging_context import get_request_logger
from team_scheduler.providers.base import CalendarProvider
from team_scheduler.schemas.slot_schema import CandidateSlot
from team_scheduler.schemas.team_schema import TeamMember

logger = get_request_logger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT_SEC = 5.0


async def _gather_or_cancel(coros: Iterable[Awaitable[T]]) -> list[T]:
    """Like ``asyncio.gather``, but a failure cancels and awaits the siblings.

    No lookup started for a request outlives it.
    """
    tasks = [asyncio.ensure_future(c) for c in coros]
    try:
        return await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def upcoming_slots(candidates: Sequence[CandidateSlot], now: datetime) -> list[CandidateSlot]:
    """Drop slots that start at or before ``now``; order is kept."""
    return [slot for slot in candidates if slot.start > now]


async def _member_is_free(
    provider: CalendarProvider,
    member: TeamMember,
    slot: CandidateSlot,
    semaphore: asyncio.Semaphore,
    timeout: float,
) -> bool:
    if member.credential is None:
        return False
    async with semaphore:
        try:
            return await asyncio.wait_for(
                provider.is_free(member.credential, slot.start, slot.end), timeout
            )
        except ProviderError as exc:
            logger.warning(
                "Freebusy failed for member %s at %s: %s", member.id, slot.start, exc
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Freebusy timed out after %.1fs for member %s at %s",
                timeout, member.id, slot.start,
            )
    return False


async def _slot_has_free_member(
    provider: CalendarProvider,
    members: Sequence[TeamMember],
    slot: CandidateSlot,
    semaphore: asyncio.Semaphore,
    timeout: float,
) -> bool:
    answers = await _gather_or_cancel(
        _member_is_free(provider, m, slot, semaphore, timeout) for m in members
    )
    return any(answers)


async def filter_available_slots(
    candidates: Sequence[CandidateSlot],
    now: datetime,
    members: Sequence[TeamMember],
    provider: CalendarProvider,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT_SEC,
) -> list[CandidateSlot]:
    """Return the candidates that are in the future and have a free member.

    With no calendar-synced members the time-filtered list is returned
    unchanged: calendar checks refine availability, they never gate it.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    future = upcoming_slots(candidates, now)
    if not members or not future:
        return future

    semaphore = asyncio.Semaphore(concurrency)
    verdicts = await _gather_or_cancel(
        _slot_has_free_member(provider, members, s, semaphore, timeout) for s in future
    )
    available = [slot for slot, ok in zip(future, verdicts) if ok]
    logger.debug(
        "Availability: %d of %d upcoming slots have a free member (%d members checked)",
        len(available), len(future), len(members),
    )
    return available
