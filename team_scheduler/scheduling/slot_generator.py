"""
Candidate slot generation from the weekly slot template.

Template windows are wall-clock times in the business time zone. Each
window is anchored to the requested date, converted to an absolute
instant, then cut into back-to-back slots of the entry's duration.
Stepping happens in UTC so every slot is exactly ``duration`` long even
on a DST transition day.

Usage:
    slots = generate_slots(date(2025, 3, 18), entries, ZoneInfo("UTC"))
"""

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable

from team_scheduler.schemas.slot_schema import CandidateSlot, SlotTemplateEntry
from team_scheduler.utils import day_of_week


def _slots_for_entry(
    target_date: date, entry: SlotTemplateEntry, tz: tzinfo
) -> list[CandidateSlot]:
    window_start = datetime.combine(target_date, entry.start_time, tzinfo=tz)
    window_end = datetime.combine(target_date, entry.end_time, tzinfo=tz)
    current = window_start.astimezone(timezone.utc)
    limit = window_end.astimezone(timezone.utc)
    step = timedelta(minutes=entry.duration_minutes)

    slots: list[CandidateSlot] = []
    while current + step <= limit:
        slots.append(
            CandidateSlot(
                start=current.astimezone(tz),
                end=(current + step).astimezone(tz),
                duration_minutes=entry.duration_minutes,
            )
        )
        current += step
    return slots


def generate_slots(
    target_date: date, entries: Iterable[SlotTemplateEntry], tz: tzinfo
) -> list[CandidateSlot]:
    """Produce every candidate slot the template offers on ``target_date``.

    Entries for other weekdays and inactive entries are skipped. Overlapping
    entries on the same weekday each contribute their own run; duplicates
    are not merged. The result is stable-sorted by start time and is empty,
    never an error, when nothing fits.
    """
    weekday = day_of_week(target_date)
    slots: list[CandidateSlot] = []
    for entry in entries:
        if entry.day_of_week != weekday or not entry.is_active:
            continue
        slots.extend(_slots_for_entry(target_date, entry, tz))
    return sorted(slots, key=lambda slot: slot.start)
