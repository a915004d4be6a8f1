from team_scheduler.scheduling.assignment import AssignmentEngine
from team_scheduler.scheduling.availability import filter_available_slots, upcoming_slots
from team_scheduler.scheduling.load_ranking import next_in_rotation, rank_by_load
from team_scheduler.scheduling.slot_generator import generate_slots

__all__ = [
    "generate_slots",
    "filter_available_slots",
    "upcoming_slots",
    "AssignmentEngine",
    "rank_by_load",
    "next_in_rotation",
]
