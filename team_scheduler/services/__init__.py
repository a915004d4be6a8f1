from team_scheduler.services.scheduling_service import SchedulingService

__all__ = ["SchedulingService"]
