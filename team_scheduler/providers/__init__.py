from team_scheduler.providers.base import CalendarProvider, EventDetails
from team_scheduler.providers.google_calendar import GoogleCalendarProvider

__all__ = ["CalendarProvider", "EventDetails", "GoogleCalendarProvider"]
