"""
Google Calendar provider over the v3 REST API.

Handles:
- Freebusy queries for a member's calendar over a single slot
- Event creation with attendees and a Meet conference request

Every failure (transport error, timeout, non-2xx status, per-calendar
freebusy error) is raised as ``ProviderError`` so callers can degrade
instead of crashing. 401/403 responses raise ``ProviderAuthError``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

import httpx

from team_scheduler.errors import ProviderAuthError, ProviderError
from team_scheduler.providers.base import EventDetails
from team_scheduler.schemas.team_schema import CalendarCredential

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com/calendar/v3"


def _rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.status_code in (401, 403):
        raise ProviderAuthError(
            f"Google Calendar rejected credential during {action} ({response.status_code})"
        )
    if response.status_code not in (200, 201):
        raise ProviderError(
            f"Google Calendar {action} failed with status {response.status_code}"
        )


class GoogleCalendarProvider:
    """``CalendarProvider`` backed by Google Calendar."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url, timeout=self.timeout, transport=self._transport
        )

    @staticmethod
    def _headers(credential: CalendarCredential) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type": "application/json",
        }

    async def _post(
        self,
        path: str,
        credential: CalendarCredential,
        body: dict[str, Any],
        action: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.post(
                    path, headers=self._headers(credential), json=body, params=params
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Google Calendar {action} request failed: {exc}") from exc
        _raise_for_status(response, action)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"Google Calendar {action} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"Google Calendar {action} returned a non-object body")
        return data

    async def is_free(
        self, credential: CalendarCredential, start: datetime, end: datetime
    ) -> bool:
        calendar_id = credential.calendar_id
        data = await self._post(
            "/freeBusy",
            credential,
            {
                "timeMin": _rfc3339(start),
                "timeMax": _rfc3339(end),
                "items": [{"id": calendar_id}],
            },
            action="freebusy",
        )
        calendars = data.get("calendars")
        calendar_data = calendars.get(calendar_id) if isinstance(calendars, dict) else None
        if not isinstance(calendar_data, dict):
            raise ProviderError(f"Freebusy response is missing calendar {calendar_id}")
        errors = calendar_data.get("errors")
        if errors:
            reasons = ", ".join(
                str(e.get("reason", "unknown")) if isinstance(e, dict) else str(e)
                for e in (errors if isinstance(errors, list) else [errors])
            )
            raise ProviderError(f"Freebusy failed for {calendar_id}: {reasons}")
        busy = calendar_data.get("busy", [])
        if not isinstance(busy, list):
            raise ProviderError(f"Freebusy response for {calendar_id} has malformed busy list")
        return not busy

    async def create_event(
        self, credential: CalendarCredential, details: EventDetails
    ) -> str:
        body: dict[str, Any] = {
            "summary": details.title,
            "start": {"dateTime": _rfc3339(details.start), "timeZone": "UTC"},
            "end": {"dateTime": _rfc3339(details.end), "timeZone": "UTC"},
            "conferenceData": {
                "createRequest": {
                    "requestId": details.meeting_id,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }
        if details.description:
            body["description"] = details.description
        if details.attendee_emails:
            body["attendees"] = [{"email": e} for e in details.attendee_emails]

        data = await self._post(
            f"/calendars/{quote(credential.calendar_id, safe='')}/events",
            credential,
            body,
            action="event creation",
            params={"conferenceDataVersion": 1, "sendUpdates": "all"},
        )
        event_id = data.get("id")
        if not event_id:
            raise ProviderError("Google Calendar event creation returned no event id")
        logger.info("Created Google Calendar event %s for meeting %s", event_id, details.meeting_id)
        return str(event_id)
