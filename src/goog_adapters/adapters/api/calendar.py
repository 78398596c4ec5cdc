"""
Google Calendar v3 client and verification adapter.

Reference: https://developers.google.com/calendar/api/v3/reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

from ...core.retry import CancelToken
from ..base import VerificationResult
from ..errors import APIError, BadRequestError, ErrorTable, InvalidTimeRangeError, Resource
from .base import REMOTE_ERRORS, BaseAPIClient, failed_verification

DEFAULT_BASE_URL = "https://www.googleapis.com/calendar/v3"
DEFAULT_CALENDAR_ID = "primary"
RESPONSE_STATUSES = frozenset({"needsAction", "declined", "tentative", "accepted"})

CALENDAR_ERRORS = ErrorTable(
    service="calendar",
    time_range_phrases=frozenset(
        {
            "Invalid time range",
            "The requested time range is invalid",
            "Start time must be before end time",
        }
    ),
)


def _segment(value: str) -> str:
    return quote(value, safe="")


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC so every timestamp sent is RFC 3339."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CalendarClient(BaseAPIClient):
    """
    Calendar client covering events, calendars, ACL rules and free/busy queries.

    Every ``calendar_id`` argument accepts ``None`` to address
    ``default_calendar``.
    """

    error_table = CALENDAR_ERRORS

    def __init__(self, *, base_url: str = DEFAULT_BASE_URL, default_calendar: str = DEFAULT_CALENDAR_ID, **kwargs: Any) -> None:
        super().__init__(base_url=base_url, **kwargs)
        self.default_calendar = default_calendar

    def _calendar_path(self, calendar_id: Optional[str], *segments: str) -> str:
        parts = [calendar_id or self.default_calendar, *segments]
        return "/calendars/" + "/".join(_segment(part) for part in parts)

    def _time_window(self, time_min: datetime, time_max: datetime, resource: Resource) -> tuple[str, str]:
        start, end = _as_utc(time_min), _as_utc(time_max)
        if not start < end:
            raise InvalidTimeRangeError("start must be before end", service=self.error_table.service, resource=resource)
        return start.isoformat(), end.isoformat()

    async def _collect(
        self,
        url: str,
        *,
        resource: Resource,
        what: str,
        params: Optional[Mapping[str, Any]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> List[Dict[str, Any]]:
        """Follow ``nextPageToken`` and gather every ``items`` entry."""

        items: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            payload = await self._get_json(url, resource=resource, cancel=cancel, params={**(params or {}), "pageToken": page_token})
            page = self._expect_dict(payload, what)
            items.extend(item for item in page.get("items") or [] if isinstance(item, dict))
            page_token = page.get("nextPageToken")
            if not page_token:
                return items

    # Events

    async def list_events(
        self,
        calendar_id: Optional[str],
        time_min: datetime,
        time_max: datetime,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> List[Dict[str, Any]]:
        """Return expanded single events in ``[time_min, time_max)``, ordered by start time."""

        start, end = self._time_window(time_min, time_max, Resource.EVENT)
        calendar = calendar_id or self.default_calendar
        events = await self._collect(
            self._calendar_path(calendar, "events"),
            resource=Resource.EVENT,
            what="event list",
            params={"timeMin": start, "timeMax": end, "singleEvents": "true", "orderBy": "startTime"},
            cancel=cancel,
        )
        return [{**event, "calendarId": calendar} for event in events]

    async def get_event(self, calendar_id: Optional[str], event_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(self._calendar_path(calendar_id, "events", event_id), resource=Resource.EVENT, cancel=cancel)
        return self._expect_dict(payload, "event lookup")

    async def create_event(self, calendar_id: Optional[str], event: Mapping[str, Any], *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._post_json(self._calendar_path(calendar_id, "events"), resource=Resource.EVENT, cancel=cancel, json_body=dict(event))
        return self._expect_dict(payload, "event creation")

    async def update_event(
        self,
        calendar_id: Optional[str],
        event_id: str,
        event: Mapping[str, Any],
        *,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        payload = await self._request_json(
            "PUT",
            self._calendar_path(calendar_id, "events", event_id),
            resource=Resource.EVENT,
            cancel=cancel,
            json_body=dict(event),
        )
        return self._expect_dict(payload, "event update")

    async def delete_event(self, calendar_id: Optional[str], event_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json("DELETE", self._calendar_path(calendar_id, "events", event_id), resource=Resource.EVENT, cancel=cancel)

    async def move_event(
        self,
        calendar_id: Optional[str],
        event_id: str,
        destination_calendar_id: str,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        """Move an event to another calendar; the result is tagged with the destination."""

        payload = await self._post_json(
            self._calendar_path(calendar_id, "events", event_id, "move"),
            resource=Resource.EVENT,
            cancel=cancel,
            params={"destination": destination_calendar_id},
        )
        return {**self._expect_dict(payload, "event move"), "calendarId": destination_calendar_id}

    async def quick_add(self, calendar_id: Optional[str], text: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        """Create an event from a free-text description such as ``"Lunch tomorrow 1pm"``."""

        calendar = calendar_id or self.default_calendar
        payload = await self._post_json(
            self._calendar_path(calendar, "events", "quickAdd"),
            resource=Resource.EVENT,
            cancel=cancel,
            params={"text": text},
        )
        return {**self._expect_dict(payload, "quick add"), "calendarId": calendar}

    async def list_instances(
        self,
        calendar_id: Optional[str],
        event_id: str,
        *,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        cancel: Optional[CancelToken] = None,
    ) -> List[Dict[str, Any]]:
        """Return the occurrences of a recurring event, optionally bounded in time."""

        params: Dict[str, Any] = {}
        if time_min is not None and time_max is not None:
            params["timeMin"], params["timeMax"] = self._time_window(time_min, time_max, Resource.EVENT)
        elif time_min is not None:
            params["timeMin"] = _as_utc(time_min).isoformat()
        elif time_max is not None:
            params["timeMax"] = _as_utc(time_max).isoformat()
        calendar = calendar_id or self.default_calendar
        instances = await self._collect(
            self._calendar_path(calendar, "events", event_id, "instances"),
            resource=Resource.EVENT,
            what="instance list",
            params=params,
            cancel=cancel,
        )
        return [{**instance, "calendarId": calendar} for instance in instances]

    async def rsvp(self, calendar_id: Optional[str], event_id: str, response: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        """Set the authenticated attendee's ``responseStatus`` and store the event."""

        if response not in RESPONSE_STATUSES:
            raise BadRequestError(
                f"response must be one of {', '.join(sorted(RESPONSE_STATUSES))}, got {response!r}",
                service=self.error_table.service,
                resource=Resource.EVENT,
            )
        event = await self.get_event(calendar_id, event_id, cancel=cancel)
        for attendee in event.get("attendees") or []:
            if isinstance(attendee, dict) and attendee.get("self"):
                attendee["responseStatus"] = response
                break
        return await self.update_event(calendar_id, event_id, event, cancel=cancel)

    # Calendars

    async def list_calendars(self, *, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        return await self._collect("/users/me/calendarList", resource=Resource.CALENDAR, what="calendar list", cancel=cancel)

    async def get_calendar(self, calendar_id: Optional[str] = None, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        """Return the calendar-list entry, which carries ``primary`` and ``accessRole``."""

        payload = await self._get_json(
            f"/users/me/calendarList/{_segment(calendar_id or self.default_calendar)}",
            resource=Resource.CALENDAR,
            cancel=cancel,
        )
        return self._expect_dict(payload, "calendar lookup")

    async def create_calendar(self, calendar: Mapping[str, Any], *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        created = self._expect_dict(
            await self._post_json("/calendars", resource=Resource.CALENDAR, cancel=cancel, json_body=dict(calendar)),
            "calendar creation",
        )
        calendar_id = created.get("id")
        if not isinstance(calendar_id, str):
            raise APIError("Calendar creation returned no calendar id.")
        return await self.get_calendar(calendar_id, cancel=cancel)

    async def update_calendar(self, calendar_id: str, calendar: Mapping[str, Any], *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        await self._request_json("PUT", self._calendar_path(calendar_id), resource=Resource.CALENDAR, cancel=cancel, json_body=dict(calendar))
        return await self.get_calendar(calendar_id, cancel=cancel)

    async def delete_calendar(self, calendar_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json("DELETE", self._calendar_path(calendar_id), resource=Resource.CALENDAR, cancel=cancel)

    async def clear_calendar(self, calendar_id: Optional[str] = None, *, cancel: Optional[CancelToken] = None) -> None:
        """Delete every event of a primary calendar."""

        await self._post_json(self._calendar_path(calendar_id, "clear"), resource=Resource.CALENDAR, cancel=cancel)

    # ACL rules

    async def list_acl(self, calendar_id: Optional[str], *, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        return await self._collect(self._calendar_path(calendar_id, "acl"), resource=Resource.ACL, what="ACL list", cancel=cancel)

    async def get_acl_rule(self, calendar_id: Optional[str], rule_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(self._calendar_path(calendar_id, "acl", rule_id), resource=Resource.ACL, cancel=cancel)
        return self._expect_dict(payload, "ACL lookup")

    async def insert_acl_rule(
        self,
        calendar_id: Optional[str],
        role: str,
        scope_type: str,
        scope_value: Optional[str] = None,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        payload = await self._post_json(
            self._calendar_path(calendar_id, "acl"),
            resource=Resource.ACL,
            cancel=cancel,
            json_body=_acl_body(role, scope_type, scope_value),
        )
        return self._expect_dict(payload, "ACL insert")

    async def update_acl_rule(
        self,
        calendar_id: Optional[str],
        rule_id: str,
        role: str,
        scope_type: str,
        scope_value: Optional[str] = None,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        payload = await self._request_json(
            "PUT",
            self._calendar_path(calendar_id, "acl", rule_id),
            resource=Resource.ACL,
            cancel=cancel,
            json_body=_acl_body(role, scope_type, scope_value),
        )
        return self._expect_dict(payload, "ACL update")

    async def delete_acl_rule(self, calendar_id: Optional[str], rule_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json("DELETE", self._calendar_path(calendar_id, "acl", rule_id), resource=Resource.ACL, cancel=cancel)

    # Free/busy

    async def query_freebusy(
        self,
        calendar_ids: Sequence[str],
        time_min: datetime,
        time_max: datetime,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Return busy periods keyed by calendar ID."""

        start, end = self._time_window(time_min, time_max, Resource.FREEBUSY)
        payload = await self._post_json(
            "/freeBusy",
            resource=Resource.FREEBUSY,
            cancel=cancel,
            json_body={
                "timeMin": start,
                "timeMax": end,
                "items": [{"id": calendar_id} for calendar_id in calendar_ids or [self.default_calendar]],
            },
        )
        calendars = self._expect_dict(payload, "free/busy query").get("calendars") or {}
        return {calendar_id: list(entry.get("busy") or []) for calendar_id, entry in calendars.items() if isinstance(entry, dict)}


def _acl_body(role: str, scope_type: str, scope_value: Optional[str]) -> Dict[str, Any]:
    scope: Dict[str, str] = {"type": scope_type}
    if scope_value:
        scope["value"] = scope_value
    return {"role": role, "scope": scope}


@dataclass(slots=True)
class CalendarAdapter:
    """Adapter used for connectivity verification."""

    service_id: str = "calendar"
    client: CalendarClient = field(default_factory=CalendarClient)

    async def verify(self) -> VerificationResult:
        try:
            calendars = await self.client.list_calendars()
        except REMOTE_ERRORS as exc:
            return failed_verification("Calendar API", exc)
        primary = next((entry.get("id") for entry in calendars if entry.get("primary")), None)
        details: Dict[str, object] = {"calendars": len(calendars)}
        if primary:
            details["primary"] = primary
        return VerificationResult(success=True, message="Calendar API reachable.", details=details)
