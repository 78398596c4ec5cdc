from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from goog_adapters.adapters.api.calendar import CalendarAdapter, CalendarClient
from goog_adapters.adapters.errors import (
    BadRequestError,
    ErrorKind,
    InvalidTimeRangeError,
    NotFoundError,
    RemoteAPIError,
    Resource,
    UnclassifiedError,
)
from goog_adapters.core.retry import RetriesExhaustedError

START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
END = START + timedelta(days=1)


def _client(transport, policy) -> CalendarClient:
    return CalendarClient(access_token="token-123", retry_policy=policy, transport=transport)


@pytest.mark.asyncio
async def test_list_events_follows_pages_and_tags_calendar(scripted_transport, fast_policy):
    transport, requests = scripted_transport(
        (200, {"items": [{"id": "evt-1", "summary": "Standup"}], "nextPageToken": "page-2"}),
        (200, {"items": [{"id": "evt-2", "summary": "Review"}]}),
    )

    events = await _client(transport, fast_policy).list_events("primary", START, END)

    assert [event["id"] for event in events] == ["evt-1", "evt-2"]
    assert all(event["calendarId"] == "primary" for event in events)
    assert len(requests) == 2
    first, second = requests
    assert first.url.path == "/calendar/v3/calendars/primary/events"
    assert first.url.params["singleEvents"] == "true"
    assert first.url.params["orderBy"] == "startTime"
    assert first.url.params["timeMin"] == START.isoformat()
    assert "pageToken" not in first.url.params
    assert second.url.params["pageToken"] == "page-2"
    assert first.headers["Authorization"] == "Bearer token-123"


@pytest.mark.asyncio
async def test_list_events_rejects_inverted_range_without_calling(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"items": []}))

    with pytest.raises(InvalidTimeRangeError) as caught:
        await _client(transport, fast_policy).list_events("primary", END, START)

    assert caught.value.kind is ErrorKind.BAD_REQUEST
    assert requests == []


@pytest.mark.asyncio
async def test_server_time_range_rejection_is_refined(scripted_transport, fast_policy, google_error):
    transport, requests = scripted_transport((400, google_error(400, "The requested time range is invalid")))

    with pytest.raises(InvalidTimeRangeError) as caught:
        await _client(transport, fast_policy).list_events("primary", START, END)

    assert isinstance(caught.value, BadRequestError)
    assert caught.value.service == "calendar"
    assert isinstance(caught.value.__cause__, RemoteAPIError)
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_get_event_not_found_is_not_retried(scripted_transport, fast_policy, google_error):
    transport, requests = scripted_transport((404, google_error(404, "Not Found")))

    with pytest.raises(NotFoundError) as caught:
        await _client(transport, fast_policy).get_event("primary", "missing")

    assert caught.value.matches(ErrorKind.NOT_FOUND, Resource.EVENT)
    assert str(caught.value) == "event not found: Not Found"
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_acl_not_found_names_the_rule(scripted_transport, fast_policy, google_error):
    transport, _ = scripted_transport((404, google_error(404, "Not Found")))

    with pytest.raises(NotFoundError) as caught:
        await _client(transport, fast_policy).delete_acl_rule("primary", "user:someone@example.com")

    assert caught.value.resource is Resource.ACL
    assert str(caught.value).startswith("ACL rule not found")


@pytest.mark.asyncio
async def test_temporary_failures_are_retried_until_success(scripted_transport, fast_policy, google_error):
    transport, requests = scripted_transport(
        (503, google_error(503, "Backend Error")),
        (500, google_error(500, "Backend Error")),
        (200, {"id": "evt-1", "summary": "Planning"}),
    )

    event = await _client(transport, fast_policy).get_event("primary", "evt-1")

    assert event["summary"] == "Planning"
    assert len(requests) == 3


@pytest.mark.asyncio
async def test_rate_limit_exhausts_retry_budget(scripted_transport, fast_policy, google_error):
    transport, requests = scripted_transport((429, google_error(429, "Rate Limit Exceeded")))

    with pytest.raises(RetriesExhaustedError) as caught:
        await _client(transport, fast_policy).list_calendars()

    assert len(requests) == fast_policy.max_attempts
    assert caught.value.kind is ErrorKind.RATE_LIMITED
    assert "Rate Limit Exceeded" in str(caught.value)


@pytest.mark.asyncio
async def test_forbidden_is_unclassified(scripted_transport, fast_policy, google_error):
    transport, requests = scripted_transport((403, google_error(403, "Insufficient Permission")))

    with pytest.raises(UnclassifiedError) as caught:
        await _client(transport, fast_policy).get_calendar("primary")

    assert caught.value.status_code == 403
    assert "calendar API error (status 403)" in str(caught.value)
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_connection_errors_are_retried(scripted_transport, fast_policy):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport, requests = scripted_transport(refuse, (200, {"items": [{"id": "primary", "primary": True}]}))

    calendars = await _client(transport, fast_policy).list_calendars()

    assert calendars == [{"id": "primary", "primary": True}]
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_create_and_update_event_send_body(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"id": "evt-9", "summary": "Lunch"}))
    client = _client(transport, fast_policy)

    await client.create_event("team@example.com", {"summary": "Lunch"})
    await client.update_event("team@example.com", "evt-9", {"summary": "Lunch", "location": "Cafe"})

    create, update = requests
    assert create.method == "POST"
    assert json.loads(create.content) == {"summary": "Lunch"}
    assert update.method == "PUT"
    assert update.url.path.endswith("/events/evt-9")
    assert json.loads(update.content)["location"] == "Cafe"


@pytest.mark.asyncio
async def test_delete_event_accepts_empty_response(scripted_transport, fast_policy):
    transport, requests = scripted_transport((204, None))

    assert await _client(transport, fast_policy).delete_event("primary", "evt-1") is None
    assert requests[0].method == "DELETE"


@pytest.mark.asyncio
async def test_insert_acl_rule_builds_scope(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"id": "user:a@example.com", "role": "reader"}))

    rule = await _client(transport, fast_policy).insert_acl_rule("primary", "reader", "user", "a@example.com")

    assert rule["role"] == "reader"
    assert json.loads(requests[0].content) == {"role": "reader", "scope": {"type": "user", "value": "a@example.com"}}


@pytest.mark.asyncio
async def test_query_freebusy_returns_busy_periods(scripted_transport, fast_policy):
    busy = [{"start": "2024-03-01T10:00:00Z", "end": "2024-03-01T11:00:00Z"}]
    transport, requests = scripted_transport((200, {"calendars": {"primary": {"busy": busy}, "other": {"busy": []}}}))

    result = await _client(transport, fast_policy).query_freebusy(["primary", "other"], START, END)

    assert result == {"primary": busy, "other": []}
    assert json.loads(requests[0].content)["items"] == [{"id": "primary"}, {"id": "other"}]


@pytest.mark.asyncio
async def test_query_freebusy_rejects_empty_range(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {}))

    with pytest.raises(InvalidTimeRangeError):
        await _client(transport, fast_policy).query_freebusy(["primary"], START, START)

    assert requests == []


@pytest.mark.asyncio
async def test_adapter_verify_reports_primary_calendar(scripted_transport, fast_policy):
    transport, _ = scripted_transport((200, {"items": [{"id": "me@example.com", "primary": True}, {"id": "holidays"}]}))

    result = await CalendarAdapter(client=_client(transport, fast_policy)).verify()

    assert result.success
    assert result.details == {"calendars": 2, "primary": "me@example.com"}


@pytest.mark.asyncio
async def test_adapter_verify_reports_error_kind(scripted_transport, fast_policy, google_error):
    transport, _ = scripted_transport((503, google_error(503, "Backend Error")))

    result = await CalendarAdapter(client=_client(transport, fast_policy)).verify()

    assert not result.success
    assert result.details == {"error": "RetriesExhaustedError", "kind": "temporary"}
    assert "Backend Error" in result.message


@pytest.mark.asyncio
async def test_default_calendar_fills_missing_calendar_id(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"items": [{"id": "evt-1"}]}))
    client = CalendarClient(access_token="token-123", retry_policy=fast_policy, transport=transport, default_calendar="team@example.com")

    events = await client.list_events(None, START, END)
    await client.get_event(None, "evt-1")

    assert events[0]["calendarId"] == "team@example.com"
    assert [request.url.path for request in requests] == [
        "/calendar/v3/calendars/team@example.com/events",
        "/calendar/v3/calendars/team@example.com/events/evt-1",
    ]


@pytest.mark.asyncio
async def test_naive_datetimes_are_sent_as_utc(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"items": []}))
    naive_start = datetime(2024, 3, 1, 9, 0)

    await _client(transport, fast_policy).list_events("primary", naive_start, END)

    assert requests[0].url.params["timeMin"] == "2024-03-01T09:00:00+00:00"
    assert requests[0].url.params["timeMax"] == END.isoformat()


@pytest.mark.asyncio
async def test_naive_range_bounds_are_compared_as_utc(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {}))

    with pytest.raises(InvalidTimeRangeError) as caught:
        await _client(transport, fast_policy).query_freebusy(["primary"], END.replace(tzinfo=None), START)

    assert caught.value.resource is Resource.FREEBUSY
    assert requests == []


@pytest.mark.asyncio
async def test_move_event_tags_destination(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"id": "evt-1", "summary": "Offsite"}))

    moved = await _client(transport, fast_policy).move_event("primary", "evt-1", "team@example.com")

    assert moved["calendarId"] == "team@example.com"
    assert requests[0].method == "POST"
    assert requests[0].url.path == "/calendar/v3/calendars/primary/events/evt-1/move"
    assert requests[0].url.params["destination"] == "team@example.com"


@pytest.mark.asyncio
async def test_quick_add_sends_text(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"id": "evt-7", "summary": "Lunch"}))

    event = await _client(transport, fast_policy).quick_add(None, "Lunch tomorrow 1pm")

    assert event == {"id": "evt-7", "summary": "Lunch", "calendarId": "primary"}
    assert requests[0].url.path == "/calendar/v3/calendars/primary/events/quickAdd"
    assert requests[0].url.params["text"] == "Lunch tomorrow 1pm"


@pytest.mark.asyncio
async def test_list_instances_paginates_with_optional_bounds(scripted_transport, fast_policy):
    transport, requests = scripted_transport(
        (200, {"items": [{"id": "evt-1_20240301"}], "nextPageToken": "next"}),
        (200, {"items": [{"id": "evt-1_20240308"}]}),
    )

    instances = await _client(transport, fast_policy).list_instances("primary", "evt-1", time_min=datetime(2024, 3, 1))

    assert [instance["id"] for instance in instances] == ["evt-1_20240301", "evt-1_20240308"]
    assert requests[0].url.path == "/calendar/v3/calendars/primary/events/evt-1/instances"
    assert requests[0].url.params["timeMin"] == "2024-03-01T00:00:00+00:00"
    assert "timeMax" not in requests[0].url.params
    assert requests[1].url.params["pageToken"] == "next"


@pytest.mark.asyncio
async def test_list_instances_rejects_inverted_bounds(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"items": []}))

    with pytest.raises(InvalidTimeRangeError):
        await _client(transport, fast_policy).list_instances("primary", "evt-1", time_min=END, time_max=START)

    assert requests == []


@pytest.mark.asyncio
async def test_rsvp_updates_own_attendee_entry(scripted_transport, fast_policy):
    event = {
        "id": "evt-1",
        "attendees": [
            {"email": "host@example.com", "responseStatus": "accepted"},
            {"email": "me@example.com", "self": True, "responseStatus": "needsAction"},
        ],
    }
    transport, requests = scripted_transport((200, event), lambda request: httpx.Response(200, content=request.content))

    updated = await _client(transport, fast_policy).rsvp("primary", "evt-1", "tentative")

    get, put = requests
    assert get.method == "GET"
    assert put.method == "PUT"
    statuses = {attendee["email"]: attendee["responseStatus"] for attendee in json.loads(put.content)["attendees"]}
    assert statuses == {"host@example.com": "accepted", "me@example.com": "tentative"}
    assert updated["attendees"][1]["responseStatus"] == "tentative"


@pytest.mark.asyncio
async def test_rsvp_rejects_unknown_response(scripted_transport, fast_policy):
    transport, requests = scripted_transport((200, {"id": "evt-1"}))

    with pytest.raises(BadRequestError) as caught:
        await _client(transport, fast_policy).rsvp("primary", "evt-1", "maybe")

    assert caught.value.resource is Resource.EVENT
    assert "maybe" in str(caught.value)
    assert requests == []


@pytest.mark.asyncio
async def test_create_calendar_returns_calendar_list_entry(scripted_transport, fast_policy):
    transport, requests = scripted_transport(
        (200, {"id": "cal-1", "summary": "Projects"}),
        (200, {"id": "cal-1", "summary": "Projects", "accessRole": "owner"}),
    )

    calendar = await _client(transport, fast_policy).create_calendar({"summary": "Projects"})

    assert calendar["accessRole"] == "owner"
    create, lookup = requests
    assert create.method == "POST"
    assert create.url.path == "/calendar/v3/calendars"
    assert json.loads(create.content) == {"summary": "Projects"}
    assert lookup.url.path == "/calendar/v3/users/me/calendarList/cal-1"


@pytest.mark.asyncio
async def test_update_delete_and_clear_calendar(scripted_transport, fast_policy):
    transport, requests = scripted_transport(
        (200, {"id": "cal-1", "summary": "Renamed"}),
        (200, {"id": "cal-1", "summary": "Renamed", "accessRole": "owner"}),
        (204, None),
    )
    client = _client(transport, fast_policy)

    updated = await client.update_calendar("cal-1", {"summary": "Renamed"})
    await client.delete_calendar("cal-1")
    await client.clear_calendar()

    assert updated["summary"] == "Renamed"
    assert [(request.method, request.url.path) for request in requests] == [
        ("PUT", "/calendar/v3/calendars/cal-1"),
        ("GET", "/calendar/v3/users/me/calendarList/cal-1"),
        ("DELETE", "/calendar/v3/calendars/cal-1"),
        ("POST", "/calendar/v3/calendars/primary/clear"),
    ]


@pytest.mark.asyncio
async def test_missing_calendar_is_tagged_as_calendar(scripted_transport, fast_policy, google_error):
    transport, requests = scripted_transport((404, google_error(404, "Not Found")))

    with pytest.raises(NotFoundError) as caught:
        await _client(transport, fast_policy).delete_calendar("gone")

    assert caught.value.matches(ErrorKind.NOT_FOUND, Resource.CALENDAR)
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_get_and_update_acl_rule(scripted_transport, fast_policy):
    transport, requests = scripted_transport(
        (200, {"id": "user:a@example.com", "role": "reader"}),
        (200, {"id": "user:a@example.com", "role": "writer"}),
    )
    client = _client(transport, fast_policy)

    rule = await client.get_acl_rule("primary", "user:a@example.com")
    updated = await client.update_acl_rule("primary", "user:a@example.com", "writer", "user", "a@example.com")

    assert rule["role"] == "reader"
    assert updated["role"] == "writer"
    get, put = requests
    assert get.method == "GET"
    assert put.method == "PUT"
    assert put.url.path == get.url.path
    assert json.loads(put.content) == {"role": "writer", "scope": {"type": "user", "value": "a@example.com"}}


@pytest.mark.asyncio
async def test_update_acl_rule_not_found_names_the_rule(scripted_transport, fast_policy, google_error):
    transport, _ = scripted_transport((404, google_error(404, "Not Found")))

    with pytest.raises(NotFoundError) as caught:
        await _client(transport, fast_policy).update_acl_rule("primary", "default", "reader", "default")

    assert caught.value.resource is Resource.ACL
