"""
Helpers for resolving service adapters in CLI contexts.
"""

from __future__ import annotations

from typing import Dict, Optional

from ..adapters import ServiceAdapter
from ..adapters.api import (
    CalendarAdapter,
    CalendarClient,
    GmailAdapter,
    GmailClient,
    PeopleAdapter,
    PeopleClient,
    TasksAdapter,
    TasksClient,
)
from ..config import Settings

SERVICE_DESCRIPTIONS: Dict[str, str] = {
    "calendar": "Google Calendar v3: events, calendars, ACL rules, free/busy.",
    "gmail": "Gmail v1: messages, drafts, labels, threads.",
    "tasks": "Google Tasks v1: task lists and tasks.",
    "people": "Google People v1: contacts and contact groups.",
}


def resolve_adapter(service_id: str, settings: Settings) -> Optional[ServiceAdapter]:
    """
    Build the adapter for ``service_id`` from resolved settings.
    """

    shared = {
        "access_token": settings.access_token,
        "timeout": settings.timeout,
        "retry_policy": settings.retry.to_policy(),
    }
    if service_id == "calendar":
        return CalendarAdapter(client=CalendarClient(default_calendar=settings.default_calendar, **shared))
    if service_id == "gmail":
        return GmailAdapter(client=GmailClient(user_id=settings.mail_user_id, page_size=settings.page_size, **shared))
    if service_id == "tasks":
        return TasksAdapter(client=TasksClient(**shared))
    if service_id == "people":
        return PeopleAdapter(client=PeopleClient(**shared))
    return None
