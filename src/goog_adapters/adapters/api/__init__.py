"""
HTTP clients and adapters for the Google services behind the domain API.

Each submodule exposes three things:

* an ``ErrorTable`` constant mapping the service's status codes to error kinds,
* a ``Client`` class whose coroutines each perform one retried remote call,
* an ``Adapter`` class providing a ``verify`` connectivity check.
"""

from .base import REMOTE_ERRORS, BaseAPIClient, failed_verification
from .calendar import CALENDAR_ERRORS, CalendarAdapter, CalendarClient
from .gmail import GMAIL_ERRORS, GmailAdapter, GmailClient
from .people import PEOPLE_ERRORS, PeopleAdapter, PeopleClient
from .tasks import TASKS_ERRORS, TasksAdapter, TasksClient

__all__ = [
    "REMOTE_ERRORS",
    "BaseAPIClient",
    "failed_verification",
    "CALENDAR_ERRORS",
    "CalendarAdapter",
    "CalendarClient",
    "GMAIL_ERRORS",
    "GmailAdapter",
    "GmailClient",
    "PEOPLE_ERRORS",
    "PeopleAdapter",
    "PeopleClient",
    "TASKS_ERRORS",
    "TasksAdapter",
    "TasksClient",
]
