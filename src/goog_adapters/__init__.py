"""
Retrying, error-classifying adapters for Google Calendar, Gmail, Tasks and People.

Import the clients from :mod:`goog_adapters.adapters.api`, the error kinds from
:mod:`goog_adapters.adapters.errors` and the retry primitives from
:mod:`goog_adapters.core.retry`.
"""

from .adapters.api import CalendarClient, GmailClient, PeopleClient, TasksClient
from .adapters.errors import ErrorKind, Resource, ServiceError
from .core.retry import CancelToken, RetriesExhaustedError, RetryCancelledError, RetryPolicy, run_with_retry

__all__ = [
    "CalendarClient",
    "GmailClient",
    "PeopleClient",
    "TasksClient",
    "ErrorKind",
    "Resource",
    "ServiceError",
    "CancelToken",
    "RetriesExhaustedError",
    "RetryCancelledError",
    "RetryPolicy",
    "run_with_retry",
]
