"""
Domain error kinds and the classifier that maps remote failures onto them.

A remote failure is recognised through a narrow capability check: anything
exposing ``status_code`` and ``message`` (see :class:`StatusError`) is
classified, as is an :class:`httpx.HTTPStatusError`, which is viewed through
:class:`RemoteAPIError`. Anything else passes through unchanged.

Each service owns an :class:`ErrorTable`. The tables share one status map and
differ only in their service name and, for the calendar, the phrases that turn
a bad request into :class:`InvalidTimeRangeError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

import httpx

from .base import AdapterError


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    RATE_LIMITED = "rate_limited"
    TEMPORARY = "temporary"
    UNCLASSIFIED = "unclassified"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.TEMPORARY})


class Resource(str, Enum):
    """Resource-type tags used to tell one "not found" from another."""

    EVENT = "event"
    CALENDAR = "calendar"
    ACL = "acl"
    FREEBUSY = "freebusy"
    MESSAGE = "message"
    DRAFT = "draft"
    THREAD = "thread"
    LABEL = "label"
    TASK = "task"
    TASK_LIST = "task list"
    CONTACT = "contact"
    CONTACT_GROUP = "contact group"

    @property
    def label(self) -> str:
        return _RESOURCE_LABELS.get(self, self.value)


_RESOURCE_LABELS = {
    Resource.ACL: "ACL rule",
    Resource.FREEBUSY: "free/busy",
}


@runtime_checkable
class StatusError(Protocol):
    """Capability of a structured remote failure: a status code and a message."""

    status_code: int
    message: str


class APIError(AdapterError):
    """Raised when an HTTP API call fails."""


class RemoteAPIError(APIError):
    """Raw structured failure returned by a Google API."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message

    @classmethod
    def from_response(cls, response: httpx.Response) -> "RemoteAPIError":
        return cls(response.status_code, _extract_error_message(response))


def _extract_error_message(response: httpx.Response) -> str:
    try:
        payload: Any = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        elif isinstance(error, str) and error:
            description = payload.get("error_description")
            return f"{error}: {description}" if isinstance(description, str) and description else error
    text = response.text.strip()
    return text or response.reason_phrase


def status_view(exc: BaseException) -> Optional[StatusError]:
    """Return ``exc`` as a :class:`StatusError`, or ``None`` when it carries no status."""

    if isinstance(exc, StatusError) and isinstance(exc.status_code, int):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        return RemoteAPIError.from_response(exc.response)
    return None


class ServiceError(APIError):
    """A remote failure mapped onto a domain :class:`ErrorKind`."""

    kind: ErrorKind = ErrorKind.UNCLASSIFIED

    def __init__(
        self,
        message: str,
        *,
        service: Optional[str] = None,
        resource: Optional[Resource] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.service = service
        self.resource = resource
        self.status_code = status_code
        super().__init__(self.describe())

    def describe(self) -> str:
        return f"{self.kind.value.replace('_', ' ')}: {self.message}"

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def matches(self, kind: ErrorKind, resource: Optional[Resource] = None) -> bool:
        """Kind check, optionally narrowed to one resource type."""

        if self.kind is not kind:
            return False
        return resource is None or self.resource is resource


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND

    def describe(self) -> str:
        label = self.resource.label if self.resource else "resource"
        return f"{label} not found: {self.message}" if self.message else f"{label} not found"


class BadRequestError(ServiceError):
    kind = ErrorKind.BAD_REQUEST


class InvalidTimeRangeError(BadRequestError):
    """Calendar refinement of a bad request: the requested window is invalid."""

    def describe(self) -> str:
        return f"invalid time range: {self.message}"


class RateLimitedError(ServiceError):
    kind = ErrorKind.RATE_LIMITED

    def describe(self) -> str:
        return f"rate limited: {self.message}"


class TemporaryError(ServiceError):
    kind = ErrorKind.TEMPORARY

    def describe(self) -> str:
        return f"temporary error: {self.message}"


class UnclassifiedError(ServiceError):
    kind = ErrorKind.UNCLASSIFIED

    def describe(self) -> str:
        return f"{self.service or 'remote'} API error (status {self.status_code}): {self.message}"


_KIND_ERRORS: Mapping[ErrorKind, type[ServiceError]] = MappingProxyType(
    {
        ErrorKind.NOT_FOUND: NotFoundError,
        ErrorKind.BAD_REQUEST: BadRequestError,
        ErrorKind.RATE_LIMITED: RateLimitedError,
        ErrorKind.TEMPORARY: TemporaryError,
        ErrorKind.UNCLASSIFIED: UnclassifiedError,
    }
)

DEFAULT_STATUS_KINDS: Mapping[int, ErrorKind] = MappingProxyType(
    {
        404: ErrorKind.NOT_FOUND,
        400: ErrorKind.BAD_REQUEST,
        429: ErrorKind.RATE_LIMITED,
        500: ErrorKind.TEMPORARY,
        502: ErrorKind.TEMPORARY,
        503: ErrorKind.TEMPORARY,
        504: ErrorKind.TEMPORARY,
    }
)


@dataclass(frozen=True, slots=True)
class ErrorTable:
    """
    Status-code to :class:`ErrorKind` mapping for one service.

    Attributes
    ----------
    service:
        Service name used in unclassified error messages.
    statuses:
        Status code to kind lookup; unknown codes are unclassified.
    time_range_phrases:
        Exact upstream messages that mark a 400 as an invalid time range.
    """

    service: str
    statuses: Mapping[int, ErrorKind] = field(default_factory=lambda: DEFAULT_STATUS_KINDS)
    time_range_phrases: frozenset[str] = frozenset()

    def kind_for(self, status_code: int) -> ErrorKind:
        return self.statuses.get(status_code, ErrorKind.UNCLASSIFIED)

    def classify(self, exc: BaseException, resource: Resource) -> BaseException:
        """
        Map ``exc`` onto a :class:`ServiceError` for ``resource``.

        Errors that are already classified, or that carry no status code,
        are returned unchanged. The caller is expected to raise the result
        ``from exc``.
        """

        if isinstance(exc, ServiceError):
            return exc
        view = status_view(exc)
        if view is None:
            return exc
        kind = self.kind_for(view.status_code)
        error_cls = _KIND_ERRORS[kind]
        if kind is ErrorKind.BAD_REQUEST and view.message.strip() in self.time_range_phrases:
            error_cls = InvalidTimeRangeError
        return error_cls(view.message, service=self.service, resource=resource, status_code=view.status_code)


def is_retryable(exc: BaseException) -> bool:
    """
    Retry decision for the executor.

    Classified errors answer from their kind. Unclassified transport failures
    are retried only for the transient httpx timeout and network errors.
    """

    if isinstance(exc, ServiceError):
        return exc.retryable
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError))


def error_kind(exc: BaseException) -> Optional[ErrorKind]:
    """Kind of a classified error, or of the last error wrapped by the executor."""

    kind = getattr(exc, "kind", None)
    return kind if isinstance(kind, ErrorKind) else None
