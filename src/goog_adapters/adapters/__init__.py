"""
Adapters for the Google services backing the events, messages, contacts and
tasks domain API.

Clients live in :mod:`goog_adapters.adapters.api`; the error vocabulary they
share lives in :mod:`goog_adapters.adapters.errors`.
"""

from .base import AdapterError, ServiceAdapter, VerificationResult
from .errors import (
    APIError,
    BadRequestError,
    ErrorKind,
    ErrorTable,
    InvalidTimeRangeError,
    NotFoundError,
    RateLimitedError,
    RemoteAPIError,
    Resource,
    ServiceError,
    StatusError,
    TemporaryError,
    UnclassifiedError,
    error_kind,
    is_retryable,
)

__all__ = [
    "AdapterError",
    "ServiceAdapter",
    "VerificationResult",
    "APIError",
    "BadRequestError",
    "ErrorKind",
    "ErrorTable",
    "InvalidTimeRangeError",
    "NotFoundError",
    "RateLimitedError",
    "RemoteAPIError",
    "Resource",
    "ServiceError",
    "StatusError",
    "TemporaryError",
    "UnclassifiedError",
    "error_kind",
    "is_retryable",
]
