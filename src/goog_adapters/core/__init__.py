"""
Core infrastructure shared by every service adapter.

This package depends only on the standard library and tenacity. It exposes
the retry executor, its cancellation token and the logging helpers.
"""

from .logging import configure_logging, get_logger, log_progress
from .retry import (
    CancelToken,
    RetriesExhaustedError,
    RetryCancelledError,
    RetryExecutionError,
    RetryPolicy,
    run_with_retry,
)

__all__ = [
    "CancelToken",
    "RetriesExhaustedError",
    "RetryCancelledError",
    "RetryExecutionError",
    "RetryPolicy",
    "run_with_retry",
    "configure_logging",
    "get_logger",
    "log_progress",
]
