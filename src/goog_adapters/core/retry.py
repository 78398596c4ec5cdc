"""
Bounded retry execution with exponential backoff and cooperative cancellation.

:func:`run_with_retry` runs one logical request: it invokes the operation,
asks the supplied ``retryable`` predicate whether a failure is worth another
attempt, and waits ``base_delay * 2**i`` seconds between attempts. The wait
is the only suspension point and observes the caller's :class:`CancelToken`.

The loop itself is driven by :class:`tenacity.AsyncRetrying`; this module
only supplies the stop/wait/retry strategies and the cancellation-aware sleep
and translates tenacity's terminal states into the exceptions below.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from logging import LoggerAdapter
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .logging import get_logger, log_progress

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.1

Operation = Callable[[], Awaitable[T]]
RetryPredicate = Callable[[BaseException], bool]

_LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Immutable retry budget shared by every call a client makes.

    Attributes
    ----------
    max_attempts:
        Upper bound on operation invocations, including the first one.
    base_delay:
        Wait in seconds after the first failed attempt. Later waits double.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ValueError(f"max_attempts must be an integer >= 1, got {self.max_attempts!r}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay!r}")

    def delay_for(self, attempt_index: int) -> float:
        """Backoff applied after the zero-based ``attempt_index`` failed."""

        return self.base_delay * (2**attempt_index)


class CancelToken:
    """
    Cancellation signal shared by all attempts of one logical request.

    The token fires when :meth:`cancel` is called or when its optional
    deadline (a :func:`time.monotonic` timestamp) passes. It is observed only
    while the executor waits between attempts.
    """

    def __init__(self, *, deadline: Optional[float] = None) -> None:
        self._event = asyncio.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        return cls(deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def cancel(self) -> None:
        self._event.set()

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    async def wait(self, timeout: float) -> bool:
        """
        Suspend for up to ``timeout`` seconds.

        Returns ``True`` when the token fired before the timeout elapsed and
        ``False`` when the full delay passed without cancellation.
        """

        if self.cancelled:
            return True
        remaining = self.remaining()
        budget = timeout if remaining is None else min(timeout, remaining)
        try:
            await asyncio.wait_for(self._event.wait(), timeout=budget)
        except TimeoutError:
            # A wait shortened by the deadline ends exactly when the token expires.
            return remaining is not None and remaining <= timeout
        return True


class RetryExecutionError(RuntimeError):
    """Base class for terminal outcomes produced by the executor itself."""

    def __init__(self, message: str, *, attempts: int, last_error: Optional[BaseException]) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error

    @property
    def kind(self):
        """Error kind of the last classified failure, when it has one."""

        return getattr(self.last_error, "kind", None)


class RetriesExhaustedError(RetryExecutionError):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"max retries ({attempts}) exceeded: {last_error}", attempts=attempts, last_error=last_error)


class RetryCancelledError(RetryExecutionError):
    """The cancellation token fired before the next attempt could start."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None) -> None:
        message = "cancelled during retry"
        if last_error is not None:
            message = f"{message} after {attempts} attempt(s): {last_error}"
        super().__init__(message, attempts=attempts, last_error=last_error)


class _Cancelled(Exception):
    """Raised from the backoff sleep to break out of the tenacity loop."""


async def run_with_retry(
    operation: Operation[T],
    *,
    policy: RetryPolicy,
    retryable: RetryPredicate,
    cancel: Optional[CancelToken] = None,
    logger: Optional[LoggerAdapter] = None,
) -> T:
    """
    Execute ``operation`` under ``policy``.

    Parameters
    ----------
    operation:
        Zero-argument coroutine function performing one remote call.
    policy:
        Attempt budget and base delay.
    retryable:
        Predicate deciding whether a raised error deserves another attempt.
    cancel:
        Optional token observed during backoff waits.
    logger:
        Logger used for retry diagnostics. Defaults to this module's logger.

    Raises
    ------
    RetriesExhaustedError
        Every one of ``policy.max_attempts`` attempts failed retryably.
    RetryCancelledError
        ``cancel`` fired before or during a backoff wait.
    Exception
        Any non-retryable error raised by ``operation``, unchanged.
    """

    log = logger or _LOGGER
    token = cancel or CancelToken()
    if token.cancelled:
        raise RetryCancelledError(0)

    state: dict[str, object] = {"attempts": 0, "last_error": None}

    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        state["attempts"] = retry_state.attempt_number
        state["last_error"] = error
        log_progress(
            log,
            "Retryable failure, backing off",
            phase="retry",
            status="backoff",
            level=logging.WARNING,
            extra={
                "attempt": retry_state.attempt_number,
                "max_attempts": policy.max_attempts,
                "delay": retry_state.next_action.sleep if retry_state.next_action else None,
                "kind": getattr(getattr(error, "kind", None), "value", None),
                "error": str(error),
            },
        )

    async def _sleep(seconds: float) -> None:
        if await token.wait(seconds):
            raise _Cancelled

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.base_delay, exp_base=2, min=0),
        retry=retry_if_exception(retryable),
        before_sleep=_before_sleep,
        sleep=_sleep,
    )

    try:
        return await retrying(operation)
    except _Cancelled:
        attempts = int(state["attempts"])  # type: ignore[arg-type]
        last_error = state["last_error"]
        log_progress(
            log,
            "Retry loop cancelled during backoff",
            phase="retry",
            status="cancelled",
            level=logging.WARNING,
            extra={"attempt": attempts},
        )
        raise RetryCancelledError(attempts, last_error) from last_error  # type: ignore[arg-type]
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        log_progress(
            log,
            "Retries exhausted",
            phase="retry",
            status="exhausted",
            level=logging.ERROR,
            extra={"attempt": policy.max_attempts, "error": str(last_error)},
        )
        raise RetriesExhaustedError(policy.max_attempts, last_error) from last_error  # type: ignore[arg-type]
