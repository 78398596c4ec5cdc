"""
Base protocols for Google service adapters.

Adapters are intentionally narrow in scope: a client exposes one coroutine per
remote operation and an adapter wraps the client with a cheap ``verify``
check. Retry and error classification live in the shared API base class so
that every service fails the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol


class AdapterError(RuntimeError):
    """Raised when an adapter encounters a non-recoverable error."""


@dataclass(slots=True)
class VerificationResult:
    """
    Structured response returned by adapter verification routines.

    Attributes
    ----------
    success:
        Indicates whether the verification succeeded.
    message:
        Human-readable summary.
    details:
        Optional structured metadata, e.g. the error kind of a failure.
    """

    success: bool
    message: str
    details: Optional[Mapping[str, object]] = None


class ServiceAdapter(Protocol):
    """Protocol implemented by all service adapters."""

    async def verify(self) -> VerificationResult:
        """Perform a lightweight authenticated read against the service."""

    @property
    def service_id(self) -> str:
        """Short service identifier, e.g. ``calendar``."""
