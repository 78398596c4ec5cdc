"""
Shared HTTP plumbing for the Google service clients.

Every public client method describes one remote call as a coroutine and hands
it to :meth:`BaseAPIClient._call`, which classifies failures through the
service's :class:`~goog_adapters.adapters.errors.ErrorTable` and runs the call
under the client's :class:`~goog_adapters.core.retry.RetryPolicy`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Any, Awaitable, Callable, ClassVar, Mapping, MutableMapping, Optional, TypeVar

import httpx

from ...core.logging import get_logger, log_progress
from ...core.retry import CancelToken, RetryExecutionError, RetryPolicy, run_with_retry
from ..base import VerificationResult
from ..errors import APIError, ErrorTable, RemoteAPIError, Resource, error_kind, is_retryable

DEFAULT_TIMEOUT = 15.0

T = TypeVar("T")


@dataclass(slots=True)
class BaseAPIClient:
    """
    Base asynchronous HTTP client with retry support.

    Parameters
    ----------
    base_url:
        Root URL for the upstream service.
    access_token:
        OAuth2 bearer token issued elsewhere.
    timeout:
        Request timeout in seconds.
    retry_policy:
        Attempt budget and base delay applied to every operation.
    default_headers:
        Headers automatically attached to every request.
    transport:
        Optional httpx transport, used by tests to stub the service.
    """

    base_url: str
    access_token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    default_headers: MutableMapping[str, str] = field(default_factory=dict)
    transport: Optional[httpx.AsyncBaseTransport] = None
    logger: LoggerAdapter = field(init=False, repr=False)

    error_table: ClassVar[ErrorTable] = ErrorTable(service="google")

    def __post_init__(self) -> None:
        self.logger = get_logger(
            f"{self.__class__.__module__}.{self.__class__.__name__}",
            extra={"service": self.error_table.service},
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", **self.default_headers}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            follow_redirects=True,
            transport=self.transport,
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteAPIError.from_response(exc.response) from exc

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        log_progress(self.logger, "HTTP request", level=logging.DEBUG, extra={"method": method, "url": url})
        async with self._build_client() as client:
            response = await client.request(method, url, **kwargs)
        log_progress(
            self.logger,
            "HTTP response",
            level=logging.DEBUG,
            extra={"method": method, "url": url, "status_code": response.status_code},
        )
        self._raise_for_status(response)
        return response

    async def _call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        resource: Resource,
        cancel: Optional[CancelToken] = None,
    ) -> T:
        table = self.error_table

        async def attempt() -> T:
            try:
                return await operation()
            except Exception as exc:
                classified = table.classify(exc, resource)
                if classified is exc:
                    raise
                raise classified from exc

        return await run_with_retry(
            attempt,
            policy=self.retry_policy,
            retryable=is_retryable,
            cancel=cancel,
            logger=self.logger,
        )

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        resource: Resource,
        cancel: Optional[CancelToken] = None,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """Perform one retried request and decode its JSON body (``None`` when empty)."""

        request_kwargs: dict[str, Any] = {}
        if params:
            request_kwargs["params"] = {key: value for key, value in params.items() if value is not None}
        if json_body is not None:
            request_kwargs["json"] = json_body

        async def operation() -> Any:
            response = await self._send(method, url, **request_kwargs)
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise APIError(f"Failed to decode JSON from {response.url}: {exc}") from exc

        return await self._call(operation, resource=resource, cancel=cancel)

    async def _get_json(self, url: str, *, resource: Resource, cancel: Optional[CancelToken] = None, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self._request_json("GET", url, resource=resource, cancel=cancel, params=params)

    async def _post_json(
        self,
        url: str,
        *,
        resource: Resource,
        cancel: Optional[CancelToken] = None,
        json_body: Optional[Any] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        return await self._request_json("POST", url, resource=resource, cancel=cancel, params=params, json_body=json_body)

    def _expect_dict(self, payload: Any, what: str) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise APIError(f"Unexpected payload from {self.error_table.service} {what}.")
        return payload


REMOTE_ERRORS = (APIError, RetryExecutionError, httpx.HTTPError)


def failed_verification(label: str, exc: BaseException) -> VerificationResult:
    kind = error_kind(exc)
    details: dict[str, object] = {"error": type(exc).__name__}
    if kind is not None:
        details["kind"] = kind.value
    return VerificationResult(success=False, message=f"{label} verification failed: {exc}", details=details)
