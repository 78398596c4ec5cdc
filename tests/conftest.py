from __future__ import annotations

from typing import Any, Callable, List, Tuple, Union

import httpx
import pytest
from typer.testing import CliRunner

from goog_adapters.core.retry import RetryPolicy

Scripted = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


def _google_error(code: int, message: str) -> dict:
    return {"error": {"code": code, "message": message, "errors": [{"message": message, "reason": "backendError"}]}}


@pytest.fixture()
def google_error():
    return _google_error


@pytest.fixture()
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0)


@pytest.fixture()
def scripted_transport():
    """
    Build a MockTransport that answers requests from a script.

    Each entry is either ``(status, json_body)`` or a handler callable. The
    last entry keeps answering once the script runs out.
    """

    def build(*script: Scripted) -> tuple[httpx.MockTransport, List[httpx.Request]]:
        requests: List[httpx.Request] = []
        pending = list(script)

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            entry = pending.pop(0) if len(pending) > 1 else pending[0]
            if callable(entry):
                return entry(request)
            status, body = entry
            if body is None:
                return httpx.Response(status)
            return httpx.Response(status, json=body)

        return httpx.MockTransport(handler), requests

    return build


@pytest.fixture()
def cli_runner() -> CliRunner:
    return CliRunner()
