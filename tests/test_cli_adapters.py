from __future__ import annotations

import pytest

from goog_adapters.adapters.api import CalendarAdapter, GmailAdapter, PeopleAdapter, TasksAdapter
from goog_adapters.cli.adapters import SERVICE_DESCRIPTIONS, resolve_adapter
from goog_adapters.config import RetrySettings, Settings
from goog_adapters.core.retry import RetryPolicy


def _settings() -> Settings:
    return Settings(access_token="token-xyz", timeout=5.0, retry=RetrySettings(max_attempts=4, base_delay=0.5), mail_user_id="ops@example.com")


@pytest.mark.parametrize(
    ("service_id", "adapter_cls"),
    [("calendar", CalendarAdapter), ("gmail", GmailAdapter), ("tasks", TasksAdapter), ("people", PeopleAdapter)],
)
def test_resolve_adapter_applies_settings(service_id, adapter_cls):
    adapter = resolve_adapter(service_id, _settings())

    assert isinstance(adapter, adapter_cls)
    assert adapter.service_id == service_id
    assert adapter.client.access_token == "token-xyz"
    assert adapter.client.timeout == 5.0
    assert adapter.client.retry_policy == RetryPolicy(max_attempts=4, base_delay=0.5)


def test_resolve_adapter_passes_mail_user():
    adapter = resolve_adapter("gmail", _settings())

    assert adapter.client.user_id == "ops@example.com"


def test_resolve_adapter_unknown_service():
    assert resolve_adapter("drive", _settings()) is None


def test_every_described_service_resolves():
    assert all(resolve_adapter(service_id, Settings()) is not None for service_id in SERVICE_DESCRIPTIONS)


def test_resolve_adapter_passes_calendar_and_paging_defaults():
    settings = Settings(default_calendar="team@example.com", page_size=50)

    calendar = resolve_adapter("calendar", settings)
    gmail = resolve_adapter("gmail", settings)

    assert calendar.client.default_calendar == "team@example.com"
    assert gmail.client.page_size == 50
