from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from goog_adapters.adapters.base import VerificationResult
from goog_adapters.cli.main import app


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GOOG_CONFIG", raising=False)
    monkeypatch.delenv("GOOG_ACCESS_TOKEN", raising=False)


def invoke(cli_runner: CliRunner, args: list[str]):
    return cli_runner.invoke(app, args)


def _stub_adapter(result: VerificationResult) -> SimpleNamespace:
    async def verify() -> VerificationResult:
        return result

    return SimpleNamespace(service_id="calendar", verify=verify)


def test_services_list(cli_runner):
    result = invoke(cli_runner, ["services", "list"])

    assert result.exit_code == 0
    for service_id in ("calendar", "gmail", "tasks", "people"):
        assert service_id in result.stdout


def test_services_verify_success(cli_runner):
    adapter = _stub_adapter(VerificationResult(success=True, message="Calendar API reachable.", details={"calendars": 3}))
    with patch("goog_adapters.cli.main.resolve_adapter", return_value=adapter):
        result = invoke(cli_runner, ["services", "verify", "calendar"])

    assert result.exit_code == 0
    assert "[OK] calendar: Calendar API reachable." in result.stdout
    assert "calendars: 3" in result.stdout


def test_services_verify_reports_failure(cli_runner):
    adapter = _stub_adapter(VerificationResult(success=False, message="Calendar API verification failed: rate limited: slow down", details={"kind": "rate_limited"}))
    with patch("goog_adapters.cli.main.resolve_adapter", return_value=adapter):
        result = invoke(cli_runner, ["services", "verify", "calendar"])

    assert result.exit_code == 1
    assert "[FAILED]" in result.stdout
    assert "kind: rate_limited" in result.stdout


def test_services_verify_unknown_service(cli_runner):
    result = invoke(cli_runner, ["services", "verify", "drive"])

    assert result.exit_code == 2


def test_config_show_redacts_token(cli_runner, monkeypatch):
    monkeypatch.setenv("GOOG_ACCESS_TOKEN", "very-secret")

    result = invoke(cli_runner, ["config", "show", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["access_token"] == "***"
    assert payload["retry"] == {"max_attempts": 3, "base_delay": 0.1}
    assert "very-secret" not in result.stdout


def test_config_show_text(cli_runner, tmp_path):
    config_dir = tmp_path / ".goog"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text('[retry]\nmax_attempts = 6\n[calendar]\ndefault_calendar = "team"\n', encoding="utf-8")

    result = invoke(cli_runner, ["config", "show"])

    assert result.exit_code == 0
    assert "Access token: missing" in result.stdout
    assert "max_attempts=6" in result.stdout
    assert "Default calendar: team" in result.stdout


def test_services_verify_rejects_invalid_retry_settings(cli_runner, tmp_path):
    config_dir = tmp_path / ".goog"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text("[retry]\nmax_attempts = 0\n", encoding="utf-8")

    result = invoke(cli_runner, ["services", "verify", "calendar"])

    assert result.exit_code == 2
    assert not isinstance(result.exception, ValueError)
    assert "Invalid configuration: max_attempts must be an integer >= 1" in result.output
