"""
Settings loader for the Google service adapters.

Settings are read from a TOML file. The lookup order is:

1. Explicit ``GOOG_CONFIG`` environment variable.
2. Project-relative ``.goog/config.toml`` (from the current directory).
3. User-level ``~/.config/goog/config.toml``.

``GOOG_ACCESS_TOKEN`` overrides ``[auth] access_token`` so that tokens never
need to be written to disk. Missing files yield defaults.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from .core.retry import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS, RetryPolicy

DEFAULT_TIMEOUT = 15.0
DEFAULT_CALENDAR = "primary"
DEFAULT_USER_ID = "me"
DEFAULT_PAGE_SIZE = 20

_ENV_CONFIG = "GOOG_CONFIG"
_ENV_TOKEN = "GOOG_ACCESS_TOKEN"


@dataclass(slots=True)
class RetrySettings:
    """Retry budget applied to every adapter call."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, base_delay=self.base_delay)


@dataclass(slots=True)
class Settings:
    """Resolved configuration shared by the CLI and the service clients."""

    source_path: Optional[Path] = None
    access_token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    retry: RetrySettings = field(default_factory=RetrySettings)
    default_calendar: str = DEFAULT_CALENDAR
    mail_user_id: str = DEFAULT_USER_ID
    page_size: int = DEFAULT_PAGE_SIZE

    def as_dict(self, *, redact: bool = True) -> Dict[str, Any]:
        token = self.access_token
        if token and redact:
            token = "***"
        return {
            "source_path": str(self.source_path) if self.source_path else None,
            "access_token": token,
            "timeout": self.timeout,
            "retry": {"max_attempts": self.retry.max_attempts, "base_delay": self.retry.base_delay},
            "calendar": {"default_calendar": self.default_calendar},
            "mail": {"user_id": self.mail_user_id, "page_size": self.page_size},
        }


def _candidate_paths() -> Iterable[Path]:
    env_override = os.getenv(_ENV_CONFIG)
    if env_override:
        yield Path(env_override).expanduser()
    yield Path.cwd() / ".goog" / "config.toml"
    yield Path.home() / ".config" / "goog" / "config.toml"


def _load_toml(path: Path) -> Dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, Mapping) else {}


def _extract_str(section: Mapping[str, Any], key: str) -> Optional[str]:
    value = section.get(key)
    return value if isinstance(value, str) and value else None


def _extract_number(section: Mapping[str, Any], key: str, default: float) -> float:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


def _build_settings(path: Optional[Path], raw: Mapping[str, Any]) -> Settings:
    auth = _section(raw, "auth")
    retry = _section(raw, "retry")
    http = _section(raw, "http")
    calendar = _section(raw, "calendar")
    mail = _section(raw, "mail")

    return Settings(
        source_path=path,
        access_token=os.getenv(_ENV_TOKEN) or _extract_str(auth, "access_token"),
        timeout=float(_extract_number(http, "timeout", DEFAULT_TIMEOUT)),
        retry=RetrySettings(
            max_attempts=int(_extract_number(retry, "max_attempts", DEFAULT_MAX_ATTEMPTS)),
            base_delay=float(_extract_number(retry, "base_delay", DEFAULT_BASE_DELAY)),
        ),
        default_calendar=_extract_str(calendar, "default_calendar") or DEFAULT_CALENDAR,
        mail_user_id=_extract_str(mail, "user_id") or DEFAULT_USER_ID,
        page_size=int(_extract_number(mail, "page_size", DEFAULT_PAGE_SIZE)),
    )


def load_settings(strict: bool = False) -> Settings:
    """
    Load settings from the first configuration file found.

    Parameters
    ----------
    strict:
        When ``True`` the function raises ``FileNotFoundError`` if no file is
        discovered. Defaults to ``False`` so the adapters run on defaults.
    """

    for path in _candidate_paths():
        if path.is_file():
            return _build_settings(path, _load_toml(path))

    if strict:
        raise FileNotFoundError("No configuration file found. Set GOOG_CONFIG or create .goog/config.toml.")

    return _build_settings(None, {})
