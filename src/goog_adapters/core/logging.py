"""
Structured logging helpers for the Google service adapters.

Every module obtains its logger through :func:`get_logger` so that retry
attempts, HTTP calls and verification results share one formatter. Structured
metadata travels in the ``extra`` mapping and is rendered as ``key=value``
pairs after the message, with the retry-related keys printed first.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from copy import copy
from logging import Logger, LoggerAdapter
from typing import Any, Iterable, Mapping, MutableMapping, Optional, Sequence

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = "WARNING"
_ENV_LEVEL = "GOOG_LOG_LEVEL"
_ENV_COLOR = "GOOG_LOG_COLOR"
_EXTRA_FOCUS_ORDER: Sequence[str] = (
    "service",
    "resource",
    "phase",
    "status",
    "attempt",
    "max_attempts",
    "delay",
    "kind",
    "method",
    "url",
    "status_code",
    "error",
)

_LEVEL_STYLES = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[95m",
}
_RESET = "\033[0m"

_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


def _resolve_level(level: Optional[int | str]) -> int:
    if isinstance(level, int):
        return level
    candidate = (level or os.getenv(_ENV_LEVEL) or DEFAULT_LEVEL).upper()
    resolved = logging.getLevelName(candidate)
    return resolved if isinstance(resolved, int) else logging.WARNING


def _coerce_bool(value: str) -> Optional[bool]:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return None


def _supports_color(stream: Any) -> bool:
    preference = os.getenv(_ENV_COLOR)
    if preference:
        resolved = _coerce_bool(preference)
        if resolved is not None:
            return resolved
    return hasattr(stream, "isatty") and bool(stream.isatty())


def _iter_extras(record: logging.LogRecord) -> Iterable[tuple[str, Any]]:
    payload = {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS and not key.startswith("_") and value is not None}

    for key in _EXTRA_FOCUS_ORDER:
        if key in payload:
            yield key, payload.pop(key)

    for key in sorted(payload):
        yield key, payload[key]


def _format_extra_value(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return "[" + ", ".join(_format_extra_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        try:
            return json.dumps(value, ensure_ascii=False, default=str)
        except TypeError:
            return repr(dict(value))
    if isinstance(value, float):
        return f"{value:.4g}"
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """Formatter that appends structured extras and supports optional colour output."""

    def __init__(self, *, use_color: bool = False) -> None:
        super().__init__(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        working = copy(record)
        if self.use_color:
            style = _LEVEL_STYLES.get(working.levelname.strip().upper())
            if style:
                working.levelname = f"{style}{working.levelname}{_RESET}"
        base = super().format(working)
        extras = " ".join(f"{key}={_format_extra_value(value)}" for key, value in _iter_extras(record))
        if extras:
            return f"{base} | {extras}"
        return base


def _build_handler(level: Optional[int | str]) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(_resolve_level(level))
    handler.setFormatter(StructuredLogFormatter(use_color=_supports_color(handler.stream)))
    return handler


def _structured_handler_installed(root: Logger) -> bool:
    return any(isinstance(handler.formatter, StructuredLogFormatter) for handler in root.handlers)


def configure_logging(level: Optional[int | str] = None, *, force: bool = False) -> None:
    """
    Install the structured stderr handler on the root logger.

    Parameters
    ----------
    level:
        Optional logging level override. Falls back to ``GOOG_LOG_LEVEL`` or ``WARNING``.
    force:
        Replace existing root handlers even when the structured handler is
        already installed.
    """

    root = logging.getLogger()
    if not force and _structured_handler_installed(root):
        return
    logging.basicConfig(level=_resolve_level(level), handlers=[_build_handler(level)], force=force)


def get_logger(name: str, *, extra: Optional[Mapping[str, object]] = None) -> LoggerAdapter:
    """
    Return a :class:`logging.LoggerAdapter` whose ``extra`` (e.g.
    ``{"service": "gmail"}``) is attached to every record logged through
    :func:`log_progress`.
    """

    configure_logging()
    payload = {key: value for key, value in (extra or {}).items() if value is not None}
    return LoggerAdapter(logging.getLogger(name), payload)


def log_progress(
    logger: LoggerAdapter | Logger,
    message: str,
    *,
    phase: Optional[str] = None,
    status: Optional[str] = None,
    level: int = logging.INFO,
    extra: Optional[Mapping[str, object]] = None,
) -> None:
    """
    Emit a record whose ``extra`` merges the adapter's static metadata with
    the per-call payload, so retry logs always name their service.
    """

    payload: MutableMapping[str, object] = {}
    if isinstance(logger, LoggerAdapter) and isinstance(logger.extra, Mapping):
        payload.update({key: value for key, value in logger.extra.items() if value is not None})
    if extra:
        payload.update(extra)
    if phase:
        payload["phase"] = phase
    if status:
        payload["status"] = status
    target = logger.logger if isinstance(logger, LoggerAdapter) else logger
    if payload:
        target.log(level, message, extra=dict(payload))
    else:
        target.log(level, message)
