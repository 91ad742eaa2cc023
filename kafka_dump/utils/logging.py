"""Logging configuration for kafka_dump.

Diagnostics go to stderr; stdout is reserved for per-record trace lines.
Every entry carries the topic, the pipeline stage and a short status.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from threading import Lock
from typing import Any, Final

from .config import get_settings

LOG_FORMAT: Final[str] = (
    "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | "
    "topic=%(topic)s | stage=%(stage)s | status=%(status)s | %(message)s"
)

DEFAULT_CONTEXT: Final[dict[str, str]] = {"topic": "-", "stage": "-", "status": "-"}

_configured = False
_configure_lock: Final = Lock()


def _resolve_level(name: str | None) -> int:
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


class ContextualFormatter(logging.Formatter):
    """Fills in context fields a record was logged without."""

    def __init__(self, fmt: str, defaults: Mapping[str, str] | None = None) -> None:
        super().__init__(fmt)
        self._defaults = dict(defaults or {})

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        missing = {k: v for k, v in self._defaults.items() if k not in record.__dict__}
        record.__dict__.update(missing)
        return super().format(record)


def configure_logging(level: str | None = None, *, force: bool = False) -> None:
    """
    Attach a stderr handler to the root logger.

    Runs once per process unless ``force`` is set, in which case the level
    and formatter are re-applied to the existing handlers.

    Args:
        level: Level name; defaults to the configured ``log_level``
        force: Re-apply configuration even if it already ran
    """
    global _configured
    with _configure_lock:
        if _configured and not force:
            return

        resolved = _resolve_level(level or get_settings().log_level)
        formatter = ContextualFormatter(LOG_FORMAT, DEFAULT_CONTEXT)

        root = logging.getLogger()
        root.setLevel(resolved)
        if not root.handlers:
            root.addHandler(logging.StreamHandler(sys.stderr))
        for handler in root.handlers:
            handler.setLevel(resolved)
            handler.setFormatter(formatter)

        _configured = True


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Adapter whose bound context can be overridden per call via ``extra``."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:  # type: ignore[override]
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **context: Any) -> StructuredLoggerAdapter:
        return StructuredLoggerAdapter(self.logger, {**(self.extra or {}), **context})


def setup_logger(
    name: str,
    *,
    level: str | None = None,
    context: Mapping[str, Any] | None = None,
) -> StructuredLoggerAdapter:
    """Return an adapter for ``name`` carrying ``context`` on every entry.

    Args:
        name: Logger name to retrieve.
        level: Optional level override for this logger only.
        context: Default structured fields, e.g. ``{"stage": "fetcher"}``.
    """

    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level) if level is not None else logging.NOTSET)
    return StructuredLoggerAdapter(logger, {**DEFAULT_CONTEXT, **(context or {})})
