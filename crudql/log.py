"""Structured logging for crudql.

Invariants:
    - Every component logs through a sink with ``info``/``warning``/``error``;
      by default that is the ``crudql`` stdlib logger.
    - Structured fields (operation, sql, params, duration_ms, pool_key) travel
      as ``extra`` and are surfaced by the JSON formatter when present.

Design Decisions:
    - stdlib logging, no third-party log library: an application's own
      handlers pick crudql records up unchanged.
    - setup_logging only touches the ``crudql`` logger, never the root.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

LOGGER_NAME = "crudql"

#: Record attributes copied into JSON output when set.
STRUCTURED_FIELDS = (
    "operation", "sql", "params", "duration_ms", "threshold_ms",
    "pool_key", "table", "rowcount", "state", "error",
)


class LogSink(Protocol):
    """Anything that can stand in for a :class:`logging.Logger`."""

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> Any: ...

    def warning(self, msg: Any, *args: Any, **kwargs: Any) -> Any: ...

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> Any: ...


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


class JSONFormatter(logging.Formatter):
    """Format records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in STRUCTURED_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "text") -> logging.Logger:
    """Attach a console handler to the ``crudql`` logger.

    Calling it again replaces the handler rather than adding a second one.

    Args:
        level: Level name, e.g. ``"DEBUG"``.
        fmt: ``"json"`` for :class:`JSONFormatter`, anything else for text.
    """
    logger = get_logger()
    for handler in list(logger.handlers):
        if getattr(handler, "_crudql_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._crudql_handler = True  # type: ignore[attr-defined]
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
