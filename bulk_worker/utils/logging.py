"""
Logging setup for the bulk worker.

Every module logs through `get_logger(__name__)` and attaches machine-readable
fields with `extra=` (an `event` name plus counts, attempts, errors). The
console formatter shows the thread name because cycles run off the timer
thread; `LOG_JSON=true` switches to one JSON object per record with those
fields as top-level keys.

Usage:
    from bulk_worker.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=False)
    log = get_logger(__name__)
    log.info("cycle end", extra={"event": "cycle_end", "rows_inserted": 1000})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
    ).__dict__.keys()
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> str:
    return str(value)


def _json_formatter(record: logging.LogRecord) -> str:
    """Serialize a record: level, logger, message, then every `extra=` field."""
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(
        (key, value)
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and key != "extra" and not key.startswith("_")
    )
    # Older call sites nest their fields as `extra={"extra": {...}}`.
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return json.dumps(payload, default=_json_default)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; `extra=` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


CONSOLE_FORMAT = "%(asctime)s | %(levelname)-7s | %(threadName)s | %(name)s | %(message)s"

# Third-party loggers that are too chatty at the worker's level.
QUIET_LOGGERS = {
    "psycopg.pool": "WARNING",
}


def build_logging_config(level: str = "INFO", json_logs: bool = False) -> Dict[str, Any]:
    """Return the `dictConfig` mapping used by `configure_logging`."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_logs else "console",
                "level": level,
            }
        },
        "root": {"handlers": ["stderr"], "level": level},
        "loggers": {name: {"level": quiet} for name, quiet in QUIET_LOGGERS.items()},
    }


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Install the worker's logging setup on the root logger.

    Parameters
    ----------
    level : str
        Level name for the root logger and its handler ("DEBUG", "INFO", ...).
    json_logs : bool
        Emit one JSON object per record instead of the pipe-separated console
        format. Cycle, retry and export events carry their fields as keys.
    """
    logging.config.dictConfig(build_logging_config(level, json_logs))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module logger; the root logger when `name` is None."""
    return logging.getLogger(name)


__all__ = ["build_logging_config", "configure_logging", "get_logger", "JsonFormatter"]
