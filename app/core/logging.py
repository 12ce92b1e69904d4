"""Logging configuration for course-access-engine.

Two output modes, picked by LOG_JSON:

  _ContainerFormatter: one human-readable line per record, for local runs
    and `docker logs`.  WARNING and above carry [file:line] so a rejected
    redemption or a refused completion can be traced to its guard clause.

  _JsonFormatter: one JSON object per line for the log pipeline.  Request
    context attached by RequestContextMiddleware (request_id, method, path,
    status_code, duration_ms) and engine context passed through ``extra=``
    (user_id, course_id, episode_id, key_code) become top-level keys.

Key codes are bearer secrets until redeemed; services log them masked via
``mask_code``.
"""

from __future__ import annotations

import json
import logging
import sys


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter tuned for container stdout."""

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # Splice milliseconds in front of the +HHMM offset
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            self._style._fmt = self._BASE_FMT + self._LOC_SUFFIX
        else:
            self._style._fmt = self._BASE_FMT
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter; copies known context fields to the top level."""

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "user_id",
        "course_id",
        "episode_id",
        "key_code",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def mask_code(code: str) -> str:
    """Keep the prefix and last group of a key code, hide the rest.

    >>> mask_code("XFLEX-ABCDE-FGHJK-LMNPQ")
    'XFLEX-*****-*****-LMNPQ'
    """
    parts = code.split("-")
    if len(parts) < 3:
        return "*" * len(code)
    middle = ["*" * len(p) for p in parts[1:-1]]
    return "-".join([parts[0], *middle, parts[-1]])


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Route the root logger to stdout with the chosen formatter.

    Unknown level names fall back to INFO.  uvicorn/httpx/sqlalchemy loggers
    are held at WARNING or above so DEBUG runs stay readable.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in (
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpcore",
        "httpx",
        "sqlalchemy.engine",
    ):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
