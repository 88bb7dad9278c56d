#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Logging configuration for tubecache.

Modules log through StructuredLogger so that cache keys, partitions and
upstream operation names travel with each record as separate fields. The CLI
calls setup_logging() once; library users may configure logging themselves.
"""

import json
import logging
import logging.handlers
import sys
from typing import Any, Dict, Optional, Union

_RECORD_KEYS = ("timestamp", "level", "name", "line", "message", "exception")


class JSONFormatter(logging.Formatter):
    """Renders a record as a single-line JSON object.

    Context fields attached by StructuredLogger become top-level keys, except
    where they would shadow one of the standard keys.
    """

    def format(self, record):
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        context = getattr(record, "data", None)
        if isinstance(context, dict):
            payload.update({k: v for k, v in context.items() if k not in _RECORD_KEYS})

        return json.dumps(payload, default=str)


class StructuredLogger:
    """Thin wrapper over a stdlib logger that accepts keyword context.

        logger = StructuredLogger(__name__)
        logger.info("Cache hit", partition="video", key=query)

    Errors and critical records carry the active exception unless
    exc_info=False is passed.
    """

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.context = context or {}

    def bind(self, **context) -> "StructuredLogger":
        """Return a logger for the same name that always carries `context`."""
        return StructuredLogger(self.logger.name, {**self.context, **context})

    def _emit(self, level: int, message: str, exc_info=None, **fields):
        if not self.logger.isEnabledFor(level):
            return
        data = dict(self.context, **fields)
        # stacklevel points the record's line number at the caller
        self.logger.log(level, message, exc_info=exc_info, extra={"data": data}, stacklevel=3)

    def debug(self, message: str, **fields):
        self._emit(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self._emit(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self._emit(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info=True, **fields):
        self._emit(logging.ERROR, message, exc_info=exc_info, **fields)

    def critical(self, message: str, exc_info=True, **fields):
        self._emit(logging.CRITICAL, message, exc_info=exc_info, **fields)


def _to_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(log_level_console: Union[int, str] = logging.INFO,
                  log_level_file: Union[int, str] = logging.DEBUG,
                  structured: bool = True,
                  log_file: Optional[str] = "tubecache.log"):
    """Route every logger to stdout and, when `log_file` is set, a rotating file.

    Args:
        log_level_console: Level name or number for the stdout handler.
        log_level_file: Level for the file handler.
        structured: JSON records when True, plain text otherwise.
        log_file: Path of the log file, or None to log to stdout only.
    """
    console_level = _to_level(log_level_console)
    file_level = _to_level(log_level_file)
    root = logging.getLogger()

    # Calling setup_logging twice must not duplicate output
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()

    if structured:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handlers = []
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(console_level)
    handlers.append(stdout_handler)

    if log_file:
        try:
            rotating = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
            )
        except OSError as e:
            print(f"Warning: cannot open log file '{log_file}', logging to stdout only: {e}",
                  file=sys.stderr)
        else:
            rotating.setLevel(file_level)
            handlers.append(rotating)

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(min(handler.level for handler in handlers))

    logging.getLogger(__name__).debug(
        "Logging configured", extra={"data": {"structured": structured, "log_file": log_file}}
    )
