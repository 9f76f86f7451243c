"""Structured local logging for installer runs."""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import config_root


_LOGGER_NAME = "canido"
_LOG_FILE = "canido-install.log"

# Structured extras copied into each JSON line when a call site passes them.
_CONTEXT_FIELDS = ("event", "formula", "triple", "url", "path", "sha256", "exit_code")


def log_dir() -> Path:
    path = config_root() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


class JsonFormatter(logging.Formatter):
    """One JSON object per line, stamped with the record's own creation time."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            value = record.__dict__.get(key)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def _file_handler(path: Path, keep_files: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=max(2, keep_files),
        encoding="utf-8",
    )
    handler.setFormatter(JsonFormatter())
    return handler


def _console_handler() -> logging.Handler:
    # stdout is reserved for the CLI's JSON output.
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    return handler


def configure_logging(
    keep_files: int = 7,
    console: bool = True,
    log_path: Path | None = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Attach the JSON file handler (and optionally stderr) to the ``canido`` logger.

    Calling it again is a no-op until :func:`reset_logging` removes the handlers.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.addHandler(_file_handler(log_path or log_dir() / _LOG_FILE, keep_files))
    if console:
        logger.addHandler(_console_handler())

    logger.info("logging configured", extra={"event": "logging_configured"})
    return logger


def reset_logging() -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def get_logger(name: str | None = None) -> logging.Logger:
    if not name:
        return logging.getLogger(_LOGGER_NAME)
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
