"""
Application logging setup.

Reads the ``LOG_*`` / ``ENABLE_*_LOGGING`` keys from the monitoring config and
attaches a rotating file handler and/or console handler to ``app.logger``.
Backup log calls pass structured fields through ``extra={"backup_...": ...}``;
the JSON formatter emits every such field alongside the message.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from flask import Flask

_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
        }
        entry.update(_extra_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human readable lines with backup context appended."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = [f"{key}={value}" for key, value in _extra_fields(record).items() if key.startswith("backup_")]
        if context:
            return f"{base} [{' '.join(context)}]"
        return base


def _build_formatter(app: Flask) -> logging.Formatter:
    if str(app.config.get("LOG_FORMAT", "json")).lower() == "json":
        return JSONFormatter()
    return TextFormatter()


def setup_logging(app: Flask) -> None:
    """Configure ``app.logger`` from the application config. Safe to call repeatedly."""
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    for handler in list(app.logger.handlers):
        if getattr(handler, "_fieldservice_handler", False):
            app.logger.removeHandler(handler)
            handler.close()

    formatter = _build_formatter(app)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "fieldservice.log"),
            maxBytes=int(app.config.get("LOG_FILE_MAX_BYTES", 10485760)),
            backupCount=int(app.config.get("LOG_FILE_BACKUP_COUNT", 10)),
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        file_handler._fieldservice_handler = True  # type: ignore[attr-defined]
        app.logger.addHandler(file_handler)

    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        console_handler._fieldservice_handler = True  # type: ignore[attr-defined]
        app.logger.addHandler(console_handler)

    app.logger.setLevel(level)
    app.logger.info("Logging configured", extra={"log_level": level_name})
