"""
Celery wiring for the backup worker.

Without ``CELERY_BROKER_URL``/``CELERY_RESULT_BACKEND`` the worker talks to a
SQLite database in the Flask instance folder, so a scheduled export needs no
Redis. Backups share one queue and a worker takes one job at a time.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, NamedTuple

from celery import Celery
from flask import Flask
from kombu import Queue

DEFAULT_QUEUE_NAME = "backups"
DEFAULT_SQLITE_FILENAME = "celery.sqlite"
EXTENSION_KEY = "backup"

_QUIET_LOGGERS = ("celery.worker.strategy",)


class TransportUrls(NamedTuple):
    broker: str
    backend: str


def _sqlite_transport_path(app: Flask) -> Path:
    configured = app.config.get("CELERY_SQLITE_PATH")
    path = Path(configured) if configured else Path(DEFAULT_SQLITE_FILENAME)
    if not path.is_absolute():
        path = Path(app.instance_path) / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def resolve_transport_urls(app: Flask) -> TransportUrls:
    """Configured broker/backend URLs, with SQLite filling whichever is missing."""
    broker = app.config.get("CELERY_BROKER_URL")
    backend = app.config.get("CELERY_RESULT_BACKEND")
    if not (broker and backend):
        # kombu and the db result backend both want forward slashes.
        sqlite_file = _sqlite_transport_path(app).as_posix()
        broker = broker or f"sqla+sqlite:///{sqlite_file}"
        backend = backend or f"db+sqlite:///{sqlite_file}"
    return TransportUrls(broker=broker, backend=backend)


def _worker_settings(app: Flask) -> dict[str, Any]:
    return {
        "task_default_queue": DEFAULT_QUEUE_NAME,
        "task_default_exchange": DEFAULT_QUEUE_NAME,
        "task_default_routing_key": DEFAULT_QUEUE_NAME,
        "task_queues": [Queue(DEFAULT_QUEUE_NAME)],
        "worker_prefetch_multiplier": 1,
        "task_acks_late": True,
        "task_track_started": True,
        "result_extended": True,
        "broker_connection_retry_on_startup": True,
        "task_time_limit": app.config.get("BACKUP_TASK_TIME_LIMIT", 30 * 60),
        "task_soft_time_limit": app.config.get("BACKUP_TASK_SOFT_TIME_LIMIT", 25 * 60),
        "worker_hijack_root_logger": False,
        "worker_log_format": "[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
        "worker_task_log_format": (
            "[%(asctime)s: %(levelname)s/%(processName)s][%(task_name)s(%(task_id)s)] %(message)s"
        ),
    }


def _override_settings(app: Flask) -> Mapping[str, Any]:
    """``CELERY_CONFIG`` as a mapping; a JSON string is accepted from the environment."""
    raw = app.config.get("CELERY_CONFIG")
    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        app.logger.warning("Ignoring CELERY_CONFIG: value is not a JSON object.", exc_info=True)
        return {}
    if not isinstance(parsed, dict):
        app.logger.warning("Ignoring CELERY_CONFIG: value is not a JSON object.")
        return {}
    return parsed


def _quiet_worker_loggers(app: Flask) -> None:
    if not app.config.get("SQLALCHEMY_ECHO", False):
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_celery_app(app: Flask) -> Celery:
    """
    Build the Celery app for ``app``; every task body runs inside ``app.app_context()``.
    """
    urls = resolve_transport_urls(app)
    celery_app = Celery(
        app.import_name,
        broker=urls.broker,
        backend=urls.backend,
        include=("fieldservice_app.interchange.tasks",),
    )
    celery_app.conf.update(_worker_settings(app))

    overrides = _override_settings(app)
    if overrides:
        celery_app.conf.update(overrides)

    app.logger.info(
        "Backup worker transport configured",
        extra={
            "backup_celery_broker_url": urls.broker,
            "backup_celery_result_backend": urls.backend,
            "backup_celery_overrides": sorted(overrides),
            "backup_worker_enabled": app.config.get("BACKUP_WORKER_ENABLED"),
        },
    )
    _quiet_worker_loggers(app)

    class AppContextTask(celery_app.Task):  # type: ignore[misc]
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return super().__call__(*args, **kwargs)

    celery_app.Task = AppContextTask  # type: ignore[assignment]
    celery_app.loader.import_default_modules()
    return celery_app


def ensure_celery_app(app: Flask, state: dict[str, Any]) -> Celery:
    """Return the Celery app cached in the backup extension state, creating it once."""
    if state.get("celery_app") is None:
        state["celery_app"] = create_celery_app(app)
    return state["celery_app"]


def get_celery_app(app: Flask) -> Celery | None:
    """Celery app for ``app``, or None when backups were never initialised or are disabled."""
    state: dict[str, Any] | None = app.extensions.get(EXTENSION_KEY)
    if not state:
        return None
    if state.get("celery_app") is None and state.get("enabled"):
        return ensure_celery_app(app, state)
    return state.get("celery_app")
