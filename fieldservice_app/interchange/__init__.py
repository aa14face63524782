"""
Backup and restore (snapshot interchange) package.

Provides conditional blueprint and CLI registration, and validates the entity
registry's processing order at start-up.
"""

from __future__ import annotations

from flask import Flask

from fieldservice_app.utils.backup import is_backup_enabled, is_backup_worker_enabled

from .celery_app import EXTENSION_KEY, ensure_celery_app, get_celery_app
from .cli import backup_cli, get_disabled_backup_group
from .export_filter import ExportOptions
from .graph import PROCESSING_ORDER, validate_processing_order
from .orchestrator import ImportResult
from .service import BackupResult, BackupService
from .views import backup_blueprint

BACKUP_EXTENSION_KEY = EXTENSION_KEY

__all__ = [
    "init_interchange",
    "BACKUP_EXTENSION_KEY",
    "BackupService",
    "BackupResult",
    "ExportOptions",
    "ImportResult",
    "get_celery_app",
]


def _ensure_extension_state(app: Flask) -> dict:
    return app.extensions.setdefault(
        BACKUP_EXTENSION_KEY,
        {
            "enabled": False,
            "worker_enabled": False,
            "celery_app": None,
            "kinds": (),
        },
    )


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    command_name = backup_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(backup_cli)
    else:
        app.cli.add_command(get_disabled_backup_group())


def init_interchange(app: Flask) -> None:
    """
    Conditionally mount the backup blueprint and CLI based on configuration.

    Records backup state inside ``app.extensions['backup']`` for reuse by the
    CLI and worker helpers.
    """
    enabled = is_backup_enabled(app)
    state = _ensure_extension_state(app)
    state.update({"enabled": enabled, "worker_enabled": is_backup_worker_enabled(app)})

    if not enabled:
        _set_cli(app, enabled=False)
        app.logger.info("Backups disabled via BACKUP_ENABLED flag; skipping registration.")
        return

    validate_processing_order()
    state["kinds"] = tuple(kind.value for kind in PROCESSING_ORDER)
    ensure_celery_app(app, state)

    if backup_blueprint.name not in app.blueprints and not getattr(app, "_got_first_request", False):
        app.register_blueprint(backup_blueprint)
    elif backup_blueprint.name not in app.blueprints:
        app.logger.warning(
            "Backup blueprint registration skipped because the app has already handled its first request."
        )
    _set_cli(app, enabled=True)
    app.logger.info("Backups enabled for kinds: %s", ", ".join(state["kinds"]))
