"""
Utility helpers for backup feature flag checks.
"""

from __future__ import annotations

from flask import current_app


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def is_backup_enabled(app=None) -> bool:
    """Return True when the backup feature flag is enabled."""
    config = _get_config(app)
    return bool(config.get("BACKUP_ENABLED", False))


def is_backup_worker_enabled(app=None) -> bool:
    """Return True when the backup worker flag is enabled."""
    config = _get_config(app)
    return bool(config.get("BACKUP_WORKER_ENABLED", False))
