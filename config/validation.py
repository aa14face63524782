# config/validation.py

"""
Start-up validation of the environment for production deployments.
"""

import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .base import _coerce_bool

_PLACEHOLDER_SECRETS = {"your-secret-key", "your_secret_key", "dev-secret-key-change-in-production"}


def _check_secret_key() -> Optional[str]:
    secret_key = os.environ.get("SECRET_KEY", "")
    if not secret_key or secret_key in _PLACEHOLDER_SECRETS:
        return (
            "SECRET_KEY is required in production and must not be a placeholder value. "
            'Generate a secure key: python -c "import secrets; print(secrets.token_hex(32))"'
        )
    return None


def _check_database_url() -> Optional[str]:
    if not os.environ.get("DATABASE_URL"):
        return "DATABASE_URL is required in production. Set it to your database connection string."
    return None


def _check_backup_dir() -> Optional[str]:
    backup_dir = os.environ.get("BACKUP_DIR")
    if backup_dir and Path(backup_dir).exists() and not Path(backup_dir).is_dir():
        return f"BACKUP_DIR points at {backup_dir}, which is not a directory."
    return None


def _check_worker_transport() -> Optional[str]:
    if not _coerce_bool(os.environ.get("BACKUP_WORKER_ENABLED"), default=False):
        return None
    has_broker = bool(os.environ.get("CELERY_BROKER_URL"))
    has_backend = bool(os.environ.get("CELERY_RESULT_BACKEND"))
    if has_broker != has_backend:
        return (
            "CELERY_BROKER_URL and CELERY_RESULT_BACKEND must be set together when "
            "BACKUP_WORKER_ENABLED=true (leave both unset to use the SQLite transport)."
        )
    return None


_PRODUCTION_CHECKS = (_check_secret_key, _check_database_url, _check_backup_dir, _check_worker_transport)


def validate_environment(flask_env: str = None) -> Tuple[bool, List[str]]:
    """
    Validate required environment variables.

    Only production is checked; other environments always pass.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if flask_env is None:
        flask_env = os.environ.get("FLASK_ENV", "development")
    if flask_env != "production":
        return True, []

    errors = [message for message in (check() for check in _PRODUCTION_CHECKS) if message]
    return not errors, errors


def validate_and_exit(flask_env: str = None) -> None:
    """Print every validation error to stderr and exit(1) if the environment is invalid."""
    is_valid, errors = validate_environment(flask_env)
    if is_valid:
        return

    rule = "=" * 80
    lines = [rule, "ENVIRONMENT VALIDATION FAILED", rule, "", "The following environment variables are missing or invalid:", ""]
    lines.extend(f"{index}. {error}" for index, error in enumerate(errors, 1))
    lines.extend(["", rule, "Please check your .env file or environment variables.", rule])
    print("\n".join(lines), file=sys.stderr)
    sys.exit(1)
