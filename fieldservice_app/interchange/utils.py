"""
Backup-specific utilities for resolving storage directories and handling uploads.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable
from uuid import uuid4

from flask import current_app, has_app_context
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

logger = logging.getLogger("fieldservice_app.interchange")

DEFAULT_BACKUP_SUBDIR = "backups"
DEFAULT_UPLOAD_SUBDIR = "backup_uploads"
BACKUP_FILE_PREFIX = "fieldservice_backup"
BACKUP_EXTENSIONS: tuple[str, ...] = ("json", "zip")
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def interchange_logger() -> logging.Logger:
    """The app logger inside an application context, the package logger otherwise."""
    if has_app_context():
        return current_app.logger
    return logger


def _normalize_dir(configured_path: str | None, instance_path: str, *, default_subdir: str) -> Path:
    if not configured_path:
        return Path(instance_path) / default_subdir

    candidate = Path(configured_path)
    if candidate.is_absolute():
        return candidate

    return Path(instance_path) / candidate


def resolve_backup_directory(app) -> Path:
    """
    Determine and create (if necessary) the directory backups are written to.
    """

    backup_dir = _normalize_dir(
        app.config.get("BACKUP_DIR"),
        app.instance_path,
        default_subdir=DEFAULT_BACKUP_SUBDIR,
    )
    backup_dir.mkdir(parents=True, exist_ok=True)
    return backup_dir


def resolve_upload_directory(app) -> Path:
    """
    Determine and create (if necessary) the directory restore uploads land in.
    """

    upload_dir = _normalize_dir(
        app.config.get("BACKUP_UPLOAD_DIR"),
        app.instance_path,
        default_subdir=DEFAULT_UPLOAD_SUBDIR,
    )
    upload_dir.mkdir(parents=True, exist_ok=True)
    return upload_dir


def timestamped_filename(extension: str, *, prefix: str = BACKUP_FILE_PREFIX, moment: datetime | None = None) -> str:
    moment = moment or datetime.now()
    return f"{prefix}_{moment.strftime(TIMESTAMP_FORMAT)}.{extension.lstrip('.')}"


def allowed_file(filename: str, allowed_extensions: Iterable[str] = BACKUP_EXTENSIONS) -> bool:
    """
    Validate the uploaded filename extension against the allowed set.
    """

    if not filename or "." not in filename:
        return False
    extension = filename.rsplit(".", 1)[1].lower()
    return extension in {ext.lower() for ext in allowed_extensions}


def persist_upload(file_storage: FileStorage, app) -> Path:
    """
    Persist an uploaded backup to disk and return the fully-qualified path.

    Files are stored under ``resolve_upload_directory(app)`` using a UUID-based
    filename; the original extension decides how the file is restored.
    """

    upload_dir = resolve_upload_directory(app)
    original_name = secure_filename(file_storage.filename or "")
    extension = Path(original_name).suffix.lower() if original_name else ""
    if not extension:
        extension = ".json"

    target_path = upload_dir / f"{uuid4().hex}{extension}"
    file_storage.save(target_path)
    interchange_logger().debug("Backup upload persisted to %s", target_path)
    return target_path


def cleanup_upload(path: Path) -> None:
    """
    Remove a stored upload, logging but ignoring filesystem errors.
    """

    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        interchange_logger().warning("Failed to remove backup upload %s: %s", path, exc)


def format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
