"""
Backup Celery tasks.

``backup.run_export`` is the entry point a scheduler calls to take a backup
now; ``backup.run_import`` restores an uploaded or stored file. Both record
their progress on a :class:`BackupRun` row.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from celery import shared_task
from flask import current_app

from fieldservice_app.models.base import db
from fieldservice_app.models.interchange import BackupDirection, BackupRun

from .export_filter import ExportOptions
from .runs import complete_export_run, complete_import_run, create_run, fail_run, mark_running
from .service import BackupService
from .utils import cleanup_upload


@shared_task(name="backup.healthcheck", bind=True)
def backup_healthcheck(self) -> dict[str, Any]:
    """
    Simple heartbeat task used by worker health checks.
    """
    now = datetime.now(timezone.utc)
    return {
        "status": "ok",
        "timestamp": now.isoformat(),
        "worker_hostname": self.request.hostname,
        "app_version": getattr(self.app, "user_options", {}).get("version"),
    }


@shared_task(name="backup.run_export", bind=True)
def run_export(
    self,
    *,
    run_id: int | None = None,
    archive: bool = True,
    kinds: Sequence[str] | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    include_parents: bool = False,
) -> dict[str, Any]:
    """
    Take a backup immediately and return the written file's details.
    """
    options = ExportOptions.coerce(kinds=kinds, from_date=from_date, to_date=to_date, include_parents=include_parents)
    if run_id is None:
        run = create_run(BackupDirection.EXPORT, mode="zip" if archive else "json", params=options.as_dict())
    else:
        run = db.session.get(BackupRun, run_id)
        if run is None:
            raise ValueError(f"Backup run {run_id} not found.")
    run_id = run.id
    mark_running(run)

    try:
        service = BackupService.from_app(current_app)
        result = service.export_subset(options, archive=archive)
        complete_export_run(run, result)
    except Exception as exc:
        fail_run(run_id, exc)
        current_app.logger.exception(
            "Backup export failed",
            extra={"backup_run_id": run_id, "backup_error": str(exc)},
        )
        raise

    current_app.logger.info(
        "Backup export completed",
        extra={
            "backup_run_id": run_id,
            "backup_status": run.status.value,
            "backup_file": str(result.file_path) if result.file_path else None,
            "backup_record_count": result.record_count,
        },
    )
    payload = result.as_dict()
    payload["run_id"] = run_id
    return payload


@shared_task(name="backup.run_import", bind=True)
def run_import(self, *, run_id: int, file_path: str, mode: str = "merge", keep_file: bool = True) -> dict[str, Any]:
    """
    Restore ``file_path`` into the store via the backup worker.
    """
    run = db.session.get(BackupRun, run_id)
    if run is None:
        raise ValueError(f"Backup run {run_id} not found.")
    mark_running(run)

    path = Path(file_path)
    cleanup_target: Path | None = None if keep_file else path

    try:
        service = BackupService.from_app(current_app)
        result = service.restore_backup(path, mode=mode)
        complete_import_run(run, result)
        current_app.logger.info(
            "Backup import completed",
            extra={
                "backup_run_id": run_id,
                "backup_status": run.status.value,
                "backup_rows_inserted": result.total_inserted,
                "backup_rows_updated": result.total_updated,
                "backup_rows_skipped": result.total_skipped,
                "backup_rows_failed": result.total_failed,
            },
        )
        payload = result.as_dict()
        payload["run_id"] = run_id
        return payload
    except Exception as exc:
        fail_run(run_id, exc)
        current_app.logger.exception(
            "Backup import failed",
            extra={"backup_run_id": run_id, "backup_error": str(exc)},
        )
        raise
    finally:
        if cleanup_target is not None:
            cleanup_upload(cleanup_target)
