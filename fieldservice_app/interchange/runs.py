"""
Helpers recording backup executions on :class:`BackupRun` rows.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from fieldservice_app.models.base import db
from fieldservice_app.models.interchange import BackupDirection, BackupRun, BackupRunStatus

from .orchestrator import ImportResult
from .service import BackupResult


def create_run(
    direction: BackupDirection,
    *,
    file_path: str | None = None,
    mode: str | None = None,
    params: Mapping[str, Any] | None = None,
    format_version: str | None = None,
) -> BackupRun:
    run = BackupRun(
        direction=direction,
        status=BackupRunStatus.PENDING,
        file_path=file_path,
        mode=mode,
        format_version=format_version,
        params_json=dict(params or {}),
        counts_json={},
        warnings_json=[],
        errors_json=[],
    )
    db.session.add(run)
    db.session.commit()
    return run


def mark_running(run: BackupRun) -> None:
    run.status = BackupRunStatus.RUNNING
    run.started_at = datetime.now(timezone.utc)
    db.session.commit()


def _update_import_counts(run: BackupRun, result: ImportResult) -> None:
    counts = dict(run.counts_json or {})
    counts["kinds"] = {kind.value: summary.as_dict() for kind, summary in result.kinds.items()}
    counts["totals"] = {
        "rows_inserted": result.total_inserted,
        "rows_updated": result.total_updated,
        "rows_skipped": result.total_skipped,
        "rows_failed": result.total_failed,
    }
    run.counts_json = counts


def complete_import_run(run: BackupRun, result: ImportResult) -> BackupRun:
    """Copy an import result onto ``run`` and commit."""
    _update_import_counts(run, result)
    run.warnings_json = list(result.warnings)
    run.errors_json = list(result.errors)
    run.format_version = result.format_version
    if not result.success:
        run.status = BackupRunStatus.FAILED
        run.error_summary = result.errors[0] if result.errors else "Import failed."
    elif result.errors:
        run.status = BackupRunStatus.PARTIALLY_FAILED
        run.error_summary = f"{len(result.errors)} record error(s)."
    else:
        run.status = BackupRunStatus.SUCCEEDED
    run.finished_at = datetime.now(timezone.utc)
    db.session.commit()
    return run


def complete_export_run(run: BackupRun, result: BackupResult) -> BackupRun:
    """Copy an export result onto ``run`` and commit."""
    counts = dict(run.counts_json or {})
    counts["records"] = dict(result.record_counts)
    counts["total"] = result.record_count
    run.counts_json = counts
    run.file_path = str(result.file_path) if result.file_path else run.file_path
    if result.success:
        run.status = BackupRunStatus.SUCCEEDED
    else:
        run.status = BackupRunStatus.FAILED
        run.error_summary = result.message
        run.errors_json = [result.message]
    run.finished_at = datetime.now(timezone.utc)
    db.session.commit()
    return run


def fail_run(run_id: int, exc: BaseException) -> BackupRun | None:
    """Roll back the session and mark the run failed; returns None if it vanished."""
    db.session.rollback()
    run = db.session.get(BackupRun, run_id)
    if run is None:
        return None
    run.status = BackupRunStatus.FAILED
    run.error_summary = str(exc)
    run.errors_json = [str(exc)]
    run.finished_at = datetime.now(timezone.utc)
    db.session.commit()
    return run
