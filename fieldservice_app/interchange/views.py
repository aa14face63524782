"""
Backup blueprint endpoints: health, catalogue, export and restore.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from fieldservice_app.models.interchange import BackupDirection
from fieldservice_app.utils.backup import is_backup_enabled

from .celery_app import DEFAULT_QUEUE_NAME
from .errors import IOFailure
from .export_filter import ExportOptions
from .runs import complete_export_run, complete_import_run, create_run, fail_run, mark_running
from .service import RESTORE_MODES, BackupService
from .utils import allowed_file, cleanup_upload, persist_upload

backup_blueprint = Blueprint("backups", __name__, url_prefix="/backups")


def _json_error(message: str, status: HTTPStatus):
    return jsonify({"error": message}), status


@backup_blueprint.get("/health")
def backup_healthcheck():
    """
    Lightweight health endpoint proving the backup blueprint mounted correctly.
    """
    state = current_app.extensions.get("backup", {})
    service = BackupService.from_app(current_app)
    return (
        jsonify(
            {
                "status": "ok",
                "enabled": is_backup_enabled(current_app),
                "worker_enabled": state.get("worker_enabled", False),
                "queue": DEFAULT_QUEUE_NAME,
                "backup_dir": str(service.backup_dir),
                "format_version": service.format_version,
            }
        ),
        HTTPStatus.OK,
    )


@backup_blueprint.get("/")
def backup_list():
    backups = BackupService.from_app(current_app).list_backups()
    return jsonify({"backups": [backup.as_dict() for backup in backups], "total": len(backups)}), HTTPStatus.OK


@backup_blueprint.post("/")
def backup_create():
    """
    Take a backup now. Accepts an optional JSON body with ``format``
    (``zip`` or ``json``), ``kinds``, ``from_date``, ``to_date`` and
    ``include_parents``.
    """
    body = request.get_json(silent=True) or {}
    archive_format = str(body.get("format", "zip")).lower()
    if archive_format not in ("zip", "json"):
        return _json_error("format must be 'zip' or 'json'.", HTTPStatus.BAD_REQUEST)
    try:
        options = ExportOptions.coerce(
            kinds=body.get("kinds") or None,
            from_date=body.get("from_date"),
            to_date=body.get("to_date"),
            include_parents=bool(body.get("include_parents", False)),
        )
    except ValueError as exc:
        return _json_error(str(exc), HTTPStatus.BAD_REQUEST)

    run = create_run(BackupDirection.EXPORT, mode=archive_format, params=options.as_dict())
    run_id = run.id
    mark_running(run)
    try:
        result = BackupService.from_app(current_app).export_subset(options, archive=archive_format == "zip")
        complete_export_run(run, result)
    except Exception as exc:
        fail_run(run_id, exc)
        current_app.logger.exception("Backup export request failed", extra={"backup_run_id": run_id})
        return _json_error(f"Backup failed: {exc}", HTTPStatus.INTERNAL_SERVER_ERROR)

    payload = result.as_dict()
    payload["run_id"] = run_id
    status = HTTPStatus.CREATED if result.success else HTTPStatus.INTERNAL_SERVER_ERROR
    return jsonify(payload), status


@backup_blueprint.post("/restore")
def backup_restore():
    """
    Restore an uploaded ``.json`` or ``.zip`` backup (multipart field ``file``).
    """
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return _json_error("No backup file uploaded.", HTTPStatus.BAD_REQUEST)
    if not allowed_file(upload.filename):
        return _json_error("Backup file must be a .json or .zip file.", HTTPStatus.BAD_REQUEST)
    mode = request.form.get("mode", "merge")
    if mode not in RESTORE_MODES:
        return _json_error(f"mode must be one of: {', '.join(RESTORE_MODES)}.", HTTPStatus.BAD_REQUEST)

    stored_path = persist_upload(upload, current_app)
    run = create_run(BackupDirection.IMPORT, file_path=upload.filename, mode=mode, params={"mode": mode})
    run_id = run.id
    mark_running(run)
    try:
        result = BackupService.from_app(current_app).restore_backup(stored_path, mode=mode)
        complete_import_run(run, result)
    except Exception as exc:
        fail_run(run_id, exc)
        current_app.logger.exception("Backup restore request failed", extra={"backup_run_id": run_id})
        return _json_error(f"Restore failed: {exc}", HTTPStatus.INTERNAL_SERVER_ERROR)
    finally:
        cleanup_upload(stored_path)

    payload = result.as_dict()
    payload["run_id"] = run_id
    status = HTTPStatus.OK if result.success else HTTPStatus.BAD_REQUEST
    return jsonify(payload), status


@backup_blueprint.delete("/<path:name>")
def backup_delete(name: str):
    service = BackupService.from_app(current_app)
    try:
        deleted = service.delete_backup(name)
    except ValueError as exc:
        return _json_error(str(exc), HTTPStatus.BAD_REQUEST)
    except IOFailure as exc:
        return _json_error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)
    if not deleted:
        return _json_error(f"Backup {name} not found.", HTTPStatus.NOT_FOUND)
    return jsonify({"deleted": name}), HTTPStatus.OK
