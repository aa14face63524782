"""
CLI commands for taking and restoring backups (``flask backup ...``).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Sequence

import click
from celery import Celery
from celery.exceptions import TimeoutError as CeleryTimeoutError
from flask.cli import ScriptInfo

from fieldservice_app.interchange.celery_app import DEFAULT_QUEUE_NAME, EXTENSION_KEY, get_celery_app
from fieldservice_app.interchange.export_filter import ExportOptions
from fieldservice_app.interchange.graph import PROCESSING_ORDER
from fieldservice_app.interchange.orchestrator import ImportResult
from fieldservice_app.interchange.runs import (
    complete_export_run,
    complete_import_run,
    create_run,
    fail_run,
    mark_running,
)
from fieldservice_app.interchange.service import RESTORE_MODES, BackupResult, BackupService
from fieldservice_app.interchange.utils import resolve_backup_directory
from fieldservice_app.models.interchange import BackupDirection, BackupRun
from fieldservice_app.utils.backup import is_backup_enabled

KIND_CHOICES = [kind.value for kind in PROCESSING_ORDER]


@click.group(name="backup", invoke_without_command=True)
@click.pass_context
def backup_cli(ctx):
    """
    Backup and restore commands.

    Shows the backup directory and stored backup count when invoked without a subcommand.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_backup_enabled(app):
        raise click.ClickException("Backups are disabled via BACKUP_ENABLED=false. Enable it to run backup commands.")
    if ctx.invoked_subcommand is None:
        backups = BackupService.from_app(app).list_backups()
        click.echo(f"Backup directory: {resolve_backup_directory(app)}")
        click.echo(f"{len(backups)} backup(s) stored.")


def get_disabled_backup_group() -> click.Group:
    """
    Return a minimal command group that informs the operator backups are disabled.
    """

    @click.group(name="backup", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Backup commands are unavailable because BACKUP_ENABLED=false.")

    return disabled_group


def _resolve_celery(app) -> Celery:
    celery_app = get_celery_app(app)
    if celery_app is None:
        raise click.ClickException(
            "Backup Celery app is unavailable. Ensure BACKUP_ENABLED=true and the "
            "backup package initialises before running worker commands."
        )
    return celery_app


def _format_export_summary(run: BackupRun, result: BackupResult) -> str:
    status_value = run.status.value if hasattr(run.status, "value") else str(run.status)
    counts = ", ".join(f"{kind}={count}" for kind, count in result.record_counts.items() if count) or "none"
    return (
        f"Run {run.id} completed with status {status_value}.\n"
        f"  file          : {result.file_path}\n"
        f"  records       : {result.record_count}\n"
        f"  record_counts : {counts}"
    )


def _format_import_summary(run: BackupRun, result: ImportResult, mode: str) -> str:
    status_value = run.status.value if hasattr(run.status, "value") else str(run.status)
    lines = [f"Run {run.id} completed with status {status_value} (mode={mode})."]
    for kind, summary in result.kinds.items():
        if not summary.rows_processed:
            continue
        lines.append(
            f"  {kind.value:<18}: processed={summary.rows_processed} inserted={summary.rows_inserted} "
            f"updated={summary.rows_updated} skipped={summary.rows_skipped} failed={summary.rows_failed}"
        )
    lines.append(f"  {'warnings':<18}: {len(result.warnings)}")
    lines.append(f"  {'errors':<18}: {len(result.errors)}")
    for warning in result.warnings:
        lines.append(f"  warning: {warning}")
    for error in result.errors:
        lines.append(f"  error: {error}")
    return "\n".join(lines)


@backup_cli.command("export")
@click.option(
    "--format",
    "archive_format",
    type=click.Choice(["json", "zip"]),
    default="zip",
    show_default=True,
    help="Write a plain JSON snapshot or a zip archive.",
)
@click.option(
    "--output",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Destination file (defaults to a timestamped file in BACKUP_DIR).",
)
@click.option(
    "--include",
    "kinds",
    multiple=True,
    type=click.Choice(KIND_CHOICES),
    help="Entity kind to export; repeat to export several. Defaults to all kinds.",
)
@click.option("--from-date", type=click.DateTime(formats=["%Y-%m-%d"]), help="Earliest customer creation date.")
@click.option("--to-date", type=click.DateTime(formats=["%Y-%m-%d"]), help="Latest customer creation date.")
@click.option("--include-parents", is_flag=True, help="Also export every kind the selected kinds reference.")
@click.option(
    "--inline/--no-inline",
    default=True,
    help="Run inline within the CLI process instead of queueing via Celery.",
)
@click.pass_context
def backup_export(
    ctx,
    archive_format: str,
    output: Optional[Path],
    kinds: Sequence[str],
    from_date,
    to_date,
    include_parents: bool,
    inline: bool,
):
    """Take a backup of the store."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()

    try:
        options = ExportOptions.coerce(
            kinds=kinds or None,
            from_date=from_date.date() if from_date else None,
            to_date=to_date.date() if to_date else None,
            include_parents=include_parents,
        )
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    archive = archive_format == "zip"
    if output is not None and not inline:
        raise click.ClickException("--output is only available for --inline runs.")

    run = create_run(BackupDirection.EXPORT, mode=archive_format, params=options.as_dict())
    run_id = run.id

    if not inline:
        celery_app = _resolve_celery(app)
        try:
            async_result = celery_app.send_task(
                "backup.run_export",
                kwargs={"run_id": run_id, "archive": archive, **options.as_dict()},
            )
        except Exception as exc:
            fail_run(run_id, exc)
            raise click.ClickException(f"Failed to enqueue backup run {run_id}: {exc}") from exc
        app.logger.info(
            "Backup export queued via CLI",
            extra={"backup_run_id": run_id, "backup_task_id": async_result.id},
        )
        click.echo(json.dumps({"run_id": run_id, "task_id": async_result.id, "status": "queued"}))
        return

    mark_running(run)
    try:
        result = BackupService.from_app(app).export_subset(options, archive=archive, destination=output)
        complete_export_run(run, result)
    except Exception as exc:
        fail_run(run_id, exc)
        raise click.ClickException(f"Backup run {run_id} failed: {exc}") from exc

    if not result.success:
        raise click.ClickException(f"Backup run {run_id} failed: {result.message}")
    click.echo(_format_export_summary(run, result))


@backup_cli.command("import")
@click.argument("path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--mode",
    type=click.Choice(RESTORE_MODES),
    default="merge",
    show_default=True,
    help="merge upserts into existing data; replace clears every entity table first.",
)
@click.option(
    "--inline/--no-inline",
    default=True,
    help="Run inline within the CLI process instead of queueing via Celery.",
)
@click.option(
    "--summary-json",
    is_flag=True,
    help="Emit a machine-readable summary payload after completion (inline runs only).",
)
@click.pass_context
def backup_import(ctx, path: Path, mode: str, inline: bool, summary_json: bool):
    """Restore a JSON snapshot or zip archive."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    source = path.resolve()

    if summary_json and not inline:
        raise click.ClickException("--summary-json is only available for --inline runs.")

    run = create_run(BackupDirection.IMPORT, file_path=str(source), mode=mode, params={"mode": mode})
    run_id = run.id

    if not inline:
        celery_app = _resolve_celery(app)
        try:
            async_result = celery_app.send_task(
                "backup.run_import",
                kwargs={"run_id": run_id, "file_path": str(source), "mode": mode, "keep_file": True},
            )
        except Exception as exc:
            fail_run(run_id, exc)
            raise click.ClickException(f"Failed to enqueue backup run {run_id}: {exc}") from exc
        click.echo(json.dumps({"run_id": run_id, "task_id": async_result.id, "status": "queued", "mode": mode}))
        return

    mark_running(run)
    try:
        result = BackupService.from_app(app).restore_backup(source, mode=mode)
        complete_import_run(run, result)
    except Exception as exc:
        fail_run(run_id, exc)
        raise click.ClickException(f"Backup run {run_id} failed: {exc}") from exc

    click.echo(_format_import_summary(run, result, mode))
    if summary_json:
        payload = result.as_dict()
        payload["run_id"] = run_id
        click.echo(json.dumps(payload, indent=2, sort_keys=True))
    if not result.success:
        raise click.ClickException(f"Backup run {run_id} failed: {result.errors[0]}")


@backup_cli.command("list")
@click.pass_context
def backup_list(ctx):
    """List stored backups, newest first."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    service = BackupService.from_app(app)
    backups = service.list_backups()
    if not backups:
        click.echo(f"No backups found in {service.backup_dir}.")
        return
    for backup in backups:
        click.echo(f"{backup.file_name:<45} {backup.display_size:>10}  {backup.created_at:%Y-%m-%d %H:%M:%S}")


@backup_cli.command("delete")
@click.argument("name")
@click.pass_context
def backup_delete(ctx, name: str):
    """Delete a stored backup by file name."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    service = BackupService.from_app(app)
    try:
        deleted = service.delete_backup(name)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if not deleted:
        raise click.ClickException(f"Backup {name} not found in {service.backup_dir}.")
    click.echo(f"Deleted {name}.")


@backup_cli.group(name="worker")
@click.pass_context
def worker_group(ctx):
    """Manage the backup background worker."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    state = app.extensions.get(EXTENSION_KEY, {})
    if not state.get("worker_enabled") and not app.config.get("BACKUP_WORKER_ENABLED"):
        click.echo(
            "Warning: BACKUP_WORKER_ENABLED is false. Commands will still run, "
            "but enable the flag to surface accurate health status.",
            err=True,
        )


@worker_group.command("run")
@click.option("--loglevel", default="info", show_default=True)
@click.option("--concurrency", type=int, help="Number of worker processes/threads.")
@click.option("--pool", type=str, help="Celery pool implementation (e.g., 'prefork', 'solo', 'threads').")
@click.option("--queues", default=DEFAULT_QUEUE_NAME, show_default=True, help="Comma-separated queue list to consume.")
@click.pass_context
def worker_run(ctx, loglevel: str, concurrency: Optional[int], pool: Optional[str], queues: str):
    """
    Start the Celery worker in the current process.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    celery_app = _resolve_celery(app)

    state = app.extensions.get(EXTENSION_KEY)
    if state is not None:
        state["worker_enabled"] = True

    argv = ["worker", "--loglevel", loglevel, "-Q", queues]
    if concurrency:
        argv.extend(["--concurrency", str(concurrency)])
    if pool:
        argv.extend(["--pool", pool])

    pool_msg = f", pool: {pool}" if pool else ""
    click.echo(f"Starting backup worker (queues: {queues}, loglevel: {loglevel}{pool_msg})")
    try:
        celery_app.worker_main(argv=argv)
    except KeyboardInterrupt:
        click.echo("Worker shutdown requested. Exiting...")


@worker_group.command("ping")
@click.option("--timeout", default=10.0, show_default=True, help="Seconds to wait for a response.")
@click.pass_context
def worker_ping(ctx, timeout: float):
    """
    Validate worker connectivity by executing the heartbeat task.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    celery_app = _resolve_celery(app)
    task = celery_app.tasks.get("backup.healthcheck")
    if task is None:
        raise click.ClickException("Heartbeat task 'backup.healthcheck' is not registered.")

    result = task.apply_async()
    try:
        payload = result.get(timeout=timeout)
    except CeleryTimeoutError as exc:
        raise click.ClickException(f"Worker did not respond within {timeout}s") from exc
    except Exception as exc:  # pragma: no cover - surfacing unexpected errors
        raise click.ClickException(f"Worker ping failed: {exc}") from exc

    click.echo(json.dumps(payload, indent=2))
