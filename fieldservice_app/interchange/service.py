"""
Caller-facing backup operations.

``BackupService`` ties the serializer, archive packager, export filter and
import orchestrator together behind the operations the CLI, worker and HTTP
API call: export to JSON or zip, restore from either, list and delete stored
backups, and export a single record.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal

from sqlalchemy.exc import SQLAlchemyError

from fieldservice_app.models.enums import EntityKind

from .archive import pack_archive, unpack_archive
from .errors import InterchangeError, IOFailure, ParseError
from .export_filter import ExportOptions, filter_graph
from .graph import descriptor_for
from .metrics import observe_run_duration, record_archive_operation
from .orchestrator import ImportOrchestrator, ImportResult
from .remapper import IdentityRemapper
from .serializer import (
    DEFAULT_APP_NAME,
    FORMAT_VERSION,
    collect_graph,
    deserialize,
    dumps,
    encode_record,
    loads,
    record_from_instance,
    serialize,
)
from .store import SnapshotStore
from .utils import (
    BACKUP_EXTENSIONS,
    format_size,
    interchange_logger,
    resolve_backup_directory,
    timestamped_filename,
)

RestoreMode = Literal["merge", "replace"]
RESTORE_MODES: tuple[str, ...] = ("merge", "replace")


@dataclass
class BackupResult:
    """Outcome of an export."""

    success: bool
    file_path: Path | None = None
    message: str = ""
    record_count: int = 0
    record_counts: Dict[str, int] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "file_path": str(self.file_path) if self.file_path else None,
            "file_name": self.file_path.name if self.file_path else None,
            "message": self.message,
            "record_count": self.record_count,
            "record_counts": dict(self.record_counts),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class BackupInfo:
    """A backup file found in the backup directory."""

    path: Path
    created_at: datetime
    size_bytes: int

    @property
    def file_name(self) -> str:
        return self.path.name

    @property
    def format(self) -> str:
        return self.path.suffix.lstrip(".").lower()

    @property
    def display_size(self) -> str:
        return format_size(self.size_bytes)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "file_path": str(self.path),
            "format": self.format,
            "created_at": self.created_at.isoformat(),
            "size_bytes": self.size_bytes,
            "display_size": self.display_size,
        }


class BackupService:
    """Export and restore snapshots of the field-service store."""

    def __init__(
        self,
        backup_dir: Path | str,
        *,
        store: SnapshotStore | None = None,
        app_name: str = DEFAULT_APP_NAME,
        format_version: str = FORMAT_VERSION,
    ):
        self.backup_dir = Path(backup_dir)
        self.store = store or SnapshotStore()
        self.app_name = app_name
        self.format_version = format_version

    @classmethod
    def from_app(cls, app, *, store: SnapshotStore | None = None) -> "BackupService":
        return cls(
            resolve_backup_directory(app),
            store=store,
            app_name=app.config.get("BACKUP_APP_NAME") or DEFAULT_APP_NAME,
            format_version=app.config.get("BACKUP_FORMAT_VERSION") or FORMAT_VERSION,
        )

    # Export -----------------------------------------------------------------

    def build_document(self, options: ExportOptions | None = None) -> Dict[str, Any]:
        graph = collect_graph(self.store, app_name=self.app_name, format_version=self.format_version)
        if options is not None and not options.is_full_export:
            graph = filter_graph(graph, options)
        return serialize(graph)

    def create_backup(self, options: ExportOptions | None = None, *, destination: Path | None = None) -> BackupResult:
        """Write a plain JSON snapshot."""
        return self._export(options, destination=destination, archive=False)

    def create_zip_backup(
        self, options: ExportOptions | None = None, *, destination: Path | None = None
    ) -> BackupResult:
        """Write a zip archive holding the snapshot and its metadata."""
        return self._export(options, destination=destination, archive=True)

    def export_subset(
        self, options: ExportOptions, *, archive: bool = False, destination: Path | None = None
    ) -> BackupResult:
        return self._export(options, destination=destination, archive=archive)

    def _export(self, options: ExportOptions | None, *, destination: Path | None, archive: bool) -> BackupResult:
        started = time.perf_counter()
        target = Path(destination) if destination else self.backup_dir / timestamped_filename(
            "zip" if archive else "json"
        )
        try:
            document = self.build_document(options)
            if archive:
                pack_archive(document, target, app_name=self.app_name, format_version=self.format_version)
                record_archive_operation("pack", "success")
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(dumps(document), encoding="utf-8")
        except (InterchangeError, OSError, SQLAlchemyError) as exc:
            if archive:
                record_archive_operation("pack", "failure")
            interchange_logger().exception("Backup export failed", extra={"backup_target": str(target)})
            return BackupResult(success=False, message=f"Backup failed: {exc}")
        finally:
            observe_run_duration("export", time.perf_counter() - started)

        counts = dict(document.get("record_counts") or {})
        total = sum(counts.values())
        interchange_logger().info(
            "Backup written to %s",
            target,
            extra={"backup_target": str(target), "backup_record_count": total, "backup_archive": archive},
        )
        return BackupResult(
            success=True,
            file_path=target,
            message=f"Backup created with {total} records.",
            record_count=total,
            record_counts=counts,
        )

    def export_entity(self, kind: EntityKind | str, entity_id: int, *, destination: Path | None = None) -> BackupResult:
        """Write a single record to ``<Kind>_<timestamp>.json``."""
        descriptor = descriptor_for(kind)
        instance = self.store.get(descriptor.kind, entity_id)
        if instance is None:
            return BackupResult(success=False, message=f"{descriptor.title} {entity_id} not found.")

        payload = {
            "format_version": self.format_version,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "app_name": self.app_name,
            "kind": descriptor.kind.value,
            "record": encode_record(descriptor, record_from_instance(descriptor, instance)),
        }
        prefix = descriptor.title.replace(" ", "")
        target = Path(destination) if destination else self.backup_dir / timestamped_filename("json", prefix=prefix)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(dumps(payload), encoding="utf-8")
        except OSError as exc:
            return BackupResult(success=False, message=f"Export failed: {exc}")
        return BackupResult(
            success=True,
            file_path=target,
            message=f"Exported {descriptor.describe(payload['record'])}.",
            record_count=1,
            record_counts={descriptor.kind.value: 1},
        )

    # Import -----------------------------------------------------------------

    def restore_backup(self, path: Path | str, *, mode: RestoreMode = "merge") -> ImportResult:
        """Restore from a ``.zip`` archive or a plain JSON snapshot."""
        path = Path(path)
        if path.suffix.lower() == ".zip":
            return self.import_from_zip(path, mode=mode)
        return self.import_from_json(path, mode=mode)

    def import_from_json(self, path: Path | str, *, mode: RestoreMode = "merge") -> ImportResult:
        try:
            document = loads(self._read_bytes(Path(path)))
        except InterchangeError as exc:
            return self._aborted(exc, path)
        return self.import_document(document, mode=mode)

    def import_from_zip(self, path: Path | str, *, mode: RestoreMode = "merge") -> ImportResult:
        try:
            document = unpack_archive(Path(path))
        except InterchangeError as exc:
            record_archive_operation("unpack", "failure")
            return self._aborted(exc, path)
        record_archive_operation("unpack", "success")
        return self.import_document(document, mode=mode)

    def import_document(
        self,
        document: Any,
        *,
        mode: RestoreMode = "merge",
        remapper: IdentityRemapper | None = None,
    ) -> ImportResult:
        """
        Import a parsed snapshot document.

        Nothing is written unless the whole document decodes. ``replace`` mode
        clears every entity table first; ids are remapped either way.
        """
        if mode not in RESTORE_MODES:
            raise ValueError(f"Unknown restore mode '{mode}'. Expected one of: {', '.join(RESTORE_MODES)}")
        try:
            graph = deserialize(document)
        except ParseError as exc:
            return self._aborted(exc, None)

        started = time.perf_counter()
        if mode == "replace":
            removed = self.store.clear_all()
            interchange_logger().info(
                "Cleared existing records before restore",
                extra={"backup_rows_removed": removed},
            )

        orchestrator = ImportOrchestrator(
            self.store,
            remapper or IdentityRemapper(),
            expected_version=self.format_version,
        )
        result = orchestrator.import_graph(graph)
        observe_run_duration("import", time.perf_counter() - started)
        return result

    @staticmethod
    def _read_bytes(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise IOFailure(f"Could not read backup file {path}: {exc}") from exc

    @staticmethod
    def _aborted(exc: Exception, path: Path | str | None) -> ImportResult:
        interchange_logger().warning(
            "Backup import aborted before any writes: %s",
            exc,
            extra={"backup_source": str(path) if path else None, "backup_error_type": type(exc).__name__},
        )
        return ImportResult.failure(str(exc))

    # Catalogue --------------------------------------------------------------

    def list_backups(self) -> List[BackupInfo]:
        """Backups in the backup directory, newest first."""
        if not self.backup_dir.exists():
            return []
        suffixes = {f".{extension}" for extension in BACKUP_EXTENSIONS}
        backups = []
        for path in self.backup_dir.iterdir():
            if not path.is_file() or path.suffix.lower() not in suffixes:
                continue
            stat = path.stat()
            backups.append(
                BackupInfo(
                    path=path,
                    created_at=datetime.fromtimestamp(stat.st_mtime, timezone.utc),
                    size_bytes=stat.st_size,
                )
            )
        return sorted(backups, key=lambda info: (info.created_at, info.file_name), reverse=True)

    def delete_backup(self, path: Path | str) -> bool:
        """
        Delete a backup by name or path. Only files inside the backup
        directory can be removed; returns False when the file does not exist.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.backup_dir / candidate
        resolved = candidate.resolve()
        if self.backup_dir.resolve() not in resolved.parents:
            raise ValueError(f"{path} is not inside the backup directory.")
        if not resolved.is_file():
            return False
        try:
            resolved.unlink()
        except OSError as exc:
            raise IOFailure(f"Could not delete backup {resolved}: {exc}") from exc
        interchange_logger().info("Deleted backup %s", resolved)
        return True
