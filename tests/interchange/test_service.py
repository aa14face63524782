import json
import os
import time
import zipfile
import zlib
from pathlib import Path

import pytest
from sqlalchemy import func, select

from fieldservice_app.interchange.archive import DOCUMENT_ENTRY
from fieldservice_app.interchange.errors import IOFailure
from fieldservice_app.interchange.export_filter import ExportOptions
from fieldservice_app.interchange.service import BackupService
from fieldservice_app.models import Asset, Customer, db
from fieldservice_app.models.enums import EntityKind


def _count(model) -> int:
    return db.session.execute(select(func.count()).select_from(model)).scalar_one()


def test_from_app_uses_configured_directory(app, tmp_path):
    service = BackupService.from_app(app)

    assert service.backup_dir == tmp_path / "backups"
    assert service.backup_dir.is_dir()
    assert service.app_name == "FieldService"
    assert service.format_version == "3.0"


def test_create_backup_writes_timestamped_json(backup_service, populated_store):
    result = backup_service.create_backup()

    assert result.success is True
    assert result.file_path.parent == backup_service.backup_dir
    assert result.file_path.name.startswith("fieldservice_backup_")
    assert result.file_path.suffix == ".json"
    assert result.record_counts["customer"] == 1
    assert result.record_count == sum(result.record_counts.values())
    document = json.loads(result.file_path.read_text(encoding="utf-8"))
    assert document["customers"][0]["name"] == "Acme Heating"


def test_create_zip_backup_contains_document(backup_service, populated_store):
    result = backup_service.create_zip_backup()

    assert result.success is True
    assert result.file_path.suffix == ".zip"
    with zipfile.ZipFile(result.file_path) as archive:
        assert DOCUMENT_ENTRY in archive.namelist()


def test_export_failure_is_reported_not_raised(backup_service, populated_store, tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("occupied")

    result = backup_service.create_backup(destination=blocker / "backup.json")

    assert result.success is False
    assert result.file_path is None
    assert result.message.startswith("Backup failed")


def test_restore_zip_into_empty_store(backup_service, populated_store):
    archive = backup_service.create_zip_backup().file_path
    backup_service.store.clear_all()
    assert _count(Customer) == 0

    result = backup_service.restore_backup(archive)

    assert result.success is True
    assert _count(Customer) == 1
    assert _count(Asset) == 1
    assert result.summary_for(EntityKind.PAYMENT).rows_inserted == 1


def test_restore_json_merge_is_idempotent(backup_service, populated_store):
    snapshot = backup_service.create_backup().file_path

    result = backup_service.restore_backup(snapshot, mode="merge")

    assert result.success is True
    assert result.summary_for(EntityKind.CUSTOMER).rows_updated == 1
    assert _count(Customer) == 1


def test_restore_replace_clears_records_missing_from_snapshot(backup_service, customer_factory, make_document, tmp_path):
    customer_factory(name="Stale Customer", email="stale@example.test")
    snapshot = tmp_path / "snapshot.json"
    snapshot.write_text(
        json.dumps(make_document(customers=[{"id": 3, "name": "Fresh", "email": None}])),
        encoding="utf-8",
    )

    result = backup_service.restore_backup(snapshot, mode="replace")

    assert result.success is True
    names = db.session.execute(select(Customer.name)).scalars().all()
    assert names == ["Fresh"]


def test_replace_mode_keeps_data_when_snapshot_is_unreadable(backup_service, customer_factory, tmp_path):
    customer_factory(name="Keep Me")
    snapshot = tmp_path / "broken.json"
    snapshot.write_text("{broken", encoding="utf-8")

    result = backup_service.restore_backup(snapshot, mode="replace")

    assert result.success is False
    assert "not valid JSON" in result.errors[0]
    assert _count(Customer) == 1


def test_restore_corrupt_zip_fails_cleanly(backup_service, tmp_path):
    bad = tmp_path / "bad.zip"
    bad.write_bytes(b"PK\x03\x04 truncated")

    result = backup_service.restore_backup(bad)

    assert result.success is False
    assert result.errors
    assert result.summary.startswith("Import failed")


def test_restore_zip_with_damaged_entry_fails_cleanly(backup_service, populated_store, monkeypatch):
    backup = backup_service.create_zip_backup()

    def _inflate_error(self, *args, **kwargs):
        raise zlib.error("Error -3 while decompressing data: invalid code lengths set")

    monkeypatch.setattr(zipfile.ZipFile, "extractall", _inflate_error)

    result = backup_service.import_from_zip(backup.file_path)

    assert result.success is False
    assert "corrupt" in result.errors[0]
    assert _count(Customer) == 1


def test_restore_missing_file_fails_cleanly(backup_service, tmp_path):
    result = backup_service.restore_backup(tmp_path / "missing.json")

    assert result.success is False
    assert "Could not read backup file" in result.errors[0]


def test_export_subset_writes_filtered_document(backup_service, populated_store):
    options = ExportOptions.coerce(kinds=["customer", "site"])

    result = backup_service.export_subset(options)

    assert result.success is True
    assert result.record_counts["customer"] == 1
    assert result.record_counts["site"] == 1
    assert result.record_counts["asset"] == 0


def test_export_entity_writes_single_record(backup_service, populated_store):
    asset = populated_store["asset"]

    result = backup_service.export_entity(EntityKind.ASSET, asset.id)

    assert result.success is True
    assert result.file_path.name.startswith("Asset_")
    payload = json.loads(result.file_path.read_text(encoding="utf-8"))
    assert payload["kind"] == "asset"
    assert payload["record"]["serial_number"] == "SN-1001"
    assert result.message == "Exported Asset 'SN-1001'."


def test_export_entity_missing_record(backup_service):
    result = backup_service.export_entity("customer", 404)

    assert result.success is False
    assert "not found" in result.message


def test_list_backups_newest_first_and_ignores_other_files(backup_service):
    older = backup_service.backup_dir / "fieldservice_backup_20240101_000000.json"
    newer = backup_service.backup_dir / "fieldservice_backup_20240201_000000.zip"
    older.write_text("{}")
    newer.write_bytes(b"zip")
    (backup_service.backup_dir / "notes.txt").write_text("ignore me")
    now = time.time()
    os.utime(older, (now - 3600, now - 3600))
    os.utime(newer, (now, now))

    backups = backup_service.list_backups()

    assert [backup.file_name for backup in backups] == [newer.name, older.name]
    assert backups[0].format == "zip"
    assert backups[1].display_size == "2 B"


def test_delete_backup_by_name(backup_service):
    target = backup_service.backup_dir / "fieldservice_backup_20240101_000000.json"
    target.write_text("{}")

    assert backup_service.delete_backup(target.name) is True
    assert not target.exists()
    assert backup_service.delete_backup(target.name) is False


def test_delete_backup_refuses_paths_outside_directory(backup_service, tmp_path):
    outside = tmp_path / "outside.json"
    outside.write_text("{}")

    with pytest.raises(ValueError):
        backup_service.delete_backup(outside)
    with pytest.raises(ValueError):
        backup_service.delete_backup(Path("..") / "outside.json")
    assert outside.exists()


def test_delete_backup_unlink_error_is_io_failure(backup_service, monkeypatch):
    target = backup_service.backup_dir / "locked.json"
    target.write_text("{}")

    def _refuse(self, missing_ok=False):
        raise PermissionError("locked")

    monkeypatch.setattr(Path, "unlink", _refuse)

    with pytest.raises(IOFailure):
        backup_service.delete_backup(target.name)
