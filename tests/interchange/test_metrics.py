from prometheus_client import REGISTRY


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_import_counts_records_and_gaps(backup_service, make_document):
    inserted_before = _sample("backup_import_records_total", kind="customer", outcome="inserted")
    skipped_before = _sample("backup_import_records_total", kind="asset", outcome="skipped")
    gaps_before = _sample("backup_import_referential_gaps_total", kind="asset", action="skipped")

    backup_service.import_document(
        make_document(
            customers=[{"id": 1, "name": "Acme", "email": None}],
            assets=[{"id": 2, "customer_id": 404, "serial_number": "SN-2"}],
        )
    )

    assert _sample("backup_import_records_total", kind="customer", outcome="inserted") == inserted_before + 1
    assert _sample("backup_import_records_total", kind="asset", outcome="skipped") == skipped_before + 1
    assert _sample("backup_import_referential_gaps_total", kind="asset", action="skipped") == gaps_before + 1


def test_archive_operations_and_export_duration(backup_service, populated_store, tmp_path):
    packed_before = _sample("backup_archive_operations_total", action="pack", status="success")
    failed_unpack_before = _sample("backup_archive_operations_total", action="unpack", status="failure")
    exports_before = _sample("backup_run_duration_seconds_count", direction="export")

    backup_service.create_zip_backup()
    bad = tmp_path / "bad.zip"
    bad.write_bytes(b"not a zip")
    backup_service.restore_backup(bad)

    assert _sample("backup_archive_operations_total", action="pack", status="success") == packed_before + 1
    assert _sample("backup_archive_operations_total", action="unpack", status="failure") == failed_unpack_before + 1
    assert _sample("backup_run_duration_seconds_count", direction="export") == exports_before + 1
