import json
import zipfile
import zlib

import pytest

from fieldservice_app.interchange.archive import (
    DOCUMENT_ENTRY,
    METADATA_ENTRY,
    pack_archive,
    read_metadata,
    unpack_archive,
)
from fieldservice_app.interchange.errors import IOFailure, ParseError


def _document():
    return {
        "format_version": "3.0",
        "exported_at": "2024-05-01T12:00:00+00:00",
        "app_name": "FieldService",
        "record_counts": {"customer": 2, "site": 1},
        "customers": [{"id": 1, "name": "Ação Ltda"}, {"id": 2, "name": "Beta"}],
        "sites": [{"id": 1, "customer_id": 1, "address": "1 Main"}],
    }


def test_pack_writes_document_and_metadata(tmp_path):
    target = pack_archive(_document(), tmp_path / "out" / "backup.zip", app_name="FieldService", format_version="3.0")

    with zipfile.ZipFile(target) as archive:
        names = archive.namelist()
        assert DOCUMENT_ENTRY in names
        assert METADATA_ENTRY in names
        assert archive.getinfo(DOCUMENT_ENTRY).compress_type == zipfile.ZIP_DEFLATED
        metadata_text = archive.read(METADATA_ENTRY).decode("utf-8")

    assert metadata_text.startswith("FieldService Backup\n")
    metadata = read_metadata(target)
    assert metadata["version"] == "3.0"
    assert metadata["records"] == "3"
    assert "created" in metadata


def test_pack_then_unpack_returns_equal_document(tmp_path):
    document = _document()
    target = pack_archive(document, tmp_path / "backup.zip")

    assert unpack_archive(target) == document


def test_unpack_falls_back_to_first_json_entry(tmp_path):
    target = tmp_path / "legacy.zip"
    with zipfile.ZipFile(target, "w") as archive:
        archive.writestr("notes.txt", "hello")
        archive.writestr("b_export.json", json.dumps({"format_version": "2.0", "customers": []}))
        archive.writestr("a_export.json", json.dumps({"format_version": "1.0", "customers": []}))

    assert unpack_archive(target)["format_version"] == "1.0"


def test_unpack_without_any_json_entry_is_parse_error(tmp_path):
    target = tmp_path / "empty.zip"
    with zipfile.ZipFile(target, "w") as archive:
        archive.writestr(METADATA_ENTRY, "FieldService Backup\n")

    with pytest.raises(ParseError):
        unpack_archive(target)


def test_unpack_corrupt_container_is_io_failure(tmp_path):
    target = tmp_path / "corrupt.zip"
    target.write_bytes(b"this is not a zip file")

    with pytest.raises(IOFailure):
        unpack_archive(target)


def _damage_entry_data(path, entry_name):
    """Overwrite bytes in the middle of an entry's compressed data, leaving the directory intact."""
    with zipfile.ZipFile(path) as archive:
        info = archive.getinfo(entry_name)
    raw = bytearray(path.read_bytes())
    name_length = int.from_bytes(raw[info.header_offset + 26 : info.header_offset + 28], "little")
    extra_length = int.from_bytes(raw[info.header_offset + 28 : info.header_offset + 30], "little")
    data_start = info.header_offset + 30 + name_length + extra_length
    middle = data_start + info.compress_size // 2
    for offset in range(middle, min(middle + 35, data_start + info.compress_size)):
        raw[offset] ^= 0xFF
    path.write_bytes(bytes(raw))


def test_unpack_damaged_compressed_data_is_io_failure(tmp_path):
    document = _document()
    document["customers"] = [{"id": index, "name": f"Customer {index}", "email": f"c{index}@example.test"} for index in range(1, 201)]
    document["record_counts"] = {"customer": 200}
    target = pack_archive(document, tmp_path / "backup.zip")
    _damage_entry_data(target, DOCUMENT_ENTRY)

    with pytest.raises(IOFailure, match="corrupt"):
        unpack_archive(target)


@pytest.mark.parametrize(
    "error",
    [
        zlib.error("invalid code lengths set"),
        EOFError("Compressed file ended before the end-of-stream marker was reached"),
        RuntimeError("File is encrypted, password required for extraction"),
        NotImplementedError("That compression method is not supported"),
    ],
)
def test_unpack_extraction_errors_become_io_failure(tmp_path, monkeypatch, error):
    target = pack_archive(_document(), tmp_path / "backup.zip")

    def _fail(self, *args, **kwargs):
        raise error

    monkeypatch.setattr(zipfile.ZipFile, "extractall", _fail)

    with pytest.raises(IOFailure) as excinfo:
        unpack_archive(target)
    assert excinfo.value.__cause__ is error


def test_unpack_missing_file_is_io_failure(tmp_path):
    with pytest.raises(IOFailure):
        unpack_archive(tmp_path / "missing.zip")


def test_unpack_rejects_entries_escaping_the_root(tmp_path):
    target = tmp_path / "evil.zip"
    with zipfile.ZipFile(target, "w") as archive:
        archive.writestr("../escape.json", "{}")

    with pytest.raises(ParseError, match="escapes"):
        unpack_archive(target)


def test_unpack_invalid_json_entry_is_parse_error(tmp_path):
    target = tmp_path / "broken.zip"
    with zipfile.ZipFile(target, "w") as archive:
        archive.writestr(DOCUMENT_ENTRY, "{broken")

    with pytest.raises(ParseError):
        unpack_archive(target)
