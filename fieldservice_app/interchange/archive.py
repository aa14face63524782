"""
Zip packaging for snapshot documents.

An archive holds the document as ``backup.json`` plus a short
``metadata.txt`` describing who wrote it and when. Both directions stage
files in a scoped temporary directory that is removed on every exit path.
"""

from __future__ import annotations

import logging
import tempfile
import zipfile
import zlib
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

from .errors import IOFailure, ParseError
from .serializer import DEFAULT_APP_NAME, FORMAT_VERSION, dumps, loads

logger = logging.getLogger(__name__)

DOCUMENT_ENTRY = "backup.json"
METADATA_ENTRY = "metadata.txt"
DOCUMENT_SUFFIX = ".json"
TEMP_PREFIX = "fieldservice_backup_"


def build_metadata(
    *,
    app_name: str = DEFAULT_APP_NAME,
    created_at: datetime | None = None,
    format_version: str = FORMAT_VERSION,
    record_count: int | None = None,
) -> str:
    created_at = created_at or datetime.now(timezone.utc)
    lines = [
        f"{app_name} Backup",
        f"Created: {created_at.isoformat()}",
        f"Version: {format_version}",
    ]
    if record_count is not None:
        lines.append(f"Records: {record_count}")
    return "\n".join(lines) + "\n"


def pack_archive(
    document: Mapping[str, Any],
    destination: Path,
    *,
    app_name: str = DEFAULT_APP_NAME,
    format_version: str | None = None,
    record_count: int | None = None,
) -> Path:
    """
    Write ``document`` into a zip container at ``destination``.

    Raises:
        IOFailure: the staging file or the container could not be written.
    """
    destination = Path(destination)
    if record_count is None:
        counts = document.get("record_counts") or {}
        record_count = sum(value for value in counts.values() if isinstance(value, int))
    metadata = build_metadata(
        app_name=app_name,
        format_version=format_version or str(document.get("format_version") or FORMAT_VERSION),
        record_count=record_count,
    )
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX) as staging_dir:
            staged = Path(staging_dir) / DOCUMENT_ENTRY
            staged.write_text(dumps(document), encoding="utf-8")
            with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                archive.write(staged, arcname=DOCUMENT_ENTRY)
                archive.writestr(METADATA_ENTRY, metadata)
    except OSError as exc:
        raise IOFailure(f"Could not write archive {destination}: {exc}") from exc
    logger.debug("Snapshot archive written to %s", destination)
    return destination


def _locate_document(root: Path) -> Path:
    canonical = root / DOCUMENT_ENTRY
    if canonical.is_file():
        return canonical
    candidates = sorted(path for path in root.rglob(f"*{DOCUMENT_SUFFIX}") if path.is_file())
    if not candidates:
        raise ParseError(f"Archive does not contain '{DOCUMENT_ENTRY}' or any other {DOCUMENT_SUFFIX} entry.")
    logger.warning("Archive is missing %s; falling back to %s", DOCUMENT_ENTRY, candidates[0].name)
    return candidates[0]


def _safe_members(archive: zipfile.ZipFile) -> list[str]:
    members = []
    for name in archive.namelist():
        path = PurePosixPath(name)
        if path.is_absolute() or ".." in path.parts:
            raise ParseError(f"Archive entry '{name}' escapes the archive root.")
        members.append(name)
    return members


def unpack_archive(source: Path) -> Any:
    """
    Extract ``source`` and return the parsed document it contains.

    Raises:
        ParseError: no document entry, or the entry is not valid JSON.
        IOFailure: the container is corrupt or cannot be read.
    """
    source = Path(source)
    try:
        with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX) as extract_dir:
            root = Path(extract_dir)
            _extract(source, root)
            document_path = _locate_document(root)
            return loads(document_path.read_bytes())
    except OSError as exc:
        raise IOFailure(f"Could not read archive {source}: {exc}") from exc


def _extract(source: Path, root: Path) -> None:
    try:
        with zipfile.ZipFile(source) as archive:
            archive.extractall(root, members=_safe_members(archive))
    # Damaged deflate data, truncated streams, encrypted entries and unknown
    # compression methods all surface from extractall as non-zipfile errors.
    except (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError) as exc:
        raise IOFailure(f"Archive {source} is corrupt: {exc}") from exc


def read_metadata(source: Path) -> dict[str, str]:
    """Return the key/value lines of an archive's metadata entry, if any."""
    try:
        with zipfile.ZipFile(source) as archive:
            if METADATA_ENTRY not in archive.namelist():
                return {}
            text = archive.read(METADATA_ENTRY).decode("utf-8", errors="replace")
    except (zipfile.BadZipFile, OSError) as exc:
        raise IOFailure(f"Could not read archive {source}: {exc}") from exc

    metadata: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            metadata[key.strip().lower()] = value.strip()
    return metadata
