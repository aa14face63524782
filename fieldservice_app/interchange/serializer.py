"""
Snapshot serializer.

Converts the live entity graph to a portable document (one list per entity
kind) and back. Only persisted column values are written: relationship
collections are never followed, so back-references such as
Invoice.payments / Payment.invoice cannot produce cycles. Fixed-point values
travel as decimal strings and timestamps as ISO-8601 strings.
"""

from __future__ import annotations

import enum
import json
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, MutableMapping

import sqlalchemy as sa

from fieldservice_app.models.enums import EntityKind

from .errors import ParseError
from .graph import IDENTITY_FIELD, PROCESSING_ORDER, EntityDescriptor, get_entity_registry

FORMAT_VERSION = "3.0"
DEFAULT_APP_NAME = "FieldService"

Record = Dict[str, Any]


def _empty_records() -> "OrderedDict[EntityKind, List[Record]]":
    return OrderedDict((kind, []) for kind in PROCESSING_ORDER)


@dataclass
class SnapshotGraph:
    """In-memory entity graph: typed column values keyed by kind."""

    records: "OrderedDict[EntityKind, List[Record]]" = field(default_factory=_empty_records)
    format_version: str = FORMAT_VERSION
    exported_at: datetime | None = None
    app_name: str | None = DEFAULT_APP_NAME

    def get(self, kind: EntityKind) -> List[Record]:
        return self.records.setdefault(kind, [])

    @property
    def record_counts(self) -> Dict[str, int]:
        return {kind.value: len(self.records.get(kind, ())) for kind in PROCESSING_ORDER}

    @property
    def total_records(self) -> int:
        return sum(len(rows) for rows in self.records.values())


def record_from_instance(descriptor: EntityDescriptor, instance: Any) -> Record:
    """Capture every persisted column of a model instance."""
    return {column: getattr(instance, column) for column in descriptor.columns}


def collect_graph(store, *, app_name: str | None = None, format_version: str = FORMAT_VERSION) -> SnapshotGraph:
    """Read every kind from ``store`` into a :class:`SnapshotGraph`."""
    registry = get_entity_registry()
    graph = SnapshotGraph(
        format_version=format_version,
        exported_at=datetime.now(timezone.utc),
        app_name=app_name or DEFAULT_APP_NAME,
    )
    for kind, descriptor in registry.items():
        graph.records[kind] = [record_from_instance(descriptor, instance) for instance in store.fetch_all(kind)]
    return graph


def _encode_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, bool):
        return value
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (str, int, float)):
        return value
    raise TypeError(f"Cannot encode value of type {type(value).__name__}")


def encode_record(descriptor: EntityDescriptor, record: Mapping[str, Any]) -> Record:
    """Encode one record's column values into JSON-compatible primitives."""
    return {column: _encode_value(record.get(column)) for column in descriptor.columns if column in record}


def serialize(graph: SnapshotGraph) -> Dict[str, Any]:
    """Produce the portable document for ``graph``."""
    registry = get_entity_registry()
    document: Dict[str, Any] = {
        "format_version": graph.format_version,
        "exported_at": _encode_value(graph.exported_at),
        "app_name": graph.app_name,
        "record_counts": graph.record_counts,
    }
    for kind, descriptor in registry.items():
        rows = sorted(graph.records.get(kind, ()), key=lambda row: row.get(IDENTITY_FIELD) or 0)
        document[descriptor.collection] = [encode_record(descriptor, row) for row in rows]
    return document


def _decode_value(column: sa.Column, raw: Any) -> Any:
    if raw is None:
        return None
    column_type = column.type
    if isinstance(column_type, sa.Enum):
        enum_class = column_type.enum_class
        if enum_class is None:
            return str(raw)
        try:
            return enum_class(raw)
        except ValueError:
            if isinstance(raw, str) and raw in enum_class.__members__:
                return enum_class[raw]
            raise
    if isinstance(column_type, sa.Boolean):
        if not isinstance(raw, bool):
            raise TypeError("expected a boolean")
        return raw
    if isinstance(column_type, sa.Integer):
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise TypeError("expected an integer")
        return raw
    if isinstance(column_type, sa.Numeric):
        if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
            raise TypeError("expected a decimal string")
        return Decimal(str(raw))
    if isinstance(column_type, sa.DateTime):
        return datetime.fromisoformat(raw)
    if isinstance(column_type, sa.Date):
        return date.fromisoformat(raw)
    if isinstance(column_type, sa.Time):
        return time.fromisoformat(raw)
    if isinstance(column_type, sa.String):
        if not isinstance(raw, str):
            raise TypeError("expected a string")
        return raw
    return raw


def decode_record(descriptor: EntityDescriptor, item: Mapping[str, Any], *, index: int = 0) -> Record:
    """Decode one serialized record; unknown keys are ignored."""
    location = f"{descriptor.collection}[{index}]"
    source_id = item.get(IDENTITY_FIELD)
    if isinstance(source_id, bool) or not isinstance(source_id, int):
        raise ParseError(f"{location} has no integer '{IDENTITY_FIELD}'.")

    record: Record = {}
    for column in descriptor.model.__table__.columns:
        if column.key not in item:
            continue
        try:
            record[column.key] = _decode_value(column, item[column.key])
        except (TypeError, ValueError, InvalidOperation) as exc:
            raise ParseError(f"{location}.{column.key} is invalid: {exc}") from exc
    return record


def deserialize(document: Any) -> SnapshotGraph:
    """
    Rebuild a :class:`SnapshotGraph` from a parsed document.

    Raises :class:`ParseError` on any structural problem; nothing is returned
    unless the whole document decodes.
    """
    if not isinstance(document, Mapping):
        raise ParseError("Snapshot document must be a JSON object.")

    version = document.get("format_version")
    if version is not None and not isinstance(version, (str, int, float)):
        raise ParseError("format_version must be a string.")

    exported_at = document.get("exported_at")
    if exported_at is not None:
        try:
            exported_at = datetime.fromisoformat(exported_at)
        except (TypeError, ValueError) as exc:
            raise ParseError(f"exported_at is not an ISO-8601 timestamp: {exported_at!r}") from exc

    app_name = document.get("app_name")
    records: MutableMapping[EntityKind, List[Record]] = _empty_records()
    for kind, descriptor in get_entity_registry().items():
        raw_rows = document.get(descriptor.collection)
        if raw_rows is None:
            continue
        if not isinstance(raw_rows, list):
            raise ParseError(f"'{descriptor.collection}' must be a list.")
        decoded = []
        for index, item in enumerate(raw_rows):
            if not isinstance(item, Mapping):
                raise ParseError(f"{descriptor.collection}[{index}] must be an object.")
            decoded.append(decode_record(descriptor, item, index=index))
        records[kind] = decoded

    return SnapshotGraph(
        records=records,
        format_version=str(version) if version is not None else "",
        exported_at=exported_at,
        app_name=app_name if isinstance(app_name, str) else None,
    )


def dumps(document: Mapping[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def loads(text: str | bytes) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(f"Snapshot is not valid JSON: {exc}") from exc
