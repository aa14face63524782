"""
Natural-key upsert for one incoming record.

A kind with a natural key is matched against the store: a hit updates the
allow-listed mutable fields of the existing row and reuses its id, a miss
inserts. Kinds without a natural key are always inserted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from fieldservice_app.models.enums import EntityKind

from .errors import DuplicateDetected, MissingNaturalKey, PerRecordError, ReferentialGapWarning
from .graph import IDENTITY_FIELD, EntityDescriptor

OutcomeStatus = Literal["inserted", "updated", "skipped", "failed"]
AUDIT_FIELDS: Tuple[str, ...] = ("created_at", "updated_at")


@dataclass(frozen=True)
class MergeTarget:
    """Describes how an incoming record should be written."""

    action: Literal["insert", "update"]
    existing: Any = None


@dataclass(frozen=True)
class RecordOutcome:
    """What happened to one archive record."""

    kind: EntityKind
    source_id: Any
    status: OutcomeStatus
    new_id: Optional[int] = None
    changes: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)
    gaps: Tuple[ReferentialGapWarning, ...] = ()
    duplicate: Optional[DuplicateDetected] = None
    error: Optional[PerRecordError] = None

    @property
    def is_written(self) -> bool:
        return self.status in ("inserted", "updated")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_merge_target(store, descriptor: EntityDescriptor, values: Mapping[str, Any]) -> MergeTarget:
    """
    Decide whether ``values`` updates an existing row or becomes a new one.

    Raises:
        MissingNaturalKey: a required natural-key field is absent or blank.
    """
    natural_key = descriptor.natural_key
    if natural_key is None:
        return MergeTarget(action="insert")

    for field_name in natural_key.required:
        if _is_blank(values.get(field_name)):
            raise MissingNaturalKey(descriptor.kind, field_name)

    existing = store.find_by_natural_key(descriptor.kind, values)
    if existing is not None:
        return MergeTarget(action="update", existing=existing)
    return MergeTarget(action="insert")


def build_insert_values(descriptor: EntityDescriptor, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Non-identity column values; audit timestamps only when the archive has them."""
    columns = set(descriptor.columns)
    payload = {}
    for key, value in values.items():
        if key == IDENTITY_FIELD or key not in columns:
            continue
        if key in AUDIT_FIELDS and value is None:
            continue
        payload[key] = value
    return payload


class MergeResolver:
    """Applies natural-key upsert semantics through a :class:`SnapshotStore`."""

    def __init__(self, store):
        self.store = store

    def resolve(self, descriptor: EntityDescriptor, values: Mapping[str, Any]) -> RecordOutcome:
        source_id = values.get(IDENTITY_FIELD)
        target = resolve_merge_target(self.store, descriptor, values)

        if target.action == "update":
            existing = target.existing
            updates = {name: values[name] for name in descriptor.mutable_fields if name in values}
            changes = self.store.update(existing, updates)
            duplicate = DuplicateDetected(
                kind=descriptor.kind,
                source_id=source_id,
                existing_id=existing.id,
                label=descriptor.describe(values),
                changed_fields=tuple(changes),
            )
            return RecordOutcome(
                kind=descriptor.kind,
                source_id=source_id,
                status="updated",
                new_id=existing.id,
                changes=changes,
                duplicate=duplicate,
            )

        instance = self.store.insert(descriptor.kind, build_insert_values(descriptor, values))
        return RecordOutcome(
            kind=descriptor.kind,
            source_id=source_id,
            status="inserted",
            new_id=instance.id,
        )
