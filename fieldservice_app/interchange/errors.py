"""
Failure and notice types raised or reported by the interchange engine.

``ParseError`` and ``IOFailure`` abort an operation before any writes. The
remaining types are values collected on an import result: they describe
what happened to a single record without stopping the batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fieldservice_app.models.enums import EntityKind


class InterchangeError(Exception):
    """Base class for failures that abort a whole export or import."""


class ParseError(InterchangeError):
    """The document or archive is unreadable or structurally invalid."""


class IOFailure(InterchangeError):
    """A filesystem or compression failure while packing or unpacking."""


class MissingNaturalKey(ValueError):
    """Raised when a record lacks a field required by its kind's natural key."""

    def __init__(self, kind: EntityKind, field: str):
        self.kind = kind
        self.field = field
        super().__init__(f"{kind.value} record is missing natural key field '{field}'.")


class IdentityConflict(ValueError):
    """Raised when a source id is recorded twice for the same kind."""


@dataclass(frozen=True)
class ReferentialGapWarning:
    """A foreign key that could not be resolved within the same import."""

    kind: EntityKind
    source_id: Any
    field: str
    target: EntityKind
    missing_id: Any
    skipped: bool

    @property
    def message(self) -> str:
        action = "skipped" if self.skipped else f"imported with {self.field} cleared"
        return (
            f"{self.kind.value} {self.source_id} {action}: "
            f"referenced {self.target.value} {self.missing_id} was not imported."
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source_id": self.source_id,
            "field": self.field,
            "target": self.target.value,
            "missing_id": self.missing_id,
            "skipped": self.skipped,
        }


@dataclass(frozen=True)
class DuplicateDetected:
    """A natural-key match that turned an insert into an update."""

    kind: EntityKind
    source_id: Any
    existing_id: int
    label: str
    changed_fields: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        changed = ", ".join(self.changed_fields) if self.changed_fields else "no changes"
        return f"Updated existing {self.label} (archive id {self.source_id} -> id {self.existing_id}; {changed})."

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source_id": self.source_id,
            "existing_id": self.existing_id,
            "label": self.label,
            "changed_fields": list(self.changed_fields),
        }


@dataclass(frozen=True)
class PerRecordError:
    """An exception raised while importing one record."""

    kind: EntityKind
    source_id: Any
    error_type: str
    detail: str

    @classmethod
    def from_exception(cls, kind: EntityKind, source_id: Any, exc: BaseException) -> "PerRecordError":
        return cls(kind=kind, source_id=source_id, error_type=type(exc).__name__, detail=str(exc))

    @property
    def message(self) -> str:
        return f"{self.kind.value} {self.source_id} failed ({self.error_type}): {self.detail}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source_id": self.source_id,
            "error_type": self.error_type,
            "detail": self.detail,
        }
