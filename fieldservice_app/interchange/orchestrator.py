"""
Ordered snapshot import.

Kinds are processed in registry order. For each record the foreign keys are
rewritten through the :class:`IdentityRemapper`, the record is upserted by
the :class:`MergeResolver` inside its own savepoint, and the resulting id is
recorded for later kinds. Each kind is committed before the next starts.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Tuple

from fieldservice_app.models.enums import EntityKind

from .errors import DuplicateDetected, IdentityConflict, PerRecordError, ReferentialGapWarning
from .graph import IDENTITY_FIELD, EntityDescriptor, get_entity_registry
from .merge import MergeResolver, RecordOutcome
from .metrics import record_kind_outcomes, record_referential_gap
from .remapper import IdentityRemapper
from .serializer import FORMAT_VERSION, SnapshotGraph
from .utils import interchange_logger


@dataclass
class KindSummary:
    """Counters for one entity kind."""

    kind: EntityKind
    rows_processed: int = 0
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_skipped: int = 0
    rows_failed: int = 0
    committed: bool = True

    def as_dict(self) -> Dict[str, Any]:
        return {
            "rows_processed": self.rows_processed,
            "rows_inserted": self.rows_inserted,
            "rows_updated": self.rows_updated,
            "rows_skipped": self.rows_skipped,
            "rows_failed": self.rows_failed,
            "committed": self.committed,
        }


@dataclass
class ImportResult:
    """Outcome of one import call."""

    success: bool = True
    format_version: str | None = None
    kinds: "OrderedDict[EntityKind, KindSummary]" = field(default_factory=OrderedDict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    gaps: List[ReferentialGapWarning] = field(default_factory=list)
    duplicates: List[DuplicateDetected] = field(default_factory=list)
    record_errors: List[PerRecordError] = field(default_factory=list)

    @classmethod
    def failure(cls, message: str) -> "ImportResult":
        return cls(success=False, errors=[message])

    def summary_for(self, kind: EntityKind) -> KindSummary:
        return self.kinds.get(kind) or KindSummary(kind=kind)

    def _total(self, attribute: str) -> int:
        return sum(getattr(summary, attribute) for summary in self.kinds.values())

    @property
    def total_inserted(self) -> int:
        return self._total("rows_inserted")

    @property
    def total_updated(self) -> int:
        return self._total("rows_updated")

    @property
    def total_skipped(self) -> int:
        return self._total("rows_skipped")

    @property
    def total_failed(self) -> int:
        return self._total("rows_failed")

    @property
    def summary(self) -> str:
        if not self.success:
            reason = self.errors[0] if self.errors else "unknown error"
            return f"Import failed: {reason}"
        return (
            f"Imported {self.total_inserted + self.total_updated} records: "
            f"{self.total_inserted} inserted, {self.total_updated} updated, "
            f"{self.total_skipped} skipped, {self.total_failed} failed."
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "format_version": self.format_version,
            "summary": self.summary,
            "kinds": {kind.value: summary.as_dict() for kind, summary in self.kinds.items()},
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "gaps": [gap.as_dict() for gap in self.gaps],
            "record_errors": [error.as_dict() for error in self.record_errors],
        }


class ImportOrchestrator:
    """Drives one import through every kind in processing order."""

    def __init__(
        self,
        store,
        remapper: IdentityRemapper,
        *,
        resolver: MergeResolver | None = None,
        expected_version: str = FORMAT_VERSION,
    ):
        self.store = store
        self.remapper = remapper
        self.resolver = resolver or MergeResolver(store)
        self.expected_version = expected_version

    def import_graph(self, graph: SnapshotGraph) -> ImportResult:
        result = ImportResult(format_version=graph.format_version)
        if graph.format_version != self.expected_version:
            result.warnings.append(
                f"Snapshot format version '{graph.format_version or 'unknown'}' differs from "
                f"'{self.expected_version}'; importing on a best-effort basis."
            )

        for kind, descriptor in get_entity_registry().items():
            summary = KindSummary(kind=kind)
            result.kinds[kind] = summary
            rows = graph.records.get(kind) or []
            if not rows:
                continue
            for row in rows:
                outcome = self.import_record(descriptor, row)
                self._apply_outcome(result, summary, outcome)
            self._commit_kind(result, descriptor, summary)
            record_kind_outcomes(
                kind.value,
                inserted=summary.rows_inserted,
                updated=summary.rows_updated,
                skipped=summary.rows_skipped,
                failed=summary.rows_failed,
            )

        interchange_logger().info(
            "Snapshot import completed: %s",
            result.summary,
            extra={
                "backup_rows_inserted": result.total_inserted,
                "backup_rows_updated": result.total_updated,
                "backup_rows_skipped": result.total_skipped,
                "backup_rows_failed": result.total_failed,
                "backup_format_version": graph.format_version,
            },
        )
        return result

    def rewrite_foreign_keys(
        self, descriptor: EntityDescriptor, row: Mapping[str, Any]
    ) -> Tuple[Dict[str, Any], Tuple[ReferentialGapWarning, ...], bool]:
        """
        Map the record's foreign keys onto store ids.

        Returns ``(values, gaps, skip)``. A required reference that cannot be
        resolved sets ``skip``; an unresolved optional one is cleared and
        reported with ``skipped=False``.
        """
        values = dict(row)
        source_id = row.get(IDENTITY_FIELD)
        gaps: List[ReferentialGapWarning] = []

        for ref in descriptor.foreign_keys:
            old_id = row.get(ref.field)
            new_id = self.remapper.resolve(ref.target, old_id)
            if new_id is not None:
                values[ref.field] = new_id
                continue
            if ref.required:
                gap = ReferentialGapWarning(
                    kind=descriptor.kind,
                    source_id=source_id,
                    field=ref.field,
                    target=ref.target,
                    missing_id=old_id,
                    skipped=True,
                )
                return values, (gap,), True
            values[ref.field] = None
            if old_id is not None:
                gaps.append(
                    ReferentialGapWarning(
                        kind=descriptor.kind,
                        source_id=source_id,
                        field=ref.field,
                        target=ref.target,
                        missing_id=old_id,
                        skipped=False,
                    )
                )
        return values, tuple(gaps), False

    def import_record(self, descriptor: EntityDescriptor, row: Mapping[str, Any]) -> RecordOutcome:
        kind = descriptor.kind
        source_id = row.get(IDENTITY_FIELD)

        if self.remapper.contains(kind, source_id):
            conflict = IdentityConflict(f"Archive contains {kind.value} {source_id} more than once.")
            return RecordOutcome(
                kind=kind,
                source_id=source_id,
                status="failed",
                error=PerRecordError.from_exception(kind, source_id, conflict),
            )

        values, gaps, skip = self.rewrite_foreign_keys(descriptor, row)
        if skip:
            return RecordOutcome(kind=kind, source_id=source_id, status="skipped", gaps=gaps)

        try:
            with self.store.savepoint():
                outcome = self.resolver.resolve(descriptor, values)
                self.remapper.record(kind, source_id, outcome.new_id)
        except Exception as exc:
            interchange_logger().warning(
                "Failed to import %s %s: %s",
                kind.value,
                source_id,
                exc,
                extra={"backup_kind": kind.value, "backup_source_id": source_id},
            )
            return RecordOutcome(
                kind=kind,
                source_id=source_id,
                status="failed",
                gaps=gaps,
                error=PerRecordError.from_exception(kind, source_id, exc),
            )
        return replace(outcome, gaps=gaps)

    def _apply_outcome(self, result: ImportResult, summary: KindSummary, outcome: RecordOutcome) -> None:
        summary.rows_processed += 1
        for gap in outcome.gaps:
            result.gaps.append(gap)
            result.warnings.append(gap.message)
            record_referential_gap(gap.kind.value, skipped=gap.skipped)

        if outcome.status == "inserted":
            summary.rows_inserted += 1
        elif outcome.status == "updated":
            summary.rows_updated += 1
            if outcome.duplicate is not None:
                result.duplicates.append(outcome.duplicate)
                result.warnings.append(outcome.duplicate.message)
        elif outcome.status == "skipped":
            summary.rows_skipped += 1
        else:
            summary.rows_failed += 1
            if outcome.error is not None:
                result.record_errors.append(outcome.error)
                result.errors.append(outcome.error.message)

    def _commit_kind(self, result: ImportResult, descriptor: EntityDescriptor, summary: KindSummary) -> None:
        try:
            self.store.commit()
        except Exception as exc:
            self.store.rollback()
            self.remapper.discard(descriptor.kind)
            summary.committed = False
            summary.rows_failed += summary.rows_inserted + summary.rows_updated
            summary.rows_inserted = 0
            summary.rows_updated = 0
            result.errors.append(f"Could not save {descriptor.title} records: {exc}")
            interchange_logger().exception(
                "Snapshot import commit failed",
                extra={"backup_kind": descriptor.kind.value},
            )
