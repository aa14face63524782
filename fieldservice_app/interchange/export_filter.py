"""
Subset export.

Selects customers by creation date, then walks the remaining kinds in
processing order keeping only records whose required parent survived. Optional
references to records left out of the subset are cleared in the exported copy.

Kinds are not pulled in upward unless ``include_parents`` is set: exporting a
child kind without its parent kind keeps the child's required reference, and
the importer later skips that child as an orphan.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Dict, FrozenSet, Iterable, Set

from fieldservice_app.models.enums import EntityKind

from .graph import IDENTITY_FIELD, PROCESSING_ORDER, ancestors_of, get_entity_registry, resolve_kinds
from .serializer import SnapshotGraph

DATE_FIELD = "created_at"


def _parse_bound(value: Any) -> date | datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value) if "T" in value or " " in value else date.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"Invalid date bound: {value!r}") from exc
    raise ValueError(f"Invalid date bound: {value!r}")


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _lower_bound(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return _as_naive_utc(value)
    return datetime.combine(value, time.min)


def _upper_bound(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return _as_naive_utc(value)
    return datetime.combine(value, time.max)


@dataclass(frozen=True)
class ExportOptions:
    """Which kinds to export and the customer creation window."""

    kinds: FrozenSet[EntityKind] = field(default_factory=lambda: frozenset(PROCESSING_ORDER))
    from_date: date | datetime | None = None
    to_date: date | datetime | None = None
    include_parents: bool = False

    @classmethod
    def coerce(
        cls,
        *,
        kinds: Iterable[EntityKind | str] | None = None,
        from_date: Any = None,
        to_date: Any = None,
        include_parents: bool = False,
    ) -> "ExportOptions":
        """Build options from loosely typed input (CLI flags, JSON bodies)."""
        selected = frozenset(resolve_kinds(kinds)) if kinds else frozenset(PROCESSING_ORDER)
        lower = _parse_bound(from_date)
        upper = _parse_bound(to_date)
        if lower is not None and upper is not None and _lower_bound(lower) > _upper_bound(upper):
            raise ValueError("from_date must not be after to_date.")
        return cls(kinds=selected, from_date=lower, to_date=upper, include_parents=bool(include_parents))

    @property
    def is_full_export(self) -> bool:
        return self.kinds == frozenset(PROCESSING_ORDER) and self.from_date is None and self.to_date is None

    def effective_kinds(self) -> FrozenSet[EntityKind]:
        if not self.include_parents:
            return self.kinds
        expanded: Set[EntityKind] = set(self.kinds)
        for kind in self.kinds:
            expanded.update(ancestors_of(kind))
        return frozenset(expanded)

    def includes_created(self, created_at: Any) -> bool:
        if self.from_date is None and self.to_date is None:
            return True
        if not isinstance(created_at, datetime):
            if isinstance(created_at, date):
                created_at = datetime.combine(created_at, time.min)
            else:
                return False
        moment = _as_naive_utc(created_at)
        if self.from_date is not None and moment < _lower_bound(self.from_date):
            return False
        if self.to_date is not None and moment > _upper_bound(self.to_date):
            return False
        return True

    def as_dict(self) -> Dict[str, Any]:
        return {
            "kinds": [kind.value for kind in PROCESSING_ORDER if kind in self.kinds],
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
            "include_parents": self.include_parents,
        }


def filter_graph(graph: SnapshotGraph, options: ExportOptions) -> SnapshotGraph:
    """Return a new graph restricted by ``options``; ``graph`` is left untouched."""
    kinds = options.effective_kinds()
    selected: Dict[EntityKind, Set[Any]] = {}
    filtered = SnapshotGraph(
        format_version=graph.format_version,
        exported_at=graph.exported_at,
        app_name=graph.app_name,
    )

    for kind, descriptor in get_entity_registry().items():
        if kind not in kinds:
            selected[kind] = set()
            continue

        rows = graph.records.get(kind) or []
        if kind is EntityKind.CUSTOMER:
            rows = [row for row in rows if options.includes_created(row.get(DATE_FIELD))]

        kept = []
        for row in rows:
            orphaned = any(
                ref.required and ref.target in kinds and row.get(ref.field) not in selected[ref.target]
                for ref in descriptor.foreign_keys
            )
            if orphaned:
                continue
            copy = dict(row)
            for ref in descriptor.foreign_keys:
                if ref.required or copy.get(ref.field) is None:
                    continue
                if copy[ref.field] not in selected[ref.target]:
                    copy[ref.field] = None
            kept.append(copy)

        filtered.records[kind] = kept
        selected[kind] = {row.get(IDENTITY_FIELD) for row in kept}

    return filtered
