"""Prometheus metrics helpers for backup and restore."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Histogram

_records_counter = Counter(
    "backup_import_records_total",
    "Snapshot records processed during import by kind and outcome.",
    ["kind", "outcome"],
)
_archive_counter = Counter(
    "backup_archive_operations_total",
    "Archive pack/unpack operations by status.",
    ["action", "status"],
)
_run_duration = Histogram(
    "backup_run_duration_seconds",
    "Duration of export and import runs in seconds.",
    ["direction"],
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, 300),
)
_referential_gaps = Counter(
    "backup_import_referential_gaps_total",
    "Foreign keys that could not be resolved during import.",
    ["kind", "action"],
)


def record_kind_outcomes(kind: str, *, inserted: int, updated: int, skipped: int, failed: int) -> None:
    """Add one kind's import counters."""

    for outcome, count in (("inserted", inserted), ("updated", updated), ("skipped", skipped), ("failed", failed)):
        if count:
            _records_counter.labels(kind=kind, outcome=outcome).inc(count)


def record_referential_gap(kind: str, *, skipped: bool) -> None:
    _referential_gaps.labels(kind=kind, action="skipped" if skipped else "nulled").inc()


def record_archive_operation(action: Literal["pack", "unpack"], status: Literal["success", "failure"]) -> None:
    _archive_counter.labels(action=action, status=status).inc()


def observe_run_duration(direction: Literal["export", "import"], duration_seconds: float) -> None:
    _run_duration.labels(direction=direction).observe(max(duration_seconds, 0.0))
