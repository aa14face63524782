"""
SQLAlchemy model recording backup and restore executions.

Every export or import triggered from the CLI, the worker, or the HTTP API
leaves one row behind so operators can audit what was written or merged.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db


class BackupRunStatus(str, enum.Enum):
    """Lifecycle states for a backup run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


class BackupDirection(str, enum.Enum):
    EXPORT = "export"
    IMPORT = "import"


class BackupRun(BaseModel):
    """Metadata describing a single export or import execution."""

    __tablename__ = "backup_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    direction: Mapped[BackupDirection] = mapped_column(
        Enum(BackupDirection, name="backup_direction_enum"),
        nullable=False,
        index=True,
    )
    status: Mapped[BackupRunStatus] = mapped_column(
        Enum(BackupRunStatus, name="backup_run_status_enum"),
        nullable=False,
        default=BackupRunStatus.PENDING,
        index=True,
    )
    mode: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    file_path: Mapped[str | None] = mapped_column(db.String(1024), nullable=True)
    format_version: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    params_json: Mapped[dict | None] = mapped_column(
        db.JSON,
        nullable=True,
        comment="Options the run was started with (kinds, date range, mode).",
    )
    counts_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    warnings_json: Mapped[list | None] = mapped_column(db.JSON, nullable=True)
    errors_json: Mapped[list | None] = mapped_column(db.JSON, nullable=True)
    error_summary: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    __table_args__ = (Index("idx_backup_runs_direction_status", "direction", "status"),)

    def __repr__(self) -> str:
        return f"<BackupRun id={self.id} direction={self.direction} status={self.status}>"

    @property
    def duration_seconds(self) -> float | None:
        if not self.started_at or not self.finished_at:
            return None
        return (self.finished_at - self.started_at).total_seconds()
