# fieldservice_app/models/job.py

from sqlalchemy import DECIMAL, Enum, Index

from .base import BaseModel, db
from .enums import EstimateStatus, JobStatus


class Estimate(BaseModel):
    """Quoted work for a customer"""

    __tablename__ = "estimates"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True)
    asset_id = db.Column(db.Integer, db.ForeignKey("assets.id"), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    status = db.Column(
        Enum(EstimateStatus, name="estimate_status_enum"),
        default=EstimateStatus.DRAFT,
        nullable=False,
    )
    subtotal = db.Column(DECIMAL(10, 2), default=0, nullable=False)
    tax_rate = db.Column(DECIMAL(6, 4), default=0, nullable=False)
    total = db.Column(DECIMAL(10, 2), default=0, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    lines = db.relationship("EstimateLine", back_populates="estimate")

    def __repr__(self):
        return f"<Estimate {self.title}>"


class EstimateLine(BaseModel):
    """Single line on an estimate"""

    __tablename__ = "estimate_lines"

    id = db.Column(db.Integer, primary_key=True)
    estimate_id = db.Column(db.Integer, db.ForeignKey("estimates.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True)
    description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(DECIMAL(12, 3), default=1, nullable=False)
    unit_price = db.Column(DECIMAL(10, 2), default=0, nullable=False)
    total = db.Column(DECIMAL(10, 2), default=0, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)

    estimate = db.relationship("Estimate", back_populates="lines")


class Job(BaseModel):
    """Scheduled work order"""

    __tablename__ = "jobs"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True)
    asset_id = db.Column(db.Integer, db.ForeignKey("assets.id"), nullable=True)
    estimate_id = db.Column(db.Integer, db.ForeignKey("estimates.id"), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        Enum(JobStatus, name="job_status_enum"),
        default=JobStatus.SCHEDULED,
        nullable=False,
    )
    scheduled_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    time_entries = db.relationship("TimeEntry", back_populates="job")

    __table_args__ = (Index("idx_job_status_scheduled", "status", "scheduled_date"),)

    def __repr__(self):
        return f"<Job {self.title}>"


class TimeEntry(BaseModel):
    """Labor logged against a job"""

    __tablename__ = "time_entries"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey("jobs.id"), nullable=False, index=True)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    hourly_rate = db.Column(DECIMAL(10, 2), nullable=True)
    is_billable = db.Column(db.Boolean, default=True, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    job = db.relationship("Job", back_populates="time_entries")
