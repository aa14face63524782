# fieldservice_app/models/__init__.py
"""
Database models package
"""

from .asset import Asset, CustomField, SchemaDefinition
from .base import BaseModel, db
from .customer import Customer, Site
from .enums import (
    CustomerStatus,
    CustomFieldType,
    EntityKind,
    EquipmentType,
    EstimateStatus,
    InventoryChangeType,
    InvoiceStatus,
    JobStatus,
    PaymentMethod,
)
from .interchange import BackupDirection, BackupRun, BackupRunStatus
from .inventory import InventoryItem, InventoryLog
from .invoice import Invoice, Payment
from .job import Estimate, EstimateLine, Job, TimeEntry

__all__ = [
    "db",
    "BaseModel",
    # Customer models
    "Customer",
    "Site",
    "Asset",
    "CustomField",
    "SchemaDefinition",
    # Inventory models
    "InventoryItem",
    "InventoryLog",
    # Work models
    "Estimate",
    "EstimateLine",
    "Job",
    "TimeEntry",
    "Invoice",
    "Payment",
    # Backup ledger
    "BackupRun",
    "BackupRunStatus",
    "BackupDirection",
    # Enums
    "EntityKind",
    "CustomerStatus",
    "EquipmentType",
    "CustomFieldType",
    "InventoryChangeType",
    "EstimateStatus",
    "JobStatus",
    "InvoiceStatus",
    "PaymentMethod",
]
