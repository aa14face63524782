# fieldservice_app/models/enums.py
"""
Enums for field-service models.
"""

import enum
from enum import Enum as PyEnum


class EntityKind(str, enum.Enum):
    """Closed set of entity kinds carried by a snapshot."""

    CUSTOMER = "customer"
    SITE = "site"
    ASSET = "asset"
    CUSTOM_FIELD = "custom_field"
    INVENTORY_ITEM = "inventory_item"
    ESTIMATE = "estimate"
    ESTIMATE_LINE = "estimate_line"
    JOB = "job"
    TIME_ENTRY = "time_entry"
    INVENTORY_LOG = "inventory_log"
    INVOICE = "invoice"
    PAYMENT = "payment"
    SCHEMA_DEFINITION = "schema_definition"


class CustomerStatus(PyEnum):
    """Customer lifecycle status"""

    LEAD = "lead"
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class EquipmentType(PyEnum):
    """Equipment type enumeration"""

    FURNACE = "furnace"
    AIR_CONDITIONER = "air_conditioner"
    HEAT_PUMP = "heat_pump"
    BOILER = "boiler"
    WATER_HEATER = "water_heater"
    MINI_SPLIT = "mini_split"
    OTHER = "other"


class CustomFieldType(PyEnum):
    """Value type of a custom field or schema definition"""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    DROPDOWN = "dropdown"


class InventoryChangeType(PyEnum):
    """Inventory stock movement enumeration"""

    RECEIVED = "received"
    USED = "used"
    ADJUSTED = "adjusted"
    RETURNED = "returned"


class EstimateStatus(PyEnum):
    """Estimate status enumeration"""

    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class JobStatus(PyEnum):
    """Job status enumeration"""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvoiceStatus(PyEnum):
    """Invoice status enumeration"""

    DRAFT = "draft"
    SENT = "sent"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    VOID = "void"


class PaymentMethod(PyEnum):
    """Payment method enumeration"""

    CASH = "cash"
    CHECK = "check"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"
