# fieldservice_app/models/inventory.py

from sqlalchemy import DECIMAL, Enum

from .base import BaseModel, db
from .enums import InventoryChangeType


class InventoryItem(BaseModel):
    """Stocked part or material"""

    __tablename__ = "inventory_items"

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    quantity_on_hand = db.Column(DECIMAL(12, 3), default=0, nullable=False)
    cost = db.Column(DECIMAL(10, 2), nullable=True)
    price = db.Column(DECIMAL(10, 2), nullable=True)
    unit = db.Column(db.String(20), nullable=True)

    logs = db.relationship("InventoryLog", back_populates="inventory_item")

    def __repr__(self):
        return f"<InventoryItem {self.sku}>"


class InventoryLog(BaseModel):
    """Stock movement against an inventory item"""

    __tablename__ = "inventory_logs"

    id = db.Column(db.Integer, primary_key=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    estimate_id = db.Column(db.Integer, db.ForeignKey("estimates.id"), nullable=True)
    job_id = db.Column(db.Integer, db.ForeignKey("jobs.id"), nullable=True)
    change_type = db.Column(Enum(InventoryChangeType, name="inventory_change_type_enum"), nullable=False)
    quantity_change = db.Column(DECIMAL(12, 3), nullable=False)
    quantity_before = db.Column(DECIMAL(12, 3), nullable=True)
    quantity_after = db.Column(DECIMAL(12, 3), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    logged_at = db.Column(db.DateTime(timezone=True), nullable=True)

    inventory_item = db.relationship("InventoryItem", back_populates="logs")

    def __repr__(self):
        return f"<InventoryLog {self.change_type} {self.quantity_change}>"
