# fieldservice_app/models/customer.py

from sqlalchemy import Enum, Index, UniqueConstraint

from .base import BaseModel, db
from .enums import CustomerStatus


class Customer(BaseModel):
    """Model for representing customers (households and businesses)"""

    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(50), nullable=True)
    secondary_phone = db.Column(db.String(50), nullable=True)
    company_name = db.Column(db.String(200), nullable=True)
    status = db.Column(
        Enum(CustomerStatus, name="customer_status_enum"),
        default=CustomerStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    notes = db.Column(db.Text, nullable=True)

    sites = db.relationship("Site", back_populates="customer")
    assets = db.relationship("Asset", back_populates="customer")

    __table_args__ = (Index("idx_customer_name_email", "name", "email"),)

    def __repr__(self):
        return f"<Customer {self.name}>"


class Site(BaseModel):
    """Service address belonging to a customer"""

    __tablename__ = "sites"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    address = db.Column(db.String(255), nullable=False)
    address2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(50), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    gate_code = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_primary = db.Column(db.Boolean, default=False, nullable=False)

    customer = db.relationship("Customer", back_populates="sites")

    __table_args__ = (UniqueConstraint("customer_id", "address", name="uq_site_customer_address"),)

    def __repr__(self):
        return f"<Site {self.address}>"
