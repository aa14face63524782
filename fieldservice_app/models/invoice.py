# fieldservice_app/models/invoice.py

from sqlalchemy import DECIMAL, Enum

from .base import BaseModel, db
from .enums import InvoiceStatus, PaymentMethod


class Invoice(BaseModel):
    """Bill issued to a customer"""

    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(50), unique=True, nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    job_id = db.Column(db.Integer, db.ForeignKey("jobs.id"), nullable=True)
    estimate_id = db.Column(db.Integer, db.ForeignKey("estimates.id"), nullable=True)
    status = db.Column(
        Enum(InvoiceStatus, name="invoice_status_enum"),
        default=InvoiceStatus.DRAFT,
        nullable=False,
        index=True,
    )
    subtotal = db.Column(DECIMAL(10, 2), default=0, nullable=False)
    tax_rate = db.Column(DECIMAL(6, 4), default=0, nullable=False)
    tax_amount = db.Column(DECIMAL(10, 2), default=0, nullable=False)
    total = db.Column(DECIMAL(10, 2), default=0, nullable=False)
    amount_paid = db.Column(DECIMAL(10, 2), default=0, nullable=False)
    invoice_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    payments = db.relationship("Payment", back_populates="invoice")

    def __repr__(self):
        return f"<Invoice {self.invoice_number}>"

    @property
    def balance_due(self):
        return (self.total or 0) - (self.amount_paid or 0)


class Payment(BaseModel):
    """Payment applied to an invoice"""

    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    amount = db.Column(DECIMAL(10, 2), nullable=False)
    method = db.Column(
        Enum(PaymentMethod, name="payment_method_enum"),
        default=PaymentMethod.OTHER,
        nullable=False,
    )
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reference = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    invoice = db.relationship("Invoice", back_populates="payments")

    def __repr__(self):
        return f"<Payment {self.amount}>"
