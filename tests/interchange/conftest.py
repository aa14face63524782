from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from fieldservice_app.interchange.service import BackupService
from fieldservice_app.interchange.store import SnapshotStore
from fieldservice_app.models import (
    Asset,
    Customer,
    CustomerStatus,
    Estimate,
    EstimateLine,
    EstimateStatus,
    InventoryItem,
    Invoice,
    InvoiceStatus,
    Job,
    JobStatus,
    Payment,
    PaymentMethod,
    Site,
    TimeEntry,
    db,
)


@pytest.fixture
def store(app):
    return SnapshotStore()


@pytest.fixture
def backup_service(app, store):
    return BackupService.from_app(app, store=store)


@pytest.fixture
def customer_factory(app):
    def _factory(name: str = "Acme Heating", email: str | None = "ops@acme.test", **overrides) -> Customer:
        customer = Customer(name=name, email=email, status=CustomerStatus.ACTIVE, **overrides)
        db.session.add(customer)
        db.session.commit()
        return customer

    return _factory


@pytest.fixture
def populated_store(app, customer_factory):
    """
    One customer with a site, an asset, an estimate with a line, a job with
    a time entry, and an invoice with a payment.
    """
    customer = customer_factory(phone="555-0100")
    site = Site(customer_id=customer.id, address="12 Elm St", city="Springfield", is_primary=True)
    db.session.add(site)
    db.session.flush()

    asset = Asset(customer_id=customer.id, site_id=site.id, serial_number="SN-1001", brand="Carrier")
    item = InventoryItem(sku="FLT-16", name="Filter 16x25", quantity_on_hand=Decimal("12.500"), price=Decimal("9.99"))
    db.session.add_all([asset, item])
    db.session.flush()

    estimate = Estimate(
        customer_id=customer.id,
        site_id=site.id,
        asset_id=asset.id,
        title="Replace blower",
        status=EstimateStatus.SENT,
        subtotal=Decimal("450.00"),
        tax_rate=Decimal("0.0825"),
        total=Decimal("487.13"),
    )
    db.session.add(estimate)
    db.session.flush()

    line = EstimateLine(
        estimate_id=estimate.id,
        inventory_item_id=item.id,
        description="Filter",
        quantity=Decimal("2.000"),
        unit_price=Decimal("9.99"),
        total=Decimal("19.98"),
    )
    job = Job(
        customer_id=customer.id,
        site_id=site.id,
        asset_id=asset.id,
        estimate_id=estimate.id,
        title="Blower replacement",
        status=JobStatus.COMPLETED,
    )
    db.session.add_all([line, job])
    db.session.flush()

    entry = TimeEntry(
        job_id=job.id,
        start_time=datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        end_time=datetime(2024, 3, 1, 11, 30, tzinfo=timezone.utc),
        hourly_rate=Decimal("95.00"),
    )
    invoice = Invoice(
        invoice_number="INV-1001",
        customer_id=customer.id,
        job_id=job.id,
        status=InvoiceStatus.SENT,
        subtotal=Decimal("450.00"),
        total=Decimal("487.13"),
        invoice_date=date(2024, 3, 2),
    )
    db.session.add_all([entry, invoice])
    db.session.flush()

    payment = Payment(
        invoice_id=invoice.id,
        amount=Decimal("200.00"),
        method=PaymentMethod.CHECK,
        reference="CHK-42",
    )
    db.session.add(payment)
    db.session.commit()
    return {
        "customer": customer,
        "site": site,
        "asset": asset,
        "item": item,
        "estimate": estimate,
        "job": job,
        "invoice": invoice,
        "payment": payment,
    }


@pytest.fixture
def make_document():
    """Build a minimal snapshot document holding only the given collections."""

    def _make(**collections) -> dict:
        document = {
            "format_version": "3.0",
            "exported_at": "2024-05-01T12:00:00+00:00",
            "app_name": "FieldService",
        }
        document.update(collections)
        return document

    return _make
