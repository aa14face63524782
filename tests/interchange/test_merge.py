from datetime import datetime
from decimal import Decimal

import pytest

from fieldservice_app.interchange.errors import MissingNaturalKey
from fieldservice_app.interchange.graph import descriptor_for
from fieldservice_app.interchange.merge import MergeResolver, build_insert_values, resolve_merge_target
from fieldservice_app.models import Customer, CustomerStatus, InventoryItem, db
from fieldservice_app.models.enums import EntityKind


def test_resolve_merge_target_matches_on_natural_key(store, customer_factory):
    existing = customer_factory(name="Acme", email="a@acme.test")
    descriptor = descriptor_for(EntityKind.CUSTOMER)

    target = resolve_merge_target(store, descriptor, {"id": 99, "name": "Acme", "email": "a@acme.test"})
    assert target.action == "update"
    assert target.existing.id == existing.id

    miss = resolve_merge_target(store, descriptor, {"id": 99, "name": "Acme", "email": "other@acme.test"})
    assert miss.action == "insert"


def test_customer_without_email_matches_customer_without_email(store, customer_factory):
    existing = customer_factory(name="Walk-in", email=None)
    customer_factory(name="Walk-in", email="walkin@example.test")

    target = resolve_merge_target(store, descriptor_for(EntityKind.CUSTOMER), {"id": 5, "name": "Walk-in", "email": None})

    assert target.action == "update"
    assert target.existing.id == existing.id


@pytest.mark.parametrize("name", [None, "", "   "])
def test_blank_required_natural_key_field_raises(store, name):
    with pytest.raises(MissingNaturalKey) as excinfo:
        resolve_merge_target(store, descriptor_for(EntityKind.CUSTOMER), {"id": 1, "name": name})
    assert excinfo.value.field == "name"


def test_kind_without_natural_key_always_inserts(store):
    target = resolve_merge_target(store, descriptor_for(EntityKind.PAYMENT), {"id": 1, "invoice_id": 1})
    assert target.action == "insert"


def test_build_insert_values_drops_identity_and_missing_audit_fields():
    descriptor = descriptor_for(EntityKind.CUSTOMER)
    created = datetime(2023, 1, 1, 9, 0)

    values = build_insert_values(
        descriptor,
        {"id": 7, "name": "Acme", "created_at": created, "updated_at": None, "bogus": 1},
    )

    assert values == {"name": "Acme", "created_at": created}


def test_update_applies_only_mutable_fields(store, customer_factory):
    existing = customer_factory(name="Acme", email="a@acme.test", phone="111", company_name="Acme LLC")
    resolver = MergeResolver(store)

    outcome = resolver.resolve(
        descriptor_for(EntityKind.CUSTOMER),
        {
            "id": 42,
            "name": "Acme",
            "email": "a@acme.test",
            "phone": "222",
            "status": CustomerStatus.INACTIVE,
            "company_name": "Renamed Inc",
        },
    )
    db.session.commit()

    assert outcome.status == "updated"
    assert outcome.new_id == existing.id
    assert set(outcome.changes) == {"phone", "status"}
    assert outcome.duplicate.label == "Customer 'Acme'"
    assert outcome.duplicate.changed_fields == ("phone", "status")

    refreshed = db.session.get(Customer, existing.id)
    assert refreshed.phone == "222"
    assert refreshed.status is CustomerStatus.INACTIVE
    assert refreshed.company_name == "Acme LLC"


def test_update_with_identical_values_reports_no_changes(store):
    item = InventoryItem(sku="FLT-1", name="Filter", quantity_on_hand=Decimal("3.000"))
    db.session.add(item)
    db.session.commit()

    outcome = MergeResolver(store).resolve(
        descriptor_for(EntityKind.INVENTORY_ITEM),
        {"id": 1, "sku": "FLT-1", "name": "Filter", "quantity_on_hand": Decimal("3.000")},
    )

    assert outcome.status == "updated"
    assert outcome.changes == {}
    assert "no changes" in outcome.duplicate.message


def test_insert_assigns_new_id(store, customer_factory):
    existing = customer_factory(name="Existing")

    outcome = MergeResolver(store).resolve(
        descriptor_for(EntityKind.CUSTOMER),
        {"id": 1, "name": "Brand New", "email": None},
    )

    assert outcome.status == "inserted"
    assert outcome.new_id is not None
    assert outcome.new_id != existing.id
    assert db.session.get(Customer, outcome.new_id).name == "Brand New"
    assert outcome.is_written
