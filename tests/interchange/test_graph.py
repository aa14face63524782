from collections import OrderedDict

import pytest

from fieldservice_app.interchange.graph import (
    PROCESSING_ORDER,
    EntityDescriptor,
    ForeignKeyRef,
    NaturalKey,
    ancestors_of,
    descriptor_for,
    get_entity_registry,
    resolve_kinds,
    validate_processing_order,
)
from fieldservice_app.models import Customer, Site
from fieldservice_app.models.enums import EntityKind


def test_processing_order_starts_with_roots_and_ends_with_schema():
    assert PROCESSING_ORDER[0] is EntityKind.CUSTOMER
    assert PROCESSING_ORDER[-1] is EntityKind.SCHEMA_DEFINITION
    assert PROCESSING_ORDER.index(EntityKind.INVOICE) < PROCESSING_ORDER.index(EntityKind.PAYMENT)
    assert PROCESSING_ORDER.index(EntityKind.JOB) < PROCESSING_ORDER.index(EntityKind.TIME_ENTRY)


def test_every_foreign_key_targets_an_earlier_kind():
    validate_processing_order()
    registry = get_entity_registry()
    for position, (kind, descriptor) in enumerate(registry.items()):
        for ref in descriptor.foreign_keys:
            assert PROCESSING_ORDER.index(ref.target) < position, (kind, ref.field)


def test_validate_processing_order_rejects_forward_reference():
    registry = OrderedDict(
        (
            (
                EntityKind.SITE,
                EntityDescriptor(
                    kind=EntityKind.SITE,
                    title="Site",
                    collection="sites",
                    model=Site,
                    foreign_keys=(ForeignKeyRef("customer_id", EntityKind.CUSTOMER),),
                ),
            ),
            (
                EntityKind.CUSTOMER,
                EntityDescriptor(kind=EntityKind.CUSTOMER, title="Customer", collection="customers", model=Customer),
            ),
        )
    )

    with pytest.raises(ValueError, match="Site.customer_id"):
        validate_processing_order(registry)


def test_natural_key_required_defaults_to_all_fields():
    key = NaturalKey(fields=("customer_id", "address"))
    assert key.required == ("customer_id", "address")

    customer_key = descriptor_for(EntityKind.CUSTOMER).natural_key
    assert customer_key.fields == ("name", "email")
    assert customer_key.required == ("name",)


def test_kinds_without_natural_key_always_insert():
    assert descriptor_for("time_entry").always_insert is True
    assert descriptor_for("payment").always_insert is True
    assert descriptor_for("asset").always_insert is False


def test_descriptor_for_rejects_unknown_kind():
    with pytest.raises(ValueError, match="Unknown entity kind"):
        descriptor_for("vehicle")


def test_resolve_kinds_orders_and_validates():
    assert resolve_kinds(["payment", "customer", EntityKind.JOB]) == (
        EntityKind.CUSTOMER,
        EntityKind.JOB,
        EntityKind.PAYMENT,
    )
    with pytest.raises(ValueError) as excinfo:
        resolve_kinds(["customer", "vehicle"])
    assert "vehicle" in str(excinfo.value)


def test_ancestors_of_follows_optional_and_required_references():
    assert ancestors_of(EntityKind.PAYMENT) == (
        EntityKind.CUSTOMER,
        EntityKind.SITE,
        EntityKind.ASSET,
        EntityKind.ESTIMATE,
        EntityKind.JOB,
        EntityKind.INVOICE,
    )
    assert ancestors_of(EntityKind.CUSTOMER) == ()


def test_describe_uses_label_field_then_id():
    descriptor = descriptor_for(EntityKind.CUSTOMER)
    assert descriptor.describe({"id": 3, "name": "Acme"}) == "Customer 'Acme'"
    assert descriptor.describe({"id": 3, "name": ""}) == "Customer #3"
    assert descriptor_for(EntityKind.TIME_ENTRY).describe({"id": 8}) == "Time Entry #8"
