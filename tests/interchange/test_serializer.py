import json
from datetime import date, datetime
from decimal import Decimal

import pytest

from fieldservice_app.interchange.errors import ParseError
from fieldservice_app.interchange.graph import descriptor_for
from fieldservice_app.interchange.serializer import (
    FORMAT_VERSION,
    collect_graph,
    decode_record,
    deserialize,
    dumps,
    loads,
    serialize,
)
from fieldservice_app.models import InvoiceStatus
from fieldservice_app.models.enums import EntityKind


def test_serialize_writes_header_counts_and_every_collection(store, populated_store):
    document = serialize(collect_graph(store, app_name="FieldService"))

    assert list(document)[:4] == ["format_version", "exported_at", "app_name", "record_counts"]
    assert document["format_version"] == FORMAT_VERSION
    assert document["app_name"] == "FieldService"
    assert document["record_counts"]["customer"] == 1
    assert document["record_counts"]["payment"] == 1
    assert document["record_counts"]["schema_definition"] == 0
    for collection in ("customers", "sites", "assets", "invoices", "payments", "schema_definitions"):
        assert collection in document


def test_serialize_encodes_decimals_enums_and_dates(store, populated_store):
    document = serialize(collect_graph(store))

    item = document["inventory_items"][0]
    assert item["quantity_on_hand"] == "12.500"
    assert item["price"] == "9.99"

    invoice = document["invoices"][0]
    assert invoice["status"] == "sent"
    assert invoice["invoice_date"] == "2024-03-02"

    estimate = document["estimates"][0]
    assert estimate["tax_rate"] == "0.0825"

    # Relationship collections are never embedded.
    assert "payments" not in invoice
    assert "sites" not in document["customers"][0]
    json.dumps(document)


def test_decode_record_restores_column_types():
    descriptor = descriptor_for(EntityKind.INVOICE)
    record = decode_record(
        descriptor,
        {
            "id": 7,
            "invoice_number": "INV-7",
            "customer_id": 2,
            "status": "partially_paid",
            "total": "120.50",
            "invoice_date": "2024-02-01",
            "created_at": "2024-02-01T08:30:00",
            "unexpected": "ignored",
        },
    )

    assert record["id"] == 7
    assert record["status"] is InvoiceStatus.PARTIALLY_PAID
    assert record["total"] == Decimal("120.50")
    assert record["invoice_date"] == date(2024, 2, 1)
    assert record["created_at"] == datetime(2024, 2, 1, 8, 30)
    assert "unexpected" not in record
    assert "amount_paid" not in record


def test_decode_record_requires_integer_id():
    with pytest.raises(ParseError, match="customers\\[0\\]"):
        decode_record(descriptor_for(EntityKind.CUSTOMER), {"name": "No id"})

    with pytest.raises(ParseError):
        decode_record(descriptor_for(EntityKind.CUSTOMER), {"id": "4", "name": "String id"})


@pytest.mark.parametrize(
    "item",
    [
        {"id": 1, "sku": "X", "name": "Widget", "quantity_on_hand": "lots"},
        {"id": 1, "sku": 123, "name": "Widget"},
        {"id": 1, "sku": "X", "name": "Widget", "created_at": "yesterday"},
    ],
)
def test_decode_record_rejects_bad_values(item):
    with pytest.raises(ParseError, match="inventory_items\\[0\\]"):
        decode_record(descriptor_for(EntityKind.INVENTORY_ITEM), item)


def test_deserialize_rejects_non_object_and_non_list_collections(make_document):
    with pytest.raises(ParseError):
        deserialize(["not", "an", "object"])

    with pytest.raises(ParseError, match="'customers' must be a list"):
        deserialize(make_document(customers={"id": 1}))

    with pytest.raises(ParseError, match="must be an object"):
        deserialize(make_document(customers=[1, 2]))


def test_deserialize_tolerates_missing_collections(make_document):
    graph = deserialize(make_document(customers=[{"id": 1, "name": "Acme"}]))

    assert graph.format_version == "3.0"
    assert graph.app_name == "FieldService"
    assert len(graph.get(EntityKind.CUSTOMER)) == 1
    assert graph.get(EntityKind.ASSET) == []
    assert graph.total_records == 1


def test_loads_raises_parse_error_on_invalid_json():
    with pytest.raises(ParseError, match="not valid JSON"):
        loads("{not json")


def test_serialized_document_is_stable_across_reserialization(store, populated_store):
    document = serialize(collect_graph(store))
    text = dumps(document)

    again = serialize(deserialize(loads(text)))

    assert dumps(again) == text
