"""
Entity graph registry.

Each entity kind registers its model, foreign keys, natural key and merge
allow-list here. The registry order is the order kinds are written to a
snapshot and the order they are imported: every foreign key must point at a
kind registered earlier.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Tuple, Type

from fieldservice_app.models import (
    Asset,
    Customer,
    CustomField,
    Estimate,
    EstimateLine,
    InventoryItem,
    InventoryLog,
    Invoice,
    Job,
    Payment,
    SchemaDefinition,
    Site,
    TimeEntry,
)
from fieldservice_app.models.base import BaseModel
from fieldservice_app.models.enums import EntityKind

IDENTITY_FIELD = "id"
PROTECTED_FIELDS: Tuple[str, ...] = ("id", "created_at")


@dataclass(frozen=True)
class ForeignKeyRef:
    """A scalar reference from one kind to another."""

    field: str
    target: EntityKind
    required: bool = True


@dataclass(frozen=True)
class NaturalKey:
    """
    Fields identifying a record across stores.

    ``required`` lists the fields that must be present and non-blank; other
    key fields may be null and then match null in the store.
    """

    fields: Tuple[str, ...]
    required: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.required:
            object.__setattr__(self, "required", self.fields)


@dataclass(frozen=True)
class EntityDescriptor:
    """Metadata describing one entity kind in the snapshot graph."""

    kind: EntityKind
    title: str
    collection: str
    model: Type[BaseModel]
    foreign_keys: Tuple[ForeignKeyRef, ...] = ()
    natural_key: NaturalKey | None = None
    mutable_fields: Tuple[str, ...] = ()
    label_field: str | None = None

    @property
    def always_insert(self) -> bool:
        return self.natural_key is None

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(column.key for column in self.model.__table__.columns)

    def describe(self, record: Mapping[str, Any]) -> str:
        """Human-readable label for operator messages."""
        if self.label_field:
            label = record.get(self.label_field)
            if label not in (None, ""):
                return f"{self.title} '{label}'"
        return f"{self.title} #{record.get(IDENTITY_FIELD)}"


def _descriptor(*args, **kwargs) -> Tuple[EntityKind, EntityDescriptor]:
    descriptor = EntityDescriptor(*args, **kwargs)
    return descriptor.kind, descriptor


_REGISTRY: "OrderedDict[EntityKind, EntityDescriptor]" = OrderedDict(
    (
        _descriptor(
            kind=EntityKind.CUSTOMER,
            title="Customer",
            collection="customers",
            model=Customer,
            natural_key=NaturalKey(fields=("name", "email"), required=("name",)),
            mutable_fields=("phone", "secondary_phone", "notes", "status"),
            label_field="name",
        ),
        _descriptor(
            kind=EntityKind.SITE,
            title="Site",
            collection="sites",
            model=Site,
            foreign_keys=(ForeignKeyRef("customer_id", EntityKind.CUSTOMER),),
            natural_key=NaturalKey(fields=("customer_id", "address")),
            mutable_fields=("address2", "city", "state", "zip_code", "gate_code", "notes", "is_primary"),
            label_field="address",
        ),
        _descriptor(
            kind=EntityKind.ASSET,
            title="Asset",
            collection="assets",
            model=Asset,
            foreign_keys=(
                ForeignKeyRef("customer_id", EntityKind.CUSTOMER),
                ForeignKeyRef("site_id", EntityKind.SITE, required=False),
            ),
            natural_key=NaturalKey(fields=("serial_number",)),
            mutable_fields=("brand", "model", "nickname", "equipment_type"),
            label_field="serial_number",
        ),
        _descriptor(
            kind=EntityKind.CUSTOM_FIELD,
            title="Custom Field",
            collection="custom_fields",
            model=CustomField,
            foreign_keys=(ForeignKeyRef("asset_id", EntityKind.ASSET, required=False),),
            label_field="field_key",
        ),
        _descriptor(
            kind=EntityKind.INVENTORY_ITEM,
            title="Inventory Item",
            collection="inventory_items",
            model=InventoryItem,
            natural_key=NaturalKey(fields=("sku",)),
            mutable_fields=("name", "description", "quantity_on_hand", "cost", "price"),
            label_field="name",
        ),
        _descriptor(
            kind=EntityKind.ESTIMATE,
            title="Estimate",
            collection="estimates",
            model=Estimate,
            foreign_keys=(
                ForeignKeyRef("customer_id", EntityKind.CUSTOMER),
                ForeignKeyRef("site_id", EntityKind.SITE, required=False),
                ForeignKeyRef("asset_id", EntityKind.ASSET, required=False),
            ),
            label_field="title",
        ),
        _descriptor(
            kind=EntityKind.ESTIMATE_LINE,
            title="Estimate Line",
            collection="estimate_lines",
            model=EstimateLine,
            foreign_keys=(
                ForeignKeyRef("estimate_id", EntityKind.ESTIMATE),
                ForeignKeyRef("inventory_item_id", EntityKind.INVENTORY_ITEM, required=False),
            ),
            label_field="description",
        ),
        _descriptor(
            kind=EntityKind.JOB,
            title="Job",
            collection="jobs",
            model=Job,
            foreign_keys=(
                ForeignKeyRef("customer_id", EntityKind.CUSTOMER),
                ForeignKeyRef("site_id", EntityKind.SITE, required=False),
                ForeignKeyRef("asset_id", EntityKind.ASSET, required=False),
                ForeignKeyRef("estimate_id", EntityKind.ESTIMATE, required=False),
            ),
            label_field="title",
        ),
        _descriptor(
            kind=EntityKind.TIME_ENTRY,
            title="Time Entry",
            collection="time_entries",
            model=TimeEntry,
            foreign_keys=(ForeignKeyRef("job_id", EntityKind.JOB),),
        ),
        _descriptor(
            kind=EntityKind.INVENTORY_LOG,
            title="Inventory Log",
            collection="inventory_logs",
            model=InventoryLog,
            foreign_keys=(
                ForeignKeyRef("inventory_item_id", EntityKind.INVENTORY_ITEM),
                ForeignKeyRef("estimate_id", EntityKind.ESTIMATE, required=False),
                ForeignKeyRef("job_id", EntityKind.JOB, required=False),
            ),
        ),
        _descriptor(
            kind=EntityKind.INVOICE,
            title="Invoice",
            collection="invoices",
            model=Invoice,
            foreign_keys=(
                ForeignKeyRef("customer_id", EntityKind.CUSTOMER),
                ForeignKeyRef("job_id", EntityKind.JOB, required=False),
                ForeignKeyRef("estimate_id", EntityKind.ESTIMATE, required=False),
            ),
            natural_key=NaturalKey(fields=("invoice_number",)),
            mutable_fields=("status", "amount_paid", "due_date", "notes"),
            label_field="invoice_number",
        ),
        _descriptor(
            kind=EntityKind.PAYMENT,
            title="Payment",
            collection="payments",
            model=Payment,
            foreign_keys=(ForeignKeyRef("invoice_id", EntityKind.INVOICE),),
            label_field="reference",
        ),
        _descriptor(
            kind=EntityKind.SCHEMA_DEFINITION,
            title="Schema Definition",
            collection="schema_definitions",
            model=SchemaDefinition,
            natural_key=NaturalKey(fields=("entity_type", "field_name")),
            mutable_fields=(
                "display_label",
                "field_type",
                "enum_options",
                "default_value",
                "is_required",
                "display_order",
                "is_active",
            ),
            label_field="field_name",
        ),
    )
)

PROCESSING_ORDER: Tuple[EntityKind, ...] = tuple(_REGISTRY)


def get_entity_registry() -> Mapping[EntityKind, EntityDescriptor]:
    """Return the registry of entity kinds in processing order."""
    return OrderedDict(_REGISTRY)


def descriptor_for(kind: EntityKind | str) -> EntityDescriptor:
    """Look up a descriptor by kind, accepting the kind's string value."""
    try:
        return _REGISTRY[EntityKind(kind)]
    except ValueError as exc:
        raise ValueError(f"Unknown entity kind: {kind!r}") from exc


def resolve_kinds(configured: Iterable[EntityKind | str]) -> Tuple[EntityKind, ...]:
    """
    Map configured kind names to kinds in processing order, raising on unknowns.
    """
    requested = set()
    unknown = []
    for item in configured:
        try:
            requested.add(EntityKind(item))
        except ValueError:
            unknown.append(str(item))
    if unknown:
        raise ValueError(
            "Unknown entity kinds requested: "
            + ", ".join(sorted(unknown))
            + ". Valid kinds: "
            + ", ".join(kind.value for kind in PROCESSING_ORDER)
        )
    return tuple(kind for kind in PROCESSING_ORDER if kind in requested)


def ancestors_of(kind: EntityKind) -> Tuple[EntityKind, ...]:
    """Every kind reachable through ``kind``'s foreign keys, in processing order."""
    found = set()
    pending = [kind]
    while pending:
        current = pending.pop()
        for ref in _REGISTRY[current].foreign_keys:
            if ref.target not in found:
                found.add(ref.target)
                pending.append(ref.target)
    return tuple(candidate for candidate in PROCESSING_ORDER if candidate in found)


def validate_processing_order(registry: Mapping[EntityKind, EntityDescriptor] | None = None) -> None:
    """Raise ValueError when a foreign key targets a kind that is not processed earlier."""
    registry = registry or _REGISTRY
    seen = set()
    for kind, descriptor in registry.items():
        for ref in descriptor.foreign_keys:
            if ref.target not in seen:
                raise ValueError(
                    f"{descriptor.title}.{ref.field} references {ref.target.value}, "
                    "which is not processed before it."
                )
        seen.add(kind)
