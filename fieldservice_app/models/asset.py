# fieldservice_app/models/asset.py

from sqlalchemy import Enum, UniqueConstraint

from .base import BaseModel, db
from .enums import CustomFieldType, EntityKind, EquipmentType


class Asset(BaseModel):
    """Installed equipment at a customer site"""

    __tablename__ = "assets"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True, index=True)
    serial_number = db.Column(db.String(100), unique=True, nullable=False, index=True)
    brand = db.Column(db.String(100), nullable=True)
    model = db.Column(db.String(100), nullable=True)
    nickname = db.Column(db.String(100), nullable=True)
    equipment_type = db.Column(
        Enum(EquipmentType, name="equipment_type_enum"),
        default=EquipmentType.OTHER,
        nullable=False,
    )
    install_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    customer = db.relationship("Customer", back_populates="assets")
    site = db.relationship("Site")
    custom_fields = db.relationship("CustomField", back_populates="asset")

    def __repr__(self):
        return f"<Asset {self.serial_number}>"


class CustomField(BaseModel):
    """User-defined value attached to an asset"""

    __tablename__ = "custom_fields"

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(
        Enum(EntityKind, name="custom_field_entity_enum"),
        default=EntityKind.ASSET,
        nullable=False,
    )
    asset_id = db.Column(db.Integer, db.ForeignKey("assets.id"), nullable=True, index=True)
    field_key = db.Column(db.String(100), nullable=False)
    field_type = db.Column(
        Enum(CustomFieldType, name="custom_field_type_enum"),
        default=CustomFieldType.TEXT,
        nullable=False,
    )
    value = db.Column(db.Text, nullable=True)

    asset = db.relationship("Asset", back_populates="custom_fields")

    def __repr__(self):
        return f"<CustomField {self.field_key}>"


class SchemaDefinition(BaseModel):
    """Global definition of a custom field offered for an entity kind"""

    __tablename__ = "schema_definitions"

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(Enum(EntityKind, name="schema_definition_entity_enum"), nullable=False)
    field_name = db.Column(db.String(100), nullable=False)
    display_label = db.Column(db.String(200), nullable=True)
    field_type = db.Column(
        Enum(CustomFieldType, name="schema_definition_type_enum"),
        default=CustomFieldType.TEXT,
        nullable=False,
    )
    enum_options = db.Column(db.Text, nullable=True)  # comma-separated dropdown choices
    default_value = db.Column(db.String(255), nullable=True)
    is_required = db.Column(db.Boolean, default=False, nullable=False)
    display_order = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (UniqueConstraint("entity_type", "field_name", name="uq_schema_definition_field"),)

    def __repr__(self):
        return f"<SchemaDefinition {self.entity_type}.{self.field_name}>"
