# scripts/init_database.py

"""
Database initialization script.
This script creates all tables and seeds default data:
- Default schema definitions for the custom fields shown on asset screens
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app  # noqa: E402
from fieldservice_app.models import CustomFieldType, EntityKind, SchemaDefinition, db  # noqa: E402


def create_default_schema_definitions():
    """Create default asset schema definitions"""
    definitions = [
        {
            "entity_type": EntityKind.ASSET,
            "field_name": "filter_size",
            "display_label": "Filter Size",
            "field_type": CustomFieldType.TEXT,
            "display_order": 1,
        },
        {
            "entity_type": EntityKind.ASSET,
            "field_name": "refrigerant",
            "display_label": "Refrigerant",
            "field_type": CustomFieldType.DROPDOWN,
            "enum_options": "R-410A,R-22,R-32",
            "display_order": 2,
        },
        {
            "entity_type": EntityKind.ASSET,
            "field_name": "warranty_expires",
            "display_label": "Warranty Expires",
            "field_type": CustomFieldType.DATE,
            "display_order": 3,
        },
    ]

    created = 0
    for definition in definitions:
        existing = SchemaDefinition.query.filter_by(
            entity_type=definition["entity_type"], field_name=definition["field_name"]
        ).first()
        if existing:
            continue
        db.session.add(SchemaDefinition(**definition))
        created += 1

    db.session.commit()
    print(f"Default schema definitions created ({created} new)")


def init_database():
    """Initialize database with tables and default data"""
    with app.app_context():
        print("Creating database tables...")
        db.create_all()
        print("Database tables created")

        create_default_schema_definitions()
        print("Database initialization complete!")


if __name__ == "__main__":
    init_database()
