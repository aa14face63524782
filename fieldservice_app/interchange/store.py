"""
Store adapter used by the interchange engine.

Wraps the Flask-SQLAlchemy session behind the handful of operations export
and import need, keyed by entity kind.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Sequence, Tuple

from sqlalchemy import delete, select

from fieldservice_app.models.base import db
from fieldservice_app.models.enums import EntityKind

from .graph import PROCESSING_ORDER, PROTECTED_FIELDS, descriptor_for


class SnapshotStore:
    """Entity-kind keyed access to the relational store."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def fetch_all(self, kind: EntityKind) -> Sequence[Any]:
        model = descriptor_for(kind).model
        return self.session.execute(select(model).order_by(model.id)).scalars().all()

    def get(self, kind: EntityKind, entity_id: int) -> Any | None:
        return self.session.get(descriptor_for(kind).model, entity_id)

    def find_by_natural_key(self, kind: EntityKind, values: Mapping[str, Any]) -> Any | None:
        descriptor = descriptor_for(kind)
        if descriptor.natural_key is None:
            return None
        model = descriptor.model
        query = select(model)
        for field_name in descriptor.natural_key.fields:
            column = getattr(model, field_name)
            value = values.get(field_name)
            query = query.where(column.is_(None) if value is None else column == value)
        return self.session.execute(query.order_by(model.id).limit(1)).scalars().first()

    def insert(self, kind: EntityKind, values: Mapping[str, Any]) -> Any:
        """Add a new row and flush so the store assigns its id."""
        model = descriptor_for(kind).model
        instance = model(**dict(values))
        self.session.add(instance)
        self.session.flush()
        return instance

    def update(self, instance: Any, values: Mapping[str, Any]) -> Dict[str, Tuple[Any, Any]]:
        """
        Apply ``values`` onto ``instance`` and return ``{field: (before, after)}``
        for every field that actually changed. Protected fields are ignored.
        """
        changes: Dict[str, Tuple[Any, Any]] = {}
        for field_name, new_value in values.items():
            if field_name in PROTECTED_FIELDS:
                continue
            current_value = getattr(instance, field_name)
            if current_value == new_value:
                continue
            setattr(instance, field_name, new_value)
            changes[field_name] = (current_value, new_value)
        if changes:
            self.session.flush()
        return changes

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Scope one record's writes; rolled back if the block raises."""
        with self.session.begin_nested():
            yield

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def clear_all(self) -> Dict[str, int]:
        """Delete every entity row, children first, and commit."""
        removed: Dict[str, int] = {}
        for kind in reversed(PROCESSING_ORDER):
            model = descriptor_for(kind).model
            result = self.session.execute(delete(model))
            removed[kind.value] = result.rowcount or 0
        self.session.commit()
        return removed
