"""Per-import mapping from archive ids to the ids the store assigned."""

from __future__ import annotations

from typing import Dict

from fieldservice_app.models.enums import EntityKind

from .errors import IdentityConflict


class IdentityRemapper:
    """
    Tracks ``archive id -> store id`` for each kind during one import.

    Construct a fresh instance for every import; maps are never shared or
    persisted.
    """

    def __init__(self):
        self._maps: Dict[EntityKind, Dict[int, int]] = {}

    def record(self, kind: EntityKind, old_id: int, new_id: int) -> None:
        mapping = self._maps.setdefault(kind, {})
        existing = mapping.get(old_id)
        if existing is not None and existing != new_id:
            raise IdentityConflict(
                f"{kind.value} {old_id} already mapped to {existing}; refusing to remap to {new_id}."
            )
        mapping[old_id] = new_id

    def resolve(self, kind: EntityKind, old_id: int | None) -> int | None:
        if old_id is None:
            return None
        return self._maps.get(kind, {}).get(old_id)

    def contains(self, kind: EntityKind, old_id: int) -> bool:
        return old_id in self._maps.get(kind, {})

    def discard(self, kind: EntityKind) -> None:
        """Forget a kind whose writes were rolled back."""
        self._maps.pop(kind, None)

    def count(self, kind: EntityKind) -> int:
        return len(self._maps.get(kind, {}))

    def as_dict(self) -> Dict[str, Dict[int, int]]:
        return {kind.value: dict(mapping) for kind, mapping in self._maps.items()}
