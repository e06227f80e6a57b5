"""
Registry des types de blocs d'un champ — résolution par handle ou par id.
"""
from typing import Iterable, Iterator, List, Optional

from .models import BlockTypeDefinition, FieldSettings


class BlockTypeRegistry:
    """Vue en lecture seule des BlockTypeDefinition d'un champ."""

    def __init__(self, block_types: Iterable[BlockTypeDefinition]):
        self._types: List[BlockTypeDefinition] = sorted(block_types, key=lambda bt: bt.sort_order)
        self._by_handle = {bt.handle: bt for bt in self._types}
        self._by_id = {bt.id: bt for bt in self._types if bt.id is not None}

    @classmethod
    def from_settings(cls, settings: FieldSettings) -> "BlockTypeRegistry":
        return cls(settings.block_types)

    def resolve(self, handle) -> Optional[BlockTypeDefinition]:
        """Type correspondant au handle, ou None (handle inconnu ou invalide)."""
        if not isinstance(handle, str):
            return None
        return self._by_handle.get(handle)

    def by_id(self, type_id: Optional[int]) -> Optional[BlockTypeDefinition]:
        return self._by_id.get(type_id)

    def handles(self) -> List[str]:
        return [bt.handle for bt in self._types]

    def __iter__(self) -> Iterator[BlockTypeDefinition]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, handle) -> bool:
        return handle in self._by_handle
