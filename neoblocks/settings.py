"""
Settings Assembler — réglages postés (non typés) → FieldSettings validé.

Entrée (formulaire de configuration) :
    {
      "maxBlocks": "10",
      "blockTypes": {
        "12":   {"name": "Texte", "handle": "text", "maxBlocks": "0", "sortOrder": "1",
                 "childBlocks": ["quote"], "topLevel": "1",
                 "fieldLayout": {"Contenu": ["3"]}, "requiredFields": ["3"]},
        "new1": {...}
      },
      "groups": {"name": ["Mise en page"], "sortOrder": ["0"]}
    }

Ne rejette jamais l'entrée : les valeurs manquantes ou illisibles sont normalisées.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from .coerce import as_bool, as_int, is_numeric_key
from .layouts import assemble_layout
from .models import (
    ANY_CHILD, NEO_BLOCK,
    BlockTypeDefinition, FieldDefinition, FieldLayout, FieldSettings, Group,
)

log = logging.getLogger(__name__)


def prep_settings(
    settings: Any,
    field_id: Optional[int] = None,
    catalog: Optional[Mapping[int, FieldDefinition]] = None,
) -> FieldSettings:
    """
    Assemble les réglages d'un champ Neo.

    Args:
        settings: réglages postés, ou FieldSettings déjà validé (retourné tel quel)
        field_id: id du champ propriétaire
        catalog:  catalogue des champs feuilles pour l'assemblage des layouts

    Returns:
        FieldSettings
    """
    if isinstance(settings, FieldSettings):
        return settings
    if not isinstance(settings, Mapping):
        settings = {}

    block_types: List[BlockTypeDefinition] = []
    seen = set()
    raw_types = settings.get("blockTypes")
    if isinstance(raw_types, Mapping):
        for key, raw in raw_types.items():
            block_type = _prep_block_type(key, raw if isinstance(raw, Mapping) else {}, field_id, catalog)
            if block_type.handle in seen:
                log.warning("Type de bloc %r ignoré : handle %r déjà utilisé", key, block_type.handle)
                continue
            seen.add(block_type.handle)
            block_types.append(block_type)

    return FieldSettings(
        field_id=field_id,
        block_types=block_types,
        groups=_prep_groups(settings.get("groups")),
        max_blocks=max(as_int(settings.get("maxBlocks")), 0),
    )


def _prep_block_type(key, raw: Mapping, field_id, catalog) -> BlockTypeDefinition:
    layout = FieldLayout()
    if raw.get("fieldLayout"):
        layout = assemble_layout(raw["fieldLayout"], raw.get("requiredFields") or [], catalog)
        layout = layout.model_copy(update={"type": NEO_BLOCK})

    return BlockTypeDefinition(
        id=int(key) if is_numeric_key(key) else None,
        field_id=field_id,
        name=str(raw.get("name") or ""),
        handle=str(raw.get("handle") or ""),
        max_blocks=max(as_int(raw.get("maxBlocks")), 0),
        sort_order=as_int(raw.get("sortOrder")),
        child_blocks=parse_child_blocks(raw.get("childBlocks")),
        top_level=as_bool(raw.get("topLevel"), False),
        layout=layout,
    )


def parse_child_blocks(value: Any) -> frozenset:
    """childBlocks posté : liste de handles, "*" (tous), "a,b" ou vide."""
    if isinstance(value, str):
        value = value.strip()
        if value == ANY_CHILD:
            return frozenset({ANY_CHILD})
        value = value.split(",")
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(str(h).strip() for h in value if h is not None and str(h).strip())
    return frozenset()


def _prep_groups(raw: Any) -> List[Group]:
    """Groupes postés en tableaux parallèles name[] / sortOrder[]."""
    if not isinstance(raw, Mapping):
        return []
    names = raw.get("name") or []
    sort_orders = raw.get("sortOrder") or []
    if not isinstance(names, (list, tuple)) or not isinstance(sort_orders, (list, tuple)):
        return []
    return [
        Group(name=str(name or ""), sort_order=as_int(sort_order))
        for name, sort_order in zip(names, sort_orders)
    ]


# ── Descripteur configurateur ───────────────────────────────────────────────

def settings_descriptor(settings: FieldSettings) -> Dict[str, Any]:
    """Payload du configurateur client (types de blocs + layouts + groupes)."""
    block_types = []
    for block_type in settings.block_types:
        block_types.append({
            "id":            block_type.id,
            "sortOrder":     block_type.sort_order,
            "name":          block_type.name,
            "handle":        block_type.handle,
            "maxBlocks":     block_type.max_blocks,
            "childBlocks":   sorted(block_type.child_blocks),
            "topLevel":      block_type.top_level,
            "fieldLayout":   [
                {"name": tab.name, "fields": [{"id": f.field_id, "required": f.required} for f in tab.fields]}
                for tab in block_type.layout.tabs
            ],
            "fieldLayoutId": block_type.layout.id,
        })

    groups = [
        {"id": group.id, "sortOrder": group.sort_order, "name": group.name}
        for group in settings.groups
    ]

    return {"maxBlocks": settings.max_blocks, "blockTypes": block_types, "groups": groups}
