"""
Tree Builder — reconstruction de la séquence de blocs depuis les données postées.

Format posté (ordre d'insertion = ordre des blocs) :
    {
      "12":   {"type": "text", "level": 0, "enabled": "1", "modified": "0", "fields": {...}},
      "new1": {"type": "quote", "level": 1, "fields": {...}}
    }
La hiérarchie n'est encodée que par `level` (0 = premier niveau côté client).
Les blocs stockés ont level = level posté + 1.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .coerce import as_bool, as_int, is_numeric_key
from .models import Block, BlockNode, Owner
from .registry import BlockTypeRegistry

log = logging.getLogger(__name__)


def build_blocks(
    previous: Iterable[Block],
    posted: Any,
    registry: BlockTypeRegistry,
    field_id: Optional[int],
    field_handle: str,
    owner: Owner,
) -> List[Block]:
    """
    Réconcilie les blocs postés avec les blocs déjà persistés.

    Args:
        previous:     blocs persistés de ce propriétaire/champ/locale (peut être vide)
        posted:       mapping ordonné clé de bloc → données du bloc
        registry:     types de blocs du champ
        field_id:     id du champ Neo
        field_handle: handle du champ (chemin du contenu posté)
        owner:        propriétaire courant

    Returns:
        Blocs dans l'ordre posté. Les entrées de type inconnu sont ignorées.
    """
    if not isinstance(posted, Mapping):
        return []

    previous_by_id: Dict[int, Block] = {b.id: b for b in previous or () if b.id is not None}
    blocks: List[Block] = []

    for key, data in posted.items():
        key = str(key)
        if not isinstance(data, Mapping):
            log.debug("Bloc %s ignoré : données non structurées", key)
            continue

        block_type = registry.resolve(data.get("type"))
        if block_type is None:
            log.debug("Bloc %s ignoré : type %r inconnu", key, data.get("type"))
            continue

        existing = _existing_block(key, previous_by_id)
        if existing is None:
            block = Block(
                field_id=field_id,
                type_id=block_type.id,
                owner_id=owner.id,
                owner_locale=owner.locale,
            )
        else:
            block = existing
            block.modified = as_bool(data.get("modified"), True)

        block.owner = owner
        block.enabled = as_bool(data.get("enabled"), True)
        block.collapsed = as_bool(data.get("collapsed"), False)
        block.level = max(as_int(data.get("level")), 0) + 1

        if owner.content_post_location:
            block.content_post_location = f"{owner.content_post_location}.{field_handle}.{key}.fields"

        fields = data.get("fields")
        if isinstance(fields, Mapping):
            block.set_content_from_post(fields)

        blocks.append(block)

    return blocks


def _existing_block(key: str, previous_by_id: Dict[int, Block]) -> Optional[Block]:
    if key.startswith("new") or not is_numeric_key(key):
        return None
    return previous_by_id.get(int(key))


def link_blocks(blocks: List[Block]) -> List[Block]:
    """Pose sort_order (0..n-1) et la chaîne prev/next sur toute la séquence."""
    previous = None
    for position, block in enumerate(blocks):
        block.sort_order = position
        block.set_prev(previous)
        block.set_next(None)
        if previous is not None:
            previous.set_next(block)
        previous = block
    return blocks


def display_level(block: Block) -> int:
    """Niveau côté client (0 = premier niveau)."""
    return block.level - 1


# ── Imbrication ──────────────────────────────────────────────────────────────

def nesting_errors(blocks: List[Block], registry: BlockTypeRegistry) -> List[str]:
    """
    Vérifie l'imbrication de la séquence plate avec une pile d'ancêtres ouverts.

    Signale : saut de niveau > +1, type non autorisé sous son parent,
    type non autorisé au premier niveau.
    """
    errors: List[str] = []
    stack: List[Block] = []

    for position, block in enumerate(blocks, start=1):
        while stack and stack[-1].level >= block.level:
            stack.pop()
        parent = stack[-1] if stack else None
        expected = parent.level + 1 if parent else 1
        block_type = registry.by_id(block.type_id)

        if block.level > expected:
            log.warning("Bloc #%d : niveau %d après le niveau %d", position, block.level, expected - 1)
            errors.append(
                f"Block #{position} is nested too deep (level {block.level} under level {expected - 1})."
            )
        elif block_type is None:
            pass
        elif parent is None:
            if not block_type.top_level:
                errors.append(f"{_label(block_type)} blocks can't be at the top level.")
        else:
            parent_type = registry.by_id(parent.type_id)
            if parent_type is not None and not parent_type.allows_child(block_type.handle):
                errors.append(
                    f"{_label(block_type)} blocks can't be nested under {_label(parent_type)} blocks."
                )

        stack.append(block)

    return list(dict.fromkeys(errors))


def _label(block_type) -> str:
    return block_type.name or block_type.handle


def build_tree(blocks: List[Block]) -> List[BlockNode]:
    """Arbre depuis la séquence plate. Un saut de niveau est ramené à parent + 1."""
    roots: List[BlockNode] = []
    stack: List[BlockNode] = []

    for block in blocks:
        while stack and stack[-1].block.level >= block.level:
            stack.pop()
        depth = min(block.level, stack[-1].depth + 1 if stack else 1)
        node = BlockNode(block=block, depth=depth)
        if stack:
            stack[-1].children.append(node)
        else:
            roots.append(node)
        stack.append(node)

    return roots


def children_of(blocks: List[Block], block: Block) -> List[Block]:
    """Enfants directs de `block` dans la séquence plate."""
    children: List[Block] = []
    try:
        start = next(i for i, b in enumerate(blocks) if b is block)
    except StopIteration:
        return children
    for candidate in blocks[start + 1:]:
        if candidate.level <= block.level:
            break
        if candidate.level == block.level + 1:
            children.append(candidate)
    return children
