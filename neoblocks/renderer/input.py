"""
Input du champ Neo — payload client (types de blocs + blocs + groupes) et markup.
Chaque onglet passe par le RenderCache : gabarit par type, valeurs par bloc.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..cache import RenderCache
from ..models import Block, FieldSettings
from ..registry import BlockTypeRegistry
from ..tree import display_level
from .namespace import format_input_id, get_namespace, namespace_depth, namespace_input_id, namespace_input_name

log = logging.getLogger(__name__)

NO_BLOCKS_HTML = '<p class="light">No blocks.</p>'
NESTED_FIELD_HTML = '<span class="error">Unable to nest Neo fields.</span>'

# Au-delà, le champ est rendu dans un autre champ Neo/Matrix
MAX_INPUT_DEPTH = 1
MAX_SETTINGS_DEPTH = 2


def input_descriptor(
    settings: FieldSettings,
    blocks: Sequence[Block],
    name: str,
    cache: RenderCache,
    static: bool = False,
    input_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Payload consommé par le client.

    Args:
        settings: réglages du champ
        blocks:   blocs existants, dans l'ordre
        name:     nom d'input du champ (avant namespace ambiant)
        cache:    cache de rendu des onglets
        static:   rendu non éditable

    Returns:
        {namespace, inputId, blockTypes, groups, maxBlocks, blocks, static}
    """
    namespace = get_namespace()
    registry = BlockTypeRegistry.from_settings(settings)

    block_types = []
    for block_type in registry:
        block_types.append({
            "id":            block_type.id,
            "fieldLayoutId": block_type.layout.id,
            "sortOrder":     block_type.sort_order,
            "handle":        block_type.handle,
            "name":          block_type.name,
            "maxBlocks":     block_type.max_blocks,
            "childBlocks":   sorted(block_type.child_blocks),
            "topLevel":      block_type.top_level,
            "tabs":          [t.to_payload() for t in cache.block_type_tabs(block_type, None, name, static)],
        })

    groups = [{"sortOrder": g.sort_order, "name": g.name} for g in settings.groups]

    blocks_info: List[Dict[str, Any]] = []
    for block in blocks:
        block_type = registry.by_id(block.type_id)
        if block_type is None:
            log.warning("Bloc %s : type %s absent des réglages — non rendu", block.id, block.type_id)
            continue
        blocks_info.append({
            "id":        block.id,
            "blockType": block_type.handle,
            "sortOrder": len(blocks_info),
            "collapsed": bool(block.collapsed),
            "enabled":   bool(block.enabled),
            "level":     display_level(block),
            "tabs":      [t.to_payload() for t in cache.block_tabs(block, block_type, name, static)],
        })

    return {
        "namespace":  namespace_input_name(name, namespace),
        "inputId":    namespace_input_id(input_id or format_input_id(name), namespace),
        "blockTypes": block_types,
        "groups":     groups,
        "maxBlocks":  settings.max_blocks,
        "blocks":     blocks_info,
        "static":     static,
    }


def render_input(
    settings: FieldSettings,
    blocks: Sequence[Block],
    name: str,
    cache: RenderCache,
    static: bool = False,
) -> str:
    """Markup de l'input : conteneur + initialisation du client Neo."""
    if namespace_depth(get_namespace()) > MAX_INPUT_DEPTH:
        return NESTED_FIELD_HTML

    descriptor = input_descriptor(settings, blocks, name, cache, static)
    payload = json.dumps(descriptor, ensure_ascii=False).replace("</", "<\\/")
    return (
        f'<div id="{descriptor["inputId"]}" class="neo-input{" neo-input--static" if static else ""}"></div>\n'
        f'<script>new Neo.Input({payload});</script>'
    )


def render_static(settings: FieldSettings, blocks: Sequence[Block], name: str, cache: RenderCache) -> str:
    """Version non éditable ; "No blocks." si le champ est vide."""
    if not blocks:
        return NO_BLOCKS_HTML
    return render_input(settings, blocks, name, cache, static=True)
