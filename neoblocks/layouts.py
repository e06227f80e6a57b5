"""
Field layouts — assemblage des layouts de types de blocs depuis le formulaire de réglages.

Format posté (designer de layout de l'hôte) :
    {"Contenu": ["3", "4"], "SEO": ["7"]}   + requiredFields: ["3"]
Les ids inconnus du catalogue sont ignorés.
"""
import logging
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from .coerce import as_int
from .models import FieldDefinition, FieldLayout, FieldLayoutField, FieldLayoutTab

log = logging.getLogger(__name__)


def assemble_layout(
    post: Any,
    required_ids: Optional[Iterable[Any]] = None,
    catalog: Optional[Mapping[int, FieldDefinition]] = None,
) -> FieldLayout:
    """
    Construit un FieldLayout depuis le payload du designer.

    Args:
        post:         {nom d'onglet: [ids de champs]} — ou un layout déjà structuré ({"tabs": [...]})
        required_ids: ids des champs obligatoires
        catalog:      catalogue {id: FieldDefinition} des champs de l'hôte

    Returns:
        FieldLayout (sans marqueur d'élément — posé par l'assembleur de réglages)
    """
    if isinstance(post, FieldLayout):
        return post
    if not isinstance(post, Mapping):
        return FieldLayout()
    if isinstance(post.get("tabs"), list):
        try:
            return FieldLayout.model_validate(post)
        except ValidationError as exc:
            log.warning("Layout structuré illisible, remplacé par un layout vide : %d erreur(s)", exc.error_count())
            return FieldLayout()

    catalog = catalog or {}
    required = {as_int(r, -1) for r in (required_ids or [])}

    tabs = []
    for position, (tab_name, field_ids) in enumerate(post.items(), start=1):
        if not isinstance(field_ids, (list, tuple)):
            continue
        fields = []
        for raw_id in field_ids:
            field_id = as_int(raw_id, -1)
            definition = catalog.get(field_id)
            if definition is None:
                log.debug("Champ %r absent du catalogue — ignoré dans l'onglet %r", raw_id, tab_name)
                continue
            fields.append(FieldLayoutField(
                field_id=field_id,
                handle=definition.handle,
                name=definition.name,
                type=definition.type,
                instructions=definition.instructions,
                required=field_id in required,
            ))
        tabs.append(FieldLayoutTab(name=str(tab_name), sort_order=position, fields=fields))

    return FieldLayout(tabs=tabs)
