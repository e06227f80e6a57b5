"""
Service Neo — persistance des réglages et des blocs.
Couche logique indépendante de la route HTTP.

Fonctions exposées :
  get_settings(db, field_id) -> FieldSettings
  save_settings(db, settings, cache) -> FieldSettings
  delete_field(db, field_id, cache) -> None
  get_blocks(db, field_id, owner, ids) -> list[Block]
  save_field_value(db, field_id, owner, blocks, cache) -> list[Block]

Les entrées du cache de rendu des types et blocs supprimés sont invalidées
après commit.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .cache import RenderCache, get_render_cache
from .coerce import as_int
from .database import (
    db_delete_blocks, db_delete_groups, db_get_field, db_list_block_types, db_list_blocks,
    db_list_groups, jd, jo, row_to_block, row_to_block_type, row_to_group,
)
from .exceptions import OwnerNotSavedError, UnknownFieldError
from .models import Block, BlockDB, BlockTypeDB, FieldSettings, GroupDB, Owner, utcnow
from .tree import link_blocks

log = logging.getLogger(__name__)


# ── Réglages ─────────────────────────────────────────────────────────────────

def get_settings(db: Session, field_id: int) -> FieldSettings:
    field = db_get_field(db, field_id)
    if field is None:
        raise UnknownFieldError(f"Champ Neo introuvable : {field_id}")
    return FieldSettings(
        field_id=field_id,
        block_types=[row_to_block_type(row) for row in db_list_block_types(db, field_id)],
        groups=[row_to_group(row) for row in db_list_groups(db, field_id)],
        max_blocks=max(as_int(jo(field.settings).get("maxBlocks")), 0),
    )


def save_settings(db: Session, settings: FieldSettings, cache: Optional[RenderCache] = None) -> FieldSettings:
    """
    Enregistre types de blocs, groupes et maxBlocks d'un champ.

    Les types absents des nouveaux réglages sont supprimés avec leurs blocs ;
    les groupes sont remplacés.

    Returns:
        Réglages relus (ids des nouveaux types attribués)
    """
    field_id = settings.field_id
    field = db_get_field(db, field_id) if field_id is not None else None
    if field is None:
        raise UnknownFieldError(f"Champ Neo introuvable : {field_id}")

    try:
        existing = {row.id: row for row in db_list_block_types(db, field_id)}
        kept_ids = {bt.id for bt in settings.block_types if bt.id in existing}

        removed = [type_id for type_id in existing if type_id not in kept_ids]
        if removed:
            deleted = db_delete_blocks(db, field_id, removed)
            for type_id in removed:
                db.delete(existing[type_id])
            db.flush()
            log.info("Champ %s : %d type(s) supprimé(s), %d bloc(s) supprimé(s)", field_id, len(removed), deleted)

        for block_type in settings.block_types:
            row = existing.get(block_type.id) if block_type.id in kept_ids else None
            if row is None:
                row = BlockTypeDB(field_id=field_id)
                db.add(row)
            row.name = block_type.name
            row.handle = block_type.handle
            row.max_blocks = block_type.max_blocks
            row.sort_order = block_type.sort_order
            row.child_blocks = jd(sorted(block_type.child_blocks))
            row.top_level = block_type.top_level
            row.field_layout = block_type.layout.model_dump_json()

        db_delete_groups(db, field_id)
        for group in settings.groups:
            db.add(GroupDB(field_id=field_id, name=group.name, sort_order=group.sort_order))

        field.settings = jd({**jo(field.settings), "maxBlocks": settings.max_blocks})
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    (cache or get_render_cache()).invalidate(removed)
    log.info("Réglages du champ %s enregistrés — %d type(s), %d groupe(s)",
             field_id, len(settings.block_types), len(settings.groups))
    return get_settings(db, field_id)


def delete_field(db: Session, field_id: int, cache: Optional[RenderCache] = None) -> None:
    """Supprime blocs, groupes et types d'un champ (la ligne du champ appartient à l'hôte)."""
    try:
        deleted = db_delete_blocks(db, field_id)
        db_delete_groups(db, field_id)
        type_ids = []
        for row in db_list_block_types(db, field_id):
            type_ids.append(row.id)
            db.delete(row)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    (cache or get_render_cache()).invalidate(type_ids)
    log.info("Champ %s nettoyé — %d bloc(s) supprimé(s)", field_id, deleted)


# ── Blocs ────────────────────────────────────────────────────────────────────

def get_blocks(db: Session, field_id: int, owner: Owner, ids: Optional[Iterable[int]] = None) -> List[Block]:
    """Blocs persistés du propriétaire (tous, ou seulement `ids`), dans l'ordre."""
    if owner.id is None:
        return []
    rows = db_list_blocks(db, field_id, owner.id, owner.locale, ids)
    return link_blocks([row_to_block(row) for row in rows])


def save_field_value(
    db: Session,
    field_id: int,
    owner: Owner,
    blocks: List[Block],
    cache: Optional[RenderCache] = None,
) -> List[Block]:
    """
    Enregistre la séquence de blocs d'un propriétaire (après enregistrement de celui-ci).

    - nouveaux blocs : insérés
    - blocs modifiés : contenu + date mis à jour
    - tous : ordre, niveau, enabled/collapsed mis à jour
    - blocs persistés absents de la séquence : supprimés

    Les ids et dates ne sont reportés sur les blocs qu'après le commit : en cas
    d'échec, les nouveaux blocs restent nouveaux.

    Returns:
        La séquence, ids attribués et chaîne prev/next posée
    """
    if owner.id is None:
        raise OwnerNotSavedError("Le propriétaire doit être enregistré avant ses blocs")

    link_blocks(blocks)
    now = utcnow()

    try:
        rows_by_id = {row.id: row for row in db_list_blocks(db, field_id, owner.id, owner.locale)}
        saved = []
        created = updated = 0

        for block in blocks:
            row = rows_by_id.get(block.id) if block.id is not None else None
            if row is None:
                row = BlockDB(
                    field_id=field_id,
                    type_id=block.type_id,
                    owner_id=owner.id,
                    owner_locale=owner.locale,
                    content=jd(block.content),
                    date_updated=now,
                )
                db.add(row)
                created += 1
            elif block.modified:
                row.content = jd(block.content)
                row.date_updated = now
                updated += 1

            row.enabled = block.enabled
            row.collapsed = block.collapsed
            row.level = block.level
            row.sort_order = block.sort_order
            db.flush()
            saved.append((block, row.id, row.date_updated))

        kept_ids = {row_id for _, row_id, _ in saved}
        stale = [(row.id, row.type_id) for row_id, row in rows_by_id.items() if row_id not in kept_ids]
        for row_id, _ in stale:
            db.delete(rows_by_id[row_id])
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    for block, row_id, date_updated in saved:
        block.id = row_id
        block.field_id = field_id
        block.owner_id = owner.id
        block.owner_locale = owner.locale
        block.date_updated = date_updated

    render_cache = cache or get_render_cache()
    for row_id, type_id in stale:
        render_cache.invalidate([type_id], block_id=row_id)

    log.info("Propriétaire %s / champ %s : %d créé(s), %d modifié(s), %d supprimé(s)",
             owner.id, field_id, created, updated, len(stale))
    return blocks
