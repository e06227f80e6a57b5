"""
Router FastAPI — endpoints du champ Neo.

GET  /neo/fields/{field_id}/settings                       → descripteur configurateur
POST /neo/fields/{field_id}/settings                       → réglages postés → enregistrés
GET  /neo/fields/{field_id}/owners/{owner_id}/input        → payload input (onglets rendus)
POST /neo/fields/{field_id}/owners/{owner_id}/blocks       → blocs postés → validés → enregistrés
POST /neo/fields/{field_id}/eager-map                      → map propriétaire → bloc
"""
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .database import db_get_field, get_db
from .field import NeoField
from .models import DEFAULT_LOCALE, Owner
from .renderer.input import input_descriptor
from .tree import display_level

log = logging.getLogger(__name__)
router = APIRouter(prefix="/neo", tags=["neo"])


class EagerMapInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_ids: List[int] = Field(default_factory=list, alias="ownerIds")


def _field(db: Session, field_id: int) -> NeoField:
    model = db_get_field(db, field_id)
    if model is None or model.type != "Neo":
        raise HTTPException(404, "Champ Neo introuvable")
    return NeoField(db, model)


@router.get("/fields/{field_id}/settings", summary="Réglages du champ (configurateur)")
def read_settings(field_id: int, db: Session = Depends(get_db)) -> dict:
    return _field(db, field_id).get_settings_descriptor()


@router.post("/fields/{field_id}/settings", summary="Assemble et enregistre les réglages postés")
def write_settings(field_id: int, payload: Any = Body(None), db: Session = Depends(get_db)) -> dict:
    field = _field(db, field_id)
    field.prep_settings(payload)
    field.on_after_save()
    return field.get_settings_descriptor()


@router.get("/fields/{field_id}/owners/{owner_id}/input", summary="Payload de l'input Neo")
def read_input(
    field_id: int,
    owner_id: int,
    locale: str = Query(DEFAULT_LOCALE),
    name: Optional[str] = Query(None),
    static: bool = Query(False),
    db: Session = Depends(get_db),
) -> dict:
    field = _field(db, field_id)
    owner = Owner(id=owner_id, locale=locale)
    criteria = field.prep_value(None, owner)
    criteria.status = None
    return input_descriptor(field.get_settings(), criteria.find(), name or field.handle, field.cache, static)


@router.post("/fields/{field_id}/owners/{owner_id}/blocks", summary="Enregistre les blocs postés")
def write_blocks(
    field_id: int,
    owner_id: int,
    payload: Any = Body(None),
    locale: str = Query(DEFAULT_LOCALE),
    db: Session = Depends(get_db),
) -> dict:
    field = _field(db, field_id)
    owner = Owner(id=owner_id, locale=locale)
    blocks = field.prep_value_from_post(payload, owner)

    result = field.validate(blocks)
    if not result.valid:
        log.info("Champ %s / propriétaire %s : %d erreur(s)", field.handle, owner_id, len(result.errors))
        raise HTTPException(422, {"errors": result.errors})

    registry = field.registry()
    saved = field.on_after_element_save(owner, blocks)
    return {
        "ok": True,
        "blocks": [
            {
                "id":        block.id,
                "blockType": getattr(registry.by_id(block.type_id), "handle", None),
                "sortOrder": block.sort_order,
                "level":     display_level(block),
                "enabled":   block.enabled,
                "collapsed": block.collapsed,
            }
            for block in saved
        ],
    }


@router.post("/fields/{field_id}/eager-map", summary="Map d'eager-loading pour un lot de propriétaires")
def eager_map(field_id: int, body: EagerMapInput, db: Session = Depends(get_db)) -> dict:
    return _field(db, field_id).get_eager_loading_map(body.owner_ids).to_payload()
