"""
Eager-loading — map propriétaire → bloc pour un lot de propriétaires, en une requête.

L'ordre du map n'est pas garanti (pas de clé de tri) : ne pas en déduire la structure.
"""
import logging
from typing import Dict, Iterable, List

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import NEO_BLOCK, BlockDB

log = logging.getLogger(__name__)


class EagerLoadingMap(BaseModel):
    element_type: str                  = NEO_BLOCK
    map:          List[Dict[str, int]] = Field(default_factory=list)
    criteria:     Dict[str, int]       = Field(default_factory=dict)

    def to_payload(self) -> dict:
        return {"elementType": self.element_type, "map": self.map, "criteria": self.criteria}


def get_eager_loading_map(db: Session, field_id: int, owner_ids: Iterable[int]) -> EagerLoadingMap:
    """
    Paires (source = owner_id, target = block_id) de tous les blocs du champ pour ces propriétaires.

    Args:
        db:        Session SQLAlchemy
        field_id:  id du champ Neo
        owner_ids: ids des propriétaires du lot

    Returns:
        EagerLoadingMap (+ critère {"fieldId"} pour le chargement groupé suivant)
    """
    ids = sorted({int(i) for i in owner_ids if i is not None})
    criteria = {"fieldId": field_id}
    if not ids:
        return EagerLoadingMap(criteria=criteria)

    stmt = (
        select(BlockDB.owner_id.label("source"), BlockDB.id.label("target"))
        .where(BlockDB.field_id == field_id, BlockDB.owner_id.in_(ids))
    )
    pairs = [{"source": row.source, "target": row.target} for row in db.execute(stmt)]
    log.debug("Eager-loading champ %s : %d propriétaire(s), %d bloc(s)", field_id, len(ids), len(pairs))
    return EagerLoadingMap(map=pairs, criteria=criteria)
