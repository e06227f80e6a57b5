"""
Criteria — collection paresseuse de blocs d'un propriétaire/champ/locale.

Quand les blocs sont déjà connus en mémoire (juste après une soumission),
find() renvoie directement cette séquence au lieu d'interroger la base.
"""
import logging
from typing import Any, Iterable, Iterator, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .database import row_to_block
from .models import Block, BlockDB, Owner
from .tree import children_of, link_blocks

log = logging.getLogger(__name__)


class BlockCriteria:
    """
    Requête différée sur `neo_blocks`.

    Filtres : field_id, owner_id, locale, id (False = aucun résultat),
    status ("enabled" | "disabled" | None), level, limit.
    """

    def __init__(
        self,
        db: Optional[Session] = None,
        *,
        field_id: Optional[int] = None,
        owner_id: Optional[int] = None,
        locale: Optional[str] = None,
        id: Union[None, bool, int, List[int]] = None,
        status: Optional[str] = "enabled",
        level: Optional[int] = None,
        limit: Optional[int] = None,
    ):
        self.db = db
        self.field_id = field_id
        self.owner_id = owner_id
        self.locale = locale
        self.id = id
        self.status = status
        self.level = level
        self.limit = limit
        self._matched: Optional[List[Block]] = None
        self._all: Optional[List[Block]] = None

    def set_matched_elements(self, blocks: Iterable[Block]) -> None:
        self._matched = list(blocks)

    def set_all_elements(self, blocks: Iterable[Block]) -> None:
        self._all = list(blocks)

    @property
    def is_in_memory(self) -> bool:
        return self._matched is not None

    def find(self) -> List[Block]:
        if self._matched is not None:
            return list(self._matched)
        if self.id is False or self.db is None:
            return []

        stmt = select(BlockDB)
        if self.field_id is not None:
            stmt = stmt.where(BlockDB.field_id == self.field_id)
        if self.owner_id is not None:
            stmt = stmt.where(BlockDB.owner_id == self.owner_id)
        if self.locale is not None:
            stmt = stmt.where(BlockDB.owner_locale == self.locale)
        if isinstance(self.id, list):
            stmt = stmt.where(BlockDB.id.in_(self.id))
        elif self.id is not None and self.id is not True:
            stmt = stmt.where(BlockDB.id == self.id)
        if self.status == "enabled":
            stmt = stmt.where(BlockDB.enabled.is_(True))
        elif self.status == "disabled":
            stmt = stmt.where(BlockDB.enabled.is_(False))
        if self.level is not None:
            stmt = stmt.where(BlockDB.level == self.level)
        stmt = stmt.order_by(BlockDB.sort_order, BlockDB.id)
        if self.limit:
            stmt = stmt.limit(self.limit)

        blocks = [row_to_block(row) for row in self.db.scalars(stmt)]
        return link_blocks(blocks)

    def first(self) -> Optional[Block]:
        blocks = self.find()
        return blocks[0] if blocks else None

    def count(self) -> int:
        return len(self.find())

    def children(self, block: Block) -> List[Block]:
        """Enfants directs dans la séquence complète (mémoire si connue, sinon base)."""
        everything = self._all if self._all is not None else self.find()
        return children_of(everything, block)

    def __iter__(self) -> Iterator[Block]:
        return iter(self.find())


def prep_value(db: Optional[Session], value: Any, field_id: int, owner: Owner) -> BlockCriteria:
    """
    Valeur du champ pour les templates : un BlockCriteria.

    Une liste de blocs (soumission en cours) est chaînée prev/next et installée
    comme résultat ; "" installe un résultat vide.
    """
    criteria = BlockCriteria(db, field_id=field_id, locale=owner.locale)
    if owner.id:
        criteria.owner_id = owner.id
    else:
        criteria.id = False

    if isinstance(value, list) or value == "":
        criteria.status = None
        criteria.limit = None
        if isinstance(value, list):
            link_blocks(value)
            criteria.set_matched_elements(value)
            criteria.set_all_elements(value)
        else:
            criteria.set_matched_elements([])

    return criteria


def has_blocks_clause(field_id: int, owner_id_column, value: Any):
    """
    Filtre propriétaire ":empty:" / ":notempty:" ("not :empty:" accepté).
    Retourne une expression SQLAlchemy corrélée sur `owner_id_column`, ou None.
    """
    if value == "not :empty:":
        value = ":notempty:"
    if value not in (":empty:", ":notempty:"):
        return None

    count = (
        select(func.count(BlockDB.id))
        .where(BlockDB.owner_id == owner_id_column, BlockDB.field_id == field_id)
        .scalar_subquery()
    )
    return count != 0 if value == ":notempty:" else count == 0
