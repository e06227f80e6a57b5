"""SQLite — init + session + CRUD helpers (champs, types de blocs, groupes, blocs Neo)"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from .models import (
    Base, FieldDB, BlockTypeDB, GroupDB, BlockDB,
    Block, BlockTypeDefinition, FieldDefinition, FieldLayout, Group,
)

log = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"

DB_PATH      = os.getenv("DB_PATH", str(DATA_DIR / "neoblocks.db"))
ENGINE       = create_engine(f"sqlite:///{DB_PATH}", connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=ENGINE)


def init_db(engine=None):
    """Crée les tables (idempotent). Sans argument : moteur SQLite de DB_PATH."""
    if engine is None:
        Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
        engine = ENGINE
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ── JSON helpers ──
def jl(s: Optional[str]) -> list:
    try:
        value = json.loads(s or "[]")
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


def jo(s: Optional[str]) -> dict:
    try:
        value = json.loads(s or "{}")
    except (TypeError, ValueError):
        return {}
    return value if isinstance(value, dict) else {}


def jd(o) -> str:
    return json.dumps(o, ensure_ascii=False, default=str)


# ── Champs ──
def db_get_field(db: Session, field_id: int) -> Optional[FieldDB]:
    return db.get(FieldDB, field_id)

def db_field_catalog(db: Session, ids: Optional[Iterable[int]] = None) -> Dict[int, FieldDefinition]:
    """Catalogue des champs feuilles {id: FieldDefinition} pour l'assemblage des layouts."""
    stmt = select(FieldDB).where(FieldDB.type != "Neo")
    if ids is not None:
        stmt = stmt.where(FieldDB.id.in_(list(ids)))
    return {
        row.id: FieldDefinition(
            id=row.id, name=row.name, handle=row.handle,
            type=row.type, instructions=row.instructions or "",
        )
        for row in db.scalars(stmt)
    }


# ── Types de blocs / groupes ──
def db_list_block_types(db: Session, field_id: int) -> List[BlockTypeDB]:
    stmt = select(BlockTypeDB).filter_by(field_id=field_id).order_by(BlockTypeDB.sort_order, BlockTypeDB.id)
    return list(db.scalars(stmt))

def db_list_groups(db: Session, field_id: int) -> List[GroupDB]:
    stmt = select(GroupDB).filter_by(field_id=field_id).order_by(GroupDB.sort_order, GroupDB.id)
    return list(db.scalars(stmt))

def db_delete_groups(db: Session, field_id: int) -> None:
    db.execute(delete(GroupDB).where(GroupDB.field_id == field_id))


# ── Blocs ──
def db_list_blocks(
    db: Session,
    field_id: int,
    owner_id: int,
    locale: Optional[str] = None,
    ids: Optional[Iterable[int]] = None,
) -> List[BlockDB]:
    stmt = select(BlockDB).where(BlockDB.field_id == field_id, BlockDB.owner_id == owner_id)
    if locale is not None:
        stmt = stmt.where(BlockDB.owner_locale == locale)
    if ids is not None:
        stmt = stmt.where(BlockDB.id.in_(list(ids)))
    return list(db.scalars(stmt.order_by(BlockDB.sort_order, BlockDB.id)))

def db_delete_blocks(db: Session, field_id: int, type_ids: Optional[Iterable[int]] = None) -> int:
    stmt = delete(BlockDB).where(BlockDB.field_id == field_id)
    if type_ids is not None:
        stmt = stmt.where(BlockDB.type_id.in_(list(type_ids)))
    return db.execute(stmt).rowcount or 0


# ── Conversions ligne → modèle ──
def row_to_block_type(row: BlockTypeDB) -> BlockTypeDefinition:
    layout_data = jo(row.field_layout)
    layout = FieldLayout.model_validate(layout_data) if layout_data else FieldLayout()
    return BlockTypeDefinition(
        id=row.id,
        field_id=row.field_id,
        name=row.name,
        handle=row.handle,
        max_blocks=row.max_blocks or 0,
        sort_order=row.sort_order or 0,
        child_blocks=frozenset(str(h) for h in jl(row.child_blocks)),
        top_level=bool(row.top_level),
        layout=layout,
    )


def row_to_group(row: GroupDB) -> Group:
    return Group(id=row.id, name=row.name or "", sort_order=row.sort_order or 0)


def row_to_block(row: BlockDB) -> Block:
    return Block(
        id=row.id,
        field_id=row.field_id,
        type_id=row.type_id,
        owner_id=row.owner_id,
        owner_locale=row.owner_locale,
        enabled=bool(row.enabled),
        collapsed=bool(row.collapsed),
        level=row.level or 1,
        sort_order=row.sort_order or 0,
        modified=False,
        content=jo(row.content),
        date_updated=row.date_updated,
    )
