"""
Data models — champs, types de blocs, groupes, blocs Neo
SQLAlchemy (SQLite) + Pydantic v2 + dataclasses (blocs en mémoire)
"""
import hashlib
import json
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Marqueur d'élément posé sur les layouts des types de blocs
NEO_BLOCK = "NeoBlock"

# Membre spécial de child_blocks : tous les types sont acceptés en enfant
ANY_CHILD = "*"

DEFAULT_LOCALE = "en"


def utcnow() -> datetime:
    """Horodatage UTC naïf (colonnes DateTime sans fuseau)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _fingerprint(payload: Any) -> str:
    raw = json.dumps(payload, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


# ── ORM ────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


class FieldDB(Base):
    """Champ de l'hôte (Neo ou champ feuille). Les réglages Neo vivent dans `settings`."""
    __tablename__ = "fields"
    id:           Mapped[int]           = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name:         Mapped[str]           = mapped_column(sa.String, nullable=False)
    handle:       Mapped[str]           = mapped_column(sa.String, nullable=False, unique=True)
    type:         Mapped[str]           = mapped_column(sa.String, default="Neo")
    instructions: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    settings:     Mapped[str]           = mapped_column(sa.Text, default="{}")


class BlockTypeDB(Base):
    __tablename__ = "neo_block_types"
    __table_args__ = (sa.UniqueConstraint("field_id", "handle", name="uq_neo_block_types_handle"),)
    id:           Mapped[int]  = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    field_id:     Mapped[int]  = mapped_column(sa.Integer, sa.ForeignKey("fields.id"), nullable=False, index=True)
    name:         Mapped[str]  = mapped_column(sa.String, nullable=False, default="")
    handle:       Mapped[str]  = mapped_column(sa.String, nullable=False)
    max_blocks:   Mapped[int]  = mapped_column(sa.Integer, default=0)
    sort_order:   Mapped[int]  = mapped_column(sa.Integer, default=0)
    child_blocks: Mapped[str]  = mapped_column(sa.Text, default="[]")
    top_level:    Mapped[bool] = mapped_column(sa.Boolean, default=True)
    field_layout: Mapped[str]  = mapped_column(sa.Text, default="{}")


class GroupDB(Base):
    __tablename__ = "neo_groups"
    id:         Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    field_id:   Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("fields.id"), nullable=False, index=True)
    name:       Mapped[str] = mapped_column(sa.String, default="")
    sort_order: Mapped[int] = mapped_column(sa.Integer, default=0)


class BlockDB(Base):
    __tablename__ = "neo_blocks"
    __table_args__ = (sa.Index("ix_neo_blocks_owner", "field_id", "owner_id", "owner_locale"),)
    id:           Mapped[int]                = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    field_id:     Mapped[int]                = mapped_column(sa.Integer, sa.ForeignKey("fields.id"), nullable=False)
    type_id:      Mapped[int]                = mapped_column(sa.Integer, sa.ForeignKey("neo_block_types.id"), nullable=False)
    owner_id:     Mapped[int]                = mapped_column(sa.Integer, nullable=False)
    owner_locale: Mapped[Optional[str]]      = mapped_column(sa.String, nullable=True)
    enabled:      Mapped[bool]               = mapped_column(sa.Boolean, default=True)
    collapsed:    Mapped[bool]               = mapped_column(sa.Boolean, default=False)
    level:        Mapped[int]                = mapped_column(sa.Integer, default=1)
    sort_order:   Mapped[int]                = mapped_column(sa.Integer, default=0)
    content:      Mapped[str]                = mapped_column(sa.Text, default="{}")
    date_updated: Mapped[Optional[datetime]] = mapped_column(sa.DateTime, default=utcnow)


# ── PYDANTIC — layouts (contrat hôte) ───────────────────────────────────

class FieldDefinition(BaseModel):
    """Entrée du catalogue de champs feuilles de l'hôte."""
    id:           int
    name:         str = ""
    handle:       str
    type:         str = "text"
    instructions: str = ""


class FieldLayoutField(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_id:     int
    handle:       str
    name:         str  = ""
    type:         str  = "text"
    required:     bool = False
    instructions: str  = ""


class FieldLayoutTab(BaseModel):
    model_config = ConfigDict(frozen=True)

    name:       str
    sort_order: int                    = 0
    fields:     List[FieldLayoutField] = Field(default_factory=list)


class FieldLayout(BaseModel):
    """Layout d'un type de bloc : onglets → champs. `type` porte le marqueur d'élément."""
    model_config = ConfigDict(frozen=True)

    id:   Optional[int]        = None
    type: Optional[str]        = None
    tabs: List[FieldLayoutTab] = Field(default_factory=list)

    def all_fields(self) -> List[FieldLayoutField]:
        return [f for tab in self.tabs for f in tab.fields]

    def version(self) -> str:
        """Empreinte stable du contenu du layout (identité/version pour le cache de rendu)."""
        return _fingerprint(self.model_dump(mode="json", exclude={"id"}))


# ── PYDANTIC — réglages du champ ────────────────────────────────────────

class BlockTypeDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id:           Optional[int]  = None
    field_id:     Optional[int]  = None
    name:         str            = ""
    handle:       str
    max_blocks:   int            = 0  # 0 = illimité
    sort_order:   int            = 0
    child_blocks: FrozenSet[str] = frozenset()
    top_level:    bool           = True
    layout:       FieldLayout    = Field(default_factory=FieldLayout)

    def allows_child(self, handle: str) -> bool:
        return ANY_CHILD in self.child_blocks or handle in self.child_blocks


class Group(BaseModel):
    """Séparateur visuel de la palette de types. Aucun lien avec les blocs."""
    model_config = ConfigDict(frozen=True)

    id:         Optional[int] = None
    name:       str           = ""
    sort_order: int           = 0


class FieldSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_id:    Optional[int]             = None
    block_types: List[BlockTypeDefinition] = Field(default_factory=list)
    groups:      List[Group]               = Field(default_factory=list)
    max_blocks:  int                       = 0

    @model_validator(mode="after")
    def _unique_handles(self):
        seen = set()
        for block_type in self.block_types:
            if block_type.handle in seen:
                raise ValueError(f"Handle de type de bloc en double : {block_type.handle!r}")
            seen.add(block_type.handle)
        return self


class Owner(BaseModel):
    """Enregistrement propriétaire des blocs (entrée, page…). id None = pas encore enregistré."""
    id:                    Optional[int] = None
    locale:                str           = DEFAULT_LOCALE
    content_post_location: Optional[str] = None


# ── Blocs en mémoire ────────────────────────────────────────────────────

@dataclass(eq=False)
class Block:
    """
    Bloc Neo en cours d'édition ou chargé depuis `neo_blocks`.

    `prev`/`next` chaînent toute la séquence soumise (pas par niveau) via des
    références faibles ; `level` encode l'imbrication (1 = premier niveau).
    """
    field_id:              Optional[int]             = None
    type_id:               Optional[int]             = None
    id:                    Optional[int]             = None
    owner_id:              Optional[int]             = None
    owner_locale:          Optional[str]             = None
    enabled:               bool                      = True
    collapsed:             bool                      = False
    level:                 int                       = 1
    sort_order:            int                       = 0
    modified:              bool                      = True
    content:               Dict[str, Any]            = field(default_factory=dict)
    date_updated:          Optional[datetime]        = None
    errors:                Dict[str, List[str]]      = field(default_factory=dict)
    content_post_location: Optional[str]             = None
    owner:                 Optional[Owner]           = field(default=None, repr=False)
    _prev:                 Optional[weakref.ref]     = field(default=None, repr=False)
    _next:                 Optional[weakref.ref]     = field(default=None, repr=False)

    @property
    def prev(self) -> Optional["Block"]:
        return self._prev() if self._prev is not None else None

    @property
    def next(self) -> Optional["Block"]:
        return self._next() if self._next is not None else None

    def set_prev(self, block: Optional["Block"]) -> None:
        self._prev = weakref.ref(block) if block is not None else None

    def set_next(self, block: Optional["Block"]) -> None:
        self._next = weakref.ref(block) if block is not None else None

    @property
    def is_new(self) -> bool:
        return self.id is None

    def set_content_from_post(self, values: Dict[str, Any]) -> None:
        """Fusionne les valeurs postées sur le contenu existant (clé = handle du champ)."""
        self.content = {**self.content, **dict(values)}

    def add_error(self, handle: str, message: str) -> None:
        self.errors.setdefault(handle, []).append(message)

    def has_errors(self) -> bool:
        return any(self.errors.values())

    def content_version(self) -> str:
        """Empreinte du contenu persisté + erreurs affichées (dépendance du cache de rendu)."""
        return _fingerprint({
            "content":      self.content,
            "enabled":      self.enabled,
            "collapsed":    self.collapsed,
            "date_updated": self.date_updated,
            "errors":       self.errors,
        })


@dataclass(eq=False)
class BlockNode:
    """Nœud de l'arbre reconstruit depuis la séquence plate."""
    block:    Block
    depth:    int
    children: List["BlockNode"] = field(default_factory=list)
