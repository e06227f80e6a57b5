"""
NeoField — le type de champ Neo vu par l'hôte.

Usage:
    >>> field = NeoField(db, db_get_field(db, 4))
    >>> blocks = field.prep_value_from_post(request_data["content"], owner)
    >>> result = field.validate(blocks)
    >>> if result.valid:
    ...     field.on_after_element_save(owner, blocks)
"""
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from .cache import RenderCache, get_render_cache
from .coerce import is_numeric_key
from .criteria import BlockCriteria, has_blocks_clause, prep_value
from .database import db_field_catalog
from .eager_loading import EagerLoadingMap, get_eager_loading_map
from .models import Block, FieldDB, FieldDefinition, FieldSettings, Owner
from .registry import BlockTypeRegistry
from .renderer.input import MAX_SETTINGS_DEPTH, NESTED_FIELD_HTML, render_input, render_static
from .renderer.namespace import get_namespace, namespace_depth
from .service import delete_field, get_blocks, get_settings, save_field_value, save_settings
from .settings import prep_settings, settings_descriptor
from .tree import build_blocks
from .validation import BlockValidator, ValidationResult, validate_block, validate_blocks

log = logging.getLogger(__name__)


class NeoField:
    """Champ Neo lié à une session : réglages, soumission, validation, rendu, eager-loading."""

    def __init__(
        self,
        db: Session,
        model: FieldDB,
        catalog: Optional[Mapping[int, FieldDefinition]] = None,
        cache: Optional[RenderCache] = None,
        block_validator: BlockValidator = validate_block,
    ):
        self.db = db
        self.model = model
        self.cache = cache or get_render_cache()
        self.block_validator = block_validator
        self._catalog = catalog
        self._settings: Optional[FieldSettings] = None

    @property
    def id(self) -> int:
        return self.model.id

    @property
    def handle(self) -> str:
        return self.model.handle

    @property
    def catalog(self) -> Mapping[int, FieldDefinition]:
        if self._catalog is None:
            self._catalog = db_field_catalog(self.db)
        return self._catalog

    # ── Réglages ──

    def get_settings(self) -> FieldSettings:
        if self._settings is None:
            self._settings = get_settings(self.db, self.id)
        return self._settings

    def prep_settings(self, settings: Any) -> FieldSettings:
        self._settings = prep_settings(settings, field_id=self.id, catalog=self.catalog)
        return self._settings

    def registry(self) -> BlockTypeRegistry:
        return BlockTypeRegistry.from_settings(self.get_settings())

    def get_settings_descriptor(self) -> Dict[str, Any]:
        return settings_descriptor(self.get_settings())

    def get_settings_html(self) -> str:
        if namespace_depth(get_namespace()) > MAX_SETTINGS_DEPTH:
            return NESTED_FIELD_HTML
        payload = json.dumps(self.get_settings_descriptor(), ensure_ascii=False).replace("</", "<\\/")
        return (
            f'<div class="neo-configurator" data-field="{self.handle}"></div>\n'
            f'<script>new Neo.Configurator({payload});</script>'
        )

    def on_after_save(self) -> None:
        self._settings = save_settings(self.db, self.get_settings(), self.cache)

    def on_before_delete(self) -> None:
        delete_field(self.db, self.id, self.cache)
        self._settings = None

    # ── Valeur ──

    def prep_value(self, value: Any, owner: Owner) -> BlockCriteria:
        return prep_value(self.db, value, self.id, owner)

    def prep_value_from_post(self, data: Any, owner: Owner) -> List[Block]:
        """Blocs postés → séquence de Block (les blocs existants sont rechargés par id)."""
        if not isinstance(data, Mapping):
            return []
        ids = [int(key) for key in map(str, data.keys()) if not key.startswith("new") and is_numeric_key(key)]
        previous = get_blocks(self.db, self.id, owner, ids) if ids and owner.id is not None else []
        log.debug("Champ %s : %d entrée(s) postée(s), %d bloc(s) existant(s)", self.handle, len(data), len(previous))
        return build_blocks(previous, data, self.registry(), self.id, self.handle, owner)

    def validate(self, blocks: List[Block]) -> ValidationResult:
        settings = self.get_settings()
        return validate_blocks(blocks, self.registry(), settings.max_blocks, self.block_validator)

    def on_after_element_save(self, owner: Owner, blocks: List[Block]) -> List[Block]:
        return save_field_value(self.db, self.id, owner, blocks, self.cache)

    # ── Rendu ──

    def _blocks(self, value: Any) -> List[Block]:
        if isinstance(value, BlockCriteria):
            value.status = None
            value.limit = None
            return value.find()
        return list(value or [])

    def get_input_html(self, name: str, value: Any, static: bool = False) -> str:
        return render_input(self.get_settings(), self._blocks(value), name, self.cache, static)

    def get_static_html(self, value: Any) -> str:
        return render_static(self.get_settings(), self._blocks(value), self.handle, self.cache)

    # ── Requêtes ──

    def get_eager_loading_map(self, owner_ids) -> EagerLoadingMap:
        return get_eager_loading_map(self.db, self.id, owner_ids)

    def has_blocks_clause(self, owner_id_column, value: Any):
        return has_blocks_clause(self.id, owner_id_column, value)
