"""
neoblocks — blocs de contenu typés et imbriqués pour un CMS.

Usage (bibliothèque):
    >>> from neoblocks import prep_settings, BlockTypeRegistry, build_blocks, link_blocks, validate_blocks
    >>> settings = prep_settings(posted_settings, field_id=4, catalog=catalog)
    >>> registry = BlockTypeRegistry.from_settings(settings)
    >>> blocks = link_blocks(build_blocks(previous, posted_blocks, registry, 4, "content", owner))
    >>> result = validate_blocks(blocks, registry, settings.max_blocks)

Usage (FastAPI):
    >>> from neoblocks.router import router
    >>> app.include_router(router)
"""
from .models import (
    NEO_BLOCK, ANY_CHILD,
    Block, BlockNode, BlockTypeDefinition, FieldDefinition, FieldLayout,
    FieldLayoutField, FieldLayoutTab, FieldSettings, Group, Owner,
)
from .registry import BlockTypeRegistry
from .settings import prep_settings, settings_descriptor
from .layouts import assemble_layout
from .tree import build_blocks, build_tree, display_level, link_blocks, nesting_errors
from .validation import ValidationResult, validate_block, validate_blocks
from .cache import BlockCacheDependency, MemoryCache, RenderCache, TabDescriptor, get_render_cache
from .criteria import BlockCriteria, has_blocks_clause, prep_value
from .eager_loading import EagerLoadingMap, get_eager_loading_map
from .field import NeoField
from .exceptions import NeoError, OwnerNotSavedError, UnknownFieldError

__version__ = "0.1.0"

__all__ = [
    # modèles
    "NEO_BLOCK", "ANY_CHILD",
    "Block", "BlockNode", "BlockTypeDefinition", "FieldDefinition", "FieldLayout",
    "FieldLayoutField", "FieldLayoutTab", "FieldSettings", "Group", "Owner",
    # réglages / registry
    "BlockTypeRegistry", "prep_settings", "settings_descriptor", "assemble_layout",
    # arbre / validation
    "build_blocks", "build_tree", "display_level", "link_blocks", "nesting_errors",
    "ValidationResult", "validate_block", "validate_blocks",
    # rendu
    "BlockCacheDependency", "MemoryCache", "RenderCache", "TabDescriptor", "get_render_cache",
    # requêtes
    "BlockCriteria", "has_blocks_clause", "prep_value",
    "EagerLoadingMap", "get_eager_loading_map",
    # champ
    "NeoField",
    # erreurs
    "NeoError", "OwnerNotSavedError", "UnknownFieldError",
]
