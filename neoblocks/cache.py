"""
Render Cache — descripteurs d'onglets par type de bloc / bloc, mémoïsés.

Clé  : neoblock:{typeId}:{blockId|'new'|''}:{namespace}:{'s'|''}
Entrée stockée avec sa dépendance (BlockCacheDependency) :
  - empreinte du layout du type (toujours)
  - id + empreinte du contenu du bloc (si un bloc concret est rendu)
À la lecture, la dépendance stockée est comparée à celle recalculée : toute
différence = miss. Un rendu en échec n'est jamais mis en cache.
"""
import logging
import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .models import Block, BlockTypeDefinition
from .renderer.fields import FieldRenderer, HtmlFieldRenderer
from .renderer.namespace import get_namespace, namespace_input_name, namespace_scope

log = logging.getLogger(__name__)

RENDER_CACHE_ENABLED = os.getenv("NEO_RENDER_CACHE", "1") != "0"
SINGLE_FLIGHT        = os.getenv("NEO_SINGLE_FLIGHT", "1") != "0"
CACHE_MAX_ENTRIES    = int(os.getenv("NEO_RENDER_CACHE_SIZE", "2048"))

PLACEHOLDER = "__NEOBLOCK__"

_LOCK_STRIPES = 64


class BlockCacheDependency(BaseModel):
    model_config = ConfigDict(frozen=True)

    block_type_id:   Optional[int]
    layout_version:  str
    block_id:        Optional[int] = None
    content_version: Optional[str] = None

    @classmethod
    def for_block(cls, block_type: BlockTypeDefinition, block: Optional[Block] = None) -> "BlockCacheDependency":
        """Dépendance type seul (gabarit) ou type + bloc concret."""
        if block is None:
            return cls(block_type_id=block_type.id, layout_version=block_type.layout.version())
        return cls(
            block_type_id=block_type.id,
            layout_version=block_type.layout.version(),
            block_id=block.id,
            content_version=block.content_version(),
        )


class TabDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name:      str
    head_html: str       = ""
    body_html: str       = ""
    foot_html: str       = ""
    errors:    List[str] = Field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "name":     self.name,
            "headHtml": self.head_html,
            "bodyHtml": self.body_html,
            "footHtml": self.foot_html,
            "errors":   list(self.errors),
        }


@dataclass(frozen=True)
class CacheEntry:
    tabs:       Tuple[TabDescriptor, ...]
    dependency: BlockCacheDependency


# ── Backends ─────────────────────────────────────────────────────────────────

class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[CacheEntry]: ...
    def set(self, key: str, entry: CacheEntry) -> None: ...
    def delete(self, key: str) -> None: ...
    def delete_prefix(self, prefix: str) -> int: ...
    def clear(self) -> None: ...


class MemoryCache:
    """Backend LRU en mémoire du process (thread-safe), borné à `max_entries`."""

    def __init__(self, max_entries: int = CACHE_MAX_ENTRIES):
        self.max_entries = max(max_entries, 1)
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.debug("Cache de rendu : éviction %s", evicted)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [key for key in self._entries if key.startswith(prefix)]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ── Cache de rendu ───────────────────────────────────────────────────────────

def cache_key(block_type: BlockTypeDefinition, block: Optional[Block], namespace: str, static: bool) -> str:
    if block is None:
        block_part = ""
    elif block.id is None:
        block_part = "new"
    else:
        block_part = str(block.id)
    return ":".join([
        "neoblock",
        "" if block_type.id is None else str(block_type.id),
        block_part,
        namespace,
        "s" if static else "",
    ])


class RenderCache:
    """
    Rendu des onglets d'un type de bloc (gabarit) ou d'un bloc (valeurs + erreurs).

    Usage:
        >>> cache = RenderCache()
        >>> tabs = cache.block_type_tabs(block_type, None, "fields[content]")
        >>> tabs = cache.block_tabs(block, block_type, "fields[content]")
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        renderer: Optional[FieldRenderer] = None,
        enabled: bool = RENDER_CACHE_ENABLED,
        single_flight: bool = SINGLE_FLIGHT,
    ):
        self.backend = backend if backend is not None else MemoryCache()
        self.renderer = renderer or HtmlFieldRenderer()
        self.enabled = enabled
        self.single_flight = single_flight
        self.hits = 0
        self.misses = 0
        self._stats_lock = threading.Lock()
        self._stripes = [threading.RLock() for _ in range(_LOCK_STRIPES)]

    def block_type_tabs(
        self,
        block_type: BlockTypeDefinition,
        block: Optional[Block] = None,
        namespace: str = "",
        static: bool = False,
    ) -> List[TabDescriptor]:
        """
        Descripteurs d'onglets pour (type, bloc?, namespace, static).

        Le namespace des inputs est dérivé de la position du conteneur :
        {namespace}[__NEOBLOCK__][fields], résolu contre le namespace ambiant.
        Un bloc non enregistré est rendu sans passer par le cache.
        """
        block_namespace = namespace_input_name(f"{namespace}[{PLACEHOLDER}][fields]", get_namespace())
        dependency = BlockCacheDependency.for_block(block_type, block)

        if not self.enabled or (block is not None and block.is_new):
            return list(self._compute(block_type, block, block_namespace, static))

        key = cache_key(block_type, block, block_namespace, static)
        tabs = self._lookup(key, dependency)
        if tabs is not None:
            return tabs

        if not self.single_flight:
            return self._compute_and_store(key, dependency, block_type, block, block_namespace, static)

        with self._stripes[hash(key) % _LOCK_STRIPES]:
            tabs = self._lookup(key, dependency, count=False)
            if tabs is not None:
                return tabs
            return self._compute_and_store(key, dependency, block_type, block, block_namespace, static)

    def block_tabs(
        self,
        block: Block,
        block_type: BlockTypeDefinition,
        namespace: str = "",
        static: bool = False,
    ) -> List[TabDescriptor]:
        return self.block_type_tabs(block_type, block, namespace, static)

    def invalidate(self, block_type_ids: Iterable[Optional[int]], block_id: Optional[int] = None) -> int:
        """Supprime les entrées des types donnés (ou d'un seul bloc de ces types)."""
        dropped = 0
        for type_id in block_type_ids:
            if type_id is None:
                continue
            prefix = f"neoblock:{type_id}:" if block_id is None else f"neoblock:{type_id}:{block_id}:"
            dropped += self.backend.delete_prefix(prefix)
        if dropped:
            log.debug("Cache de rendu : %d entrée(s) invalidée(s)", dropped)
        return dropped

    def clear(self) -> None:
        self.backend.clear()
        with self._stats_lock:
            self.hits = 0
            self.misses = 0

    def _lookup(self, key: str, dependency: BlockCacheDependency, count: bool = True) -> Optional[List[TabDescriptor]]:
        entry = self.backend.get(key)
        hit = entry is not None and entry.dependency == dependency
        if count:
            with self._stats_lock:
                if hit:
                    self.hits += 1
                else:
                    self.misses += 1
        if hit:
            log.debug("Cache de rendu : hit %s", key)
            return list(entry.tabs)
        log.debug("Cache de rendu : miss %s%s", key, " (dépendance périmée)" if entry else "")
        return None

    def _compute_and_store(self, key, dependency, block_type, block, block_namespace, static) -> List[TabDescriptor]:
        tabs = self._compute(block_type, block, block_namespace, static)
        self.backend.set(key, CacheEntry(tabs=tabs, dependency=dependency))
        return list(tabs)

    def _compute(
        self,
        block_type: BlockTypeDefinition,
        block: Optional[Block],
        block_namespace: str,
        static: bool,
    ) -> Tuple[TabDescriptor, ...]:
        tabs = []
        with namespace_scope(block_namespace):
            for tab in block_type.layout.tabs:
                errors: List[str] = []
                if block is not None:
                    for layout_field in tab.fields:
                        errors.extend(block.errors.get(layout_field.handle, []))
                markup = self.renderer.render_tab(tab, block, static)
                tabs.append(TabDescriptor(
                    name=tab.name,
                    head_html=markup.head_html,
                    body_html=markup.body_html,
                    foot_html=markup.foot_html,
                    errors=errors,
                ))
        return tuple(tabs)


# Cache partagé du process
_RENDER_CACHE: Optional[RenderCache] = None


def get_render_cache() -> RenderCache:
    global _RENDER_CACHE
    if _RENDER_CACHE is None:
        _RENDER_CACHE = RenderCache()
    return _RENDER_CACHE
