"""
Namespace de rendu — préfixe des name/id des inputs générés.

Le namespace ambiant vit dans un ContextVar (propre à chaque requête/thread) :
il n'est jamais un global partagé entre rendus concurrents.
"""
import re
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_NAMESPACE: ContextVar[Optional[str]] = ContextVar("neo_namespace", default=None)

_NAME_HEAD = re.compile(r"([^'\"\[\]]+)([^'\"]*)")
_ID_SEPARATORS = re.compile(r"[\[\]\\]+")
_NAME_ATTR = re.compile(r"(?<![\w\-])(name=)(['\"])([^'\"\[\]]+)([^'\"]*)\2", re.IGNORECASE)
_ID_ATTR = re.compile(r"(?<![\w\-])((?:id|for|list|aria-labelledby|aria-describedby)=)(['\"])([^'\"]+)\2", re.IGNORECASE)
_FIELDS_SEGMENT = re.compile(r"\bfields\b")


def get_namespace() -> Optional[str]:
    return _NAMESPACE.get()


@contextmanager
def namespace_scope(namespace: Optional[str]) -> Iterator[Optional[str]]:
    """Pose le namespace le temps du bloc `with` ; restauré sur toute sortie, exceptions comprises."""
    token = _NAMESPACE.set(namespace)
    try:
        yield namespace
    finally:
        _NAMESPACE.reset(token)


def namespace_input_name(input_name: str, namespace: Optional[str]) -> str:
    """"body[x]" sous "fields" → "fields[body][x]"."""
    if not namespace:
        return input_name
    return _NAME_HEAD.sub(lambda m: f"{namespace}[{m.group(1)}]{m.group(2)}", input_name, count=1)


def format_input_id(input_name: str) -> str:
    """"fields[body][x]" → "fields-body-x"."""
    return _ID_SEPARATORS.sub("-", input_name).rstrip("-")


def namespace_input_id(input_id: str, namespace: Optional[str]) -> str:
    return format_input_id(namespace_input_name(input_id, namespace))


def namespace_inputs(html: str, namespace: Optional[str]) -> str:
    """Préfixe les attributs name/id/for d'un fragment HTML."""
    if not namespace or not html:
        return html
    id_prefix = format_input_id(namespace)
    html = _NAME_ATTR.sub(
        lambda m: f"{m.group(1)}{m.group(2)}{namespace}[{m.group(3)}]{m.group(4)}{m.group(2)}", html
    )
    return _ID_ATTR.sub(lambda m: f"{m.group(1)}{m.group(2)}{id_prefix}-{m.group(3)}{m.group(2)}", html)


def namespace_depth(namespace: Optional[str]) -> int:
    """Profondeur d'imbrication : nombre de segments `fields` du namespace."""
    return len(_FIELDS_SEGMENT.findall(namespace or ""))
