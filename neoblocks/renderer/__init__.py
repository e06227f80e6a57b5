"""Renderer — namespace, champs feuilles, input du champ Neo."""
from .fields import FieldRenderer, HtmlFieldRenderer, TabMarkup
from .namespace import (
    format_input_id,
    get_namespace,
    namespace_depth,
    namespace_input_id,
    namespace_input_name,
    namespace_inputs,
    namespace_scope,
)

__all__ = [
    "FieldRenderer", "HtmlFieldRenderer", "TabMarkup",
    "format_input_id", "get_namespace", "namespace_depth", "namespace_input_id",
    "namespace_input_name", "namespace_inputs", "namespace_scope",
]
