"""
Protocol FieldRenderer — rendu des champs feuilles d'un onglet (collaborateur hôte).
HtmlFieldRenderer : implémentation par défaut, un input libellé par champ.
"""
from dataclasses import dataclass
from html import escape
from typing import Any, Optional, Protocol, runtime_checkable

from ..models import Block, FieldLayoutField, FieldLayoutTab
from .namespace import get_namespace, namespace_inputs


@dataclass(frozen=True)
class TabMarkup:
    head_html: str = ""
    body_html: str = ""
    foot_html: str = ""


@runtime_checkable
class FieldRenderer(Protocol):
    def render_tab(self, tab: FieldLayoutTab, block: Optional[Block], static: bool) -> TabMarkup: ...


class HtmlFieldRenderer:
    """
    Rend chaque champ du layout en HTML (f-strings), puis applique le namespace ambiant
    aux attributs name/id. Sans bloc : gabarit vide utilisé côté client pour créer les blocs.
    """

    def render_tab(self, tab: FieldLayoutTab, block: Optional[Block], static: bool) -> TabMarkup:
        parts = []
        for layout_field in tab.fields:
            value = block.content.get(layout_field.handle) if block is not None else None
            errors = block.errors.get(layout_field.handle, []) if block is not None else []
            parts.append(self.render_field(layout_field, value, errors, static))
        body = namespace_inputs("\n".join(parts), get_namespace())
        return TabMarkup(body_html=body)

    def render_field(self, layout_field: FieldLayoutField, value: Any, errors: list, static: bool) -> str:
        handle = escape(layout_field.handle)
        label = escape(layout_field.name or layout_field.handle)
        required = ' class="required"' if layout_field.required else ""
        disabled = " disabled" if static else ""
        field_class = "field has-errors" if errors else "field"

        if layout_field.type == "textarea":
            control = f'<textarea id="{handle}" name="{handle}"{disabled}>{escape(_text(value))}</textarea>'
        elif layout_field.type in ("lightswitch", "checkbox"):
            checked = " checked" if value else ""
            control = f'<input type="checkbox" id="{handle}" name="{handle}" value="1"{checked}{disabled}>'
        else:
            control = f'<input type="text" id="{handle}" name="{handle}" value="{escape(_text(value))}"{disabled}>'

        instructions = (
            f'\n  <div class="instructions">{escape(layout_field.instructions)}</div>'
            if layout_field.instructions else ""
        )
        errors_html = (
            '\n  <ul class="errors">' + "".join(f"<li>{escape(e)}</li>" for e in errors) + "</ul>"
            if errors else ""
        )
        return (
            f'<div class="{field_class}">\n'
            f'  <label for="{handle}"{required}>{label}</label>{instructions}\n'
            f'  {control}{errors_html}\n'
            f'</div>'
        )


def _text(value: Any) -> str:
    return "" if value is None else str(value)
