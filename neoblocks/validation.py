"""
Validator — validité des blocs + bornes de nombre + imbrication.

Les règles sont une table ordonnée ; toutes s'exécutent dans la même passe
et leurs messages sont agrégés (pas de court-circuit).
"""
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from .models import Block, BlockTypeDefinition
from .registry import BlockTypeRegistry
from .tree import nesting_errors

BlockValidator = Callable[[Block, Optional[BlockTypeDefinition]], bool]


class ValidationResult(BaseModel):
    valid:  bool      = True
    errors: List[str] = Field(default_factory=list)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False


def validate_block(block: Block, block_type: Optional[BlockTypeDefinition]) -> bool:
    """
    Validateur de bloc par défaut : champs obligatoires du layout non vides.
    Les erreurs sont posées sur `block.errors` (affichées dans les onglets au rendu).
    """
    block.errors = {}
    if block_type is None:
        return True
    for layout_field in block_type.layout.all_fields():
        if layout_field.required and _is_blank(block.content.get(layout_field.handle)):
            block.add_error(layout_field.handle, f"{layout_field.name or layout_field.handle} cannot be blank.")
    return not block.has_errors()


# ── Règles ───────────────────────────────────────────────────────────────────

@dataclass
class ValidationContext:
    blocks:          Sequence[Block]
    registry:        BlockTypeRegistry
    max_blocks:      int
    block_validator: BlockValidator


def _too_many(count: int, label: str = "") -> str:
    noun = f"{label} block" if label else "block"
    if count == 1:
        return f"There can't be more than one {noun}."
    return f"There can't be more than {count} {noun}s."


def check_blocks(ctx: ValidationContext) -> List[str]:
    valid = True
    for block in ctx.blocks:
        if not ctx.block_validator(block, ctx.registry.by_id(block.type_id)):
            valid = False
    return [] if valid else ["Correct the errors listed above."]


def check_max_blocks(ctx: ValidationContext) -> List[str]:
    if ctx.max_blocks and len(ctx.blocks) > ctx.max_blocks:
        return [_too_many(ctx.max_blocks)]
    return []


def check_type_max_blocks(ctx: ValidationContext) -> List[str]:
    counts = Counter(block.type_id for block in ctx.blocks)
    return [
        _too_many(block_type.max_blocks, block_type.name or block_type.handle)
        for block_type in ctx.registry
        if block_type.max_blocks and counts[block_type.id] > block_type.max_blocks
    ]


def check_nesting(ctx: ValidationContext) -> List[str]:
    return nesting_errors(list(ctx.blocks), ctx.registry)


RULES: Tuple[Tuple[str, Callable[[ValidationContext], List[str]]], ...] = (
    ("blocks",          check_blocks),
    ("max_blocks",      check_max_blocks),
    ("type_max_blocks", check_type_max_blocks),
    ("nesting",         check_nesting),
)


def validate_blocks(
    blocks: Sequence[Block],
    registry: BlockTypeRegistry,
    max_blocks: int = 0,
    block_validator: Optional[BlockValidator] = None,
    rules=RULES,
) -> ValidationResult:
    """
    Valide la séquence de blocs d'un champ.

    Args:
        blocks:          séquence construite par build_blocks
        registry:        types de blocs du champ
        max_blocks:      borne du champ (0 = illimité)
        block_validator: validateur de bloc de l'hôte (défaut : validate_block)
        rules:           table (nom, règle) — surchargeable

    Returns:
        ValidationResult (valid + messages agrégés)
    """
    ctx = ValidationContext(
        blocks=blocks,
        registry=registry,
        max_blocks=max_blocks or 0,
        block_validator=block_validator or validate_block,
    )
    errors: List[str] = []
    for _name, rule in rules:
        errors.extend(rule(ctx))
    return ValidationResult(valid=not errors, errors=errors)
