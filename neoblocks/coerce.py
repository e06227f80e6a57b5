"""
Coercion des valeurs postées (formulaires, JSON client).
Ne lève jamais : une valeur illisible retombe sur le défaut.
"""
import math
from typing import Any

_FALSY_STRINGS = {"", "0", "false", "no", "off"}


def as_int(value: Any, default: int = 0) -> int:
    """Entier depuis int/str/float, sinon `default`. Les bool ne sont pas des entiers ici."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def as_bool(value: Any, default: bool = False) -> bool:
    """Booléen depuis bool/int/str ("1", "true", "on"…). None → `default`."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return default


def is_numeric_key(key: Any) -> bool:
    """Vrai pour une clé de bloc persisté ("12", 12) — jamais pour "new1" ni "0"."""
    text = str(key)
    return text.isdigit() and int(text) != 0
