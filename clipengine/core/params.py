"""
Lookup helpers for request option dicts.
Clients send camelCase keys (noiseReduction); Python callers may use snake_case.
Both spellings resolve to the same option.
"""
from dataclasses import dataclass
import math
import re
from typing import Any, Iterable, Optional


# -----------------------------------------------------------------------------
# Option definition (for schema/documentation)
# -----------------------------------------------------------------------------

@dataclass
class ParamDef:
    """Definition of a single option. Bounds/unit are optional."""
    name: str
    default: Any
    min: Optional[float] = None
    max: Optional[float] = None
    unit: Optional[str] = None


# -----------------------------------------------------------------------------
# Key spelling
# -----------------------------------------------------------------------------

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(name: str) -> str:
    """noiseReduction -> noise_reduction."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def to_camel(name: str) -> str:
    """noise_reduction -> noiseReduction."""
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def key_aliases(name: str) -> Iterable[str]:
    yield name
    snake = to_snake(name)
    if snake != name:
        yield snake
    camel = to_camel(snake)
    if camel != name:
        yield camel


# -----------------------------------------------------------------------------
# Lookup
# -----------------------------------------------------------------------------

def get_param(params: dict, name: str, default: Any = None) -> Any:
    """
    Read an option from params under either spelling of its name.
    get_param({"noiseReduction": 0.2}, "noise_reduction") -> 0.2
    """
    if not params or not name:
        return default
    for key in key_aliases(name):
        if key in params:
            return params[key]
    return default


def get_float(params: dict, name: str, default: float) -> float:
    """Read a numeric option; non-numeric values fall back to default."""
    raw = get_param(params, name, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def get_bool(params: dict, name: str, default: bool) -> bool:
    raw = get_param(params, name, default)
    if isinstance(raw, str):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return bool(raw)


def clamp_if_bounds(
    value: float,
    min: Optional[float] = None,
    max: Optional[float] = None,
) -> float:
    """
    Clamp value to [min, max] when bounds are not None.
    If both are None, returns value unchanged.
    """
    try:
        v = float(value)
    except (TypeError, ValueError):
        return value
    if min is not None and v < min:
        return min
    if max is not None and v > max:
        return max
    return v
