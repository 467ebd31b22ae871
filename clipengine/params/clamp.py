"""
Option clamping: keeps numeric controls inside their documented domains.
Out-of-range values would otherwise produce unstable or silent filters.
"""
import logging
from typing import Any, Dict

from clipengine.core.params import clamp_if_bounds, get_param
from clipengine.params.schema import OPTION_SCHEMA

logger = logging.getLogger(__name__)


def clamp_options(options: Dict[str, Any], dev: bool = False) -> Dict[str, Any]:
    """
    Clamp numeric options to their schema range (warns about clamped values when dev is set).
    Returns a new dict keyed by the schema (camelCase) names; input is not mutated.
    Options absent from the input stay absent.
    """
    result: Dict[str, Any] = {}
    clamped = []

    for name, entry in OPTION_SCHEMA.items():
        raw = get_param(options, name)
        if raw is None:
            continue
        if entry["type"] == "bool":
            result[name] = raw
            continue
        value = clamp_if_bounds(raw, entry["min"], entry["max"])
        if isinstance(value, float) and value != _as_float(raw):
            clamped.append((name, raw, value))
        result[name] = value

    if clamped and dev:
        logger.warning("Options clamped to documented range: %s", clamped)
    return result


def _as_float(raw: Any) -> Any:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return raw
