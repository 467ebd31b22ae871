"""
Option resolution: merge a preset (or the defaults) with incoming options,
then clamp. Incoming options override the preset key by key.
"""
from typing import Any, Dict, Optional

from clipengine.core.params import get_bool, get_float, get_param
from clipengine.core.types import ProcessingOptions
from clipengine.params.clamp import clamp_options
from clipengine.params.schema import DEFAULT_OPTIONS, OPTION_SCHEMA, PRESETS


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge override into base by schema name, accepting either key spelling.
    Returns a new dict (does not mutate inputs).
    """
    result = dict(base)
    for name in OPTION_SCHEMA:
        value = get_param(override, name)
        if value is not None:
            result[name] = value
    return result


def resolve_options(
    raw: Optional[Dict[str, Any]] = None,
    preset: Optional[str] = None,
    dev: bool = False,
) -> ProcessingOptions:
    """
    Build a ProcessingOptions snapshot from a request dict.
    Unknown or non-string preset -> ValueError. Non-numeric values fall back to the preset value.
    """
    if preset is None:
        base = DEFAULT_OPTIONS
    elif isinstance(preset, str) and preset in PRESETS:
        base = PRESETS[preset]
    else:
        raise ValueError(f"Unknown preset: {preset!r} (expected one of {sorted(PRESETS)})")

    merged = _merge(base, raw or {})

    # Coerce before clamping so bad types fall back to the preset value
    coerced = {
        "noiseReduction": get_float(merged, "noiseReduction", base["noiseReduction"]),
        "removeBackground": get_bool(merged, "removeBackground", base["removeBackground"]),
        "gain": get_float(merged, "gain", base["gain"]),
        "clarity": get_float(merged, "clarity", base["clarity"]),
    }
    clamped = clamp_options(coerced, dev=dev)

    return ProcessingOptions(
        noise_reduction=clamped["noiseReduction"],
        remove_background=clamped["removeBackground"],
        gain=clamped["gain"],
        clarity=clamped["clarity"],
    )
