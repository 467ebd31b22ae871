"""
Option schema and presets for UI visibility.
Ranges and slider steps mirror the recorder's controls.
"""
from typing import Any, Dict, Literal

# Type definitions
OptionType = Literal["float", "bool"]

# Schema entry structure: type, default, min, max, step, description
OptionSchemaEntry = Dict[str, Any]


def _make_option(
    option_type: OptionType,
    default: Any,
    min_val: float,
    max_val: float,
    step: float,
    description: str,
) -> OptionSchemaEntry:
    """Helper to create a schema entry."""
    return {
        "type": option_type,
        "default": default,
        "min": min_val,
        "max": max_val,
        "step": step,
        "description": description,
    }


# -----------------------------------------------------------------------------
# OPTION_SCHEMA: Metadata for UI (type, default, min, max, step, description)
# -----------------------------------------------------------------------------

OPTION_SCHEMA: Dict[str, OptionSchemaEntry] = {
    "noiseReduction": _make_option(
        "float", 0.5, 0.0, 1.0, 0.1,
        "Lowpass cutoff 2-4 kHz; higher cuts more hiss at the cost of brightness",
    ),
    "removeBackground": _make_option(
        "bool", False, 0.0, 1.0, 1.0,
        "Raise the highpass from 20 Hz to 150 Hz to remove rumble and hum",
    ),
    "gain": _make_option(
        "float", 1.0, 0.0, 2.0, 0.1,
        "Linear volume: 0 = silence, 1 = unity, 2 = about +6 dB",
    ),
    "clarity": _make_option(
        "float", 0.5, 0.0, 1.0, 0.1,
        "Presence boost at 3 kHz, 0-6 dB",
    ),
}

DEFAULT_OPTIONS: Dict[str, Any] = {
    name: entry["default"] for name, entry in OPTION_SCHEMA.items()
}

# reduce_noise reproduces the fixed noise reducer: highpass 150 Hz,
# lowpass 3000 Hz, no gain change, flat presence.
PRESETS: Dict[str, Dict[str, Any]] = {
    "default": dict(DEFAULT_OPTIONS),
    "reduce_noise": {
        "noiseReduction": 0.5,
        "removeBackground": True,
        "gain": 1.0,
        "clarity": 0.0,
    },
}
