"""
Filter chain compiler: maps the four user controls onto a fixed, fully
parameterized stage sequence. Pure and deterministic.

Order: highpass -> lowpass -> gain -> peaking.
The presence boost runs last so the attenuation stages cannot undo it.
"""
from clipengine.core.params import clamp_if_bounds
from clipengine.core.types import FilterChain, FilterStage, ProcessingOptions, StageKind

# Measured design constants
HIGHPASS_FLOOR_HZ = 20.0       # effectively a DC blocker
HIGHPASS_BACKGROUND_HZ = 150.0  # rumble / mains hum removal
HIGHPASS_Q = 0.5

LOWPASS_BASE_HZ = 2000.0
LOWPASS_SPAN_HZ = 2000.0        # noise_reduction 0..1 -> 2000..4000 Hz
LOWPASS_Q = 0.5

PRESENCE_HZ = 3000.0
PRESENCE_Q = 0.7
PRESENCE_MAX_DB = 6.0


def compile_chain(options: ProcessingOptions) -> FilterChain:
    """
    Compile options into [Highpass, Lowpass, LinearGain, Peaking].
    Inputs are clamped to their documented domains; no failure modes.
    """
    noise_reduction = clamp_if_bounds(options.noise_reduction, 0.0, 1.0)
    gain = clamp_if_bounds(options.gain, 0.0, 2.0)
    clarity = clamp_if_bounds(options.clarity, 0.0, 1.0)

    highpass = FilterStage(
        kind=StageKind.HIGHPASS,
        center_frequency_hz=HIGHPASS_BACKGROUND_HZ if options.remove_background else HIGHPASS_FLOOR_HZ,
        q_factor=HIGHPASS_Q,
    )
    lowpass = FilterStage(
        kind=StageKind.LOWPASS,
        center_frequency_hz=LOWPASS_BASE_HZ + noise_reduction * LOWPASS_SPAN_HZ,
        q_factor=LOWPASS_Q,
    )
    level = FilterStage(kind=StageKind.GAIN, linear_gain=gain)
    presence = FilterStage(
        kind=StageKind.PEAKING,
        center_frequency_hz=PRESENCE_HZ,
        q_factor=PRESENCE_Q,
        gain_db=clarity * PRESENCE_MAX_DB,
    )
    return FilterChain(stages=(highpass, lowpass, level, presence))
