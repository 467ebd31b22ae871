"""
Biquad sections for the clip filter chain.
Coefficients follow the audio-EQ cookbook as browsers' BiquadFilterNode defines it:
highpass/lowpass resonance is given in dB, peaking Q is linear.
All sections are IIR (minimum-phase), applied with torchaudio lfilter and no clamping.
"""
from dataclasses import dataclass
import math
from typing import Tuple

import numpy as np
import torch
import torchaudio.functional as F

from clipengine.core.types import FilterStage, StageKind


@dataclass(frozen=True)
class BiquadCoefficients:
    """Normalized second-order section (a[0] == 1)."""
    b: Tuple[float, float, float]
    a: Tuple[float, float, float]


def _limit_frequency(freq: float, sample_rate: int) -> float:
    # Keep the center strictly inside (0, Nyquist)
    return min(max(freq, 1e-3), sample_rate / 2 - 1)


def _normalize(b0, b1, b2, a0, a1, a2) -> BiquadCoefficients:
    return BiquadCoefficients(
        b=(b0 / a0, b1 / a0, b2 / a0),
        a=(1.0, a1 / a0, a2 / a0),
    )


class Biquad:
    @staticmethod
    def lowpass(sample_rate: int, cutoff_freq: float, q_db: float) -> BiquadCoefficients:
        """
        LowPass coefficients. q_db is the resonance in dB at the cutoff
        (0.5 dB is close to a Butterworth response).
        """
        w0 = 2.0 * math.pi * _limit_frequency(cutoff_freq, sample_rate) / sample_rate
        cos_w0 = math.cos(w0)
        alpha = math.sin(w0) / (2.0 * 10.0 ** (q_db / 20.0))
        return _normalize(
            (1.0 - cos_w0) / 2.0,
            1.0 - cos_w0,
            (1.0 - cos_w0) / 2.0,
            1.0 + alpha,
            -2.0 * cos_w0,
            1.0 - alpha,
        )

    @staticmethod
    def highpass(sample_rate: int, cutoff_freq: float, q_db: float) -> BiquadCoefficients:
        """HighPass coefficients. q_db is the resonance in dB at the cutoff."""
        w0 = 2.0 * math.pi * _limit_frequency(cutoff_freq, sample_rate) / sample_rate
        cos_w0 = math.cos(w0)
        alpha = math.sin(w0) / (2.0 * 10.0 ** (q_db / 20.0))
        return _normalize(
            (1.0 + cos_w0) / 2.0,
            -(1.0 + cos_w0),
            (1.0 + cos_w0) / 2.0,
            1.0 + alpha,
            -2.0 * cos_w0,
            1.0 - alpha,
        )

    @staticmethod
    def peaking(sample_rate: int, center_freq: float, gain_db: float, q: float) -> BiquadCoefficients:
        """
        Peaking EQ coefficients.
        gain_db: positive = boost, negative = cut. 0 dB is an identity section.
        """
        w0 = 2.0 * math.pi * _limit_frequency(center_freq, sample_rate) / sample_rate
        cos_w0 = math.cos(w0)
        alpha = math.sin(w0) / (2.0 * max(q, 1e-4))
        amp = 10.0 ** (gain_db / 40.0)
        return _normalize(
            1.0 + alpha * amp,
            -2.0 * cos_w0,
            1.0 - alpha * amp,
            1.0 + alpha / amp,
            -2.0 * cos_w0,
            1.0 - alpha / amp,
        )

    @classmethod
    def for_stage(cls, stage: FilterStage, sample_rate: int) -> BiquadCoefficients:
        if stage.kind == StageKind.LOWPASS:
            return cls.lowpass(sample_rate, stage.center_frequency_hz, stage.q_factor)
        if stage.kind == StageKind.HIGHPASS:
            return cls.highpass(sample_rate, stage.center_frequency_hz, stage.q_factor)
        if stage.kind == StageKind.PEAKING:
            return cls.peaking(sample_rate, stage.center_frequency_hz, stage.gain_db, stage.q_factor)
        raise ValueError(f"Stage {stage.kind} has no biquad form")


class StageProcessor:
    """
    Runtime instance of one stage for one render.
    Filter memory starts at zero and is carried across a whole channel;
    each channel (row) is filtered independently.
    """

    def __init__(self, stage: FilterStage, sample_rate: int):
        self.stage = stage
        self.sample_rate = sample_rate
        self.coefficients = None
        if stage.kind != StageKind.GAIN:
            self.coefficients = Biquad.for_stage(stage, sample_rate)

    def process(self, waveform: torch.Tensor) -> torch.Tensor:
        """waveform: (channels, frames). Returns a new tensor of the same shape."""
        if self.coefficients is None:
            # Degenerate stage: scalar multiply, no memory
            return waveform * self.stage.linear_gain
        a = torch.tensor(self.coefficients.a, dtype=waveform.dtype, device=waveform.device)
        b = torch.tensor(self.coefficients.b, dtype=waveform.dtype, device=waveform.device)
        return F.lfilter(waveform, a, b, clamp=False)


def frequency_response(stage: FilterStage, sample_rate: int, freqs) -> np.ndarray:
    """Magnitude response |H(f)| of a single stage at the given frequencies (Hz)."""
    freqs = np.asarray(freqs, dtype=np.float64)
    if stage.kind == StageKind.GAIN:
        return np.full(freqs.shape, abs(stage.linear_gain))
    coeffs = Biquad.for_stage(stage, sample_rate)
    z_inv = np.exp(-1j * 2.0 * np.pi * freqs / sample_rate)
    num = coeffs.b[0] + coeffs.b[1] * z_inv + coeffs.b[2] * z_inv ** 2
    den = coeffs.a[0] + coeffs.a[1] * z_inv + coeffs.a[2] * z_inv ** 2
    return np.abs(num / den)
