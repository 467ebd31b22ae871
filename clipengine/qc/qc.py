"""
Quality Control analysis for processed clips.
Detects common failure modes: silence, clipping risk, residual hum and hiss.
"""
from typing import Dict

import numpy as np
import torch

from clipengine.core.types import PcmBuffer
from clipengine.qc.thresholds import QC_THRESHOLDS


# Reported level for digital silence (keeps metrics JSON-safe)
DBFS_FLOOR = -120.0


def _dbfs(x: float) -> float:
    """Convert linear amplitude to dBFS (full scale), floored at DBFS_FLOOR."""
    if x <= 0:
        return DBFS_FLOOR
    return max(float(20.0 * np.log10(abs(x))), DBFS_FLOOR)


def band_energy(audio: torch.Tensor, sample_rate: int, low_hz: float, high_hz: float) -> float:
    """Compute energy in frequency band using FFT magnitude."""
    n = audio.shape[-1]
    if n < 2:
        return 0.0

    n_fft = 2 ** int(np.ceil(np.log2(n)))
    fft = torch.fft.rfft(audio, n=n_fft)
    magnitude = torch.abs(fft)

    freqs = torch.fft.rfftfreq(n_fft, 1.0 / sample_rate)

    # Energy in band
    mask = (freqs >= low_hz) & (freqs <= high_hz)
    energy = torch.sum(magnitude[..., mask] ** 2)

    return float(energy)


def analyze(buffer: PcmBuffer) -> Dict:
    """
    Analyze a processed clip for QC issues.

    Args:
        buffer: Processed PCM buffer (any channel count; analysed as a mono mix)

    Returns:
        Dict with metrics and pass/fail flags
    """
    sample_rate = buffer.sample_rate
    audio = buffer.samples.to(torch.float64).mean(dim=0)

    if audio.numel() == 0:
        return {
            "status": "FAIL",
            "metrics": {"duration_s": 0.0},
            "failures": ["Empty clip"],
            "warnings": [],
        }

    # Basic metrics
    peak = float(torch.max(torch.abs(audio)))
    rms = float(torch.sqrt(torch.mean(audio ** 2) + 1e-12))

    metrics = {
        "duration_s": buffer.duration,
        "peak_dbfs": _dbfs(peak),
        "rms_dbfs": _dbfs(rms),
        "crest_factor": peak / (rms + 1e-12),
        "peak_linear": peak,
        "rms_linear": rms,
    }

    # Voice bands relative to the full audible range
    nyquist = sample_rate / 2.0
    total_energy = band_energy(audio, sample_rate, 20.0, nyquist)
    bands = {
        "hum_ratio": (20.0, 150.0),
        "presence_ratio": (2000.0, 4000.0),
        "hiss_ratio": (4000.0, min(8000.0, nyquist)),
    }
    for name, (low_hz, high_hz) in bands.items():
        if total_energy > 1e-12:
            metrics[name] = band_energy(audio, sample_rate, low_hz, high_hz) / total_energy
        else:
            metrics[name] = 0.0

    # Evaluate against thresholds
    failures = []
    warnings = []

    peak_min = QC_THRESHOLDS["peak_dbfs_min"]
    peak_max = QC_THRESHOLDS["peak_dbfs_max"]
    if metrics["peak_dbfs"] < peak_min:
        failures.append(f"Clip is silent: peak {metrics['peak_dbfs']:.2f} dBFS < {peak_min:.2f} dBFS")
    elif metrics["peak_dbfs"] > peak_max:
        warnings.append(
            f"Peak too high (clipping risk): {metrics['peak_dbfs']:.2f} dBFS > {peak_max:.2f} dBFS"
        )

    hum_max = QC_THRESHOLDS["hum_ratio_max"]
    if metrics["hum_ratio"] > hum_max:
        warnings.append(f"Residual hum: {metrics['hum_ratio']:.4f} > {hum_max:.4f}")

    hiss_max = QC_THRESHOLDS["hiss_ratio_max"]
    if metrics["hiss_ratio"] > hiss_max:
        warnings.append(f"Residual hiss: {metrics['hiss_ratio']:.4f} > {hiss_max:.4f}")

    # Overall status
    status = "PASS"
    if failures:
        status = "FAIL"
    elif warnings:
        status = "WARN"

    return {
        "status": status,
        "metrics": metrics,
        "failures": failures,
        "warnings": warnings,
    }
