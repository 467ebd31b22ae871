"""
Offline renderer: applies a compiled filter chain to a whole PCM buffer in
one deterministic pass. Output has the input's channel count, frame count
and sample rate; the input buffer is never modified.
"""
import logging
import time

import torch

from clipengine.core.errors import InvariantViolation
from clipengine.core.types import FilterChain, PcmBuffer
from clipengine.dsp.filters import StageProcessor

logger = logging.getLogger(__name__)

# Accumulation precision; no clipping happens between stages
RENDER_DTYPE = torch.float64


class OfflineRenderer:
    """
    Stateless between calls: every render builds fresh stage processors,
    so concurrent renders share no filter memory.
    """

    def render(self, buffer: PcmBuffer, chain: FilterChain) -> PcmBuffer:
        if buffer.frame_count == 0:
            return PcmBuffer(samples=buffer.samples.clone(), sample_rate=buffer.sample_rate)

        start = time.perf_counter()
        processors = [StageProcessor(stage, buffer.sample_rate) for stage in chain]

        x = buffer.samples.to(RENDER_DTYPE)
        expected = tuple(x.shape)
        for processor in processors:
            x = processor.process(x)
            if tuple(x.shape) != expected:
                raise InvariantViolation(
                    f"Stage {processor.stage.kind.value} changed buffer shape "
                    f"{expected} -> {tuple(x.shape)}"
                )

        out_dtype = buffer.samples.dtype if buffer.samples.is_floating_point() else torch.float32
        logger.debug(
            "Rendered %d ch x %d frames @ %d Hz through %d stages in %.1f ms",
            buffer.channel_count,
            buffer.frame_count,
            buffer.sample_rate,
            len(processors),
            (time.perf_counter() - start) * 1e3,
        )
        return PcmBuffer(samples=x.to(out_dtype), sample_rate=buffer.sample_rate)


def render(buffer: PcmBuffer, chain: FilterChain) -> PcmBuffer:
    """Module-level shortcut for OfflineRenderer().render."""
    return OfflineRenderer().render(buffer, chain)
