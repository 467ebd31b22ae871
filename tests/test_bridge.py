"""
Tests for the re-encode bridge: real-time loopback timing, exclusivity, offline encode.
"""
import sys
import os
import asyncio
import threading
import time

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np
import pytest
import torch
from clipengine.core.io import AudioIO
from clipengine.core.settings import Settings
from clipengine.core.types import PcmBuffer
from clipengine.export.bridge import (
    LoopbackDevice,
    OfflineEncoder,
    RealtimeEncoder,
    make_encoder,
)

SR = 8000
BLOCK = 256
# 16-bit PCM quantization step plus rounding slack
PCM16_ATOL = 1e-3


def _sine_buffer(seconds: float, channels: int = 1) -> PcmBuffer:
    t = torch.arange(int(seconds * SR), dtype=torch.float32) / SR
    tone = 0.5 * torch.sin(2 * np.pi * 440.0 * t)
    return PcmBuffer(samples=tone.repeat(channels, 1), sample_rate=SR)


class TestRealtimeEncoder:
    def test_stop_fires_no_earlier_than_duration(self):
        buffer = _sine_buffer(0.2)
        encoder = RealtimeEncoder(LoopbackDevice(block_frames=BLOCK))
        start = time.monotonic()
        clip = encoder.encode(buffer)
        elapsed = time.monotonic() - start
        assert elapsed >= buffer.duration
        assert clip.data
        assert clip.frame_count > 0

    def test_captured_clip_decodes_to_source_audio(self):
        buffer = _sine_buffer(0.15, channels=2)
        clip = RealtimeEncoder(LoopbackDevice(block_frames=BLOCK)).encode(buffer)
        assert clip.mime_type == "audio/wav"

        decoded = AudioIO.from_bytes(clip.data)
        assert decoded.sample_rate == SR
        assert decoded.channel_count == 2
        # Captured length follows real-time scheduling: whole blocks, small drift
        assert abs(decoded.frame_count - buffer.frame_count) <= 3 * BLOCK
        # The first block is always emitted immediately and carries the source
        np.testing.assert_allclose(
            decoded.samples[:, :BLOCK].numpy(), buffer.samples[:, :BLOCK].numpy(), atol=PCM16_ATOL
        )

    def test_captured_output_is_saturated(self):
        """Out-of-range samples are clipped to full scale in the container."""
        samples = torch.full((1, SR // 10), 1.7)
        clip = RealtimeEncoder(LoopbackDevice(block_frames=BLOCK)).encode(PcmBuffer(samples, SR))
        decoded = AudioIO.from_bytes(clip.data)
        assert float(decoded.samples.max()) <= 1.0

    def test_empty_buffer_returns_valid_clip_immediately(self):
        buffer = PcmBuffer(samples=torch.zeros(1, 0), sample_rate=SR)
        start = time.monotonic()
        clip = RealtimeEncoder().encode(buffer)
        assert time.monotonic() - start < 0.5
        assert clip.data  # container header
        assert clip.frame_count == 0

    def test_device_is_exclusive(self):
        """Two concurrent encodes on one device run one after the other."""
        encoder = RealtimeEncoder(LoopbackDevice(block_frames=BLOCK))
        buffer = _sine_buffer(0.15)
        clips = []

        def worker():
            clips.append(encoder.encode(buffer))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        start = time.monotonic()
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        elapsed = time.monotonic() - start

        assert len(clips) == 2
        assert elapsed >= 2 * buffer.duration

    def test_encode_async(self):
        buffer = _sine_buffer(0.1)
        encoder = RealtimeEncoder(LoopbackDevice(block_frames=BLOCK))
        clip = asyncio.run(encoder.encode_async(buffer))
        assert clip.data
        assert clip.sample_rate == SR


class TestOfflineEncoder:
    def test_sample_accurate(self):
        buffer = _sine_buffer(0.25, channels=2)
        clip = OfflineEncoder().encode(buffer)
        assert clip.frame_count == buffer.frame_count
        decoded = AudioIO.from_bytes(clip.data)
        assert decoded.frame_count == buffer.frame_count
        np.testing.assert_allclose(decoded.samples.numpy(), buffer.samples.numpy(), atol=PCM16_ATOL)

    def test_flac_container(self):
        clip = OfflineEncoder(container="FLAC").encode(_sine_buffer(0.05))
        assert clip.mime_type == "audio/flac"
        assert AudioIO.from_bytes(clip.data).frame_count == int(0.05 * SR)

    def test_unknown_container_rejected(self):
        with pytest.raises(ValueError):
            OfflineEncoder(container="WEBM")


def test_make_encoder_follows_settings():
    assert isinstance(make_encoder(Settings(encoder="offline")), OfflineEncoder)
    realtime = make_encoder(Settings(encoder="realtime", block_frames=512))
    assert isinstance(realtime, RealtimeEncoder)
    assert realtime.device.block_frames == 512
