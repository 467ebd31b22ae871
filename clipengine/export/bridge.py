"""
Re-encode bridge: turns a rendered PcmBuffer back into an encoded clip.

RealtimeEncoder plays the buffer through a synthetic real-time output and
captures that output concurrently, stopping after a wall-clock delay equal
to the buffer's nominal duration. The captured length therefore follows
real-time scheduling (whole playback blocks, small timing drift), not the
frame count. OfflineEncoder writes the frames directly and is sample-accurate.
"""
import asyncio
from contextlib import contextmanager
import logging
import queue
import threading
import time
from typing import List

import numpy as np

from clipengine.core.io import AudioIO
from clipengine.core.settings import INTERMEDIATE_FORMATS, Settings
from clipengine.core.types import EncodedClip, PcmBuffer

logger = logging.getLogger(__name__)

# Poll interval of the capture loop while waiting for blocks
CAPTURE_POLL_S = 0.01


class Encoder:
    """Base for encoders writing a fixed intermediate container."""

    def __init__(self, container: str = "WAV"):
        if container not in INTERMEDIATE_FORMATS:
            raise ValueError(f"Unsupported intermediate container: {container!r}")
        self.container = container
        self.mime_type = INTERMEDIATE_FORMATS[container]

    def encode(self, buffer: PcmBuffer) -> EncodedClip:
        raise NotImplementedError

    async def encode_async(self, buffer: PcmBuffer) -> EncodedClip:
        """Awaitable encode; the blocking work runs in a worker thread."""
        return await asyncio.to_thread(self.encode, buffer)

    def _write(self, frames: np.ndarray, sample_rate: int) -> EncodedClip:
        data = AudioIO.to_bytes(frames, sample_rate, format=self.container)
        return EncodedClip(
            data=data,
            mime_type=self.mime_type,
            sample_rate=sample_rate,
            frame_count=int(frames.shape[-1]),
        )


class OfflineEncoder(Encoder):
    """Sample-accurate: the encoded clip holds exactly frame_count frames."""

    def encode(self, buffer: PcmBuffer) -> EncodedClip:
        frames = buffer.samples.detach().cpu().numpy()
        return self._write(frames, buffer.sample_rate)


class LoopbackDevice:
    """
    Synthetic real-time output whose signal can be captured while it plays.
    Blocks are emitted on a wall-clock schedule; once the source runs out the
    output carries silence. Only one session may hold the device at a time.
    """

    def __init__(self, block_frames: int = 1024):
        if block_frames <= 0:
            raise ValueError("block_frames must be positive")
        self.block_frames = block_frames
        self._lock = threading.Lock()

    @contextmanager
    def session(self):
        """Exclusive hold on the device for one playback/capture run."""
        with self._lock:
            yield self

    def play(
        self,
        samples: np.ndarray,
        sample_rate: int,
        sink: "queue.Queue[np.ndarray]",
        stop: threading.Event,
        started_at: float,
    ) -> None:
        """
        Emit (channels, block_frames) blocks into sink at real-time pace until
        stop is set. The first block is emitted immediately.
        """
        channels, total = samples.shape
        block_seconds = self.block_frames / sample_rate
        index = 0
        while True:
            start = index * self.block_frames
            block = np.zeros((channels, self.block_frames), dtype=np.float32)
            if start < total:
                chunk = samples[:, start:start + self.block_frames]
                block[:, :chunk.shape[1]] = chunk
            sink.put(block)
            index += 1

            due = started_at + index * block_seconds
            delay = due - time.monotonic()
            if stop.wait(max(delay, 0.0)):
                break


class RealtimeEncoder(Encoder):
    """
    Reproduces the rendered PCM through a LoopbackDevice.
    Suspends the caller for about buffer.duration seconds of wall-clock time.
    """

    def __init__(self, device: LoopbackDevice = None, container: str = "WAV"):
        super().__init__(container)
        self.device = device or LoopbackDevice()

    @staticmethod
    def _schedule_stop(stop: threading.Event, deadline: float) -> threading.Timer:
        """Set stop at deadline (monotonic clock), never before it."""
        def _fire():
            remaining = deadline - time.monotonic()
            while remaining > 0:
                time.sleep(remaining)
                remaining = deadline - time.monotonic()
            stop.set()

        timer = threading.Timer(max(deadline - time.monotonic(), 0.0), _fire)
        timer.daemon = True
        return timer

    def encode(self, buffer: PcmBuffer) -> EncodedClip:
        source = buffer.samples.detach().cpu().numpy().astype(np.float32)
        if buffer.frame_count == 0:
            return self._write(source, buffer.sample_rate)

        duration = buffer.duration
        with self.device.session():
            sink: "queue.Queue[np.ndarray]" = queue.Queue()
            stop = threading.Event()
            chunks: List[np.ndarray] = []

            started_at = time.monotonic()
            timer = self._schedule_stop(stop, started_at + duration)
            player = threading.Thread(
                target=self.device.play,
                args=(source, buffer.sample_rate, sink, stop, started_at),
                name="loopback-playback",
                daemon=True,
            )
            timer.start()
            player.start()

            # Capture concurrently until the stop signal fires
            while not stop.is_set():
                try:
                    chunks.append(sink.get(timeout=CAPTURE_POLL_S))
                except queue.Empty:
                    continue
            stopped_after = time.monotonic() - started_at

            player.join()
            timer.join()
            while True:
                try:
                    chunks.append(sink.get_nowait())
                except queue.Empty:
                    break

        captured = np.concatenate(chunks, axis=1)
        logger.info(
            "Loopback capture: nominal %.3f s, stopped after %.3f s, captured %.3f s",
            duration, stopped_after, captured.shape[1] / buffer.sample_rate,
        )
        return self._write(captured, buffer.sample_rate)


def make_encoder(settings: Settings) -> Encoder:
    if settings.encoder == "offline":
        return OfflineEncoder(container=settings.intermediate_format)
    return RealtimeEncoder(
        device=LoopbackDevice(block_frames=settings.block_frames),
        container=settings.intermediate_format,
    )
