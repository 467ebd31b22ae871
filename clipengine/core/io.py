import io
import logging
from typing import Protocol, Union

import numpy as np
import soundfile as sf
import torch

from clipengine.core.errors import DecodeError
from clipengine.core.types import PcmBuffer

logger = logging.getLogger(__name__)


class AudioIO:
    @staticmethod
    def _to_frames(waveform: Union[torch.Tensor, np.ndarray]) -> np.ndarray:
        """(channels, frames) tensor -> clipped (frames, channels) float32 array."""
        if isinstance(waveform, torch.Tensor):
            data = waveform.detach().cpu().numpy()
        else:
            data = np.asarray(waveform)
        if data.ndim == 2:
            data = data.T
        # Final saturation to the representable range
        return np.clip(data, -1.0, 1.0).astype(np.float32)

    @staticmethod
    def save(waveform: torch.Tensor, sample_rate: int, path: str, format: str = None):
        """Saves a (channels, frames) tensor to an audio file."""
        sf.write(path, AudioIO._to_frames(waveform), sample_rate, format=format)

    @staticmethod
    def to_bytes(waveform: torch.Tensor, sample_rate: int, format: str = 'WAV') -> bytes:
        """Returns audio file as bytes (for API responses)."""
        buffer = io.BytesIO()
        sf.write(buffer, AudioIO._to_frames(waveform), sample_rate, format=format)
        return buffer.getvalue()

    @staticmethod
    def from_bytes(data: bytes) -> PcmBuffer:
        """Decodes a container blob into a PcmBuffer. Raises DecodeError."""
        if not data:
            raise DecodeError("Empty audio blob")
        try:
            frames, sample_rate = sf.read(io.BytesIO(data), dtype='float32', always_2d=True)
        except (sf.SoundFileError, RuntimeError, TypeError) as exc:
            raise DecodeError(f"Unreadable audio blob: {exc}") from exc
        samples = torch.from_numpy(np.ascontiguousarray(frames.T))
        try:
            return PcmBuffer(samples=samples, sample_rate=int(sample_rate))
        except ValueError as exc:
            raise DecodeError(str(exc)) from exc


class Decoder(Protocol):
    def decode(self, data: bytes) -> PcmBuffer:
        ...


class SoundFileDecoder:
    """Decodes any container libsndfile understands (WAV, FLAC, OGG, MP3)."""

    def decode(self, data: bytes) -> PcmBuffer:
        buffer = AudioIO.from_bytes(data)
        logger.debug(
            "Decoded %d bytes -> %d ch x %d frames @ %d Hz",
            len(data), buffer.channel_count, buffer.frame_count, buffer.sample_rate,
        )
        return buffer
