from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import torch


@dataclass(frozen=True)
class PcmBuffer:
    samples: torch.Tensor  # (channels, frames), float
    sample_rate: int

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.samples.dim() != 2 or self.samples.shape[0] < 1:
            raise ValueError(
                f"samples must be shaped (channels, frames), got {tuple(self.samples.shape)}"
            )

    @property
    def channel_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration(self) -> float:
        """Nominal duration in seconds."""
        return self.frame_count / self.sample_rate

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (self.channel_count, self.frame_count, self.sample_rate)


@dataclass(frozen=True)
class ProcessingOptions:
    noise_reduction: float = 0.5  # 0-1
    remove_background: bool = False
    gain: float = 1.0  # 0-2
    clarity: float = 0.5  # 0-1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "noiseReduction": self.noise_reduction,
            "removeBackground": self.remove_background,
            "gain": self.gain,
            "clarity": self.clarity,
        }


class StageKind(str, Enum):
    HIGHPASS = "highpass"
    LOWPASS = "lowpass"
    GAIN = "gain"
    PEAKING = "peaking"


@dataclass(frozen=True)
class FilterStage:
    kind: StageKind
    center_frequency_hz: float = 0.0
    q_factor: float = 0.0
    gain_db: float = 0.0
    linear_gain: float = 1.0


@dataclass(frozen=True)
class FilterChain:
    stages: Tuple[FilterStage, ...] = field(default_factory=tuple)

    def __iter__(self):
        return iter(self.stages)

    def __len__(self):
        return len(self.stages)


@dataclass
class ProcessingResult:
    buffer: PcmBuffer
    duration: float


@dataclass(frozen=True)
class EncodedClip:
    data: bytes
    mime_type: str
    sample_rate: Optional[int] = None
    frame_count: Optional[int] = None

    @property
    def duration(self) -> Optional[float]:
        if not self.sample_rate or self.frame_count is None:
            return None
        return self.frame_count / self.sample_rate


class TargetFormat(str, Enum):
    MP3 = "mp3"
    WAV = "wav"
    OGG = "ogg"

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @classmethod
    def parse(cls, name: str) -> "TargetFormat":
        """Look up a format by name, case-insensitive, leading dot allowed."""
        try:
            return cls(str(name).lower().lstrip("."))
        except ValueError:
            valid = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown target format: {name!r} (expected one of {valid})") from None


_MIME_TYPES = {
    TargetFormat.MP3: "audio/mpeg",
    TargetFormat.WAV: "audio/wav",
    TargetFormat.OGG: "audio/ogg",
}
