"""
Environment-driven settings for the engine and service.
Read once via load_settings(); invalid values fail at load time.
"""
from dataclasses import dataclass
import os
from typing import Mapping, Optional

ENCODER_MODES = ("realtime", "offline")
DECODER_MODES = ("soundfile", "ffmpeg")
INTERMEDIATE_FORMATS = {
    "WAV": "audio/wav",
    "FLAC": "audio/flac",
    "OGG": "audio/ogg",
}


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    encoder: str = "realtime"
    decoder: str = "soundfile"
    intermediate_format: str = "WAV"
    ffmpeg_bin: str = "ffmpeg"
    block_frames: int = 1024
    log_level: str = "INFO"

    @property
    def dev(self) -> bool:
        return self.env.lower() in ("development", "dev", "test")

    @property
    def intermediate_mime_type(self) -> str:
        return INTERMEDIATE_FORMATS[self.intermediate_format]


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ

    encoder = env.get("CLIPENGINE_ENCODER", "realtime").lower()
    if encoder not in ENCODER_MODES:
        raise ValueError(f"CLIPENGINE_ENCODER must be one of {ENCODER_MODES}, got {encoder!r}")

    decoder = env.get("CLIPENGINE_DECODER", "soundfile").lower()
    if decoder not in DECODER_MODES:
        raise ValueError(f"CLIPENGINE_DECODER must be one of {DECODER_MODES}, got {decoder!r}")

    fmt = env.get("CLIPENGINE_INTERMEDIATE_FORMAT", "WAV").upper()
    if fmt not in INTERMEDIATE_FORMATS:
        raise ValueError(
            f"CLIPENGINE_INTERMEDIATE_FORMAT must be one of {sorted(INTERMEDIATE_FORMATS)}, got {fmt!r}"
        )

    raw_block = env.get("CLIPENGINE_BLOCK_FRAMES", "1024")
    try:
        block_frames = int(raw_block)
    except ValueError:
        raise ValueError(f"CLIPENGINE_BLOCK_FRAMES must be an integer, got {raw_block!r}") from None
    if block_frames <= 0:
        raise ValueError(f"CLIPENGINE_BLOCK_FRAMES must be positive, got {block_frames}")

    return Settings(
        env=env.get("ENV", "development"),
        encoder=encoder,
        decoder=decoder,
        intermediate_format=fmt,
        ffmpeg_bin=env.get("CLIPENGINE_FFMPEG", "ffmpeg"),
        block_frames=block_frames,
        log_level=env.get("CLIPENGINE_LOG_LEVEL", "INFO").upper(),
    )
