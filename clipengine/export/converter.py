"""
Format conversion through an external FFmpeg engine.
Clips are piped through stdin/stdout; nothing touches the filesystem.
"""
import logging
import re
import shutil
import subprocess
from typing import List, Protocol

from clipengine.core.errors import ConversionError, DecodeError
from clipengine.core.io import AudioIO
from clipengine.core.types import EncodedClip, PcmBuffer, TargetFormat

logger = logging.getLogger(__name__)


class Converter(Protocol):
    def convert(self, clip: EncodedClip, target: TargetFormat) -> EncodedClip:
        ...


class FFmpegConverter:
    """
    Converts an encoded clip into a delivery format using FFmpeg.
    Failures raise ConversionError and are never retried here.
    """

    # Format specific settings
    FORMAT_ARGS = {
        TargetFormat.MP3: ["-c:a", "libmp3lame", "-b:a", "192k", "-f", "mp3"],
        TargetFormat.WAV: ["-c:a", "pcm_s16le", "-f", "wav"],
        TargetFormat.OGG: ["-c:a", "libvorbis", "-q:a", "5", "-f", "ogg"],
    }

    def __init__(self, ffmpeg_bin: str = "ffmpeg", timeout: float = 120.0):
        self.ffmpeg_bin = ffmpeg_bin
        self.timeout = timeout

    def check_ffmpeg(self) -> bool:
        """Checks if the FFmpeg executable can be found."""
        return shutil.which(self.ffmpeg_bin) is not None

    def build_command(self, target: TargetFormat) -> List[str]:
        cmd = [
            self.ffmpeg_bin, "-hide_banner", "-loglevel", "error",
            "-i", "pipe:0",
            "-vn",
        ]
        cmd.extend(self.FORMAT_ARGS[target])
        cmd.append("pipe:1")
        return cmd

    def convert(self, clip: EncodedClip, target: TargetFormat) -> EncodedClip:
        if not clip.data:
            raise ConversionError("Cannot convert an empty clip")
        if not self.check_ffmpeg():
            raise ConversionError(f"FFmpeg not found ({self.ffmpeg_bin}); install it and add it to PATH")

        cmd = self.build_command(target)
        try:
            result = subprocess.run(
                cmd,
                input=clip.data,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            logger.error("FFmpeg failed converting %s -> %s: %s", clip.mime_type, target.value, stderr)
            raise ConversionError(f"FFmpeg exited with {e.returncode}: {stderr or 'no output'}") from e
        except subprocess.TimeoutExpired as e:
            logger.error("FFmpeg timed out after %.0f s converting to %s", self.timeout, target.value)
            raise ConversionError(f"FFmpeg timed out after {self.timeout:.0f} s") from e
        except OSError as e:
            raise ConversionError(f"FFmpeg could not be started: {e}") from e

        if not result.stdout:
            raise ConversionError(f"FFmpeg produced no {target.value} output")

        logger.info("Converted %s (%d bytes) -> %s (%d bytes)",
                    clip.mime_type, len(clip.data), target.mime_type, len(result.stdout))
        return EncodedClip(
            data=result.stdout,
            mime_type=target.mime_type,
            sample_rate=clip.sample_rate,
            frame_count=clip.frame_count,
        )


class FFmpegDecoder:
    """
    Decoder for containers libsndfile cannot read (browser WebM/Opus clips):
    transcodes to WAV through the converter, then decodes that.
    """

    def __init__(self, converter: FFmpegConverter):
        self.converter = converter

    def decode(self, data: bytes) -> PcmBuffer:
        if not data:
            raise DecodeError("Empty audio blob")
        try:
            wav = self.converter.convert(EncodedClip(data=data, mime_type="application/octet-stream"),
                                         TargetFormat.WAV)
        except ConversionError as exc:
            raise DecodeError(f"Unreadable audio blob: {exc}") from exc
        return AudioIO.from_bytes(wav.data)


_UNSAFE_NAME = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


def export_filename(name: str, target: TargetFormat) -> str:
    """'Recording 12:01' + MP3 -> 'Recording 12-01.mp3'."""
    stem = _UNSAFE_NAME.sub("-", name or "").strip(" .-") or "recording"
    return f"{stem}{target.extension}"
