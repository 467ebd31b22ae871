"""
Tests for clipengine/export/converter: FFmpeg command building and failure mapping.
The engine is faked; one integration test runs only when ffmpeg is installed.
"""
import sys
import os
import shutil
import subprocess

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
import torch
from clipengine.core.errors import ConversionError, DecodeError
from clipengine.core.io import AudioIO
from clipengine.core.types import EncodedClip, TargetFormat
from clipengine.export import converter as converter_module
from clipengine.export.converter import FFmpegConverter, FFmpegDecoder, export_filename

WAV_CLIP = EncodedClip(
    data=AudioIO.to_bytes(torch.zeros(1, 800), 8000),
    mime_type="audio/wav",
    sample_rate=8000,
    frame_count=800,
)


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Pretend ffmpeg is installed and record every invocation."""
    calls = []
    state = {"stdout": b"converted-bytes", "error": None}

    def fake_run(cmd, input=None, **kwargs):
        calls.append({"cmd": cmd, "input": input, "kwargs": kwargs})
        if state["error"] is not None:
            raise state["error"]
        return subprocess.CompletedProcess(cmd, 0, stdout=state["stdout"], stderr=b"")

    monkeypatch.setattr(converter_module.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(converter_module.subprocess, "run", fake_run)
    return calls, state


class TestFFmpegConverter:
    @pytest.mark.parametrize("target,codec", [
        (TargetFormat.MP3, "libmp3lame"),
        (TargetFormat.WAV, "pcm_s16le"),
        (TargetFormat.OGG, "libvorbis"),
    ])
    def test_command_per_format(self, fake_ffmpeg, target, codec):
        calls, _ = fake_ffmpeg
        out = FFmpegConverter().convert(WAV_CLIP, target)

        cmd = calls[0]["cmd"]
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-i") + 1] == "pipe:0"
        assert cmd[-1] == "pipe:1"
        assert codec in cmd
        assert calls[0]["input"] == WAV_CLIP.data
        assert calls[0]["kwargs"]["check"] is True

        assert out.data == b"converted-bytes"
        assert out.mime_type == target.mime_type
        assert out.frame_count == WAV_CLIP.frame_count

    def test_custom_binary(self, fake_ffmpeg):
        calls, _ = fake_ffmpeg
        FFmpegConverter(ffmpeg_bin="/opt/ffmpeg/bin/ffmpeg").convert(WAV_CLIP, TargetFormat.MP3)
        assert calls[0]["cmd"][0] == "/opt/ffmpeg/bin/ffmpeg"

    def test_missing_engine(self, monkeypatch):
        monkeypatch.setattr(converter_module.shutil, "which", lambda name: None)
        with pytest.raises(ConversionError, match="not found"):
            FFmpegConverter().convert(WAV_CLIP, TargetFormat.MP3)

    def test_engine_failure_is_not_retried(self, fake_ffmpeg):
        calls, state = fake_ffmpeg
        state["error"] = subprocess.CalledProcessError(1, ["ffmpeg"], stderr=b"Invalid data found")
        with pytest.raises(ConversionError, match="Invalid data found"):
            FFmpegConverter().convert(WAV_CLIP, TargetFormat.OGG)
        assert len(calls) == 1

    def test_timeout(self, fake_ffmpeg):
        _, state = fake_ffmpeg
        state["error"] = subprocess.TimeoutExpired(["ffmpeg"], 1.0)
        with pytest.raises(ConversionError, match="timed out"):
            FFmpegConverter(timeout=1.0).convert(WAV_CLIP, TargetFormat.MP3)

    def test_empty_output(self, fake_ffmpeg):
        _, state = fake_ffmpeg
        state["stdout"] = b""
        with pytest.raises(ConversionError):
            FFmpegConverter().convert(WAV_CLIP, TargetFormat.MP3)

    def test_empty_input(self, fake_ffmpeg):
        calls, _ = fake_ffmpeg
        with pytest.raises(ConversionError):
            FFmpegConverter().convert(EncodedClip(data=b"", mime_type="audio/wav"), TargetFormat.MP3)
        assert calls == []


class TestFFmpegDecoder:
    def test_conversion_failure_is_decode_error(self, fake_ffmpeg):
        _, state = fake_ffmpeg
        state["error"] = subprocess.CalledProcessError(1, ["ffmpeg"], stderr=b"EBML header parsing failed")
        with pytest.raises(DecodeError):
            FFmpegDecoder(FFmpegConverter()).decode(b"\x1aE\xdf\xa3 not really webm")

    def test_decodes_transcoded_wav(self, fake_ffmpeg):
        _, state = fake_ffmpeg
        state["stdout"] = WAV_CLIP.data
        buffer = FFmpegDecoder(FFmpegConverter()).decode(b"webm-bytes")
        assert buffer.sample_rate == 8000
        assert buffer.frame_count == 800


@pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
def test_real_ffmpeg_wav_roundtrip():
    out = FFmpegConverter().convert(WAV_CLIP, TargetFormat.WAV)
    decoded = AudioIO.from_bytes(out.data)
    assert decoded.sample_rate == 8000
    assert decoded.frame_count == 800


class TestExportFilename:
    def test_recording_name_with_extension(self):
        assert export_filename("Recording 1", TargetFormat.MP3) == "Recording 1.mp3"

    def test_unsafe_characters_replaced(self):
        assert export_filename("Recording 12:01/02", TargetFormat.OGG) == "Recording 12-01-02.ogg"

    def test_blank_name_falls_back(self):
        assert export_filename("  ", TargetFormat.WAV) == "recording.wav"
