"""
Service tests: /process and /export through fastapi's TestClient.
The module pipeline is swapped for an offline one with a fake converter.
"""
import sys
import os
import base64

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np
import pytest
import torch
from fastapi.testclient import TestClient

from clipengine import main
from clipengine.core.errors import ConversionError
from clipengine.core.io import AudioIO, SoundFileDecoder
from clipengine.core.types import EncodedClip
from clipengine.export.bridge import OfflineEncoder
from clipengine.pipeline import ProcessingPipeline

SR = 16000


class FakeConverter:
    def __init__(self, fail: bool = False):
        self.fail = fail

    def check_ffmpeg(self) -> bool:
        return True

    def convert(self, clip, target):
        if self.fail:
            raise ConversionError("FFmpeg not found")
        return EncodedClip(data=b"converted:" + clip.data[:4], mime_type=target.mime_type)


@pytest.fixture
def client(monkeypatch):
    pipeline = ProcessingPipeline(SoundFileDecoder(), OfflineEncoder(), FakeConverter())
    monkeypatch.setattr(main, "pipeline", pipeline)
    return TestClient(main.app)


def _b64_clip(seconds: float = 0.25) -> str:
    t = torch.arange(int(seconds * SR), dtype=torch.float32) / SR
    wav = AudioIO.to_bytes((0.4 * torch.sin(2 * np.pi * 500.0 * t)).unsqueeze(0), SR)
    return base64.b64encode(wav).decode("utf-8")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_options_schema(client):
    body = client.get("/options/schema").json()
    assert set(body["schema"]) == {"noiseReduction", "removeBackground", "gain", "clarity"}
    assert "reduce_noise" in body["presets"]


def test_process_returns_clip_and_resolved_options(client):
    response = client.post("/process", json={
        "audio": _b64_clip(),
        "options": {"noiseReduction": 1.0, "removeBackground": True, "gain": 3.0, "clarity": 0.2},
    })
    assert response.status_code == 200
    body = response.json()
    assert body["mime_type"] == "audio/wav"
    assert body["duration"] == pytest.approx(0.25)
    assert body["resolved_options"]["gain"] == 2.0  # clamped
    assert body["qc"]["status"] in ("PASS", "WARN")

    decoded = AudioIO.from_bytes(base64.b64decode(body["audio"]))
    assert decoded.frame_count == int(0.25 * SR)


def test_process_with_preset(client):
    body = client.post("/process", json={"audio": _b64_clip(), "preset": "reduce_noise"}).json()
    assert body["resolved_options"] == {
        "noiseReduction": 0.5, "removeBackground": True, "gain": 1.0, "clarity": 0.0,
    }


def test_process_rejects_undecodable_audio(client):
    payload = base64.b64encode(b"not a wav").decode("utf-8")
    response = client.post("/process", json={"audio": payload})
    assert response.status_code == 422


def test_process_rejects_bad_base64(client):
    response = client.post("/process", json={"audio": "***"})
    assert response.status_code == 422


def test_process_rejects_unknown_preset(client):
    response = client.post("/process", json={"audio": _b64_clip(), "preset": "studio"})
    assert response.status_code == 422


@pytest.mark.parametrize("preset", [["reduce_noise"], {"name": "default"}, 7])
def test_process_rejects_non_string_preset(client, preset):
    response = client.post("/process", json={"audio": _b64_clip(), "preset": preset})
    assert response.status_code == 422


def test_export_attachment(client):
    response = client.post("/export", json={"audio": _b64_clip(), "format": "mp3", "name": "Recording 1"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("audio/mpeg")
    assert 'filename="Recording 1.mp3"' in response.headers["content-disposition"]
    assert response.content.startswith(b"converted:")


def test_export_non_ascii_name(client):
    response = client.post("/export", json={"audio": _b64_clip(), "format": "mp3", "name": "Kayıt 1"})
    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert 'filename="Kay_t 1.mp3"' in disposition
    assert "filename*=UTF-8''Kay%C4%B1t%201.mp3" in disposition


def test_export_unknown_format(client):
    response = client.post("/export", json={"audio": _b64_clip(), "format": "aiff"})
    assert response.status_code == 422


def test_export_conversion_failure(client, monkeypatch):
    monkeypatch.setattr(main.pipeline, "converter", FakeConverter(fail=True))
    response = client.post("/export", json={"audio": _b64_clip(), "format": "ogg"})
    assert response.status_code == 502
