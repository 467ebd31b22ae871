from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import asyncio
import base64
import binascii
import logging
import re
from urllib.parse import quote

from clipengine.core.errors import ConversionError, DecodeError
from clipengine.core.settings import load_settings
from clipengine.core.types import EncodedClip, TargetFormat
from clipengine.export.converter import export_filename
from clipengine.params import OPTION_SCHEMA, PRESETS, resolve_options
from clipengine.pipeline import ProcessingPipeline
from clipengine.qc import analyze

settings = load_settings()

# Configure Logging
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger("voice-clip-engine")

app = FastAPI(
    title="Voice Clip Engine",
    version="1.0.0",
    description="Post-processing and export for recorded voice clips"
)

# CORS (Allow Frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # Allow any local port
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One pipeline per process: the re-encode loopback device is exclusive
pipeline = ProcessingPipeline.from_settings(settings)


def _decode_payload(data: dict) -> bytes:
    raw = data.get("audio")
    if not raw:
        raise HTTPException(status_code=422, detail="Missing 'audio' (base64)")
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise HTTPException(status_code=422, detail="'audio' is not valid base64")


def _content_disposition(filename: str) -> str:
    # Header values are latin-1; non-ASCII names go in filename* (RFC 6266)
    fallback = re.sub(r"[^\x20-\x7e]", "_", filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "service": "voice-clip-engine",
        "encoder": settings.encoder,
        "ffmpeg": pipeline.converter.check_ffmpeg(),
    }


@app.get("/options/schema")
async def options_schema():
    return {"schema": OPTION_SCHEMA, "presets": PRESETS}


@app.post("/process")
async def process_clip(data: dict):
    """
    Applies noise reduction / background removal / gain / clarity to a clip.
    Returns JSON with base64-encoded audio, resolved options and QC report.
    """
    audio = _decode_payload(data)
    try:
        options = resolve_options(data.get("options") or {}, preset=data.get("preset"), dev=settings.dev)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        clip, result = await pipeline.process_async(audio, options)
    except DecodeError as e:
        logger.warning("Rejected clip: %s", e)
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "audio": base64.b64encode(clip.data).decode("utf-8"),
        "mime_type": clip.mime_type,
        "duration": result.duration,
        "resolved_options": options.to_dict(),
        "qc": await asyncio.to_thread(analyze, result.buffer),
    }


@app.post("/export")
async def export_clip(data: dict):
    """
    Converts a clip into a delivery format (mp3, wav, ogg).
    """
    audio = _decode_payload(data)
    try:
        target = TargetFormat.parse(data.get("format", "mp3"))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    clip = EncodedClip(data=audio, mime_type=data.get("mime_type", settings.intermediate_mime_type))
    try:
        converted = await pipeline.export_async(clip, target)
    except ConversionError as e:
        raise HTTPException(status_code=502, detail=str(e))

    filename = export_filename(data.get("name", "recording"), target)
    return Response(
        content=converted.data,
        media_type=converted.mime_type,
        headers={"Content-Disposition": _content_disposition(filename)}
    )


if __name__ == "__main__":
    uvicorn.run("clipengine.main:app", host="0.0.0.0", port=8000, reload=True)
