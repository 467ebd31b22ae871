"""
Processing pipeline: decode -> compile chain -> offline render -> re-encode,
plus format conversion on export. Stages run strictly in sequence; a failed
stage yields nothing (no partial buffers or clips) and nothing is retried.
"""
import asyncio
import logging
from typing import Optional, Tuple

from clipengine.core.io import Decoder, SoundFileDecoder
from clipengine.core.settings import Settings, load_settings
from clipengine.core.types import (
    EncodedClip,
    PcmBuffer,
    ProcessingOptions,
    ProcessingResult,
    TargetFormat,
)
from clipengine.dsp.chain import compile_chain
from clipengine.dsp.render import OfflineRenderer
from clipengine.export.bridge import Encoder, make_encoder
from clipengine.export.converter import Converter, FFmpegConverter, FFmpegDecoder

logger = logging.getLogger(__name__)


class ProcessingPipeline:
    def __init__(
        self,
        decoder: Decoder,
        encoder: Encoder,
        converter: Optional[Converter] = None,
        renderer: Optional[OfflineRenderer] = None,
    ):
        self.decoder = decoder
        self.encoder = encoder
        self.converter = converter
        self.renderer = renderer or OfflineRenderer()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ProcessingPipeline":
        settings = settings or load_settings()
        converter = FFmpegConverter(settings.ffmpeg_bin)
        decoder = FFmpegDecoder(converter) if settings.decoder == "ffmpeg" else SoundFileDecoder()
        return cls(decoder=decoder, encoder=make_encoder(settings), converter=converter)

    def process_buffer(self, buffer: PcmBuffer, options: ProcessingOptions) -> ProcessingResult:
        """Compile the chain for options and render buffer through it."""
        chain = compile_chain(options)
        rendered = self.renderer.render(buffer, chain)
        return ProcessingResult(buffer=rendered, duration=rendered.duration)

    def process(self, data: bytes, options: ProcessingOptions) -> Tuple[EncodedClip, ProcessingResult]:
        """
        Full pipeline on an encoded blob.
        Raises DecodeError for unreadable input; the input is left untouched.
        """
        buffer = self.decoder.decode(data)
        result = self.process_buffer(buffer, options)
        clip = self.encoder.encode(result.buffer)
        logger.info("Processed clip: %.2f s, %d ch @ %d Hz, options=%s",
                    result.duration, result.buffer.channel_count,
                    result.buffer.sample_rate, options.to_dict())
        return clip, result

    async def process_async(self, data: bytes, options: ProcessingOptions) -> Tuple[EncodedClip, ProcessingResult]:
        """
        As process(), without blocking the event loop: decode and render run
        in a worker thread and the real-time re-encode is awaited.
        """
        buffer = await asyncio.to_thread(self.decoder.decode, data)
        result = await asyncio.to_thread(self.process_buffer, buffer, options)
        clip = await self.encoder.encode_async(result.buffer)
        logger.info("Processed clip: %.2f s, %d ch @ %d Hz, options=%s",
                    result.duration, result.buffer.channel_count,
                    result.buffer.sample_rate, options.to_dict())
        return clip, result

    def export(self, clip: EncodedClip, target: TargetFormat) -> EncodedClip:
        """Convert clip into a delivery format. Raises ConversionError."""
        if self.converter is None:
            raise RuntimeError("Pipeline has no converter configured")
        return self.converter.convert(clip, target)

    async def export_async(self, clip: EncodedClip, target: TargetFormat) -> EncodedClip:
        """As export(), with the FFmpeg subprocess run in a worker thread."""
        return await asyncio.to_thread(self.export, clip, target)
