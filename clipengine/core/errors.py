"""
Error kinds surfaced by the processing pipeline.
None of these are retried inside the engine; callers decide what to do.
"""


class ClipEngineError(Exception):
    """Base class for pipeline errors."""


class DecodeError(ClipEngineError):
    """Input blob could not be decoded into PCM. The input is left untouched."""


class InvariantViolation(ClipEngineError):
    """A render stage changed the buffer shape. Indicates a bug, not bad input."""


class ConversionError(ClipEngineError):
    """The transcoding engine is unavailable, failed, or produced nothing."""
