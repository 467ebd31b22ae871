"""
Option schema, presets and resolution for processing requests.
Default values: single source is schema.OPTION_SCHEMA; use resolve_options({}) for resolved defaults.
"""
from clipengine.params.schema import OPTION_SCHEMA, PRESETS
from clipengine.params.resolve import resolve_options
from clipengine.params.clamp import clamp_options

__all__ = ["OPTION_SCHEMA", "PRESETS", "resolve_options", "clamp_options"]
