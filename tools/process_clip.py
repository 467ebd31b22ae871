#!/usr/bin/env python3
"""
Clip processing tool: runs the post-processing pipeline on an audio file.

Usage:
    python tools/process_clip.py <subcommand> [options]

Subcommands:
    process <input>     Process a clip and write the result
    schema              Print the option schema and presets as JSON

Options (process):
    --noise-reduction <0-1>   Lowpass 2-4 kHz
    --remove-background       Raise highpass to 150 Hz
    --gain <0-2>              Linear volume
    --clarity <0-1>           Presence boost at 3 kHz
    --preset <name>           Start from a preset (default, reduce_noise)
    --format <mp3|wav|ogg>    Convert the result with FFmpeg
    --offline                 Sample-accurate encode instead of real-time capture
    --qc                      Print QC analysis
    --output <path>           Output path (default: <input>_processed.<ext>)
"""
import sys
import os
import json
import argparse
from dataclasses import replace
from pathlib import Path

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from clipengine.core.errors import ConversionError, DecodeError
from clipengine.core.settings import load_settings
from clipengine.core.types import TargetFormat
from clipengine.params import OPTION_SCHEMA, PRESETS, resolve_options
from clipengine.pipeline import ProcessingPipeline
from clipengine.qc import analyze


def _collect_options(args) -> dict:
    """Only flags the user actually passed override the preset."""
    options = {}
    if args.noise_reduction is not None:
        options["noiseReduction"] = args.noise_reduction
    if args.remove_background:
        options["removeBackground"] = True
    if args.gain is not None:
        options["gain"] = args.gain
    if args.clarity is not None:
        options["clarity"] = args.clarity
    return options


def cmd_process(args):
    """Process a single clip."""
    settings = load_settings()
    if args.offline:
        settings = replace(settings, encoder="offline")
    pipeline = ProcessingPipeline.from_settings(settings)

    options = resolve_options(_collect_options(args), preset=args.preset, dev=settings.dev)
    try:
        data = Path(args.input).read_bytes()
    except OSError as e:
        print(f"Cannot read input: {e}", file=sys.stderr)
        return 1

    try:
        clip, result = pipeline.process(data, options)
        target = None
        if args.format:
            target = TargetFormat.parse(args.format)
            clip = pipeline.export(clip, target)
    except DecodeError as e:
        print(f"Decode failed: {e}", file=sys.stderr)
        return 1
    except ConversionError as e:
        print(f"Conversion failed: {e}", file=sys.stderr)
        return 1

    if args.output:
        output = Path(args.output)
    else:
        ext = target.extension if target else f".{settings.intermediate_format.lower()}"
        src = Path(args.input)
        output = src.with_name(f"{src.stem}_processed{ext}")
    output.write_bytes(clip.data)

    # Print summary
    print(f"\n=== Processing Complete ===")
    print(f"Input: {args.input}")
    print(f"Output: {output} ({clip.mime_type}, {len(clip.data)} bytes)")
    print(f"Options: {json.dumps(options.to_dict())}")
    print(f"Duration: {result.duration:.3f} s, {result.buffer.channel_count} ch @ {result.buffer.sample_rate} Hz")

    if args.qc:
        report = analyze(result.buffer)
        print(f"QC: {report['status']}")
        for failure in report["failures"]:
            print(f"  FAIL: {failure}")
        for warning in report["warnings"]:
            print(f"  WARN: {warning}")
    return 0


def cmd_schema(args):
    """Print option schema and presets."""
    print(json.dumps({"schema": OPTION_SCHEMA, "presets": PRESETS}, indent=2))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Voice clip post-processing tool"
    )

    subparsers = parser.add_subparsers(dest="command", help="Subcommand")

    p_proc = subparsers.add_parser("process", help="Process a clip")
    p_proc.add_argument("input", help="Input audio file")
    p_proc.add_argument("--noise-reduction", type=float, default=None)
    p_proc.add_argument("--remove-background", action="store_true")
    p_proc.add_argument("--gain", type=float, default=None)
    p_proc.add_argument("--clarity", type=float, default=None)
    p_proc.add_argument("--preset", choices=sorted(PRESETS), default=None)
    p_proc.add_argument("--format", choices=[f.value for f in TargetFormat], default=None,
                        help="Convert the processed clip (requires FFmpeg)")
    p_proc.add_argument("--offline", action="store_true",
                        help="Sample-accurate encode instead of real-time capture")
    p_proc.add_argument("--qc", action="store_true", help="Run QC analysis")
    p_proc.add_argument("--output", type=str, help="Output path")

    subparsers.add_parser("schema", help="Print option schema and presets")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "process":
        return cmd_process(args)
    elif args.command == "schema":
        return cmd_schema(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
