"""Command line entry point.

Prints one JSON envelope per input file and exits non-zero if any failed.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from typing import Any

from .batch import process_batch
from .config import OUTPUT_POLICIES, load_config
from .logger import resolve_level, setup_logger


def _parse_crop(value: str) -> dict[str, int]:
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("crop must be X,Y,WIDTH,HEIGHT")
    try:
        x, y, w, h = (int(p) for p in parts)
    except ValueError as e:
        raise argparse.ArgumentTypeError("crop values must be integers") from e
    return {"x": x, "y": y, "width": w, "height": h}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="minimago", description="Crop, resize, key out and convert images.")
    parser.add_argument("inputs", nargs="+", help="Image files to process")
    parser.add_argument("-f", "--format", help="Target format (png, jpg, jpeg, webp, avif, svg)")
    parser.add_argument("-q", "--quality", type=float, help="Quality 1-100 (default 80)")
    parser.add_argument("--width", type=float, help="Output width in pixels")
    parser.add_argument("--height", type=float, help="Output height in pixels")
    parser.add_argument("--crop", type=_parse_crop, help="Crop rectangle X,Y,WIDTH,HEIGHT")
    parser.add_argument("--remove-bg", action="store_true", help="Make pixels near --bg-color transparent")
    parser.add_argument("--bg-color", help="Background color as #RRGGBB (default #ffffff)")
    parser.add_argument("--bg-tolerance", type=int, help="Per-channel tolerance (default 20)")
    parser.add_argument("-o", "--output", help="Explicit output path (sandbox policy only)")
    parser.add_argument("--output-dir", help="Directory for generated output names")
    parser.add_argument("--policy", choices=OUTPUT_POLICIES, help="Output path policy")
    parser.add_argument("--config", help="JSON config file (default: $MINIMAGO_CONFIG)")
    parser.add_argument("-j", "--jobs", type=int, help="Parallel workers")
    parser.add_argument("--log-level", help="Set log level")
    return parser


def build_request(args: argparse.Namespace, input_path: str) -> dict[str, Any]:
    req: dict[str, Any] = {"inputPath": input_path, "removeBg": bool(args.remove_bg)}
    optional = {
        "format": args.format,
        "quality": args.quality,
        "width": args.width,
        "height": args.height,
        "crop": args.crop,
        "bgColor": args.bg_color,
        "bgTolerance": args.bg_tolerance,
        "outputPath": args.output,
    }
    req.update({k: v for k, v in optional.items() if v is not None})
    return req


def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = setup_logger(resolve_level(args.log_level, logging.WARNING))

    config = load_config(args.config)
    overrides: dict[str, Any] = {}
    if args.output_dir:
        overrides["output_dir"] = args.output_dir
    if args.policy:
        overrides["output_policy"] = args.policy
    if overrides:
        config = dataclasses.replace(config, **overrides)

    if args.output and len(args.inputs) > 1:
        parser.error("--output can only be used with a single input")

    requests = [build_request(args, p) for p in args.inputs]
    failures = 0
    for index, envelope in sorted(process_batch(requests, args.jobs, config), key=lambda item: item[0]):
        if not envelope.get("success"):
            failures += 1
        print(json.dumps({"input": args.inputs[index], **envelope}))

    logger.debug("done: %d ok, %d failed", len(requests) - failures, failures)
    return 1 if failures else 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
