"""
dvphoto command line.

Usage:
  dvphoto validate photo.jpg [more.jpg ...] [--baby] [--json]
  dvphoto enhance in.jpg out.jpg [--center-on-face]

Exit codes: 0 all photos valid / enhanced, 1 a photo failed validation,
2 a photo could not be processed.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from dvphoto.core.config import EnhanceParams, ValidationConfig
from dvphoto.core.errors import PhotoPipelineError
from dvphoto.detection.base import build_locator, select_faces
from dvphoto.imaging.decoder import decode_file
from dvphoto.imaging.enhancer import encode_within_size, enhance
from dvphoto.validation.batch import BatchItem, BatchValidator
from dvphoto.validation.validator import format_report_text

logger = logging.getLogger("dvphoto")


def _load_config(path: Optional[str], baby: bool) -> ValidationConfig:
    if not path:
        return ValidationConfig.for_mode(baby)
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return ValidationConfig.from_mapping(data, baby=True if baby else None)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dvphoto", description="Check and prepare U.S. Diversity Visa photos.")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv debug)")
    sub = p.add_subparsers(dest="command", required=True)

    v = sub.add_parser("validate", help="Validate one or more photos")
    v.add_argument("paths", nargs="+", help="JPEG files to check")
    v.add_argument("--baby", action="store_true", help="Use the infant profile (wider face band)")
    v.add_argument("--config", help="JSON file with configuration overrides")
    v.add_argument("--detector", default="skin", choices=["skin", "mediapipe"], help="Face locator (default: skin)")
    v.add_argument("--json", action="store_true", help="Print results as JSON")
    v.add_argument("--max-items", type=int, default=3, help="Findings listed per section in text output")

    e = sub.add_parser("enhance", help="Crop, resize and tone-adjust a photo to 600x600")
    e.add_argument("input", help="Source photo")
    e.add_argument("output", help="Output JPEG path")
    e.add_argument("--center-on-face", action="store_true", help="Center the square crop on the detected face")
    e.add_argument("--detector", default="skin", choices=["skin", "mediapipe"], help="Face locator (default: skin)")
    e.add_argument("--quality", type=int, default=95, help="Starting JPEG quality (default: 95)")
    e.add_argument("--no-sharpen", action="store_true", help="Skip the sharpening pass")
    return p


def _cmd_validate(args: argparse.Namespace) -> int:
    config = _load_config(args.config, args.baby)
    validator = BatchValidator(config=config, locator=build_locator(args.detector))
    outcomes = validator.run_paths(args.paths)

    code = 0
    payload = []
    for outcome in outcomes:
        if outcome.error is not None:
            print(f"ERROR: {outcome.label}: {outcome.error}", file=sys.stderr)
            code = 2
            continue
        result = outcome.result
        if not result.is_valid and code == 0:
            code = 1
        if args.json:
            payload.append(result.to_dict())
        else:
            print(f"== {outcome.label}")
            print(format_report_text(result, max_items=args.max_items))
            print("")

    if args.json:
        print(json.dumps(payload if len(args.paths) > 1 else (payload[0] if payload else None), indent=2, default=str))
    return code


def _cmd_enhance(args: argparse.Namespace) -> int:
    params = EnhanceParams(jpeg_quality=args.quality, sharpen=not args.no_sharpen)
    config = ValidationConfig()
    image = decode_file(args.input)

    center = None
    if args.center_on_face:
        selection = select_faces(build_locator(args.detector).detect(image), config.min_face_confidence)
        if selection.primary is None:
            logger.warning("No face found in %s; using a centered crop", args.input)
        else:
            center = selection.primary.center

    out = enhance(image, params, center=center)
    data = encode_within_size(out, config.max_file_size_bytes, quality=params.jpeg_quality)
    Path(args.output).write_bytes(data)
    print(f"Saved: {args.output} ({len(data) / 1024:.0f}KB)")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    level = logging.WARNING if args.verbose == 0 else (logging.INFO if args.verbose == 1 else logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "validate":
            return _cmd_validate(args)
        return _cmd_enhance(args)
    except (PhotoPipelineError, OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
