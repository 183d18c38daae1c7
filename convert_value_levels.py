#!/usr/bin/env python3
"""Convert images to value-limited posterized images."""

import argparse
import logging
import sys
import time
from pathlib import Path

from PIL import Image

from value_levels import (
    PosterizeConfig,
    PosterizeError,
    PosterizePlan,
    build_plan,
    format_color,
    posterize_image,
)


def generate_filename(img_path: Path) -> str:
    """Input file stem with a millisecond timestamp appended."""
    now = time.time()
    secs = int(now)
    millis = int((now - secs) * 1000)
    return f"{img_path.stem}-{secs}{millis:03d}"


def output_path(img_path: Path, output: Path | None, ext: str, multiple: bool) -> Path:
    """Where the posterized copy of `img_path` is written."""
    if output is None:
        return Path(generate_filename(img_path)).with_suffix(f".{ext}")
    if not multiple:
        return output if output.suffix else output.with_suffix(f".{ext}")
    suffix = output.suffix or f".{ext}"
    return output.with_name(f"{img_path.stem}-{output.stem}{suffix}")


def convert_file(img_path: Path, out_path: Path, plan: PosterizePlan) -> None:
    """Posterize one image and save it.

    A file left behind by a failed save is removed, unless it was already
    there before the save started.
    """
    with Image.open(img_path) as img:
        result = posterize_image(img, plan)
    existed = out_path.exists()
    try:
        result.save(out_path)
    except (OSError, ValueError):
        if not existed and out_path.exists():
            out_path.unlink()
        raise
    print(f"Saved: {out_path}")


def int_list(text: str) -> list[int]:
    try:
        return [int(v) for v in text.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid value list: {text!r}")


def str_list(text: str) -> list[str]:
    return [v.strip() for v in text.split(",") if v.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="convert-value-levels",
        description="Make value-limited, posterized images based on a 0-10 brightness scale."
    )
    parser.add_argument(
        'input',
        nargs='+',
        type=Path,
        help='Input image files'
    )
    parser.add_argument(
        '--num-steps', '-n',
        type=int,
        default=5,
        help='Number of value steps to display (default: 5)'
    )
    parser.add_argument(
        '--values', '-v',
        type=int_list,
        default=[],
        help='Value levels to display, example: 1,5,9. Maximum of 11 values'
    )
    parser.add_argument(
        '--colors', '-c',
        type=str_list,
        default=[],
        help='Hex colors to use in place of greyscale, one per value or step'
    )
    parser.add_argument(
        '--ext', '-e',
        default='png',
        help='File extension of output (default: png)'
    )
    parser.add_argument(
        '--keep', '-k',
        action='store_true',
        help='Keep the value grouping from --values but use evenly spaced brightness'
    )
    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Print arguments and buckets without writing any image'
    )
    parser.add_argument(
        '--output', '-o',
        type=Path,
        help='Output file. With multiple inputs it is appended to each input name'
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    config = PosterizeConfig(
        num_steps=args.num_steps,
        values=args.values,
        colors=args.colors,
        keep=args.keep,
    )
    try:
        plan = build_plan(config)
    except PosterizeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.debug:
        print(args)
        print(f"Boundaries: {list(plan.boundaries)}")
        for key, color in plan.color_map.items():
            print(f"  {key:3d} -> {format_color(color)}")
        return 0

    multiple = len(args.input) > 1
    failed = []
    for img_path in args.input:
        out_path = output_path(img_path, args.output, args.ext, multiple)
        try:
            convert_file(img_path, out_path, plan)
        except (OSError, ValueError) as e:
            print(f"Error: {img_path.name}: {type(e).__name__}: {e}", file=sys.stderr)
            failed.append(img_path)

    if failed:
        print(f"Failed ({len(failed)}/{len(args.input)})", file=sys.stderr)
        return 1
    print("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
