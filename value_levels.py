"""Posterize images to a small set of value levels.

Luminance is split into ordered buckets, either evenly or from user chosen
levels on a 0-10 value scale, and each bucket is painted with a grey shade
or a user supplied color.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

MAX_LEVEL = 10
NUM_SLOTS = MAX_LEVEL + 1
LEVEL_STEP = 23  # 11 levels span 0..230

_HEX_RE = re.compile(r"[0-9a-fA-F]{6}")

RGB = tuple[int, int, int]


class PosterizeError(Exception):
    """Base error for posterizing."""


class ConfigurationError(PosterizeError):
    """Options that cannot produce a valid set of buckets."""


class InvalidHexError(PosterizeError, ValueError):
    def __init__(self, text: str):
        super().__init__(f"Invalid hex color {text!r}, must be 6 hex characters")
        self.text = text


# Luminance

def luminance(rgb: np.ndarray) -> np.ndarray:
    """sRGB luma (0-255) of an RGB array with the channels on the last axis."""
    rgb_norm = rgb.astype(np.float64) / 255.0
    mask = rgb_norm > 0.04045
    rgb_linear = np.where(mask, ((rgb_norm + 0.055) / 1.055) ** 2.4, rgb_norm / 12.92)

    y = (rgb_linear[..., 0] * 0.2126729
         + rgb_linear[..., 1] * 0.7151522
         + rgb_linear[..., 2] * 0.0721750)

    # Back to sRGB companded luma
    mask = y > 0.0031308
    luma = np.where(mask, 1.055 * np.power(np.clip(y, 0, None), 1 / 2.4) - 0.055, 12.92 * y)

    # Round half away from zero, values are never negative
    return np.clip(np.floor(luma * 255.0 + 0.5), 0, 255).astype(np.uint8)


def pixel_luminance(r: int, g: int, b: int) -> int:
    return int(luminance(np.array([r, g, b], dtype=np.uint8)))


# Thresholds

def luma_threshold(num: int) -> list[int]:
    """Evenly spaced bucket boundaries for `num` steps."""
    if not 1 <= num <= NUM_SLOTS:
        raise ConfigurationError(f"Number of steps must be between 1 and {NUM_SLOTS}, got {num}")
    step = 255 // num
    return [i * step for i in range(num)]


def clamp_levels(values) -> list[int]:
    """Clamp levels to the value scale, then sort and dedupe them."""
    levels = set()
    for val in values:
        if val < 0:
            raise ConfigurationError(f"Value levels cannot be negative, got {val}")
        if val > MAX_LEVEL:
            logger.warning("Maximum value level is %d, %d will be clamped to %d.",
                           MAX_LEVEL, val, MAX_LEVEL)
            val = MAX_LEVEL
        levels.add(val)
    return sorted(levels)


def luma_threshold_custom(values) -> list[int]:
    """Bucket boundaries for user chosen value levels.

    Every one of the 11 slots on the value scale gets the boundary of the
    highest selected level at or below it. Slots below the lowest selection
    belong to the lowest selection, so unselected levels widen the bucket
    of the selected level beneath them.

    >>> luma_threshold_custom([1, 5, 9])
    [23, 23, 23, 23, 23, 115, 115, 115, 115, 207, 207]
    """
    if len(values) > NUM_SLOTS:
        raise ConfigurationError(f"Maximum of {NUM_SLOTS} values allowed, got {len(values)}")
    levels = clamp_levels(values)
    if len(levels) < 2:
        raise ConfigurationError("At least 2 distinct values are needed")

    slots = []
    current = levels[0]
    for i in range(NUM_SLOTS):
        if i in levels:
            current = i
        slots.append(current * LEVEL_STEP)
    return slots


def luma_threshold_keep(boundaries, num: int) -> list[int]:
    """Replace custom boundaries with evenly spaced ones, keeping the grouping."""
    step = 255 // num
    result = []
    counter = 0
    current = boundaries[0]
    for value in boundaries:
        if value != current:
            current = value
            counter += 1
        result.append(counter * step)
    return result


def resolve_bucket(luma: int, boundaries) -> int:
    """Boundary key of the bucket holding `luma`.

    A value above boundary k and at most boundary k+1 belongs to k. Values
    at or below the first boundary belong to the first, values above the
    last belong to the last.
    """
    key = boundaries[0]
    for value in boundaries:
        if luma <= value:
            return key
        key = value
    return key


# Colors

def parse_color(text: str) -> RGB:
    c = text.lstrip("#")
    if not _HEX_RE.fullmatch(c):
        raise InvalidHexError(text)
    return int(c[0:2], 16), int(c[2:4], 16), int(c[4:6], 16)


def format_color(rgb) -> str:
    r, g, b = rgb
    return f"#{r:02x}{g:02x}{b:02x}"


def greyscale_color_map(boundaries) -> dict[int, RGB]:
    """Grey shade per boundary, the brightest bucket is always pure white."""
    distinct = sorted(set(boundaries))
    color_map = {value: (value, value, value) for value in distinct[:-1]}
    color_map[distinct[-1]] = (255, 255, 255)
    return color_map


def even_color_map(colors, boundaries) -> dict[int, RGB]:
    """Pair each evenly split boundary with the color at the same position."""
    return {value: tuple(color) for color, value in zip(colors, boundaries)}


def custom_color_map(colors, boundaries) -> dict[int, RGB]:
    """The Nth distinct boundary takes the Nth color."""
    color_map = {}
    counter = 0
    current = boundaries[0]
    for value in boundaries:
        if value != current:
            current = value
            counter += 1
        if value not in color_map:
            color_map[value] = tuple(colors[counter])
    return color_map


# Planning

@dataclass
class PosterizeConfig:
    num_steps: int = 5
    values: list[int] = field(default_factory=list)
    colors: list[str] = field(default_factory=list)
    keep: bool = False


@dataclass(frozen=True)
class PosterizePlan:
    boundaries: tuple[int, ...]
    color_map: dict[int, RGB]


def _check_count(name: str, items) -> None:
    if len(items) == 1 or len(items) > NUM_SLOTS:
        raise ConfigurationError(
            f"Between 2 and {NUM_SLOTS} {name} are needed, got {len(items)}")


def build_plan(config: PosterizeConfig) -> PosterizePlan:
    """Resolve a configuration into boundaries and their colors."""
    values = list(config.values)
    _check_count("values", values)
    _check_count("colors", config.colors)
    colors = [parse_color(c) for c in config.colors]

    if not values:
        if not colors:
            boundaries = luma_threshold(config.num_steps)
            color_map = greyscale_color_map(boundaries)
        else:
            boundaries = luma_threshold(len(colors))
            color_map = even_color_map(colors, boundaries)
    else:
        if colors and len(values) != len(colors):
            raise ConfigurationError(
                f"Number of values and colors do not match ({len(values)} values, {len(colors)} colors)")
        boundaries = luma_threshold_custom(values)
        if config.keep:
            boundaries = luma_threshold_keep(boundaries, len(set(boundaries)))
        if colors:
            color_map = custom_color_map(colors, boundaries)
        else:
            color_map = greyscale_color_map(boundaries)

    logger.debug("Boundaries: %s", boundaries)
    return PosterizePlan(tuple(boundaries), color_map)


# Remapping

def build_lookup_table(plan: PosterizePlan) -> np.ndarray:
    """Output color for every possible luma value, shape (256, 3)."""
    table = np.zeros((256, 3), dtype=np.uint8)
    for luma in range(256):
        table[luma] = plan.color_map[resolve_bucket(luma, plan.boundaries)]
    return table


def posterize_array(arr: np.ndarray, plan: PosterizePlan) -> np.ndarray:
    """Overwrite an (H, W, 3) uint8 array with its bucket colors, in place."""
    table = build_lookup_table(plan)
    arr[...] = table[luminance(arr)]
    return arr


def posterize_image(img: Image.Image, plan: PosterizePlan) -> Image.Image:
    arr = np.array(img.convert("RGB"))
    posterize_array(arr, plan)
    return Image.fromarray(arr)
