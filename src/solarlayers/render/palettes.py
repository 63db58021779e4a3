"""Named color palettes and palette interpolation."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

DEFAULT_PALETTE_SIZE = 256

PALETTES: dict[str, tuple[str, ...]] = {
    "IRON": (
        "00000a",
        "120d30",
        "251356",
        "38197c",
        "4b2079",
        "5e2876",
        "713072",
        "83376e",
        "96406a",
        "a84866",
        "bb5062",
        "cf595e",
        "e2615a",
        "f66b4d",
        "ff7e3c",
        "ff932a",
        "ffa813",
        "ffbf00",
        "ffd700",
        "fff0bf",
        "fffff6",
    ),
    "BINARY": ("212121", "B3E5FC"),
    "RAINBOW": ("3949AB", "81D4FA", "66BB6A", "FFE082", "E53935"),
    "SUNLIGHT": ("212121", "FFCA28"),
    "PANELS": ("E8EAF6", "1A237E"),
}


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    """Parse a ``RRGGBB`` or ``#RRGGBB`` string into an RGB triple."""
    text = value.strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid hex color: {value!r}")
    try:
        return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)
    except ValueError as exc:
        raise ValueError(f"Invalid hex color: {value!r}") from exc


def rgb_to_hex(red: int, green: int, blue: int) -> str:
    """Format an RGB triple as ``#rrggbb`` with channels clamped to [0, 255]."""
    channels = [max(0, min(255, int(round(value)))) for value in (red, green, blue)]
    return "#" + "".join(f"{value:02x}" for value in channels)


def build_palette(
    control_colors: Sequence[str],
    size: int = DEFAULT_PALETTE_SIZE,
) -> np.ndarray:
    """Interpolate control colors into a (size, 3) uint8 palette."""
    if len(control_colors) < 2:
        raise ValueError("A palette needs at least two control colors")
    if size < 2:
        raise ValueError(f"Palette size must be >= 2, got {size}")
    controls = np.array([hex_to_rgb(color) for color in control_colors], dtype=np.float64)
    last = len(controls) - 1
    position = np.arange(size, dtype=np.float64) * (last / (size - 1))
    lower = np.floor(position).astype(np.intp)
    upper = np.minimum(np.ceil(position).astype(np.intp), last)
    fraction = (position - lower)[:, np.newaxis]
    colors = controls[lower] + (controls[upper] - controls[lower]) * fraction
    return np.floor(colors + 0.5).astype(np.uint8)


def get_palette(name: str, size: int = DEFAULT_PALETTE_SIZE) -> np.ndarray:
    """Return a named palette interpolated to ``size`` entries."""
    key = name.upper()
    if key not in PALETTES:
        raise ValueError(f"Unknown palette: {name}")
    return build_palette(PALETTES[key], size)


def css_gradient(name: str, *, direction: str = "to right") -> str:
    """Return a CSS linear-gradient for a named palette (legend helper)."""
    key = name.upper()
    if key not in PALETTES:
        raise ValueError(f"Unknown palette: {name}")
    colors = PALETTES[key]
    stops = []
    for index, color in enumerate(colors):
        percent = index / (len(colors) - 1) * 100
        stops.append(f"#{color.lower()} {_format_percent(percent)}%")
    return f"linear-gradient({direction}, {', '.join(stops)})"


def _format_percent(value: float) -> str:
    if math.isclose(value, round(value)):
        return str(int(round(value)))
    return f"{value:.2f}".rstrip("0").rstrip(".")
