"""Deterministic procedural roof images used when real data is unavailable."""

from __future__ import annotations

import math

import numpy as np
from rasterio import features

from solarlayers.raster.models import Location

DEFAULT_SEED = 12345
ROOF_ALPHA = 0.9


class _SeededRandom:
    """Location-seeded sequence of values in [0, 1)."""

    def __init__(self, location: Location | None) -> None:
        seed = 0.0
        if location is not None:
            seed = abs(location.latitude * 1000 + location.longitude * 1000)
        self._seed = seed or DEFAULT_SEED
        self._counter = 0

    def next(self) -> float:
        self._counter += 1
        value = math.sin(self._seed + self._counter) * 10000
        return value - math.floor(value)

    def randint(self, low: int, high: int) -> int:
        """Return an integer in [low, high]."""
        return low + int(self.next() * (high - low + 1))


def _roof_polygon(
    rng: _SeededRandom,
    width: int,
    height: int,
) -> list[tuple[float, float]]:
    cx, cy = width / 2.0, height / 2.0
    half_w, half_h = width * 0.45, height * 0.45
    roof_type = rng.randint(1, 3)
    if roof_type == 1:
        return [
            (cx - half_w, cy - half_h),
            (cx + half_w, cy - half_h),
            (cx + half_w, cy + half_h),
            (cx - half_w, cy + half_h),
        ]
    if roof_type == 2:
        notch_x = cx + half_w * (0.2 + rng.next() * 0.4) - half_w * 0.5
        notch_y = cy - half_h * (0.2 + rng.next() * 0.4) + half_h * 0.5
        return [
            (cx - half_w, cy - half_h),
            (notch_x, cy - half_h),
            (notch_x, notch_y),
            (cx + half_w, notch_y),
            (cx + half_w, cy + half_h),
            (cx - half_w, cy + half_h),
        ]
    sides = rng.randint(5, 8)
    points = []
    for index in range(sides):
        angle = 2 * math.pi * index / sides
        radius = 0.7 + rng.next() * 0.3
        points.append(
            (cx + math.cos(angle) * half_w * radius, cy + math.sin(angle) * half_h * radius)
        )
    return points


def _rasterize(points: list[tuple[float, float]], width: int, height: int) -> np.ndarray:
    ring = [list(point) for point in points] + [list(points[0])]
    geometry = {"type": "Polygon", "coordinates": [ring]}
    burned = features.rasterize(
        [(geometry, 1)],
        out_shape=(height, width),
        fill=0,
        dtype="uint8",
    )
    return burned.astype(bool)


def _blend(canvas: np.ndarray, color: np.ndarray, alpha: np.ndarray) -> None:
    weight = alpha[..., np.newaxis]
    canvas[...] = canvas * (1.0 - weight) + color * weight


def _edges(mask: np.ndarray) -> np.ndarray:
    padded = np.pad(mask, 1, constant_values=False)
    interior = (
        padded[1:-1, 1:-1]
        & padded[:-2, 1:-1]
        & padded[2:, 1:-1]
        & padded[1:-1, :-2]
        & padded[1:-1, 2:]
    )
    return mask & ~interior


def synthetic_image(
    width: int,
    height: int,
    palette: np.ndarray,
    *,
    seasonal_factor: float = 1.0,
    location: Location | None = None,
) -> np.ndarray:
    """Return an (h, w, 4) RGBA image of a procedural roof."""
    width = max(1, int(width))
    height = max(1, int(height))
    rng = _SeededRandom(location)
    last = palette.shape[0] - 1
    roof = _rasterize(_roof_polygon(rng, width, height), width, height)

    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    cx, cy = width / 2.0, height / 2.0
    distance = np.hypot(xs - cx, ys - cy) / max(1.0, math.hypot(cx, cy))

    base = palette[last // 2].astype(np.float64)
    canvas = np.empty((height, width, 3), dtype=np.float64)
    canvas[...] = base * (1.0 - 0.3 * distance)[..., np.newaxis]

    segments = rng.randint(2, 5)
    edges = np.linspace(0, width, segments + 1)
    for index in range(segments):
        intensity = 0.5 + rng.next() * 0.5 * seasonal_factor
        color = palette[min(last, int(intensity * last))].astype(np.float64)
        band = (xs >= edges[index]) & (xs < edges[index + 1])
        _blend(canvas, color, np.where(band, 0.35, 0.0))

    size_scale = min(width, height) / 400.0
    for _ in range(rng.randint(3, 7)):
        hx = rng.next() * width
        hy = rng.next() * height
        radius = max(1.0, (30 + rng.next() * 70) * size_scale)
        intensity = 0.7 + rng.next() * 0.3 * seasonal_factor
        color = palette[min(last, int(intensity * last))].astype(np.float64)
        falloff = np.clip(1.0 - np.hypot(xs - hx, ys - hy) / radius, 0.0, 1.0)
        _blend(canvas, color, falloff * 0.6)

    spacing = rng.randint(10, 24)
    grid = (xs.astype(np.intp) % spacing == 0) | (ys.astype(np.intp) % spacing == 0)
    white = np.array([255.0, 255.0, 255.0])
    _blend(canvas, white, np.where(grid, 0.15, 0.0))
    _blend(canvas, white, np.where(_edges(roof), 0.4, 0.0))

    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[..., :3] = np.clip(np.floor(canvas + 0.5), 0, 255).astype(np.uint8)
    rgba[..., 3] = np.where(roof, int(round(ROOF_ALPHA * 255)), 0).astype(np.uint8)
    rgba[~roof, :3] = 0
    return rgba
