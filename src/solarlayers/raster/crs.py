"""CRS helpers for expressing raster extents as WGS84 geographic bounds."""

from __future__ import annotations

from functools import lru_cache
from typing import Tuple

from pyproj import CRS, Transformer

from solarlayers.raster.models import GeoBounds

Bounds = Tuple[float, float, float, float]

WGS84 = "EPSG:4326"


def normalize_crs(value: str | CRS) -> CRS:
    """Normalize CRS input into a pyproj CRS object."""
    return CRS.from_user_input(value)


@lru_cache(maxsize=32)
def _transformer(src: str, dst: str) -> Transformer:
    return Transformer.from_crs(normalize_crs(src), normalize_crs(dst), always_xy=True)


def transformer(src: str | CRS, dst: str | CRS) -> Transformer:
    """Return a lon/lat-ordered transformer; string CRS pairs are cached."""
    if isinstance(src, str) and isinstance(dst, str):
        return _transformer(src, dst)
    return Transformer.from_crs(normalize_crs(src), normalize_crs(dst), always_xy=True)


def is_wgs84(value: str | CRS) -> bool:
    """Return True when the CRS is geographic WGS84."""
    return normalize_crs(value) == normalize_crs(WGS84)


def _edge_points(bounds: Bounds, densify_pts: int) -> tuple[list[float], list[float]]:
    """Return points along the bounds perimeter (corners when densify_pts is 0)."""
    minx, miny, maxx, maxy = bounds
    if densify_pts <= 0:
        return [minx, minx, maxx, maxx], [miny, maxy, miny, maxy]
    steps = densify_pts + 2
    xs: list[float] = []
    ys: list[float] = []
    for index in range(steps):
        t = index / (steps - 1)
        x = minx + (maxx - minx) * t
        y = miny + (maxy - miny) * t
        xs.extend([x, x, minx, maxx])
        ys.extend([miny, maxy, y, y])
    return xs, ys


def transform_bounds(
    bounds: Bounds,
    src: str | CRS,
    dst: str | CRS = WGS84,
    *,
    densify_pts: int = 0,
) -> Bounds:
    """Transform (minx, miny, maxx, maxy) bounds between CRSs.

    Projected edges are curved in the destination CRS, so ``densify_pts``
    extra points per edge tighten the resulting envelope.
    """
    xs, ys = _edge_points(bounds, densify_pts)
    out_xs, out_ys = transformer(src, dst).transform(xs, ys)
    return (min(out_xs), min(out_ys), max(out_xs), max(out_ys))


def to_geo_bounds(bounds: Bounds, src: str | CRS, *, densify_pts: int = 21) -> GeoBounds:
    """Return native (left, bottom, right, top) bounds as WGS84 GeoBounds."""
    if is_wgs84(src):
        west, south, east, north = bounds
    else:
        west, south, east, north = transform_bounds(bounds, src, WGS84, densify_pts=densify_pts)
    return GeoBounds(north=north, south=south, east=east, west=west)
