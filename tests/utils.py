from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np
import rasterio
from rasterio.io import MemoryFile
from rasterio.transform import from_bounds

# (west, south, east, north)
TILE_BOUNDS = (-122.0, 37.0, -121.99, 37.01)


def _profile(
    data: np.ndarray,
    bounds: Tuple[float, float, float, float],
    crs: str | None,
    nodata: float | None,
) -> dict:
    count, height, width = data.shape
    profile = {
        "driver": "GTiff",
        "height": height,
        "width": width,
        "count": count,
        "dtype": data.dtype,
        "nodata": nodata,
    }
    if crs is not None:
        profile["crs"] = crs
        profile["transform"] = from_bounds(*bounds, width=width, height=height)
    return profile


def _as_bands(data: np.ndarray) -> np.ndarray:
    return data[np.newaxis, :, :] if data.ndim == 2 else data


def write_raster(
    path: Path,
    data: np.ndarray,
    *,
    bounds: Tuple[float, float, float, float] = TILE_BOUNDS,
    crs: str | None = "EPSG:4326",
    nodata: float | None = None,
) -> None:
    bands = _as_bands(data)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **_profile(bands, bounds, crs, nodata)) as dataset:
        dataset.write(bands)


def geotiff_bytes(
    data: np.ndarray,
    *,
    bounds: Tuple[float, float, float, float] = TILE_BOUNDS,
    crs: str | None = "EPSG:4326",
    nodata: float | None = None,
) -> bytes:
    bands = _as_bands(data)
    with MemoryFile() as memfile:
        with memfile.open(**_profile(bands, bounds, crs, nodata)) as dataset:
            dataset.write(bands)
        return memfile.read()


def disk_mask(size: int = 200, radius: float = 30.0) -> np.ndarray:
    """Return a size x size uint8 mask with a centered filled disk."""
    ys, xs = np.mgrid[0:size, 0:size]
    center = size / 2.0
    inside = (xs + 0.5 - center) ** 2 + (ys + 0.5 - center) ** 2 <= radius**2
    return inside.astype(np.uint8)


def two_building_mask(width: int = 40, height: int = 20) -> np.ndarray:
    """Return a mask with two separated rectangles: x 2..9 and x 20..35, rows 4..13."""
    mask = np.zeros((height, width), dtype=np.uint8)
    mask[4:14, 2:10] = 1
    mask[4:14, 20:36] = 1
    return mask


def pixel_center(x: int, y: int, width: int, height: int, bounds=TILE_BOUNDS) -> tuple[float, float]:
    """Return (lat, lon) for a point that maps to pixel (x, y)."""
    west, south, east, north = bounds
    lon = west + (x + 0.25) / width * (east - west)
    lat = north - (y + 0.25) / height * (north - south)
    return lat, lon
