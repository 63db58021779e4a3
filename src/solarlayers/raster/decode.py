"""GeoTIFF decoding into in-memory GeoRaster objects."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import rasterio
from rasterio.errors import RasterioError
from rasterio.io import MemoryFile

from solarlayers.errors import GeoRasterDecodeError
from solarlayers.raster.crs import to_geo_bounds
from solarlayers.raster.models import GeoBounds, GeoRaster

LOGGER = logging.getLogger(__name__)

BOUNDS_DENSIFY_POINTS = 21


def _geo_bounds(dataset: Any) -> GeoBounds | None:
    """Return dataset bounds in WGS84, or None when it is not georeferenced."""
    if not dataset.crs:
        return None
    bounds = dataset.bounds
    native = (bounds.left, bounds.bottom, bounds.right, bounds.top)
    try:
        return to_geo_bounds(native, dataset.crs.to_wkt(), densify_pts=BOUNDS_DENSIFY_POINTS)
    except ValueError as exc:
        raise GeoRasterDecodeError(f"Raster has degenerate bounds: {exc}") from exc


def _read_dataset(dataset: Any) -> GeoRaster:
    bands = dataset.read()
    crs = dataset.crs.to_string() if dataset.crs else None
    raster = GeoRaster(
        bands=bands,
        geo_bounds=_geo_bounds(dataset),
        nodata=dataset.nodata,
        crs=crs,
    )
    LOGGER.debug(
        "Decoded GeoTIFF %sx%s with %s band(s) (%s)",
        raster.width,
        raster.height,
        raster.count,
        raster.dtype,
    )
    return raster


def decode_geotiff(buffer: bytes | bytearray | memoryview | None) -> GeoRaster:
    """Decode a GeoTIFF byte buffer into a GeoRaster."""
    if not buffer:
        raise GeoRasterDecodeError("GeoTIFF buffer is empty")
    try:
        with MemoryFile(bytes(buffer)) as memfile:
            with memfile.open() as dataset:
                return _read_dataset(dataset)
    except RasterioError as exc:
        raise GeoRasterDecodeError(f"Unable to decode GeoTIFF: {exc}") from exc


def read_geotiff(path: Path) -> GeoRaster:
    """Decode a GeoTIFF file on disk into a GeoRaster."""
    try:
        with rasterio.open(path) as dataset:
            return _read_dataset(dataset)
    except RasterioError as exc:
        raise GeoRasterDecodeError(f"Unable to read GeoTIFF {path}: {exc}") from exc
