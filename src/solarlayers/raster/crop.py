"""Cropping, masking, and bounds adjustment for building isolation."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from solarlayers.raster.models import NO_DATA_VALUE, BuildingBoundary, GeoBounds


@dataclass(frozen=True)
class CropResult:
    """Bands cropped to a building boundary."""

    bands: np.ndarray
    raw_bands: np.ndarray
    mask: np.ndarray
    width: int
    height: int


def _check_boundary(boundary: BuildingBoundary, width: int, height: int) -> None:
    if not boundary.fits(width, height):
        raise ValueError(
            f"Boundary [{boundary.min_x}..{boundary.max_x}]x[{boundary.min_y}..{boundary.max_y}] "
            f"outside {width}x{height} raster"
        )


def crop(raster: np.ndarray, boundary: BuildingBoundary) -> np.ndarray:
    """Copy the boundary window out of a 2-D array."""
    height, width = raster.shape
    _check_boundary(boundary, width, height)
    return raster[boundary.min_y : boundary.max_y + 1, boundary.min_x : boundary.max_x + 1].copy()


def crop_bands(bands: np.ndarray, boundary: BuildingBoundary) -> np.ndarray:
    """Copy the boundary window out of every band of a (count, h, w) array."""
    _, height, width = bands.shape
    _check_boundary(boundary, width, height)
    return bands[
        :, boundary.min_y : boundary.max_y + 1, boundary.min_x : boundary.max_x + 1
    ].copy()


def apply_mask(
    data: np.ndarray,
    mask: np.ndarray,
    *,
    threshold: float = 0.0,
    nodata: float = NO_DATA_VALUE,
) -> np.ndarray:
    """Return a float copy of data with non-building pixels set to nodata."""
    if data.shape[-2:] != mask.shape:
        raise ValueError(f"Mask shape {mask.shape} does not match data shape {data.shape}")
    masked = data.astype(np.float64, copy=True)
    outside = mask <= threshold
    if masked.ndim == 3:
        masked[:, outside] = nodata
    else:
        masked[outside] = nodata
    return masked


def crop_to_building(
    bands: np.ndarray,
    mask: np.ndarray,
    boundary: BuildingBoundary,
    *,
    threshold: float = 0.0,
    nodata: float = NO_DATA_VALUE,
    masked: bool = True,
) -> CropResult:
    """Crop bands and mask to the boundary and mask out non-building pixels."""
    raw = crop_bands(bands, boundary)
    cropped_mask = crop(mask, boundary)
    out = apply_mask(raw, cropped_mask, threshold=threshold, nodata=nodata) if masked else raw
    return CropResult(
        bands=out,
        raw_bands=raw,
        mask=cropped_mask,
        width=boundary.width,
        height=boundary.height,
    )


def _lerp(start: float, stop: float, t: float) -> float:
    return (1.0 - t) * start + t * stop


def adjust_bounds(
    bounds: GeoBounds,
    width: int,
    height: int,
    boundary: BuildingBoundary,
) -> GeoBounds:
    """Return the geographic extent of a pixel window, row 0 at the north edge."""
    _check_boundary(boundary, width, height)
    return GeoBounds(
        north=_lerp(bounds.north, bounds.south, boundary.min_y / height),
        south=_lerp(bounds.north, bounds.south, (boundary.max_y + 1) / height),
        east=_lerp(bounds.west, bounds.east, (boundary.max_x + 1) / width),
        west=_lerp(bounds.west, bounds.east, boundary.min_x / width),
    )
