"""Nearest-neighbour and bilinear raster resampling."""

from __future__ import annotations

import logging

import numpy as np
from rasterio.enums import Resampling

from solarlayers.raster.models import NO_DATA_VALUE

LOGGER = logging.getLogger(__name__)

SUPPORTED_METHODS = (Resampling.nearest, Resampling.bilinear)


def _resampling(method: str | Resampling) -> Resampling:
    """Return the rasterio resampling enum for a method name."""
    if isinstance(method, Resampling):
        resolved = method
    else:
        try:
            resolved = Resampling[str(method).lower()]
        except KeyError as exc:
            raise ValueError(f"Unknown resampling method: {method}") from exc
    if resolved not in SUPPORTED_METHODS:
        raise ValueError(f"Unsupported resampling method: {resolved.name}")
    return resolved


def _check_dimensions(dst_width: int, dst_height: int) -> None:
    if dst_width <= 0 or dst_height <= 0:
        raise ValueError(f"Target dimensions must be positive, got {dst_width}x{dst_height}")


def _nearest(raster: np.ndarray, dst_width: int, dst_height: int) -> np.ndarray:
    src_height, src_width = raster.shape
    cols = np.minimum(np.arange(dst_width) * src_width // dst_width, src_width - 1)
    rows = np.minimum(np.arange(dst_height) * src_height // dst_height, src_height - 1)
    return raster[np.ix_(rows, cols)].copy()


def _bilinear(
    raster: np.ndarray,
    dst_width: int,
    dst_height: int,
    nodata: float | None,
) -> np.ndarray:
    src_height, src_width = raster.shape
    src = raster.astype(np.float64, copy=False)
    sx = np.arange(dst_width, dtype=np.float64) * (src_width / dst_width)
    sy = np.arange(dst_height, dtype=np.float64) * (src_height / dst_height)
    x0 = np.minimum(np.floor(sx).astype(np.intp), src_width - 1)
    y0 = np.minimum(np.floor(sy).astype(np.intp), src_height - 1)
    x1 = np.minimum(x0 + 1, src_width - 1)
    y1 = np.minimum(y0 + 1, src_height - 1)
    fx = (sx - x0)[np.newaxis, :]
    fy = (sy - y0)[:, np.newaxis]

    top_left = src[np.ix_(y0, x0)]
    top_right = src[np.ix_(y0, x1)]
    bottom_left = src[np.ix_(y1, x0)]
    bottom_right = src[np.ix_(y1, x1)]

    top = top_left * (1.0 - fx) + top_right * fx
    bottom = bottom_left * (1.0 - fx) + bottom_right * fx
    out = top * (1.0 - fy) + bottom * fy
    if nodata is not None:
        invalid = (
            (top_left == nodata)
            | (top_right == nodata)
            | (bottom_left == nodata)
            | (bottom_right == nodata)
        )
        out[invalid] = nodata
    return out


def resample(
    raster: np.ndarray,
    dst_width: int,
    dst_height: int,
    *,
    method: str | Resampling = "bilinear",
    nodata: float | None = NO_DATA_VALUE,
) -> np.ndarray:
    """Resample a 2-D array to (dst_height, dst_width)."""
    if raster.ndim != 2:
        raise ValueError(f"resample expects a 2-D array, got shape {raster.shape}")
    _check_dimensions(dst_width, dst_height)
    resolved = _resampling(method)
    if resolved is Resampling.nearest:
        return _nearest(raster, dst_width, dst_height)
    return _bilinear(raster, dst_width, dst_height, nodata)


def resample_bands(
    bands: np.ndarray,
    dst_width: int,
    dst_height: int,
    *,
    method: str | Resampling = "bilinear",
    nodata: float | None = NO_DATA_VALUE,
) -> np.ndarray:
    """Resample every band of a (count, height, width) array."""
    if bands.ndim != 3:
        raise ValueError(f"resample_bands expects a 3-D array, got shape {bands.shape}")
    return np.stack(
        [
            resample(band, dst_width, dst_height, method=method, nodata=nodata)
            for band in bands
        ]
    )


def match_mask(mask: np.ndarray, width: int, height: int) -> np.ndarray:
    """Return the mask on a width x height grid, resampling with nearest if needed."""
    if mask.shape == (height, width):
        return mask
    LOGGER.info(
        "Resampling mask from %sx%s to %sx%s",
        mask.shape[1],
        mask.shape[0],
        width,
        height,
    )
    return resample(mask, width, height, method=Resampling.nearest)
