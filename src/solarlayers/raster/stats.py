"""Statistics over the valid (non no-data) pixels of a raster."""

from __future__ import annotations

import math

import numpy as np

from solarlayers.raster.models import NO_DATA_VALUE, DataRange, RasterStatistics


def valid_mask(data: np.ndarray, nodata: float | None = NO_DATA_VALUE) -> np.ndarray:
    """Return a boolean mask of finite pixels that are not nodata."""
    mask = np.isfinite(data)
    if nodata is not None and not math.isnan(nodata):
        mask &= data != nodata
    return mask


def data_range(
    data: np.ndarray,
    *,
    nodata: float | None = NO_DATA_VALUE,
    default: tuple[float, float] = (0.0, 1.0),
) -> DataRange:
    """Return the min/max of the valid pixels, or ``default`` when there are none."""
    values = data[valid_mask(data, nodata)]
    if values.size == 0:
        return DataRange(min=default[0], max=default[1], valid_count=0)
    return DataRange(min=float(values.min()), max=float(values.max()), valid_count=int(values.size))


def percentile_range(
    data: np.ndarray,
    *,
    low: float = 0.05,
    high: float = 0.95,
    nodata: float | None = NO_DATA_VALUE,
) -> tuple[float, float] | None:
    """Return the low/high percentile values by sorted index, or None when empty."""
    values = np.sort(data[valid_mask(data, nodata)], axis=None)
    count = values.size
    if count == 0:
        return None
    low_index = min(count - 1, int(math.floor(count * low)))
    high_index = min(count - 1, int(math.floor(count * high)))
    return float(values[low_index]), float(values[high_index])


def compute_statistics(
    data: np.ndarray,
    *,
    nodata: float | None = NO_DATA_VALUE,
) -> RasterStatistics:
    """Return min/max/avg/total and the location of the maximum valid pixel."""
    valid = valid_mask(data, nodata)
    count = int(valid.sum())
    if count == 0:
        return RasterStatistics(min=None, max=None, avg=None, valid_pixel_count=0)
    values = data[valid].astype(np.float64)
    masked = np.where(valid, data, -np.inf)
    row, col = np.unravel_index(int(np.argmax(masked)), data.shape)
    total = float(values.sum())
    return RasterStatistics(
        min=float(values.min()),
        max=float(values.max()),
        avg=total / count,
        valid_pixel_count=count,
        total_value=total,
        max_location=(int(col), int(row)),
    )


def elevation_profile(
    data: np.ndarray,
    *,
    nodata: float | None = NO_DATA_VALUE,
) -> dict[int, int]:
    """Return a histogram of valid values rounded to whole units."""
    values = data[valid_mask(data, nodata)]
    if values.size == 0:
        return {}
    rounded = np.floor(values.astype(np.float64) + 0.5).astype(np.int64)
    keys, counts = np.unique(rounded, return_counts=True)
    return {int(key): int(count) for key, count in zip(keys, counts)}
