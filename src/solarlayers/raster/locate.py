"""Target-building location via connected-component labeling of a building mask."""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import ndimage

from solarlayers.errors import NoBuildingAtLocationError, OutOfBoundsError
from solarlayers.raster.models import (
    BuildingBoundary,
    GeoBounds,
    Location,
    PixelLocation,
)

LOGGER = logging.getLogger(__name__)

_STRUCTURES = {
    4: ndimage.generate_binary_structure(2, 1),
    8: ndimage.generate_binary_structure(2, 2),
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def location_to_pixel(
    location: Location,
    bounds: GeoBounds,
    width: int,
    height: int,
) -> PixelLocation:
    """Map a WGS84 location to (x, y) pixel coordinates, row 0 at the north edge."""
    x = _round_half_up((location.longitude - bounds.west) / bounds.lon_span * width)
    y = _round_half_up((bounds.north - location.latitude) / bounds.lat_span * height)
    if not (0 <= x < width and 0 <= y < height):
        raise OutOfBoundsError(
            f"Location ({location.latitude}, {location.longitude}) maps to pixel "
            f"({x}, {y}) outside {width}x{height} raster"
        )
    return x, y


def pixel_to_location(
    x: int,
    y: int,
    bounds: GeoBounds,
    width: int,
    height: int,
) -> Location:
    """Map the top-left corner of pixel (x, y) back to a WGS84 location."""
    longitude = bounds.west + x / width * bounds.lon_span
    latitude = bounds.north - y / height * bounds.lat_span
    return Location(latitude=latitude, longitude=longitude)


def _component_extent(
    inside: np.ndarray,
    seed: PixelLocation,
    connectivity: int,
) -> tuple[int, int, int, int, int]:
    """Return (min_x, min_y, max_x, max_y, count) of the component holding seed."""
    labeled, _ = ndimage.label(inside, structure=_STRUCTURES[connectivity])
    sx, sy = seed
    rows, cols = np.nonzero(labeled == labeled[sy, sx])
    return int(cols.min()), int(rows.min()), int(cols.max()), int(rows.max()), int(rows.size)


def locate_building(
    mask: np.ndarray,
    bounds: GeoBounds,
    target: Location,
    *,
    margin_px: int = 0,
    threshold: float = 0.0,
    connectivity: int = 4,
) -> BuildingBoundary:
    """Return the bounding box of the mask component under the target location."""
    if margin_px < 0:
        raise ValueError(f"margin_px must be >= 0, got {margin_px}")
    if connectivity not in _STRUCTURES:
        raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")
    if mask.ndim != 2:
        raise ValueError(f"mask must be 2-D, got shape {mask.shape}")
    height, width = mask.shape
    px, py = location_to_pixel(target, bounds, width, height)
    inside = np.asarray(mask > threshold)
    if not inside[py, px]:
        raise NoBuildingAtLocationError(
            f"No building at pixel ({px}, {py}); mask value {mask[py, px]} <= {threshold}"
        )
    min_x, min_y, max_x, max_y, count = _component_extent(inside, (px, py), connectivity)
    LOGGER.debug(
        "Target building at (%s, %s): %s px in [%s..%s]x[%s..%s]",
        px,
        py,
        count,
        min_x,
        max_x,
        min_y,
        max_y,
    )
    return BuildingBoundary(
        min_x=max(0, min_x - margin_px),
        min_y=max(0, min_y - margin_px),
        max_x=min(width - 1, max_x + margin_px),
        max_y=min(height - 1, max_y + margin_px),
        has_building=True,
        is_target_match=True,
        connected_pixel_count=count,
    )


def find_mask_extent(mask: np.ndarray, *, threshold: float = 0.0) -> BuildingBoundary | None:
    """Return the bounding box of every mask-positive pixel, or None when empty."""
    rows, cols = np.nonzero(mask > threshold)
    if rows.size == 0:
        return None
    return BuildingBoundary(
        min_x=int(cols.min()),
        min_y=int(rows.min()),
        max_x=int(cols.max()),
        max_y=int(rows.max()),
        has_building=True,
        is_target_match=False,
        connected_pixel_count=int(rows.size),
    )
