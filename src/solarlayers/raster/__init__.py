"""Raster decoding, targeting, and compositing helpers."""

from solarlayers.raster.crop import (
    CropResult,
    adjust_bounds,
    apply_mask,
    crop,
    crop_bands,
    crop_to_building,
)
from solarlayers.raster.decode import decode_geotiff, read_geotiff
from solarlayers.raster.locate import (
    find_mask_extent,
    locate_building,
    location_to_pixel,
    pixel_to_location,
)
from solarlayers.raster.models import (
    NO_DATA_VALUE,
    BuildingBoundary,
    DataRange,
    GeoBounds,
    GeoRaster,
    Location,
    RasterStatistics,
)
from solarlayers.raster.resample import match_mask, resample, resample_bands
from solarlayers.raster.stats import compute_statistics, data_range, percentile_range, valid_mask

__all__ = [
    "BuildingBoundary",
    "CropResult",
    "DataRange",
    "GeoBounds",
    "GeoRaster",
    "Location",
    "NO_DATA_VALUE",
    "RasterStatistics",
    "adjust_bounds",
    "apply_mask",
    "compute_statistics",
    "crop",
    "crop_bands",
    "crop_to_building",
    "data_range",
    "decode_geotiff",
    "find_mask_extent",
    "locate_building",
    "location_to_pixel",
    "match_mask",
    "percentile_range",
    "pixel_to_location",
    "read_geotiff",
    "resample",
    "resample_bands",
    "valid_mask",
]
