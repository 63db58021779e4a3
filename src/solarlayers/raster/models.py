"""Data models shared by the raster pipeline stages."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np

from solarlayers.errors import LocationValidationError

NO_DATA_VALUE = -9999.0

PixelLocation = Tuple[int, int]


@dataclass(frozen=True)
class Location:
    """WGS84 latitude/longitude pair."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        validate_location(self.latitude, self.longitude)

    @classmethod
    def from_dict(cls, data: Any) -> "Location":
        if not isinstance(data, dict):
            raise LocationValidationError("Location must be a mapping with latitude/longitude")
        lat = data.get("latitude", data.get("lat"))
        lon = data.get("longitude", data.get("lng", data.get("lon")))
        return cls(latitude=lat, longitude=lon)

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


def validate_location(latitude: Any, longitude: Any) -> None:
    """Raise LocationValidationError unless lat/lon are finite and in range."""
    for name, value in (("latitude", latitude), ("longitude", longitude)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise LocationValidationError(f"{name} must be a number, got {value!r}")
        if not math.isfinite(value):
            raise LocationValidationError(f"{name} must be finite, got {value!r}")
    if not -90 <= latitude <= 90:
        raise LocationValidationError(f"latitude {latitude} outside [-90, 90]")
    if not -180 <= longitude <= 180:
        raise LocationValidationError(f"longitude {longitude} outside [-180, 180]")


@dataclass(frozen=True)
class GeoBounds:
    """Geographic extent of a raster in WGS84 degrees."""

    north: float
    south: float
    east: float
    west: float

    def __post_init__(self) -> None:
        if not self.north > self.south:
            raise ValueError(f"north ({self.north}) must be greater than south ({self.south})")
        if not self.east > self.west:
            raise ValueError(f"east ({self.east}) must be greater than west ({self.west})")

    @property
    def lat_span(self) -> float:
        return self.north - self.south

    @property
    def lon_span(self) -> float:
        return self.east - self.west

    def contains(self, location: Location) -> bool:
        """Return True when the location falls inside the bounds."""
        return (
            self.south <= location.latitude <= self.north
            and self.west <= location.longitude <= self.east
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "north": self.north,
            "south": self.south,
            "east": self.east,
            "west": self.west,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeoBounds":
        return cls(
            north=float(data["north"]),
            south=float(data["south"]),
            east=float(data["east"]),
            west=float(data["west"]),
        )


@dataclass(frozen=True)
class GeoRaster:
    """Decoded raster bands with their geographic extent.

    ``bands`` is shaped ``(count, height, width)`` and is read-only.
    """

    bands: np.ndarray
    geo_bounds: GeoBounds | None = None
    nodata: float | None = None
    crs: str | None = None

    def __post_init__(self) -> None:
        if self.bands.ndim == 2:
            object.__setattr__(self, "bands", self.bands[np.newaxis, :, :])
        if self.bands.ndim != 3:
            raise ValueError(f"bands must be 2-D or 3-D, got shape {self.bands.shape}")
        if self.bands.flags.writeable:
            frozen = self.bands.copy()
            frozen.setflags(write=False)
            object.__setattr__(self, "bands", frozen)

    @property
    def count(self) -> int:
        return int(self.bands.shape[0])

    @property
    def height(self) -> int:
        return int(self.bands.shape[1])

    @property
    def width(self) -> int:
        return int(self.bands.shape[2])

    @property
    def dtype(self) -> str:
        return str(self.bands.dtype)

    def band(self, index: int) -> np.ndarray:
        """Return a single band by zero-based index."""
        return self.bands[index]


@dataclass(frozen=True)
class BuildingBoundary:
    """Inclusive pixel rectangle enclosing the target building."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int
    has_building: bool = True
    is_target_match: bool = True
    connected_pixel_count: int = 0

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    def fits(self, width: int, height: int) -> bool:
        """Return True when the rectangle lies inside a width x height raster."""
        return (
            0 <= self.min_x <= self.max_x < width
            and 0 <= self.min_y <= self.max_y < height
        )

    def relative(self) -> dict[str, int]:
        """Return the rectangle in cropped-image coordinates plus source offsets."""
        return {
            "min_x": 0,
            "min_y": 0,
            "max_x": self.width - 1,
            "max_y": self.height - 1,
            "width": self.width,
            "height": self.height,
            "original_min_x": self.min_x,
            "original_min_y": self.min_y,
            "original_max_x": self.max_x,
            "original_max_y": self.max_y,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "min_x": self.min_x,
            "min_y": self.min_y,
            "max_x": self.max_x,
            "max_y": self.max_y,
            "width": self.width,
            "height": self.height,
            "has_building": self.has_building,
            "is_target_match": self.is_target_match,
            "connected_pixel_count": self.connected_pixel_count,
        }


@dataclass(frozen=True)
class DataRange:
    """Value range of the valid pixels in a raster."""

    min: float
    max: float
    valid_count: int = 0
    abs_min: float | None = None
    abs_max: float | None = None
    effective_min: float | None = None
    effective_max: float | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "min": self.min,
            "max": self.max,
            "valid_count": self.valid_count,
        }
        for key in ("abs_min", "abs_max", "effective_min", "effective_max"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class RasterStatistics:
    """Summary statistics over the valid pixels of a band."""

    min: float | None
    max: float | None
    avg: float | None
    valid_pixel_count: int
    total_value: float = 0.0
    max_location: PixelLocation | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
            "valid_pixel_count": self.valid_pixel_count,
            "total_value": self.total_value,
            "max_location": (
                {"x": self.max_location[0], "y": self.max_location[1]}
                if self.max_location is not None
                else None
            ),
        }
