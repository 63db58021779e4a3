"""Layer identifiers, options, and processed-layer containers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

import numpy as np

from solarlayers.errors import InputValidationError, UnsupportedLayerError
from solarlayers.raster.models import (
    BuildingBoundary,
    DataRange,
    GeoBounds,
    GeoRaster,
    Location,
)


class LayerType(str, Enum):
    """Closed set of data layers served by the upstream API."""

    MASK = "mask"
    DSM = "dsm"
    RGB = "rgb"
    ANNUAL_FLUX = "annualFlux"
    MONTHLY_FLUX = "monthlyFlux"
    HOURLY_SHADE = "hourlyShade"

    @classmethod
    def parse(cls, value: "str | LayerType") -> "LayerType":
        """Return the LayerType for a name, raising UnsupportedLayerError otherwise."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value or member.value.lower() == str(value).lower():
                return member
        raise UnsupportedLayerError(f"Unsupported layer type: {value}")


SEASONAL_FACTORS = (0.4, 0.5, 0.65, 0.8, 0.9, 1.0, 1.0, 0.9, 0.8, 0.65, 0.5, 0.4)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def get_seasonal_factor(month: int) -> float:
    """Return the display intensity factor for a zero-based month (wraps modulo 12)."""
    return SEASONAL_FACTORS[month % 12]


def hour_label(hour: int) -> str:
    """Return a 12-hour clock label such as ``12am`` or ``3pm``."""
    hour = hour % 24
    suffix = "am" if hour < 12 else "pm"
    display = hour % 12 or 12
    return f"{display}{suffix}"


@dataclass(frozen=True)
class LayerOptions:
    """Per-request processing and rendering options."""

    radius_meters: float | None = None
    quality: str | None = None
    month: int | None = None
    day: int = 15
    hour: int | None = None
    margin_px: int | None = None
    crop_to_building: bool = True
    use_alpha: bool = True
    max_width: int | None = None
    max_height: int | None = None
    fallback_to_synthetic: bool | None = None
    include_rasters: bool = False
    seasonal_adjustment: bool = True

    def __post_init__(self) -> None:
        if self.month is not None and not 0 <= self.month <= 11:
            raise InputValidationError(f"month must be in [0, 11], got {self.month}")
        if not 1 <= self.day <= 31:
            raise InputValidationError(f"day must be in [1, 31], got {self.day}")
        if self.hour is not None and not 0 <= self.hour <= 23:
            raise InputValidationError(f"hour must be in [0, 23], got {self.hour}")
        if self.margin_px is not None and self.margin_px < 0:
            raise InputValidationError(f"margin_px must be >= 0, got {self.margin_px}")
        if self.quality is not None and self.quality.upper() not in ("LOW", "MEDIUM", "HIGH"):
            raise InputValidationError(f"quality must be LOW, MEDIUM or HIGH, got {self.quality}")

    def cache_fields(self) -> dict[str, Any]:
        """Return the option values that change a layer result."""
        return {
            "radius_meters": self.radius_meters,
            "quality": self.quality,
            "month": self.month,
            "day": self.day,
            "hour": self.hour,
            "margin_px": self.margin_px,
            "crop_to_building": self.crop_to_building,
            "use_alpha": self.use_alpha,
            "max_width": self.max_width,
            "max_height": self.max_height,
            "seasonal_adjustment": self.seasonal_adjustment,
        }


@dataclass(frozen=True)
class LayerInputs:
    """Decoded rasters and context handed to a layer processor."""

    data: GeoRaster
    mask: GeoRaster | None = None
    target: Location | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessedLayer:
    """Output of a layer processor, ready for visualization."""

    layer_type: LayerType
    rasters: np.ndarray
    data_range: DataRange
    bounds: GeoBounds | None
    full_bounds: GeoBounds | None
    building_boundary: BuildingBoundary | None
    mask_raster: np.ndarray | None
    original_width: int
    original_height: int
    target: Location | None = None
    statistics: dict[str, Any] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return int(self.rasters.shape[-1])

    @property
    def height(self) -> int:
        return int(self.rasters.shape[-2])

    def summary(self) -> dict[str, Any]:
        """Return JSON-friendly metadata describing the processed layer."""
        payload: dict[str, Any] = {
            "dimensions": {
                "width": self.width,
                "height": self.height,
                "original_width": self.original_width,
                "original_height": self.original_height,
            },
            "data_range": self.data_range.to_dict(),
            "target_location": self.target.to_dict() if self.target else None,
            "target_building_detected": bool(
                self.building_boundary and self.building_boundary.is_target_match
            ),
            "band_count": int(self.rasters.shape[0]),
        }
        for key, value in self.metadata.items():
            payload.setdefault(key, value)
        return payload


@dataclass(frozen=True)
class Visualization:
    """Rendered PNG output for a layer."""

    data_url: str
    width: int
    height: int
    placeholder: bool = False
    error: str | None = None
    images: tuple[dict[str, Any], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "data_url": self.data_url,
            "width": self.width,
            "height": self.height,
            "placeholder": self.placeholder,
        }
        if self.error:
            payload["error"] = self.error
        if self.images:
            payload["images"] = [dict(image) for image in self.images]
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Visualization":
        return cls(
            data_url=str(data["data_url"]),
            width=int(data["width"]),
            height=int(data["height"]),
            placeholder=bool(data.get("placeholder", False)),
            error=data.get("error"),
            images=tuple(dict(image) for image in data.get("images", [])),
        )
