"""Exception types raised by the solarlayers pipeline."""

from __future__ import annotations

from typing import Sequence


class SolarLayersError(Exception):
    """Base class for solarlayers failures."""

    pass


class InputValidationError(SolarLayersError, ValueError):
    """Raised when caller-supplied input is malformed."""

    pass


class LocationValidationError(InputValidationError):
    """Raised when a latitude/longitude pair is missing or out of range."""

    pass


class InvalidBandCountError(InputValidationError):
    """Raised when a raster has the wrong number of bands for its layer."""

    pass


class MissingRequiredInputError(InputValidationError):
    """Raised when a layer is processed without a required input."""

    pass


class MissingGeoBoundsError(MissingRequiredInputError):
    """Raised when a raster lacks the geographic bounds needed for targeting."""

    pass


class GeometryError(SolarLayersError):
    """Base class for target/building geometry failures."""

    pass


class OutOfBoundsError(GeometryError):
    """Raised when the target location maps outside the raster."""

    pass


class NoBuildingAtLocationError(GeometryError):
    """Raised when the target pixel is not covered by the building mask."""

    pass


class EmptyMaskError(GeometryError):
    """Raised when the building mask has no positive pixels at all."""

    pass


class GeoRasterDecodeError(SolarLayersError):
    """Raised when a GeoTIFF buffer cannot be decoded."""

    pass


class FetchError(SolarLayersError):
    """Raised when an upstream request fails after all retries."""

    def __init__(self, message: str, *, url: str | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts


class RenderError(SolarLayersError):
    """Raised when a raster cannot be rendered to an image."""

    pass


class UnsupportedLayerError(SolarLayersError, ValueError):
    """Raised for unknown layer type names."""

    pass


class LayerProcessingError(SolarLayersError):
    """Raised when a single layer pipeline fails without fallback."""

    def __init__(self, message: str, *, layer_type: str, operation_id: str) -> None:
        super().__init__(message)
        self.layer_type = layer_type
        self.operation_id = operation_id


class BatchProcessingError(SolarLayersError):
    """Raised when every layer in a batch fails and fallback is disabled."""

    def __init__(self, message: str, *, failures: Sequence[tuple[str, str]]) -> None:
        super().__init__(message)
        self.failures = list(failures)
