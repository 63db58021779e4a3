"""Per-layer processing and visualization."""

from solarlayers.layers.types import (
    SEASONAL_FACTORS,
    LayerInputs,
    LayerOptions,
    LayerType,
    ProcessedLayer,
    Visualization,
    get_seasonal_factor,
    hour_label,
)

__all__ = [
    "SEASONAL_FACTORS",
    "LayerInputs",
    "LayerOptions",
    "LayerType",
    "ProcessedLayer",
    "Visualization",
    "get_seasonal_factor",
    "hour_label",
]
