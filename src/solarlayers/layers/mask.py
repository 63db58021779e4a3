"""Building mask layer: passthrough plus coverage statistics."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from solarlayers.config import SolarLayersConfig
from solarlayers.errors import InvalidBandCountError
from solarlayers.layers.targeting import (
    margin_for,
    output_dimensions,
    render_band,
    safe_visualization,
    target_building,
)
from solarlayers.layers.types import (
    LayerInputs,
    LayerOptions,
    LayerType,
    ProcessedLayer,
    Visualization,
)
from solarlayers.raster.locate import find_mask_extent
from solarlayers.raster.models import DataRange

LOGGER = logging.getLogger(__name__)

PALETTE = "BINARY"


def mask_coverage(mask: np.ndarray, *, threshold: float = 0.0) -> dict[str, Any]:
    """Return building/non-building pixel counts and value statistics."""
    total = int(mask.size)
    finite = mask[np.isfinite(mask)]
    building = int(np.count_nonzero(finite > threshold))
    return {
        "total_pixels": total,
        "building_pixels": building,
        "non_building_pixels": total - building,
        "building_percentage": (building / total * 100.0) if total else 0.0,
        "min_value": float(finite.min()) if finite.size else None,
        "max_value": float(finite.max()) if finite.size else None,
        "avg_value": float(finite.mean()) if finite.size else None,
    }


def process(
    inputs: LayerInputs,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> ProcessedLayer:
    """Isolate the target building in the mask, or pass the full mask through."""
    data = inputs.data
    if data.count < 1:
        raise InvalidBandCountError("Mask raster has no bands")
    processing = config.processing
    threshold = processing.mask_threshold
    full_mask = data.band(0)
    extent = find_mask_extent(full_mask, threshold=threshold)

    if inputs.target is not None and data.geo_bounds is not None:
        targeted = target_building(
            inputs,
            processing=processing,
            margin_px=margin_for(options, config.visualization),
            crop=options.crop_to_building,
            mask_source=full_mask,
        )
        mask = targeted.raw_bands[0].astype(np.float64)
        boundary = targeted.building_boundary
        bounds = targeted.bounds
    else:
        LOGGER.info(
            "No target location or bounds; returning the full mask",
            extra={"layer": LayerType.MASK.value},
        )
        mask = full_mask.astype(np.float64)
        boundary = None
        bounds = data.geo_bounds

    coverage = mask_coverage(mask, threshold=threshold)
    statistics: dict[str, Any] = dict(coverage)
    statistics["full_coverage"] = mask_coverage(full_mask, threshold=threshold)
    statistics["mask_extent"] = extent.to_dict() if extent else None
    return ProcessedLayer(
        layer_type=LayerType.MASK,
        rasters=mask[np.newaxis, :, :],
        data_range=DataRange(min=0.0, max=1.0, valid_count=coverage["total_pixels"]),
        bounds=bounds,
        full_bounds=data.geo_bounds,
        building_boundary=boundary,
        mask_raster=mask,
        original_width=data.width,
        original_height=data.height,
        target=inputs.target,
        statistics=statistics,
        metadata=dict(inputs.metadata),
    )


def visualize(
    layer: ProcessedLayer,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> Visualization:
    """Render the mask with building pixels highlighted."""
    width, height = output_dimensions(layer.width, layer.height, options, config.visualization)
    threshold = config.processing.mask_threshold

    def render() -> Visualization:
        binary = (layer.rasters[0] > threshold).astype(np.float64)
        data_url, out_w, out_h = render_band(
            binary,
            PALETTE,
            min_value=0.0,
            max_value=1.0,
            options=options,
            visualization=config.visualization,
            nodata=None,
        )
        return Visualization(data_url=data_url, width=out_w, height=out_h)

    return safe_visualization(LayerType.MASK.value, width, height, render)
