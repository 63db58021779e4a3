"""Aerial RGB imagery layer."""

from __future__ import annotations

import numpy as np

from solarlayers.config import SolarLayersConfig
from solarlayers.errors import InvalidBandCountError
from solarlayers.layers.targeting import (
    encode_rgba,
    margin_for,
    output_dimensions,
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
from solarlayers.raster.models import DataRange
from solarlayers.render.image import render_rgb

RGB_BANDS = 3


def process(
    inputs: LayerInputs,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> ProcessedLayer:
    """Crop the three color channels to the target building."""
    if inputs.data.count != RGB_BANDS:
        raise InvalidBandCountError(
            f"RGB raster must have exactly {RGB_BANDS} bands, got {inputs.data.count}"
        )
    processing = config.processing
    targeted = target_building(
        inputs,
        processing=processing,
        margin_px=margin_for(options, config.visualization),
        crop=options.crop_to_building,
    )
    channels = np.clip(targeted.raw_bands.astype(np.float64), 0, 255)
    building_pixels = int(np.count_nonzero(targeted.mask > processing.mask_threshold))
    return ProcessedLayer(
        layer_type=LayerType.RGB,
        rasters=channels,
        data_range=DataRange(min=0.0, max=255.0, valid_count=building_pixels),
        bounds=targeted.bounds,
        full_bounds=targeted.full_bounds,
        building_boundary=targeted.building_boundary,
        mask_raster=targeted.mask,
        original_width=targeted.original_width,
        original_height=targeted.original_height,
        target=inputs.target,
        statistics={
            "building_pixels": building_pixels,
            "mean_color": [
                float(channel[targeted.mask > processing.mask_threshold].mean())
                if building_pixels
                else None
                for channel in channels
            ],
        },
        metadata=dict(inputs.metadata),
    )


def visualize(
    layer: ProcessedLayer,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> Visualization:
    """Composite RGB with alpha from the building mask."""
    width, height = output_dimensions(layer.width, layer.height, options, config.visualization)

    def render() -> Visualization:
        mask = layer.mask_raster if options.use_alpha else None
        rgba = render_rgb(
            layer.rasters[0],
            layer.rasters[1],
            layer.rasters[2],
            mask,
            threshold=config.processing.mask_threshold,
        )
        data_url, out_w, out_h = encode_rgba(rgba, options, config.visualization)
        return Visualization(data_url=data_url, width=out_w, height=out_h)

    return safe_visualization(LayerType.RGB.value, width, height, render)
