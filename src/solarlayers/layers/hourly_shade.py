"""Hourly shade layer: 24 bands of per-day sun-visibility bit fields."""

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
    hour_label,
)
from solarlayers.raster.crop import apply_mask
from solarlayers.raster.models import DataRange

LOGGER = logging.getLogger(__name__)

PALETTE = "SUNLIGHT"
EXPECTED_BANDS = 24


def extract_day_bits(bands: np.ndarray, day: int) -> np.ndarray:
    """Return 1 where the sun is visible on ``day`` (1-31), else 0."""
    if not 1 <= day <= 31:
        raise ValueError(f"day must be in [1, 31], got {day}")
    bit = np.int64(1) << np.int64(day - 1)
    values = np.nan_to_num(bands, nan=0.0).astype(np.int64)
    return ((values & bit) != 0).astype(np.uint8)


def process(
    inputs: LayerInputs,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> ProcessedLayer:
    """Crop to the target building and decode sun visibility for one day."""
    count = inputs.data.count
    if count < 1:
        raise InvalidBandCountError("Hourly shade raster has no bands")
    if count != EXPECTED_BANDS:
        LOGGER.warning(
            "Expected %s hourly bands, got %s",
            EXPECTED_BANDS,
            count,
            extra={"layer": LayerType.HOURLY_SHADE.value},
        )
    processing = config.processing
    targeted = target_building(
        inputs,
        processing=processing,
        margin_px=margin_for(options, config.visualization),
        crop=options.crop_to_building,
    )
    bits = extract_day_bits(targeted.raw_bands, options.day)
    shade = apply_mask(
        bits,
        targeted.mask,
        threshold=processing.mask_threshold,
        nodata=processing.no_data_value,
    )
    building = targeted.mask > processing.mask_threshold
    building_pixels = int(np.count_nonzero(building))
    hours: list[dict[str, Any]] = []
    for hour in range(shade.shape[0]):
        sunny = int(np.count_nonzero(bits[hour][building]))
        hours.append(
            {
                "hour": hour,
                "hour_label": hour_label(hour),
                "sun_visible_pixels": sunny,
                "shaded_pixels": building_pixels - sunny,
                "sun_percentage": (sunny / building_pixels * 100.0) if building_pixels else 0.0,
            }
        )
    month = options.month if options.month is not None else 0
    return ProcessedLayer(
        layer_type=LayerType.HOURLY_SHADE,
        rasters=shade,
        data_range=DataRange(min=0.0, max=1.0, valid_count=building_pixels),
        bounds=targeted.bounds,
        full_bounds=targeted.full_bounds,
        building_boundary=targeted.building_boundary,
        mask_raster=targeted.mask,
        original_width=targeted.original_width,
        original_height=targeted.original_height,
        target=inputs.target,
        statistics={
            "day": options.day,
            "month": month,
            "building_pixels": building_pixels,
            "sunniest_hour": max(hours, key=lambda entry: entry["sun_visible_pixels"])["hour"]
            if hours
            else None,
        },
        details={"hourly": hours},
        metadata=dict(inputs.metadata),
    )


def visualize(
    layer: ProcessedLayer,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> Visualization:
    """Render sun (bright) versus shade (dark) for each hour."""
    width, height = output_dimensions(layer.width, layer.height, options, config.visualization)
    hours = layer.details.get("hourly", [])
    if options.hour is not None:
        selected = [entry for entry in hours if entry["hour"] == options.hour] or hours[:1]
    else:
        selected = list(hours)

    def render() -> Visualization:
        images = []
        for entry in selected:
            data_url, out_w, out_h = render_band(
                layer.rasters[entry["hour"]],
                PALETTE,
                min_value=0.0,
                max_value=1.0,
                options=options,
                visualization=config.visualization,
                nodata=config.processing.no_data_value,
            )
            images.append(
                {
                    "index": entry["hour"],
                    "label": entry["hour_label"],
                    "data_url": data_url,
                    "width": out_w,
                    "height": out_h,
                }
            )
        if not images:
            raise ValueError("Hourly shade layer has no bands to render")
        return Visualization(
            data_url=images[0]["data_url"],
            width=images[0]["width"],
            height=images[0]["height"],
            images=tuple(images),
        )

    return safe_visualization(LayerType.HOURLY_SHADE.value, width, height, render)
