"""Monthly solar flux layer: twelve bands, one per calendar month."""

from __future__ import annotations

import logging
from typing import Any

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
    MONTH_NAMES,
    LayerInputs,
    LayerOptions,
    LayerType,
    ProcessedLayer,
    Visualization,
    get_seasonal_factor,
)
from solarlayers.raster.stats import compute_statistics, data_range

LOGGER = logging.getLogger(__name__)

PALETTE = "IRON"
EXPECTED_BANDS = 12
DEFAULT_RANGE = (0.0, 200.0)


def _month_summary(month: int, band: Any, nodata: float) -> dict[str, Any]:
    stats = compute_statistics(band, nodata=nodata)
    factor = get_seasonal_factor(month)
    band_range = data_range(band, nodata=nodata, default=DEFAULT_RANGE)
    return {
        "month": month,
        "month_name": MONTH_NAMES[month % 12],
        "data_range": band_range.to_dict(),
        "average": stats.avg,
        "max": stats.max,
        "max_location": (
            {"x": stats.max_location[0], "y": stats.max_location[1]}
            if stats.max_location
            else None
        ),
        "valid_pixels": stats.valid_pixel_count,
        "seasonal_factor": factor,
        "seasonal_adjusted_avg": stats.avg * factor if stats.avg is not None else None,
    }


def process(
    inputs: LayerInputs,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> ProcessedLayer:
    """Crop every month to the target building and summarize each band."""
    count = inputs.data.count
    if count < 1:
        raise InvalidBandCountError("Monthly flux raster has no bands")
    if count != EXPECTED_BANDS:
        LOGGER.warning(
            "Expected %s monthly bands, got %s",
            EXPECTED_BANDS,
            count,
            extra={"layer": LayerType.MONTHLY_FLUX.value},
        )
    processing = config.processing
    targeted = target_building(
        inputs,
        processing=processing,
        margin_px=margin_for(options, config.visualization),
        crop=options.crop_to_building,
    )
    nodata = processing.no_data_value
    months = [
        _month_summary(month, band, nodata) for month, band in enumerate(targeted.bands)
    ]
    averages = [entry["average"] for entry in months if entry["average"] is not None]
    statistics: dict[str, Any] = {
        "months": len(months),
        "annual_total_average": sum(averages) if averages else None,
        "peak_month": (
            max(
                (entry for entry in months if entry["average"] is not None),
                key=lambda entry: entry["average"],
            )["month"]
            if averages
            else None
        ),
    }
    return ProcessedLayer(
        layer_type=LayerType.MONTHLY_FLUX,
        rasters=targeted.bands,
        data_range=data_range(targeted.bands, nodata=nodata, default=DEFAULT_RANGE),
        bounds=targeted.bounds,
        full_bounds=targeted.full_bounds,
        building_boundary=targeted.building_boundary,
        mask_raster=targeted.mask,
        original_width=targeted.original_width,
        original_height=targeted.original_height,
        target=inputs.target,
        statistics=statistics,
        details={"monthly": months},
        metadata=dict(inputs.metadata),
    )


def visualize(
    layer: ProcessedLayer,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> Visualization:
    """Render one image per month, intensity scaled by the seasonal factor unless disabled."""
    width, height = output_dimensions(layer.width, layer.height, options, config.visualization)
    months = layer.details.get("monthly", [])
    if options.month is not None:
        selected = [entry for entry in months if entry["month"] == options.month] or months[:1]
    else:
        selected = list(months)

    def render() -> Visualization:
        images = []
        for entry in selected:
            month = entry["month"]
            band_range = entry["data_range"]
            data_url, out_w, out_h = render_band(
                layer.rasters[month],
                PALETTE,
                min_value=band_range["min"],
                max_value=band_range["max"],
                options=options,
                visualization=config.visualization,
                nodata=config.processing.no_data_value,
                scale=entry["seasonal_factor"] if options.seasonal_adjustment else 1.0,
            )
            images.append(
                {
                    "index": month,
                    "label": entry["month_name"],
                    "data_url": data_url,
                    "width": out_w,
                    "height": out_h,
                }
            )
        if not images:
            raise ValueError("Monthly flux layer has no bands to render")
        return Visualization(
            data_url=images[0]["data_url"],
            width=images[0]["width"],
            height=images[0]["height"],
            images=tuple(images),
        )

    return safe_visualization(LayerType.MONTHLY_FLUX.value, width, height, render)
