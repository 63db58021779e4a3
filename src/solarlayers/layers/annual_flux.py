"""Annual solar flux layer (kWh/kW/year)."""

from __future__ import annotations

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
from solarlayers.raster.models import DataRange
from solarlayers.raster.stats import compute_statistics, data_range, percentile_range

PALETTE = "IRON"
DISPLAY_MIN = 0.0
DISPLAY_MAX = 1800.0


def process(
    inputs: LayerInputs,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> ProcessedLayer:
    """Crop flux to the target building.

    The data range carries the 5th/95th percentiles of valid pixels while the
    effective display range stays fixed at 0..1800.
    """
    if inputs.data.count < 1:
        raise InvalidBandCountError("Annual flux raster has no bands")
    processing = config.processing
    targeted = target_building(
        inputs,
        processing=processing,
        margin_px=margin_for(options, config.visualization),
        crop=options.crop_to_building,
    )
    flux = targeted.bands[0]
    nodata = processing.no_data_value
    observed = data_range(flux, nodata=nodata, default=(DISPLAY_MIN, DISPLAY_MAX))
    low, high = percentile_range(flux, nodata=nodata) or (DISPLAY_MIN, DISPLAY_MAX)
    statistics = compute_statistics(flux, nodata=nodata).to_dict()
    return ProcessedLayer(
        layer_type=LayerType.ANNUAL_FLUX,
        rasters=targeted.bands[:1],
        data_range=DataRange(
            min=low,
            max=high,
            valid_count=observed.valid_count,
            abs_min=observed.min,
            abs_max=observed.max,
            effective_min=DISPLAY_MIN,
            effective_max=DISPLAY_MAX,
        ),
        bounds=targeted.bounds,
        full_bounds=targeted.full_bounds,
        building_boundary=targeted.building_boundary,
        mask_raster=targeted.mask,
        original_width=targeted.original_width,
        original_height=targeted.original_height,
        target=inputs.target,
        statistics=statistics,
        metadata=dict(inputs.metadata),
    )


def visualize(
    layer: ProcessedLayer,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> Visualization:
    """Render flux over the fixed 0..1800 display range."""
    width, height = output_dimensions(layer.width, layer.height, options, config.visualization)
    span = layer.data_range
    low = DISPLAY_MIN if span.effective_min is None else span.effective_min
    high = DISPLAY_MAX if span.effective_max is None else span.effective_max

    def render() -> Visualization:
        data_url, out_w, out_h = render_band(
            layer.rasters[0],
            PALETTE,
            min_value=low,
            max_value=high,
            options=options,
            visualization=config.visualization,
            nodata=config.processing.no_data_value,
        )
        return Visualization(data_url=data_url, width=out_w, height=out_h)

    return safe_visualization(LayerType.ANNUAL_FLUX.value, width, height, render)
