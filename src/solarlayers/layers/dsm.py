"""Digital surface model layer."""

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
from solarlayers.raster.stats import compute_statistics, data_range, elevation_profile

PALETTE = "RAINBOW"
DEFAULT_RANGE = (0.0, 100.0)


def process(
    inputs: LayerInputs,
    options: LayerOptions,
    config: SolarLayersConfig,
) -> ProcessedLayer:
    """Crop elevations to the target building and compute their range."""
    if inputs.data.count < 1:
        raise InvalidBandCountError("DSM raster has no bands")
    processing = config.processing
    targeted = target_building(
        inputs,
        processing=processing,
        margin_px=margin_for(options, config.visualization),
        crop=options.crop_to_building,
    )
    elevation = targeted.bands[0]
    nodata = processing.no_data_value
    stats = compute_statistics(elevation, nodata=nodata)
    statistics = stats.to_dict()
    statistics["elevation_profile"] = {
        str(key): value for key, value in elevation_profile(elevation, nodata=nodata).items()
    }
    return ProcessedLayer(
        layer_type=LayerType.DSM,
        rasters=targeted.bands[:1],
        data_range=data_range(elevation, nodata=nodata, default=DEFAULT_RANGE),
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
    """Render elevations over their true min/max range."""
    width, height = output_dimensions(layer.width, layer.height, options, config.visualization)

    def render() -> Visualization:
        data_url, out_w, out_h = render_band(
            layer.rasters[0],
            PALETTE,
            min_value=layer.data_range.min,
            max_value=layer.data_range.max,
            options=options,
            visualization=config.visualization,
            nodata=config.processing.no_data_value,
        )
        return Visualization(data_url=data_url, width=out_w, height=out_h)

    return safe_visualization(LayerType.DSM.value, width, height, render)
