"""Shared building-targeting and rendering stages for layer processors."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from solarlayers.config import ProcessingSettings, VisualizationSettings
from solarlayers.errors import (
    EmptyMaskError,
    MissingGeoBoundsError,
    MissingRequiredInputError,
    RenderError,
)
from solarlayers.layers.types import LayerInputs, LayerOptions, Visualization
from solarlayers.raster.crop import adjust_bounds, crop_to_building
from solarlayers.raster.locate import locate_building
from solarlayers.raster.models import BuildingBoundary, GeoBounds, validate_location
from solarlayers.raster.resample import match_mask
from solarlayers.render.image import (
    fit_dimensions,
    placeholder_image,
    render_data_url,
    render_false_color,
    scale_image,
)
from solarlayers.render.palettes import get_palette

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetedRaster:
    """Bands isolated to the target building."""

    bands: np.ndarray
    raw_bands: np.ndarray
    mask: np.ndarray
    building_boundary: BuildingBoundary
    bounds: GeoBounds
    full_bounds: GeoBounds
    original_width: int
    original_height: int


def target_building(
    inputs: LayerInputs,
    *,
    processing: ProcessingSettings,
    margin_px: int,
    crop: bool = True,
    mask_source: np.ndarray | None = None,
) -> TargetedRaster:
    """Locate the target building and crop/mask every band of ``inputs.data``.

    ``mask_source`` overrides ``inputs.mask`` (the mask layer is its own mask).
    """
    if inputs.target is None:
        raise MissingRequiredInputError("A target location is required to isolate the building")
    validate_location(inputs.target.latitude, inputs.target.longitude)
    data = inputs.data
    if mask_source is None:
        if inputs.mask is None:
            raise MissingRequiredInputError("A mask raster is required to isolate the building")
        mask_source = inputs.mask.band(0)
    if data.geo_bounds is None:
        raise MissingGeoBoundsError("Raster has no geographic bounds")

    threshold = processing.mask_threshold
    mask = match_mask(mask_source, data.width, data.height)
    if not np.any(mask > threshold):
        raise EmptyMaskError("Mask raster contains no building pixels")

    located = locate_building(
        mask,
        data.geo_bounds,
        inputs.target,
        margin_px=margin_px,
        threshold=threshold,
        connectivity=processing.connectivity,
    )
    window = located
    if not crop:
        window = BuildingBoundary(0, 0, data.width - 1, data.height - 1)
    result = crop_to_building(
        data.bands,
        mask,
        window,
        threshold=threshold,
        nodata=processing.no_data_value,
    )
    return TargetedRaster(
        bands=result.bands,
        raw_bands=result.raw_bands,
        mask=result.mask,
        building_boundary=located,
        bounds=adjust_bounds(data.geo_bounds, data.width, data.height, window),
        full_bounds=data.geo_bounds,
        original_width=data.width,
        original_height=data.height,
    )


def margin_for(options: LayerOptions, visualization: VisualizationSettings) -> int:
    """Return the crop margin from options, falling back to the configured default."""
    if options.margin_px is not None:
        return options.margin_px
    return visualization.building_margin


def output_dimensions(
    width: int,
    height: int,
    options: LayerOptions,
    visualization: VisualizationSettings,
) -> tuple[int, int]:
    """Return display dimensions honouring configured and requested limits."""
    return fit_dimensions(
        width,
        height,
        max_dimension=visualization.max_dimension,
        max_width=options.max_width,
        max_height=options.max_height,
    )


def placeholder(width: int, height: int, error: str | None = None) -> Visualization:
    """Return a flat placeholder visualization."""
    return Visualization(
        data_url=render_data_url(placeholder_image(width, height)),
        width=max(1, width),
        height=max(1, height),
        placeholder=True,
        error=error,
    )


def encode_rgba(
    rgba: np.ndarray,
    options: LayerOptions,
    visualization: VisualizationSettings,
) -> tuple[str, int, int]:
    """Scale an RGBA image to display size and return (data_url, width, height)."""
    height, width = rgba.shape[:2]
    out_width, out_height = output_dimensions(width, height, options, visualization)
    scaled = scale_image(rgba, out_width, out_height)
    return render_data_url(scaled), out_width, out_height


def render_band(
    band: np.ndarray,
    palette_name: str,
    *,
    min_value: float,
    max_value: float,
    options: LayerOptions,
    visualization: VisualizationSettings,
    nodata: float | None,
    scale: float = 1.0,
) -> tuple[str, int, int]:
    """Render one band through a named palette and encode it for display."""
    palette = get_palette(palette_name, visualization.palette_size)
    rgba = render_false_color(
        band,
        palette,
        min_value=min_value,
        max_value=max_value,
        use_alpha=options.use_alpha,
        nodata=nodata,
        scale=scale,
    )
    return encode_rgba(rgba, options, visualization)


def safe_visualization(
    layer_name: str,
    width: int,
    height: int,
    render: Callable[[], Visualization],
) -> Visualization:
    """Run a render callback, substituting a placeholder when rendering fails."""
    try:
        return render()
    except (RenderError, ValueError) as exc:
        LOGGER.warning(
            "Rendering failed, using placeholder: %s",
            exc,
            extra={"layer": layer_name},
        )
        return placeholder(width, height, error=str(exc))
