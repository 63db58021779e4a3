"""Static dispatch table from layer type to fetch/process/visualize handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from solarlayers.config import SolarLayersConfig
from solarlayers.errors import FetchError, MissingRequiredInputError
from solarlayers.layers import annual_flux, dsm, hourly_shade, mask, monthly_flux, rgb
from solarlayers.layers.types import (
    LayerInputs,
    LayerOptions,
    LayerType,
    ProcessedLayer,
    Visualization,
)
from solarlayers.provider import DataLayersResponse, RawLayer
from solarlayers.raster.models import Location

LOGGER = logging.getLogger(__name__)


class LayerSource(Protocol):
    """Upstream provider of data-layer URLs and GeoTIFF downloads."""

    def get_data_layers(
        self,
        location: Location,
        *,
        radius_meters: float | None = None,
        quality: str | None = None,
    ) -> DataLayersResponse:
        ...

    def download(self, url: str) -> bytes:
        ...


Fetcher = Callable[[LayerSource, DataLayersResponse, LayerOptions], RawLayer]
Processor = Callable[[LayerInputs, LayerOptions, SolarLayersConfig], ProcessedLayer]
Visualizer = Callable[[ProcessedLayer, LayerOptions, SolarLayersConfig], Visualization]


@dataclass(frozen=True)
class LayerHandler:
    """Fetch, process, and visualize functions for one layer type."""

    layer_type: LayerType
    fetch: Fetcher
    process: Processor
    visualize: Visualizer
    palette: str


def _download_mask(
    source: LayerSource,
    response: DataLayersResponse,
    layer: LayerType,
) -> bytes | None:
    """Download the building mask; failures are logged and yield None."""
    if not response.mask_url:
        LOGGER.warning("No mask URL in response", extra={"layer": layer.value})
        return None
    try:
        return source.download(response.mask_url)
    except FetchError as exc:
        LOGGER.warning("Mask download failed: %s", exc, extra={"layer": layer.value})
        return None


def _single_url_fetcher(layer: LayerType, attribute: str) -> Fetcher:
    def fetch(
        source: LayerSource,
        response: DataLayersResponse,
        options: LayerOptions,
    ) -> RawLayer:
        url = getattr(response, attribute)
        if not url:
            raise MissingRequiredInputError(f"No {layer.value} URL available for this location")
        data = source.download(url)
        return RawLayer(
            data=data,
            mask=_download_mask(source, response, layer),
            metadata=response.imagery_metadata(),
        )

    return fetch


def fetch_mask(
    source: LayerSource,
    response: DataLayersResponse,
    options: LayerOptions,
) -> RawLayer:
    """Download the mask GeoTIFF, which doubles as its own building mask."""
    if not response.mask_url:
        raise MissingRequiredInputError("No mask URL available for this location")
    return RawLayer(data=source.download(response.mask_url), metadata=response.imagery_metadata())


def fetch_hourly_shade(
    source: LayerSource,
    response: DataLayersResponse,
    options: LayerOptions,
) -> RawLayer:
    """Download the hourly shade GeoTIFF for the requested month (default January)."""
    month = options.month if options.month is not None else 0
    urls = response.hourly_shade_urls
    if not 0 <= month < len(urls):
        raise MissingRequiredInputError(
            f"Hourly shade month {month} unavailable ({len(urls)} month URL(s) returned)"
        )
    metadata = dict(response.imagery_metadata())
    metadata["month"] = month
    return RawLayer(
        data=source.download(urls[month]),
        mask=_download_mask(source, response, LayerType.HOURLY_SHADE),
        metadata=metadata,
    )


LAYER_HANDLERS: dict[LayerType, LayerHandler] = {
    LayerType.MASK: LayerHandler(
        LayerType.MASK,
        fetch_mask,
        mask.process,
        mask.visualize,
        mask.PALETTE,
    ),
    LayerType.DSM: LayerHandler(
        LayerType.DSM,
        _single_url_fetcher(LayerType.DSM, "dsm_url"),
        dsm.process,
        dsm.visualize,
        dsm.PALETTE,
    ),
    LayerType.RGB: LayerHandler(
        LayerType.RGB,
        _single_url_fetcher(LayerType.RGB, "rgb_url"),
        rgb.process,
        rgb.visualize,
        "RAINBOW",
    ),
    LayerType.ANNUAL_FLUX: LayerHandler(
        LayerType.ANNUAL_FLUX,
        _single_url_fetcher(LayerType.ANNUAL_FLUX, "annual_flux_url"),
        annual_flux.process,
        annual_flux.visualize,
        annual_flux.PALETTE,
    ),
    LayerType.MONTHLY_FLUX: LayerHandler(
        LayerType.MONTHLY_FLUX,
        _single_url_fetcher(LayerType.MONTHLY_FLUX, "monthly_flux_url"),
        monthly_flux.process,
        monthly_flux.visualize,
        monthly_flux.PALETTE,
    ),
    LayerType.HOURLY_SHADE: LayerHandler(
        LayerType.HOURLY_SHADE,
        fetch_hourly_shade,
        hourly_shade.process,
        hourly_shade.visualize,
        hourly_shade.PALETTE,
    ),
}


def get_handler(layer_type: str | LayerType) -> LayerHandler:
    """Return the handler for a layer type name."""
    return LAYER_HANDLERS[LayerType.parse(layer_type)]


def list_layer_types() -> list[str]:
    """Return the supported layer type names."""
    return [layer.value for layer in LAYER_HANDLERS]
