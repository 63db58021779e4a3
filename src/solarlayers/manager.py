"""Layer orchestration: fetch, decode, process, visualize, cache, and fan-out."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, cast

import numpy as np

from solarlayers.cache import JsonFileCache, LayerCache, cache_key
from solarlayers.config import SolarLayersConfig
from solarlayers.contracts import validate_layer_result
from solarlayers.errors import (
    BatchProcessingError,
    LayerProcessingError,
    SolarLayersError,
    UnsupportedLayerError,
)
from solarlayers.layers.registry import LayerSource, get_handler
from solarlayers.layers.types import (
    LayerInputs,
    LayerOptions,
    LayerType,
    ProcessedLayer,
    Visualization,
    get_seasonal_factor,
)
from solarlayers.provider import DataLayersResponse, RawLayer, SolarApiClient
from solarlayers.raster.decode import decode_geotiff
from solarlayers.raster.models import GeoRaster, Location
from solarlayers.render.image import fit_dimensions, render_data_url
from solarlayers.render.palettes import get_palette
from solarlayers.render.synthetic import synthetic_image

LOGGER = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _operation_id() -> str:
    return uuid.uuid4().hex[:12]


def coerce_location(value: Location | Mapping[str, Any]) -> Location:
    """Return a validated Location from a Location or mapping."""
    if isinstance(value, Location):
        return value
    return Location.from_dict(dict(value))


def _finite_list(values: np.ndarray) -> list[Any]:
    """Return nested lists with non-finite values replaced by None."""
    values = values.astype(np.float64)
    return np.where(np.isfinite(values), values, None).tolist()


@dataclass(frozen=True)
class LayerResult:
    """Serializable outcome of one layer pipeline."""

    layer_type: LayerType
    location: Location
    metadata: dict[str, Any]
    visualization: Visualization
    building_boundary: dict[str, Any] | None = None
    relative_boundary: dict[str, Any] | None = None
    bounds: dict[str, float] | None = None
    full_bounds: dict[str, float] | None = None
    statistics: dict[str, Any] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)
    synthetic: bool = False
    error: str | None = None
    cached: bool = False
    processed: ProcessedLayer | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_processed(
        cls,
        processed: ProcessedLayer,
        location: Location,
        visualization: Visualization,
        metadata: Mapping[str, Any],
    ) -> "LayerResult":
        boundary = processed.building_boundary
        summary = processed.summary()
        summary.update(metadata)
        return cls(
            layer_type=processed.layer_type,
            location=location,
            metadata=summary,
            visualization=visualization,
            building_boundary=boundary.to_dict() if boundary else None,
            relative_boundary=boundary.relative() if boundary else None,
            bounds=processed.bounds.to_dict() if processed.bounds else None,
            full_bounds=processed.full_bounds.to_dict() if processed.full_bounds else None,
            statistics=dict(processed.statistics),
            details=dict(processed.details),
            processed=processed,
        )

    def to_dict(self, *, include_rasters: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "layer_type": self.layer_type.value,
            "location": self.location.to_dict(),
            "metadata": self.metadata,
            "building_boundary": self.building_boundary,
            "relative_boundary": self.relative_boundary,
            "bounds": self.bounds,
            "full_bounds": self.full_bounds,
            "statistics": self.statistics,
            "details": self.details,
            "visualization": self.visualization.to_dict(),
            "synthetic": self.synthetic,
            "error": self.error,
        }
        if include_rasters and self.processed is not None:
            payload["rasters"] = _finite_list(self.processed.rasters)
            if self.processed.mask_raster is not None:
                payload["mask_raster"] = _finite_list(self.processed.mask_raster)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, cached: bool = False) -> "LayerResult":
        return cls(
            layer_type=LayerType.parse(data["layer_type"]),
            location=Location.from_dict(dict(data["location"])),
            metadata=dict(data.get("metadata") or {}),
            visualization=Visualization.from_dict(data["visualization"]),
            building_boundary=data.get("building_boundary"),
            relative_boundary=data.get("relative_boundary"),
            bounds=data.get("bounds"),
            full_bounds=data.get("full_bounds"),
            statistics=dict(data.get("statistics") or {}),
            details=dict(data.get("details") or {}),
            synthetic=bool(data.get("synthetic", False)),
            error=data.get("error"),
            cached=cached,
        )


@dataclass(frozen=True)
class BatchResult:
    """Results of a multi-layer request."""

    layers: dict[str, LayerResult]
    errors: dict[str, str]
    all_synthetic: bool
    metadata: dict[str, Any]

    def to_dict(self, *, include_rasters: bool = False) -> dict[str, Any]:
        return {
            "layers": {
                name: result.to_dict(include_rasters=include_rasters)
                for name, result in self.layers.items()
            },
            "errors": dict(self.errors),
            "all_synthetic": self.all_synthetic,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class LayerWorkResult:
    """Per-layer pipeline output or failure."""

    layer_type: LayerType
    result: LayerResult | None
    error: str | None


def _run_layer_jobs(
    layers: list[LayerType],
    max_workers: int,
    worker: Callable[[LayerType], LayerResult],
) -> list[LayerWorkResult]:
    """Run per-layer workers serially or via a thread pool."""
    results: dict[LayerType, LayerWorkResult] = {}
    if max_workers <= 1 or len(layers) <= 1:
        for layer in layers:
            try:
                results[layer] = LayerWorkResult(layer, worker(layer), None)
            except Exception as exc:
                results[layer] = LayerWorkResult(layer, None, str(exc))
        return [results[layer] for layer in layers]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_map = {executor.submit(worker, layer): layer for layer in layers}
        for future, layer in future_map.items():
            try:
                results[layer] = LayerWorkResult(layer, future.result(), None)
            except Exception as exc:
                results[layer] = LayerWorkResult(layer, None, str(exc))
    return [results[layer] for layer in layers]


class _SharedResponse:
    """Fetch the data-layer response once and share it across worker threads."""

    def __init__(self, fetch: Callable[[], DataLayersResponse]) -> None:
        self._fetch = fetch
        self._lock = threading.Lock()
        self._response: DataLayersResponse | None = None
        self._error: Exception | None = None

    def __call__(self) -> DataLayersResponse:
        with self._lock:
            if self._response is None and self._error is None:
                try:
                    self._response = self._fetch()
                except SolarLayersError as exc:
                    self._error = exc
            if self._error is not None:
                raise self._error
            return cast(DataLayersResponse, self._response)


class LayerManager:
    """Run layer pipelines against an upstream source with optional caching."""

    def __init__(
        self,
        config: SolarLayersConfig,
        source: LayerSource | None = None,
        *,
        cache: LayerCache | None = None,
    ) -> None:
        self.config = config
        self.source = source
        self.cache = cache

    @classmethod
    def from_config(
        cls,
        config: SolarLayersConfig,
        *,
        api_key: str | None = None,
    ) -> "LayerManager":
        """Build a manager backed by the Solar API and the configured file cache."""
        cache: LayerCache | None = None
        if config.cache.enabled:
            directory = config.cache.directory or Path.home() / ".cache" / "solarlayers"
            cache = JsonFileCache(directory, expiration_seconds=config.cache.expiration_seconds)
        return cls(config, SolarApiClient(config.api, api_key=api_key), cache=cache)

    def _data_layers(self, location: Location, options: LayerOptions) -> DataLayersResponse:
        if self.source is None:
            raise SolarLayersError("No upstream source configured")
        return self.source.get_data_layers(
            location,
            radius_meters=options.radius_meters,
            quality=options.quality,
        )

    def _cache_get(self, key: str) -> LayerResult | None:
        if self.cache is None:
            return None
        try:
            payload = self.cache.get(key)
            if payload is None:
                return None
            return LayerResult.from_dict(payload, cached=True)
        except (OSError, KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Cache read failed for %s: %s", key, exc)
            return None

    def _cache_put(self, key: str, result: LayerResult) -> None:
        if self.cache is None:
            return
        try:
            payload = result.to_dict(include_rasters=self.config.cache.store_rasters)
            self.cache.put(key, payload)
        except (OSError, TypeError, ValueError) as exc:
            LOGGER.warning("Cache write failed for %s: %s", key, exc)

    def decode(self, raw: RawLayer, location: Location) -> LayerInputs:
        """Decode fetched GeoTIFF buffers into processor inputs."""
        data = decode_geotiff(raw.data)
        mask = decode_geotiff(raw.mask) if raw.mask else None
        return LayerInputs(data=data, mask=mask, target=location, metadata=dict(raw.metadata))

    def process_rasters(
        self,
        layer_type: str | LayerType,
        inputs: LayerInputs,
        options: LayerOptions | None = None,
    ) -> LayerResult:
        """Process and visualize already-decoded rasters (no fetch, no cache)."""
        options = options or LayerOptions()
        handler = get_handler(layer_type)
        if inputs.target is None:
            raise SolarLayersError("A target location is required")
        start = time.perf_counter()
        processed = handler.process(inputs, options, self.config)
        visualization = handler.visualize(processed, options, self.config)
        return LayerResult.from_processed(
            processed,
            inputs.target,
            visualization,
            {
                "generated_at": _timestamp(),
                "processing_time": round(time.perf_counter() - start, 4),
            },
        )

    def process_local(
        self,
        layer_type: str | LayerType,
        data: GeoRaster,
        location: Location | Mapping[str, Any],
        *,
        mask: GeoRaster | None = None,
        options: LayerOptions | None = None,
    ) -> LayerResult:
        """Process local rasters for a location."""
        target = coerce_location(location)
        inputs = LayerInputs(data=data, mask=mask, target=target)
        return self.process_rasters(layer_type, inputs, options)

    def synthetic_result(
        self,
        layer_type: str | LayerType,
        location: Location,
        options: LayerOptions | None = None,
        *,
        error: str | None = None,
    ) -> LayerResult:
        """Return a procedurally generated stand-in for a layer."""
        options = options or LayerOptions()
        handler = get_handler(layer_type)
        settings = self.config.visualization
        width, height = fit_dimensions(
            settings.max_dimension,
            settings.max_dimension,
            max_width=options.max_width,
            max_height=options.max_height,
        )
        factor = 1.0
        if handler.layer_type is LayerType.MONTHLY_FLUX and options.month is not None:
            factor = get_seasonal_factor(options.month)
        rgba = synthetic_image(
            width,
            height,
            get_palette(handler.palette, settings.palette_size),
            seasonal_factor=factor,
            location=location,
        )
        return LayerResult(
            layer_type=handler.layer_type,
            location=location,
            metadata={
                "dimensions": {
                    "width": width,
                    "height": height,
                    "original_width": width,
                    "original_height": height,
                },
                "data_range": {"min": 0.0, "max": 1.0, "valid_count": 0},
                "target_location": location.to_dict(),
                "target_building_detected": False,
                "generated_at": _timestamp(),
                "seasonal_factor": factor,
            },
            visualization=Visualization(
                data_url=render_data_url(rgba),
                width=width,
                height=height,
            ),
            synthetic=True,
            error=error,
        )

    def _run(
        self,
        layer: LayerType,
        location: Location,
        options: LayerOptions,
        *,
        fallback: bool,
        operation_id: str,
        response: Callable[[], DataLayersResponse],
    ) -> LayerResult:
        extra = {"layer": layer.value, "operation_id": operation_id}
        key = cache_key(self.config.cache.prefix, layer.value, location, options.cache_fields())
        cached = self._cache_get(key)
        if cached is not None:
            LOGGER.info("Cache hit", extra=extra)
            return cached

        handler = get_handler(layer)
        start = time.perf_counter()
        try:
            raw = handler.fetch(self.source, response(), options)
            inputs = self.decode(raw, location)
            processed = handler.process(inputs, options, self.config)
        except (SolarLayersError, ValueError) as exc:
            if fallback:
                LOGGER.warning("Falling back to synthetic output: %s", exc, extra=extra)
                return self.synthetic_result(layer, location, options, error=str(exc))
            LOGGER.error("Layer processing failed: %s", exc, extra=extra)
            raise LayerProcessingError(
                f"{layer.value} processing failed: {exc}",
                layer_type=layer.value,
                operation_id=operation_id,
            ) from exc

        visualization = handler.visualize(processed, options, self.config)
        result = LayerResult.from_processed(
            processed,
            location,
            visualization,
            {
                "generated_at": _timestamp(),
                "processing_time": round(time.perf_counter() - start, 4),
                "operation_id": operation_id,
            },
        )
        LOGGER.info(
            "Processed %sx%s window",
            processed.width,
            processed.height,
            extra=extra,
        )
        self._cache_put(key, result)
        return result

    def process_layer(
        self,
        layer_type: str | LayerType,
        location: Location | Mapping[str, Any],
        options: LayerOptions | None = None,
    ) -> LayerResult:
        """Fetch and process a single layer for a location."""
        layer = LayerType.parse(layer_type)
        target = coerce_location(location)
        options = options or LayerOptions()
        fallback = bool(options.fallback_to_synthetic)
        return self._run(
            layer,
            target,
            options,
            fallback=fallback,
            operation_id=_operation_id(),
            response=_SharedResponse(lambda: self._data_layers(target, options)),
        )

    def process_layers(
        self,
        layer_types: Iterable[str | LayerType],
        location: Location | Mapping[str, Any],
        options: LayerOptions | None = None,
        *,
        parallel: bool = True,
    ) -> BatchResult:
        """Process several layers for one location, fanning out across threads."""
        target = coerce_location(location)
        options = options or LayerOptions()
        fallback = True if options.fallback_to_synthetic is None else options.fallback_to_synthetic
        layers: list[LayerType] = []
        for name in layer_types:
            try:
                layer = LayerType.parse(name)
            except UnsupportedLayerError:
                LOGGER.warning("Skipping unsupported layer type %r", name)
                continue
            if layer not in layers:
                layers.append(layer)
        if not layers:
            raise UnsupportedLayerError("No supported layer types requested")

        operation_id = _operation_id()
        start = time.perf_counter()
        response = _SharedResponse(lambda: self._data_layers(target, options))

        def worker(layer: LayerType) -> LayerResult:
            return self._run(
                layer,
                target,
                options,
                fallback=False,
                operation_id=operation_id,
                response=response,
            )

        max_workers = self.config.processing.max_workers if parallel else 1
        results: dict[str, LayerResult] = {}
        errors: dict[str, str] = {}
        for work in _run_layer_jobs(layers, max_workers, worker):
            if work.result is None:
                errors[work.layer_type.value] = work.error or "Layer processing failed"
                continue
            results[work.layer_type.value] = work.result

        all_synthetic = False
        if not results:
            if not fallback:
                raise BatchProcessingError(
                    f"All {len(layers)} layer(s) failed",
                    failures=sorted(errors.items()),
                )
            LOGGER.warning(
                "All layers failed; returning synthetic output",
                extra={"operation_id": operation_id},
            )
            results = {
                layer.value: self.synthetic_result(
                    layer, target, options, error=errors.get(layer.value)
                )
                for layer in layers
            }
            all_synthetic = True

        return BatchResult(
            layers=results,
            errors=errors,
            all_synthetic=all_synthetic,
            metadata={
                "operation_id": operation_id,
                "generated_at": _timestamp(),
                "processing_time": round(time.perf_counter() - start, 4),
                "total_count": len(layers),
                "success_count": len(layers) - len(errors),
                "failed_count": len(errors),
            },
        )


def validate_result(result: LayerResult) -> None:
    """Validate a layer result against the bundled schema."""
    validate_layer_result(result.to_dict())
