from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from solarlayers.cache import JsonFileCache
from solarlayers.config import SolarLayersConfig
from solarlayers.contracts import validate_layer_result
from solarlayers.errors import (
    BatchProcessingError,
    FetchError,
    LayerProcessingError,
    UnsupportedLayerError,
)
from solarlayers.layers.types import LayerOptions, LayerType
from solarlayers.manager import LayerManager, LayerResult, validate_result
from solarlayers.provider import DataLayersResponse
from solarlayers.raster.models import Location
from tests.utils import geotiff_bytes, pixel_center, two_building_mask

BASE = "https://storage.example.com"


def _target() -> Location:
    lat, lon = pixel_center(5, 8, 40, 20)
    return Location(latitude=lat, longitude=lon)


def _files() -> dict[str, bytes]:
    mask = two_building_mask()
    dsm = np.where(mask > 0, 12.0, 3.0).astype(np.float32)
    flux = np.where(mask > 0, 1200.0, 0.0).astype(np.float32)
    monthly = np.stack([flux / 12.0] * 12).astype(np.float32)
    hourly = np.full((24, 20, 40), 0xFFFF, dtype=np.uint32)
    rgb = np.stack([mask * 200, mask * 100, mask * 50]).astype(np.uint8)
    return {
        f"{BASE}/mask.tif": geotiff_bytes(mask),
        f"{BASE}/dsm.tif": geotiff_bytes(dsm),
        f"{BASE}/rgb.tif": geotiff_bytes(rgb),
        f"{BASE}/annual.tif": geotiff_bytes(flux),
        f"{BASE}/monthly.tif": geotiff_bytes(monthly),
        f"{BASE}/hourly_0.tif": geotiff_bytes(hourly),
    }


class FakeSource:
    def __init__(self, files: dict[str, bytes] | None = None, *, fail_lookup: bool = False):
        self.files = _files() if files is None else files
        self.fail_lookup = fail_lookup
        self.lookups = 0
        self.downloads: list[str] = []

    def get_data_layers(self, location, *, radius_meters=None, quality=None):
        self.lookups += 1
        if self.fail_lookup:
            raise FetchError("HTTP 404 from dataLayers:get", url="dataLayers:get", attempts=1)
        return DataLayersResponse(
            dsm_url=f"{BASE}/dsm.tif",
            rgb_url=f"{BASE}/rgb.tif",
            mask_url=f"{BASE}/mask.tif",
            annual_flux_url=f"{BASE}/annual.tif",
            monthly_flux_url=f"{BASE}/monthly.tif",
            hourly_shade_urls=(f"{BASE}/hourly_0.tif",),
            imagery_quality="HIGH",
            imagery_date="2022-04-06",
        )

    def download(self, url: str) -> bytes:
        self.downloads.append(url)
        if url not in self.files:
            raise FetchError(f"HTTP 404 from {url}", url=url, attempts=1)
        return self.files[url]


def _manager(source: FakeSource, **kwargs) -> LayerManager:
    return LayerManager(SolarLayersConfig(), source, **kwargs)


def test_process_single_layer() -> None:
    source = FakeSource()
    result = _manager(source).process_layer("dsm", _target(), LayerOptions(margin_px=0))
    assert result.layer_type is LayerType.DSM
    assert not result.synthetic
    assert result.building_boundary["width"] == 8
    assert result.relative_boundary["original_min_x"] == 2
    assert result.statistics["max"] == pytest.approx(12.0)
    assert result.metadata["imagery_date"] == "2022-04-06"
    assert result.metadata["target_building_detected"] is True
    assert "operation_id" in result.metadata
    assert source.downloads == [f"{BASE}/dsm.tif", f"{BASE}/mask.tif"]
    validate_result(result)


def test_every_layer_type_processes() -> None:
    manager = _manager(FakeSource())
    for layer in LayerType:
        result = manager.process_layer(layer, _target(), LayerOptions(margin_px=1, month=0))
        assert not result.synthetic, layer
        validate_result(result)


def test_single_layer_failure_raises_without_fallback() -> None:
    files = _files()
    del files[f"{BASE}/dsm.tif"]
    manager = _manager(FakeSource(files))
    with pytest.raises(LayerProcessingError) as excinfo:
        manager.process_layer("dsm", _target())
    assert excinfo.value.layer_type == "dsm"
    assert excinfo.value.operation_id


def test_single_layer_fallback_to_synthetic() -> None:
    files = _files()
    del files[f"{BASE}/dsm.tif"]
    manager = _manager(FakeSource(files))
    result = manager.process_layer("dsm", _target(), LayerOptions(fallback_to_synthetic=True))
    assert result.synthetic
    assert "HTTP 404" in result.error
    assert result.visualization.data_url.startswith("data:image/png;base64,")
    validate_result(result)


def test_missing_mask_is_processing_error() -> None:
    files = _files()
    del files[f"{BASE}/mask.tif"]
    with pytest.raises(LayerProcessingError, match="mask"):
        _manager(FakeSource(files)).process_layer("annualFlux", _target())


def test_target_off_building() -> None:
    lat, lon = pixel_center(15, 8, 40, 20)
    with pytest.raises(LayerProcessingError, match="No building"):
        _manager(FakeSource()).process_layer("dsm", Location(lat, lon))


def test_batch_shares_lookup_and_reports_partial_failure() -> None:
    files = _files()
    del files[f"{BASE}/rgb.tif"]
    source = FakeSource(files)
    batch = _manager(source).process_layers(
        ["dsm", "rgb", "annualFlux", "roofSegments"],
        _target(),
        LayerOptions(margin_px=0),
    )
    assert source.lookups == 1
    assert set(batch.layers) == {"dsm", "annualFlux"}
    assert "rgb" in batch.errors
    assert not batch.all_synthetic
    assert batch.metadata["total_count"] == 3
    assert batch.metadata["success_count"] == 2
    assert batch.metadata["failed_count"] == 1
    payload = batch.to_dict()
    assert payload["layers"]["dsm"]["layer_type"] == "dsm"


def test_batch_all_failed_returns_synthetic() -> None:
    source = FakeSource(fail_lookup=True)
    batch = _manager(source).process_layers(["dsm", "mask"], _target(), parallel=False)
    assert batch.all_synthetic
    assert set(batch.layers) == {"dsm", "mask"}
    assert all(result.synthetic for result in batch.layers.values())
    assert set(batch.errors) == {"dsm", "mask"}
    assert source.lookups == 1


def test_batch_all_failed_without_fallback_raises() -> None:
    manager = _manager(FakeSource(fail_lookup=True))
    with pytest.raises(BatchProcessingError) as excinfo:
        manager.process_layers(
            ["dsm", "rgb"],
            _target(),
            LayerOptions(fallback_to_synthetic=False),
        )
    assert [name for name, _ in excinfo.value.failures] == ["dsm", "rgb"]


def test_batch_rejects_only_unsupported_layers() -> None:
    with pytest.raises(UnsupportedLayerError):
        _manager(FakeSource()).process_layers(["roofSegments"], _target())


def test_cache_hit_skips_fetch(tmp_path: Path) -> None:
    source = FakeSource()
    manager = _manager(source, cache=JsonFileCache(tmp_path))
    first = manager.process_layer("annualFlux", _target(), LayerOptions(margin_px=0))
    downloads = len(source.downloads)
    second = manager.process_layer("annualFlux", _target(), LayerOptions(margin_px=0))
    assert not first.cached
    assert second.cached
    assert len(source.downloads) == downloads
    assert second.statistics == first.statistics
    assert second.visualization == first.visualization
    third = manager.process_layer("annualFlux", _target(), LayerOptions(margin_px=1))
    assert not third.cached


def test_process_local_and_include_rasters() -> None:
    from solarlayers.raster.decode import decode_geotiff

    files = _files()
    manager = LayerManager(SolarLayersConfig())
    result = manager.process_local(
        "annualFlux",
        decode_geotiff(files[f"{BASE}/annual.tif"]),
        {"lat": _target().latitude, "lng": _target().longitude},
        mask=decode_geotiff(files[f"{BASE}/mask.tif"]),
        options=LayerOptions(margin_px=0),
    )
    payload = result.to_dict(include_rasters=True)
    assert len(payload["rasters"]) == 1
    assert len(payload["rasters"][0]) == 10
    assert payload["rasters"][0][0][0] == pytest.approx(1200.0)
    assert len(payload["mask_raster"]) == 10
    assert len(payload["mask_raster"][0]) == len(payload["rasters"][0][0])
    assert payload["mask_raster"][0][0] > 0
    validate_layer_result(payload)
    restored = LayerResult.from_dict(payload)
    assert restored.bounds == result.bounds


def test_synthetic_result_monthly_uses_seasonal_factor() -> None:
    manager = LayerManager(SolarLayersConfig())
    result = manager.synthetic_result(
        "monthlyFlux",
        _target(),
        LayerOptions(month=0, max_width=100),
    )
    assert result.metadata["seasonal_factor"] == 0.4
    assert result.visualization.width == 100
    validate_result(result)
