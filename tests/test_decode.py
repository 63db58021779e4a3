from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from solarlayers.errors import GeoRasterDecodeError
from solarlayers.raster.decode import decode_geotiff, read_geotiff
from tests.utils import TILE_BOUNDS, geotiff_bytes, write_raster


def test_decode_single_band() -> None:
    data = np.arange(12, dtype=np.float32).reshape(3, 4)
    raster = decode_geotiff(geotiff_bytes(data, nodata=-9999.0))
    assert (raster.count, raster.height, raster.width) == (1, 3, 4)
    assert raster.dtype == "float32"
    assert raster.nodata == -9999.0
    np.testing.assert_array_equal(raster.band(0), data)
    west, south, east, north = TILE_BOUNDS
    assert raster.geo_bounds is not None
    assert raster.geo_bounds.north == pytest.approx(north)
    assert raster.geo_bounds.south == pytest.approx(south)
    assert raster.geo_bounds.east == pytest.approx(east)
    assert raster.geo_bounds.west == pytest.approx(west)


def test_decode_multiband_is_read_only() -> None:
    data = np.zeros((12, 5, 6), dtype=np.float32)
    data[3] = 7.0
    raster = decode_geotiff(geotiff_bytes(data))
    assert raster.count == 12
    assert raster.band(3)[0, 0] == 7.0
    with pytest.raises(ValueError):
        raster.bands[0, 0, 0] = 1.0


def test_decode_projected_bounds_are_wgs84() -> None:
    data = np.ones((4, 4), dtype=np.uint8)
    # ~100 m box in UTM zone 10N near San Francisco.
    bounds = (551000.0, 4180000.0, 551100.0, 4180100.0)
    raster = decode_geotiff(geotiff_bytes(data, bounds=bounds, crs="EPSG:32610"))
    assert raster.geo_bounds is not None
    assert -123.0 < raster.geo_bounds.west < raster.geo_bounds.east < -122.0
    assert 37.0 < raster.geo_bounds.south < raster.geo_bounds.north < 38.0


def test_decode_without_crs_has_no_bounds() -> None:
    raster = decode_geotiff(geotiff_bytes(np.ones((2, 2), dtype=np.uint8), crs=None))
    assert raster.geo_bounds is None


def test_decode_rejects_empty_and_garbage() -> None:
    with pytest.raises(GeoRasterDecodeError, match="empty"):
        decode_geotiff(b"")
    with pytest.raises(GeoRasterDecodeError):
        decode_geotiff(b"not a tiff at all")


def test_read_geotiff_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "dsm.tif"
    write_raster(path, np.full((3, 3), 12.5, dtype=np.float32))
    raster = read_geotiff(path)
    assert raster.band(0)[1, 1] == pytest.approx(12.5)
