from __future__ import annotations

import numpy as np
import pytest

from solarlayers.raster.crop import adjust_bounds, apply_mask, crop, crop_bands, crop_to_building
from solarlayers.raster.models import NO_DATA_VALUE, BuildingBoundary, GeoBounds

BOUNDS = GeoBounds(north=10.0, south=0.0, east=20.0, west=0.0)


def test_full_crop_keeps_bounds() -> None:
    boundary = BuildingBoundary(0, 0, 99, 49)
    adjusted = adjust_bounds(BOUNDS, 100, 50, boundary)
    assert adjusted == BOUNDS


def test_adjust_bounds_row_zero_is_north() -> None:
    boundary = BuildingBoundary(min_x=5, min_y=0, max_x=9, max_y=4)
    adjusted = adjust_bounds(BOUNDS, 10, 10, boundary)
    assert adjusted.north == pytest.approx(10.0)
    assert adjusted.south == pytest.approx(5.0)
    assert adjusted.west == pytest.approx(10.0)
    assert adjusted.east == pytest.approx(20.0)


def test_adjust_bounds_rejects_outside_window() -> None:
    with pytest.raises(ValueError, match="outside"):
        adjust_bounds(BOUNDS, 10, 10, BuildingBoundary(0, 0, 10, 9))


def test_crop_copies_window() -> None:
    data = np.arange(25).reshape(5, 5)
    out = crop(data, BuildingBoundary(1, 2, 3, 3))
    np.testing.assert_array_equal(out, [[11, 12, 13], [16, 17, 18]])
    out[0, 0] = -1
    assert data[2, 1] == 11


def test_crop_bands_shares_window() -> None:
    bands = np.stack([np.arange(16).reshape(4, 4), np.arange(16).reshape(4, 4) * 10])
    out = crop_bands(bands, BuildingBoundary(2, 2, 3, 3))
    assert out.shape == (2, 2, 2)
    assert out[1, 0, 0] == 100


def test_apply_mask_sets_nodata() -> None:
    data = np.array([[1, 2], [3, 4]], dtype=np.uint16)
    mask = np.array([[1, 0], [0, 1]], dtype=np.uint8)
    out = apply_mask(data, mask)
    assert out.dtype == np.float64
    np.testing.assert_array_equal(out, [[1.0, NO_DATA_VALUE], [NO_DATA_VALUE, 4.0]])
    assert data[0, 1] == 2
    with pytest.raises(ValueError, match="does not match"):
        apply_mask(data, np.ones((3, 3)))


def test_crop_to_building_masks_all_bands() -> None:
    bands = np.ones((3, 6, 6))
    mask = np.zeros((6, 6))
    mask[2:4, 2:4] = 1
    result = crop_to_building(bands, mask, BuildingBoundary(1, 1, 4, 4))
    assert result.bands.shape == (3, 4, 4)
    assert (result.width, result.height) == (4, 4)
    assert result.bands[2, 0, 0] == NO_DATA_VALUE
    assert result.bands[2, 1, 1] == 1.0
    assert result.raw_bands[0, 0, 0] == 1.0
