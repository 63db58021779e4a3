from __future__ import annotations

import base64

import numpy as np
import pytest

from solarlayers.errors import RenderError
from solarlayers.raster.models import NO_DATA_VALUE, Location
from solarlayers.render.image import (
    encode_png,
    fit_dimensions,
    placeholder_image,
    render_false_color,
    render_rgb,
    scale_image,
    to_data_url,
)
from solarlayers.render.palettes import (
    PALETTES,
    build_palette,
    css_gradient,
    get_palette,
    hex_to_rgb,
    rgb_to_hex,
)
from solarlayers.render.synthetic import synthetic_image

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def test_hex_round_trip() -> None:
    assert hex_to_rgb("#FFCA28") == (255, 202, 40)
    assert hex_to_rgb("212121") == (33, 33, 33)
    assert rgb_to_hex(255, 202, 40) == "#ffca28"
    assert rgb_to_hex(300, -5, 16) == "#ff0010"
    with pytest.raises(ValueError):
        hex_to_rgb("zzzzzz")


def test_build_palette_endpoints_and_midpoint() -> None:
    palette = build_palette(["000000", "ffffff"], 3)
    assert palette.shape == (3, 3)
    assert palette.dtype == np.uint8
    assert tuple(palette[0]) == (0, 0, 0)
    assert tuple(palette[1]) == (128, 128, 128)
    assert tuple(palette[2]) == (255, 255, 255)


def test_build_palette_validation() -> None:
    with pytest.raises(ValueError, match="two control colors"):
        build_palette(["000000"], 4)
    with pytest.raises(ValueError, match="size"):
        build_palette(["000000", "ffffff"], 1)


def test_named_palettes() -> None:
    iron = get_palette("iron")
    assert iron.shape == (256, 3)
    assert tuple(iron[0]) == hex_to_rgb(PALETTES["IRON"][0])
    assert tuple(iron[-1]) == hex_to_rgb(PALETTES["IRON"][-1])
    with pytest.raises(ValueError, match="Unknown palette"):
        get_palette("plasma")
    gradient = css_gradient("BINARY")
    assert gradient == "linear-gradient(to right, #212121 0%, #b3e5fc 100%)"


def test_render_false_color_endpoints() -> None:
    palette = get_palette("SUNLIGHT", 256)
    raster = np.array([[0.0, 50.0, 100.0, NO_DATA_VALUE]])
    rgba = render_false_color(raster, palette, min_value=0.0, max_value=100.0)
    assert rgba.shape == (1, 4, 4)
    assert tuple(rgba[0, 0, :3]) == tuple(palette[0])
    assert tuple(rgba[0, 2, :3]) == tuple(palette[255])
    assert tuple(rgba[0, 1, :3]) == tuple(palette[128])
    assert rgba[0, 0, 3] == 255
    assert tuple(rgba[0, 3]) == (0, 0, 0, 0)


def test_render_false_color_clamps_and_handles_nan() -> None:
    palette = get_palette("IRON", 16)
    raster = np.array([[-50.0, 500.0, np.nan]])
    rgba = render_false_color(raster, palette, min_value=0.0, max_value=100.0, use_alpha=False)
    assert tuple(rgba[0, 0, :3]) == tuple(palette[0])
    assert tuple(rgba[0, 1, :3]) == tuple(palette[-1])
    assert tuple(rgba[0, 2]) == (0, 0, 0, 255)


def test_render_false_color_degenerate_range_and_scale() -> None:
    palette = get_palette("IRON", 11)
    flat = render_false_color(np.full((2, 2), 7.0), palette, min_value=7.0, max_value=7.0)
    assert np.all(flat[..., :3] == palette[0])
    scaled = render_false_color(
        np.array([[100.0]]),
        palette,
        min_value=0.0,
        max_value=100.0,
        scale=0.5,
    )
    assert tuple(scaled[0, 0, :3]) == tuple(palette[5])


def test_render_rgb_alpha_from_mask() -> None:
    red = np.array([[300.0, 10.0]])
    green = np.array([[-4.0, 20.0]])
    blue = np.array([[5.0, 30.0]])
    rgba = render_rgb(red, green, blue, np.array([[1, 0]]))
    assert tuple(rgba[0, 0]) == (255, 0, 5, 255)
    assert rgba[0, 1, 3] == 0
    with pytest.raises(RenderError):
        render_rgb(red, green, np.zeros((2, 2)))


def test_fit_dimensions() -> None:
    assert fit_dimensions(800, 400, max_dimension=400) == (400, 200)
    assert fit_dimensions(100, 50, max_dimension=400) == (100, 50)
    assert fit_dimensions(800, 400, max_dimension=400, max_height=100) == (200, 100)


def test_png_encoding_and_data_url() -> None:
    png = encode_png(placeholder_image(8, 6))
    assert png.startswith(PNG_SIGNATURE)
    url = to_data_url(png)
    assert url.startswith("data:image/png;base64,")
    assert base64.b64decode(url.split(",", 1)[1]) == png


def test_scale_image_nearest() -> None:
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[0, 0] = (255, 0, 0, 255)
    scaled = scale_image(rgba, 4, 4)
    assert scaled.shape == (4, 4, 4)
    assert tuple(scaled[1, 1]) == (255, 0, 0, 255)
    assert tuple(scaled[3, 3]) == (0, 0, 0, 0)


def test_synthetic_image_is_deterministic() -> None:
    palette = get_palette("IRON")
    location = Location(37.0, -122.0)
    first = synthetic_image(64, 48, palette, location=location)
    second = synthetic_image(64, 48, palette, location=location)
    other = synthetic_image(64, 48, palette, location=Location(40.0, -100.0))
    assert first.shape == (48, 64, 4)
    np.testing.assert_array_equal(first, second)
    assert not np.array_equal(first, other)
    assert first[..., 3].max() > 0
    assert first[0, 0, 3] == 0
