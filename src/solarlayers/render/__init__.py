"""Palette, image encoding, and synthetic rendering helpers."""

from solarlayers.render.image import (
    encode_png,
    fit_dimensions,
    placeholder_image,
    render_data_url,
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

__all__ = [
    "PALETTES",
    "build_palette",
    "css_gradient",
    "encode_png",
    "fit_dimensions",
    "get_palette",
    "hex_to_rgb",
    "placeholder_image",
    "render_data_url",
    "render_false_color",
    "render_rgb",
    "rgb_to_hex",
    "scale_image",
    "synthetic_image",
    "to_data_url",
]
