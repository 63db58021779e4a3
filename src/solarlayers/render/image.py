"""False-color rendering and PNG encoding of raster bands."""

from __future__ import annotations

import base64
import io
import logging
import math

import numpy as np
from PIL import Image

from solarlayers.errors import RenderError
from solarlayers.raster.models import NO_DATA_VALUE
from solarlayers.raster.resample import resample
from solarlayers.raster.stats import valid_mask

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_COLOR = (0xF8, 0xF8, 0xF8)


def render_false_color(
    raster: np.ndarray,
    palette: np.ndarray,
    *,
    min_value: float,
    max_value: float,
    use_alpha: bool = True,
    nodata: float | None = NO_DATA_VALUE,
    scale: float = 1.0,
) -> np.ndarray:
    """Map a 2-D array through a palette into an (h, w, 4) RGBA image.

    Values are scaled, normalized into ``[min_value, max_value]`` and clamped;
    nodata and non-finite pixels become black, transparent when ``use_alpha``.
    """
    if raster.ndim != 2:
        raise RenderError(f"Expected a 2-D raster, got shape {raster.shape}")
    if palette.ndim != 2 or palette.shape[1] != 3 or palette.shape[0] < 1:
        raise RenderError(f"Palette must be shaped (N, 3), got {palette.shape}")
    valid = valid_mask(raster, nodata)
    values = np.where(valid, raster, 0).astype(np.float64) * scale
    span = max_value - min_value
    if span > 0 and math.isfinite(span):
        t = np.clip((values - min_value) / span, 0.0, 1.0)
    else:
        t = np.zeros(values.shape, dtype=np.float64)
    last = palette.shape[0] - 1
    index = np.floor(t * last + 0.5).astype(np.intp)

    height, width = raster.shape
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[..., :3] = palette[index]
    rgba[..., 3] = 255
    rgba[~valid, :3] = 0
    rgba[~valid, 3] = 0 if use_alpha else 255
    return rgba


def render_rgb(
    red: np.ndarray,
    green: np.ndarray,
    blue: np.ndarray,
    mask: np.ndarray | None = None,
    *,
    threshold: float = 0.0,
) -> np.ndarray:
    """Composite three channels into RGBA, alpha taken from the mask."""
    if not (red.shape == green.shape == blue.shape):
        raise RenderError("RGB channels must share a shape")
    rgba = np.empty(red.shape + (4,), dtype=np.uint8)
    for channel, band in enumerate((red, green, blue)):
        finite = np.where(np.isfinite(band), band, 0)
        rgba[..., channel] = np.clip(finite, 0, 255).astype(np.uint8)
    if mask is None:
        rgba[..., 3] = 255
    else:
        if mask.shape != red.shape:
            raise RenderError(f"Mask shape {mask.shape} does not match RGB shape {red.shape}")
        rgba[..., 3] = np.where(mask > threshold, 255, 0).astype(np.uint8)
    return rgba


def placeholder_image(width: int, height: int) -> np.ndarray:
    """Return a flat light-grey opaque RGBA image."""
    rgba = np.empty((max(1, height), max(1, width), 4), dtype=np.uint8)
    rgba[..., :3] = PLACEHOLDER_COLOR
    rgba[..., 3] = 255
    return rgba


def fit_dimensions(
    width: int,
    height: int,
    *,
    max_dimension: int | None = None,
    max_width: int | None = None,
    max_height: int | None = None,
) -> tuple[int, int]:
    """Scale (width, height) down to fit the limits, keeping the aspect ratio."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Dimensions must be positive, got {width}x{height}")
    limit_w = min(v for v in (max_dimension, max_width, width) if v is not None)
    limit_h = min(v for v in (max_dimension, max_height, height) if v is not None)
    ratio = min(limit_w / width, limit_h / height, 1.0)
    return max(1, int(round(width * ratio))), max(1, int(round(height * ratio)))


def scale_image(rgba: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize an RGBA image with nearest-neighbour sampling."""
    if rgba.shape[:2] == (height, width):
        return rgba
    return np.stack(
        [resample(rgba[..., channel], width, height, method="nearest") for channel in range(4)],
        axis=-1,
    )


def encode_png(rgba: np.ndarray) -> bytes:
    """Encode an (h, w, 4) uint8 array as PNG bytes."""
    if rgba.ndim != 3 or rgba.shape[2] != 4:
        raise RenderError(f"Expected an (h, w, 4) image, got shape {rgba.shape}")
    image = Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8))
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except OSError as exc:
        raise RenderError(f"PNG encoding failed: {exc}") from exc
    return buffer.getvalue()


def to_data_url(png: bytes) -> str:
    """Return a base64 ``data:image/png`` URL."""
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def render_data_url(rgba: np.ndarray) -> str:
    """Encode an RGBA image straight to a PNG data URL."""
    return to_data_url(encode_png(rgba))
