"""Color-keyed background removal.

Pixels whose R, G and B each lie within `tolerance` of the key color get alpha 0;
every other pixel keeps its alpha. The pass works on a full RGBA copy of the
decoded image, so it costs one extra width x height x 4 byte buffer, bounded by
the pixel ceiling checked earlier.
"""

from __future__ import annotations

import re
from typing import Any

import numpy as np

from .errors import ErrorKind, ProcessError
from .logger import get_logger
from .types import PixelBuffer
from .vips import get_pyvips

_logger = get_logger("background")

RGBA_CHANNELS = 4
_OPAQUE = 255
_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")


def parse_hex_color(value: str) -> tuple[int, int, int]:
    """Parse "#RRGGBB" (leading '#' optional) into an (r, g, b) tuple."""
    m = _HEX_RE.match(value.strip())
    if m is None:
        raise ProcessError(ErrorKind.INVALID_REQUEST, f"Invalid bgColor: {value!r}")
    return int(m.group(1), 16), int(m.group(2), 16), int(m.group(3), 16)


def remove_background(pixels: PixelBuffer, color: tuple[int, int, int], tolerance: float) -> PixelBuffer:
    """Return a new RGBA buffer with every pixel near `color` made fully transparent."""
    if pixels.channels != RGBA_CHANNELS:
        raise ValueError(f"background removal needs RGBA pixels, got {pixels.channels} channels")
    if tolerance < 0:
        raise ValueError("tolerance must be non-negative")

    data = pixels.data
    rgb = data[..., :3].astype(np.int16)
    target = np.asarray(color, dtype=np.int16)
    mask = (np.abs(rgb - target) <= tolerance).all(axis=2)

    out = data.copy()
    out[..., 3][mask] = 0
    _logger.debug("color key %s tol=%s cleared %d/%d pixels", color, tolerance, int(mask.sum()), mask.size)
    return PixelBuffer(width=pixels.width, height=pixels.height, channels=RGBA_CHANNELS, data=out)


def image_to_rgba_buffer(image: Any) -> PixelBuffer:
    """Decode a pyvips image into 8-bit sRGB pixels with an alpha band."""
    pyvips = get_pyvips()
    if image.interpretation != "srgb":
        image = image.colourspace("srgb")
    if image.format != "uchar":
        image = image.cast("uchar")
    if image.bands == 1:
        image = pyvips.Image.bandjoin([image] * 3)
    if image.bands == RGBA_CHANNELS - 1:
        image = image.bandjoin_const([_OPAQUE])
    elif image.bands > RGBA_CHANNELS:
        image = image.extract_band(0, n=RGBA_CHANNELS)

    mem = image.write_to_memory()
    array = np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, RGBA_CHANNELS)
    return PixelBuffer(width=image.width, height=image.height, channels=RGBA_CHANNELS, data=array.copy())


def buffer_to_image(pixels: PixelBuffer) -> Any:
    """Wrap a pixel buffer as a pyvips image with explicit geometry."""
    pyvips = get_pyvips()
    data = np.ascontiguousarray(pixels.data)
    image = pyvips.Image.new_from_memory(data.tobytes(), pixels.width, pixels.height, pixels.channels, "uchar")
    return image.copy(interpretation="srgb")


def apply_background_removal(image: Any, color: tuple[int, int, int], tolerance: float) -> Any:
    pixels = image_to_rgba_buffer(image)
    return buffer_to_image(remove_background(pixels, color, tolerance))
