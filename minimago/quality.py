"""Quality (1-100) to encoder parameter mapping.

PNG quality selects one of ten fixed tiers; JPEG and WebP use the quality as is;
AVIF clamps it again to the codec's safe range.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_CONFIG, ProcessorConfig
from .errors import ErrorKind, ProcessError
from .validators import clamp_quality

PNG_COMPRESSION_LEVEL = 9
# libvips VipsForeignPngFilter.ALL: let the encoder pick a filter per row
PNG_FILTER_ALL = 0xF8
_BITDEPTHS = (1, 2, 4, 8)


@dataclass(frozen=True)
class PngOptions:
    palette: bool
    quality: int | None = None
    effort: int | None = None
    colours: int | None = None
    dither: float | None = None
    compression_level: int = PNG_COMPRESSION_LEVEL
    adaptive_filtering: bool = True
    progressive: bool | None = None


def _palette_tier(quality: int, effort: int, colours: int, dither: float) -> PngOptions:
    return PngOptions(palette=True, quality=quality, effort=effort, colours=colours, dither=dither)


# Indexed by tier // 10 - 1. Effort is highest at the low tiers, where the
# small palette needs the most search to keep the image recognisable.
PNG_TIERS: tuple[PngOptions, ...] = (
    _palette_tier(10, 10, 16, 0.0),
    _palette_tier(20, 9, 32, 0.1),
    _palette_tier(30, 9, 64, 0.2),
    _palette_tier(40, 8, 96, 0.3),
    _palette_tier(50, 8, 128, 0.4),
    _palette_tier(60, 8, 160, 0.5),
    _palette_tier(70, 7, 192, 0.6),
    _palette_tier(80, 7, 224, 0.75),
    _palette_tier(90, 7, 240, 0.9),
    PngOptions(palette=False, progressive=False),
)


def quality_tier(quality: int) -> int:
    """Round quality up to the next multiple of ten (1..10 -> 10, 55 -> 60)."""
    return math.ceil(quality / 10) * 10


def png_options_from_quality(quality: object, config: ProcessorConfig = DEFAULT_CONFIG) -> PngOptions:
    q = clamp_quality(quality, config)
    return PNG_TIERS[quality_tier(q) // 10 - 1]


def bitdepth_from_colours(colours: int) -> int:
    """Smallest PNG bit depth able to index `colours` palette entries."""
    for bits in _BITDEPTHS:
        if 2**bits >= colours:
            return bits
    return _BITDEPTHS[-1]


def png_save_kwargs(opts: PngOptions) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"compression": opts.compression_level}
    if opts.adaptive_filtering:
        kwargs["filter"] = PNG_FILTER_ALL
    if opts.progressive is not None:
        kwargs["interlace"] = opts.progressive
    if opts.palette:
        kwargs.update(
            palette=True,
            Q=opts.quality,
            effort=opts.effort,
            dither=opts.dither,
            bitdepth=bitdepth_from_colours(opts.colours or 256),
        )
    return kwargs


def avif_quality(quality: int, config: ProcessorConfig = DEFAULT_CONFIG) -> int:
    return max(config.avif_min_quality, min(config.avif_max_quality, quality))


def save_options(ext: str, quality: int, config: ProcessorConfig = DEFAULT_CONFIG) -> tuple[str, dict[str, Any]]:
    """Return the libvips saver suffix and keyword arguments for an output format.

    Raises:
        ProcessError: UnsupportedFormat for svg, InvalidFormat for unknown formats.
    """
    ext = ext.lower()
    q = clamp_quality(quality, config)
    if ext in ("jpg", "jpeg"):
        return ".jpg", {"Q": q}
    if ext == "png":
        return ".png", png_save_kwargs(png_options_from_quality(q, config))
    if ext == "webp":
        return ".webp", {"Q": q}
    if ext == "avif":
        return ".avif", {"Q": avif_quality(q, config), "compression": "av1"}
    if ext == "svg":
        raise ProcessError(ErrorKind.UNSUPPORTED_FORMAT, "SVG output format is not supported yet")
    raise ProcessError(ErrorKind.INVALID_FORMAT, "Invalid target format")
