"""Request validation.

Turns an untyped request mapping (as sent by the host UI) into a
`ProcessOptions`. Pure: no filesystem access.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from .config import DEFAULT_CONFIG, ProcessorConfig
from .errors import ErrorKind, ProcessError
from .logger import get_logger
from .types import CropRect, ProcessOptions

_logger = get_logger("validators")

# snake_case spellings accepted alongside the host's camelCase keys
_ALIASES = {
    "input_path": "inputPath",
    "output_path": "outputPath",
    "remove_bg": "removeBg",
    "bg_color": "bgColor",
    "bg_tolerance": "bgTolerance",
}


def is_allowed_format(value: object, config: ProcessorConfig = DEFAULT_CONFIG) -> bool:
    return isinstance(value, str) and value in config.allowed_formats


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _is_real(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: object) -> float:
    """Coerce to float; anything unusable becomes NaN."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.inf
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _normalize_keys(obj: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(obj)
    for alias, key in _ALIASES.items():
        if alias in out and key not in out:
            out[key] = out.pop(alias)
    return out


def parse_crop(value: object) -> CropRect | None:
    """Return a CropRect for a well-formed crop mapping, else None."""
    if not isinstance(value, Mapping):
        return None
    x = _as_int(value.get("x"))
    y = _as_int(value.get("y"))
    width = _as_int(value.get("width"))
    height = _as_int(value.get("height"))
    if x is None or y is None or width is None or height is None:
        return None
    if x < 0 or y < 0 or width <= 0 or height <= 0:
        return None
    return CropRect(x, y, width, height)


def _check_dimension(name: str, value: object, config: ProcessorConfig) -> int | None:
    if value is None:
        return None
    number = _to_number(value)
    if not math.isfinite(number) or number <= 0 or number > config.max_dimension:
        raise ProcessError(ErrorKind.DIMENSION_OUT_OF_RANGE, f"{name} out of range")
    rounded = round_half_up(number)
    if rounded <= 0:
        raise ProcessError(ErrorKind.DIMENSION_OUT_OF_RANGE, f"{name} out of range")
    return rounded


def clamp_quality(value: object, config: ProcessorConfig = DEFAULT_CONFIG) -> int:
    """Coerce any value to an integer quality in [min_quality, max_quality]."""
    number = _to_number(value) if value is not None else math.nan
    q = round_half_up(number) if math.isfinite(number) else config.default_quality
    return max(config.min_quality, min(config.max_quality, q))


def normalize_and_check_shape(obj: object, config: ProcessorConfig = DEFAULT_CONFIG) -> ProcessOptions:
    """Validate and normalize the shape of a request.

    Raises:
        ProcessError: InvalidRequest, InvalidFormat or DimensionOutOfRange.
    """
    if not isinstance(obj, Mapping):
        raise ProcessError(ErrorKind.INVALID_REQUEST, "Invalid options")
    o = _normalize_keys(obj)

    input_path = o.get("inputPath")
    if not isinstance(input_path, str) or input_path.strip() == "":
        raise ProcessError(ErrorKind.INVALID_REQUEST, "Invalid inputPath")

    crop = None
    raw_crop = o.get("crop")
    if raw_crop is not None:
        crop = parse_crop(raw_crop)
        if crop is None:
            if config.strict_crop:
                raise ProcessError(ErrorKind.INVALID_REQUEST, "Invalid crop")
            _logger.debug("dropping malformed crop: %r", raw_crop)

    raw_format = o.get("format")
    fmt = raw_format.lower() if isinstance(raw_format, str) else None
    if fmt and not is_allowed_format(fmt, config):
        raise ProcessError(ErrorKind.INVALID_FORMAT, "Invalid target format")

    width = _check_dimension("width", o.get("width"), config)
    height = _check_dimension("height", o.get("height"), config)
    quality = clamp_quality(o.get("quality"), config)

    raw_out = o.get("outputPath")
    output_path = raw_out if isinstance(raw_out, str) and raw_out.strip() != "" else None

    bg_color = o.get("bgColor")
    bg_tolerance = o.get("bgTolerance")
    if not (_is_real(bg_tolerance) and math.isfinite(_to_number(bg_tolerance)) and bg_tolerance >= 0):
        bg_tolerance = None

    return ProcessOptions(
        input_path=input_path,
        crop=crop,
        width=width,
        height=height,
        format=fmt or None,
        quality=quality,
        output_path=output_path,
        remove_bg=o.get("removeBg") is True,
        bg_color=bg_color if isinstance(bg_color, str) else None,
        bg_tolerance=bg_tolerance,
    )
