"""Transformation pipeline.

One request runs straight through:

    validate -> resolve paths -> decode -> [remove background] -> [crop]
    -> [resize] -> encode to memory -> write

and stops at the first failure. Background removal runs on the full decoded
image, before crop and resize, so resampled edge pixels keep the partial alpha
produced by the resize filter rather than being color-keyed themselves.

SVG sources going unchanged to SVG are copied byte for byte and never reach
libvips.
"""

from __future__ import annotations

import contextlib
import os
import uuid
from pathlib import Path
from typing import Any

from .background import apply_background_removal, parse_hex_color
from .config import DEFAULT_CONFIG, ProcessorConfig
from .errors import ErrorKind, ProcessError
from .logger import get_logger
from .metrics import metrics
from .paths import is_svg_passthrough, prepare_paths_and_checks, resolve_final_path
from .quality import save_options
from .types import ProcessOptions, ProcessResult
from .validators import normalize_and_check_shape
from .vips import get_pyvips

_logger = get_logger("processor")

# libvips VIPS_MAX_COORD; used as "unbounded" for single-axis resizes
_VIPS_MAX_COORD = 10_000_000
_WHITE = [255, 255, 255]
_TMP_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)


def resize_image(image: Any, width: int | None, height: int | None) -> Any:
    """Resize to width x height.

    Both axes given: exact output size, scaled to cover and centre-cropped.
    One axis given: the other follows the aspect ratio. Upscaling is allowed.
    """
    if width and height:
        return image.thumbnail_image(width, height=height, size="both", crop="centre")
    if width:
        return image.thumbnail_image(width, height=_VIPS_MAX_COORD, size="both")
    if height:
        return image.thumbnail_image(_VIPS_MAX_COORD, height=height, size="both")
    return image


def render_image(
    opts: ProcessOptions,
    suffix: str,
    save_kwargs: dict[str, Any],
    bg_key: tuple[int, int, int] | None,
    bg_tolerance: float,
) -> bytes:
    """Decode, transform and encode the source image, returning the encoded bytes."""
    pyvips = get_pyvips()
    try:
        image = pyvips.Image.new_from_file(opts.input_path)

        if bg_key is not None:
            with metrics.timed("pipeline.remove_bg"):
                image = apply_background_removal(image, bg_key, bg_tolerance)

        if opts.crop is not None:
            image = image.crop(*opts.crop.as_tuple())

        if opts.width or opts.height:
            image = resize_image(image, opts.width, opts.height)

        if suffix == ".jpg" and image.hasalpha():
            image = image.flatten(background=_WHITE)

        _logger.debug("encoding %dx%d bands=%d as %s %s", image.width, image.height, image.bands, suffix, save_kwargs)
        with metrics.timed("pipeline.encode"):
            return image.write_to_buffer(suffix, **save_kwargs)
    except pyvips.Error as e:
        _logger.error("imaging failed for %s: %s", opts.input_path, e, exc_info=True)
        raise ProcessError(ErrorKind.ENCODE_OR_IO_FAILURE, f"Image processing failed: {e}") from e


def write_output(data: bytes, output_path: str, config: ProcessorConfig = DEFAULT_CONFIG) -> None:
    """Write `data` to `output_path`, creating parent directories.

    With `atomic_write` the bytes land in a temporary sibling that is renamed
    over the destination. No partial file is left behind on failure. Both
    modes create the file with 0o666 filtered by the process umask.
    """
    out = Path(output_path)
    tmp_name: str | None = None
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        if config.atomic_write:
            candidate = str(out.parent / f".{out.name}.{uuid.uuid4().hex[:8]}.tmp")
            fd = os.open(candidate, _TMP_FLAGS, 0o666)
            tmp_name = candidate
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, out)
            tmp_name = None
        else:
            try:
                out.write_bytes(data)
            except OSError:
                with contextlib.suppress(OSError):
                    out.unlink()
                raise
    except OSError as e:
        _logger.error("write failed for %s: %s", output_path, e)
        raise ProcessError(ErrorKind.ENCODE_OR_IO_FAILURE, f"Unable to write output: {e}") from e
    finally:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)


def copy_passthrough(source_path: str, output_path: str, config: ProcessorConfig = DEFAULT_CONFIG) -> None:
    try:
        data = Path(source_path).read_bytes()
    except OSError as e:
        raise ProcessError(ErrorKind.ENCODE_OR_IO_FAILURE, f"Unable to read input: {e}") from e
    write_output(data, output_path, config)


def process_image(raw_opts: object, config: ProcessorConfig = DEFAULT_CONFIG) -> ProcessResult:
    """Process an image based on the provided request.

    Raises:
        ProcessError: on any validation, imaging or filesystem failure.
    """
    metrics.inc("pipeline.requests")
    try:
        opts = normalize_and_check_shape(raw_opts, config)
        prepared = prepare_paths_and_checks(opts, config)
        effective_ext, final_out = resolve_final_path(opts, prepared.target_ext, prepared.resolved_out)
        if effective_ext != prepared.target_ext:
            _logger.debug("background removal: %s has no alpha, writing %s", prepared.target_ext, effective_ext)

        if is_svg_passthrough(opts, prepared.source_ext, effective_ext):
            _logger.debug("svg pass-through: %s", opts.input_path)
            copy_passthrough(opts.input_path, final_out, config)
        else:
            bg_key = None
            bg_tolerance = float(config.default_bg_tolerance)
            if opts.remove_bg:
                bg_key = parse_hex_color(opts.bg_color or config.default_bg_color)
                if opts.bg_tolerance is not None:
                    bg_tolerance = opts.bg_tolerance
            suffix, save_kwargs = save_options(effective_ext, opts.quality, config)
            data = render_image(opts, suffix, save_kwargs, bg_key, bg_tolerance)
            write_output(data, final_out, config)
    except ProcessError as e:
        metrics.inc(f"pipeline.failed.{e.kind.value}")
        _logger.warning("processing failed (%s): %s", e.kind.value, e.message)
        raise

    metrics.inc("pipeline.succeeded")
    _logger.info("saved %s", final_out)
    return ProcessResult(output_path=final_out)


def handle_process_request(raw_opts: object, config: ProcessorConfig = DEFAULT_CONFIG) -> dict[str, Any]:
    """Run one request and wrap the outcome in a success/error envelope."""
    try:
        result = process_image(raw_opts, config)
    except ProcessError as e:
        return {"success": False, "error": e.to_dict()}
    except Exception as e:
        _logger.error("unexpected failure: %s", e, exc_info=True)
        err = ProcessError(ErrorKind.ENCODE_OR_IO_FAILURE, str(e))
        return {"success": False, "error": err.to_dict()}
    return {"success": True, "data": result.to_dict()}
