"""Input checks and output path resolution.

Everything here runs before any pixel is decoded: the file size ceiling and the
pixel ceiling guard the decode itself.
"""

from __future__ import annotations

import os
import stat
import time
import uuid
from pathlib import Path

from .config import DEFAULT_CONFIG, POLICY_SANDBOX, ProcessorConfig
from .errors import ErrorKind, ProcessError
from .logger import get_logger
from .path_utils import abs_path_str, extension_of, is_within_dir, with_extension
from .types import CropRect, PreparedPaths, ProcessOptions
from .vips import image_size

_logger = get_logger("paths")

_ALPHALESS_EXTS = ("jpg", "jpeg")
_FORMAT_ALIASES = {"jpeg": "jpg"}


def validate_crop_bounds(img_width: int, img_height: int, crop: tuple[int, int, int, int]) -> bool:
    """Validate that crop rectangle is within image bounds.

    Args:
        img_width: Original image width
        img_height: Original image height
        crop: (left, top, width, height) crop rectangle

    Returns:
        True if crop is valid, False otherwise
    """
    left, top, width, height = crop
    if left < 0 or top < 0:
        return False
    if width <= 0 or height <= 0:
        return False
    if left + width > img_width:
        return False
    return not top + height > img_height


def is_svg_passthrough(opts: ProcessOptions, source_ext: str, target_ext: str) -> bool:
    """An SVG source going to SVG with nothing to change is copied byte for byte."""
    return source_ext == "svg" and target_ext == "svg" and not opts.changes_geometry and not opts.remove_bg


def check_svg_support(source_ext: str, target_ext: str) -> None:
    """SVG is neither rasterized nor generated; only pass-through copies are allowed."""
    if target_ext == "svg":
        raise ProcessError(ErrorKind.UNSUPPORTED_FORMAT, "SVG output format is not supported yet")
    if source_ext == "svg":
        raise ProcessError(ErrorKind.UNSUPPORTED_FORMAT, "SVG input is only supported as an unchanged copy")


def check_input_file(path: str, config: ProcessorConfig = DEFAULT_CONFIG) -> os.stat_result:
    try:
        st = os.stat(path)
    except OSError as e:
        raise ProcessError(ErrorKind.INPUT_NOT_FOUND, "Input file not found") from e

    if not stat.S_ISREG(st.st_mode):
        raise ProcessError(ErrorKind.NOT_A_FILE, "Input path is not a file")
    if st.st_size > config.max_file_bytes:
        raise ProcessError(ErrorKind.FILE_TOO_LARGE, "Input file too large")
    return st


def check_pixel_budget(
    opts: ProcessOptions, src_width: int, src_height: int, config: ProcessorConfig = DEFAULT_CONFIG
) -> tuple[int, int]:
    """Estimate output size from requested or source dimensions and enforce the pixel ceiling."""
    est_width = opts.width or src_width
    est_height = opts.height or src_height
    if est_width <= 0 or est_height <= 0:
        raise ProcessError(ErrorKind.INVALID_DIMENSIONS, "Invalid dimensions")

    # Python ints do not overflow, so the product is exact.
    if est_width * est_height > config.max_pixels:
        raise ProcessError(ErrorKind.SIZE_TOO_LARGE, "Requested size too large")

    if opts.crop is not None and not validate_crop_bounds(src_width, src_height, opts.crop.as_tuple()):
        raise ProcessError(
            ErrorKind.INVALID_DIMENSIONS,
            f"Crop bounds {_fmt_crop(opts.crop)} invalid for image size {src_width}x{src_height}",
        )
    return est_width, est_height


def _fmt_crop(crop: CropRect) -> str:
    return f"({crop.x}, {crop.y}, {crop.width}, {crop.height})"


def generated_output_name(input_path: str, target_ext: str, config: ProcessorConfig = DEFAULT_CONFIG) -> str:
    """`<stem>-<tag>-<epoch ms>-<random>.<ext>`; the random part keeps concurrent requests apart."""
    stem = Path(input_path).stem
    return f"{stem}-{config.file_tag}-{time.time_ns() // 1_000_000}-{uuid.uuid4().hex[:8]}.{target_ext}"


def _same_format(a: str, b: str) -> bool:
    return _FORMAT_ALIASES.get(a, a) == _FORMAT_ALIASES.get(b, b)


def explicit_output_format(opts: ProcessOptions, config: ProcessorConfig = DEFAULT_CONFIG) -> str | None:
    """Format implied by an explicit outputPath's extension, when that path is honoured."""
    if config.output_policy != POLICY_SANDBOX or not opts.output_path:
        return None
    ext = extension_of(opts.output_path)
    return ext if ext in config.allowed_formats else None


def resolve_output_path(opts: ProcessOptions, target_ext: str, config: ProcessorConfig = DEFAULT_CONFIG) -> str:
    name = generated_output_name(opts.input_path, target_ext, config)

    if config.output_policy != POLICY_SANDBOX:
        if opts.output_path:
            _logger.debug("ignoring explicit outputPath under generate policy: %s", opts.output_path)
        return abs_path_str(Path(config.resolved_output_dir()) / name)

    input_dir = Path(abs_path_str(opts.input_path)).parent
    if not opts.output_path:
        return abs_path_str(input_dir / name)

    candidate = Path(opts.output_path).expanduser()
    if not candidate.is_absolute():
        candidate = input_dir / candidate
    if not is_within_dir(candidate, input_dir):
        raise ProcessError(ErrorKind.INVALID_OUTPUT_PATH, "Output path must be inside the input directory")

    ext = extension_of(candidate)
    if not ext:
        candidate = Path(with_extension(candidate, target_ext))
    elif not _same_format(ext, target_ext):
        raise ProcessError(
            ErrorKind.INVALID_OUTPUT_PATH,
            f"Output path extension .{ext} does not match target format {target_ext}",
        )
    return abs_path_str(candidate)


def prepare_paths_and_checks(opts: ProcessOptions, config: ProcessorConfig = DEFAULT_CONFIG) -> PreparedPaths:
    """Check the input file and the requested size, and compute the output path.

    Raises:
        ProcessError: InputNotFound, NotAFile, FileTooLarge, InvalidDimensions,
            SizeTooLarge, InvalidOutputPath, or EncodeOrIOFailure when the
            header cannot be read.
    """
    check_input_file(opts.input_path, config)

    source_ext = extension_of(opts.input_path)
    target_ext = (opts.format or explicit_output_format(opts, config) or source_ext).lower()
    if target_ext not in config.allowed_formats:
        # Only reachable through the source extension; explicit formats were validated already.
        raise ProcessError(ErrorKind.INVALID_FORMAT, "Invalid target format")

    est_width = est_height = 0
    if not is_svg_passthrough(opts, source_ext, target_ext):
        check_svg_support(source_ext, target_ext)
        try:
            src_width, src_height = image_size(opts.input_path)
        except Exception as e:
            _logger.warning("metadata probe failed for %s: %s", opts.input_path, e)
            raise ProcessError(ErrorKind.ENCODE_OR_IO_FAILURE, f"Unable to read image: {e}") from e
        est_width, est_height = check_pixel_budget(opts, src_width, src_height, config)

    resolved_out = resolve_output_path(opts, target_ext, config)
    _logger.debug(
        "prepared %s: %s -> %s (%dx%d)", opts.input_path, source_ext, resolved_out, est_width, est_height
    )
    return PreparedPaths(
        source_ext=source_ext,
        target_ext=target_ext,
        resolved_out=resolved_out,
        est_width=est_width,
        est_height=est_height,
    )


def resolve_final_path(opts: ProcessOptions, target_ext: str, resolved_out: str) -> tuple[str, str]:
    """Force PNG when background removal targets a format without alpha.

    Returns (effective_ext, final_out_path).
    """
    if opts.remove_bg and target_ext in _ALPHALESS_EXTS:
        return "png", with_extension(resolved_out, "png")
    return target_ext, resolved_out
