"""Lazy pyvips access.

pyvips needs libvips at import time, so the module is resolved on first use.
Operation caches are disabled once; every request decodes its source afresh.
"""

import contextlib
import os
from typing import Any

from .logger import get_logger

_logger = get_logger("vips")

_LIBVIPS_BIN = os.environ.get("LIBVIPS_BIN")
if _LIBVIPS_BIN and os.name == "nt":
    # Best-effort only; the import below reports a missing libvips
    with contextlib.suppress(OSError):
        os.add_dll_directory(_LIBVIPS_BIN)

_pyvips: Any | None = None


def get_pyvips() -> Any:
    """Return the pyvips module, raising ImportError if it cannot be loaded."""
    global _pyvips
    if _pyvips is None:
        try:
            import pyvips  # type: ignore
        except (ImportError, OSError) as e:
            _logger.error("pyvips requested but not available: %s", e)
            raise ImportError("pyvips is not available") from e

        # Avoid memory growth across requests
        pyvips.cache_set_max(0)
        pyvips.cache_set_max_mem(0)
        pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


def image_size(path: str) -> tuple[int, int]:
    """(width, height) from the file header, without decoding pixels."""
    pyvips = get_pyvips()
    image = pyvips.Image.new_from_file(path, access="sequential")
    return int(image.width), int(image.height)
