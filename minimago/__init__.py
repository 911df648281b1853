"""minimago - image transformation pipeline.

Validates a transformation request, checks it against file and pixel ceilings,
applies background removal, crop and resize, and encodes to PNG, JPEG, WebP or
AVIF through libvips.

Usage:
    from minimago import process_image

    result = process_image({"inputPath": "photo.jpg", "format": "webp", "width": 800})
    print(result.output_path)

Importing the package does not load PySide6; the Qt adapters live in
`minimago.worker`.
"""

from .config import DEFAULT_CONFIG, ProcessorConfig, load_config
from .errors import ErrorKind, ProcessError
from .processor import handle_process_request, process_image
from .types import CropRect, PixelBuffer, ProcessOptions, ProcessResult

__all__ = [
    "DEFAULT_CONFIG",
    "CropRect",
    "ErrorKind",
    "PixelBuffer",
    "ProcessError",
    "ProcessOptions",
    "ProcessResult",
    "ProcessorConfig",
    "handle_process_request",
    "load_config",
    "process_image",
]
