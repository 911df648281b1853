from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .logger import get_logger

_logger = get_logger("config")

ALLOWED_FORMATS = ("png", "jpg", "jpeg", "webp", "avif", "svg")

POLICY_GENERATE = "generate"
POLICY_SANDBOX = "sandbox"
OUTPUT_POLICIES = (POLICY_GENERATE, POLICY_SANDBOX)


def default_output_dir() -> str:
    """The user's Downloads folder, where generated outputs land by default."""
    return str(Path.home() / "Downloads")


@dataclass(frozen=True)
class ProcessorConfig:
    """Limits, defaults and policies shared by every request."""

    max_pixels: int = 100_000_000
    max_file_bytes: int = 100 * 1024 * 1024
    max_dimension: int = 20_000
    default_quality: int = 80
    min_quality: int = 1
    max_quality: int = 100
    avif_min_quality: int = 10
    avif_max_quality: int = 80
    default_bg_color: str = "#ffffff"
    default_bg_tolerance: int = 20
    allowed_formats: tuple[str, ...] = ALLOWED_FORMATS
    # "generate": unique name in output_dir, explicit outputPath ignored.
    # "sandbox": explicit outputPath must stay inside the input's directory.
    output_policy: str = POLICY_GENERATE
    output_dir: str | None = None
    file_tag: str = "minimago"
    atomic_write: bool = True
    strict_crop: bool = False

    def __post_init__(self) -> None:
        if self.output_policy not in OUTPUT_POLICIES:
            raise ValueError(f"unknown output_policy: {self.output_policy!r}")
        if self.min_quality > self.max_quality:
            raise ValueError("min_quality must not exceed max_quality")

    def resolved_output_dir(self) -> str:
        return self.output_dir or default_output_dir()


DEFAULT_CONFIG = ProcessorConfig()

_FIELDS = {f.name for f in dataclasses.fields(ProcessorConfig)}


def config_from_mapping(data: dict[str, Any], base: ProcessorConfig = DEFAULT_CONFIG) -> ProcessorConfig:
    """Overlay known keys from `data` on `base`; unknown keys are logged and dropped."""
    known: dict[str, Any] = {}
    for key, value in data.items():
        if key not in _FIELDS:
            _logger.warning("config: ignoring unknown key %r", key)
            continue
        if key == "allowed_formats" and isinstance(value, list):
            value = tuple(str(v).lower() for v in value)
        known[key] = value
    return dataclasses.replace(base, **known)


def load_config(path: str | os.PathLike | None = None) -> ProcessorConfig:
    """Load a JSON config file, falling back to defaults when it is missing or unreadable.

    Without an explicit path the MINIMAGO_CONFIG environment variable is consulted.
    """
    if path is None:
        path = os.getenv("MINIMAGO_CONFIG") or None
    if path is None:
        return DEFAULT_CONFIG

    try:
        if os.path.exists(path):
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                config = config_from_mapping(data)
                _logger.debug("config loaded: %s", path)
                return config
            _logger.warning("config ignored, top level is not an object: %s", path)
        else:
            _logger.debug("config file not found: %s", path)
    except (OSError, ValueError, TypeError) as e:
        _logger.warning("config load failed: %s", e)
    return DEFAULT_CONFIG
