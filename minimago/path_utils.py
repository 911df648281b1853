"""Path normalization utilities.

- Use absolute paths when interacting with the filesystem.
- Sandbox checks compare fully resolved paths, so `..` segments and symlinks
  cannot escape the allowed directory.
"""

from __future__ import annotations

import os
from pathlib import Path

_DRIVE_PREFIX_LEN = 2


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def abs_path(path: str | os.PathLike) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        # strict=False avoids exceptions for non-existent paths.
        return p.resolve(strict=False)
    except (OSError, RuntimeError):
        return p.absolute()


def abs_path_str(path: str | os.PathLike) -> str:
    """Absolute, OS-native path string (Windows uses backslashes)."""
    return _normalize_drive_letter(str(abs_path(path)))


def is_within_dir(path: str | os.PathLike, directory: str | os.PathLike) -> bool:
    """True when `path` resolves to a location strictly inside `directory`."""
    target = abs_path(path)
    base = abs_path(directory)
    if target == base:
        return False
    return target.is_relative_to(base)


def extension_of(path: str | os.PathLike) -> str:
    """Lower-case extension without the dot ("" when there is none)."""
    return Path(path).suffix[1:].lower()


def with_extension(path: str | os.PathLike, ext: str) -> str:
    return str(Path(path).with_suffix(f".{ext}"))
