"""Error taxonomy for the transformation pipeline.

Every failure surfaces as a single `ProcessError`. Callers branch on `kind`;
`message` keeps the wording the host UI already matches on
("Input file not found", "too large", "out of range", "Invalid target format").
"""

from __future__ import annotations

from enum import Enum
from typing import Any

PROCESS_ERROR_CODE = "PROCESS_ERROR"


class ErrorKind(str, Enum):
    INVALID_REQUEST = "InvalidRequest"
    INPUT_NOT_FOUND = "InputNotFound"
    NOT_A_FILE = "NotAFile"
    FILE_TOO_LARGE = "FileTooLarge"
    INVALID_DIMENSIONS = "InvalidDimensions"
    DIMENSION_OUT_OF_RANGE = "DimensionOutOfRange"
    SIZE_TOO_LARGE = "SizeTooLarge"
    INVALID_FORMAT = "InvalidFormat"
    INVALID_OUTPUT_PATH = "InvalidOutputPath"
    UNSUPPORTED_FORMAT = "UnsupportedFormat"
    ENCODE_OR_IO_FAILURE = "EncodeOrIOFailure"

    @property
    def is_validation(self) -> bool:
        """True for bad-request kinds, which are detected before any decode."""
        return self is not ErrorKind.ENCODE_OR_IO_FAILURE


class ProcessError(Exception):
    """A failed transformation request."""

    code = PROCESS_ERROR_CODE

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "kind": self.kind.value, "message": self.message}

    def __repr__(self) -> str:
        return f"ProcessError({self.kind.value}, {self.message!r})"
