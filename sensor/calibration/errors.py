# sensor/calibration/errors.py

from enum import Enum
from typing import Optional


class ValidationErrorKind(Enum):
    EMPTY_OR_NON_NUMERIC = "EmptyOrNonNumeric"
    OUT_OF_RANGE = "OutOfRange"


class ValidationError(ValueError):
    """Elevation input rejected before any network call."""

    def __init__(self, kind: ValidationErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class TransportError(Exception):
    """A device command failed on the wire or was refused by the device."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CalibrationCancelled(Exception):
    """Raised by a command whose token was cancelled. Expected, never shown to the user."""
