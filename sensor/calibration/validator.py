# sensor/calibration/validator.py

import math

from sensor.calibration.errors import ValidationError, ValidationErrorKind

MIN_ELEVATION_FT = 0
# The approximate height of Mt. Everest.
MAX_ELEVATION_FT = 29_000


def validate(raw) -> int:
    """
    Parse user input into an elevation in feet.

    Accepts strings or numbers. Fractional feet are rounded to the nearest
    foot. Raises ValidationError with EMPTY_OR_NON_NUMERIC or OUT_OF_RANGE.
    """
    if isinstance(raw, bool) or raw is None:
        raise ValidationError(ValidationErrorKind.EMPTY_OR_NON_NUMERIC, "Elevation must be a number")

    text = str(raw).strip()
    if not text:
        raise ValidationError(ValidationErrorKind.EMPTY_OR_NON_NUMERIC, "Elevation is required")

    try:
        # whole numbers stay exact; float() would overflow long digit strings to inf
        value = int(text)
    except ValueError:
        value = _parse_fraction(text)

    feet = value if isinstance(value, int) else int(math.floor(value + 0.5))
    if value < MIN_ELEVATION_FT or value > MAX_ELEVATION_FT:
        raise ValidationError(
            ValidationErrorKind.OUT_OF_RANGE,
            f"Elevation must be between {MIN_ELEVATION_FT} and {MAX_ELEVATION_FT} ft",
        )
    return feet


def _parse_fraction(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise ValidationError(ValidationErrorKind.EMPTY_OR_NON_NUMERIC, f"'{text}' is not a number") from None
    if not math.isfinite(value):
        raise ValidationError(ValidationErrorKind.EMPTY_OR_NON_NUMERIC, f"'{text}' is not a number")
    return value
