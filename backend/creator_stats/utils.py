"""Lenient number parsing for upstream JSON values."""

import math
from typing import Any, Optional, Union


def to_int(value: Any) -> Optional[int]:
    """Parse an integer from an int, integral float or numeric string.

    Returns None for anything else, including booleans.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def to_number(value: Any, default: Union[int, float] = 0) -> Union[int, float]:
    """Parse a finite number, falling back to ``default`` for anything else."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        parsed = to_int(value)
        if parsed is not None:
            return parsed
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if isinstance(value, float):
        return value if math.isfinite(value) else default
    return default
