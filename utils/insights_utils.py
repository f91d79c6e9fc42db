# utils/insights_utils.py
import math
import re
from typing import Any, Optional

_NUMERIC_NOISE = re.compile(r"[^0-9.\-]")


def sanitize_number(value: Any) -> float:
    """
    Metric values arrive as numbers, numeric strings, or strings with
    currency noise ("350.00 PLN"). Strings keep only digits, "." and "-".
    Anything unusable, negative or non-finite becomes 0.
    """
    if value is None or value == "" or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        cleaned = _NUMERIC_NOISE.sub("", value)
        try:
            num = float(cleaned)
        except ValueError:
            return 0.0
    else:
        try:
            num = float(value)
        except (TypeError, ValueError):
            return 0.0
    if not math.isfinite(num) or num < 0:
        return 0.0
    return num


def to_int(x: Any, default: int = 0) -> int:
    try:
        if x is None or x == "":
            return default
        return int(float(x))
    except (TypeError, ValueError, OverflowError):
        return default


def to_float(x: Any) -> Optional[float]:
    try:
        if x is None or x == "":
            return None
        return float(x)
    except (TypeError, ValueError):
        return None


def round_count(x: float) -> int:
    """Half-up rounding for conversion counts (round() would give 2 for 2.5)."""
    return int(math.floor(x + 0.5))
