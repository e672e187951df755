"""Value coercion rules shared by the evaluator and the built-in functions.

Script values are plain Python objects: str, int, float, bool, None,
datetime, lists (from split) and context mappings. The helpers here define
how they convert to strings, numbers and booleans.
"""

import math
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

_NUMERIC_TEXT = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_TEXT = re.compile(r"^[+-]?\d+$")


def to_string(value: Any) -> str:
    """Convert a value to its output text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(to_string(item) for item in value)
    return str(value)


def to_number(value: Any) -> int | float:
    """Convert a value to a number; NaN when it has no numeric reading.

    Empty strings count as zero. Booleans count as 1/0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        if _INTEGER_TEXT.match(text):
            return int(text)
        if _NUMERIC_TEXT.match(text):
            return float(text)
    return math.nan


def is_numeric(value: Any) -> bool:
    """Return True if value is a number or a string holding one."""
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        return bool(_NUMERIC_TEXT.match(value.strip()))
    return False


def to_bool(value: Any) -> bool:
    """Truthiness coercion used by conditions.

    A boolean is used as-is, a number is truthy iff non-zero, a string is
    truthy iff it equals "true" (any case) or is non-empty.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return not math.isnan(value) and value != 0
    if isinstance(value, str):
        return value.lower() == "true" or value != ""
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) > 0
    return True


def loose_equals(left: Any, right: Any) -> bool:
    """Equality with type coercion.

    Numbers compare numerically against numeric strings, booleans compare as
    1/0, and a missing value only equals another missing value.
    """
    if left is None or right is None:
        return left is None and right is None

    if isinstance(left, bool):
        left = int(left)
    if isinstance(right, bool):
        right = int(right)

    left_is_number = isinstance(left, (int, float))
    right_is_number = isinstance(right, (int, float))

    if left_is_number and right_is_number:
        return left == right
    if left_is_number and isinstance(right, str):
        return left == to_number(right)
    if isinstance(left, str) and right_is_number:
        return to_number(left) == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right

    return to_string(left) == to_string(right)


def compare_numbers(operator: str, left: Any, right: Any) -> bool:
    """Ordering comparison; both sides are coerced to numbers."""
    left_number = to_number(left)
    right_number = to_number(right)

    if operator == "<":
        return left_number < right_number
    if operator == "<=":
        return left_number <= right_number
    if operator == ">":
        return left_number > right_number
    if operator == ">=":
        return left_number >= right_number
    raise ValueError(f"Unknown ordering operator: {operator}")
