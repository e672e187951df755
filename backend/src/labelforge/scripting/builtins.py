"""Built-in functions for the label-scripting language.

This module registers all built-in functions with the FunctionRegistry.
Call register_all_builtins() at application startup.

Categories:
- String: left, right, mid, replace, len, split, chr, lcase, ucase, trim
- Conversion: cstr, cint, cdbl
- Predicate: isnumeric, isempty
- Date: now, format
- Number: formatnumber
- Method: ToString, ToUpper, ToLower, Replace, Substring

An omitted argument (e.g. `formatnumber(x, , , -1)`) arrives as None and
takes the parameter's default.
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from labelforge.scripting.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from labelforge.scripting.values import is_numeric, to_number, to_string


def register_all_builtins() -> None:
    """Register all built-in functions with the FunctionRegistry."""
    _register_string_functions()
    _register_conversion_functions()
    _register_predicate_functions()
    _register_date_functions()
    _register_number_functions()
    _register_methods()


def _integer(value: Any, name: str, default: int | None = None) -> int:
    """Coerce an argument to an int, truncating toward negative infinity."""
    if value is None and default is not None:
        return default
    number = to_number(value)
    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number):
            raise ValueError(f"{name} expects a number, got {to_string(value)!r}")
        return math.floor(number)
    return number


def _number(value: Any, name: str) -> int | float:
    number = to_number(value)
    if isinstance(number, float) and math.isnan(number):
        raise ValueError(f"{name} expects a number, got {to_string(value)!r}")
    return number


# -----------------------------------------------------------------------------
# String Functions
# -----------------------------------------------------------------------------


def _left(value: Any, length: Any) -> str:
    """Return the first length characters."""
    return to_string(value)[:max(0, _integer(length, "length"))]


def _right(value: Any, length: Any) -> str:
    """Return the last length characters."""
    text = to_string(value)
    count = _integer(length, "length")
    if count <= 0:
        return ""
    return text[max(0, len(text) - count):]


def _mid(value: Any, start: Any, length: Any = None) -> str:
    """Return a substring; start is 1-indexed."""
    text = to_string(value)
    start_index = max(0, _integer(start, "start") - 1)
    if length is None:
        return text[start_index:]
    return text[start_index:start_index + max(0, _integer(length, "length"))]


def _replace(value: Any, find: Any, replace_with: Any) -> str:
    """Replace every occurrence of find."""
    text = to_string(value)
    target = to_string(find)
    if target == "":
        return text
    return text.replace(target, to_string(replace_with))


def _len(value: Any) -> int:
    """Return length of string (or of a split result)."""
    if isinstance(value, (list, tuple)):
        return len(value)
    return len(to_string(value))


def _split(value: Any, delimiter: Any = None) -> list[str]:
    text = to_string(value)
    separator = " " if delimiter is None else to_string(delimiter)
    if separator == "":
        return list(text)
    return text.split(separator)


def _chr(code: Any) -> str:
    return chr(_integer(code, "chr"))


def _lcase(value: Any) -> str:
    return to_string(value).lower()


def _ucase(value: Any) -> str:
    return to_string(value).upper()


def _trim(value: Any) -> str:
    return to_string(value).strip()


def _register_string_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="left",
            description="Returns the leftmost characters of a string",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The source string"),
                FunctionParameter("length", "number", "Number of characters"),
            ],
            return_type="string",
            examples=['left(Shipment.Receiver.ZipCode, 3)'],
            implementation=_left,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="right",
            description="Returns the rightmost characters of a string",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The source string"),
                FunctionParameter("length", "number", "Number of characters"),
            ],
            return_type="string",
            examples=['right(Parcel.SequenceNo, 4)'],
            implementation=_right,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="mid",
            description="Returns a substring starting at a 1-indexed position",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The source string"),
                FunctionParameter("start", "number", "Start position (1 = first character)"),
                FunctionParameter("length", "number", "Number of characters", required=False),
            ],
            return_type="string",
            examples=['mid(Parcel.SequenceNo, 5, 10)', 'mid("ABCDEF", 3)'],
            implementation=_mid,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="replace",
            description="Replaces every occurrence of a substring",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The source string"),
                FunctionParameter("find", "string", "Text to find"),
                FunctionParameter("replaceWith", "string", "Replacement text"),
            ],
            return_type="string",
            examples=['replace(Shipment.Receiver.ZipCode, " ", "")'],
            implementation=_replace,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="len",
            description="Returns the length of a string",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The value to measure")
            ],
            return_type="number",
            examples=['len(Shipment.OrderNo) > 8'],
            implementation=_len,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="split",
            description="Splits a string into a list of parts",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The source string"),
                FunctionParameter(
                    "delimiter", "string", "Separator", required=False, default=" "
                ),
            ],
            return_type="array",
            examples=['split(Shipment.Receiver.Address1, ",")'],
            implementation=_split,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="chr",
            description="Returns the character for a character code",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("code", "number", "Character code")
            ],
            return_type="string",
            examples=['"A" & chr(13) & chr(10) & "B"'],
            implementation=_chr,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="lcase",
            description="Converts a string to lowercase",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The value to convert")
            ],
            return_type="string",
            examples=['lcase(Shipment.Receiver.ISOCountry)'],
            implementation=_lcase,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="ucase",
            description="Converts a string to uppercase",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The value to convert")
            ],
            return_type="string",
            examples=['ucase(Shipment.Receiver.City)'],
            implementation=_ucase,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="trim",
            description="Removes leading and trailing whitespace",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("value", "string", "The value to trim")
            ],
            return_type="string",
            examples=['trim(Shipment.Receiver.Address2)'],
            implementation=_trim,
        )
    )


# -----------------------------------------------------------------------------
# Conversion Functions
# -----------------------------------------------------------------------------


def _cstr(value: Any) -> str:
    return to_string(value)


def _cint(value: Any) -> int:
    """Convert to an integer, rounding down."""
    return _integer(value, "cint")


def _cdbl(value: Any) -> float:
    return float(_number(value, "cdbl"))


def _register_conversion_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="cstr",
            description="Converts a value to a string",
            category=FunctionCategory.CONVERSION,
            parameters=[
                FunctionParameter("value", "any", "The value to convert")
            ],
            return_type="string",
            examples=['cstr(Parcel.NumberOfParcels)'],
            implementation=_cstr,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="cint",
            description="Converts a value to an integer (rounding down)",
            category=FunctionCategory.CONVERSION,
            parameters=[
                FunctionParameter("value", "any", "The value to convert")
            ],
            return_type="number",
            examples=['cint(Parcel.Weight)'],
            implementation=_cint,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="cdbl",
            description="Converts a value to a decimal number",
            category=FunctionCategory.CONVERSION,
            parameters=[
                FunctionParameter("value", "any", "The value to convert")
            ],
            return_type="number",
            examples=['cdbl(Parcel.Weight) > 20'],
            implementation=_cdbl,
        )
    )


# -----------------------------------------------------------------------------
# Predicate Functions
# -----------------------------------------------------------------------------


def _is_empty(value: Any) -> bool:
    """Return True if value is missing or an empty string."""
    return value is None or value == ""


def _register_predicate_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="isnumeric",
            description="Returns true if the value is a number or numeric text",
            category=FunctionCategory.PREDICATE,
            parameters=[
                FunctionParameter("value", "any", "The value to check")
            ],
            return_type="boolean",
            examples=['isnumeric(Shipment.Receiver.ZipCode)'],
            implementation=is_numeric,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="isempty",
            description="Returns true if the value is missing or an empty string",
            category=FunctionCategory.PREDICATE,
            parameters=[
                FunctionParameter("value", "any", "The value to check")
            ],
            return_type="boolean",
            examples=['isempty(Shipment.Receiver.Address2)'],
            implementation=_is_empty,
        )
    )


# -----------------------------------------------------------------------------
# Date Functions
# -----------------------------------------------------------------------------

# Longest token first so "mm" is never read as two "m" tokens
_DATE_TOKENS = re.compile(r"yyyy|yy|MM|M|dd|d|HH|H|hh|h|mm|m|ss|s")

_NUMBER_PATTERN = re.compile(r"^[0#,]*(\.[0#]*)?$")


def _now() -> datetime:
    """Return the current local date and time."""
    return datetime.now()


def format_date(value: date, pattern: str) -> str:
    """Format a date with the yyyy/MM/dd/HH/hh/mm/ss token vocabulary."""
    moment = value if isinstance(value, datetime) else datetime(value.year, value.month, value.day)
    hour12 = moment.hour % 12 or 12

    replacements = {
        "yyyy": f"{moment.year:04d}",
        "yy": f"{moment.year % 100:02d}",
        "MM": f"{moment.month:02d}",
        "M": str(moment.month),
        "dd": f"{moment.day:02d}",
        "d": str(moment.day),
        "HH": f"{moment.hour:02d}",
        "H": str(moment.hour),
        "hh": f"{hour12:02d}",
        "h": str(hour12),
        "mm": f"{moment.minute:02d}",
        "m": str(moment.minute),
        "ss": f"{moment.second:02d}",
        "s": str(moment.second),
    }
    return _DATE_TOKENS.sub(lambda m: replacements[m.group()], pattern)


def _fixed(number: int | float, decimals: int) -> str:
    """Fixed-point text with half-up rounding."""
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(str(number)).quantize(quantum, rounding=ROUND_HALF_UP))


def _group_digits(text: str) -> str:
    sign = "-" if text.startswith("-") else ""
    whole, dot, fraction = text.lstrip("-").partition(".")
    return f"{sign}{int(whole):,}{dot}{fraction}"


def _format(value: Any, pattern: Any = None) -> str:
    """Format a date or number with a pattern.

    Dates use the token vocabulary of format_date. Number patterns are made
    of 0, # and , with an optional decimal part: the decimal places are the
    digits after ".", and a "," turns on thousands grouping.
    """
    pattern = to_string(pattern)

    if isinstance(value, date):
        return format_date(value, pattern)

    if is_numeric(value) and pattern and _NUMBER_PATTERN.match(pattern):
        _, _, fraction = pattern.partition(".")
        text = _fixed(to_number(value), len(fraction))
        if "," in pattern:
            text = _group_digits(text)
        return text

    return to_string(value)


def _register_date_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="now",
            description="Returns the current local date and time",
            category=FunctionCategory.DATE,
            parameters=[],
            return_type="datetime",
            examples=['format(now(), "yyyy-MM-dd")'],
            implementation=_now,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="format",
            description="Formats a date (yyyy, MM, dd, HH, mm, ss, ...) or a number (0.00, #,##0.00)",
            category=FunctionCategory.DATE,
            parameters=[
                FunctionParameter("value", "date|number", "The value to format"),
                FunctionParameter("pattern", "string", "Format pattern"),
            ],
            return_type="string",
            examples=[
                'format(now(), "dd/MM/yyyy HH:mm")',
                'format(Parcel.Weight, "0.00")',
            ],
            implementation=_format,
        )
    )


# -----------------------------------------------------------------------------
# Number Functions
# -----------------------------------------------------------------------------


def _format_number(
    value: Any,
    decimals: Any = None,
    leading_digit: Any = None,
    parens_for_negative: Any = None,
    group_digits: Any = None,
) -> str:
    """Format a number with fixed decimals.

    leading_digit = 0 drops the zero before the decimal point of fractions,
    parens_for_negative wraps negative numbers in parentheses instead of a
    minus sign, group_digits inserts thousands separators.
    """
    number = _number(value, "formatnumber")
    places = max(0, _integer(decimals, "decimals", default=2))

    text = _fixed(number, places)
    negative = text.startswith("-")
    text = text.lstrip("-")

    if _integer(group_digits, "groupDigits", default=0):
        text = _group_digits(text)
    if _integer(leading_digit, "leadingDigit", default=-1) == 0 and text.startswith("0."):
        text = text[1:]

    if negative and _integer(parens_for_negative, "useParensForNegative", default=0):
        return f"({text})"
    return f"-{text}" if negative else text


def _register_number_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="formatnumber",
            description="Formats a number with fixed decimals, optional grouping and parentheses for negatives",
            category=FunctionCategory.NUMBER,
            parameters=[
                FunctionParameter("value", "number", "The number to format"),
                FunctionParameter("decimals", "number", "Decimal places", required=False, default=2),
                FunctionParameter(
                    "leadingDigit", "number", "0 drops the leading zero of fractions",
                    required=False, default=-1,
                ),
                FunctionParameter(
                    "useParensForNegative", "number", "Non-zero wraps negatives in parentheses",
                    required=False, default=0,
                ),
                FunctionParameter(
                    "groupDigits", "number", "Non-zero inserts thousands separators",
                    required=False, default=0,
                ),
            ],
            return_type="string",
            examples=[
                'formatnumber(Parcel.Weight, 1)',
                'formatnumber(-1234.5, 2, -1, 1, 1)',
            ],
            implementation=_format_number,
        )
    )


# -----------------------------------------------------------------------------
# Methods (value.Name(args))
# -----------------------------------------------------------------------------


def _to_string_method(value: Any, pattern: Any = None) -> str:
    """Convert to text; dates (or ISO date text) are formatted when a pattern is given."""
    if pattern is None:
        return to_string(value)
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if isinstance(value, date):
        return format_date(value, to_string(pattern))
    return to_string(value)


def _substring(value: Any, start: Any, length: Any = None) -> str:
    """Return a substring; start is 0-indexed."""
    text = to_string(value)
    start_index = max(0, _integer(start, "start"))
    if length is None:
        return text[start_index:]
    return text[start_index:start_index + max(0, _integer(length, "length"))]


def _register_methods() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="ToString",
            description="Converts the value to text, formatting dates with an optional pattern",
            category=FunctionCategory.METHOD,
            parameters=[
                FunctionParameter("pattern", "string", "Date pattern", required=False)
            ],
            return_type="string",
            examples=['Shipment.cr_time_db.ToString("dd/MM/yyyy")'],
            implementation=_to_string_method,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="ToUpper",
            description="Converts the value to uppercase",
            category=FunctionCategory.METHOD,
            parameters=[],
            return_type="string",
            examples=['Shipment.Receiver.City.ToUpper()'],
            implementation=_ucase,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="ToLower",
            description="Converts the value to lowercase",
            category=FunctionCategory.METHOD,
            parameters=[],
            return_type="string",
            examples=['Shipment.Receiver.ISOCountry.ToLower()'],
            implementation=_lcase,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="Replace",
            description="Replaces every occurrence of a substring in the value",
            category=FunctionCategory.METHOD,
            parameters=[
                FunctionParameter("find", "string", "Text to find"),
                FunctionParameter("replaceWith", "string", "Replacement text"),
            ],
            return_type="string",
            examples=['Shipment.Receiver.ZipCode.Replace(" ", "")'],
            implementation=_replace,
        )
    )

    FunctionRegistry.register(
        FunctionDefinition(
            name="Substring",
            description="Returns a substring starting at a 0-indexed position",
            category=FunctionCategory.METHOD,
            parameters=[
                FunctionParameter("start", "number", "Start index (0 = first character)"),
                FunctionParameter("length", "number", "Number of characters", required=False),
            ],
            return_type="string",
            examples=['Parcel.SequenceNo.Substring(0, 4)'],
            implementation=_substring,
        )
    )
