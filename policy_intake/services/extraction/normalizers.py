"""Date and number normalization shared by every extraction stage."""

import re
from typing import Any, Optional, Union

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_ISO = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_NUMERIC_DMY = re.compile(r"^(\d{1,2})[/\-.\s](\d{1,2})[/\-.\s](\d{2,4})$")
_NAMED_DMY = re.compile(r"^(\d{1,2})[/\-.\s]?([A-Za-z]{3,9})[/\-.\s]?(\d{2,4})$")

# A date-shaped token: ISO, numeric d/m/y or day-month-name-year.
DATE_PATTERN = (
    r"\d{4}-\d{2}-\d{2}"
    r"|\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"
    r"|\d{1,2}[/\-. \t]?[A-Za-z]{3,9}[/\-. \t]?\d{2,4}"
)
DATE_TOKEN = re.compile(rf"\b({DATE_PATTERN})\b")

_CURRENCY = re.compile(r"(?i)(?:rs\.?|inr|[₹$€£])")
_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")


def _expand_year(yy: str) -> int:
    if len(yy) == 2:
        value = int(yy)
        return 1900 + value if value > 50 else 2000 + value
    return int(yy)


def _format(year: int, month: int, day: int) -> Optional[str]:
    if not (1 <= day <= 31 and 1 <= month <= 12):
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"


def to_iso(raw: Optional[str]) -> Optional[str]:
    """Normalize a raw date token to ``YYYY-MM-DD``.

    Accepts ``21/09/2025``, ``21-09-25``, ``21 Sep 2025``, ``21-September-2025``
    and already-ISO input. Two-digit years above 50 land in the 1900s. Returns
    ``None`` for anything out of range or unrecognized.

    Examples:
        >>> to_iso("21/09/2025")
        '2025-09-21'
        >>> to_iso("32/01/2025") is None
        True
    """
    if not raw:
        return None
    s = re.sub(r"\s+", " ", str(raw).strip())

    m = _ISO.match(s)
    if m:
        return _format(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _NUMERIC_DMY.match(s)
    if m:
        day, month, yy = m.groups()
        if len(yy) == 3:
            return None
        return _format(_expand_year(yy), int(month), int(day))

    m = _NAMED_DMY.match(s)
    if m:
        day, month_name, yy = m.groups()
        month = MONTHS.get(month_name.lower())
        if month is None or len(yy) == 3:
            return None
        return _format(_expand_year(yy), month, int(day))

    return None


def is_iso_date(value: Any) -> bool:
    return isinstance(value, str) and bool(_ISO.match(value))


def coerce_number(value: Any) -> Optional[Union[int, float]]:
    """Turn a numeric-looking value into a number, or ``None``.

    Thousands separators, whitespace and currency glyphs are stripped.
    Integral results come back as ``int``. Never raises.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        cleaned = _CURRENCY.sub("", value)
        cleaned = re.sub(r"[,\s]", "", cleaned)
        if not _NUMBER.match(cleaned):
            return None
        number = float(cleaned)
    else:
        return None

    if isinstance(number, float):
        if number != number or number in (float("inf"), float("-inf")):
            return None
        if number.is_integer():
            return int(number)
    return number


def money_from_digits(raw: str) -> Optional[int]:
    """``3,80,000`` -> ``380000``; decimals are dropped with the separators."""
    digits = re.sub(r"[^\d]", "", raw or "")
    return int(digits) if digits else None
