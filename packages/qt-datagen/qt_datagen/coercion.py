"""Parsing of SQL literal text into typed Python values."""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from .schemas import ColumnSchema

_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d %H:%M",
)
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y", "%m/%d/%Y")

_TRUE_LITERALS = {"true", "1", "t", "y", "yes"}
_FALSE_LITERALS = {"false", "0", "f", "n", "no"}


def parse_number(text: Any) -> Optional[Union[int, float]]:
    """Return int/float for numeric text, else None."""
    if isinstance(text, bool):
        return int(text)
    if isinstance(text, (int, float)):
        return text
    if isinstance(text, Decimal):
        return float(text)
    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        pass
    try:
        if not Decimal(s).is_finite():
            return None
    except InvalidOperation:
        return None
    return float(s)


def is_number(text: Any) -> bool:
    return parse_number(text) is not None


def parse_datetime(text: Any) -> Optional[datetime]:
    """Parse date or timestamp text; dates become midnight datetimes."""
    if isinstance(text, datetime):
        return text
    if isinstance(text, date):
        return datetime(text.year, text.month, text.day)
    if text is None:
        return None
    s = str(text).strip()
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def parse_bool(text: Any) -> Optional[bool]:
    if isinstance(text, bool):
        return text
    if isinstance(text, (int, float)):
        return bool(text)
    if text is None:
        return None
    s = str(text).strip().lower()
    if s in _TRUE_LITERALS:
        return True
    if s in _FALSE_LITERALS:
        return False
    return None


def coerce_to_column(value: Any, column: ColumnSchema) -> Any:
    """Convert literal text (or a loose value) to the column's type family.

    Values that cannot be converted are returned unchanged.
    """
    if value is None:
        return None
    family = column.type_family

    if family == "boolean":
        parsed = parse_bool(value)
        return value if parsed is None else parsed
    if family == "integer":
        number = parse_number(value)
        return value if number is None else int(number)
    if family == "decimal":
        number = parse_number(value)
        return value if number is None else float(number)
    if family == "date":
        parsed = parse_datetime(value)
        return value if parsed is None else parsed.date()
    if family == "datetime":
        parsed = parse_datetime(value)
        return value if parsed is None else parsed
    if family == "time":
        if isinstance(value, time):
            return value
        try:
            return time.fromisoformat(str(value))
        except ValueError:
            return value
    return value if isinstance(value, str) else str(value)


def as_comparable(value: Any) -> Any:
    """Normalize a value for ordering comparisons (numbers, datetimes, text)."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    number = parse_number(value)
    if number is not None:
        return number
    parsed = parse_datetime(value)
    if parsed is not None:
        return parsed
    return str(value)
