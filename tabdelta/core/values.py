"""Row value coercion.

Every value read from a result cursor is classified into one ValueKind and
rendered through a fixed formatter for that kind. The set of kinds is closed;
anything the classifier does not recognise renders as ``UNKNOWN_MARKER``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

UNKNOWN_MARKER = "<unknown type>"


class ValueKind(str, Enum):
    """Runtime kinds a cursor value can take."""

    TIMESTAMP = "timestamp"
    NULL = "null"
    FLOAT = "float"
    INTEGER = "integer"
    BYTES = "bytes"
    STRING = "string"
    OTHER = "other"


def classify_value(value: Any) -> ValueKind:
    """Classify a cursor value.

    ``bool`` is an integer kind (rendered 0/1). ``Decimal`` and ``UUID``
    are string kinds: drivers hand them over as exact values whose text form
    is the value itself.

    Examples:
        >>> classify_value(None)
        <ValueKind.NULL: 'null'>
        >>> classify_value(3.5)
        <ValueKind.FLOAT: 'float'>
        >>> classify_value(b"abc")
        <ValueKind.BYTES: 'bytes'>
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, (datetime, date, time)):
        return ValueKind.TIMESTAMP
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BYTES
    if isinstance(value, (str, Decimal, UUID)):
        return ValueKind.STRING
    return ValueKind.OTHER


def as_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC; naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_naive_utc(value: datetime) -> datetime:
    """Return ``value`` as a naive UTC datetime, for drivers that drop offsets."""
    return as_utc(value).replace(tzinfo=None)


def format_timestamp(value: datetime | date | time) -> str:
    """Render a temporal value as RFC-3339.

    Datetimes always carry an offset: naive values are taken as UTC and,
    like UTC values, are written with ``Z``. Dates and times render as
    their ISO-8601 date or time part.

    Examples:
        >>> format_timestamp(datetime(2024, 1, 3, 10, 30))
        '2024-01-03T10:30:00Z'
        >>> format_timestamp(date(2024, 1, 3))
        '2024-01-03'
    """
    if isinstance(value, datetime):
        value = as_utc(value) if value.tzinfo is None else value
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 / RFC-3339 timestamp written by ``format_timestamp``.

    Raises:
        ValueError: If the text is not a timestamp
    """
    text = text.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def coerce_timestamp(value: Any) -> Optional[datetime]:
    """Turn a ``MAX()`` result into a datetime.

    Drivers return a datetime for typed timestamp columns; sources that
    keep timestamps as text (SQLite) return a string.

    Returns:
        The datetime, or None for NULL or values that are not timestamps
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return parse_timestamp(value)
        except ValueError:
            return None
    return None


def _format_bytes(value: bytes | bytearray | memoryview) -> str:
    return bytes(value).decode("utf-8", errors="replace")


_FORMATTERS: dict[ValueKind, Callable[[Any], str]] = {
    ValueKind.TIMESTAMP: format_timestamp,
    ValueKind.NULL: lambda value: "",
    ValueKind.FLOAT: lambda value: f"{value:.2f}",
    ValueKind.INTEGER: lambda value: str(int(value)),
    ValueKind.BYTES: _format_bytes,
    ValueKind.STRING: str,
    ValueKind.OTHER: lambda value: UNKNOWN_MARKER,
}


def format_value(value: Any) -> str:
    """Render a cursor value as the text written to the export.

    Examples:
        >>> format_value(None)
        ''
        >>> format_value(12.5)
        '12.50'
        >>> format_value(True)
        '1'
        >>> format_value(object())
        '<unknown type>'
    """
    return _FORMATTERS[classify_value(value)](value)


def format_row(row: Any) -> list[str]:
    """Render every value of a row."""
    return [format_value(value) for value in row]
