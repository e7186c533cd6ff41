"""Tests for row value coercion."""

import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from tabdelta.core.values import (
    UNKNOWN_MARKER,
    ValueKind,
    as_naive_utc,
    as_utc,
    classify_value,
    coerce_timestamp,
    format_row,
    format_timestamp,
    format_value,
    parse_timestamp,
)


class TestClassifyValue:
    """Test the closed set of value kinds."""

    def test_kinds(self):
        assert classify_value(None) is ValueKind.NULL
        assert classify_value(datetime(2024, 1, 1)) is ValueKind.TIMESTAMP
        assert classify_value(date(2024, 1, 1)) is ValueKind.TIMESTAMP
        assert classify_value(time(10, 30)) is ValueKind.TIMESTAMP
        assert classify_value(1.5) is ValueKind.FLOAT
        assert classify_value(42) is ValueKind.INTEGER
        assert classify_value(True) is ValueKind.INTEGER
        assert classify_value(b"abc") is ValueKind.BYTES
        assert classify_value(bytearray(b"abc")) is ValueKind.BYTES
        assert classify_value("text") is ValueKind.STRING
        assert classify_value(Decimal("1.10")) is ValueKind.STRING
        assert classify_value(UUID(int=1)) is ValueKind.STRING
        assert classify_value(timedelta(seconds=1)) is ValueKind.OTHER


class TestFormatValue:
    """Test the textual form of each kind."""

    def test_null_is_empty(self):
        assert format_value(None) == ""

    def test_float_two_decimals(self):
        assert format_value(12.5) == "12.50"
        assert format_value(3.0) == "3.00"
        assert format_value(-0.25) == "-0.25"

    def test_integers(self):
        assert format_value(0) == "0"
        assert format_value(-17) == "-17"
        assert format_value(10**20) == "100000000000000000000"

    def test_bool_as_integer(self):
        assert format_value(True) == "1"
        assert format_value(False) == "0"

    def test_bytes_decoded_as_utf8(self):
        assert format_value(b"hello") == "hello"
        assert format_value(memoryview(b"hello")) == "hello"
        assert format_value("é".encode("utf-8")) == "é"

    def test_invalid_utf8_is_replaced(self):
        assert format_value(b"\xff\xfe") == "��"

    def test_string_passthrough(self):
        assert format_value("a,b") == "a,b"
        assert format_value(Decimal("1.10")) == "1.10"
        assert format_value(UUID("12345678-1234-5678-1234-567812345678")) == (
            "12345678-1234-5678-1234-567812345678"
        )

    def test_unknown_type(self):
        assert format_value(object()) == UNKNOWN_MARKER
        assert format_value(timedelta(minutes=5)) == UNKNOWN_MARKER

    def test_format_row(self):
        row = (1, None, "x", 2.5, datetime(2024, 1, 3, 12, 0))
        assert format_row(row) == ["1", "", "x", "2.50", "2024-01-03T12:00:00Z"]


class TestTimestamps:
    """Test timestamp rendering and parsing."""

    def test_naive_taken_as_utc(self):
        assert format_timestamp(datetime(2024, 1, 3, 10, 30)) == "2024-01-03T10:30:00Z"

    def test_datetime_always_carries_offset(self):
        rfc3339 = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})$")
        for value in (
            datetime(2024, 1, 3, 10, 30),
            datetime(2024, 1, 3, 10, 30, 15, 250000),
            datetime(2024, 1, 3, 10, 30, tzinfo=timezone(timedelta(hours=-5))),
        ):
            assert rfc3339.match(format_timestamp(value)), format_timestamp(value)

    def test_utc_uses_z(self):
        value = datetime(2024, 1, 3, 10, 30, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2024-01-03T10:30:00Z"

    def test_offset_kept(self):
        value = datetime(2024, 1, 3, 10, 30, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(value) == "2024-01-03T10:30:00+02:00"

    def test_date_and_time(self):
        assert format_timestamp(date(2024, 1, 3)) == "2024-01-03"
        assert format_timestamp(time(8, 15, 30)) == "08:15:30"

    def test_parse_z(self):
        value = parse_timestamp("2024-01-03T10:30:00Z")
        assert value == datetime(2024, 1, 3, 10, 30, tzinfo=timezone.utc)

    def test_parse_naive_with_space(self):
        assert parse_timestamp("2024-01-03 10:30:00") == datetime(2024, 1, 3, 10, 30)

    def test_written_form_parses_back(self):
        value = datetime(2024, 1, 3, 10, 30, 15, 250000, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(value)) == value


class TestCoerceTimestamp:
    """Test conversion of MAX() results."""

    def test_datetime_unchanged(self):
        value = datetime(2024, 1, 3, 12)
        assert coerce_timestamp(value) is value

    def test_date_becomes_midnight(self):
        assert coerce_timestamp(date(2024, 1, 3)) == datetime(2024, 1, 3)

    def test_text_is_parsed(self):
        assert coerce_timestamp("2024-01-03 12:00:00") == datetime(2024, 1, 3, 12)

    def test_null_and_garbage(self):
        assert coerce_timestamp(None) is None
        assert coerce_timestamp("not a date") is None
        assert coerce_timestamp(17) is None


class TestUtcHelpers:
    """Test UTC normalisation of delta bounds."""

    def test_as_utc(self):
        assert as_utc(datetime(2024, 1, 3, 12)) == datetime(2024, 1, 3, 12, tzinfo=timezone.utc)
        shifted = datetime(2024, 1, 3, 14, tzinfo=timezone(timedelta(hours=2)))
        assert as_utc(shifted) == datetime(2024, 1, 3, 12, tzinfo=timezone.utc)

    def test_as_naive_utc(self):
        value = datetime(2024, 1, 3, 12, tzinfo=timezone.utc)
        assert as_naive_utc(value) == datetime(2024, 1, 3, 12)
        assert as_naive_utc(datetime(2024, 1, 3, 12)) == datetime(2024, 1, 3, 12)
