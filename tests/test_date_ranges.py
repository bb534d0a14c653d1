# ============================================================================
# Date Range & Filter Parsing Tests
# ============================================================================
import pytest
from datetime import datetime, timedelta

from app.core.exceptions import InvalidDateRange, InvalidFilters
from app.services.reporting.date_ranges import (
    parse_date_range, parse_datetime, parse_filters, shift_months, month_start
)

NOW = datetime(2024, 5, 15, 13, 30)

class TestParseDateRange:
    """Tests for resolving request parameters into a window"""

    def test_defaults_to_last_30_days(self):
        start, end = parse_date_range(now=NOW)

        assert end == NOW
        assert start == NOW - timedelta(days=30)

    def test_explicit_dates(self):
        start, end = parse_date_range("2024-01-01", "2024-01-31", now=NOW)

        assert start == datetime(2024, 1, 1)
        # A bare end date covers the whole day
        assert end.date() == datetime(2024, 1, 31).date()
        assert end.hour == 23 and end.minute == 59

    def test_only_from(self):
        start, end = parse_date_range(date_from="2024-05-01", now=NOW)

        assert start == datetime(2024, 5, 1)
        assert end == NOW

    def test_only_to(self):
        start, end = parse_date_range(date_to="2024-04-30T00:00:00", now=NOW)

        assert end == datetime(2024, 4, 30)
        assert start == datetime(2024, 3, 31)

    def test_from_after_to_rejected(self):
        with pytest.raises(InvalidDateRange):
            parse_date_range("2024-02-01", "2024-01-01", now=NOW)

    def test_invalid_date_rejected(self):
        with pytest.raises(InvalidDateRange):
            parse_date_range("not-a-date", now=NOW)

    def test_timezone_converted_to_utc(self):
        parsed = parse_datetime("2024-01-01T12:00:00+02:00")

        assert parsed == datetime(2024, 1, 1, 10, 0)
        assert parsed.tzinfo is None

    def test_zulu_suffix(self):
        assert parse_datetime("2024-01-01T08:15:00Z") == datetime(2024, 1, 1, 8, 15)

class TestPresetRanges:
    """Tests for named presets"""

    def test_preset_overrides_dates(self):
        start, end = parse_date_range("2020-01-01", "2020-02-01", "last_7_days", now=NOW)

        assert start == datetime(2024, 5, 8)
        assert end == NOW

    def test_preset_case_insensitive(self):
        start, _ = parse_date_range(range_type="THIS_MONTH", now=NOW)
        assert start == datetime(2024, 5, 1)

    def test_last_month(self):
        assert parse_date_range(range_type="last_month", now=NOW) == (
            datetime(2024, 4, 1), datetime(2024, 5, 1)
        )

    def test_last_quarter_crosses_year(self):
        start, end = parse_date_range(range_type="last_quarter", now=datetime(2024, 2, 10))

        assert start == datetime(2023, 10, 1)
        assert end == datetime(2024, 1, 1)

    def test_yesterday(self):
        assert parse_date_range(range_type="yesterday", now=NOW) == (
            datetime(2024, 5, 14), datetime(2024, 5, 15)
        )

    def test_custom_uses_dates(self):
        start, _ = parse_date_range("2024-03-01", None, "custom", now=NOW)
        assert start == datetime(2024, 3, 1)

    def test_unknown_preset_rejected(self):
        with pytest.raises(InvalidDateRange):
            parse_date_range(range_type="fortnight", now=NOW)

class TestMonthArithmetic:

    def test_shift_back_across_year(self):
        assert shift_months(datetime(2024, 2, 1), -3) == datetime(2023, 11, 1)

    def test_shift_forward_across_year(self):
        assert shift_months(datetime(2023, 12, 1), 1) == datetime(2024, 1, 1)

    def test_month_start(self):
        assert month_start(NOW) == datetime(2024, 5, 1)

class TestParseFilters:

    def test_empty(self):
        assert parse_filters(None) is None
        assert parse_filters("") is None

    def test_object(self):
        assert parse_filters('{"role": "ADMIN"}') == {"role": "ADMIN"}

    def test_malformed_json(self):
        with pytest.raises(InvalidFilters):
            parse_filters("{role:")

    def test_non_object(self):
        with pytest.raises(InvalidFilters):
            parse_filters("[1, 2]")
