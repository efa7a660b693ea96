"""Tests for calendar range resolution."""

from datetime import date

import pytest

from wealthdash_mcp.dates import (
    add_months,
    date_context,
    last_full_months,
    last_month,
    month_end,
    resolve_dates,
    resolve_range,
    shift_months,
    this_month,
    this_year,
)


class TestNamedRanges:
    """Tests for last/this month and this year."""

    def test_last_month(self):
        result = last_month(date(2026, 3, 15))
        assert result.start == date(2026, 2, 1)
        assert result.end == date(2026, 2, 28)

    def test_last_month_in_january(self):
        result = last_month(date(2026, 1, 1))
        assert result.start == date(2025, 12, 1)
        assert result.end == date(2025, 12, 31)

    def test_last_month_leap_february(self):
        result = last_month(date(2024, 3, 31))
        assert result.end == date(2024, 2, 29)

    @pytest.mark.parametrize("day", [date(2025, m, d) for m in range(1, 13) for d in (1, 15, 28)])
    def test_last_month_is_whole_previous_month(self, day: date):
        result = last_month(day)
        assert result.start.day == 1
        assert result.end == month_end(result.start)
        assert add_months(result.start, 1) == day.replace(day=1)

    def test_this_month(self):
        result = this_month(date(2026, 3, 15))
        assert result.start == date(2026, 3, 1)
        assert result.end == date(2026, 3, 15)

    def test_this_year(self):
        result = this_year(date(2026, 3, 15))
        assert result.start == date(2026, 1, 1)
        assert result.end == date(2026, 3, 15)


class TestResolveRange:
    """Tests for phrase resolution."""

    def test_phrases(self):
        now = date(2026, 3, 15)
        assert resolve_range("last month", now) == last_month(now)
        assert resolve_range("last_month", now) == last_month(now)
        assert resolve_range("This Year", now) == this_year(now)

    def test_yyyy_mm(self):
        result = resolve_range("2024-02", date(2026, 3, 15))
        assert result.start == date(2024, 2, 1)
        assert result.end == date(2024, 2, 29)

    def test_unknown_phrase(self):
        with pytest.raises(ValueError, match="Unrecognised"):
            resolve_range("last fortnight", date(2026, 3, 15))


class TestResolveDates:
    """Tests for per-tool defaults."""

    def test_defaults_to_year_to_date(self):
        result = resolve_dates(None, None, date(2026, 3, 15))
        assert result.start == date(2026, 1, 1)
        assert result.end == date(2026, 3, 15)

    def test_explicit_dates_win(self):
        result = resolve_dates(date(2025, 5, 1), date(2025, 5, 31), date(2026, 3, 15))
        assert result.as_dict() == {"start": "2025-05-01", "end": "2025-05-31"}

    def test_start_after_end(self):
        with pytest.raises(ValueError):
            resolve_dates(date(2026, 4, 1), date(2026, 3, 1), date(2026, 3, 15))


class TestMonthHelpers:
    """Tests for month arithmetic."""

    def test_add_months_across_years(self):
        assert add_months(date(2025, 11, 1), 3) == date(2026, 2, 1)
        assert add_months(date(2026, 1, 1), -13) == date(2024, 12, 1)

    def test_last_full_months(self):
        months = last_full_months(date(2026, 3, 15), 13)
        assert len(months) == 13
        assert months[0] == date(2025, 2, 1)
        assert months[-1] == date(2026, 2, 1)

    def test_last_full_months_excludes_current(self):
        months = last_full_months(date(2026, 3, 1), 3)
        assert months == [date(2025, 12, 1), date(2026, 1, 1), date(2026, 2, 1)]

    def test_date_context(self):
        context = date_context(date(2026, 3, 15))
        assert context["today"] == "2026-03-15"
        assert context["last_month"] == "2026-02-01 to 2026-02-28"

    def test_date_context_matches_named_ranges(self):
        now = date(2024, 2, 29)
        context = date_context(now)
        for phrase in ("last_month", "this_month", "this_year"):
            period = resolve_range(phrase, now)
            assert context[phrase] == f"{period.start.isoformat()} to {period.end.isoformat()}"
        assert context["this_month"] == "2024-02-01 to 2024-02-29"

    def test_shift_months_clamps_day(self):
        assert shift_months(date(2026, 3, 31), -1) == date(2026, 2, 28)
        assert shift_months(date(2026, 3, 15), -12) == date(2025, 3, 15)
        assert shift_months(date(2024, 2, 29), 12) == date(2025, 2, 28)
