"""
Tests for currency rounding, formatting and the forecast period grid.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from fiscal_forecast.exceptions import ForecastError
from fiscal_forecast.models.money import (
    CurrencyFormatter,
    format_currency,
    format_percentage,
    round_currency,
)
from fiscal_forecast.models.periods import (
    PeriodGrid,
    month_start,
    months_between,
    period_label,
)


class TestRounding:
    """Test round-half-up currency rounding."""

    def test_rounds_half_up(self):
        """Test that halves round away from zero."""
        assert round_currency(2.675) == 2.68
        assert round_currency(0.125) == 0.13
        assert round_currency(-0.125) == -0.13

    def test_rounds_to_requested_places(self):
        """Test rounding rates to more places."""
        assert round_currency(0.0412345, 4) == 0.0412
        assert round_currency(1234.5, 0) == 1235.0

    def test_no_negative_zero(self):
        """Test that tiny negatives become plain zero."""
        value = round_currency(-0.001)
        assert value == 0.0
        assert str(value) == "0.0"

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ForecastError, match="non-finite"):
            round_currency(value)


class TestFormatting:
    """Test currency and percentage formatting."""

    def test_format_currency_whole_dollars(self):
        assert format_currency(45000) == "$45,000"
        assert format_currency(-1250.4) == "-$1,250"

    def test_format_percentage(self):
        assert format_percentage(0.03) == "3.0%"
        assert format_percentage(0.0425, 2) == "4.25%"

    def test_formatter_options(self):
        """Test decimal places and symbol override."""
        formatter = CurrencyFormatter(decimal_places=2, currency_symbol="€")
        assert formatter.format_currency(1234.567) == "€1,234.57"
        assert formatter.format_currency(1234.567, show_symbol=False) == "1,234.57"


class TestPeriodHelpers:
    """Test month arithmetic and labels."""

    def test_months_between_is_inclusive(self):
        assert months_between(date(2025, 1, 15), date(2025, 1, 20)) == 1
        assert months_between(date(2025, 1, 1), date(2025, 12, 31)) == 12
        assert months_between(date(2024, 11, 1), date(2025, 2, 1)) == 4

    def test_month_start(self):
        assert month_start(date(2025, 7, 19)) == date(2025, 7, 1)

    def test_period_labels(self):
        assert period_label(date(2025, 3, 1), "MONTHLY") == "2025-03"
        assert period_label(date(2025, 4, 1), "QUARTERLY") == "Q2 2025"
        assert period_label(date(2025, 1, 1), "ANNUAL") == "2025"


class TestPeriodGrid:
    """Test PeriodGrid generation."""

    def test_monthly_grid(self):
        """Test a 12-month grid starting mid-month."""
        grid = PeriodGrid(start_date=date(2025, 1, 15), horizon_months=12)
        periods = grid.generate_periods()

        assert len(grid) == 12
        assert grid.periods_per_year == 12
        assert periods[0].start == date(2025, 1, 1)
        assert periods[0].end == date(2025, 1, 31)
        assert periods[1].end == date(2025, 2, 28)
        assert periods[-1].label == "2025-12"

    def test_quarterly_grid_rounds_up(self):
        """Test that a partial quarter still gets a period."""
        grid = PeriodGrid(start_date=date(2025, 1, 1), horizon_months=7, granularity="QUARTERLY")
        periods = grid.generate_periods()

        assert len(periods) == 3
        assert [p.label for p in periods] == ["Q1 2025", "Q2 2025", "Q3 2025"]
        assert periods[1].end == date(2025, 6, 30)
        assert periods[2].months == 3

    def test_annual_grid_from_mid_year(self):
        """Test that annual periods are 12-month windows from the start month."""
        grid = PeriodGrid(start_date=date(2025, 7, 1), horizon_months=24, granularity="ANNUAL")
        periods = grid.generate_periods()

        assert len(periods) == 2
        assert periods[0].end == date(2026, 6, 30)
        assert periods[0].year == 2025
        assert periods[0].calendar_months == [6, 7, 8, 9, 10, 11, 0, 1, 2, 3, 4, 5]

    def test_periods_are_contiguous(self):
        grid = PeriodGrid(start_date=date(2024, 1, 1), horizon_months=36)
        periods = grid.generate_periods()
        for previous, current in zip(periods, periods[1:]):
            assert (current.start - previous.end).days == 1

    def test_horizon_must_be_positive(self):
        with pytest.raises(ValidationError):
            PeriodGrid(start_date=date(2025, 1, 1), horizon_months=0)
