"""
Period grid for fund forecasts.

This module turns a start date, horizon and granularity into the ordered list
of forecast periods, with labels and month counts used by the projector.
"""

import math
from datetime import date, timedelta
from typing import List, Literal

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field

Granularity = Literal["MONTHLY", "QUARTERLY", "ANNUAL"]

PERIODS_PER_YEAR = {"MONTHLY": 12, "QUARTERLY": 4, "ANNUAL": 1}
MONTHS_PER_PERIOD = {"MONTHLY": 1, "QUARTERLY": 3, "ANNUAL": 12}


def months_between(start: date, end: date) -> int:
    """Count calendar months from ``start`` to ``end``, inclusive of both."""
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def month_start(value: date) -> date:
    """Return the first day of the month containing ``value``."""
    return value.replace(day=1)


def period_label(start: date, granularity: Granularity) -> str:
    """
    Build the display label for a period starting on ``start``.

    Args:
        start: First day of the period
        granularity: Period granularity

    Returns:
        ``YYYY-MM`` for monthly, ``Q{q} YYYY`` for quarterly, ``YYYY`` for annual
    """
    if granularity == "MONTHLY":
        return f"{start.year}-{start.month:02d}"
    if granularity == "QUARTERLY":
        quarter = (start.month - 1) // 3 + 1
        return f"Q{quarter} {start.year}"
    return str(start.year)


class PeriodWindow(BaseModel):
    """A single forecast period."""

    index: int = Field(..., ge=0, description="Zero-based period index")
    start: date = Field(..., description="First day of the period")
    end: date = Field(..., description="Last day of the period")
    label: str = Field(..., description="Display label")
    months: int = Field(..., ge=1, le=12, description="Calendar months covered")

    @property
    def year(self) -> int:
        """Fiscal year of the period (calendar year of its start)."""
        return self.start.year

    @property
    def calendar_months(self) -> List[int]:
        """Zero-based calendar month indexes (0 = January) covered by the period."""
        return [(self.start.month - 1 + offset) % 12 for offset in range(self.months)]


class PeriodGrid(BaseModel):
    """Ordered forecast periods derived from a horizon and granularity."""

    start_date: date = Field(..., description="Forecast start date")
    horizon_months: int = Field(..., ge=1, description="Forecast horizon in months")
    granularity: Granularity = Field(default="MONTHLY", description="Period size")

    @property
    def periods_per_year(self) -> int:
        return PERIODS_PER_YEAR[self.granularity]

    @property
    def period_count(self) -> int:
        """Number of periods needed to cover the horizon."""
        if self.granularity == "MONTHLY":
            return self.horizon_months
        return math.ceil(self.horizon_months / MONTHS_PER_PERIOD[self.granularity])

    def generate_periods(self) -> List[PeriodWindow]:
        """
        Generate the periods of the grid.

        Periods begin on the first day of the start month and are contiguous.

        Returns:
            List of period windows in chronological order
        """
        step = MONTHS_PER_PERIOD[self.granularity]
        current = month_start(self.start_date)
        periods = []
        for index in range(self.period_count):
            next_start = current + relativedelta(months=step)
            periods.append(
                PeriodWindow(
                    index=index,
                    start=current,
                    end=next_start - timedelta(days=1),
                    label=period_label(current, self.granularity),
                    months=step,
                )
            )
            current = next_start
        return periods

    def __len__(self) -> int:
        return self.period_count
