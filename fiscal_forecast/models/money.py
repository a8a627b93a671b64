"""
Currency rounding and formatting.

All monetary rounding in the package goes through ``round_currency`` so that
the rounding mode (round-half-up) is applied in one place. Engines round at
aggregation boundaries only, never after each intermediate operation.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ..exceptions import ForecastError


def round_currency(value: float, decimals: int = 2) -> float:
    """
    Round a value half-up to the given number of decimal places.

    The float is converted through its shortest string form so that values
    such as 2.675 round to 2.68 rather than the binary-float 2.67.

    Args:
        value: Value to round
        decimals: Number of decimal places (2 for currency, more for rates)

    Returns:
        Rounded value as a float

    Raises:
        ForecastError: If the value is infinite or NaN
    """
    if not math.isfinite(value):
        raise ForecastError(f"Cannot round non-finite amount {value}")
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    # Avoid returning -0.0
    return float(rounded) + 0.0


class CurrencyFormatter(BaseModel):
    """Formats currency and percentage values for reports and messages."""

    currency_symbol: str = Field(default="$", description="Currency symbol")
    decimal_places: int = Field(
        default=0, ge=0, le=10, description="Number of decimal places"
    )
    show_currency_symbol: bool = Field(
        default=True, description="Whether to show currency symbol"
    )

    def format_currency(self, amount: float, show_symbol: Optional[bool] = None) -> str:
        """
        Format a currency amount for display.

        Negative amounts are rendered with a leading minus sign before the
        symbol, e.g. ``-$1,250``.

        Args:
            amount: The amount to format
            show_symbol: Override the default symbol display setting

        Returns:
            Formatted currency string
        """
        show_symbol = (
            show_symbol if show_symbol is not None else self.show_currency_symbol
        )

        rounded = round_currency(amount, self.decimal_places)
        sign = "-" if rounded < 0 else ""
        formatted = f"{abs(rounded):,.{self.decimal_places}f}"

        if show_symbol:
            return f"{sign}{self.currency_symbol}{formatted}"
        return f"{sign}{formatted}"

    def format_percentage(self, rate: float, decimal_places: int = 1) -> str:
        """
        Format a rate as a percentage.

        Args:
            rate: The rate as a decimal (0.05 = 5%)
            decimal_places: Number of decimal places to show

        Returns:
            Formatted percentage string
        """
        return f"{rate * 100:.{decimal_places}f}%"


_default_formatter = CurrencyFormatter()


def format_currency(amount: float) -> str:
    """Format an amount as whole dollars, e.g. ``$45,000``."""
    return _default_formatter.format_currency(amount)


def format_percentage(rate: float, decimal_places: int = 1) -> str:
    """Format a decimal rate as a percentage string."""
    return _default_formatter.format_percentage(rate, decimal_places)
