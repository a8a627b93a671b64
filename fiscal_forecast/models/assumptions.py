"""
Economic assumptions and the per-period context handed to revenue and
expense models.
"""

from typing import Any, ClassVar, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .periods import PeriodWindow
from .protocols import RandomSource


class EconomicAssumptions(BaseModel):
    """Economic assumption bundle shared by every model in a scenario."""

    general_inflation: float = Field(
        default=0.03, description="General inflation rate (0.03 = 3%)"
    )
    wage_growth: float = Field(default=0.03, description="Annual wage growth rate")
    property_value_growth: float = Field(
        default=0.02, description="Annual assessed value growth rate"
    )
    population_growth: float = Field(default=0.0, description="Annual population growth")
    interest_rate: float = Field(default=0.04, description="Prevailing interest rate")
    custom: Dict[str, float] = Field(
        default_factory=dict, description="Additional named assumptions"
    )

    NAMED_VARIABLES: ClassVar[Tuple[str, ...]] = (
        "general_inflation",
        "wage_growth",
        "property_value_growth",
        "population_growth",
        "interest_rate",
    )

    def as_variables(self) -> Dict[str, float]:
        """All assumptions as a flat name -> value mapping."""
        variables = {name: getattr(self, name) for name in self.NAMED_VARIABLES}
        variables.update(self.custom)
        return variables


class MinimumBalancePolicy(BaseModel):
    """Minimum fund balance target."""

    type: Literal["ABSOLUTE", "PERCENTAGE_OF_EXPENSES"] = Field(
        ..., description="Absolute amount or fraction of period expenses"
    )
    value: float = Field(..., ge=0, description="Amount, or fraction (0.25 = 25%)")

    def required_balance(self, period_expense: float) -> float:
        """Minimum balance for a period with the given expenses."""
        if self.type == "ABSOLUTE":
            return self.value
        return period_expense * self.value


class GrantRenewalDraws:
    """
    Grant renewal outcomes for one forecast run.

    Each model is drawn at most once per forecast year, so every period of
    the same year sees the same outcome.
    """

    def __init__(self, source: RandomSource) -> None:
        self._source = source
        self._outcomes: Dict[Tuple[str, int], bool] = {}

    def is_renewed(self, model_id: str, forecast_year: int, probability: float) -> bool:
        key = (model_id, forecast_year)
        if key not in self._outcomes:
            self._outcomes[key] = self._source.random() < probability
        return self._outcomes[key]


class ProjectionContext(BaseModel):
    """Everything a revenue or expense model needs to price one period."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    period: PeriodWindow = Field(..., description="Period being projected")
    periods_per_year: int = Field(..., ge=1, description="Periods in a year")
    assumptions: EconomicAssumptions = Field(..., description="Scenario assumptions")
    fund_id: str = Field(default="", description="Fund being projected")

    # Collaborators (using Any to avoid Protocol typing issues)
    debt_service_provider: Optional[Any] = Field(
        default=None, description="DebtServiceProvider for instrument lookups"
    )
    renewal_draws: Optional[Any] = Field(
        default=None, description="GrantRenewalDraws for this forecast run"
    )

    @property
    def period_index(self) -> int:
        return self.period.index

    @property
    def years_elapsed(self) -> float:
        """Fractional years since the forecast start."""
        return self.period.index / self.periods_per_year

    @property
    def whole_years_elapsed(self) -> int:
        return self.period.index // self.periods_per_year

    @property
    def months_in_period(self) -> int:
        return self.period.months

    def scale_annual(self, annual_amount: float) -> float:
        """Share of an annual amount that falls in this period."""
        return annual_amount / 12 * self.period.months

    def formula_variables(self) -> Dict[str, float]:
        """Variables available to custom formulas, before model variables."""
        variables = self.assumptions.as_variables()
        variables.update(
            {
                "period_index": float(self.period_index),
                "years_elapsed": self.years_elapsed,
                "months_in_period": float(self.months_in_period),
                "periods_per_year": float(self.periods_per_year),
            }
        )
        return variables
