"""
Forecast scenario models.

A scenario bundles everything needed to project one fund: the period grid,
ordered revenue and expense models, economic assumptions, an optional
minimum balance policy and any debt instruments whose debt service the fund
pays.
"""

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .assumptions import EconomicAssumptions, MinimumBalancePolicy
from .debt import DebtInstrument
from .expense_models import ExpenseModel
from .periods import Granularity, PeriodGrid
from .revenue_models import RevenueModel
from ..exceptions import ScenarioValidationError

ScenarioType = Literal["BASELINE", "OPTIMISTIC", "PESSIMISTIC", "WHAT_IF", "CUSTOM"]


class ScenarioValidationResult(BaseModel):
    """Errors and warnings collected while validating a scenario."""

    is_valid: bool = Field(..., description="True when there are no errors")
    errors: List[str] = Field(default_factory=list, description="Blocking problems")
    warnings: List[str] = Field(default_factory=list, description="Non-blocking issues")

    @classmethod
    def from_messages(
        cls, errors: List[str], warnings: List[str]
    ) -> "ScenarioValidationResult":
        return cls(is_valid=not errors, errors=errors, warnings=warnings)

    def ensure_valid(self) -> None:
        """
        Raise if validation found errors.

        Raises:
            ScenarioValidationError: With the collected errors and warnings
        """
        if self.errors:
            raise ScenarioValidationError(self.errors, self.warnings)


class ForecastScenario(BaseModel):
    """A fund forecast scenario."""

    id: str = Field(..., description="Scenario identifier")
    tenant_id: str = Field(..., description="Owning unit of government")
    name: str = Field(..., description="Scenario name")
    description: Optional[str] = Field(default=None, description="Description")
    scenario_type: ScenarioType = Field(default="BASELINE", description="Scenario type")
    fund_id: str = Field(..., description="Fund being forecast")

    start_date: date = Field(..., description="Forecast start (first of the month)")
    horizon_months: int = Field(..., description="Forecast horizon in months")
    granularity: Granularity = Field(default="MONTHLY", description="Period size")

    revenue_models: List[RevenueModel] = Field(
        default_factory=list, description="Revenue models, in display order"
    )
    expense_models: List[ExpenseModel] = Field(
        default_factory=list, description="Expense models, in display order"
    )
    assumptions: EconomicAssumptions = Field(
        default_factory=EconomicAssumptions, description="Economic assumptions"
    )
    minimum_balance: Optional[MinimumBalancePolicy] = Field(
        default=None, description="Minimum fund balance target"
    )
    debt_instruments: List[DebtInstrument] = Field(
        default_factory=list, description="Debt paid from the fund"
    )
    random_seed: Optional[int] = Field(
        default=None, description="Seed for grant renewal draws"
    )
    is_primary: bool = Field(default=False, description="Primary scenario for the fund")

    def period_grid(self) -> PeriodGrid:
        return PeriodGrid(
            start_date=self.start_date,
            horizon_months=self.horizon_months,
            granularity=self.granularity,
        )

    def linked_instrument_ids(self) -> List[str]:
        """Instruments already carried by DEBT_SERVICE expense lines."""
        return [
            model.debt_instrument_id
            for model in self.expense_models
            if model.type == "DEBT_SERVICE" and model.debt_instrument_id
        ]
