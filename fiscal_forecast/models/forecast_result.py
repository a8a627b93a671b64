"""
Forecast result models.

A ``ForecastResult`` is the complete output of a fund forecast: one
``ForecastPeriod`` per grid period plus a summary with risk assessment.
Results are plain pydantic values; the engine never modifies a result after
returning it. Comparison and sensitivity reports are built from results.
"""

import json
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

import pandas as pd
from pydantic import BaseModel, Field

from .scenario import ForecastScenario

RiskLevel = Literal["LOW", "MODERATE", "HIGH", "CRITICAL"]
WarningSeverity = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
WarningType = Literal["NEGATIVE_BALANCE", "BELOW_MINIMUM"]
ImpactLevel = Literal["LOW", "MODERATE", "HIGH"]


class ForecastLineItem(BaseModel):
    """One revenue or expense model's contribution to a period."""

    model_id: str = Field(..., description="Revenue or expense model id")
    model_name: str = Field(..., description="Model display name")
    code: str = Field(default="", description="Revenue source or expense target code")
    amount: float = Field(..., description="Rounded period amount")
    assumptions: str = Field(default="", description="Key assumption behind the amount")


class ForecastWarning(BaseModel):
    """A balance problem detected in a period."""

    type: WarningType = Field(..., description="Warning type")
    message: str = Field(..., description="Human-readable message")
    severity: WarningSeverity = Field(..., description="Severity")
    suggested_action: Optional[str] = Field(default=None, description="Suggested action")


class ForecastPeriod(BaseModel):
    """Projected activity and balance for one period."""

    period_start: date = Field(..., description="First day of the period")
    period_end: date = Field(..., description="Last day of the period")
    label: str = Field(..., description="Period label")
    beginning_balance: float = Field(..., description="Balance entering the period")
    revenues: List[ForecastLineItem] = Field(default_factory=list, description="Revenue lines")
    expenses: List[ForecastLineItem] = Field(default_factory=list, description="Expense lines")
    total_revenues: float = Field(default=0.0, description="Sum of revenue lines")
    total_expenses: float = Field(default=0.0, description="Sum of expense lines")
    debt_service: float = Field(default=0.0, description="Instrument debt service paid")
    net_change: float = Field(default=0.0, description="Revenues - expenses - debt service")
    ending_balance: float = Field(..., description="Balance leaving the period")
    cumulative_net_change: float = Field(
        default=0.0, description="Net change since the forecast start"
    )
    warnings: List[ForecastWarning] = Field(default_factory=list, description="Warnings")


class BalancePoint(BaseModel):
    amount: float = Field(..., description="Balance")
    period_label: str = Field(..., description="Period the balance occurred in")


class ForecastSummary(BaseModel):
    """Aggregates over all forecast periods."""

    total_periods: int = Field(..., ge=0, description="Number of periods")
    total_revenues: float = Field(default=0.0, description="Revenue over the horizon")
    total_expenses: float = Field(default=0.0, description="Expense over the horizon")
    total_debt_service: float = Field(default=0.0, description="Debt service over the horizon")
    net_change: float = Field(default=0.0, description="Final minus starting balance")
    final_balance: float = Field(..., description="Ending balance of the last period")
    lowest_balance: BalancePoint = Field(..., description="Lowest balance seen")
    highest_balance: BalancePoint = Field(..., description="Highest balance seen")
    average_monthly_net_change: float = Field(
        default=0.0, description="Net change divided by horizon months"
    )
    periods_with_negative_balance: int = Field(default=0, ge=0)
    periods_below_minimum: int = Field(default=0, ge=0)
    risk_assessment: RiskLevel = Field(default="LOW", description="Overall risk")


class ForecastResult(BaseModel):
    """
    Complete output of a fund forecast.

    Example:
        ```python
        result = engine.generate_forecast(state, scenario)
        result.summary.risk_assessment      # "LOW"
        result.to_dataframe()               # one row per period
        ```
    """

    scenario_id: str = Field(..., description="Scenario id")
    scenario_name: str = Field(..., description="Scenario name")
    fund_id: str = Field(..., description="Fund id")
    fund_name: str = Field(..., description="Fund name")
    generated_at: datetime = Field(
        default_factory=datetime.now, description="When the forecast was generated"
    )
    starting_balance: float = Field(..., description="Balance at the forecast start")
    periods: List[ForecastPeriod] = Field(default_factory=list, description="Periods")
    summary: ForecastSummary = Field(..., description="Summary and risk")
    warnings: List[str] = Field(
        default_factory=list, description="Scenario validation warnings"
    )
    assumptions_summary: List[str] = Field(
        default_factory=list, description="Readable list of key assumptions"
    )
    scenario: Optional[ForecastScenario] = Field(
        default=None, description="Scenario the forecast was generated from"
    )

    @property
    def ending_balances(self) -> List[float]:
        return [period.ending_balance for period in self.periods]

    def period_warnings(self) -> List[ForecastWarning]:
        """All period warnings in chronological order."""
        return [warning for period in self.periods for warning in period.warnings]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert the periods to a DataFrame.

        Returns:
            One row per period with balance and activity columns, indexed by label
        """
        rows = [
            {
                "label": period.label,
                "period_start": period.period_start,
                "period_end": period.period_end,
                "beginning_balance": period.beginning_balance,
                "total_revenues": period.total_revenues,
                "total_expenses": period.total_expenses,
                "debt_service": period.debt_service,
                "net_change": period.net_change,
                "ending_balance": period.ending_balance,
                "cumulative_net_change": period.cumulative_net_change,
                "warnings": len(period.warnings),
            }
            for period in self.periods
        ]
        df = pd.DataFrame(rows)
        if not df.empty:
            df = df.set_index("label")
        return df

    def to_csv(self, path: Optional[str] = None) -> Optional[str]:
        """Write the period table as CSV, or return it when ``path`` is None."""
        return self.to_dataframe().to_csv(path)

    def to_dict(self, include_periods: bool = True) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"scenario"})
        if not include_periods:
            data.pop("periods")
        return data

    def to_json(self, include_periods: bool = True, indent: int = 2) -> str:
        return json.dumps(self.to_dict(include_periods=include_periods), indent=indent)


class PeriodVariance(BaseModel):
    """Revenue, expense and ending balance differences for one period."""

    period_label: str = Field(..., description="Label of the base period")
    base_revenue: float
    alternate_revenue: float
    revenue_variance: float = Field(..., description="Alternate minus base revenue")
    base_expense: float
    alternate_expense: float
    expense_variance: float = Field(..., description="Alternate minus base expense")
    base_ending_balance: float
    alternate_ending_balance: float
    variance: float = Field(..., description="Alternate minus base ending balance")
    variance_percent: float = Field(..., description="Balance variance as % of |base|")


class ScenarioComparison(BaseModel):
    """Side-by-side comparison of two forecast results."""

    base_scenario_id: str
    base_scenario_name: str
    alternate_scenario_id: str
    alternate_scenario_name: str
    period_variances: List[PeriodVariance] = Field(default_factory=list)
    revenue_variance: float = Field(default=0.0, description="Total revenue difference")
    revenue_variance_percent: float = Field(default=0.0)
    expense_variance: float = Field(default=0.0, description="Total expense difference")
    expense_variance_percent: float = Field(default=0.0)
    final_balance_variance: float = Field(default=0.0)
    risk_change: str = Field(..., description="'BASE → ALTERNATE' risk transition")
    assumption_changes: List[str] = Field(
        default_factory=list, description="Readable differences between the scenarios"
    )


class SensitivityPoint(BaseModel):
    """Forecast outcome for one tested value of a variable."""

    value: float = Field(..., description="Tested value")
    final_balance: float
    delta_from_base: float = Field(..., description="Final balance minus base final balance")
    percent_change: float = Field(..., description="Delta as % of |base final balance|")


class SensitivityAnalysis(BaseModel):
    """How the final balance responds to one assumption."""

    variable: str = Field(..., description="Assumption that was varied")
    base_value: float = Field(..., description="Value in the original scenario")
    base_final_balance: float
    results: List[SensitivityPoint] = Field(default_factory=list)
    impact: ImpactLevel = Field(..., description="Largest absolute percent change, bucketed")
