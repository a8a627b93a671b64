"""
Multi-fund baseline forecast.

Quick projections for every fund at once from current ledger balances and
simple growth assumptions: each fund's revenue and expense grow from a base
amount (its as-of-year activity unless a model overrides it), and debt
service of the scenario's instruments is charged to the paying fund.
"""

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List, Literal, Optional, Sequence, TypeVar

import pandas as pd
from pydantic import BaseModel, Field

from ..models.debt import DebtInstrument, DebtServiceSchedule, FundCoverageSummary
from ..models.debt_service import (
    DebtServiceScheduleBuilder,
    build_coverage_summaries,
    debt_service_by_fund_by_year,
)
from ..models.ledger import Fund, Transaction, summarize_fund_activity
from ..models.money import round_currency
from ..models.periods import period_label

logger = logging.getLogger(__name__)

BaselineGranularity = Literal["ANNUAL", "QUARTERLY"]
HealthStatus = Literal["healthy", "warning", "critical"]


class SimpleRevenueModel(BaseModel):
    """Revenue override for one fund, or for all funds when ``fund_id`` is None."""

    fund_id: Optional[str] = Field(default=None, description="Target fund (None = all)")
    base_amount: Optional[float] = Field(
        default=None, description="Annual base (None = as-of-year receipts)"
    )
    growth_rate: Optional[float] = Field(
        default=None, description="Annual growth (None = scenario default)"
    )


class SimpleExpenseModel(BaseModel):
    """Expense override for one fund, or for all funds when ``fund_id`` is None."""

    fund_id: Optional[str] = Field(default=None, description="Target fund (None = all)")
    base_amount: Optional[float] = Field(
        default=None, description="Annual base (None = as-of-year disbursements)"
    )
    growth_rate: Optional[float] = Field(
        default=None, description="Annual growth (None = scenario default)"
    )


class BaselineForecastScenario(BaseModel):
    """Growth assumptions for a multi-fund baseline forecast."""

    id: str = Field(..., min_length=1, description="Scenario identifier")
    name: str = Field(..., description="Scenario name")
    description: Optional[str] = Field(default=None, description="Description")
    horizon_years: int = Field(..., ge=1, le=50, description="Years to project")
    granularity: BaselineGranularity = Field(default="ANNUAL", description="Period size")
    default_revenue_growth_rate: float = Field(default=0.0, description="Revenue growth")
    default_expense_growth_rate: float = Field(default=0.0, description="Expense growth")
    revenue_models: List[SimpleRevenueModel] = Field(default_factory=list)
    expense_models: List[SimpleExpenseModel] = Field(default_factory=list)
    debt_instruments: List[DebtInstrument] = Field(default_factory=list)

    @property
    def periods_per_year(self) -> int:
        return 1 if self.granularity == "ANNUAL" else 4


class ForecastBuildOptions(BaseModel):
    """Which funds to include and whether to total them."""

    include_zero_balance_funds: bool = Field(
        default=True, description="Keep funds with no balance and no activity"
    )
    include_inactive_funds: bool = Field(default=False, description="Keep inactive funds")
    fund_ids: Optional[List[str]] = Field(
        default=None, description="Restrict to these funds (None or empty = all)"
    )
    calculate_aggregates: bool = Field(default=True, description="Compute fund totals")


class FundForecastPoint(BaseModel):
    period_index: int = Field(..., ge=0)
    year: int = Field(..., description="Calendar year of the period")
    label: str
    beginning_balance: float
    projected_revenue: float
    projected_expense: float
    debt_service: Optional[float] = Field(
        default=None, description="Debt service charged (None when none is due)"
    )
    ending_balance: float


class FundForecastSeries(BaseModel):
    fund_id: str
    fund_code: str
    fund_name: str
    points: List[FundForecastPoint] = Field(default_factory=list)


class BaselineForecastResult(BaseModel):
    """Projections for every included fund."""

    scenario_id: str
    scenario_name: str
    horizon_years: int
    granularity: BaselineGranularity
    as_of: date
    fund_series: List[FundForecastSeries] = Field(default_factory=list)
    total_beginning_balance: Optional[float] = None
    total_ending_balance: Optional[float] = None
    funds_with_negative_balance: List[str] = Field(default_factory=list)
    debt_schedules: List[DebtServiceSchedule] = Field(default_factory=list)
    coverage_summaries: List[FundCoverageSummary] = Field(default_factory=list)


class ForecastHealthSummary(BaseModel):
    scenario_id: str
    scenario_name: str
    as_of: date
    horizon_years: int
    granularity: BaselineGranularity
    total_funds: int
    total_beginning_balance: float
    total_ending_balance: float
    net_change: float
    funds_with_negative_balance: int
    health_status: HealthStatus


class NegativeFundReport(BaseModel):
    fund_id: str
    fund_code: str
    fund_name: str
    first_negative_period: str
    lowest_balance: float


ModelT = TypeVar("ModelT", SimpleRevenueModel, SimpleExpenseModel)


def find_fund_model(models: Sequence[ModelT], fund_id: str) -> Optional[ModelT]:
    """The fund-specific model if any, else the first model without a fund."""
    for model in models:
        if model.fund_id == fund_id:
            return model
    for model in models:
        if not model.fund_id:
            return model
    return None


def _period_info(as_of: date, index: int, granularity: BaselineGranularity):
    """Year and label of a period; periods start in the year after ``as_of``."""
    if granularity == "ANNUAL":
        year = as_of.year + 1 + index
        return year, period_label(date(year, 1, 1), "ANNUAL")
    year = as_of.year + 1 + index // 4
    month = (index % 4) * 3 + 1
    return year, period_label(date(year, month, 1), "QUARTERLY")


def build_forecast(
    funds: List[Fund],
    transactions: List[Transaction],
    as_of: date,
    scenario: BaselineForecastScenario,
    options: Optional[ForecastBuildOptions] = None,
) -> BaselineForecastResult:
    """
    Build a baseline forecast for a set of funds.

    Current balances come from each fund's beginning balance plus every
    non-voided transaction dated on or before ``as_of``. For each period,
    revenue and expense are the annual base grown by
    ``(1 + rate) ** (index / periods_per_year)`` and divided by the periods
    per year; annual debt service is charged in full (annual) or spread
    evenly across quarters.

    Args:
        funds: Funds to forecast
        transactions: Ledger transactions for any funds and dates
        as_of: Date current balances are measured at
        scenario: Growth assumptions and debt instruments
        options: Fund filters and aggregate toggle

    Returns:
        BaselineForecastResult with one series per included fund
    """
    opts = options or ForecastBuildOptions()

    selected = [f for f in funds if opts.include_inactive_funds or f.is_active]
    if opts.fund_ids:
        wanted = set(opts.fund_ids)
        selected = [f for f in selected if f.id in wanted]

    activity = summarize_fund_activity(selected, transactions, as_of)
    if not opts.include_zero_balance_funds:
        selected = [
            f
            for f in selected
            if activity[f.id].current_balance != 0 or activity[f.id].transaction_count > 0
        ]

    logger.info(
        f"Building baseline forecast {scenario.id} for {len(selected)} funds "
        f"as of {as_of.isoformat()}"
    )

    periods_per_year = scenario.periods_per_year
    total_periods = scenario.horizon_years * periods_per_year
    start_year = as_of.year + 1

    instruments = [inst for inst in scenario.debt_instruments if inst.is_active]
    schedules: List[DebtServiceSchedule] = []
    debt_by_fund: Dict[str, Dict[int, float]] = {}
    if instruments:
        schedules = DebtServiceScheduleBuilder.build_schedules(
            instruments, scenario.horizon_years, start_year
        )
        debt_by_fund = debt_service_by_fund_by_year(
            instruments, schedules, start_year, scenario.horizon_years
        )

    series_list = []
    negative_funds = []
    for fund in selected:
        data = activity[fund.id]
        revenue_model = find_fund_model(scenario.revenue_models, fund.id)
        expense_model = find_fund_model(scenario.expense_models, fund.id)

        base_revenue = data.annual_revenue
        revenue_growth = scenario.default_revenue_growth_rate
        if revenue_model is not None:
            if revenue_model.base_amount is not None:
                base_revenue = revenue_model.base_amount
            if revenue_model.growth_rate is not None:
                revenue_growth = revenue_model.growth_rate

        base_expense = data.annual_expense
        expense_growth = scenario.default_expense_growth_rate
        if expense_model is not None:
            if expense_model.base_amount is not None:
                base_expense = expense_model.base_amount
            if expense_model.growth_rate is not None:
                expense_growth = expense_model.growth_rate

        fund_debt = debt_by_fund.get(fund.id, {})
        balance = data.current_balance
        points = []
        for index in range(total_periods):
            year, label = _period_info(as_of, index, scenario.granularity)
            years_elapsed = index / periods_per_year
            revenue = round_currency(
                base_revenue * (1 + revenue_growth) ** years_elapsed / periods_per_year
            )
            expense = round_currency(
                base_expense * (1 + expense_growth) ** years_elapsed / periods_per_year
            )
            debt_service = round_currency(fund_debt.get(year, 0.0) / periods_per_year)
            ending = round_currency(balance + revenue - expense - debt_service)

            points.append(
                FundForecastPoint(
                    period_index=index,
                    year=year,
                    label=label,
                    beginning_balance=balance,
                    projected_revenue=revenue,
                    projected_expense=expense,
                    debt_service=debt_service if debt_service > 0 else None,
                    ending_balance=ending,
                )
            )
            balance = ending

        if any(point.ending_balance < 0 for point in points):
            negative_funds.append(fund.id)
        series_list.append(
            FundForecastSeries(
                fund_id=fund.id, fund_code=fund.code, fund_name=fund.name, points=points
            )
        )

    total_beginning = total_ending = None
    if opts.calculate_aggregates and series_list:
        total_beginning = round_currency(
            sum(s.points[0].beginning_balance for s in series_list if s.points)
        )
        total_ending = round_currency(
            sum(s.points[-1].ending_balance for s in series_list if s.points)
        )

    coverage = []
    if instruments:
        revenue_by_fund_year: Dict[str, Dict[int, float]] = defaultdict(dict)
        for series in series_list:
            years = revenue_by_fund_year[series.fund_id]
            for point in series.points:
                years[point.year] = years.get(point.year, 0.0) + point.projected_revenue
        coverage = build_coverage_summaries(
            instruments,
            schedules,
            revenue_by_fund_year,
            selected,
            start_year,
            scenario.horizon_years,
        )

    if negative_funds:
        logger.warning(f"{len(negative_funds)} fund(s) projected to go negative")

    return BaselineForecastResult(
        scenario_id=scenario.id,
        scenario_name=scenario.name,
        horizon_years=scenario.horizon_years,
        granularity=scenario.granularity,
        as_of=as_of,
        fund_series=series_list,
        total_beginning_balance=total_beginning,
        total_ending_balance=total_ending,
        funds_with_negative_balance=negative_funds,
        debt_schedules=schedules,
        coverage_summaries=coverage,
    )


def create_baseline_scenario(
    id: str,
    name: str,
    horizon_years: int,
    description: Optional[str] = None,
    granularity: BaselineGranularity = "ANNUAL",
    default_revenue_growth_rate: float = 0.02,
    default_expense_growth_rate: float = 0.02,
    revenue_models: Optional[List[SimpleRevenueModel]] = None,
    expense_models: Optional[List[SimpleExpenseModel]] = None,
) -> BaselineForecastScenario:
    """Baseline scenario with 2% default growth on both sides."""
    return BaselineForecastScenario(
        id=id,
        name=name,
        description=description or f"{horizon_years}-year baseline forecast",
        horizon_years=horizon_years,
        granularity=granularity,
        default_revenue_growth_rate=default_revenue_growth_rate,
        default_expense_growth_rate=default_expense_growth_rate,
        revenue_models=revenue_models or [],
        expense_models=expense_models or [],
    )


def get_forecast_summary(result: BaselineForecastResult) -> ForecastHealthSummary:
    """
    Headline metrics of a baseline forecast.

    Health is ``critical`` when any fund goes negative, ``warning`` when the
    combined balance declines by more than 20%, otherwise ``healthy``.
    """
    beginning = result.total_beginning_balance or 0.0
    ending = result.total_ending_balance or 0.0
    negative_count = len(result.funds_with_negative_balance)

    if negative_count > 0:
        status = "critical"
    elif ending < beginning * 0.8:
        status = "warning"
    else:
        status = "healthy"

    return ForecastHealthSummary(
        scenario_id=result.scenario_id,
        scenario_name=result.scenario_name,
        as_of=result.as_of,
        horizon_years=result.horizon_years,
        granularity=result.granularity,
        total_funds=len(result.fund_series),
        total_beginning_balance=beginning,
        total_ending_balance=ending,
        net_change=round_currency(ending - beginning),
        funds_with_negative_balance=negative_count,
        health_status=status,
    )


def find_funds_going_negative(result: BaselineForecastResult) -> List[NegativeFundReport]:
    """Funds whose balance goes negative, with the first negative period."""
    reports = []
    for series in result.fund_series:
        first_negative = next(
            (point.label for point in series.points if point.ending_balance < 0), None
        )
        if first_negative is None:
            continue
        reports.append(
            NegativeFundReport(
                fund_id=series.fund_id,
                fund_code=series.fund_code,
                fund_name=series.fund_name,
                first_negative_period=first_negative,
                lowest_balance=round_currency(
                    min(point.ending_balance for point in series.points)
                ),
            )
        )
    return reports


def forecast_to_dataframe(result: BaselineForecastResult) -> pd.DataFrame:
    """One row per fund and metric, one column per period label."""
    metrics = [
        ("Beginning Balance", "beginning_balance"),
        ("Projected Revenue", "projected_revenue"),
        ("Projected Expense", "projected_expense"),
        ("Ending Balance", "ending_balance"),
    ]
    rows = []
    for series in result.fund_series:
        for metric, attr in metrics:
            row = {
                "Fund Code": series.fund_code,
                "Fund Name": series.fund_name,
                "Metric": metric,
            }
            for point in series.points:
                row[point.label] = getattr(point, attr)
            rows.append(row)
    return pd.DataFrame(rows)


def export_forecast_to_csv(
    result: BaselineForecastResult, generated_at: Optional[datetime] = None
) -> str:
    """
    Export a baseline forecast as CSV with ``#`` comment headers and footers.

    Args:
        result: Baseline forecast
        generated_at: Timestamp written in the header (defaults to now)

    Returns:
        CSV text
    """
    generated_at = generated_at or datetime.now()
    lines = [
        "# Simple Baseline Forecast Export",
        f"# Scenario: {result.scenario_name or result.scenario_id}",
        f"# As Of: {result.as_of.isoformat()}",
        f"# Horizon: {result.horizon_years} years ({result.granularity.lower()})",
        f"# Generated: {generated_at.isoformat()}",
        "",
    ]

    table = forecast_to_dataframe(result).to_csv(index=False, float_format="%.2f")
    lines.append(table.rstrip("\n"))

    if result.total_beginning_balance is not None and result.total_ending_balance is not None:
        net = result.total_ending_balance - result.total_beginning_balance
        lines.extend(
            [
                "",
                f"# Total Beginning Balance: {result.total_beginning_balance:.2f}",
                f"# Total Ending Balance: {result.total_ending_balance:.2f}",
                f"# Net Change: {net:.2f}",
            ]
        )

    if result.funds_with_negative_balance:
        lines.extend(
            [
                "",
                f"# WARNING: {len(result.funds_with_negative_balance)} fund(s) "
                f"projected to go negative",
            ]
        )

    return "\n".join(lines)
