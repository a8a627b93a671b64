"""
Period projector.

Computes one forecast period at a time: prices every applicable revenue and
expense model, folds in instrument debt service for the fund, and derives the
ending balance and balance warnings. The forecast engine drives it across the
period grid.
"""

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .assumptions import GrantRenewalDraws, ProjectionContext
from .forecast_result import ForecastLineItem, ForecastWarning
from .money import format_currency, round_currency
from .periods import PeriodWindow
from .protocols import DebtServiceProvider
from .scenario import ForecastScenario

logger = logging.getLogger(__name__)


class PeriodProjection(BaseModel):
    """Result of projecting a single period."""

    period: PeriodWindow = Field(..., description="Projected period")
    beginning_balance: float = Field(..., description="Balance entering the period")
    revenues: List[ForecastLineItem] = Field(default_factory=list)
    expenses: List[ForecastLineItem] = Field(default_factory=list)
    period_revenue: float = Field(default=0.0, description="Total revenue")
    period_expense: float = Field(default=0.0, description="Total expense")
    debt_service: float = Field(default=0.0, description="Instrument debt service")
    ending_balance: float = Field(..., description="Balance leaving the period")
    warnings: List[ForecastWarning] = Field(default_factory=list)

    @property
    def net_change(self) -> float:
        return round_currency(self.period_revenue - self.period_expense - self.debt_service)

    @property
    def is_negative(self) -> bool:
        return self.ending_balance < 0

    @property
    def is_below_minimum(self) -> bool:
        return any(w.type == "BELOW_MINIMUM" for w in self.warnings)


class PeriodProjector:
    """
    Projects periods of one scenario.

    Args:
        scenario: Scenario being forecast
        debt_service_provider: Optional ``DebtServiceProvider`` for the
            scenario's debt instruments and DEBT_SERVICE expense lookups
        renewal_draws: Optional ``GrantRenewalDraws`` for multi-year grants
    """

    def __init__(
        self,
        scenario: ForecastScenario,
        debt_service_provider: Optional[DebtServiceProvider] = None,
        renewal_draws: Optional[GrantRenewalDraws] = None,
    ) -> None:
        self.scenario = scenario
        self.debt_service_provider = debt_service_provider
        self.renewal_draws = renewal_draws
        self.periods_per_year = scenario.period_grid().periods_per_year
        # Already carried by explicit expense lines
        self._linked_instruments = set(scenario.linked_instrument_ids())

    def _context(self, period: PeriodWindow) -> ProjectionContext:
        return ProjectionContext(
            period=period,
            periods_per_year=self.periods_per_year,
            assumptions=self.scenario.assumptions,
            fund_id=self.scenario.fund_id,
            debt_service_provider=self.debt_service_provider,
            renewal_draws=self.renewal_draws,
        )

    def _applies(self, model, period: PeriodWindow) -> bool:
        if model.fund_id is not None and model.fund_id != self.scenario.fund_id:
            return False
        return model.applies_to(period.start, period.end)

    def _line_items(
        self, models: Iterable, context: ProjectionContext, code_field: str
    ) -> List[ForecastLineItem]:
        items = []
        for model in models:
            if not self._applies(model, context.period):
                continue
            items.append(
                ForecastLineItem(
                    model_id=model.id,
                    model_name=model.name,
                    code=getattr(model, code_field),
                    amount=round_currency(model.period_amount(context)),
                    assumptions=model.describe(),
                )
            )
        return items

    def period_debt_service(self, period: PeriodWindow) -> float:
        """Per-period slice of the fund's annual instrument debt service."""
        if self.debt_service_provider is None or not self.scenario.debt_instruments:
            return 0.0
        annual = self.debt_service_provider.annual_debt_service(
            self.scenario.fund_id, period.year, exclude=self._linked_instruments
        )
        return round_currency(annual / self.periods_per_year)

    def project_period(
        self,
        beginning_balance: float,
        period: PeriodWindow,
        negative_seen: bool = False,
    ) -> PeriodProjection:
        """
        Project one period.

        Args:
            beginning_balance: Balance entering the period
            period: Period window from the scenario's grid
            negative_seen: Whether an earlier period already went negative;
                the NEGATIVE_BALANCE warning is only raised the first time

        Returns:
            PeriodProjection with line items, totals, ending balance and warnings
        """
        context = self._context(period)
        revenues = self._line_items(self.scenario.revenue_models, context, "source_code")
        expenses = self._line_items(self.scenario.expense_models, context, "target_code")

        period_revenue = round_currency(sum(item.amount for item in revenues))
        period_expense = round_currency(sum(item.amount for item in expenses))
        debt_service = self.period_debt_service(period)
        ending_balance = round_currency(
            beginning_balance + period_revenue - period_expense - debt_service
        )

        warnings = []
        if ending_balance < 0 and not negative_seen:
            warnings.append(
                ForecastWarning(
                    type="NEGATIVE_BALANCE",
                    message=(
                        f"Fund balance goes negative in {period.label}: "
                        f"{format_currency(ending_balance)}"
                    ),
                    severity="CRITICAL",
                    suggested_action="Review revenue projections or reduce planned expenses",
                )
            )

        policy = self.scenario.minimum_balance
        if policy is not None:
            required = round_currency(policy.required_balance(period_expense))
            if ending_balance < required:
                warnings.append(
                    ForecastWarning(
                        type="BELOW_MINIMUM",
                        message=(
                            f"Balance {format_currency(ending_balance)} falls below minimum "
                            f"{format_currency(required)} in {period.label}"
                        ),
                        severity="HIGH",
                        suggested_action=(
                            "Consider building reserves or adjusting expenditure timing"
                        ),
                    )
                )

        logger.debug(
            f"{period.label}: revenue {period_revenue}, expense {period_expense}, "
            f"debt service {debt_service}, ending {ending_balance}"
        )

        return PeriodProjection(
            period=period,
            beginning_balance=beginning_balance,
            revenues=revenues,
            expenses=expenses,
            period_revenue=period_revenue,
            period_expense=period_expense,
            debt_service=debt_service,
            ending_balance=ending_balance,
            warnings=warnings,
        )
