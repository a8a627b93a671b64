"""
Forecast engine.

Coordinates a fund forecast from current ledger state and a scenario:
validation, period-by-period projection, summary and risk classification.
Also compares forecast results and runs single-variable sensitivity
analysis. The engine keeps no state between calls.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from ..config import Settings, get_global_settings
from ..models.assumptions import EconomicAssumptions, GrantRenewalDraws
from ..models.debt_service import DebtServiceLookup, DebtServiceScheduleBuilder
from ..models.forecast_result import (
    BalancePoint,
    ForecastPeriod,
    ForecastResult,
    ForecastSummary,
    PeriodVariance,
    RiskLevel,
    ScenarioComparison,
    SensitivityAnalysis,
    SensitivityPoint,
)
from ..models.ledger import CurrentLedgerState
from ..models.money import format_currency, format_percentage, round_currency
from ..models.periods import PeriodWindow
from ..models.projector import PeriodProjector
from ..models.protocols import RandomSource
from ..models.scenario import ForecastScenario, ScenarioValidationResult
from .scenario_diff import describe_scenario_changes

logger = logging.getLogger(__name__)


def _percent_of(delta: float, base: float) -> float:
    return delta / abs(base) * 100 if base != 0 else 0.0


class ForecastEngine:
    """Generates, compares and stress-tests fund forecasts."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_global_settings()

    def validate_scenario(self, scenario: ForecastScenario) -> ScenarioValidationResult:
        """
        Check a scenario for structural errors and questionable assumptions.

        Args:
            scenario: Scenario to check

        Returns:
            Validation result; ``is_valid`` is False when any error was found
        """
        errors: List[str] = []
        warnings: List[str] = []

        if not scenario.id:
            errors.append("Scenario ID is required")
        if not scenario.tenant_id:
            errors.append("Tenant ID is required")
        if not scenario.name:
            errors.append("Scenario name is required")
        if not scenario.fund_id:
            errors.append("Fund ID is required")
        if scenario.horizon_months < 1:
            errors.append("Horizon must be at least 1 month")
        if scenario.horizon_months > self.settings.horizon_warning_months:
            years = self.settings.horizon_warning_months // 12
            warnings.append(f"Forecasts beyond {years} years have high uncertainty")

        if not scenario.revenue_models:
            warnings.append("No revenue models defined - forecast will show zero revenue")
        if not scenario.expense_models:
            warnings.append("No expense models defined - forecast will show zero expenses")

        inflation = scenario.assumptions.general_inflation
        if inflation < 0:
            warnings.append("Negative inflation assumption may be unrealistic")
        if inflation > self.settings.high_inflation_threshold:
            warnings.append(
                f"Very high inflation assumption "
                f"(>{format_percentage(self.settings.high_inflation_threshold, 0)})"
            )

        return ScenarioValidationResult.from_messages(errors, warnings)

    def generate_forecast(
        self,
        current_state: CurrentLedgerState,
        scenario: ForecastScenario,
        rng: Optional[RandomSource] = None,
    ) -> ForecastResult:
        """
        Project a fund balance across the scenario's horizon.

        Args:
            current_state: Fund and balance the forecast starts from
            scenario: Forecast scenario
            rng: Random source for grant renewals (defaults to a generator
                seeded with ``scenario.random_seed``)

        Returns:
            ForecastResult with every period, summary and risk assessment

        Raises:
            ScenarioValidationError: If the scenario has structural errors
        """
        validation = self.validate_scenario(scenario)
        if not validation.is_valid:
            logger.error(
                f"Scenario {scenario.id!r} failed validation: {', '.join(validation.errors)}"
            )
            validation.ensure_valid()
        for warning in validation.warnings:
            logger.warning(f"Scenario {scenario.id}: {warning}")

        periods = scenario.period_grid().generate_periods()
        logger.info(
            f"Generating forecast for scenario {scenario.id} "
            f"({len(periods)} {scenario.granularity.lower()} periods)"
        )

        if rng is None:
            rng = np.random.default_rng(scenario.random_seed)
        projector = PeriodProjector(
            scenario,
            debt_service_provider=self._debt_service_provider(scenario, periods),
            renewal_draws=GrantRenewalDraws(rng),
        )

        starting_balance = current_state.fund.current_balance
        balance = starting_balance
        lowest = BalancePoint(amount=balance, period_label="Starting")
        highest = BalancePoint(amount=balance, period_label="Starting")
        cumulative = 0.0
        total_revenues = total_expenses = total_debt_service = 0.0
        negative_periods = below_minimum_periods = 0

        forecast_periods = []
        for period in periods:
            projection = projector.project_period(
                balance, period, negative_seen=negative_periods > 0
            )
            balance = projection.ending_balance
            cumulative = round_currency(cumulative + projection.net_change)
            total_revenues += projection.period_revenue
            total_expenses += projection.period_expense
            total_debt_service += projection.debt_service

            if projection.is_negative:
                negative_periods += 1
            if projection.is_below_minimum:
                below_minimum_periods += 1
            if balance < lowest.amount:
                lowest = BalancePoint(amount=balance, period_label=period.label)
            if balance > highest.amount:
                highest = BalancePoint(amount=balance, period_label=period.label)

            forecast_periods.append(
                ForecastPeriod(
                    period_start=period.start,
                    period_end=period.end,
                    label=period.label,
                    beginning_balance=projection.beginning_balance,
                    revenues=projection.revenues,
                    expenses=projection.expenses,
                    total_revenues=projection.period_revenue,
                    total_expenses=projection.period_expense,
                    debt_service=projection.debt_service,
                    net_change=projection.net_change,
                    ending_balance=projection.ending_balance,
                    cumulative_net_change=cumulative,
                    warnings=projection.warnings,
                )
            )

        net_change = round_currency(balance - starting_balance)
        summary = ForecastSummary(
            total_periods=len(forecast_periods),
            total_revenues=round_currency(total_revenues),
            total_expenses=round_currency(total_expenses),
            total_debt_service=round_currency(total_debt_service),
            net_change=net_change,
            final_balance=balance,
            lowest_balance=lowest,
            highest_balance=highest,
            average_monthly_net_change=round_currency(net_change / scenario.horizon_months),
            periods_with_negative_balance=negative_periods,
            periods_below_minimum=below_minimum_periods,
            risk_assessment=self.assess_risk(
                negative_periods, below_minimum_periods, balance, starting_balance
            ),
        )

        logger.info(
            f"Forecast {scenario.id} complete: final balance {format_currency(balance)}, "
            f"risk {summary.risk_assessment}"
        )

        return ForecastResult(
            scenario_id=scenario.id,
            scenario_name=scenario.name,
            fund_id=current_state.fund.id,
            fund_name=current_state.fund.name,
            starting_balance=starting_balance,
            periods=forecast_periods,
            summary=summary,
            warnings=validation.warnings,
            assumptions_summary=self.build_assumptions_summary(scenario),
            scenario=scenario.model_copy(deep=True),
        )

    def _debt_service_provider(
        self, scenario: ForecastScenario, periods: Sequence[PeriodWindow]
    ) -> Optional[DebtServiceLookup]:
        instruments = [inst for inst in scenario.debt_instruments if inst.is_active]
        if not instruments or not periods:
            return None
        start_year = periods[0].year
        horizon_years = periods[-1].year - start_year + 1
        return DebtServiceScheduleBuilder.build_lookup(instruments, horizon_years, start_year)

    def assess_risk(
        self,
        periods_with_negative_balance: int,
        periods_below_minimum: int,
        final_balance: float,
        starting_balance: float,
    ) -> RiskLevel:
        """
        Classify overall forecast risk.

        CRITICAL if the balance ever goes negative, HIGH if it sits below the
        minimum for more than the configured number of periods, MODERATE for
        any shorter shortfall or a decline beyond the configured share of a
        positive starting balance, otherwise LOW.
        """
        if periods_with_negative_balance > 0:
            return "CRITICAL"
        if periods_below_minimum > self.settings.high_risk_below_minimum_periods:
            return "HIGH"
        if periods_below_minimum > 0:
            return "MODERATE"
        if starting_balance > 0:
            decline = (starting_balance - final_balance) / starting_balance
            if decline > self.settings.balance_decline_threshold:
                return "MODERATE"
        return "LOW"

    def build_assumptions_summary(self, scenario: ForecastScenario) -> List[str]:
        assumptions = scenario.assumptions
        lines = [
            f"General inflation: {format_percentage(assumptions.general_inflation)}",
            f"Wage growth: {format_percentage(assumptions.wage_growth)}",
            f"Property value growth: {format_percentage(assumptions.property_value_growth)}",
            f"Interest rate: {format_percentage(assumptions.interest_rate, 2)}",
        ]

        policy = scenario.minimum_balance
        if policy is not None:
            if policy.type == "ABSOLUTE":
                lines.append(f"Minimum balance target: {format_currency(policy.value)}")
            else:
                lines.append(
                    f"Minimum balance target: {format_percentage(policy.value, 0)} of expenses"
                )

        if scenario.debt_instruments:
            lines.append(f"Debt instruments: {len(scenario.debt_instruments)}")
        for model in scenario.revenue_models:
            lines.append(f"Revenue - {model.name}: {model.describe()}")
        for model in scenario.expense_models:
            lines.append(f"Expense - {model.name}: {model.describe()}")
        return lines

    def compare_scenarios(
        self, base: ForecastResult, alternate: ForecastResult
    ) -> ScenarioComparison:
        """
        Compare two forecast results.

        Periods are paired by index; periods beyond the shorter result are
        ignored. Assumption changes are listed when both results carry the
        scenario they were generated from.
        """
        variances = []
        for base_period, alt_period in zip(base.periods, alternate.periods):
            variance = round_currency(alt_period.ending_balance - base_period.ending_balance)
            variances.append(
                PeriodVariance(
                    period_label=base_period.label,
                    base_revenue=base_period.total_revenues,
                    alternate_revenue=alt_period.total_revenues,
                    revenue_variance=round_currency(
                        alt_period.total_revenues - base_period.total_revenues
                    ),
                    base_expense=base_period.total_expenses,
                    alternate_expense=alt_period.total_expenses,
                    expense_variance=round_currency(
                        alt_period.total_expenses - base_period.total_expenses
                    ),
                    base_ending_balance=base_period.ending_balance,
                    alternate_ending_balance=alt_period.ending_balance,
                    variance=variance,
                    variance_percent=round_currency(
                        _percent_of(variance, base_period.ending_balance)
                    ),
                )
            )

        revenue_variance = round_currency(
            alternate.summary.total_revenues - base.summary.total_revenues
        )
        expense_variance = round_currency(
            alternate.summary.total_expenses - base.summary.total_expenses
        )
        base_revenue = base.summary.total_revenues
        base_expense = base.summary.total_expenses

        changes: List[str] = []
        if base.scenario is not None and alternate.scenario is not None:
            changes = describe_scenario_changes(base.scenario, alternate.scenario)

        return ScenarioComparison(
            base_scenario_id=base.scenario_id,
            base_scenario_name=base.scenario_name,
            alternate_scenario_id=alternate.scenario_id,
            alternate_scenario_name=alternate.scenario_name,
            period_variances=variances,
            revenue_variance=revenue_variance,
            revenue_variance_percent=round_currency(
                revenue_variance / base_revenue * 100 if base_revenue > 0 else 0.0
            ),
            expense_variance=expense_variance,
            expense_variance_percent=round_currency(
                expense_variance / base_expense * 100 if base_expense > 0 else 0.0
            ),
            final_balance_variance=round_currency(
                alternate.summary.final_balance - base.summary.final_balance
            ),
            risk_change=(
                f"{base.summary.risk_assessment} → {alternate.summary.risk_assessment}"
            ),
            assumption_changes=changes,
        )

    @staticmethod
    def get_variable_value(scenario: ForecastScenario, variable: str) -> float:
        """Current value of a named or custom assumption (0 when undefined)."""
        if variable in EconomicAssumptions.NAMED_VARIABLES:
            return getattr(scenario.assumptions, variable)
        return scenario.assumptions.custom.get(variable, 0.0)

    @staticmethod
    def with_variable(
        scenario: ForecastScenario, variable: str, value: float
    ) -> ForecastScenario:
        """Deep copy of ``scenario`` with one assumption replaced."""
        modified = scenario.model_copy(deep=True)
        if variable in EconomicAssumptions.NAMED_VARIABLES:
            setattr(modified.assumptions, variable, value)
        else:
            modified.assumptions.custom[variable] = value
        return modified

    def run_sensitivity_analysis(
        self,
        current_state: CurrentLedgerState,
        scenario: ForecastScenario,
        variable: str,
        test_values: Sequence[float],
    ) -> SensitivityAnalysis:
        """
        Measure how the final balance responds to one assumption.

        Every run uses the same grant renewal seed so only the tested
        variable differs between runs.

        Args:
            current_state: Fund and balance the forecasts start from
            scenario: Base scenario (left unchanged)
            variable: Named assumption (e.g. ``general_inflation``) or custom key
            test_values: Values to substitute

        Returns:
            SensitivityAnalysis with one point per test value; impact is LOW
            below 5%, MODERATE below 15%, otherwise HIGH
        """
        logger.info(
            f"Running sensitivity of {variable} over {len(test_values)} values "
            f"for scenario {scenario.id}"
        )
        seed = scenario.random_seed
        if seed is None:
            seed = int(np.random.default_rng().integers(2**32))

        base = self.generate_forecast(current_state, scenario, np.random.default_rng(seed))
        base_final = base.summary.final_balance

        points = []
        for value in test_values:
            modified = self.with_variable(scenario, variable, value)
            result = self.generate_forecast(
                current_state, modified, np.random.default_rng(seed)
            )
            delta = round_currency(result.summary.final_balance - base_final)
            points.append(
                SensitivityPoint(
                    value=value,
                    final_balance=result.summary.final_balance,
                    delta_from_base=delta,
                    percent_change=round_currency(_percent_of(delta, base_final)),
                )
            )

        max_change = max((abs(p.percent_change) for p in points), default=0.0)
        if max_change < 5:
            impact = "LOW"
        elif max_change < 15:
            impact = "MODERATE"
        else:
            impact = "HIGH"

        return SensitivityAnalysis(
            variable=variable,
            base_value=self.get_variable_value(scenario, variable),
            base_final_balance=base_final,
            results=points,
            impact=impact,
        )
