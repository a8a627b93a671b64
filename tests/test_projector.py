"""Tests for single-period projection."""

from datetime import date

import pytest

from fiscal_forecast.models.assumptions import MinimumBalancePolicy
from fiscal_forecast.models.debt_service import DebtServiceScheduleBuilder
from fiscal_forecast.models.projector import PeriodProjector
from fiscal_forecast.models.scenario import ForecastScenario


def first_period(scenario):
    return scenario.period_grid().generate_periods()[0]


class TestPeriodProjector:
    """Test PeriodProjector."""

    def test_first_year_of_baseline(self, annual_scenario):
        """Test totals, line items and ending balance of year one."""
        projector = PeriodProjector(annual_scenario)
        projection = projector.project_period(50_000, first_period(annual_scenario))

        assert projection.period_revenue == 120_000
        assert projection.period_expense == 125_000
        assert projection.debt_service == 0.0
        assert projection.ending_balance == 45_000
        assert projection.net_change == -5_000
        assert projection.warnings == []

        (revenue,) = projection.revenues
        assert revenue.model_id == "rev-tax"
        assert revenue.code == "4100"
        assert revenue.assumptions == "2.0% annual growth"
        assert projection.expenses[0].code == "5100"

    def test_models_for_other_funds_are_skipped(self, annual_scenario):
        scenario = annual_scenario.model_copy(deep=True)
        scenario.revenue_models[0].fund_id = "fund-other"

        projection = PeriodProjector(scenario).project_period(0, first_period(scenario))

        assert projection.revenues == []
        assert projection.period_revenue == 0.0

    def test_negative_balance_warned_once(self, annual_scenario):
        projector = PeriodProjector(annual_scenario)
        period = first_period(annual_scenario)

        first = projector.project_period(1_000, period)
        later = projector.project_period(1_000, period, negative_seen=True)

        assert first.is_negative
        assert [w.type for w in first.warnings] == ["NEGATIVE_BALANCE"]
        assert first.warnings[0].severity == "CRITICAL"
        assert "2025" in first.warnings[0].message
        assert later.is_negative
        assert later.warnings == []

    def test_below_minimum_policy(self, annual_scenario):
        scenario = annual_scenario.model_copy(
            update={"minimum_balance": MinimumBalancePolicy(type="PERCENTAGE_OF_EXPENSES", value=0.5)}
        )

        projection = PeriodProjector(scenario).project_period(50_000, first_period(scenario))

        # 45,000 ending vs 62,500 required
        assert projection.is_below_minimum
        assert projection.warnings[0].type == "BELOW_MINIMUM"
        assert projection.warnings[0].severity == "HIGH"
        assert "$62,500" in projection.warnings[0].message


class TestDebtServiceFolding:
    """Test folding instrument debt service into periods."""

    @pytest.fixture
    def note_scenario(self):
        return ForecastScenario(
            id="scn-debt",
            tenant_id="town-1",
            name="Debt",
            fund_id="fund-101",
            start_date=date(2025, 1, 1),
            horizon_months=24,
            granularity="MONTHLY",
            debt_instruments=[
                {
                    "id": "note-truck",
                    "name": "Fire Truck Note",
                    "fund_id": "fund-101",
                    "par_amount": 300_000,
                    "interest_rate": 0.05,
                    "term_years": 3,
                    "amortization_type": "LEVEL_PRINCIPAL",
                    "issue_date": date(2024, 6, 1),
                }
            ],
        )

    def test_annual_debt_service_spread_over_periods(self, note_scenario):
        lookup = DebtServiceScheduleBuilder.build_lookup(note_scenario.debt_instruments, 2, 2025)
        projector = PeriodProjector(note_scenario, debt_service_provider=lookup)

        projection = projector.project_period(100_000, first_period(note_scenario))

        assert projection.debt_service == 9_583.33
        assert projection.ending_balance == 90_416.67
        assert projection.net_change == -9_583.33

    def test_linked_instruments_not_double_counted(self, note_scenario):
        scenario = ForecastScenario.model_validate(
            {
                **note_scenario.model_dump(),
                "expense_models": [
                    {
                        "type": "DEBT_SERVICE",
                        "id": "exp-note",
                        "name": "Fire Truck Note",
                        "start_date": date(2025, 1, 1),
                        "debt_instrument_id": "note-truck",
                    }
                ],
            }
        )
        lookup = DebtServiceScheduleBuilder.build_lookup(scenario.debt_instruments, 2, 2025)
        projector = PeriodProjector(scenario, debt_service_provider=lookup)

        projection = projector.project_period(100_000, first_period(scenario))

        assert projection.debt_service == 0.0
        assert projection.period_expense == 9_583.33
        assert projection.ending_balance == 90_416.67

    def test_no_provider_means_no_debt_service(self, note_scenario):
        projection = PeriodProjector(note_scenario).project_period(
            100_000, first_period(note_scenario)
        )
        assert projection.debt_service == 0.0


class FlatDebtService:
    """Debt service provider charging a flat annual amount to one fund."""

    def __init__(self, fund_id, amount):
        self.fund_id = fund_id
        self.amount = amount
        self.excluded = []

    def annual_debt_service(self, fund_id, year, exclude=None):
        self.excluded.append(set(exclude or ()))
        return self.amount if fund_id == self.fund_id else 0.0

    def instrument_debt_service(self, instrument_id, year):
        return 0.0


class TestDebtServiceProvider:
    """Test that any object implementing the provider interface can be used."""

    def test_custom_provider(self, annual_scenario, water_bond):
        scenario = annual_scenario.model_copy(
            update={"debt_instruments": [water_bond.model_copy(update={"fund_id": "fund-101"})]}
        )
        provider = FlatDebtService("fund-101", 12_000)

        projection = PeriodProjector(scenario, debt_service_provider=provider).project_period(
            50_000, first_period(scenario)
        )

        assert projection.debt_service == 12_000
        assert projection.ending_balance == 33_000
        assert provider.excluded == [set()]
