"""Tests for expense models."""

from datetime import date

import pytest
from pydantic import TypeAdapter, ValidationError

from fiscal_forecast.models.assumptions import EconomicAssumptions, ProjectionContext
from fiscal_forecast.models.expense_models import (
    BaselineInflationExpenseModel,
    CapitalPlanExpenseModel,
    CapitalProject,
    ContractExpenseModel,
    CustomExpenseModel,
    DebtServiceExpenseModel,
    ExpenseModel,
    PersonnelExpenseModel,
    StepChangeExpenseModel,
    UtilityExpenseModel,
)
from fiscal_forecast.models.formula import Formula
from fiscal_forecast.models.periods import PeriodGrid

START = date(2025, 1, 1)


def make_context(index=0, granularity="MONTHLY", provider=None, **assumptions):
    grid = PeriodGrid(start_date=START, horizon_months=120, granularity=granularity)
    return ProjectionContext(
        period=grid.generate_periods()[index],
        periods_per_year=grid.periods_per_year,
        assumptions=EconomicAssumptions(**assumptions),
        fund_id="fund-101",
        debt_service_provider=provider,
    )


class StubDebtServiceProvider:
    """Debt service provider with a fixed amount per instrument and year."""

    def __init__(self, amounts):
        self.amounts = amounts

    def instrument_debt_service(self, instrument_id, year):
        return self.amounts.get((instrument_id, year), 0.0)

    def annual_debt_service(self, fund_id, year, exclude=None):
        return 0.0


class TestInflationExpenses:
    """Test BASELINE_INFLATION and STEP_CHANGE expenses."""

    def test_explicit_rate(self):
        model = BaselineInflationExpenseModel(
            id="e1", name="Ops", start_date=START, base_amount=125_000, inflation_rate=0.03
        )
        assert model.period_amount(make_context(4, "ANNUAL")) == pytest.approx(125_000 * 1.03**4)

    def test_falls_back_to_general_inflation(self):
        model = BaselineInflationExpenseModel(
            id="e1", name="Ops", start_date=START, base_amount=100_000
        )
        context = make_context(1, "ANNUAL", general_inflation=0.05)

        assert model.period_amount(context) == pytest.approx(105_000)
        assert model.describe() == "General inflation"

    def test_step_changes_in_order(self):
        model = StepChangeExpenseModel(
            id="e1", name="Parks", start_date=START, base_amount=120_000,
            step_changes=[
                {"effective_date": date(2025, 7, 1), "change_type": "ABSOLUTE", "amount": 24_000},
                {"effective_date": date(2026, 1, 1), "change_type": "PERCENTAGE", "amount": 0.10},
                {"effective_date": date(2027, 1, 1), "change_type": "REPLACEMENT", "amount": 60_000},
            ],
        )

        assert model.period_amount(make_context(5)) == pytest.approx(10_000)
        assert model.period_amount(make_context(6)) == pytest.approx(12_000)
        assert model.period_amount(make_context(12)) == pytest.approx(13_200)
        assert model.period_amount(make_context(24)) == pytest.approx(5_000)

    def test_step_change_inflation(self):
        model = StepChangeExpenseModel(
            id="e1", name="Parks", start_date=START, base_amount=100_000, inflation_rate=0.02
        )
        assert model.period_amount(make_context(1, "ANNUAL")) == pytest.approx(102_000)


class TestPersonnelExpense:
    """Test PERSONNEL expenses."""

    def make_model(self, **overrides):
        fields = dict(
            id="p1", name="Police", start_date=START, fte_count=10, average_salary=50_000,
            salary_increase_rate=0.0, benefits_rate=0.30, perf_rate=0.112,
        )
        fields.update(overrides)
        return PersonnelExpenseModel(**fields)

    def test_loaded_cost(self):
        """Test salary plus benefits, FICA and pension per FTE."""
        model = self.make_model()
        # 50,000 + 15,000 benefits + 3,825 FICA + 5,600 PERF
        assert model.period_amount(make_context(0, "ANNUAL")) == pytest.approx(744_250)

    def test_raises_default_to_wage_growth(self):
        model = self.make_model(salary_increase_rate=None, benefits_rate=0.0, fica_rate=0.0,
                                perf_rate=0.0)
        context = make_context(1, "ANNUAL", wage_growth=0.04)
        assert model.period_amount(context) == pytest.approx(10 * 52_000)

    def test_fte_changes(self):
        model = self.make_model(
            benefits_rate=0.0, fica_rate=0.0, perf_rate=0.0,
            fte_changes=[
                {"effective_date": date(2025, 6, 1), "change_type": "ADD", "count": 2},
                {"effective_date": date(2026, 3, 1), "change_type": "REMOVE", "count": 1},
                {"effective_date": date(2027, 1, 1), "change_type": "SET", "count": 8},
            ],
        )

        assert model.fte_count_at(date(2025, 5, 31)) == 10
        assert model.fte_count_at(date(2025, 12, 31)) == 12
        assert model.fte_count_at(date(2026, 12, 31)) == 11
        assert model.fte_count_at(date(2027, 12, 31)) == 8
        assert model.period_amount(make_context(0, "ANNUAL")) == pytest.approx(12 * 50_000)


class TestDebtServiceExpense:
    """Test DEBT_SERVICE expenses."""

    def test_explicit_schedule(self):
        model = DebtServiceExpenseModel(
            id="d1", name="Bond", start_date=START,
            payment_schedule=[
                {"payment_date": date(2025, 2, 1), "total_payment": 40_000},
                {"payment_date": date(2025, 8, 1), "total_payment": 90_000},
            ],
        )

        assert model.period_amount(make_context(1)) == 40_000
        assert model.period_amount(make_context(2)) == 0.0
        assert model.period_amount(make_context(0, "ANNUAL")) == 130_000

    def test_linked_instrument_lookup(self):
        provider = StubDebtServiceProvider({("bond-1", 2025): 120_000})
        model = DebtServiceExpenseModel(
            id="d1", name="Bond", start_date=START, debt_instrument_id="bond-1"
        )

        assert model.period_amount(make_context(0, provider=provider)) == pytest.approx(10_000)
        assert model.period_amount(make_context(12, provider=provider)) == 0.0
        assert model.period_amount(make_context(0)) == 0.0


class TestCapitalPlanExpense:
    """Test CAPITAL_PLAN expenses."""

    def test_even_spread_over_project_months(self):
        model = CapitalPlanExpenseModel(
            id="c1", name="CIP", start_date=START,
            projects=[CapitalProject(
                name="Main St", start_date=date(2025, 1, 1), end_date=date(2025, 6, 30),
                total_cost=600_000,
            )],
        )

        assert model.period_amount(make_context(0)) == pytest.approx(100_000)
        assert model.period_amount(make_context(1, "QUARTERLY")) == pytest.approx(300_000)
        assert model.period_amount(make_context(2, "QUARTERLY")) == 0.0

    def test_spending_schedule(self):
        project = CapitalProject(
            name="Fire Station", start_date=date(2025, 1, 1), end_date=date(2025, 12, 31),
            total_cost=1_000_000,
            spending_schedule=[
                {"month": date(2025, 2, 1), "amount": 250_000},
                {"month": date(2025, 11, 1), "amount": 750_000},
            ],
        )

        assert project.cost_between(date(2025, 1, 1), date(2025, 3, 31)) == 250_000
        assert project.cost_between(date(2025, 4, 1), date(2025, 6, 30)) == 0.0

    def test_project_dates_validated(self):
        with pytest.raises(ValidationError, match="Project end date"):
            CapitalProject(
                name="Bad", start_date=date(2025, 6, 1), end_date=date(2025, 1, 1), total_cost=1
            )


class TestContractAndUtilityExpenses:
    """Test CONTRACT and UTILITY expenses."""

    def test_contract_escalation_and_renewal(self):
        model = ContractExpenseModel(
            id="k1", name="Trash", start_date=START, annual_amount=120_000,
            escalation_rate=0.05, contract_end_date=date(2026, 6, 30), renewal_amount=150_000,
        )
        expired = model.model_copy(update={"renewal_amount": None})

        assert model.period_amount(make_context(1, "ANNUAL")) == pytest.approx(126_000)
        assert model.period_amount(make_context(2, "ANNUAL")) == pytest.approx(150_000)
        assert expired.period_amount(make_context(2, "ANNUAL")) == 0.0

    def test_utility_usage_and_rate(self):
        model = UtilityExpenseModel(
            id="u1", name="Electric", start_date=START, utility_type="ELECTRIC",
            base_usage=1000, current_rate=0.10, usage_growth_rate=0.10, rate_increase_rate=0.10,
        )

        assert model.period_amount(make_context(0)) == pytest.approx(100)
        assert model.period_amount(make_context(1, "ANNUAL")) == pytest.approx(1100 * 0.11 * 12)

    def test_utility_monthly_pattern(self):
        model = UtilityExpenseModel(
            id="u1", name="Gas", start_date=START, base_usage=1000, current_rate=0.10,
            monthly_pattern=[1.5, 0.5] + [None] * 10,
        )

        assert model.period_amount(make_context(0)) == pytest.approx(150)
        assert model.period_amount(make_context(2)) == pytest.approx(100)
        assert model.period_amount(make_context(0, "QUARTERLY")) == pytest.approx(300)


class TestCustomExpense:
    """Test CUSTOM expenses and union dispatch."""

    def test_formula(self):
        model = CustomExpenseModel(
            id="x1", name="Insurance", start_date=START,
            formula="premium * (1 + wage_growth) ** years_elapsed * months_in_period / 12",
            variables={"premium": 24_000},
        )
        assert model.period_amount(make_context(1, "ANNUAL", wage_growth=0.05)) == pytest.approx(25_200)

    def test_formula_parsed_at_construction(self):
        model = CustomExpenseModel(id="x1", name="Insurance", start_date=START, formula="2 * 3")
        assert isinstance(model._parsed, Formula)

        with pytest.raises(ValidationError, match="Invalid formula"):
            CustomExpenseModel(id="x1", name="Insurance", start_date=START, formula="import os")

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(ExpenseModel).validate_python(
                {"type": "MYSTERY", "id": "x1", "name": "?", "start_date": START}
            )
