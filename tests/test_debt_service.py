"""Tests for horizon debt service schedules, lookups and coverage."""

from datetime import date

import pytest

from fiscal_forecast.models.debt import DebtInstrument
from fiscal_forecast.models.debt_service import (
    DebtServiceScheduleBuilder,
    annual_debt_service_for_fund,
    build_coverage_summaries,
    debt_service_by_fund_by_year,
    summarize_schedules,
    total_debt_service_by_year,
)
from fiscal_forecast.models.ledger import Fund


@pytest.fixture
def fire_truck_note():
    """$300k 5% 3-year level principal note paid by the general fund."""
    return DebtInstrument(
        id="note-truck",
        name="Fire Truck Note",
        debt_type="NOTE",
        fund_id="fund-101",
        par_amount=300_000,
        interest_rate=0.05,
        term_years=3,
        amortization_type="LEVEL_PRINCIPAL",
        issue_date=date(2024, 6, 1),
    )


class TestBuildForHorizon:
    """Test horizon clipping of instrument schedules."""

    def test_level_debt_service_is_constant_mid_term(self, water_bond):
        """Test resuming mid-term from the closed-form balance."""
        schedule = DebtServiceScheduleBuilder.build_for_horizon(water_bond, 5, 2025)

        assert [p.year for p in schedule.payments] == [2025, 2026, 2027, 2028, 2029]
        assert [p.period_index for p in schedule.payments] == [0, 1, 2, 3, 4]
        for payment in schedule.payments:
            assert payment.total == pytest.approx(73581.75, abs=0.01)

    def test_horizon_before_first_payment(self, water_bond):
        schedule = DebtServiceScheduleBuilder.build_for_horizon(water_bond, 5, 2018)

        assert [p.year for p in schedule.payments] == [2021, 2022]
        assert schedule.payments[0].period_index == 3
        assert schedule.payments[0].interest == 40_000

    def test_horizon_after_maturity(self, water_bond):
        schedule = DebtServiceScheduleBuilder.build_for_horizon(water_bond, 5, 2045)
        assert schedule.payments == []

    def test_final_year_retires_balance(self, water_bond):
        schedule = DebtServiceScheduleBuilder.build_for_horizon(water_bond, 25, 2021)

        assert len(schedule.payments) == 20
        assert schedule.payments[-1].year == 2040
        assert sum(p.principal for p in schedule.payments) == pytest.approx(1_000_000, abs=1)

    def test_level_principal(self, fire_truck_note):
        schedule = DebtServiceScheduleBuilder.build_for_horizon(fire_truck_note, 5, 2025)

        assert [p.principal for p in schedule.payments] == [100_000, 100_000, 100_000]
        assert [p.interest for p in schedule.payments] == [15_000, 10_000, 5_000]


class TestAggregation:
    """Test fund and year aggregation of schedules."""

    def test_lookup_by_fund_and_instrument(self, water_bond, fire_truck_note):
        lookup = DebtServiceScheduleBuilder.build_lookup([water_bond, fire_truck_note], 3, 2025)

        assert lookup.annual_debt_service("fund-water", 2025) == 73581.75
        assert lookup.annual_debt_service("fund-101", 2025) == 115_000
        assert lookup.annual_debt_service("fund-101", 2025, exclude=["note-truck"]) == 0.0
        assert lookup.instrument_debt_service("note-truck", 2027) == 105_000
        assert lookup.instrument_debt_service("unknown", 2025) == 0.0

    def test_totals_by_year_include_empty_years(self, fire_truck_note):
        schedules = DebtServiceScheduleBuilder.build_schedules([fire_truck_note], 5, 2025)
        totals = total_debt_service_by_year(schedules, 2025, 5)

        assert totals == {2025: 115_000, 2026: 110_000, 2027: 105_000, 2028: 0.0, 2029: 0.0}

    def test_by_fund_by_year(self, water_bond, fire_truck_note):
        instruments = [water_bond, fire_truck_note]
        schedules = DebtServiceScheduleBuilder.build_schedules(instruments, 2, 2025)

        by_fund = debt_service_by_fund_by_year(instruments, schedules, 2025, 2)

        assert set(by_fund) == {"fund-water", "fund-101"}
        assert by_fund["fund-101"] == {2025: 115_000, 2026: 110_000}
        assert annual_debt_service_for_fund("fund-101", 2026, instruments, schedules) == 110_000

    def test_summary_text(self, water_bond):
        schedules = DebtServiceScheduleBuilder.build_schedules([water_bond], 3, 2045)
        text = summarize_schedules([water_bond], schedules)

        assert "2020 Water Revenue Bonds" in text
        assert "No payments in forecast horizon" in text


class TestCoverage:
    """Test pledged revenue coverage summaries."""

    def test_coverage_meets_requirement_when_ratio_at_least_minimum(self, water_bond):
        schedules = DebtServiceScheduleBuilder.build_schedules([water_bond], 3, 2025)
        revenue = {"fund-water": {2025: 100_000, 2026: 80_000}}
        funds = [Fund(id="fund-water", code="601", name="Water Utility")]

        summaries = build_coverage_summaries([water_bond], schedules, revenue, funds, 2025, 3)

        assert len(summaries) == 1
        summary = summaries[0]
        assert summary.fund_name == "Water Utility"
        assert summary.min_coverage_ratio == 1.25
        for entry in summary.coverage_by_year:
            assert entry.meets_requirement == (entry.coverage_ratio >= 1.25)
        assert summary.coverage_by_year[0].meets_requirement is True
        assert summary.coverage_by_year[1].meets_requirement is False
        assert summary.coverage_by_year[2].revenue == 0.0

    def test_no_pledged_instruments(self, fire_truck_note):
        schedules = DebtServiceScheduleBuilder.build_schedules([fire_truck_note], 3, 2025)
        assert build_coverage_summaries([fire_truck_note], schedules, {}, [], 2025, 3) == []

    def test_zero_minimum_is_always_met(self, water_bond):
        bond = water_bond.model_copy(update={"min_coverage_ratio": 0.0})
        schedules = DebtServiceScheduleBuilder.build_schedules([bond], 2, 2025)
        revenue = {"fund-water": {2025: 10_000, 2026: 0}}

        summary = build_coverage_summaries([bond], schedules, revenue, [], 2025, 2)[0]

        assert [entry.meets_requirement for entry in summary.coverage_by_year] == [True, True]
