"""Tests for scenario assumption diffs."""

from datetime import date

from pydantic import TypeAdapter

from fiscal_forecast.models.revenue_models import RevenueModel
from fiscal_forecast.services.scenario_diff import (
    describe_scenario_changes,
    diff_scenarios,
    readable_path,
)


class TestScenarioDiff:
    """Test DeepDiff-based scenario comparison."""

    def test_readable_path(self):
        assert readable_path("root['assumptions']['wage_growth']") == "assumptions.wage_growth"
        assert readable_path("root['revenue_models'][0]['growth_rate']") == (
            "revenue_models.0.growth_rate"
        )

    def test_identity_fields_ignored(self, annual_scenario):
        renamed = annual_scenario.model_copy(
            update={"id": "scn-9", "name": "Copy", "description": "copy", "is_primary": True}
        )

        diff = diff_scenarios(annual_scenario, renamed)

        assert diff["base"] == "scn-1"
        assert diff["alternate"] == "scn-9"
        assert diff["has_changes"] is False
        assert describe_scenario_changes(annual_scenario, renamed) == []

    def test_assumption_changes_formatted_as_percent(self, annual_scenario):
        alternate = annual_scenario.model_copy(deep=True)
        alternate.assumptions.general_inflation = 0.05
        alternate.horizon_months = 120

        assert describe_scenario_changes(annual_scenario, alternate) == [
            "assumptions.general_inflation: 3.0% → 5.0%",
            "horizon_months: 60 → 120",
        ]

    def test_added_and_removed_items(self, annual_scenario):
        base = annual_scenario.model_copy(deep=True)
        base.assumptions.custom["fuel_index"] = 1.1
        alternate = annual_scenario.model_copy(deep=True)
        alternate.revenue_models.append(
            TypeAdapter(RevenueModel).validate_python(
                {"type": "STATIC", "id": "rev-fees", "name": "Park Fees",
                 "start_date": date(2025, 1, 1), "annual_amount": 5_000}
            )
        )

        changes = describe_scenario_changes(base, alternate)

        assert "assumptions.custom.fuel_index: removed" in changes
        assert "revenue_models.1: added Park Fees" in changes
