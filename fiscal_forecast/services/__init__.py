"""Forecasting and debt analysis services."""

from .baseline_forecast import build_forecast, create_baseline_scenario
from .debt_analyzer import DebtScenarioAnalyzer, solve_true_interest_cost
from .forecast_engine import ForecastEngine
from .scenario_diff import describe_scenario_changes, diff_scenarios

__all__ = [
    "build_forecast",
    "create_baseline_scenario",
    "DebtScenarioAnalyzer",
    "solve_true_interest_cost",
    "ForecastEngine",
    "describe_scenario_changes",
    "diff_scenarios",
]
