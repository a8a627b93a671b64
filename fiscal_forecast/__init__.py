"""Fund balance forecasting and debt scenario modeling."""

from typing import Optional

from .config import Settings, configure_logging, get_global_settings
from .exceptions import (
    ForecastError,
    FormulaError,
    ScenarioValidationError,
    TICConvergenceError,
)
from .services.debt_analyzer import DebtScenarioAnalyzer
from .services.forecast_engine import ForecastEngine

__version__ = "0.1.0"


def create_forecast_engine(settings: Optional[Settings] = None) -> ForecastEngine:
    """Create a forecast engine, configuring logging from settings.

    Args:
        settings: Settings to use (defaults to the global settings)

    Returns:
        ForecastEngine: Engine bound to the settings
    """
    settings = settings or get_global_settings()
    configure_logging(settings)
    return ForecastEngine(settings)


def create_debt_scenario_analyzer(settings: Optional[Settings] = None) -> DebtScenarioAnalyzer:
    """Create a debt scenario analyzer, configuring logging from settings."""
    settings = settings or get_global_settings()
    configure_logging(settings)
    return DebtScenarioAnalyzer(settings)


__all__ = [
    "Settings",
    "ForecastError",
    "FormulaError",
    "ScenarioValidationError",
    "TICConvergenceError",
    "ForecastEngine",
    "DebtScenarioAnalyzer",
    "create_forecast_engine",
    "create_debt_scenario_analyzer",
]
