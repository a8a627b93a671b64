"""
Exceptions raised by the forecasting and debt analysis engines.

Structural problems with a scenario are collected into error and warning
lists first; the engines raise only once the collected errors are non-empty.
"""

from typing import List, Optional


class ForecastError(Exception):
    """Base exception for forecasting and debt analysis errors."""


class ScenarioValidationError(ForecastError):
    """Raised when a scenario fails structural validation."""

    def __init__(self, errors: List[str], warnings: Optional[List[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(f"Invalid scenario: {', '.join(self.errors)}")


class TICConvergenceError(ForecastError):
    """Raised when the true interest cost solver does not converge."""

    def __init__(self, last_estimate: float, iterations: int):
        self.last_estimate = last_estimate
        self.iterations = iterations
        super().__init__(
            f"True interest cost did not converge after {iterations} iterations "
            f"(last estimate {last_estimate:.6f})"
        )


class FormulaError(ForecastError):
    """Raised when a custom formula cannot be parsed or evaluated."""
