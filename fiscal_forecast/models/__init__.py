"""Data models for fund forecasts and debt scenarios."""

from .amortization import AmortizationCalculator
from .assumptions import EconomicAssumptions, MinimumBalancePolicy, ProjectionContext
from .debt import (
    AmortizationEntry,
    DebtInstrument,
    DebtServiceSchedule,
    ScheduledPayment,
)
from .debt_scenarios import (
    CombinedDebtScenario,
    DebtCapacityMetrics,
    DebtScenario,
    EarlyPayoffScenario,
    NewIssuanceScenario,
    RefundingScenario,
)
from .expense_models import ExpenseModel
from .forecast_result import (
    ForecastPeriod,
    ForecastResult,
    ForecastSummary,
    ScenarioComparison,
    SensitivityAnalysis,
)
from .ledger import CurrentLedgerState, Fund, FundSnapshot, Transaction
from .periods import PeriodGrid, PeriodWindow
from .revenue_models import RevenueModel
from .scenario import ForecastScenario, ScenarioValidationResult

__all__ = [
    "AmortizationCalculator",
    "EconomicAssumptions",
    "MinimumBalancePolicy",
    "ProjectionContext",
    "AmortizationEntry",
    "DebtInstrument",
    "DebtServiceSchedule",
    "ScheduledPayment",
    "CombinedDebtScenario",
    "DebtCapacityMetrics",
    "DebtScenario",
    "EarlyPayoffScenario",
    "NewIssuanceScenario",
    "RefundingScenario",
    "ExpenseModel",
    "ForecastPeriod",
    "ForecastResult",
    "ForecastSummary",
    "ScenarioComparison",
    "SensitivityAnalysis",
    "CurrentLedgerState",
    "Fund",
    "FundSnapshot",
    "Transaction",
    "PeriodGrid",
    "PeriodWindow",
    "RevenueModel",
    "ForecastScenario",
    "ScenarioValidationResult",
]
