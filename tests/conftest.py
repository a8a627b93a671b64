"""
Pytest configuration and shared fixtures for the fiscal forecast tests.
"""

import os
from datetime import date
from unittest.mock import patch

import pytest

from fiscal_forecast.config import Settings, reset_global_settings
from fiscal_forecast.models.debt import DebtInstrument
from fiscal_forecast.models.ledger import CurrentLedgerState, FundSnapshot
from fiscal_forecast.models.scenario import ForecastScenario


@pytest.fixture
def settings():
    """Default settings, isolated from the environment and any .env file."""
    with patch.dict(os.environ, {}, clear=True):
        yield Settings(_env_file=None)


@pytest.fixture(autouse=True)
def _reset_settings():
    reset_global_settings()
    yield
    reset_global_settings()


@pytest.fixture
def ledger_state():
    """General fund with a $50,000 balance."""
    return CurrentLedgerState(
        fund=FundSnapshot(id="fund-101", code="101", name="General Fund", current_balance=50000),
        as_of_date=date(2024, 12, 31),
    )


@pytest.fixture
def annual_scenario():
    """Five-year annual scenario: $120k revenue at 2%, $125k expense at 3%."""
    return ForecastScenario(
        id="scn-1",
        tenant_id="town-1",
        name="Baseline",
        fund_id="fund-101",
        start_date=date(2025, 1, 1),
        horizon_months=60,
        granularity="ANNUAL",
        revenue_models=[
            {
                "type": "PERCENT_GROWTH",
                "id": "rev-tax",
                "name": "Property Taxes",
                "source_code": "4100",
                "start_date": date(2025, 1, 1),
                "base_amount": 120000,
                "growth_rate": 0.02,
            }
        ],
        expense_models=[
            {
                "type": "BASELINE_INFLATION",
                "id": "exp-ops",
                "name": "Operations",
                "target_code": "5100",
                "start_date": date(2025, 1, 1),
                "base_amount": 125000,
                "inflation_rate": 0.03,
            }
        ],
    )


@pytest.fixture
def water_bond():
    """$1M 4% 20-year level debt service bond paid by the water fund."""
    return DebtInstrument(
        id="bond-2020",
        name="2020 Water Revenue Bonds",
        debt_type="REVENUE",
        fund_id="fund-water",
        par_amount=1_000_000,
        interest_rate=0.04,
        term_years=20,
        issue_date=date(2020, 1, 1),
        pledged_revenue_fund_id="fund-water",
        min_coverage_ratio=1.25,
    )
