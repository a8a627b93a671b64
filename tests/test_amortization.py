"""
Tests for debt amortization calculations.

This module tests level payments, closed-form remaining balances and
payment-by-payment schedules for each amortization convention.
"""

from datetime import date

import pytest

from fiscal_forecast.models.amortization import AmortizationCalculator


class TestLevelPayment:
    """Test cases for the annuity payment."""

    def test_level_payment_basic(self):
        """Test $1M at 4% over 20 annual payments."""
        payment = AmortizationCalculator.level_payment(1_000_000, 0.04, 20)

        # Expected payment should be approximately $73,581.75
        assert abs(payment - 73581.75) < 0.01

    def test_level_payment_zero_rate(self):
        assert AmortizationCalculator.level_payment(120_000, 0.0, 10) == 12_000

    def test_level_payment_zero_principal(self):
        assert AmortizationCalculator.level_payment(0, 0.04, 20) == 0.0


class TestRemainingPrincipal:
    """Test cases for the closed-form remaining balance."""

    def test_matches_schedule_replay(self):
        """Test the closed form against a replayed level debt service schedule."""
        entries = AmortizationCalculator.schedule(1_000_000, 0.04, 20)
        remaining = AmortizationCalculator.remaining_principal(1_000_000, 0.04, 20, 10)

        assert remaining == pytest.approx(entries[9].ending_balance, abs=0.01)
        assert remaining == pytest.approx(596_815, abs=1)

    def test_boundaries(self):
        assert AmortizationCalculator.remaining_principal(1000, 0.05, 10, 0) == 1000
        assert AmortizationCalculator.remaining_principal(1000, 0.05, 10, 10) == 0.0
        assert AmortizationCalculator.remaining_principal(1000, 0.05, 10, 12) == 0.0

    def test_level_principal_and_interest_only(self):
        assert AmortizationCalculator.remaining_principal(
            1000, 0.05, 10, 4, "LEVEL_PRINCIPAL"
        ) == pytest.approx(600)
        assert AmortizationCalculator.remaining_principal(1000, 0.05, 10, 9, "INTEREST_ONLY") == 1000

    def test_zero_rate_is_linear(self):
        assert AmortizationCalculator.remaining_principal(1000, 0.0, 10, 3) == pytest.approx(700)


class TestSchedule:
    """Test cases for schedule generation."""

    def test_level_debt_service_schedule(self):
        """Test constant payments and a schedule that closes at zero."""
        entries = AmortizationCalculator.schedule(1_000_000, 0.04, 20)

        assert len(entries) == 20
        assert entries[0].interest == pytest.approx(40_000)
        for entry in entries:
            assert entry.total_payment == pytest.approx(73581.75, abs=0.01)
        assert entries[-1].ending_balance == 0.0
        assert sum(e.principal for e in entries) == pytest.approx(1_000_000)

    def test_level_principal_schedule(self):
        entries = AmortizationCalculator.schedule(100_000, 0.05, 4, "LEVEL_PRINCIPAL")

        assert [e.principal for e in entries] == pytest.approx([25_000] * 4)
        assert entries[0].total_payment == pytest.approx(30_000)
        assert entries[-1].interest == pytest.approx(1_250)

    def test_interest_only_schedule(self):
        entries = AmortizationCalculator.schedule(100_000, 0.05, 3, "INTEREST_ONLY")

        assert [e.principal for e in entries] == pytest.approx([0, 0, 100_000])
        assert all(e.interest == pytest.approx(5_000) for e in entries)

    def test_empty_and_invalid(self):
        assert AmortizationCalculator.schedule(0, 0.05, 10) == []
        assert AmortizationCalculator.schedule(1000, 0.05, 0) == []
        with pytest.raises(ValueError, match="cannot be negative"):
            AmortizationCalculator.schedule(1000, -0.01, 10)


class TestDatedSchedule:
    """Test cases for dated schedules and annual totals."""

    def test_semi_annual_dates(self):
        entries = AmortizationCalculator.schedule_for_issue(
            principal=100_000,
            annual_rate=0.06,
            term_years=2,
            amortization_type="LEVEL_DEBT_SERVICE",
            payment_frequency="SEMI_ANNUAL",
            issue_date=date(2025, 1, 15),
        )

        assert [e.payment_date for e in entries] == [
            date(2025, 7, 15),
            date(2026, 1, 15),
            date(2026, 7, 15),
            date(2027, 1, 15),
        ]
        assert [e.fiscal_year for e in entries] == [2025, 2026, 2026, 2027]
        assert entries[0].interest == pytest.approx(3_000)

    def test_explicit_first_payment_date(self):
        entries = AmortizationCalculator.schedule_for_issue(
            principal=50_000,
            annual_rate=0.04,
            term_years=3,
            amortization_type="LEVEL_PRINCIPAL",
            payment_frequency="ANNUAL",
            issue_date=date(2025, 3, 1),
            first_payment_date=date(2025, 12, 1),
        )

        assert [e.payment_date for e in entries] == [
            date(2025, 12, 1),
            date(2026, 12, 1),
            date(2027, 12, 1),
        ]

    def test_term_must_be_positive(self):
        with pytest.raises(ValueError, match="Term must be positive"):
            AmortizationCalculator.schedule_for_issue(
                1000, 0.05, 0, "LEVEL_DEBT_SERVICE", "ANNUAL", date(2025, 1, 1)
            )

    def test_instrument_schedule_and_annual_totals(self, water_bond):
        entries = AmortizationCalculator.schedule_for_instrument(water_bond)
        payments = AmortizationCalculator.to_scheduled_payments(entries)
        annual = AmortizationCalculator.annual_totals(entries)

        assert len(payments) == 20
        assert payments[0].payment_date == date(2021, 1, 1)
        assert payments[-1].remaining_principal == 0.0
        assert annual[0].year == 2021
        assert annual[0].total == 73581.75
        assert [a.year for a in annual] == list(range(2021, 2041))
