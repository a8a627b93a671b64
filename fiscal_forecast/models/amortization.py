"""
Amortization calculations for municipal debt.

This module produces payment-by-payment schedules for bonds, notes and loans
under the level debt service, level principal and interest-only conventions,
plus the closed-form remaining balance used to resume a schedule mid-term.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta

from .debt import (
    MONTHS_BETWEEN_PAYMENTS,
    PAYMENTS_PER_YEAR,
    AmortizationEntry,
    AmortizationType,
    AnnualDebtService,
    DebtInstrument,
    PaymentFrequency,
    ScheduledPayment,
)
from .money import round_currency


class AmortizationCalculator:
    """Calculator for debt amortization schedules."""

    @staticmethod
    def level_payment(principal: float, periodic_rate: float, periods: int) -> float:
        """
        Calculate the constant payment that retires a loan.

        Uses the annuity formula ``P·r·(1+r)^n / ((1+r)^n − 1)``; with a zero
        rate the payment is simply ``P / n``.

        Args:
            principal: Amount borrowed
            periodic_rate: Interest rate per payment period (as decimal)
            periods: Number of payments

        Returns:
            Payment per period (unrounded)
        """
        if principal <= 0 or periods <= 0:
            return 0.0
        if periodic_rate == 0:
            return principal / periods

        factor = (1 + periodic_rate) ** periods
        return principal * periodic_rate * factor / (factor - 1)

    @staticmethod
    def remaining_principal(
        principal: float,
        rate: float,
        total_periods: int,
        elapsed_periods: int,
        amortization_type: AmortizationType = "LEVEL_DEBT_SERVICE",
    ) -> float:
        """
        Principal still outstanding after ``elapsed_periods`` payments.

        The balance is computed in closed form rather than by replaying the
        schedule:

        - level debt service: ``P((1+r)^n − (1+r)^t) / ((1+r)^n − 1)``, linear
          when the rate is zero
        - level principal: ``P − P/n·t``
        - interest only: ``P`` until the final (balloon) payment

        Args:
            principal: Original principal
            rate: Interest rate per period
            total_periods: Number of payments in the full term
            elapsed_periods: Payments already made
            amortization_type: Amortization convention

        Returns:
            Remaining principal (never negative)
        """
        if elapsed_periods <= 0:
            return principal
        if elapsed_periods >= total_periods:
            return 0.0

        if amortization_type == "LEVEL_PRINCIPAL":
            return max(0.0, principal - principal / total_periods * elapsed_periods)

        if amortization_type == "INTEREST_ONLY":
            return principal

        if rate == 0:
            return max(0.0, principal - principal / total_periods * elapsed_periods)

        compound_n = (1 + rate) ** total_periods
        compound_t = (1 + rate) ** elapsed_periods
        return max(0.0, principal * (compound_n - compound_t) / (compound_n - 1))

    @staticmethod
    def schedule(
        principal: float,
        periodic_rate: float,
        total_periods: int,
        amortization_type: AmortizationType = "LEVEL_DEBT_SERVICE",
    ) -> List[AmortizationEntry]:
        """
        Generate a payment-by-payment amortization schedule.

        Amounts are left unrounded so that the schedule closes exactly: the
        final payment's principal is set to its beginning balance, which
        sweeps any floating point remainder into the last payment and leaves
        an ending balance of exactly zero. ``CUSTOM`` amortization is
        scheduled as level debt service.

        Args:
            principal: Amount borrowed
            periodic_rate: Interest rate per payment period (as decimal)
            total_periods: Number of payments
            amortization_type: Amortization convention

        Returns:
            List of amortization entries (empty for zero principal or periods)

        Raises:
            ValueError: If total_periods or the rate is negative
        """
        if total_periods < 0:
            raise ValueError("Number of periods cannot be negative")
        if periodic_rate < 0:
            raise ValueError("Interest rate cannot be negative")
        if principal <= 0 or total_periods == 0:
            return []

        payment = AmortizationCalculator.level_payment(
            principal, periodic_rate, total_periods
        )
        entries = []
        balance = principal

        for period in range(1, total_periods + 1):
            beginning_balance = balance
            interest = beginning_balance * periodic_rate

            if amortization_type == "LEVEL_PRINCIPAL":
                principal_paid = principal / total_periods
            elif amortization_type == "INTEREST_ONLY":
                principal_paid = 0.0
            else:
                principal_paid = payment - interest

            if period == total_periods:
                principal_paid = beginning_balance

            balance = beginning_balance - principal_paid
            entries.append(
                AmortizationEntry(
                    payment_number=period,
                    beginning_balance=beginning_balance,
                    principal=principal_paid,
                    interest=interest,
                    total_payment=principal_paid + interest,
                    ending_balance=0.0 if period == total_periods else balance,
                )
            )

        return entries

    @staticmethod
    def schedule_for_issue(
        principal: float,
        annual_rate: float,
        term_years: int,
        amortization_type: AmortizationType,
        payment_frequency: PaymentFrequency,
        issue_date: date,
        first_payment_date: Optional[date] = None,
    ) -> List[AmortizationEntry]:
        """
        Generate a dated schedule for a new or existing issue.

        Payment dates advance from the issue date by the payment frequency
        (or from ``first_payment_date`` when given). The fiscal year of each
        payment is its calendar year.

        Args:
            principal: Par amount
            annual_rate: Annual interest rate (as decimal)
            term_years: Term in years
            amortization_type: Amortization convention
            payment_frequency: Payment frequency
            issue_date: Issue (dated) date
            first_payment_date: Optional explicit first payment date

        Returns:
            Dated amortization entries

        Raises:
            ValueError: If term_years is not positive
        """
        if term_years <= 0:
            raise ValueError("Term must be positive")

        periods_per_year = PAYMENTS_PER_YEAR[payment_frequency]
        step = MONTHS_BETWEEN_PAYMENTS[payment_frequency]
        entries = AmortizationCalculator.schedule(
            principal,
            annual_rate / periods_per_year,
            term_years * periods_per_year,
            amortization_type,
        )

        for entry in entries:
            if first_payment_date is not None:
                payment_date = first_payment_date + relativedelta(
                    months=step * (entry.payment_number - 1)
                )
            else:
                payment_date = issue_date + relativedelta(months=step * entry.payment_number)
            entry.payment_date = payment_date
            entry.fiscal_year = payment_date.year

        return entries

    @staticmethod
    def schedule_for_instrument(instrument: DebtInstrument) -> List[AmortizationEntry]:
        """Generate the full dated schedule of an existing instrument from par."""
        return AmortizationCalculator.schedule_for_issue(
            principal=instrument.par_amount,
            annual_rate=instrument.interest_rate,
            term_years=instrument.term_years,
            amortization_type=instrument.amortization_type,
            payment_frequency=instrument.payment_frequency,
            issue_date=instrument.issue_date,
            first_payment_date=instrument.first_payment_date,
        )

    @staticmethod
    def to_scheduled_payments(entries: List[AmortizationEntry]) -> List[ScheduledPayment]:
        """Convert generated entries into recorded-schedule rows."""
        return [
            ScheduledPayment(
                payment_number=entry.payment_number,
                payment_date=entry.payment_date,
                fiscal_year=entry.fiscal_year,
                principal_amount=entry.principal,
                interest_amount=entry.interest,
                total_payment=entry.total_payment,
                remaining_principal=max(0.0, entry.ending_balance),
            )
            for entry in entries
            if entry.payment_date is not None
        ]

    @staticmethod
    def annual_totals(entries: List[AmortizationEntry]) -> List[AnnualDebtService]:
        """
        Total a dated schedule by fiscal year.

        Args:
            entries: Dated amortization entries

        Returns:
            Rounded annual totals sorted by year
        """
        by_year: Dict[int, Dict[str, float]] = defaultdict(
            lambda: {"principal": 0.0, "interest": 0.0, "total": 0.0}
        )
        for entry in entries:
            totals = by_year[entry.fiscal_year]
            totals["principal"] += entry.principal
            totals["interest"] += entry.interest
            totals["total"] += entry.total_payment

        return [
            AnnualDebtService(
                year=year,
                principal=round_currency(totals["principal"]),
                interest=round_currency(totals["interest"]),
                total=round_currency(totals["total"]),
            )
            for year, totals in sorted(by_year.items())
        ]
