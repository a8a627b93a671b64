"""
Debt service schedules for forecast horizons.

The builder turns debt instrument records into annual, horizon-clipped debt
service and aggregates it by year and by fund, so the period projector can
fold debt service into balances without knowing about instrument internals.

Modeling is annual: each instrument pays once per fiscal year from its first
payment year through ``first_payment_year + term_years - 1``.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .amortization import AmortizationCalculator
from .debt import (
    CoverageYearEntry,
    DebtInstrument,
    DebtServicePayment,
    DebtServiceSchedule,
    FundCoverageSummary,
)
from .ledger import Fund
from .money import format_currency, round_currency

logger = logging.getLogger(__name__)


class DebtServiceLookup:
    """Annual debt service by fund and by instrument for one horizon."""

    def __init__(
        self,
        instruments: List[DebtInstrument],
        schedules: List[DebtServiceSchedule],
    ) -> None:
        self._fund_by_instrument = {inst.id: inst.fund_id for inst in instruments}
        self._by_instrument: Dict[str, Dict[int, float]] = {}
        for schedule in schedules:
            years = self._by_instrument.setdefault(schedule.instrument_id, {})
            for payment in schedule.payments:
                years[payment.year] = years.get(payment.year, 0.0) + payment.total

    def instrument_debt_service(self, instrument_id: str, year: int) -> float:
        """Debt service of one instrument in a fiscal year."""
        return self._by_instrument.get(instrument_id, {}).get(year, 0.0)

    def annual_debt_service(
        self, fund_id: str, year: int, exclude: Optional[Iterable[str]] = None
    ) -> float:
        """
        Debt service paid by a fund in a fiscal year.

        Args:
            fund_id: Paying fund
            year: Fiscal year
            exclude: Instrument ids to leave out (e.g. ones already modeled
                as explicit expense lines)

        Returns:
            Rounded annual debt service
        """
        excluded = set(exclude or ())
        total = sum(
            years.get(year, 0.0)
            for instrument_id, years in self._by_instrument.items()
            if self._fund_by_instrument.get(instrument_id) == fund_id
            and instrument_id not in excluded
        )
        return round_currency(total)


class DebtServiceScheduleBuilder:
    """Builds annual debt service schedules clipped to a forecast horizon."""

    @staticmethod
    def _payment_for_year(
        instrument: DebtInstrument,
        remaining: float,
        is_final: bool,
    ) -> Tuple[float, float]:
        """Principal and interest due in one year given the balance entering it."""
        if remaining <= 0:
            return 0.0, 0.0

        rate = instrument.interest_rate
        principal = instrument.par_amount
        term = instrument.term_years
        interest = remaining * rate

        if instrument.amortization_type == "LEVEL_PRINCIPAL":
            principal_paid = principal / term
        elif instrument.amortization_type == "INTEREST_ONLY":
            principal_paid = remaining if is_final else 0.0
        else:
            annual_payment = AmortizationCalculator.level_payment(principal, rate, term)
            principal_paid = annual_payment - interest

        principal_paid = min(principal_paid, remaining)
        if is_final:
            principal_paid = remaining
        return principal_paid, interest

    @staticmethod
    def build_for_horizon(
        instrument: DebtInstrument, horizon_years: int, start_year: int
    ) -> DebtServiceSchedule:
        """
        Build the annual schedule of an instrument within a horizon.

        If the horizon starts after the first payment year, the balance at
        the horizon start is reconstructed with the closed-form remaining
        principal instead of replaying earlier years.

        Args:
            instrument: Debt instrument
            horizon_years: Number of years in the horizon
            start_year: First fiscal year of the horizon

        Returns:
            Schedule with one payment per year inside
            ``[start_year, start_year + horizon_years)``; empty when the
            instrument's payments fall entirely outside the horizon
        """
        first_year = instrument.first_payment_year
        final_year = instrument.final_payment_year
        horizon_end = start_year + horizon_years - 1
        last_year = min(final_year, horizon_end)

        if horizon_years <= 0 or instrument.par_amount <= 0:
            return DebtServiceSchedule(instrument_id=instrument.id)
        if last_year < start_year or first_year > horizon_end:
            return DebtServiceSchedule(instrument_id=instrument.id)

        remaining = instrument.par_amount
        if start_year > first_year:
            remaining = AmortizationCalculator.remaining_principal(
                instrument.par_amount,
                instrument.interest_rate,
                instrument.term_years,
                start_year - first_year,
                instrument.amortization_type,
            )

        payments = []
        for year in range(max(first_year, start_year), last_year + 1):
            principal_paid, interest = DebtServiceScheduleBuilder._payment_for_year(
                instrument, remaining, is_final=(year == final_year)
            )
            payments.append(
                DebtServicePayment(
                    year=year,
                    period_index=year - start_year,
                    label=str(year),
                    principal=round_currency(principal_paid),
                    interest=round_currency(interest),
                    total=round_currency(principal_paid + interest),
                )
            )
            remaining = max(0.0, remaining - principal_paid)

        return DebtServiceSchedule(instrument_id=instrument.id, payments=payments)

    @staticmethod
    def build_schedules(
        instruments: List[DebtInstrument], horizon_years: int, start_year: int
    ) -> List[DebtServiceSchedule]:
        """Build horizon schedules for every instrument, in input order."""
        schedules = [
            DebtServiceScheduleBuilder.build_for_horizon(inst, horizon_years, start_year)
            for inst in instruments
        ]
        logger.debug(
            f"Built {len(schedules)} debt service schedules for "
            f"{start_year}-{start_year + horizon_years - 1}"
        )
        return schedules

    @staticmethod
    def build_lookup(
        instruments: List[DebtInstrument], horizon_years: int, start_year: int
    ) -> DebtServiceLookup:
        """Build schedules and wrap them in a fund/instrument lookup."""
        schedules = DebtServiceScheduleBuilder.build_schedules(
            instruments, horizon_years, start_year
        )
        return DebtServiceLookup(instruments, schedules)


def total_debt_service_by_year(
    schedules: List[DebtServiceSchedule], start_year: int, horizon_years: int
) -> Dict[int, float]:
    """
    Total debt service across all schedules for each horizon year.

    Every year of the horizon is present, with zero where nothing is due.
    """
    totals = {start_year + offset: 0.0 for offset in range(horizon_years)}
    for schedule in schedules:
        for payment in schedule.payments:
            totals[payment.year] = totals.get(payment.year, 0.0) + payment.total
    return {year: round_currency(amount) for year, amount in totals.items()}


def debt_service_by_fund_by_year(
    instruments: List[DebtInstrument],
    schedules: List[DebtServiceSchedule],
    start_year: int,
    horizon_years: int,
) -> Dict[str, Dict[int, float]]:
    """
    Debt service grouped by paying fund and year.

    Schedules whose instrument is not in ``instruments`` are skipped.
    """
    fund_by_instrument = {inst.id: inst.fund_id for inst in instruments}
    result: Dict[str, Dict[int, float]] = {}

    for schedule in schedules:
        fund_id = fund_by_instrument.get(schedule.instrument_id)
        if fund_id is None:
            continue
        years = result.setdefault(
            fund_id, {start_year + offset: 0.0 for offset in range(horizon_years)}
        )
        for payment in schedule.payments:
            years[payment.year] = years.get(payment.year, 0.0) + payment.total

    return {
        fund_id: {year: round_currency(amount) for year, amount in years.items()}
        for fund_id, years in result.items()
    }


def annual_debt_service_for_fund(
    fund_id: str,
    year: int,
    instruments: List[DebtInstrument],
    schedules: List[DebtServiceSchedule],
) -> float:
    """Total debt service a fund pays in one year."""
    return DebtServiceLookup(instruments, schedules).annual_debt_service(fund_id, year)


def summarize_schedules(
    instruments: List[DebtInstrument], schedules: List[DebtServiceSchedule]
) -> str:
    """
    Render a plain-text summary of debt service schedules.

    Args:
        instruments: Instruments the schedules were built from
        schedules: Horizon schedules

    Returns:
        Multi-line summary, one block per instrument
    """
    names = {inst.id: inst.name for inst in instruments}
    lines = ["Debt Service Schedule Summary", "=" * 50]

    for schedule in schedules:
        name = names.get(schedule.instrument_id, schedule.instrument_id)
        lines.append("")
        lines.append(name)
        lines.append("-" * len(name))

        if not schedule.payments:
            lines.append("  No payments in forecast horizon")
            continue

        total_principal = 0.0
        total_interest = 0.0
        for payment in schedule.payments:
            lines.append(
                f"  {payment.year}: Principal {format_currency(payment.principal)}, "
                f"Interest {format_currency(payment.interest)}, "
                f"Total {format_currency(payment.total)}"
            )
            total_principal += payment.principal
            total_interest += payment.interest

        lines.append("  ---")
        lines.append(
            f"  Total: Principal {format_currency(total_principal)}, "
            f"Interest {format_currency(total_interest)}, "
            f"Total {format_currency(total_principal + total_interest)}"
        )

    return "\n".join(lines)


def build_coverage_summaries(
    instruments: List[DebtInstrument],
    schedules: List[DebtServiceSchedule],
    revenue_by_fund_year: Mapping[str, Mapping[int, float]],
    funds: List[Fund],
    start_year: int,
    horizon_years: int,
) -> List[FundCoverageSummary]:
    """
    Annual coverage of pledged revenue funds against their debt service.

    Instruments are grouped by pledged revenue fund. Each group uses its most
    restrictive (highest) minimum coverage ratio, and the first instrument's
    fund is reported as the paying fund. Coverage is modeled annually only.

    Args:
        instruments: Debt instruments (only those with a pledged revenue fund
            and a minimum coverage ratio are considered)
        schedules: Horizon schedules for the instruments
        revenue_by_fund_year: Projected revenue keyed by fund id then year
        funds: Funds for code/name lookups
        start_year: First fiscal year of the horizon
        horizon_years: Number of years

    Returns:
        One summary per pledged revenue fund
    """
    groups: Dict[str, List[DebtInstrument]] = defaultdict(list)
    for instrument in instruments:
        if instrument.pledged_revenue_fund_id and instrument.min_coverage_ratio is not None:
            groups[instrument.pledged_revenue_fund_id].append(instrument)

    if not groups:
        return []

    schedule_by_instrument = {schedule.instrument_id: schedule for schedule in schedules}
    fund_by_id = {fund.id: fund for fund in funds}
    summaries = []

    for pledged_fund_id, group in groups.items():
        min_ratio = max(inst.min_coverage_ratio or 0.0 for inst in group)
        paying_fund_id = group[0].fund_id
        paying_fund = fund_by_id.get(paying_fund_id)
        pledged_revenue = revenue_by_fund_year.get(pledged_fund_id, {})

        coverage_by_year = []
        for offset in range(horizon_years):
            year = start_year + offset
            revenue = round_currency(pledged_revenue.get(year, 0.0))
            debt_service = 0.0
            for instrument in group:
                schedule = schedule_by_instrument.get(instrument.id)
                if schedule is None:
                    continue
                debt_service += sum(p.total for p in schedule.payments if p.year == year)
            debt_service = round_currency(debt_service)

            ratio = round_currency(revenue / debt_service) if debt_service > 0 else None
            meets = ratio >= min_ratio if ratio is not None else None
            coverage_by_year.append(
                CoverageYearEntry(
                    year=year,
                    revenue=revenue,
                    debt_service=debt_service,
                    coverage_ratio=ratio,
                    meets_requirement=meets,
                )
            )

        summaries.append(
            FundCoverageSummary(
                fund_id=paying_fund_id,
                fund_code=paying_fund.code if paying_fund else "",
                fund_name=paying_fund.name if paying_fund else "",
                pledged_revenue_fund_id=pledged_fund_id,
                min_coverage_ratio=min_ratio,
                coverage_by_year=coverage_by_year,
            )
        )

    return summaries
