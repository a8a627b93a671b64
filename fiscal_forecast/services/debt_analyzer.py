"""
Debt scenario analyzer.

Evaluates debt decisions with time-value-of-money math on top of the
amortization calculator: new issuance (with true interest cost), early
payoff, refunding, combinations of these, and an aggregate debt capacity
report. Every entry point is a pure function of its arguments.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..config import Settings, get_global_settings
from ..exceptions import ScenarioValidationError, TICConvergenceError
from ..models.amortization import AmortizationCalculator
from ..models.debt import AmortizationEntry, DebtInstrument, ScheduledPayment
from ..models.debt_scenarios import (
    AnnualComparison,
    AnnualDebtProjection,
    CapacityOptions,
    CombinedDebtResult,
    CombinedDebtScenario,
    DebtCapacityMetrics,
    DebtCoverageRatio,
    EarlyPayoffResult,
    EarlyPayoffScenario,
    NewIssuanceParams,
    NewIssuanceResult,
    NewIssuanceScenario,
    ProjectedDebtServiceYear,
    RefundingResult,
    RefundingScenario,
    StressIndicator,
    YearAmount,
)
from ..models.money import format_percentage, round_currency
from ..models.scenario import ScenarioValidationResult

logger = logging.getLogger(__name__)

ScheduleMap = Mapping[str, Sequence[ScheduledPayment]]


def _years_between(start: date, end: date) -> float:
    return (end - start).days / 365


def present_value(
    payments: Iterable[Union[ScheduledPayment, AmortizationEntry]],
    valuation_date: date,
    rate: float,
) -> float:
    """Present value of dated payments at an annual rate, actual days / 365."""
    return sum(
        p.total_payment / (1 + rate) ** _years_between(valuation_date, p.payment_date)
        for p in payments
    )


def solve_true_interest_cost(
    proceeds: float,
    schedule: Sequence[AmortizationEntry],
    issue_date: date,
    initial_guess: float = 0.05,
    tolerance: float = 1e-7,
    max_iterations: int = 100,
) -> float:
    """
    Solve for the true interest cost of an issue.

    TIC is the annual rate at which the present value of the payments,
    discounted from the issue date over actual days / 365, equals the
    proceeds. Solved with Newton-Raphson.

    Args:
        proceeds: Principal less issuance costs
        schedule: Dated amortization entries
        issue_date: Issue date the payments are discounted to
        initial_guess: Starting rate
        tolerance: Convergence threshold on the rate step
        max_iterations: Iteration budget

    Returns:
        True interest cost as a decimal rate

    Raises:
        TICConvergenceError: If the solver does not converge within the budget
    """
    flows = [
        (_years_between(issue_date, entry.payment_date), entry.total_payment)
        for entry in schedule
    ]
    rate = initial_guess

    for iteration in range(1, max_iterations + 1):
        npv = -proceeds
        derivative = 0.0
        for years, amount in flows:
            discount = (1 + rate) ** years
            npv += amount / discount
            derivative -= years * amount / (discount * (1 + rate))

        if derivative == 0:
            raise TICConvergenceError(rate, iteration)
        new_rate = rate - npv / derivative
        if new_rate <= -1:
            raise TICConvergenceError(new_rate, iteration)
        if abs(new_rate - rate) < tolerance:
            return new_rate
        rate = new_rate

    raise TICConvergenceError(rate, max_iterations)


class DebtScenarioAnalyzer:
    """Analyzes new issuance, early payoff, refunding and debt capacity."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_global_settings()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_new_issuance_params(
        params: NewIssuanceParams, errors: List[str], warnings: List[str]
    ) -> None:
        if not params.project_name:
            errors.append("Project name is required")
        if params.principal_amount <= 0:
            errors.append("Principal amount must be positive")
        if params.term_years <= 0:
            errors.append("Term must be positive")
        if params.assumed_interest_rate < 0:
            errors.append("Interest rate cannot be negative")
        if params.assumed_interest_rate > 0.15:
            warnings.append("Interest rate above 15% is unusually high")
        if params.term_years > 30:
            warnings.append("Term exceeds 30 years - consider if appropriate")

    def validate_scenario(self, scenario) -> ScenarioValidationResult:
        """
        Collect errors and warnings for any debt scenario.

        Args:
            scenario: NewIssuance, EarlyPayoff, Refunding or Combined scenario

        Returns:
            Validation result
        """
        errors: List[str] = []
        warnings: List[str] = []

        if not scenario.id:
            errors.append("Scenario ID is required")
        if not scenario.tenant_id:
            errors.append("Tenant ID is required")
        if not scenario.name:
            errors.append("Scenario name is required")

        action_date = None
        if scenario.type == "NEW_ISSUANCE":
            self._validate_new_issuance_params(scenario.params, errors, warnings)
            action_date = scenario.params.issue_date
        elif scenario.type == "EARLY_PAYOFF":
            if not scenario.params.instrument_id:
                errors.append("Instrument ID is required for early payoff")
            action_date = scenario.params.payoff_date
        elif scenario.type == "REFUNDING":
            params = scenario.params
            action_date = params.refunding_date
            if not params.instrument_ids:
                errors.append("At least one instrument must be selected for refunding")
            if params.new_debt_params.term_years <= 0:
                errors.append("Refunding term must be positive")
            if params.new_debt_params.assumed_interest_rate < 0:
                errors.append("Refunding interest rate cannot be negative")
        elif scenario.type == "COMBINED":
            if not scenario.scenarios:
                errors.append("At least one scenario is required")
            for child in scenario.scenarios:
                child_result = self.validate_scenario(child)
                errors.extend(f"{child.name or child.id}: {e}" for e in child_result.errors)
                warnings.extend(child_result.warnings)

        if action_date is not None and action_date < scenario.analysis_date:
            warnings.append(
                f"Action date {action_date.isoformat()} is before the analysis date "
                f"{scenario.analysis_date.isoformat()}"
            )

        return ScenarioValidationResult.from_messages(errors, warnings)

    def _ensure_valid(self, scenario) -> List[str]:
        validation = self.validate_scenario(scenario)
        if not validation.is_valid:
            logger.error(
                f"Debt scenario {scenario.id!r} failed validation: "
                f"{', '.join(validation.errors)}"
            )
            validation.ensure_valid()
        for warning in validation.warnings:
            logger.warning(f"Debt scenario {scenario.id!r}: {warning}")
        return list(validation.warnings)

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    @staticmethod
    def generate_amortization_schedule(params: NewIssuanceParams) -> List[AmortizationEntry]:
        """Dated amortization schedule for proposed issue terms."""
        return AmortizationCalculator.schedule_for_issue(
            principal=params.principal_amount,
            annual_rate=params.assumed_interest_rate,
            term_years=params.term_years,
            amortization_type=params.amortization_type,
            payment_frequency=params.payment_frequency,
            issue_date=params.issue_date,
        )

    @staticmethod
    def _schedule_for(
        instrument: DebtInstrument, schedules: Optional[ScheduleMap]
    ) -> List[ScheduledPayment]:
        """Recorded schedule of an instrument, or one generated from its terms."""
        if schedules is not None and instrument.id in schedules:
            return list(schedules[instrument.id])
        entries = AmortizationCalculator.schedule_for_instrument(instrument)
        return AmortizationCalculator.to_scheduled_payments(entries)

    # ------------------------------------------------------------------
    # New issuance
    # ------------------------------------------------------------------

    def analyze_new_issuance(self, scenario: NewIssuanceScenario) -> NewIssuanceResult:
        """
        Cost out a proposed issue.

        Raises:
            ScenarioValidationError: If the issue terms are invalid
            TICConvergenceError: If the true interest cost cannot be solved
        """
        warnings = self._ensure_valid(scenario)
        params = scenario.params
        principal = params.principal_amount
        logger.info(
            f"Analyzing new issuance {scenario.id}: {params.project_name}, "
            f"{principal:,.0f} at {format_percentage(params.assumed_interest_rate, 2)}"
        )

        schedule = self.generate_amortization_schedule(params)
        annual = AmortizationCalculator.annual_totals(schedule)

        issuance_costs = params.issuance_costs.amount(principal) if params.issuance_costs else 0.0

        reserve_fund = 0.0
        requirement = params.reserve_fund_requirement
        if requirement is not None:
            if requirement.type == "MAX_ANNUAL_DS":
                reserve_fund = max(year.total for year in annual)
            elif requirement.type == "AVERAGE_ANNUAL_DS":
                reserve_fund = sum(year.total for year in annual) / len(annual)
            else:
                share = requirement.value if requirement.value is not None else 0.10
                reserve_fund = principal * share

        total_interest = sum(entry.interest for entry in schedule)
        total_debt_service = sum(entry.total_payment for entry in schedule)

        tic = solve_true_interest_cost(
            principal - issuance_costs,
            schedule,
            params.issue_date,
            initial_guess=self.settings.tic_initial_guess,
            tolerance=self.settings.tic_tolerance,
            max_iterations=self.settings.tic_max_iterations,
        )
        nic = (total_interest + issuance_costs) / principal

        projected = DebtInstrument(
            id=f"{scenario.id}-projected",
            name=params.project_name,
            debt_type=params.debt_type,
            fund_id=params.debt_service_fund_id or params.proceeds_fund_id or "",
            par_amount=principal,
            interest_rate=params.assumed_interest_rate,
            term_years=params.term_years,
            amortization_type=params.amortization_type,
            payment_frequency=params.payment_frequency,
            issue_date=params.issue_date,
            first_payment_date=schedule[0].payment_date,
            maturity_date=schedule[-1].payment_date,
            is_callable=params.is_callable,
            call_date=params.call_date,
            outstanding_principal=principal,
        )

        return NewIssuanceResult(
            scenario_id=scenario.id,
            true_interest_cost=round(tic, 6),
            net_interest_cost=round(nic, 6),
            all_in_cost=round(nic, 6),
            total_interest=round_currency(total_interest),
            total_debt_service=round_currency(total_debt_service),
            average_annual_debt_service=round_currency(total_debt_service / params.term_years),
            max_annual_debt_service=round_currency(max(year.total for year in annual)),
            net_proceeds=round_currency(principal - issuance_costs - reserve_fund),
            issuance_costs=round_currency(issuance_costs),
            reserve_fund=round_currency(reserve_fund),
            schedule=schedule,
            projected_instrument=projected,
            annual_projections=[
                AnnualDebtProjection(
                    fiscal_year=year.year,
                    total_principal=year.principal,
                    total_interest=year.interest,
                    total_debt_service=year.total,
                )
                for year in annual
            ],
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Early payoff
    # ------------------------------------------------------------------

    def analyze_early_payoff(
        self,
        scenario: EarlyPayoffScenario,
        instrument: DebtInstrument,
        schedule: Optional[Sequence[ScheduledPayment]] = None,
    ) -> EarlyPayoffResult:
        """
        Evaluate retiring an instrument before maturity.

        Args:
            scenario: Early payoff scenario
            instrument: Instrument being retired
            schedule: Its recorded payment schedule (generated from the
                instrument terms when omitted)

        Returns:
            EarlyPayoffResult; advised when NPV savings reach the configured
            share of outstanding principal
        """
        warnings = self._ensure_valid(scenario)
        params = scenario.params
        payoff_date = params.payoff_date
        if schedule is None:
            schedule = self._schedule_for(instrument, None)

        remaining = [p for p in schedule if p.payment_date > payoff_date and not p.is_paid]
        prior = [p for p in schedule if p.payment_date <= payoff_date]
        last_payment = max(prior, key=lambda p: p.payment_date) if prior else None

        if last_payment is not None and last_payment.remaining_principal is not None:
            outstanding = last_payment.remaining_principal
        else:
            outstanding = instrument.principal_outstanding

        accrual_start = last_payment.payment_date if last_payment else instrument.issue_date
        accrued_interest = (
            outstanding * instrument.interest_rate * (payoff_date - accrual_start).days / 365
        )

        premium_rate = (
            params.call_premium if params.call_premium is not None else instrument.call_premium
        )
        call_premium = 0.0
        if not instrument.is_callable:
            warnings.append("Instrument is not callable - a make-whole payment may be required")
        elif instrument.call_date is not None and payoff_date < instrument.call_date:
            warnings.append(
                "Payoff date is before call date - call premium may not apply "
                "or make-whole may be required"
            )
        else:
            call_premium = outstanding * premium_rate

        additional_costs = params.additional_costs
        total_payoff = outstanding + accrued_interest + call_premium + additional_costs

        remaining_ds = sum(p.total_payment for p in remaining)
        npv_remaining = present_value(remaining, payoff_date, instrument.interest_rate)
        npv_savings = npv_remaining - total_payoff
        npv_savings_percent = npv_savings / outstanding * 100 if outstanding else 0.0

        annual_savings: Dict[int, float] = defaultdict(float)
        for payment in remaining:
            annual_savings[payment.fiscal_year] += payment.total_payment

        threshold = self.settings.npv_savings_threshold_percent
        is_advised = npv_savings_percent >= threshold
        if not is_advised:
            warnings.append(
                f"NPV savings of {npv_savings_percent:.2f}% is below the recommended "
                f"{threshold:g}% threshold"
            )

        logger.info(
            f"Early payoff {scenario.id} of {instrument.id}: NPV savings "
            f"{npv_savings_percent:.2f}%, advised={is_advised}"
        )

        return EarlyPayoffResult(
            scenario_id=scenario.id,
            instrument=instrument,
            payoff_date=payoff_date,
            outstanding_principal=round_currency(outstanding),
            accrued_interest=round_currency(accrued_interest),
            call_premium=round_currency(call_premium),
            additional_costs=round_currency(additional_costs),
            total_payoff_amount=round_currency(total_payoff),
            remaining_scheduled_debt_service=round_currency(remaining_ds),
            gross_savings=round_currency(remaining_ds - total_payoff),
            npv_savings=round_currency(npv_savings),
            npv_savings_percent=round_currency(npv_savings_percent, 4),
            annual_savings=[
                YearAmount(year=year, amount=round_currency(amount))
                for year, amount in sorted(annual_savings.items())
            ],
            is_advised=is_advised,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Refunding
    # ------------------------------------------------------------------

    def analyze_refunding(
        self,
        scenario: RefundingScenario,
        instruments: Sequence[DebtInstrument],
        schedules: Optional[ScheduleMap] = None,
    ) -> RefundingResult:
        """
        Evaluate refinancing outstanding bonds with a new issue.

        Args:
            scenario: Refunding scenario
            instruments: Candidate instruments; those named in the scenario
                are refunded
            schedules: Recorded schedules by instrument id (generated from
                instrument terms when missing)

        Returns:
            RefundingResult with a graded recommendation

        Raises:
            ScenarioValidationError: If the scenario is invalid or names an
                instrument that was not supplied
        """
        warnings = self._ensure_valid(scenario)
        params = scenario.params
        refunding_date = params.refunding_date
        new_terms = params.new_debt_params

        by_id = {inst.id: inst for inst in instruments}
        missing = [i for i in params.instrument_ids if i not in by_id]
        if missing:
            raise ScenarioValidationError([f"Unknown instrument: {i}" for i in missing], warnings)
        refunded = [by_id[i] for i in params.instrument_ids]
        old_schedules = {inst.id: self._schedule_for(inst, schedules) for inst in refunded}

        refunded_principal = sum(inst.principal_outstanding for inst in refunded)
        if refunded_principal <= 0:
            raise ScenarioValidationError(
                ["Refunded instruments have no outstanding principal"], warnings
            )
        old_remaining = [
            p
            for inst in refunded
            for p in old_schedules[inst.id]
            if p.payment_date > refunding_date and not p.is_paid
        ]
        old_debt_service = sum(p.total_payment for p in old_remaining)

        escrow_deposit = 0.0
        if params.refunding_type == "ADVANCE":
            for inst in refunded:
                if inst.call_date is None:
                    continue
                to_call = sum(
                    p.total_payment
                    for p in old_schedules[inst.id]
                    if refunding_date < p.payment_date <= inst.call_date
                )
                escrow_deposit += to_call + inst.principal_outstanding * (1 + inst.call_premium)
            if params.escrow_yield:
                escrow_deposit /= 1 + params.escrow_yield

        issuance_costs = (
            params.issuance_costs.amount(refunded_principal) if params.issuance_costs else 0.0
        )
        new_issue_size = refunded_principal + escrow_deposit + issuance_costs

        new_schedule = AmortizationCalculator.schedule_for_issue(
            principal=new_issue_size,
            annual_rate=new_terms.assumed_interest_rate,
            term_years=new_terms.term_years,
            amortization_type=new_terms.amortization_type,
            payment_frequency=new_terms.payment_frequency,
            issue_date=refunding_date,
        )
        new_debt_service = sum(entry.total_payment for entry in new_schedule)

        rate = new_terms.assumed_interest_rate
        npv_old = present_value(old_remaining, refunding_date, rate)
        npv_new = present_value(new_schedule, refunding_date, rate)
        npv_savings = npv_old - npv_new - issuance_costs
        npv_savings_percent = (
            npv_savings / refunded_principal * 100 if refunded_principal else 0.0
        )

        is_arbitrage_positive = True
        negative_arbitrage = None
        if params.refunding_type == "ADVANCE" and params.escrow_yield:
            if params.escrow_yield < rate:
                is_arbitrage_positive = False
                negative_arbitrage = round_currency((rate - params.escrow_yield) * escrow_deposit)
                warnings.append("Negative arbitrage detected - escrow yield is less than bond yield")

        if npv_savings_percent >= 5:
            recommendation = "Strongly advised - excellent savings opportunity"
        elif npv_savings_percent >= 3:
            recommendation = "Advised - meets minimum savings threshold"
        elif npv_savings_percent >= 1:
            recommendation = "Marginal - monitor rates for better opportunity"
        else:
            recommendation = "Not advised - savings insufficient to justify costs"

        comparison: Dict[int, List[float]] = defaultdict(lambda: [0.0, 0.0])
        for payment in old_remaining:
            comparison[payment.fiscal_year][0] += payment.total_payment
        for entry in new_schedule:
            comparison[entry.fiscal_year][1] += entry.total_payment

        projected = DebtInstrument(
            id=f"{scenario.id}-refunding",
            name="Refunding Bonds",
            debt_type=refunded[0].debt_type,
            fund_id=refunded[0].fund_id,
            par_amount=new_issue_size,
            interest_rate=rate,
            term_years=new_terms.term_years,
            amortization_type=new_terms.amortization_type,
            payment_frequency=new_terms.payment_frequency,
            issue_date=refunding_date,
            first_payment_date=new_schedule[0].payment_date,
            maturity_date=new_schedule[-1].payment_date,
            outstanding_principal=new_issue_size,
        )

        logger.info(
            f"Refunding {scenario.id} of {len(refunded)} instruments: NPV savings "
            f"{npv_savings_percent:.2f}% ({recommendation.split(' - ')[0]})"
        )

        return RefundingResult(
            scenario_id=scenario.id,
            refunded_instruments=refunded,
            refunded_principal=round_currency(refunded_principal),
            new_issue_size=round_currency(new_issue_size),
            escrow_deposit=round_currency(escrow_deposit),
            issuance_costs=round_currency(issuance_costs),
            old_debt_service=round_currency(old_debt_service),
            new_debt_service=round_currency(new_debt_service),
            gross_savings=round_currency(old_debt_service - new_debt_service),
            npv_savings=round_currency(npv_savings),
            npv_savings_percent=round_currency(npv_savings_percent, 4),
            is_arbitrage_positive=is_arbitrage_positive,
            negative_arbitrage=negative_arbitrage,
            new_schedule=new_schedule,
            projected_instrument=projected,
            annual_comparison=[
                AnnualComparison(
                    year=year,
                    old_debt_service=round_currency(old),
                    new_debt_service=round_currency(new),
                    savings=round_currency(old - new),
                )
                for year, (old, new) in sorted(comparison.items())
            ],
            is_advised=npv_savings_percent >= params.target_savings_percent,
            recommendation=recommendation,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def analyze(
        self,
        scenario,
        instruments: Sequence[DebtInstrument] = (),
        schedules: Optional[ScheduleMap] = None,
    ):
        """
        Analyze any debt scenario.

        Args:
            scenario: Any member of the ``DebtScenario`` union
            instruments: Existing instruments (needed for payoff and refunding)
            schedules: Recorded schedules by instrument id

        Returns:
            The result type matching the scenario type
        """
        if scenario.type == "NEW_ISSUANCE":
            return self.analyze_new_issuance(scenario)
        if scenario.type == "EARLY_PAYOFF":
            instrument = next(
                (i for i in instruments if i.id == scenario.params.instrument_id), None
            )
            if instrument is None:
                raise ScenarioValidationError(
                    [f"Unknown instrument: {scenario.params.instrument_id}"]
                )
            schedule = schedules.get(instrument.id) if schedules is not None else None
            return self.analyze_early_payoff(scenario, instrument, schedule)
        if scenario.type == "REFUNDING":
            return self.analyze_refunding(scenario, instruments, schedules)
        return self.analyze_combined(scenario, instruments, schedules)

    def analyze_combined(
        self,
        scenario: CombinedDebtScenario,
        instruments: Sequence[DebtInstrument] = (),
        schedules: Optional[ScheduleMap] = None,
    ) -> CombinedDebtResult:
        """Analyze each action of a combined scenario independently and total them."""
        warnings = self._ensure_valid(scenario)
        results = [self.analyze(child, instruments, schedules) for child in scenario.scenarios]

        total_new_debt = 0.0
        total_npv_savings = 0.0
        for result in results:
            if isinstance(result, NewIssuanceResult):
                total_new_debt += result.projected_instrument.par_amount
            elif isinstance(result, RefundingResult):
                total_new_debt += result.new_issue_size
                total_npv_savings += result.npv_savings
            else:
                total_npv_savings += result.npv_savings

        return CombinedDebtResult(
            scenario_id=scenario.id,
            results=results,
            total_new_debt=round_currency(total_new_debt),
            total_npv_savings=round_currency(total_npv_savings),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def project_debt_service(
        self,
        instruments: Sequence[DebtInstrument],
        schedules: Optional[ScheduleMap] = None,
        start_year: int = 0,
        years: Optional[int] = None,
    ) -> List[AnnualDebtProjection]:
        """
        Annual debt service of active instruments for a run of fiscal years.

        Args:
            instruments: Instruments (inactive ones are skipped)
            schedules: Recorded schedules by instrument id
            start_year: First fiscal year
            years: Number of years (defaults to the configured projection years)

        Returns:
            One projection per year with maturing and newly issued instrument ids
        """
        years = years or self.settings.debt_projection_years
        active = [inst for inst in instruments if inst.is_active]
        active_schedules = {inst.id: self._schedule_for(inst, schedules) for inst in active}

        projections = []
        for year in range(start_year, start_year + years):
            principal = interest = 0.0
            maturing = []
            new_issues = []
            for inst in active:
                for payment in active_schedules[inst.id]:
                    if payment.fiscal_year == year:
                        principal += payment.principal_amount
                        interest += payment.interest_amount
                maturity_year = (
                    inst.maturity_date.year if inst.maturity_date else inst.final_payment_year
                )
                if maturity_year == year:
                    maturing.append(inst.id)
                if inst.issue_date.year == year:
                    new_issues.append(inst.id)

            projections.append(
                AnnualDebtProjection(
                    fiscal_year=year,
                    total_principal=round_currency(principal),
                    total_interest=round_currency(interest),
                    total_debt_service=round_currency(principal + interest),
                    maturing=maturing,
                    new_issues=new_issues,
                )
            )
        return projections

    def calculate_debt_capacity(
        self,
        instruments: Sequence[DebtInstrument],
        as_of: date,
        schedules: Optional[ScheduleMap] = None,
        options: Optional[CapacityOptions] = None,
    ) -> DebtCapacityMetrics:
        """
        Aggregate debt burden and capacity indicators as of a date.

        Args:
            instruments: All instruments (inactive ones are skipped)
            as_of: Measurement date; its calendar year is the current fiscal year
            schedules: Recorded schedules by instrument id
            options: Population, assessed value, legal limit and revenues

        Returns:
            DebtCapacityMetrics with coverage ratios and stress indicators
        """
        opts = options or CapacityOptions()
        active = [inst for inst in instruments if inst.is_active]
        current_year = as_of.year

        outstanding = sum(inst.principal_outstanding for inst in active)
        current_ds = sum(
            p.total_payment
            for inst in active
            for p in self._schedule_for(inst, schedules)
            if p.fiscal_year == current_year
        )
        current_ds = round_currency(current_ds)

        required = self.settings.required_coverage_ratio
        coverage = []
        for revenue in opts.revenues:
            ratio = revenue.amount / current_ds if current_ds > 0 else None
            if ratio is None or ratio >= 1.5:
                status = "ADEQUATE"
            elif ratio >= 1.1:
                status = "MARGINAL"
            else:
                status = "INSUFFICIENT"
            coverage.append(
                DebtCoverageRatio(
                    source=revenue.source,
                    net_revenue=revenue.amount,
                    debt_service=current_ds,
                    coverage_ratio=round_currency(ratio) if ratio is not None else None,
                    required_coverage=required,
                    status=status,
                )
            )

        indicators = []
        debt_per_capita = None
        if opts.population:
            debt_per_capita = outstanding / opts.population
            indicators.append(
                StressIndicator(
                    indicator="Debt Per Capita",
                    value=round_currency(debt_per_capita),
                    threshold=2000,
                    status=_stress_status(debt_per_capita, 1000, 2000),
                )
            )

        debt_to_av = None
        if opts.assessed_value:
            debt_to_av = outstanding / opts.assessed_value * 100
            indicators.append(
                StressIndicator(
                    indicator="Debt to Assessed Value",
                    value=round_currency(debt_to_av),
                    threshold=5,
                    status=_stress_status(debt_to_av, 2, 5),
                )
            )

        remaining_capacity = None
        if opts.legal_debt_limit:
            remaining_capacity = round_currency(opts.legal_debt_limit - outstanding)
            utilization = outstanding / opts.legal_debt_limit * 100
            indicators.append(
                StressIndicator(
                    indicator="Debt Limit Utilization",
                    value=round_currency(utilization),
                    threshold=90,
                    status=_stress_status(utilization, 50, 90),
                )
            )

        by_id = {inst.id: inst for inst in active}
        projected = [
            ProjectedDebtServiceYear(
                year=projection.fiscal_year,
                debt_service=projection.total_debt_service,
                maturing_debt=round_currency(
                    sum(by_id[i].principal_outstanding for i in projection.maturing)
                ),
            )
            for projection in self.project_debt_service(active, schedules, current_year)
        ]

        return DebtCapacityMetrics(
            as_of_date=as_of,
            total_outstanding_debt=round_currency(outstanding),
            current_annual_debt_service=current_ds,
            coverage_ratios=coverage,
            debt_per_capita=round_currency(debt_per_capita) if debt_per_capita is not None else None,
            debt_to_assessed_value=round_currency(debt_to_av) if debt_to_av is not None else None,
            legal_debt_limit=opts.legal_debt_limit,
            remaining_capacity=remaining_capacity,
            projected_debt_service=projected,
            stress_indicators=indicators,
        )


def _stress_status(value: float, good_below: float, caution_below: float) -> str:
    if value < good_below:
        return "GOOD"
    if value < caution_below:
        return "CAUTION"
    return "WARNING"
