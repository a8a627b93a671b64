"""
Debt decision scenarios and their analysis results.

Scenario parameters are deliberately loose (no range constraints) so that
``DebtScenarioAnalyzer.validate_scenario`` can collect every problem into a
single error list instead of failing on the first one.
"""

from datetime import date
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .debt import (
    AmortizationEntry,
    AmortizationType,
    DebtInstrument,
    DebtType,
    PaymentFrequency,
)

RefundingType = Literal["CURRENT", "ADVANCE"]
CoverageStatus = Literal["ADEQUATE", "MARGINAL", "INSUFFICIENT"]
StressStatus = Literal["GOOD", "CAUTION", "WARNING"]


class IssuanceCosts(BaseModel):
    type: Literal["PERCENTAGE", "ABSOLUTE"] = Field(
        ..., description="Share of principal or flat amount"
    )
    value: float = Field(..., ge=0, description="Rate (0.02 = 2%) or amount")

    def amount(self, principal: float) -> float:
        if self.type == "PERCENTAGE":
            return principal * self.value
        return self.value


class ReserveFundRequirement(BaseModel):
    type: Literal["PERCENTAGE", "MAX_ANNUAL_DS", "AVERAGE_ANNUAL_DS"] = Field(
        ..., description="How the debt service reserve is sized"
    )
    value: Optional[float] = Field(
        default=None, ge=0, description="Share of principal for PERCENTAGE (default 10%)"
    )


class NewIssuanceParams(BaseModel):
    """Terms of a proposed bond or note issue."""

    project_name: str = Field(default="", description="Project financed")
    principal_amount: float = Field(..., description="Par amount")
    issue_date: date = Field(..., description="Issue (dated) date")
    debt_type: DebtType = Field(default="GENERAL_OBLIGATION", description="Debt type")
    assumed_interest_rate: float = Field(..., description="Annual interest rate")
    term_years: int = Field(..., description="Term in years")
    amortization_type: AmortizationType = Field(default="LEVEL_DEBT_SERVICE")
    payment_frequency: PaymentFrequency = Field(default="ANNUAL")
    is_callable: bool = Field(default=False)
    call_date: Optional[date] = Field(default=None)
    issuance_costs: Optional[IssuanceCosts] = Field(default=None)
    reserve_fund_requirement: Optional[ReserveFundRequirement] = Field(default=None)
    proceeds_fund_id: Optional[str] = Field(default=None, description="Fund credited")
    debt_service_fund_id: Optional[str] = Field(default=None, description="Fund that pays")


class EarlyPayoffParams(BaseModel):
    instrument_id: str = Field(default="", description="Instrument to retire")
    payoff_date: date = Field(..., description="Proposed payoff date")
    call_premium: Optional[float] = Field(
        default=None, ge=0, description="Overrides the instrument's call premium"
    )
    additional_costs: float = Field(default=0.0, ge=0, description="Legal and agent costs")


class NewDebtParams(BaseModel):
    assumed_interest_rate: float = Field(..., description="Refunding bond rate")
    term_years: int = Field(..., description="Refunding bond term")
    amortization_type: AmortizationType = Field(default="LEVEL_DEBT_SERVICE")
    payment_frequency: PaymentFrequency = Field(default="ANNUAL")


class RefundingParams(BaseModel):
    instrument_ids: List[str] = Field(default_factory=list, description="Bonds refunded")
    refunding_type: RefundingType = Field(default="CURRENT")
    refunding_date: date = Field(..., description="Closing date of the refunding")
    new_debt_params: NewDebtParams = Field(..., description="Refunding bond terms")
    escrow_yield: Optional[float] = Field(default=None, description="Escrow investment yield")
    issuance_costs: Optional[IssuanceCosts] = Field(default=None)
    target_savings_percent: float = Field(
        default=3.0, description="Minimum NPV savings (% of refunded principal)"
    )


class BaseDebtScenario(BaseModel):
    id: str = Field(..., description="Scenario identifier")
    tenant_id: str = Field(..., description="Owning unit of government")
    name: str = Field(..., description="Scenario name")
    description: Optional[str] = Field(default=None)
    analysis_date: date = Field(..., description="Date the analysis is run for")
    notes: Optional[str] = Field(default=None)


class NewIssuanceScenario(BaseDebtScenario):
    type: Literal["NEW_ISSUANCE"] = "NEW_ISSUANCE"
    params: NewIssuanceParams


class EarlyPayoffScenario(BaseDebtScenario):
    type: Literal["EARLY_PAYOFF"] = "EARLY_PAYOFF"
    params: EarlyPayoffParams


class RefundingScenario(BaseDebtScenario):
    type: Literal["REFUNDING"] = "REFUNDING"
    params: RefundingParams


SingleDebtScenario = Annotated[
    Union[NewIssuanceScenario, EarlyPayoffScenario, RefundingScenario],
    Field(discriminator="type"),
]


class CombinedDebtScenario(BaseDebtScenario):
    """Several debt actions evaluated together."""

    type: Literal["COMBINED"] = "COMBINED"
    scenarios: List[SingleDebtScenario] = Field(default_factory=list)


DebtScenario = Annotated[
    Union[NewIssuanceScenario, EarlyPayoffScenario, RefundingScenario, CombinedDebtScenario],
    Field(discriminator="type"),
]


class AnnualDebtProjection(BaseModel):
    fiscal_year: int
    total_principal: float = 0.0
    total_interest: float = 0.0
    total_debt_service: float = 0.0
    maturing: List[str] = Field(default_factory=list, description="Instrument ids maturing")
    new_issues: List[str] = Field(default_factory=list, description="Instrument ids issued")


class YearAmount(BaseModel):
    year: int
    amount: float


class AnnualComparison(BaseModel):
    year: int
    old_debt_service: float
    new_debt_service: float
    savings: float


class NewIssuanceResult(BaseModel):
    scenario_id: str
    true_interest_cost: float = Field(..., description="TIC (annual, decimal)")
    net_interest_cost: float = Field(..., description="(interest + costs) / principal")
    all_in_cost: float
    total_interest: float
    total_debt_service: float
    average_annual_debt_service: float
    max_annual_debt_service: float
    net_proceeds: float = Field(..., description="Principal - costs - reserve")
    issuance_costs: float
    reserve_fund: float
    schedule: List[AmortizationEntry] = Field(default_factory=list)
    projected_instrument: DebtInstrument
    annual_projections: List[AnnualDebtProjection] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class EarlyPayoffResult(BaseModel):
    scenario_id: str
    instrument: DebtInstrument
    payoff_date: date
    outstanding_principal: float
    accrued_interest: float
    call_premium: float
    additional_costs: float
    total_payoff_amount: float
    remaining_scheduled_debt_service: float
    gross_savings: float
    npv_savings: float
    npv_savings_percent: float = Field(..., description="NPV savings as % of outstanding")
    annual_savings: List[YearAmount] = Field(default_factory=list)
    is_advised: bool
    warnings: List[str] = Field(default_factory=list)


class RefundingResult(BaseModel):
    scenario_id: str
    refunded_instruments: List[DebtInstrument] = Field(default_factory=list)
    refunded_principal: float
    new_issue_size: float
    escrow_deposit: float
    issuance_costs: float
    old_debt_service: float
    new_debt_service: float
    gross_savings: float
    npv_savings: float
    npv_savings_percent: float = Field(..., description="NPV savings as % of refunded principal")
    is_arbitrage_positive: bool = True
    negative_arbitrage: Optional[float] = None
    new_schedule: List[AmortizationEntry] = Field(default_factory=list)
    projected_instrument: DebtInstrument
    annual_comparison: List[AnnualComparison] = Field(default_factory=list)
    is_advised: bool
    recommendation: str
    warnings: List[str] = Field(default_factory=list)


class CombinedDebtResult(BaseModel):
    scenario_id: str
    results: List[Union[NewIssuanceResult, EarlyPayoffResult, RefundingResult]] = Field(
        default_factory=list
    )
    total_new_debt: float = Field(default=0.0, description="Par of new and refunding issues")
    total_npv_savings: float = Field(default=0.0, description="Payoff and refunding savings")
    warnings: List[str] = Field(default_factory=list)


class RevenueSource(BaseModel):
    source: str = Field(..., description="Revenue source name")
    amount: float = Field(..., description="Net revenue available for debt service")


class CapacityOptions(BaseModel):
    population: Optional[float] = Field(default=None, gt=0)
    assessed_value: Optional[float] = Field(default=None, gt=0)
    legal_debt_limit: Optional[float] = Field(default=None, gt=0)
    revenues: List[RevenueSource] = Field(default_factory=list)


class DebtCoverageRatio(BaseModel):
    source: str
    net_revenue: float
    debt_service: float
    coverage_ratio: Optional[float] = Field(
        default=None, description="None when no debt service is due"
    )
    required_coverage: float
    status: CoverageStatus


class StressIndicator(BaseModel):
    indicator: str
    value: float
    threshold: float
    status: StressStatus


class ProjectedDebtServiceYear(BaseModel):
    year: int
    debt_service: float
    maturing_debt: float = Field(..., description="Outstanding principal of maturing debt")


class DebtCapacityMetrics(BaseModel):
    as_of_date: date
    total_outstanding_debt: float
    current_annual_debt_service: float
    coverage_ratios: List[DebtCoverageRatio] = Field(default_factory=list)
    debt_per_capita: Optional[float] = None
    debt_to_assessed_value: Optional[float] = Field(default=None, description="Percent")
    legal_debt_limit: Optional[float] = None
    remaining_capacity: Optional[float] = None
    projected_debt_service: List[ProjectedDebtServiceYear] = Field(default_factory=list)
    stress_indicators: List[StressIndicator] = Field(default_factory=list)
