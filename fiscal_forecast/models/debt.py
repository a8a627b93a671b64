"""
Debt instrument and debt service schedule models.

Instruments are created by the caller; the engines only derive schedules from
them and never modify an instrument.
"""

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

DebtType = Literal[
    "GENERAL_OBLIGATION", "REVENUE", "LEASE_RENTAL", "TIF", "BAN", "NOTE", "LOAN"
]
AmortizationType = Literal[
    "LEVEL_DEBT_SERVICE", "LEVEL_PRINCIPAL", "INTEREST_ONLY", "CUSTOM"
]
PaymentFrequency = Literal["MONTHLY", "QUARTERLY", "SEMI_ANNUAL", "ANNUAL"]

PAYMENTS_PER_YEAR = {"MONTHLY": 12, "QUARTERLY": 4, "SEMI_ANNUAL": 2, "ANNUAL": 1}
MONTHS_BETWEEN_PAYMENTS = {"MONTHLY": 1, "QUARTERLY": 3, "SEMI_ANNUAL": 6, "ANNUAL": 12}


class DebtInstrument(BaseModel):
    """A bond, note, lease or loan outstanding against a fund."""

    id: str = Field(..., min_length=1, description="Instrument identifier")
    name: str = Field(..., description="Instrument name (e.g., '2020 Water Revenue Bonds')")
    debt_type: DebtType = Field(default="GENERAL_OBLIGATION", description="Debt type")
    fund_id: str = Field(..., description="Fund that pays the debt service")
    par_amount: float = Field(..., ge=0, description="Original principal amount")
    interest_rate: float = Field(..., ge=0, description="Annual interest rate (0.04 = 4%)")
    term_years: int = Field(..., ge=1, description="Term in years")
    amortization_type: AmortizationType = Field(
        default="LEVEL_DEBT_SERVICE", description="Amortization convention"
    )
    payment_frequency: PaymentFrequency = Field(
        default="ANNUAL", description="Payments per year"
    )
    issue_date: date = Field(..., description="Issue (dated) date")
    first_payment_date: Optional[date] = Field(
        default=None, description="First payment date (defaults to one year after issue)"
    )
    maturity_date: Optional[date] = Field(default=None, description="Final maturity")

    is_callable: bool = Field(default=False, description="Whether the debt can be called")
    call_date: Optional[date] = Field(default=None, description="First call date")
    call_premium: float = Field(
        default=0.0, ge=0, description="Call premium as a fraction of principal"
    )

    pledged_revenue_fund_id: Optional[str] = Field(
        default=None, description="Fund whose revenue is pledged to repayment"
    )
    min_coverage_ratio: Optional[float] = Field(
        default=None, ge=0, description="Covenant minimum coverage ratio"
    )

    outstanding_principal: Optional[float] = Field(
        default=None, ge=0, description="Current outstanding principal, if known"
    )
    is_active: bool = Field(default=True, description="Whether the debt is outstanding")

    @model_validator(mode="after")
    def validate_dates(self) -> "DebtInstrument":
        if self.first_payment_date is not None and self.first_payment_date < self.issue_date:
            raise ValueError("First payment date must be on or after issue date")
        if self.call_date is not None and self.call_date < self.issue_date:
            raise ValueError("Call date must be on or after issue date")
        return self

    @property
    def first_payment_year(self) -> int:
        if self.first_payment_date is not None:
            return self.first_payment_date.year
        return self.issue_date.year + 1

    @property
    def final_payment_year(self) -> int:
        return self.first_payment_year + self.term_years - 1

    @property
    def principal_outstanding(self) -> float:
        """Outstanding principal if recorded, else par."""
        if self.outstanding_principal is not None:
            return self.outstanding_principal
        return self.par_amount


class AmortizationEntry(BaseModel):
    """One payment of a generated amortization schedule."""

    payment_number: int = Field(..., ge=1, description="Payment number (1-based)")
    payment_date: Optional[date] = Field(default=None, description="Payment date")
    fiscal_year: Optional[int] = Field(default=None, description="Fiscal year of payment")
    beginning_balance: float = Field(..., description="Balance before the payment")
    principal: float = Field(..., description="Principal portion")
    interest: float = Field(..., ge=0, description="Interest portion")
    total_payment: float = Field(..., description="Principal plus interest")
    ending_balance: float = Field(..., description="Balance after the payment")


class ScheduledPayment(BaseModel):
    """A recorded debt service payment for an existing instrument."""

    payment_number: int = Field(..., ge=1, description="Payment number (1-based)")
    payment_date: date = Field(..., description="Payment due date")
    fiscal_year: int = Field(..., description="Fiscal year of payment")
    principal_amount: float = Field(..., ge=0, description="Principal due")
    interest_amount: float = Field(..., ge=0, description="Interest due")
    total_payment: float = Field(..., ge=0, description="Total due")
    remaining_principal: Optional[float] = Field(
        default=None, ge=0, description="Principal outstanding after this payment"
    )
    is_paid: bool = Field(default=False, description="Whether the payment was made")


class DebtServicePayment(BaseModel):
    """Annual debt service of one instrument within a forecast horizon."""

    year: int = Field(..., description="Fiscal year")
    period_index: int = Field(..., ge=0, description="Year offset from horizon start")
    label: str = Field(..., description="Display label")
    principal: float = Field(..., ge=0, description="Principal paid in the year")
    interest: float = Field(..., ge=0, description="Interest paid in the year")
    total: float = Field(..., ge=0, description="Total debt service for the year")


class DebtServiceSchedule(BaseModel):
    """Horizon-clipped annual debt service for one instrument."""

    instrument_id: str = Field(..., description="Instrument identifier")
    payments: List[DebtServicePayment] = Field(
        default_factory=list, description="Annual payments inside the horizon"
    )

    @property
    def total_debt_service(self) -> float:
        return sum(payment.total for payment in self.payments)


class CoverageYearEntry(BaseModel):
    """Pledged revenue coverage for one year."""

    year: int = Field(..., description="Fiscal year")
    revenue: float = Field(..., description="Pledged fund revenue for the year")
    debt_service: float = Field(..., ge=0, description="Debt service for the year")
    coverage_ratio: Optional[float] = Field(
        default=None, description="Revenue / debt service (None without debt service)"
    )
    meets_requirement: Optional[bool] = Field(
        default=None, description="Whether coverage meets the minimum ratio"
    )


class FundCoverageSummary(BaseModel):
    """Coverage of a pledged revenue fund against its debt service."""

    fund_id: str = Field(..., description="Fund paying the debt service")
    fund_code: str = Field(default="", description="Debt service fund code")
    fund_name: str = Field(default="", description="Debt service fund name")
    pledged_revenue_fund_id: str = Field(..., description="Pledged revenue fund")
    min_coverage_ratio: float = Field(..., ge=0, description="Most restrictive minimum")
    coverage_by_year: List[CoverageYearEntry] = Field(
        default_factory=list, description="Annual coverage entries"
    )


class AnnualDebtService(BaseModel):
    """Debt service of a schedule totalled by fiscal year."""

    year: int = Field(..., description="Fiscal year")
    principal: float = Field(..., description="Principal paid in the year")
    interest: float = Field(..., ge=0, description="Interest paid in the year")
    total: float = Field(..., description="Total debt service for the year")
