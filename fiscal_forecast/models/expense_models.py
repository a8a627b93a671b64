"""
Expense models for fund forecasts.

Mirrors ``revenue_models``: each variant is tagged by ``type`` and prices
itself for a single period. ``ExpenseModel`` is the closed union of all
variants.
"""

from abc import abstractmethod
from datetime import date
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from .assumptions import ProjectionContext
from .formula import Formula
from .money import format_currency, format_percentage
from .periods import months_between
from ..exceptions import FormulaError


class StepChange(BaseModel):
    """A change to an expense base amount effective from a date."""

    effective_date: date = Field(..., description="Date the change takes effect")
    change_type: Literal["ABSOLUTE", "PERCENTAGE", "REPLACEMENT"] = Field(
        ..., description="Add, scale by (1 + amount), or replace"
    )
    amount: float = Field(..., description="Change amount or rate")
    description: Optional[str] = Field(default=None, description="Reason for the change")

    def apply(self, current_amount: float) -> float:
        if self.change_type == "ABSOLUTE":
            return current_amount + self.amount
        if self.change_type == "PERCENTAGE":
            return current_amount * (1 + self.amount)
        return self.amount


class FTEChange(BaseModel):
    """A staffing change effective from a date."""

    effective_date: date = Field(..., description="Date the change takes effect")
    change_type: Literal["ADD", "REMOVE", "SET"] = Field(..., description="Change type")
    count: float = Field(..., ge=0, description="Number of FTEs")
    position_title: Optional[str] = Field(default=None, description="Position affected")

    def apply(self, fte_count: float) -> float:
        if self.change_type == "ADD":
            return fte_count + self.count
        if self.change_type == "REMOVE":
            return fte_count - self.count
        return self.count


class DebtPayment(BaseModel):
    """An explicit debt service payment."""

    payment_date: date = Field(..., description="Payment date")
    principal_amount: float = Field(default=0.0, ge=0, description="Principal portion")
    interest_amount: float = Field(default=0.0, ge=0, description="Interest portion")
    total_payment: float = Field(..., ge=0, description="Total payment")


class MonthlyAmount(BaseModel):
    """Amount spent in a given month."""

    month: date = Field(..., description="Any date in the month")
    amount: float = Field(..., description="Amount")


class CapitalProject(BaseModel):
    """A capital project in a capital improvement plan."""

    name: str = Field(..., min_length=1, description="Project name")
    start_date: date = Field(..., description="Project start")
    end_date: date = Field(..., description="Project completion")
    total_cost: float = Field(..., ge=0, description="Total project cost")
    spending_schedule: Optional[List[MonthlyAmount]] = Field(
        default=None, description="Explicit spending by month (None = spread evenly)"
    )
    funding_source: Optional[str] = Field(default=None, description="Funding source")

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("Project end date must be >= start date")
        return self

    def cost_between(self, period_start: date, period_end: date) -> float:
        """Project spending that falls inside a period."""
        if self.start_date > period_end or self.end_date < period_start:
            return 0.0
        if self.spending_schedule is not None:
            return sum(
                entry.amount
                for entry in self.spending_schedule
                if period_start <= entry.month <= period_end
            )
        overlap_start = max(period_start, self.start_date)
        overlap_end = min(period_end, self.end_date)
        project_months = months_between(self.start_date, self.end_date)
        return self.total_cost / project_months * months_between(overlap_start, overlap_end)


class BaseExpenseModel(BaseModel):
    """Fields shared by every expense model."""

    id: str = Field(..., min_length=1, description="Model identifier")
    name: str = Field(..., description="Display name")
    target_code: str = Field(default="", description="Expense account code")
    start_date: date = Field(..., description="First date the model applies")
    end_date: Optional[date] = Field(default=None, description="Last date (None = open)")
    is_active: bool = Field(default=True, description="Whether the model contributes")
    fund_id: Optional[str] = Field(
        default=None, description="Fund the model targets (None = any fund)"
    )
    notes: Optional[str] = Field(default=None, description="Free-form notes")

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date must be >= start date")
        return self

    def applies_to(self, period_start: date, period_end: date) -> bool:
        """Whether the model contributes to a period."""
        if not self.is_active:
            return False
        if self.start_date > period_end:
            return False
        return self.end_date is None or self.end_date >= period_start

    @abstractmethod
    def period_amount(self, context: ProjectionContext) -> float:
        """Expense for the period described by ``context``."""

    def describe(self) -> str:
        """Short description of the model's key assumption."""
        return self.type


class BaselineInflationExpenseModel(BaseExpenseModel):
    """Base amount grown by inflation."""

    type: Literal["BASELINE_INFLATION"] = "BASELINE_INFLATION"
    base_amount: float = Field(..., description="Annual amount in the first year")
    inflation_rate: Optional[float] = Field(
        default=None, description="Inflation rate (None = scenario general inflation)"
    )

    def period_amount(self, context: ProjectionContext) -> float:
        rate = self.inflation_rate
        if rate is None:
            rate = context.assumptions.general_inflation
        annual = self.base_amount * (1 + rate) ** context.years_elapsed
        return context.scale_annual(annual)

    def describe(self) -> str:
        if self.inflation_rate is None:
            return "General inflation"
        return f"{format_percentage(self.inflation_rate)} inflation"


class StepChangeExpenseModel(BaseExpenseModel):
    """Base amount adjusted by dated step changes, then inflated."""

    type: Literal["STEP_CHANGE"] = "STEP_CHANGE"
    base_amount: float = Field(..., description="Annual amount before any change")
    step_changes: List[StepChange] = Field(
        default_factory=list, description="Changes applied in order"
    )
    inflation_rate: Optional[float] = Field(
        default=None, description="Inflation applied after the step changes"
    )

    def period_amount(self, context: ProjectionContext) -> float:
        amount = self.base_amount
        for change in self.step_changes:
            if change.effective_date <= context.period.end:
                amount = change.apply(amount)
        if self.inflation_rate:
            amount *= (1 + self.inflation_rate) ** context.years_elapsed
        return context.scale_annual(amount)

    def describe(self) -> str:
        return f"{len(self.step_changes)} step changes from {format_currency(self.base_amount)}"


class PersonnelExpenseModel(BaseExpenseModel):
    """
    Staffing cost from FTE count and loaded salary.

    Cost per FTE is salary plus benefits (inflating on their own rate), FICA
    and pension (PERF) contributions, all proportional to salary.
    """

    type: Literal["PERSONNEL"] = "PERSONNEL"
    fte_count: float = Field(..., ge=0, description="Starting FTE count")
    average_salary: float = Field(..., ge=0, description="Average annual salary")
    salary_increase_rate: Optional[float] = Field(
        default=None, description="Annual raise (None = scenario wage growth)"
    )
    benefits_rate: float = Field(default=0.0, ge=0, description="Benefits as share of salary")
    benefits_inflation_rate: float = Field(default=0.0, description="Benefits cost growth")
    fica_rate: float = Field(default=0.0765, ge=0, description="Employer FICA rate")
    perf_rate: float = Field(default=0.0, ge=0, description="Pension contribution rate")
    fte_changes: List[FTEChange] = Field(
        default_factory=list, description="Staffing changes applied in order"
    )

    def fte_count_at(self, period_end: date) -> float:
        count = self.fte_count
        for change in self.fte_changes:
            if change.effective_date <= period_end:
                count = change.apply(count)
        return count

    def period_amount(self, context: ProjectionContext) -> float:
        years = context.years_elapsed
        raise_rate = self.salary_increase_rate
        if raise_rate is None:
            raise_rate = context.assumptions.wage_growth

        salary = self.average_salary * (1 + raise_rate) ** years
        benefits = salary * self.benefits_rate * (1 + self.benefits_inflation_rate) ** years
        per_fte = salary + benefits + salary * self.fica_rate + salary * self.perf_rate

        return context.scale_annual(self.fte_count_at(context.period.end) * per_fte)

    def describe(self) -> str:
        if self.salary_increase_rate is None:
            return f"{self.fte_count:g} FTEs, wage growth raises"
        return f"{self.fte_count:g} FTEs, {format_percentage(self.salary_increase_rate)} raises"


class DebtServiceExpenseModel(BaseExpenseModel):
    """
    Debt service paid from the fund.

    An explicit ``payment_schedule`` wins. Otherwise the linked instrument's
    annual debt service is looked up from the context's debt service
    provider and spread evenly over the periods of the year.
    """

    type: Literal["DEBT_SERVICE"] = "DEBT_SERVICE"
    debt_instrument_id: Optional[str] = Field(
        default=None, description="Instrument whose debt service this line carries"
    )
    payment_schedule: Optional[List[DebtPayment]] = Field(
        default=None, description="Explicit payments"
    )

    def period_amount(self, context: ProjectionContext) -> float:
        period = context.period
        if self.payment_schedule is not None:
            return sum(
                payment.total_payment
                for payment in self.payment_schedule
                if period.start <= payment.payment_date <= period.end
            )
        if self.debt_instrument_id is None or context.debt_service_provider is None:
            return 0.0
        annual = context.debt_service_provider.instrument_debt_service(
            self.debt_instrument_id, period.year
        )
        return annual / context.periods_per_year

    def describe(self) -> str:
        if self.payment_schedule is not None:
            return f"{len(self.payment_schedule)} scheduled payments"
        return f"Debt service: {self.debt_instrument_id or 'unlinked'}"


class CapitalPlanExpenseModel(BaseExpenseModel):
    """Spending of a capital improvement plan."""

    type: Literal["CAPITAL_PLAN"] = "CAPITAL_PLAN"
    projects: List[CapitalProject] = Field(default_factory=list, description="Projects")

    def period_amount(self, context: ProjectionContext) -> float:
        return sum(
            project.cost_between(context.period.start, context.period.end)
            for project in self.projects
        )

    def describe(self) -> str:
        total = sum(project.total_cost for project in self.projects)
        return f"{len(self.projects)} projects, {format_currency(total)} total"


class ContractExpenseModel(BaseExpenseModel):
    """Escalating contract, optionally renewed at a flat amount."""

    type: Literal["CONTRACT"] = "CONTRACT"
    vendor_name: Optional[str] = Field(default=None, description="Vendor")
    annual_amount: float = Field(..., ge=0, description="Annual contract amount")
    escalation_rate: float = Field(default=0.0, description="Annual escalation")
    contract_end_date: date = Field(..., description="Contract expiration")
    renewal_amount: Optional[float] = Field(
        default=None, ge=0, description="Annual amount after expiration (None = ends)"
    )

    def period_amount(self, context: ProjectionContext) -> float:
        if context.period.start <= self.contract_end_date:
            annual = self.annual_amount * (1 + self.escalation_rate) ** context.years_elapsed
        elif self.renewal_amount:
            annual = self.renewal_amount
        else:
            return 0.0
        return context.scale_annual(annual)

    def describe(self) -> str:
        return (
            f"Contract {format_currency(self.annual_amount)}/year, "
            f"{format_percentage(self.escalation_rate)} escalation"
        )


class UtilityExpenseModel(BaseExpenseModel):
    """Utility cost from monthly usage, seasonal pattern and unit rate."""

    type: Literal["UTILITY"] = "UTILITY"
    utility_type: Literal["ELECTRIC", "GAS", "WATER", "SEWER", "OTHER"] = Field(
        default="OTHER", description="Utility type"
    )
    base_usage: float = Field(..., ge=0, description="Monthly usage in the first year")
    usage_growth_rate: float = Field(default=0.0, description="Annual usage growth")
    current_rate: float = Field(..., ge=0, description="Cost per unit of usage")
    rate_increase_rate: float = Field(default=0.0, description="Annual rate increase")
    monthly_pattern: Optional[List[Optional[float]]] = Field(
        default=None, description="Usage multiplier per calendar month (None = 1)"
    )

    @field_validator("monthly_pattern")
    @classmethod
    def validate_pattern(
        cls, v: Optional[List[Optional[float]]]
    ) -> Optional[List[Optional[float]]]:
        if v is not None and len(v) != 12:
            raise ValueError("Monthly pattern must have 12 entries")
        return v

    def period_amount(self, context: ProjectionContext) -> float:
        years = context.years_elapsed
        months = context.months_in_period
        usage = self.base_usage * (1 + self.usage_growth_rate) ** years

        if self.monthly_pattern:
            factors = [self.monthly_pattern[m] for m in context.period.calendar_months]
            usage *= sum(1.0 if f is None else f for f in factors) / months

        rate = self.current_rate * (1 + self.rate_increase_rate) ** years
        return usage * rate * months

    def describe(self) -> str:
        return f"{self.utility_type.title()} at {self.current_rate:g}/unit"


class CustomExpenseModel(BaseExpenseModel):
    """Expense computed from an arithmetic formula (see ``CustomRevenueModel``)."""

    type: Literal["CUSTOM"] = "CUSTOM"
    formula: str = Field(..., description="Arithmetic expression for the period amount")
    variables: Dict[str, float] = Field(default_factory=dict, description="Named inputs")

    _parsed: Optional[Formula] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def parse_formula(self):
        try:
            self._parsed = Formula(self.formula)
        except FormulaError as e:
            raise ValueError(str(e)) from e
        return self

    def period_amount(self, context: ProjectionContext) -> float:
        variables = context.formula_variables()
        variables.update(self.variables)
        return self._parsed.evaluate(variables)

    def describe(self) -> str:
        return f"Formula: {self.formula}"


ExpenseModel = Annotated[
    Union[
        BaselineInflationExpenseModel,
        StepChangeExpenseModel,
        PersonnelExpenseModel,
        DebtServiceExpenseModel,
        CapitalPlanExpenseModel,
        ContractExpenseModel,
        UtilityExpenseModel,
        CustomExpenseModel,
    ],
    Field(discriminator="type"),
]
