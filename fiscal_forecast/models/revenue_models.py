"""
Revenue models for fund forecasts.

Each revenue model is a pydantic model tagged by its ``type`` field and knows
how to price itself for one forecast period. ``RevenueModel`` is the closed
union of all variants: an unknown ``type`` fails validation instead of
silently contributing nothing.
"""

from abc import abstractmethod
from datetime import date
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from .assumptions import ProjectionContext
from .formula import Formula
from .money import format_currency, format_percentage
from ..exceptions import FormulaError


def _month_share(weight: Optional[float]) -> float:
    return 1 / 12 if weight is None else weight


class BaseRevenueModel(BaseModel):
    """Fields shared by every revenue model."""

    id: str = Field(..., min_length=1, description="Model identifier")
    name: str = Field(..., description="Display name")
    source_code: str = Field(default="", description="Revenue account code")
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
        """Revenue for the period described by ``context``."""

    def describe(self) -> str:
        """Short description of the model's key assumption."""
        return self.type


class StaticRevenueModel(BaseRevenueModel):
    """Flat annual amount, optionally distributed by calendar month."""

    type: Literal["STATIC"] = "STATIC"
    annual_amount: float = Field(..., description="Annual amount")
    monthly_distribution: Optional[List[Optional[float]]] = Field(
        default=None,
        description="Share of the annual amount in each calendar month (None = 1/12)",
    )

    @field_validator("monthly_distribution")
    @classmethod
    def validate_distribution(
        cls, v: Optional[List[Optional[float]]]
    ) -> Optional[List[Optional[float]]]:
        if v is not None and len(v) != 12:
            raise ValueError("Monthly distribution must have 12 entries")
        return v

    def period_amount(self, context: ProjectionContext) -> float:
        if self.monthly_distribution:
            return sum(
                self.annual_amount * _month_share(self.monthly_distribution[month])
                for month in context.period.calendar_months
            )
        return context.scale_annual(self.annual_amount)

    def describe(self) -> str:
        return f"Static: {format_currency(self.annual_amount)}/year"


class PercentGrowthRevenueModel(BaseRevenueModel):
    """Base amount compounding at a fixed annual rate."""

    type: Literal["PERCENT_GROWTH"] = "PERCENT_GROWTH"
    base_amount: float = Field(..., description="Annual amount in the first year")
    growth_rate: float = Field(..., description="Annual growth rate")

    def period_amount(self, context: ProjectionContext) -> float:
        annual = self.base_amount * (1 + self.growth_rate) ** context.years_elapsed
        return context.scale_annual(annual)

    def describe(self) -> str:
        return f"{format_percentage(self.growth_rate)} annual growth"


class LITLinkedRevenueModel(BaseRevenueModel):
    """Local income tax distribution tied to a growing taxable income base."""

    type: Literal["LIT_LINKED"] = "LIT_LINKED"
    lit_rate: float = Field(..., ge=0, description="Local income tax rate")
    taxable_income_base: float = Field(..., ge=0, description="Taxable income base")
    income_growth_rate: float = Field(..., description="Annual income growth rate")
    collection_efficiency: float = Field(
        default=1.0, ge=0, le=1, description="Share of levied tax collected"
    )
    distribution_lag_months: int = Field(
        default=0, ge=0, description="Months between collection and distribution"
    )

    def period_amount(self, context: ProjectionContext) -> float:
        lag = self.distribution_lag_months
        # Nothing is distributed until the first collections clear the lag
        paid_months = min(
            context.months_in_period,
            context.years_elapsed * 12 + context.months_in_period - lag,
        )
        if paid_months <= 0:
            return 0.0
        years = max(0.0, context.years_elapsed - lag / 12)
        income = self.taxable_income_base * (1 + self.income_growth_rate) ** years
        annual = income * self.lit_rate * self.collection_efficiency
        return annual / 12 * paid_months

    def describe(self) -> str:
        return f"LIT rate {format_percentage(self.lit_rate, 2)}"


class PropertyTaxRevenueModel(BaseRevenueModel):
    """Certified levy growing at the lesser of the cap and assessed value growth."""

    type: Literal["PROPERTY_TAX"] = "PROPERTY_TAX"
    certified_levy: float = Field(..., ge=0, description="Certified levy")
    max_growth_rate: float = Field(..., description="Statutory maximum levy growth")
    assessed_value_growth: Optional[float] = Field(
        default=None,
        description="Assessed value growth (None = scenario property value growth)",
    )
    collection_rate: float = Field(default=1.0, ge=0, le=1, description="Collection rate")
    circuit_breaker_loss: float = Field(
        default=0.0, ge=0, le=1, description="Share lost to tax caps"
    )

    def period_amount(self, context: ProjectionContext) -> float:
        av_growth = self.assessed_value_growth
        if av_growth is None:
            av_growth = context.assumptions.property_value_growth
        growth = min(self.max_growth_rate, av_growth)
        # Levies step once per year
        levy = self.certified_levy * (1 + growth) ** context.whole_years_elapsed
        collected = levy * (1 - self.circuit_breaker_loss) * self.collection_rate
        return context.scale_annual(collected)

    def describe(self) -> str:
        return f"Levy: {format_currency(self.certified_levy)}"


class GrantLinkedRevenueModel(BaseRevenueModel):
    """
    Grant revenue.

    ``ONE_TIME`` grants pay the full amount in the first period only.
    ``MULTI_YEAR`` grants pay for ``grant_years`` and afterwards only in
    years where renewal is drawn with ``renewal_probability``. ``ANNUAL``
    grants pay every year.
    """

    type: Literal["GRANT_LINKED"] = "GRANT_LINKED"
    grant_amount: float = Field(..., ge=0, description="Grant amount per year")
    grant_period: Literal["ANNUAL", "MULTI_YEAR", "ONE_TIME"] = Field(
        default="ANNUAL", description="Grant period"
    )
    grant_years: Optional[int] = Field(
        default=None, ge=1, description="Years covered by a multi-year award"
    )
    renewal_probability: float = Field(
        default=0.0, ge=0, le=1, description="Chance of renewal after the award ends"
    )

    def period_amount(self, context: ProjectionContext) -> float:
        if self.grant_period == "ONE_TIME":
            return self.grant_amount if context.period_index == 0 else 0.0

        if (
            self.grant_period == "MULTI_YEAR"
            and self.grant_years is not None
            and context.years_elapsed >= self.grant_years
        ):
            if context.renewal_draws is None:
                return 0.0
            renewed = context.renewal_draws.is_renewed(
                self.id, context.whole_years_elapsed, self.renewal_probability
            )
            if not renewed:
                return 0.0

        return context.scale_annual(self.grant_amount)

    def describe(self) -> str:
        return f"Grant: {format_currency(self.grant_amount)} ({self.grant_period})"


class FeeBasedRevenueModel(BaseRevenueModel):
    """User fees: volume growth times fee growth."""

    type: Literal["FEE_BASED"] = "FEE_BASED"
    fee_amount: float = Field(..., ge=0, description="Current fee per unit")
    base_volume: float = Field(..., ge=0, description="Annual units in the first year")
    volume_growth_rate: float = Field(default=0.0, description="Annual volume growth")
    fee_increase_rate: float = Field(default=0.0, description="Annual fee increase")

    def period_amount(self, context: ProjectionContext) -> float:
        years = context.years_elapsed
        volume = self.base_volume * (1 + self.volume_growth_rate) ** years
        fee = self.fee_amount * (1 + self.fee_increase_rate) ** years
        return context.scale_annual(volume * fee)

    def describe(self) -> str:
        return f"Fee {format_currency(self.fee_amount)} x {self.base_volume:,.0f} units"


class SeasonalRevenueModel(BaseRevenueModel):
    """Annual amount spread over the year by monthly weights."""

    type: Literal["SEASONAL"] = "SEASONAL"
    annual_amount: float = Field(..., description="Annual amount in the first year")
    monthly_weights: List[float] = Field(
        ..., min_length=12, max_length=12, description="Share of each calendar month"
    )
    growth_rate: float = Field(default=0.0, description="Annual growth rate")

    @field_validator("monthly_weights")
    @classmethod
    def validate_weights(cls, v: List[float]) -> List[float]:
        if any(weight < 0 for weight in v):
            raise ValueError("Monthly weights cannot be negative")
        total = sum(v)
        if abs(total - 1.0) > 0.001:
            raise ValueError(f"Monthly weights must sum to 1.0, got {total}")
        return v

    def period_amount(self, context: ProjectionContext) -> float:
        annual = self.annual_amount * (1 + self.growth_rate) ** context.whole_years_elapsed
        return sum(annual * self.monthly_weights[m] for m in context.period.calendar_months)

    def describe(self) -> str:
        return f"Seasonal: {format_currency(self.annual_amount)}/year"


class CustomRevenueModel(BaseRevenueModel):
    """
    Revenue computed from an arithmetic formula.

    The formula sees the model's ``variables``, every scenario assumption,
    and ``period_index``, ``years_elapsed``, ``months_in_period`` and
    ``periods_per_year``. Model variables take precedence over assumptions.
    """

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


RevenueModel = Annotated[
    Union[
        StaticRevenueModel,
        PercentGrowthRevenueModel,
        LITLinkedRevenueModel,
        PropertyTaxRevenueModel,
        GrantLinkedRevenueModel,
        FeeBasedRevenueModel,
        SeasonalRevenueModel,
        CustomRevenueModel,
    ],
    Field(discriminator="type"),
]
