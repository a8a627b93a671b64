"""
Ledger inputs for fund forecasts.

Funds and transactions are supplied by the caller from its own ledger. This
module only reads them: it derives current balances and the annual revenue
and expense baselines that seed projections.
"""

from datetime import date
from typing import Dict, List, Literal, NamedTuple

from pydantic import BaseModel, Field

from .money import round_currency

TransactionType = Literal[
    "RECEIPT", "DISBURSEMENT", "TRANSFER", "ADJUSTMENT", "ENCUMBRANCE", "LIQUIDATION"
]
TransactionStatus = Literal[
    "DRAFT", "PENDING_APPROVAL", "APPROVED", "POSTED", "VOIDED", "RECONCILED"
]


class Fund(BaseModel):
    """A governmental fund as recorded in the ledger."""

    id: str = Field(..., min_length=1, description="Fund identifier")
    code: str = Field(..., description="Fund code (e.g., '101')")
    name: str = Field(..., description="Display name (e.g., 'General Fund')")
    is_active: bool = Field(default=True, description="Whether the fund is active")
    beginning_balance: float = Field(
        default=0.0, description="Opening balance before recorded transactions"
    )


class Transaction(BaseModel):
    """A single ledger transaction affecting a fund."""

    id: str = Field(..., description="Transaction identifier")
    fund_id: str = Field(..., description="Fund the transaction posts to")
    type: TransactionType = Field(..., description="Transaction type")
    status: TransactionStatus = Field(default="POSTED", description="Workflow status")
    transaction_date: date = Field(..., description="Date the transaction occurred")
    amount: float = Field(..., description="Transaction amount")
    description: str = Field(default="", description="Human-readable description")


class FundSnapshot(BaseModel):
    """Identification and current balance of the fund being forecast."""

    id: str = Field(..., description="Fund identifier")
    code: str = Field(default="", description="Fund code")
    name: str = Field(..., description="Fund name")
    current_balance: float = Field(..., description="Balance as of the forecast date")


class CurrentLedgerState(BaseModel):
    """Starting point for a single-fund forecast."""

    fund: FundSnapshot = Field(..., description="Fund being forecast")
    as_of_date: date = Field(..., description="Date the balance is measured at")


class TransactionImpact(NamedTuple):
    balance_change: float
    revenue: float
    expense: float


class FundActivity(BaseModel):
    """Balance and current-year activity derived from a fund's transactions."""

    fund_id: str = Field(..., description="Fund identifier")
    current_balance: float = Field(default=0.0, description="Balance as of the date")
    annual_revenue: float = Field(
        default=0.0, ge=0, description="Inflows during the as-of calendar year"
    )
    annual_expense: float = Field(
        default=0.0, ge=0, description="Outflows during the as-of calendar year"
    )
    transaction_count: int = Field(default=0, ge=0, description="Transactions applied")


def transaction_impact(transaction_type: TransactionType, amount: float) -> TransactionImpact:
    """
    Classify a transaction's effect on cash balance.

    Receipts always add and disbursements always subtract, regardless of the
    stored sign. Transfers and adjustments follow the sign of the amount.
    Encumbrances and liquidations are commitments with no cash effect.

    Args:
        transaction_type: Ledger transaction type
        amount: Stored transaction amount

    Returns:
        Balance change plus the revenue/expense it represents
    """
    if transaction_type == "RECEIPT":
        return TransactionImpact(abs(amount), abs(amount), 0.0)
    if transaction_type == "DISBURSEMENT":
        return TransactionImpact(-abs(amount), 0.0, abs(amount))
    if transaction_type in ("TRANSFER", "ADJUSTMENT"):
        if amount >= 0:
            return TransactionImpact(amount, amount, 0.0)
        return TransactionImpact(amount, 0.0, abs(amount))
    return TransactionImpact(0.0, 0.0, 0.0)


def summarize_fund_activity(
    funds: List[Fund], transactions: List[Transaction], as_of: date
) -> Dict[str, FundActivity]:
    """
    Compute current balances and as-of-year activity for each fund.

    Only non-voided transactions dated on or before ``as_of`` are applied.
    Transactions for funds not in ``funds`` are ignored.

    Args:
        funds: Funds to summarize
        transactions: Ledger transactions (any funds, any dates)
        as_of: Measurement date

    Returns:
        Mapping of fund id to its activity summary
    """
    activity = {
        fund.id: FundActivity(fund_id=fund.id, current_balance=fund.beginning_balance)
        for fund in funds
    }

    for transaction in transactions:
        if transaction.status == "VOIDED" or transaction.transaction_date > as_of:
            continue
        summary = activity.get(transaction.fund_id)
        if summary is None:
            continue

        impact = transaction_impact(transaction.type, transaction.amount)
        summary.current_balance += impact.balance_change
        summary.transaction_count += 1
        if transaction.transaction_date.year == as_of.year:
            summary.annual_revenue += impact.revenue
            summary.annual_expense += impact.expense

    for summary in activity.values():
        summary.current_balance = round_currency(summary.current_balance)
        summary.annual_revenue = round_currency(summary.annual_revenue)
        summary.annual_expense = round_currency(summary.annual_expense)

    return activity


def build_ledger_state(
    fund: Fund, transactions: List[Transaction], as_of: date
) -> CurrentLedgerState:
    """Build the single-fund starting state from a fund and its transactions."""
    activity = summarize_fund_activity([fund], transactions, as_of)[fund.id]
    return CurrentLedgerState(
        fund=FundSnapshot(
            id=fund.id,
            code=fund.code,
            name=fund.name,
            current_balance=activity.current_balance,
        ),
        as_of_date=as_of,
    )

