"""Deal finance formulas.

Trade handling: the trade-in *value* reduces the taxable base, while the
trade *equity* (value minus payoff) reduces the amount financed. A trade
with negative equity therefore increases the amount financed.
"""

from __future__ import annotations

from pydantic import BaseModel

from dealroute.core.errors import ToolValidationError
from dealroute.models.deal import Deal


class PaymentQuote(BaseModel):
    principal: float
    annual_rate: float
    term_months: int
    monthly_payment: float


class FinancedAmount(BaseModel):
    deal_number: str
    taxable_amount: float
    tax: float
    trade_equity: float
    extra_cost: float
    total_financed: float


class CreditRate(BaseModel):
    credit_score: int
    interest_rate: float
    tier: str


def monthly_payment(principal: float, annual_rate: float, term_months: int) -> float:
    """Standard amortizing-loan payment, rounded to cents.

    Args:
        principal: Amount financed.
        annual_rate: Annual interest rate in percent (``5.0`` means 5%).
        term_months: Number of monthly payments.
    """
    if term_months <= 0:
        raise ToolValidationError("term_months must be positive")
    if principal < 0:
        raise ToolValidationError("principal must not be negative")
    if annual_rate < 0:
        raise ToolValidationError("annual_rate must not be negative")
    monthly_rate = annual_rate / 12 / 100
    if monthly_rate == 0:
        return round(principal / term_months, 2)
    growth = (1 + monthly_rate) ** term_months
    return round(principal * (monthly_rate * growth) / (growth - 1), 2)


def quote_payment(principal: float, annual_rate: float, term_months: int) -> PaymentQuote:
    return PaymentQuote(
        principal=principal,
        annual_rate=annual_rate,
        term_months=term_months,
        monthly_payment=monthly_payment(principal, annual_rate, term_months),
    )


def total_financed(deal: Deal, extra_cost: float = 0.0) -> FinancedAmount:
    """Compute tax and the amount financed for a deal plus optional add-on cost."""
    if extra_cost < 0:
        raise ToolValidationError("extra_cost must not be negative")
    taxable = (
        deal.sale_price - deal.rebate - deal.trade_value + deal.dealer_fees + extra_cost
    )
    tax = taxable * deal.tax_rate
    equity = deal.trade_value - deal.trade_payoff
    total = (
        deal.sale_price
        - deal.rebate
        + deal.dealer_fees
        + extra_cost
        + deal.tag_title_cost
        + tax
        - equity
    )
    return FinancedAmount(
        deal_number=deal.deal_number,
        taxable_amount=round(taxable, 2),
        tax=round(tax, 2),
        trade_equity=round(equity, 2),
        extra_cost=extra_cost,
        total_financed=round(total, 2),
    )


def rate_for_credit_score(credit_score: int) -> CreditRate:
    """Tiered rate: above 800 Premium, 700-800 Standard, below 700 Subprime."""
    if credit_score > 800:
        return CreditRate(credit_score=credit_score, interest_rate=5.0, tier="Premium")
    if credit_score >= 700:
        return CreditRate(credit_score=credit_score, interest_rate=6.0, tier="Standard")
    return CreditRate(credit_score=credit_score, interest_rate=7.0, tier="Subprime")
