"""Narrow tool operations and their function-calling manifest."""

from dealroute.tools.catalog import (
    ADD_ON_KEYS,
    FINANCING_PROGRAMS,
    NO_ADD_ON,
    AftermarketOption,
    FinancingProgram,
    aftermarket_options,
    price_multiplier,
)
from dealroute.tools.definitions import DEAL_TOOLS, ToolExecutor
from dealroute.tools.documents import DocumentPackage, required_documents
from dealroute.tools.finance import (
    CreditRate,
    FinancedAmount,
    PaymentQuote,
    monthly_payment,
    quote_payment,
    rate_for_credit_score,
    total_financed,
)
from dealroute.tools.operations import (
    DEMO_VERIFICATION_CODE,
    AftermarketQuote,
    CodeCheck,
    DealTools,
    SignatureReceipt,
    VerificationDispatch,
    normalize_add_on,
)

__all__ = [
    "ADD_ON_KEYS",
    "DEAL_TOOLS",
    "DEMO_VERIFICATION_CODE",
    "FINANCING_PROGRAMS",
    "NO_ADD_ON",
    "AftermarketOption",
    "AftermarketQuote",
    "CodeCheck",
    "CreditRate",
    "DealTools",
    "DocumentPackage",
    "FinancedAmount",
    "FinancingProgram",
    "PaymentQuote",
    "SignatureReceipt",
    "ToolExecutor",
    "VerificationDispatch",
    "aftermarket_options",
    "monthly_payment",
    "normalize_add_on",
    "price_multiplier",
    "quote_payment",
    "rate_for_credit_score",
    "required_documents",
    "total_financed",
]
