"""Required-document checklists by deal type."""

from __future__ import annotations

from pydantic import BaseModel, Field

from dealroute.tools.catalog import NO_ADD_ON

DMV_DOCUMENTS: tuple[str, ...] = (
    "Odometer Statement",
    "Secure Power of Attorney",
    "Title Reassignment",
    "Power of Attorney",
    "Statement of Tag Intent",
    "Pollution Statement",
    "Insurance Declaration",
    "Bill of Sale",
)
CASH_DOCUMENTS: tuple[str, ...] = ("Buyers Order", "Dealer Privacy Notice")
FINANCE_DOCUMENTS: tuple[str, ...] = (
    "Credit Application",
    "Risk Based Pricing Notice",
    "OFAC/ID",
    "Carfax",
)
AFTERMARKET_CONTRACT = "Aftermarket Contract"


class DocumentPackage(BaseModel):
    deal_number: str
    customer_name: str
    is_finance: bool
    add_on: str = NO_ADD_ON
    documents: list[str] = Field(default_factory=list)


def required_documents(is_finance: bool, add_on: str | None = None) -> list[str]:
    """Return the ordered checklist for a cash or finance deal.

    DMV paperwork and the cash set apply to every deal; finance deals add
    the lending set. A selected add-on adds its contract once.
    """
    docs = [*DMV_DOCUMENTS, *CASH_DOCUMENTS]
    if is_finance:
        docs.extend(FINANCE_DOCUMENTS)
    if add_on and add_on != NO_ADD_ON:
        docs.append(AFTERMARKET_CONTRACT)
    return docs
