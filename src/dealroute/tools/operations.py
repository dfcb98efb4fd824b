"""Narrow tool operations over the deal repository.

Each method is a single-purpose call with its own argument validation.
Missing records raise ``ToolNotFoundError``; bad arguments raise
``ToolValidationError``. Nothing here catches its own errors: turning them
into structured results is the orchestrator's job.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from dealroute.core.errors import ToolValidationError
from dealroute.models.deal import Deal
from dealroute.store.deals import DealRepository
from dealroute.tools import finance
from dealroute.tools.catalog import (
    ADD_ON_KEYS,
    FINANCING_PROGRAMS,
    NO_ADD_ON,
    AftermarketOption,
    FinancingProgram,
    aftermarket_options,
)
from dealroute.tools.documents import DocumentPackage, required_documents

logger = logging.getLogger("dealroute.tools.operations")

DEMO_VERIFICATION_CODE = "1234"


class SignatureReceipt(BaseModel):
    deal_number: str
    signer_name: str
    newly_signed: list[str] = Field(default_factory=list)
    signed_documents: list[str] = Field(default_factory=list)


class VerificationDispatch(BaseModel):
    deal_number: str
    destination: str
    message: str


class CodeCheck(BaseModel):
    verified: bool
    message: str


class AftermarketQuote(BaseModel):
    deal_number: str | None = None
    vehicle: str | None = None
    sale_price: float | None = None
    options: list[AftermarketOption] = Field(default_factory=list)


class DealTools:
    """The narrow, single-purpose operations available to handlers."""

    def __init__(self, deals: DealRepository) -> None:
        self._deals = deals

    @property
    def repository(self) -> DealRepository:
        return self._deals

    # -- Records --------------------------------------------------------------

    async def get_deal(self, deal_number: str) -> Deal:
        _require_text(deal_number, "deal_number")
        return await self._deals.require(deal_number)

    async def update_deal(
        self,
        deal_number: str,
        updates: Mapping[str, Any],
        *,
        modified_by: str | None = None,
    ) -> Deal:
        _require_text(deal_number, "deal_number")
        if not updates:
            raise ToolValidationError("updates must not be empty")
        deal = await self._deals.update(deal_number, updates, modified_by=modified_by)
        logger.info(
            "Updated deal %s fields %s",
            deal_number,
            sorted(updates),
            extra={"deal_number": deal_number, "modified_by": modified_by},
        )
        return deal

    async def update_stage(
        self, deal_number: str, stage: str, is_complete: bool | None = None
    ) -> Deal:
        _require_text(stage, "stage")
        updates: dict[str, Any] = {"current_stage": stage}
        if is_complete is not None:
            updates["is_complete"] = is_complete
        return await self.update_deal(deal_number, updates)

    async def set_add_on(self, deal_number: str, option: str) -> Deal:
        key = normalize_add_on(option)
        return await self.update_deal(deal_number, {"selected_add_on": key})

    # -- Calculations ---------------------------------------------------------

    @staticmethod
    def calculate_payment(
        principal: float, annual_rate: float, term_months: int
    ) -> finance.PaymentQuote:
        return finance.quote_payment(principal, annual_rate, term_months)

    async def calculate_total_financed(
        self, deal_number: str, extra_cost: float = 0.0
    ) -> finance.FinancedAmount:
        deal = await self.get_deal(deal_number)
        return finance.total_financed(deal, extra_cost)

    @staticmethod
    def rate_for_credit_score(credit_score: int) -> finance.CreditRate:
        if credit_score < 300 or credit_score > 850:
            raise ToolValidationError(f"credit_score out of range: {credit_score}")
        return finance.rate_for_credit_score(credit_score)

    @staticmethod
    def list_financing_programs() -> list[FinancingProgram]:
        return list(FINANCING_PROGRAMS)

    async def get_aftermarket_options(self, deal_number: str | None = None) -> AftermarketQuote:
        if deal_number is None:
            return AftermarketQuote(options=aftermarket_options())
        deal = await self.get_deal(deal_number)
        return AftermarketQuote(
            deal_number=deal.deal_number,
            vehicle=deal.vehicle,
            sale_price=deal.sale_price,
            options=aftermarket_options(deal.sale_price),
        )

    # -- Documents and signatures ---------------------------------------------

    async def generate_documents(
        self,
        deal_number: str,
        is_finance: bool | None = None,
        add_on: str | None = None,
    ) -> DocumentPackage:
        deal = await self.get_deal(deal_number)
        finance_deal = deal.is_finance if is_finance is None else is_finance
        selected = normalize_add_on(add_on) if add_on else (deal.selected_add_on or NO_ADD_ON)
        return DocumentPackage(
            deal_number=deal.deal_number,
            customer_name=deal.full_name,
            is_finance=finance_deal,
            add_on=selected,
            documents=required_documents(finance_deal, selected),
        )

    async def apply_signature(
        self, deal_number: str, signer_name: str, documents: list[str]
    ) -> SignatureReceipt:
        """Record a signature on each document; re-signing is a no-op."""
        _require_text(signer_name, "signer_name")
        if not documents:
            raise ToolValidationError("documents must not be empty")
        deal = await self.get_deal(deal_number)
        new = [d for d in dict.fromkeys(documents) if d not in deal.signed_documents]
        signed = [*deal.signed_documents, *new]
        if new:
            await self._deals.update(
                deal_number, {"signed_documents": signed}, modified_by=signer_name
            )
        return SignatureReceipt(
            deal_number=deal_number,
            signer_name=signer_name,
            newly_signed=new,
            signed_documents=signed,
        )

    # -- Verification ---------------------------------------------------------

    async def send_verification_code(
        self, deal_number: str, phone: str | None = None
    ) -> VerificationDispatch:
        deal = await self.get_deal(deal_number)
        destination = phone or "customer's phone"
        return VerificationDispatch(
            deal_number=deal.deal_number,
            destination=destination,
            message=(
                f"Verification code sent to {destination}. "
                f"For demo purposes, the correct code is {DEMO_VERIFICATION_CODE}."
            ),
        )

    @staticmethod
    def verify_code(code: str) -> CodeCheck:
        code = code.strip()
        if len(code) != 4 or not code.isdigit():
            raise ToolValidationError("verification code must be 4 digits")
        if code == DEMO_VERIFICATION_CODE:
            return CodeCheck(verified=True, message="Verification successful.")
        return CodeCheck(verified=False, message="Verification failed - incorrect code entered.")


def normalize_add_on(option: str) -> str:
    """Map user-facing spellings ("Option 2", "option2", "none") to a catalog key."""
    key = option.strip().lower().replace(" ", "").replace("_", "")
    if key not in ADD_ON_KEYS:
        raise ToolValidationError(f"Unknown aftermarket option: {option}")
    return key


def _require_text(value: str, name: str) -> None:
    if not value or not value.strip():
        raise ToolValidationError(f"{name} is required")
