"""Deal business record."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class Deal(BaseModel):
    """A vehicle deal as stored in the dealer management system."""

    deal_number: str
    full_name: str
    address: str = ""
    insurance: str = ""
    ssn: str | None = None
    credit_score: int | None = None
    time_at_address: str | None = None
    employment: str | None = None
    monthly_income: float | None = None

    vehicle: str = ""
    trade: str | None = None

    sale_price: float
    rebate: float = 0.0
    dealer_fees: float = 0.0
    trade_value: float = 0.0
    trade_payoff: float = 0.0
    tax_rate: float
    tag_title_cost: float = 125.0

    is_finance: bool = True
    expectation: str = ""

    current_stage: str = "initial"
    is_complete: bool = False
    selected_add_on: str | None = None
    signed_documents: list[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_modified_by: str | None = None

    def summary(self) -> dict[str, object]:
        """Return the deal without sensitive identifiers, for prompt grounding."""
        data = self.model_dump(
            mode="json",
            exclude={"created_at", "updated_at", "last_modified_by"},
        )
        if self.ssn:
            data["ssn"] = f"***-**-{self.ssn[-4:]}"
        return data
