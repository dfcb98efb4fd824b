"""Static product catalog: financing programs and protection packages."""

from __future__ import annotations

from pydantic import BaseModel, Field


class FinancingProgram(BaseModel):
    bank: str
    rate: str
    terms: str


class AftermarketOption(BaseModel):
    key: str
    name: str
    cost: int
    includes: list[str] = Field(default_factory=list)
    monthly_impact: str = ""


FINANCING_PROGRAMS: tuple[FinancingProgram, ...] = (
    FinancingProgram(
        bank="Bank A",
        rate="as low as 4.99% with approved credit",
        terms="up to 72 months",
    ),
    FinancingProgram(
        bank="Bank B",
        rate="as low as 5.49% with approved credit",
        terms="up to 84 months",
    ),
    FinancingProgram(
        bank="Manufacturer Finance",
        rate="as low as 3.99% with approved credit",
        terms="up to 60 months",
    ),
)

NO_ADD_ON = "none"

_PACKAGES: tuple[tuple[str, str, int, tuple[str, ...], str], ...] = (
    (
        "option1",
        "Premium Protection Package",
        3000,
        (
            "Extended Warranty (7yr/100k)",
            "Maintenance Plan (5yr)",
            "Tire Protection",
            "Theft Protection",
            "Paint Protection",
        ),
        "Approximately $50-60/month",
    ),
    (
        "option2",
        "Standard Protection Package",
        2000,
        ("Extended Warranty (5yr/75k)", "Maintenance Plan (3yr)", "Tire Protection"),
        "Approximately $30-40/month",
    ),
    (
        "option3",
        "Basic Protection Package",
        1000,
        ("Extended Warranty (3yr/50k)", "Basic Maintenance Plan (2yr)"),
        "Approximately $15-25/month",
    ),
)

ADD_ON_KEYS: frozenset[str] = frozenset({key for key, *_ in _PACKAGES} | {NO_ADD_ON})


def price_multiplier(sale_price: float | None) -> float:
    """Scale package prices by vehicle price tier."""
    if sale_price is None:
        return 1.0
    if sale_price > 60000:
        return 1.5
    if sale_price > 40000:
        return 1.2
    if sale_price < 25000:
        return 0.8
    return 1.0


def aftermarket_options(sale_price: float | None = None) -> list[AftermarketOption]:
    """Return the three protection tiers priced for a vehicle."""
    multiplier = price_multiplier(sale_price)
    return [
        AftermarketOption(
            key=key,
            name=name,
            cost=round(base * multiplier),
            includes=list(includes),
            monthly_impact=impact,
        )
        for key, name, base, includes, impact in _PACKAGES
    ]
