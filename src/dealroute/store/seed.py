"""Demo deals used by examples and tests."""

from __future__ import annotations

from dealroute.models.deal import Deal


def demo_deals() -> list[Deal]:
    """Return fresh copies of the demo deal set."""
    return [
        Deal(
            deal_number="1",
            full_name="Jane Doe",
            address="123 Oak Street, Rivertown, CA 90210",
            insurance="Geico G09876543 effective 3/15/24 expiring 3/15/25",
            vehicle="5XYZWDLB8JG512345 2023 Hyundai Santa Fe Limited Black 1,500 Miles",
            trade="1GNSKBE0XBR123456 Chevrolet Tahoe LT 30,000 miles White",
            sale_price=38000,
            rebate=1500,
            dealer_fees=1100,
            trade_value=28000,
            trade_payoff=25000,
            tax_rate=0.085,
            ssn="123456789",
            credit_score=780,
            time_at_address="5 yrs, Rent, $2000 per month",
            employment="Full-time, 6 years at XYZ Corporation, Senior Accountant",
            monthly_income=6000,
            expectation="customer expects a payment below $700",
        ),
        Deal(
            deal_number="2",
            full_name="John Smith",
            address="789 Pine Street, Sunnyside, TX 75001",
            insurance="Allstate A11223344 effective 2/20/24 expiring 2/20/25",
            vehicle="2G1FC3D36D9165432 2023 Chevrolet Camaro SS Red 800 Miles",
            trade="1GNSCBKC7JR123456 Chevrolet Suburban Premier 25,000 miles Silver",
            sale_price=42000,
            rebate=2500,
            dealer_fees=1100,
            trade_value=32000,
            trade_payoff=28000,
            tax_rate=0.07,
            ssn="987654321",
            credit_score=805,
            time_at_address="3 yrs, Rent, $1800 per month",
            employment="Full-time, 8 years at ABC Industries, Marketing Manager",
            monthly_income=8000,
            expectation="customer expects a payment below $800",
        ),
        Deal(
            deal_number="3",
            full_name="Max Johnson",
            address="456 Birch Lane, Mountain View, CO 80301",
            insurance="Progressive P99887766 effective 5/10/24 expiring 5/10/25",
            vehicle="1C4RJFAG5LC123456 2023 Jeep Grand Cherokee Limited White 1,200 Miles",
            trade="1GYS4JKJ4FR123456 Cadillac Escalade Luxury 20,000 miles Black",
            sale_price=48000,
            rebate=1800,
            dealer_fees=1100,
            trade_value=40000,
            trade_payoff=35000,
            tax_rate=0.065,
            ssn="567891234",
            credit_score=815,
            time_at_address="7 yrs, Own, Mortgage $2500 per month",
            employment="Retired",
            monthly_income=7000,
            expectation="customer expects a payment below $900",
        ),
        Deal(
            deal_number="207",
            full_name="Test Te Tester",
            address="555 Maple St Honeycomb FL 37756",
            insurance="State Farm F10923335 effective 4/09/24 expiring 4/09/25",
            vehicle="1FTFW1ED7LKE28463 2023 Ford F150 Lariat Blue 193 Miles",
            trade="1FTEW1EP1KK123456 Ford F150 XLT 18,350 miles Green",
            sale_price=69500,
            rebate=2000,
            dealer_fees=1100,
            trade_value=42500,
            trade_payoff=35000,
            tax_rate=0.06,
            ssn="888553322",
            credit_score=832,
            time_at_address="10 yrs, Own, $1500 per month",
            employment="Retired",
            monthly_income=7500,
            expectation="customer expects a payment below $1000",
        ),
        Deal(
            deal_number="107",
            full_name="Jane Louise Smith",
            address="456 Oak Street, Smalltown, FL 33876 USA",
            insurance=(
                "XYZ Insurance Policy 987654321 "
                "Effective Date: 2022-07-01 Expiration Date: 2023-07-01"
            ),
            vehicle="5XYPGDA50MG123456 White SX trim with 34,500 miles",
            trade="2FMPK3G97GB123456 Ford Edge SEL Magnetic Metallic 103,487 miles",
            sale_price=17500,
            rebate=0,
            dealer_fees=1100,
            trade_value=5000,
            trade_payoff=6327.34,
            tax_rate=0.06,
            is_finance=False,
            expectation="agreed upon OTD amount: $20,975.84",
        ),
    ]
