from datetime import datetime
from decimal import Decimal

from packages.billing.models.domain.enums import BillingCycle
from packages.billing.services.pricing import (
    add_months,
    describe_purchase,
    full_amount,
    period_end_for,
    prorated_amount,
)


class TestPeriods:
    def test_add_one_month(self):
        assert add_months(datetime(2024, 3, 15, 9, 30), 1) == datetime(2024, 4, 15, 9, 30)

    def test_add_month_clamps_to_month_end(self):
        """Test Jan 31 + 1 month lands on the last day of February."""
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)

    def test_add_months_rolls_year(self):
        assert add_months(datetime(2024, 11, 30), 3) == datetime(2025, 2, 28)

    def test_period_end_for_cycles(self):
        start = datetime(2024, 5, 1)
        assert period_end_for(start, BillingCycle.MONTHLY) == datetime(2024, 6, 1)
        assert period_end_for(start, BillingCycle.YEARLY) == datetime(2025, 5, 1)


class TestAmounts:
    def test_full_amount_monthly(self):
        assert full_amount(Decimal("12000"), 10, BillingCycle.MONTHLY) == Decimal(
            "120000.00"
        )

    def test_full_amount_yearly_charges_ten_months(self):
        assert full_amount(Decimal("12000"), 10, BillingCycle.YEARLY) == Decimal(
            "1200000.00"
        )

    def test_prorated_amount_half_period(self):
        """Test 15 of 30 days left bills half the monthly price per added seat."""
        now = datetime(2024, 5, 1)
        period_end = datetime(2024, 5, 16)

        amount = prorated_amount(
            Decimal("12000"), 4, period_end, now, BillingCycle.MONTHLY
        )

        assert amount == Decimal("24000.00")

    def test_prorated_amount_after_period_end_is_zero(self):
        now = datetime(2024, 5, 20)
        amount = prorated_amount(
            Decimal("12000"), 4, datetime(2024, 5, 16), now, BillingCycle.MONTHLY
        )
        assert amount == Decimal("0.00")

    def test_describe_purchase(self):
        assert (
            describe_purchase("Premium", 12, BillingCycle.YEARLY)
            == "HRIS Premium Plan - 12 seats (Yearly)"
        )
