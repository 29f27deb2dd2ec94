"""Billing period and amount arithmetic."""

import calendar
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from packages.billing.models.domain.enums import BillingCycle

# Yearly plans bill 10 months for 12 (two months free)
YEARLY_MONTHS_CHARGED = 10
CENT = Decimal("0.01")


def add_months(start: datetime, months: int) -> datetime:
    """Calendar-month addition, clamping to the last day of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def period_end_for(start: datetime, cycle: BillingCycle) -> datetime:
    if cycle == BillingCycle.YEARLY:
        return add_months(start, 12)
    return add_months(start, 1)


def cycle_days(cycle: BillingCycle) -> int:
    return 365 if cycle == BillingCycle.YEARLY else 30


def full_amount(price_per_seat: Decimal, seat_count: int, cycle: BillingCycle) -> Decimal:
    amount = Decimal(price_per_seat) * seat_count
    if cycle == BillingCycle.YEARLY:
        amount *= YEARLY_MONTHS_CHARGED
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def prorated_amount(
    price_per_seat: Decimal,
    added_seats: int,
    period_end: datetime,
    now: datetime,
    cycle: BillingCycle,
) -> Decimal:
    """Charge for ``added_seats`` over what is left of the current period."""
    remaining = max(timedelta(0), period_end - now)
    remaining_days = Decimal(remaining.total_seconds()) / Decimal(86400)
    amount = (
        Decimal(price_per_seat)
        * added_seats
        * remaining_days
        / Decimal(cycle_days(cycle))
    )
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def describe_purchase(plan_name: str, seat_count: int, cycle: BillingCycle) -> str:
    return f"HRIS {plan_name} Plan - {seat_count} seats ({cycle.value.capitalize()})"
