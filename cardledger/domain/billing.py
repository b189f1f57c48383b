"""Billing period calculator - pure functions over card cycle configuration"""

from datetime import date
from typing import Optional

from cardledger.domain.exceptions import InvalidInputError
from cardledger.domain.models import BillingPeriod, TransactionWindow
from cardledger.utils.date_utils import add_months, calendar_date


def validate_cycle_days(bill_generation_day: int, payment_day: int) -> None:
    """Both days are day-of-month values in [1, 31]"""
    if not 1 <= bill_generation_day <= 31:
        raise InvalidInputError("Bill generation day must be between 1 and 31")
    if not 1 <= payment_day <= 31:
        raise InvalidInputError("Payment day must be between 1 and 31")


def period_for_month(year: int, month: int, bill_generation_day: int, payment_day: int) -> BillingPeriod:
    """Fixed cycle anchored on a month: [month.gen, month+1.gen), due month+1.payment"""
    return BillingPeriod(
        year=year,
        month=month,
        bill_start=calendar_date(year, month, bill_generation_day),
        bill_end=calendar_date(year, month + 1, bill_generation_day),
        payment_due=calendar_date(year, month + 1, payment_day),
    )


def compute_period(
    reference_date: date,
    bill_generation_day: int,
    payment_day: int,
    target_month: Optional[int] = None,
    target_year: Optional[int] = None,
) -> BillingPeriod:
    """
    Resolve the billing period for a card.

    Without a target the period is relative to `reference_date`:
    - day >= generation day: [thisMonth.gen, nextMonth.gen), due nextMonth.payment
    - otherwise:             [prevMonth.gen, thisMonth.gen), due thisMonth.payment

    With an explicit target month/year the target month's fixed cycle is
    returned whatever the reference day is, so browsing past or future
    months always shows the same cycle.

    Days that do not exist in a month roll into the next one
    (gen day 31 in February 2024 starts the cycle on 2024-03-02).
    """
    validate_cycle_days(bill_generation_day, payment_day)

    if (target_month is None) != (target_year is None):
        raise InvalidInputError("Target month and year must be given together")

    if target_month is not None:
        if not 1 <= target_month <= 12:
            raise InvalidInputError("Target month must be between 1 and 12")
        return period_for_month(target_year, target_month, bill_generation_day, payment_day)

    if reference_date.day >= bill_generation_day:
        return period_for_month(reference_date.year, reference_date.month, bill_generation_day, payment_day)

    previous = calendar_date(reference_date.year, reference_date.month - 1, 1)
    return period_for_month(previous.year, previous.month, bill_generation_day, payment_day)


def transaction_window(period: BillingPeriod) -> TransactionWindow:
    """
    Transactions billed on an invoice come from the previous cycle.

    The invoice for [bill_start, bill_end) aggregates transactions dated in
    [bill_start - 1 month, bill_start).
    """
    return TransactionWindow(start=add_months(period.bill_start, -1), end=period.bill_start)


def next_period(period: BillingPeriod, bill_generation_day: int, payment_day: int) -> BillingPeriod:
    """The cycle right after `period`"""
    anchor = calendar_date(period.year, period.month + 1, 1)
    return period_for_month(anchor.year, anchor.month, bill_generation_day, payment_day)


def period_from_dates(
    bill_start: date,
    bill_end: date,
    payment_due: date,
    bill_generation_day: int,
    payment_day: int,
) -> BillingPeriod:
    """
    Recover the period a stored invoice was created for.

    A rolled-over cycle start (gen day 31 in February lands in March) is
    anchored on the month before its start date. If the card's cycle days
    changed since, the stored dates are kept and anchored on the start month.
    """
    for offset in (0, -1):
        anchor = calendar_date(bill_start.year, bill_start.month + offset, 1)
        candidate = period_for_month(anchor.year, anchor.month, bill_generation_day, payment_day)
        if candidate.bill_start == bill_start and candidate.bill_end == bill_end:
            return candidate
    return BillingPeriod(
        year=bill_start.year,
        month=bill_start.month,
        bill_start=bill_start,
        bill_end=bill_end,
        payment_due=payment_due,
    )


def amount_owed(total_cents: int, credit_from_previous_month_cents: int) -> int:
    return total_cents - credit_from_previous_month_cents


def is_settled(paid_cents: int, total_cents: int, credit_from_previous_month_cents: int) -> bool:
    """An invoice is paid once payments cover the total less carried-in credit"""
    return paid_cents >= amount_owed(total_cents, credit_from_previous_month_cents)


def overpayment(paid_cents: int, total_cents: int, credit_from_previous_month_cents: int) -> int:
    """Portion of the payments exceeding what was owed, carried to the next cycle"""
    return max(0, paid_cents - amount_owed(total_cents, credit_from_previous_month_cents))
