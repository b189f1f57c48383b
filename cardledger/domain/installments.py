"""Installment plan generation for card purchases split over several cycles"""

from datetime import date
from typing import List
from cardledger.domain.models import Installment
from cardledger.utils.date_utils import generate_month_sequence


def generate_installment_plan(
    amount_cents: int,
    num_installments: int,
    start_date: date,
) -> List[Installment]:
    """
    Split a purchase into equal monthly installments.

    Requirements:
    - One occurrence per month, the first on the purchase date
    - Equal amounts, numbered from 1
    - Last installment absorbs rounding remainder (≤ num_installments-1 cents drift)

    Args:
        amount_cents: Total purchase amount
        num_installments: Number of occurrences (>= 1)
        start_date: Purchase date, used for the first occurrence

    Returns:
        List of Installment objects with dates and amounts

    Example:
        $400.03 in 4 → [$100.00, $100.00, $100.00, $100.03]
        40003 cents / 4 = 10000 base, remainder 3
        Last installment: 10000 + 3 = 10003
    """
    if amount_cents <= 0 or num_installments < 1:
        return []

    # Calculate base amount and remainder
    base_amount = amount_cents // num_installments
    remainder = amount_cents % num_installments

    installments = []
    for i, due_date in enumerate(generate_month_sequence(start_date, num_installments)):
        # Last installment absorbs remainder to ensure exact total
        amount = base_amount + (remainder if i == num_installments - 1 else 0)

        installments.append(Installment(number=i + 1, date=due_date, amount_cents=amount))

    return installments
