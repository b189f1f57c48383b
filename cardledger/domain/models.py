"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional, Union


@dataclass(frozen=True)
class BankRef:
    """Ledger entry posted to a bank account"""

    id: uuid.UUID


@dataclass(frozen=True)
class CardRef:
    """Ledger entry posted to a credit card"""

    id: uuid.UUID


AccountRef = Union[BankRef, CardRef]


@dataclass(frozen=True)
class BillingPeriod:
    """A card billing cycle [bill_start, bill_end) anchored on (year, month)"""

    year: int
    month: int
    bill_start: date
    bill_end: date
    payment_due: date


@dataclass(frozen=True)
class TransactionWindow:
    """Dates whose transactions are billed on an invoice: [start, end)"""

    start: date
    end: date

    def __contains__(self, day: date) -> bool:
        return self.start <= day < self.end


@dataclass
class Installment:
    """Single occurrence in an installment purchase"""

    number: int
    date: date
    amount_cents: int


@dataclass
class TransactionInput:
    """Fields needed to post a new transaction"""

    name: str
    amount_cents: int
    date: date
    category: str
    account: AccountRef
    installments: int = 1


@dataclass
class TransactionUpdate:
    """Editable transaction fields; the account cannot change"""

    name: str
    amount_cents: int
    date: date
    category: str
    installments: int = 1


@dataclass
class InvoiceSummary:
    """
    Invoice view for one billing period.

    `invoice` is the persisted row when one exists; totals are always
    computed from the live transaction window.
    """

    card_id: uuid.UUID
    period: BillingPeriod
    window: TransactionWindow
    transactions: List[Any]
    computed_total_cents: int
    invoice: Optional[Any] = None

    @property
    def total_amount_cents(self) -> int:
        return self.computed_total_cents

    @property
    def credit_from_previous_month_cents(self) -> int:
        return self.invoice.credit_from_previous_month_cents if self.invoice else 0

    @property
    def paid_amount_cents(self) -> int:
        return self.invoice.paid_amount_cents if self.invoice else 0

    @property
    def amount_owed_cents(self) -> int:
        return self.total_amount_cents - self.credit_from_previous_month_cents

    @property
    def remaining_cents(self) -> int:
        return max(0, self.amount_owed_cents - self.paid_amount_cents)

    @property
    def is_paid(self) -> bool:
        # Nothing persisted yet means nothing was paid or carried in
        if self.invoice is None:
            return False
        return self.paid_amount_cents >= self.amount_owed_cents


@dataclass
class MonthStatement:
    """Bank account activity for one calendar month"""

    account: Any
    month_start: date
    month_end: date
    transactions: List[Any] = field(default_factory=list)
    total_cents: int = 0
