"""Invoice engine - billing-cycle totals, payments, reversals and carry-forward credit"""

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from cardledger.config import settings
from cardledger.domain.billing import (
    compute_period,
    is_settled,
    next_period,
    overpayment,
    period_for_month,
    period_from_dates,
    transaction_window,
)
from cardledger.domain.exceptions import (
    AlreadyPaidError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from cardledger.domain.models import BankRef, BillingPeriod, CardRef, InvoiceSummary
from cardledger.infrastructure.database.models import BankAccount, CreditCard, Invoice
from cardledger.infrastructure.database.repositories import (
    AccountRepository,
    InvoiceRepository,
    TransactionRepository,
)
from cardledger.infrastructure.observability.logging import log_ledger_event
from cardledger.infrastructure.observability.metrics import record_invoice_payment
from cardledger.services.operations import ledger_operation, require_owned
from cardledger.utils.clock import Clock, SystemClock


class InvoiceEngine:
    """
    Computes and settles credit card invoices.

    An invoice covers [bill_start, bill_end) but bills the transactions of
    the cycle before it. Payments move money from a bank account to the
    card, restoring available credit up to the card limit. Paying more than
    is owed carries the excess to the next cycle's invoice as
    credit_from_previous_month.
    """

    def __init__(self, db: Session, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)
        self.invoices = InvoiceRepository(db)

    # Reads

    def resolve_period(
        self,
        card: CreditCard,
        target_month: Optional[int] = None,
        target_year: Optional[int] = None,
    ) -> BillingPeriod:
        return compute_period(
            self.clock.today(),
            card.bill_generation_day,
            card.payment_day,
            target_month,
            target_year,
        )

    def get_invoice(
        self,
        user_id: str,
        card_id: uuid.UUID,
        target_month: Optional[int] = None,
        target_year: Optional[int] = None,
    ) -> InvoiceSummary:
        """
        Invoice for the card's current period, or for a given month's cycle.

        Returns the persisted invoice when one exists alongside the total
        computed from the billed transactions.
        """
        card = require_owned(self.accounts.get_credit_card(card_id), user_id, "Credit card")
        return self._summarize(card, self.resolve_period(card, target_month, target_year))

    def list_invoices(self, user_id: str, card_id: uuid.UUID) -> List[Invoice]:
        """Persisted invoices of a card, latest cycle first"""
        card = require_owned(self.accounts.get_credit_card(card_id), user_id, "Credit card")
        return self.invoices.list_for_card(card.id)

    def _summarize(self, card: CreditCard, period: BillingPeriod) -> InvoiceSummary:
        window = transaction_window(period)
        billed = self.transactions.billable_for_card(card.id, window)
        return InvoiceSummary(
            card_id=card.id,
            period=period,
            window=window,
            transactions=billed,
            computed_total_cents=sum(entry.amount_cents for entry in billed),
            invoice=self.invoices.find_for_period(card.id, period.bill_start, period.bill_end),
        )

    def _window_total(self, card_id: uuid.UUID, period: BillingPeriod) -> int:
        billed = self.transactions.billable_for_card(card_id, transaction_window(period))
        return sum(entry.amount_cents for entry in billed)

    # Payments

    def pay_invoice(
        self,
        user_id: str,
        card_id: uuid.UUID,
        bank_account_id: uuid.UUID,
        period: BillingPeriod,
        amount_cents: int,
    ) -> Invoice:
        """
        Pay (part of) an invoice from a bank account.

        Raises:
            InvalidInputError: Non-positive amount, period not on the card's
                cycle, or overpayment while overpayments are disabled
            AlreadyPaidError: Nothing is left to pay
            InsufficientFundsError: Bank balance below the amount
        """
        with ledger_operation(self.db, "pay_invoice", user_id):
            if amount_cents <= 0:
                raise InvalidInputError("Payment amount must be greater than 0")

            card = require_owned(self.accounts.get_credit_card(card_id, for_update=True), user_id, "Credit card")
            bank = require_owned(
                self.accounts.get_bank_account(bank_account_id, for_update=True), user_id, "Bank account"
            )
            expected = period_for_month(period.year, period.month, card.bill_generation_day, card.payment_day)
            if expected != period:
                raise InvalidInputError("Billing period does not match the card's cycle")

            invoice, carried = self._apply_payment(card, bank, period, amount_cents)

        log_ledger_event(
            "pay_invoice",
            user_id,
            invoice_id=str(invoice.id),
            card_id=str(card_id),
            bank_account_id=str(bank_account_id),
            amount_cents=amount_cents,
            paid_amount_cents=invoice.paid_amount_cents,
            carried_forward_cents=carried,
        )
        return invoice

    def _apply_payment(
        self,
        card: CreditCard,
        bank: BankAccount,
        period: BillingPeriod,
        amount_cents: int,
    ) -> tuple[Invoice, int]:
        """Move the money, upsert the invoice and carry any excess forward"""
        total = self._window_total(card.id, period)
        invoice = self.invoices.find_for_period(card.id, period.bill_start, period.bill_end, for_update=True)

        if invoice is not None:
            # Purchases dated into the window after a payment reopen the invoice
            invoice.total_amount_cents = total
            self._derive_paid_state(invoice)
            if invoice.is_paid:
                raise AlreadyPaidError("Invoice is already paid")

        credit = invoice.credit_from_previous_month_cents if invoice else 0
        paid_so_far = invoice.paid_amount_cents if invoice else 0
        remaining = total - credit - paid_so_far
        if remaining <= 0:
            raise AlreadyPaidError("Nothing is left to pay on this invoice")
        if amount_cents > remaining and not settings.allow_overpayment:
            raise InvalidInputError(f"Payment exceeds the remaining balance of {remaining}")

        self.accounts.apply_ledger_delta(BankRef(bank.id), -amount_cents)

        # Restoring capacity never lifts the card above its limit
        restored = max(0, min(amount_cents, card.card_limit_cents - card.available_balance_cents))
        if restored:
            self.accounts.apply_ledger_delta(CardRef(card.id), restored)

        invoice = self.invoices.get_or_create(card.id, period, total)
        invoice.total_amount_cents = total
        invoice.paid_amount_cents += amount_cents
        invoice.restored_amount_cents += restored
        invoice.paid_from_bank_account_id = bank.id
        self._derive_paid_state(invoice)

        carried = overpayment(invoice.paid_amount_cents, total, invoice.credit_from_previous_month_cents)
        if carried:
            self._carry_forward(card, period, carried)

        self.db.flush()
        record_invoice_payment(invoice.is_paid, carried)
        return invoice, carried

    def _derive_paid_state(self, invoice: Invoice) -> None:
        was_paid = invoice.is_paid
        invoice.is_paid = is_settled(
            invoice.paid_amount_cents,
            invoice.total_amount_cents,
            invoice.credit_from_previous_month_cents,
        )
        if invoice.is_paid and not was_paid:
            invoice.paid_at = self.clock.now()
        elif not invoice.is_paid:
            invoice.paid_at = None

    def _carry_forward(self, card: CreditCard, period: BillingPeriod, credit_cents: int) -> None:
        """Record an overpayment as credit on the next cycle's invoice, creating it if needed"""
        following = next_period(period, card.bill_generation_day, card.payment_day)
        next_invoice = self.invoices.get_or_create(card.id, following, self._window_total(card.id, following))
        next_invoice.credit_from_previous_month_cents = credit_cents
        self._derive_paid_state(next_invoice)

    def _withdraw_carry_forward(self, invoice: Invoice, credit_cents: int) -> None:
        next_invoice = self.invoices.find_starting_on(invoice.credit_card_id, invoice.bill_end_date, for_update=True)
        if next_invoice is None:
            return
        next_invoice.credit_from_previous_month_cents = max(
            0, next_invoice.credit_from_previous_month_cents - credit_cents
        )
        self._derive_paid_state(next_invoice)

    # Reversals

    def _require_invoice(
        self,
        user_id: str,
        invoice_id: uuid.UUID,
        bank_account_id: Optional[uuid.UUID] = None,
    ) -> Invoice:
        """
        Load an owned invoice for mutation, taking row locks in the same order
        as pay_invoice: card, then bank account(s), then the invoice.
        """
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        if invoice.credit_card.owner_id != user_id:
            raise UnauthorizedError("Unauthorized")

        self.accounts.get_credit_card(invoice.credit_card_id, for_update=True)
        bank_ids = {invoice.paid_from_bank_account_id, bank_account_id} - {None}
        for bank_id in sorted(bank_ids, key=str):
            self.accounts.get_bank_account(bank_id, for_update=True)
        return self.invoices.get(invoice_id, for_update=True)

    def _reverse_payment(self, invoice: Invoice) -> int:
        """
        Undo every payment recorded on an invoice and return the refunded amount.

        The whole paid amount goes back to the one recorded paying account,
        the card gives back the capacity the payments restored, and the
        credit they carried to the next cycle is withdrawn.
        """
        refunded = invoice.paid_amount_cents
        carried = overpayment(refunded, invoice.total_amount_cents, invoice.credit_from_previous_month_cents)

        if invoice.paid_from_bank_account_id is not None:
            self.accounts.apply_ledger_delta(
                BankRef(invoice.paid_from_bank_account_id), refunded, enforce_non_negative=False
            )
        if invoice.restored_amount_cents:
            self.accounts.apply_ledger_delta(
                CardRef(invoice.credit_card_id), -invoice.restored_amount_cents, enforce_non_negative=False
            )
        if carried:
            self._withdraw_carry_forward(invoice, carried)

        invoice.paid_amount_cents = 0
        invoice.restored_amount_cents = 0
        invoice.paid_from_bank_account_id = None
        self._derive_paid_state(invoice)
        self.db.flush()
        return refunded

    def unpay_invoice(self, user_id: str, invoice_id: uuid.UUID) -> Invoice:
        """
        Fully reverse an invoice's payments.

        Raises:
            InvalidStateError: No payment recorded, or no paying account
        """
        with ledger_operation(self.db, "unpay_invoice", user_id):
            invoice = self._require_invoice(user_id, invoice_id)
            if invoice.paid_amount_cents <= 0:
                raise InvalidStateError("Invoice is not paid")
            if invoice.paid_from_bank_account_id is None:
                raise InvalidStateError("No payment information found")

            bank_account_id = invoice.paid_from_bank_account_id
            refunded = self._reverse_payment(invoice)

        log_ledger_event(
            "unpay_invoice",
            user_id,
            invoice_id=str(invoice_id),
            bank_account_id=str(bank_account_id),
            refunded_cents=refunded,
        )
        return invoice

    def delete_invoice(self, user_id: str, invoice_id: uuid.UUID) -> None:
        """Delete an invoice, reversing its payments first if money moved"""
        with ledger_operation(self.db, "delete_invoice", user_id):
            invoice = self._require_invoice(user_id, invoice_id)
            refunded = self._reverse_payment(invoice) if invoice.paid_amount_cents > 0 else 0
            self.invoices.delete(invoice)

        log_ledger_event("delete_invoice", user_id, invoice_id=str(invoice_id), refunded_cents=refunded)

    def edit_invoice(self, user_id: str, invoice_id: uuid.UUID, new_bank_account_id: Optional[uuid.UUID]) -> Invoice:
        """
        Change how an invoice is paid.

        - None on a paid invoice: unpay it (None on an unpaid one does nothing)
        - another bank account on a paid invoice: move the payment there
        - a bank account on an invoice with something left to pay (never
          paid, or reopened by a later purchase): pay what remains in full
        """
        with ledger_operation(self.db, "edit_invoice", user_id):
            invoice = self._require_invoice(user_id, invoice_id, new_bank_account_id)
            has_payment = invoice.paid_amount_cents > 0 and invoice.paid_from_bank_account_id is not None

            if new_bank_account_id is None:
                action = "unpaid" if has_payment else "unchanged"
                if has_payment:
                    self._reverse_payment(invoice)
            else:
                bank = require_owned(self.accounts.get_bank_account(new_bank_account_id), user_id, "Bank account")
                action = "unchanged"
                if has_payment and bank.id != invoice.paid_from_bank_account_id:
                    action = "rerouted"
                    # Charge the new account first so a shortfall leaves the old one untouched
                    self.accounts.apply_ledger_delta(BankRef(bank.id), -invoice.paid_amount_cents)
                    self.accounts.apply_ledger_delta(
                        BankRef(invoice.paid_from_bank_account_id), invoice.paid_amount_cents, enforce_non_negative=False
                    )
                    invoice.paid_from_bank_account_id = bank.id
                    self.db.flush()

                card = self.accounts.get_credit_card(invoice.credit_card_id)
                period = period_from_dates(
                    invoice.bill_start_date,
                    invoice.bill_end_date,
                    invoice.payment_due_date,
                    card.bill_generation_day,
                    card.payment_day,
                )
                remaining = (
                    self._window_total(card.id, period)
                    - invoice.credit_from_previous_month_cents
                    - invoice.paid_amount_cents
                )
                if remaining > 0:
                    invoice, _ = self._apply_payment(card, bank, period, remaining)
                    action = "paid" if action == "unchanged" else action
                elif not has_payment:
                    raise AlreadyPaidError("Invoice is already paid")

        log_ledger_event(
            "edit_invoice",
            user_id,
            invoice_id=str(invoice_id),
            action=action,
            bank_account_id=str(new_bank_account_id) if new_bank_account_id else None,
        )
        return invoice
