"""Ledger engine - transaction and transfer postings with their balance effects"""

import uuid
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from cardledger.domain.exceptions import InvalidInputError, InvalidStateError, NotFoundError, UnauthorizedError
from cardledger.domain.installments import generate_installment_plan
from cardledger.domain.models import (
    AccountRef,
    BankRef,
    CardRef,
    MonthStatement,
    TransactionInput,
    TransactionUpdate,
)
from cardledger.infrastructure.database.models import Transaction
from cardledger.infrastructure.database.repositories import (
    AccountRepository,
    InvoiceRepository,
    TransactionRepository,
)
from cardledger.infrastructure.observability.logging import log_ledger_event
from cardledger.services.operations import ledger_operation, require_owned, require_text
from cardledger.utils.clock import Clock, SystemClock
from cardledger.utils.date_utils import month_bounds

TRANSFER_CATEGORY = "Transfer"


def _validate_fields(name: str, amount_cents: int, category: str, installments: int) -> Tuple[str, str]:
    name = require_text(name, "Name")
    category = require_text(category, "Category")
    if amount_cents == 0:
        raise InvalidInputError("Amount cannot be zero")
    if installments < 1:
        raise InvalidInputError("Installments must be at least 1")
    return name, category


class LedgerEngine:
    """
    Posts ledger entries and keeps account balances in step with them.

    Every balance change goes through AccountRepository.apply_ledger_delta
    inside the same database transaction as the row it belongs to:

    - bank accounts: balance -= amount (income is a negative amount)
    - credit cards: available -= amount (expenses only)
    """

    def __init__(self, db: Session, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)
        self.invoices = InvoiceRepository(db)

    def _require_account(self, user_id: str, account: AccountRef, for_update: bool = False):
        if isinstance(account, CardRef):
            return require_owned(self.accounts.get_credit_card(account.id, for_update), user_id, "Credit card")
        if isinstance(account, BankRef):
            return require_owned(self.accounts.get_bank_account(account.id, for_update), user_id, "Bank account")
        raise InvalidInputError("Either credit card or bank account must be selected")

    def _require_transaction(self, user_id: str, transaction_id: uuid.UUID) -> Transaction:
        db_transaction = self.transactions.get(transaction_id)
        if db_transaction is None:
            raise NotFoundError("Transaction not found")
        if db_transaction.owner_id != user_id:
            raise UnauthorizedError("Unauthorized")
        return db_transaction

    def create_transaction(self, user_id: str, data: TransactionInput) -> Transaction:
        """
        Post a transaction and apply its balance effect.

        Raises:
            InvalidInputError: Zero amount, missing fields, income on a card
            InsufficientCreditError: Card expense beyond the available balance
            InsufficientFundsError: Bank expense beyond the current balance
        """
        with ledger_operation(self.db, "create_transaction", user_id):
            name, category = _validate_fields(data.name, data.amount_cents, data.category, data.installments)
            self._require_account(user_id, data.account, for_update=True)

            if isinstance(data.account, CardRef) and data.amount_cents < 0:
                raise InvalidInputError("Credit cards cannot receive income")

            # Income (negative) is never blocked; expenses must stay covered
            balance = self.accounts.apply_ledger_delta(data.account, -data.amount_cents)

            if isinstance(data.account, CardRef) and data.installments > 1:
                db_transaction = self._post_installment_purchase(data, name, category)
            else:
                db_transaction = self.transactions.add(
                    account=data.account,
                    name=name,
                    amount_cents=data.amount_cents,
                    txn_date=data.date,
                    category=category,
                    installments=data.installments,
                )

        log_ledger_event(
            "create_transaction",
            user_id,
            transaction_id=str(db_transaction.id),
            account_id=str(data.account.id),
            amount_cents=data.amount_cents,
            balance_cents=balance,
        )
        return db_transaction

    def _post_installment_purchase(self, data: TransactionInput, name: str, category: str) -> Transaction:
        """Placeholder row carrying the balance effect plus one billable row per month"""
        parent = self.transactions.add(
            account=data.account,
            name=name,
            amount_cents=data.amount_cents,
            txn_date=data.date,
            category=category,
            installments=data.installments,
            installment_number=0,
        )
        for installment in generate_installment_plan(data.amount_cents, data.installments, data.date):
            self.transactions.add(
                account=data.account,
                name=f"{name} ({installment.number}/{data.installments})",
                amount_cents=installment.amount_cents,
                txn_date=installment.date,
                category=category,
                installments=data.installments,
                parent_transaction_id=parent.id,
                installment_number=installment.number,
            )
        return parent

    def update_transaction(self, user_id: str, transaction_id: uuid.UUID, data: TransactionUpdate) -> Transaction:
        """
        Edit a transaction, moving its account balance by the amount difference.

        The account stays the same. Sufficiency is checked against the delta,
        so lowering an expense always succeeds.
        """
        with ledger_operation(self.db, "update_transaction", user_id):
            name, category = _validate_fields(data.name, data.amount_cents, data.category, data.installments)
            db_transaction = self._require_transaction(user_id, transaction_id)

            if db_transaction.is_transfer:
                raise InvalidStateError("Transfers cannot be edited; delete and recreate the transfer")
            if db_transaction.is_installment_parent or db_transaction.is_installment_occurrence:
                raise InvalidStateError("Installment purchases cannot be edited; delete and recreate the purchase")

            account = db_transaction.account
            if isinstance(account, CardRef):
                if data.amount_cents < 0:
                    raise InvalidInputError("Credit cards cannot receive income")
                if data.installments != db_transaction.installments:
                    raise InvalidStateError("Installment count of a card purchase cannot be changed")

            delta = data.amount_cents - db_transaction.amount_cents
            balance = self.accounts.apply_ledger_delta(account, -delta)

            db_transaction.name = name
            db_transaction.amount_cents = data.amount_cents
            db_transaction.date = data.date
            db_transaction.category = category
            db_transaction.installments = data.installments
            self.db.flush()

        log_ledger_event(
            "update_transaction",
            user_id,
            transaction_id=str(db_transaction.id),
            account_id=str(account.id),
            delta_cents=delta,
            balance_cents=balance,
        )
        return db_transaction

    def delete_transaction(self, user_id: str, transaction_id: uuid.UUID) -> None:
        """
        Remove a transaction and apply the exact inverse of its balance effect.

        Deleting either leg of a transfer removes both legs. Deleting an
        installment purchase removes its occurrences.
        """
        with ledger_operation(self.db, "delete_transaction", user_id):
            db_transaction = self._require_transaction(user_id, transaction_id)

            if db_transaction.is_installment_occurrence:
                raise InvalidStateError("Delete the installment purchase instead of a single installment")

            if db_transaction.is_transfer:
                removed = self.transactions.transfer_legs(db_transaction.transfer_group_id)
            else:
                removed = [db_transaction]

            reversed_entries = {}
            for entry in removed:
                self.accounts.apply_ledger_delta(entry.account, entry.amount_cents, enforce_non_negative=False)
                reversed_entries[str(entry.id)] = entry.amount_cents
                self.transactions.delete(entry)

        log_ledger_event("delete_transaction", user_id, reversed_cents=reversed_entries)

    def create_transfer(
        self,
        user_id: str,
        from_account_id: uuid.UUID,
        to_account_id: uuid.UUID,
        amount_cents: int,
        name: str,
        transfer_date: date,
    ) -> Tuple[Transaction, Transaction]:
        """
        Move money between two of the caller's bank accounts.

        Creates a debit on the source and a negated credit on the destination,
        linked by a shared transfer group id. Cards are not transfer endpoints.
        """
        with ledger_operation(self.db, "create_transfer", user_id):
            if amount_cents <= 0:
                raise InvalidInputError("Transfer amount must be greater than 0")
            if from_account_id == to_account_id:
                raise InvalidInputError("Source and destination accounts must be different")

            source = self._require_account(user_id, BankRef(from_account_id), for_update=True)
            destination = self._require_account(user_id, BankRef(to_account_id), for_update=True)
            label = name.strip() if name and name.strip() else "Transfer"
            group_id = uuid.uuid4()

            source_balance = self.accounts.apply_ledger_delta(BankRef(source.id), -amount_cents)
            destination_balance = self.accounts.apply_ledger_delta(BankRef(destination.id), amount_cents)

            debit = self.transactions.add(
                account=BankRef(source.id),
                name=f"Transfer to {destination.name}: {label}",
                amount_cents=amount_cents,
                txn_date=transfer_date,
                category=TRANSFER_CATEGORY,
                transfer_group_id=group_id,
            )
            credit = self.transactions.add(
                account=BankRef(destination.id),
                name=f"Transfer from {source.name}: {label}",
                amount_cents=-amount_cents,
                txn_date=transfer_date,
                category=TRANSFER_CATEGORY,
                transfer_group_id=group_id,
            )

        log_ledger_event(
            "create_transfer",
            user_id,
            transfer_group_id=str(group_id),
            from_account_id=str(source.id),
            to_account_id=str(destination.id),
            amount_cents=amount_cents,
            from_balance_cents=source_balance,
            to_balance_cents=destination_balance,
        )
        return debit, credit

    def list_transactions(self, user_id: str, account: Optional[AccountRef] = None) -> List[Transaction]:
        """Caller's transactions, newest first, optionally for one account"""
        if account is not None:
            self._require_account(user_id, account)
        return self.transactions.list_for_owner(user_id, account)

    def get_month_statement(
        self,
        user_id: str,
        bank_account_id: uuid.UUID,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> MonthStatement:
        """A bank account's transactions for one calendar month (default: current)"""
        account = self._require_account(user_id, BankRef(bank_account_id))
        today = self.clock.today()
        month = month if month is not None else today.month
        year = year if year is not None else today.year
        if not 1 <= month <= 12:
            raise InvalidInputError("Month must be between 1 and 12")

        start, end = month_bounds(year, month)
        entries = self.transactions.for_bank_between(account.id, start, end)
        return MonthStatement(
            account=account,
            month_start=start,
            month_end=end,
            transactions=entries,
            total_cents=sum(entry.amount_cents for entry in entries),
        )

    def replay_balance(self, user_id: str, account: AccountRef) -> int:
        """
        Recompute an account's balance from its history.

        Bank: initial balance minus every balance-bearing amount.
        Card: limit minus every balance-bearing amount plus the capacity
        invoice payments restored. Equal to the maintained balance unless
        something drifted.
        """
        holder = self._require_account(user_id, account)
        spent = self.transactions.balance_bearing_total(account)
        if isinstance(account, CardRef):
            return holder.card_limit_cents - spent + self.invoices.restored_total(holder.id)
        return holder.initial_balance_cents - spent
