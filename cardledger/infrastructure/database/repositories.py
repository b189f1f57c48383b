"""Data access layer for accounts, ledger entries and invoices"""

import uuid
from datetime import date
from typing import List, Optional
from sqlalchemy import func, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session
from cardledger.infrastructure.database.models import BankAccount, CreditCard, Transaction, Invoice
from cardledger.domain.exceptions import InsufficientCreditError, InsufficientFundsError, NotFoundError
from cardledger.domain.models import AccountRef, BankRef, BillingPeriod, CardRef, TransactionWindow

_UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


class AccountRepository:
    """Repository for bank accounts and credit cards"""

    def __init__(self, db: Session):
        self.db = db

    def create_bank_account(self, owner_id: str, name: str, initial_balance_cents: int) -> BankAccount:
        """New bank account; current balance starts at the initial balance"""
        account = BankAccount(
            owner_id=owner_id,
            name=name,
            initial_balance_cents=initial_balance_cents,
            current_balance_cents=initial_balance_cents,
        )
        self.db.add(account)
        self.db.flush()
        return account

    def create_credit_card(
        self,
        owner_id: str,
        name: str,
        bill_generation_day: int,
        payment_day: int,
        card_limit_cents: int,
    ) -> CreditCard:
        """New credit card; available balance starts at the limit"""
        card = CreditCard(
            owner_id=owner_id,
            name=name,
            bill_generation_day=bill_generation_day,
            payment_day=payment_day,
            card_limit_cents=card_limit_cents,
            available_balance_cents=card_limit_cents,
        )
        self.db.add(card)
        self.db.flush()
        return card

    def get_bank_account(self, account_id: uuid.UUID, for_update: bool = False) -> Optional[BankAccount]:
        query = self.db.query(BankAccount).filter(BankAccount.id == account_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_credit_card(self, card_id: uuid.UUID, for_update: bool = False) -> Optional[CreditCard]:
        query = self.db.query(CreditCard).filter(CreditCard.id == card_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_bank_accounts(self, owner_id: str) -> List[BankAccount]:
        return (
            self.db.query(BankAccount)
            .filter(BankAccount.owner_id == owner_id)
            .order_by(BankAccount.created_at.desc())
            .all()
        )

    def list_credit_cards(self, owner_id: str) -> List[CreditCard]:
        return (
            self.db.query(CreditCard)
            .filter(CreditCard.owner_id == owner_id)
            .order_by(CreditCard.created_at.desc())
            .all()
        )

    def delete(self, account: BankAccount | CreditCard) -> None:
        self.db.delete(account)
        self.db.flush()

    def apply_ledger_delta(self, account: AccountRef, delta_cents: int, enforce_non_negative: bool = True) -> int:
        """
        Add `delta_cents` to an account's running balance and return the new value.

        This is the only write path for bank current balances and card
        available balances. The update is conditional: when the delta
        decreases the balance and `enforce_non_negative` is set, the row is
        only touched if the result stays >= 0, so two concurrent debits can
        never both pass a stale check.

        Raises:
            NotFoundError: Account does not exist
            InsufficientFundsError: Bank balance would go negative
            InsufficientCreditError: Card available balance would go negative
        """
        if isinstance(account, CardRef):
            model, column = CreditCard, CreditCard.available_balance_cents
        else:
            model, column = BankAccount, BankAccount.current_balance_cents

        query = self.db.query(model).filter(model.id == account.id)
        if enforce_non_negative and delta_cents < 0:
            query = query.filter(column + delta_cents >= 0)

        updated = query.update({column: column + delta_cents}, synchronize_session="fetch")
        current = self.db.query(column).filter(model.id == account.id).scalar()

        if updated == 0:
            if current is None:
                raise NotFoundError(f"{model.__name__} {account.id} not found")
            if isinstance(account, CardRef):
                raise InsufficientCreditError(
                    f"Insufficient credit limit. Available: {current}, Requested: {-delta_cents}"
                )
            raise InsufficientFundsError(f"Insufficient funds. Available: {current}, Requested: {-delta_cents}")

        return current


class TransactionRepository:
    """Repository for ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        account: AccountRef,
        name: str,
        amount_cents: int,
        txn_date: date,
        category: str,
        installments: int = 1,
        parent_transaction_id: Optional[uuid.UUID] = None,
        installment_number: Optional[int] = None,
        transfer_group_id: Optional[uuid.UUID] = None,
    ) -> Transaction:
        """Append a ledger entry tagged to exactly one account"""
        db_transaction = Transaction(
            name=name,
            amount_cents=amount_cents,
            date=txn_date,
            category=category,
            installments=installments,
            bank_account_id=account.id if isinstance(account, BankRef) else None,
            credit_card_id=account.id if isinstance(account, CardRef) else None,
            parent_transaction_id=parent_transaction_id,
            installment_number=installment_number,
            transfer_group_id=transfer_group_id,
        )
        self.db.add(db_transaction)
        self.db.flush()
        return db_transaction

    def get(self, transaction_id: uuid.UUID) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def delete(self, db_transaction: Transaction) -> None:
        self.db.delete(db_transaction)
        self.db.flush()

    def transfer_legs(self, transfer_group_id: uuid.UUID) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.transfer_group_id == transfer_group_id)
            .order_by(Transaction.amount_cents.desc())
            .all()
        )

    def list_for_owner(self, owner_id: str, account: Optional[AccountRef] = None) -> List[Transaction]:
        """Owner's ledger entries, newest first, optionally for one account"""
        query = (
            self.db.query(Transaction)
            .outerjoin(BankAccount, Transaction.bank_account_id == BankAccount.id)
            .outerjoin(CreditCard, Transaction.credit_card_id == CreditCard.id)
            .filter(or_(BankAccount.owner_id == owner_id, CreditCard.owner_id == owner_id))
        )
        if isinstance(account, CardRef):
            query = query.filter(Transaction.credit_card_id == account.id)
        elif isinstance(account, BankRef):
            query = query.filter(Transaction.bank_account_id == account.id)
        return query.order_by(Transaction.date.desc(), Transaction.created_at.desc()).all()

    def billable_for_card(self, card_id: uuid.UUID, window: TransactionWindow) -> List[Transaction]:
        """
        Card entries billed on an invoice whose transaction window is `window`.

        Installment placeholders (installment_number = 0) never bill; plain
        purchases and installment occurrences do.
        """
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.credit_card_id == card_id,
                Transaction.date >= window.start,
                Transaction.date < window.end,
                or_(Transaction.installment_number.is_(None), Transaction.installment_number > 0),
            )
            .order_by(Transaction.date.desc())
            .all()
        )

    def for_bank_between(self, bank_account_id: uuid.UUID, start: date, end: date) -> List[Transaction]:
        """Bank entries dated in [start, end)"""
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.bank_account_id == bank_account_id,
                Transaction.date >= start,
                Transaction.date < end,
            )
            .order_by(Transaction.date.desc())
            .all()
        )

    def balance_bearing_total(self, account: AccountRef) -> int:
        """Sum of amounts that moved the account's balance (occurrences excluded)"""
        column = Transaction.credit_card_id if isinstance(account, CardRef) else Transaction.bank_account_id
        total = (
            self.db.query(func.coalesce(func.sum(Transaction.amount_cents), 0))
            .filter(column == account.id, Transaction.parent_transaction_id.is_(None))
            .scalar()
        )
        return int(total)


class InvoiceRepository:
    """Repository for card invoices"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, invoice_id: uuid.UUID, for_update: bool = False) -> Optional[Invoice]:
        query = self.db.query(Invoice).filter(Invoice.id == invoice_id)
        if for_update:
            query = query.with_for_update().populate_existing()  # reload a row read before the lock
        return query.first()

    def find_for_period(
        self,
        card_id: uuid.UUID,
        bill_start: date,
        bill_end: date,
        for_update: bool = False,
    ) -> Optional[Invoice]:
        """Look an invoice up by its (card, bill_start, bill_end) key"""
        query = self.db.query(Invoice).filter(
            Invoice.credit_card_id == card_id,
            Invoice.bill_start_date == bill_start,
            Invoice.bill_end_date == bill_end,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_starting_on(self, card_id: uuid.UUID, bill_start: date, for_update: bool = False) -> Optional[Invoice]:
        """Invoice whose cycle opens on `bill_start` (the one after a cycle ending that day)"""
        query = self.db.query(Invoice).filter(
            Invoice.credit_card_id == card_id,
            Invoice.bill_start_date == bill_start,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_or_create(self, card_id: uuid.UUID, period: BillingPeriod, total_cents: int) -> Invoice:
        """
        Fetch the invoice for a period, inserting it first if absent.

        The insert relies on the (card, bill_start, bill_end) unique key:
        a concurrent insert of the same period is absorbed by
        ON CONFLICT DO NOTHING and both callers end up locking the same row.
        """
        insert = _UPSERT_INSERTS.get(self.db.get_bind().dialect.name)
        if insert is None:
            # No conflict clause on this backend; a lost race raises IntegrityError
            existing = self.find_for_period(card_id, period.bill_start, period.bill_end, for_update=True)
            if existing is not None:
                return existing
            invoice = Invoice(
                credit_card_id=card_id,
                bill_start_date=period.bill_start,
                bill_end_date=period.bill_end,
                payment_due_date=period.payment_due,
                total_amount_cents=total_cents,
            )
            self.db.add(invoice)
            self.db.flush()
            return invoice

        statement = (
            insert(Invoice)
            .values(
                id=uuid.uuid4(),
                credit_card_id=card_id,
                bill_start_date=period.bill_start,
                bill_end_date=period.bill_end,
                payment_due_date=period.payment_due,
                total_amount_cents=total_cents,
                paid_amount_cents=0,
                credit_from_previous_month_cents=0,
                restored_amount_cents=0,
                is_paid=False,
            )
            .on_conflict_do_nothing(index_elements=["credit_card_id", "bill_start_date", "bill_end_date"])
        )
        self.db.execute(statement)
        return self.find_for_period(card_id, period.bill_start, period.bill_end, for_update=True)

    def list_for_card(self, card_id: uuid.UUID) -> List[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(Invoice.credit_card_id == card_id)
            .order_by(Invoice.bill_start_date.desc())
            .all()
        )

    def restored_total(self, card_id: uuid.UUID) -> int:
        """Card capacity currently given back by invoice payments"""
        total = (
            self.db.query(func.coalesce(func.sum(Invoice.restored_amount_cents), 0))
            .filter(Invoice.credit_card_id == card_id)
            .scalar()
        )
        return int(total)

    def delete(self, invoice: Invoice) -> None:
        self.db.delete(invoice)
        self.db.flush()
