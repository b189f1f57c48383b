"""SQLAlchemy ORM models for accounts, ledger entries and invoices"""

import uuid
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from cardledger.domain.models import AccountRef, BankRef, CardRef

Base = declarative_base()


class BankAccount(Base):
    """Bank account with a running balance"""

    __tablename__ = "bank_account"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    initial_balance_cents = Column(BigInteger, nullable=False)
    current_balance_cents = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("Transaction", back_populates="bank_account", cascade="all, delete")


class CreditCard(Base):
    """Credit card with a billing cycle and unused-credit balance"""

    __tablename__ = "credit_card"
    __table_args__ = (
        CheckConstraint("bill_generation_day BETWEEN 1 AND 31", name="ck_card_bill_generation_day"),
        CheckConstraint("payment_day BETWEEN 1 AND 31", name="ck_card_payment_day"),
        CheckConstraint("card_limit_cents > 0", name="ck_card_limit_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    bill_generation_day = Column(Integer, nullable=False)
    payment_day = Column(Integer, nullable=False)
    card_limit_cents = Column(BigInteger, nullable=False)
    available_balance_cents = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("Transaction", back_populates="credit_card", cascade="all, delete")
    invoices = relationship("Invoice", back_populates="credit_card", cascade="all, delete")


class Transaction(Base):
    """Ledger entry posted to exactly one bank account or credit card"""

    __tablename__ = "transaction"
    __table_args__ = (
        CheckConstraint(
            "(bank_account_id IS NULL) <> (credit_card_id IS NULL)",
            name="ck_transaction_single_account",
        ),
        CheckConstraint("installments >= 1", name="ck_transaction_installments"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)  # positive = expense, negative = income
    date = Column(Date, nullable=False, index=True)
    category = Column(Text, nullable=False)
    installments = Column(Integer, nullable=False, default=1)
    bank_account_id = Column(Uuid, ForeignKey("bank_account.id", ondelete="CASCADE"), nullable=True, index=True)
    credit_card_id = Column(Uuid, ForeignKey("credit_card.id", ondelete="CASCADE"), nullable=True, index=True)
    parent_transaction_id = Column(Uuid, ForeignKey("transaction.id", ondelete="CASCADE"), nullable=True)
    installment_number = Column(Integer, nullable=True)  # 0 = non-billable parent placeholder
    transfer_group_id = Column(Uuid, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    bank_account = relationship("BankAccount", back_populates="transactions")
    credit_card = relationship("CreditCard", back_populates="transactions")
    occurrences = relationship("Transaction", cascade="all, delete")

    @property
    def account(self) -> AccountRef:
        if self.credit_card_id is not None:
            return CardRef(self.credit_card_id)
        return BankRef(self.bank_account_id)

    @property
    def owner_id(self) -> str:
        holder = self.credit_card if self.credit_card_id is not None else self.bank_account
        return holder.owner_id

    @property
    def is_transfer(self) -> bool:
        return self.transfer_group_id is not None

    @property
    def is_installment_parent(self) -> bool:
        return self.installment_number == 0

    @property
    def is_installment_occurrence(self) -> bool:
        return self.parent_transaction_id is not None


class Invoice(Base):
    """Persisted invoice for one card billing period"""

    __tablename__ = "invoice"
    __table_args__ = (
        UniqueConstraint("credit_card_id", "bill_start_date", "bill_end_date", name="uq_invoice_card_period"),
        CheckConstraint("paid_amount_cents >= 0", name="ck_invoice_paid_non_negative"),
        CheckConstraint("credit_from_previous_month_cents >= 0", name="ck_invoice_credit_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    credit_card_id = Column(Uuid, ForeignKey("credit_card.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_start_date = Column(Date, nullable=False)
    bill_end_date = Column(Date, nullable=False)
    payment_due_date = Column(Date, nullable=False)
    total_amount_cents = Column(BigInteger, nullable=False, default=0)
    paid_amount_cents = Column(BigInteger, nullable=False, default=0)
    credit_from_previous_month_cents = Column(BigInteger, nullable=False, default=0)
    restored_amount_cents = Column(BigInteger, nullable=False, default=0)  # card capacity given back by payments
    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_from_bank_account_id = Column(Uuid, ForeignKey("bank_account.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    credit_card = relationship("CreditCard", back_populates="invoices")
    paid_from_bank_account = relationship("BankAccount")

    @property
    def amount_owed_cents(self) -> int:
        return self.total_amount_cents - self.credit_from_previous_month_cents
