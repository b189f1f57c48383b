"""Integration tests for transaction and transfer postings"""

import uuid
import pytest
from datetime import date
from sqlalchemy.orm import Session

from cardledger.domain.exceptions import (
    InsufficientCreditError,
    InsufficientFundsError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from cardledger.domain.models import BankRef, CardRef, TransactionInput, TransactionUpdate
from cardledger.infrastructure.database.models import Transaction
from cardledger.services.accounts import AccountService
from cardledger.services.ledger import LedgerEngine

USER_ID = "user_alice"
OTHER_USER_ID = "user_bob"


def expense(account, amount_cents, day=date(2024, 3, 1), installments=1, name="Groceries"):
    return TransactionInput(
        name=name,
        amount_cents=amount_cents,
        date=day,
        category="Food",
        account=account,
        installments=installments,
    )


def test_bank_expense_then_delete_restores_balance(ledger: LedgerEngine, bank):
    """Test $1000 - $200 = $800, and deleting brings back $1000"""
    created = ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 20_000))
    assert bank.current_balance_cents == 80_000

    ledger.delete_transaction(USER_ID, created.id)
    assert bank.current_balance_cents == 100_000


def test_bank_income_increases_balance(ledger: LedgerEngine, accounts: AccountService):
    empty = accounts.create_bank_account(USER_ID, "Empty", 0)

    ledger.create_transaction(USER_ID, expense(BankRef(empty.id), -5_000, name="Salary"))

    assert empty.current_balance_cents == 5_000


def test_bank_expense_beyond_balance_rejected(ledger: LedgerEngine, bank, db: Session):
    with pytest.raises(InsufficientFundsError):
        ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 150_000))

    assert bank.current_balance_cents == 100_000
    assert db.query(Transaction).count() == 0


def test_card_expense_beyond_available_rejected(ledger: LedgerEngine, card):
    """Test limit 5000 with 3000 available refuses a 3500 purchase"""
    ledger.create_transaction(USER_ID, expense(CardRef(card.id), 200_000))
    assert card.available_balance_cents == 300_000

    with pytest.raises(InsufficientCreditError):
        ledger.create_transaction(USER_ID, expense(CardRef(card.id), 350_000))

    assert card.available_balance_cents == 300_000


def test_card_rejects_income(ledger: LedgerEngine, card):
    with pytest.raises(InvalidInputError):
        ledger.create_transaction(USER_ID, expense(CardRef(card.id), -1_000))


@pytest.mark.parametrize(
    "overrides",
    [{"amount_cents": 0}, {"name": "  "}, {"category": ""}, {"installments": 0}],
)
def test_invalid_transaction_fields(ledger: LedgerEngine, bank, overrides):
    data = expense(BankRef(bank.id), 1_000)
    for field, value in overrides.items():
        setattr(data, field, value)

    with pytest.raises(InvalidInputError):
        ledger.create_transaction(USER_ID, data)


def test_update_applies_delta_to_same_account(ledger: LedgerEngine, bank):
    created = ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 20_000))

    ledger.update_transaction(
        USER_ID, created.id, TransactionUpdate(name="Groceries", amount_cents=30_000, date=date(2024, 3, 2), category="Food")
    )
    assert bank.current_balance_cents == 70_000

    updated = ledger.update_transaction(
        USER_ID, created.id, TransactionUpdate(name="Market", amount_cents=5_000, date=date(2024, 3, 2), category="Food")
    )
    assert bank.current_balance_cents == 95_000
    assert updated.name == "Market"
    assert updated.date == date(2024, 3, 2)


def test_update_checks_only_the_delta(ledger: LedgerEngine, bank):
    """Test raising $900 to $1200 needs $300 more but only $100 is left"""
    created = ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 90_000))

    with pytest.raises(InsufficientFundsError):
        ledger.update_transaction(
            USER_ID, created.id, TransactionUpdate(name="Rent", amount_cents=120_000, date=date(2024, 3, 1), category="Home")
        )

    assert bank.current_balance_cents == 10_000
    assert ledger.transactions.get(created.id).amount_cents == 90_000

    ledger.update_transaction(
        USER_ID, created.id, TransactionUpdate(name="Rent", amount_cents=100_000, date=date(2024, 3, 1), category="Home")
    )
    assert bank.current_balance_cents == 0


def test_card_update_cannot_turn_into_income(ledger: LedgerEngine, card):
    created = ledger.create_transaction(USER_ID, expense(CardRef(card.id), 10_000))

    with pytest.raises(InvalidInputError):
        ledger.update_transaction(
            USER_ID, created.id, TransactionUpdate(name="Refund", amount_cents=-10_000, date=date(2024, 3, 1), category="Food")
        )


def test_card_update_beyond_available_rejected(ledger: LedgerEngine, card):
    created = ledger.create_transaction(USER_ID, expense(CardRef(card.id), 400_000))

    with pytest.raises(InsufficientCreditError):
        ledger.update_transaction(
            USER_ID, created.id, TransactionUpdate(name="TV", amount_cents=600_000, date=date(2024, 3, 1), category="Home")
        )

    assert card.available_balance_cents == 100_000


def test_transfer_moves_money_between_bank_accounts(ledger: LedgerEngine, accounts: AccountService):
    """Test $300 from A($1000) to B($200) leaves A=$700 and B=$500"""
    checking = accounts.create_bank_account(USER_ID, "Checking", 100_000)
    savings = accounts.create_bank_account(USER_ID, "Savings", 20_000)

    debit, credit = ledger.create_transfer(USER_ID, checking.id, savings.id, 30_000, "Rent fund", date(2024, 3, 1))

    assert checking.current_balance_cents == 70_000
    assert savings.current_balance_cents == 50_000
    assert debit.amount_cents == 30_000
    assert credit.amount_cents == -30_000
    assert debit.bank_account_id == checking.id
    assert credit.bank_account_id == savings.id
    assert debit.name == "Transfer to Savings: Rent fund"
    assert credit.name == "Transfer from Checking: Rent fund"
    assert debit.category == credit.category == "Transfer"
    assert debit.transfer_group_id == credit.transfer_group_id is not None


def test_transfer_rejections(ledger: LedgerEngine, accounts: AccountService, card):
    checking = accounts.create_bank_account(USER_ID, "Checking", 10_000)
    savings = accounts.create_bank_account(USER_ID, "Savings", 0)
    foreign = accounts.create_bank_account(OTHER_USER_ID, "Theirs", 0)

    with pytest.raises(InvalidInputError):
        ledger.create_transfer(USER_ID, checking.id, savings.id, 0, "x", date(2024, 3, 1))
    with pytest.raises(InvalidInputError):
        ledger.create_transfer(USER_ID, checking.id, checking.id, 1_000, "x", date(2024, 3, 1))
    with pytest.raises(NotFoundError):
        ledger.create_transfer(USER_ID, checking.id, card.id, 1_000, "x", date(2024, 3, 1))
    with pytest.raises(UnauthorizedError):
        ledger.create_transfer(USER_ID, checking.id, foreign.id, 1_000, "x", date(2024, 3, 1))
    with pytest.raises(InsufficientFundsError):
        ledger.create_transfer(USER_ID, checking.id, savings.id, 20_000, "x", date(2024, 3, 1))

    assert checking.current_balance_cents == 10_000
    assert savings.current_balance_cents == 0


def test_deleting_one_transfer_leg_reverses_both(ledger: LedgerEngine, accounts: AccountService, db: Session):
    checking = accounts.create_bank_account(USER_ID, "Checking", 100_000)
    savings = accounts.create_bank_account(USER_ID, "Savings", 20_000)
    _, credit = ledger.create_transfer(USER_ID, checking.id, savings.id, 30_000, "", date(2024, 3, 1))

    ledger.delete_transaction(USER_ID, credit.id)

    assert checking.current_balance_cents == 100_000
    assert savings.current_balance_cents == 20_000
    assert db.query(Transaction).count() == 0


def test_transfer_cannot_be_edited(ledger: LedgerEngine, accounts: AccountService):
    checking = accounts.create_bank_account(USER_ID, "Checking", 100_000)
    savings = accounts.create_bank_account(USER_ID, "Savings", 0)
    debit, _ = ledger.create_transfer(USER_ID, checking.id, savings.id, 30_000, "Move", date(2024, 3, 1))

    with pytest.raises(InvalidStateError):
        ledger.update_transaction(
            USER_ID, debit.id, TransactionUpdate(name="Move", amount_cents=10_000, date=date(2024, 3, 1), category="Transfer")
        )


def test_installment_purchase_posts_placeholder_and_occurrences(ledger: LedgerEngine, card, db: Session):
    parent = ledger.create_transaction(USER_ID, expense(CardRef(card.id), 30_000, day=date(2024, 2, 15), installments=3))

    assert card.available_balance_cents == 470_000
    assert parent.installment_number == 0
    occurrences = (
        db.query(Transaction)
        .filter(Transaction.parent_transaction_id == parent.id)
        .order_by(Transaction.installment_number)
        .all()
    )
    assert [o.installment_number for o in occurrences] == [1, 2, 3]
    assert [o.amount_cents for o in occurrences] == [10_000, 10_000, 10_000]
    assert [o.date for o in occurrences] == [date(2024, 2, 15), date(2024, 3, 15), date(2024, 4, 15)]


def test_installment_rows_protected_and_parent_delete_cascades(ledger: LedgerEngine, card, db: Session):
    parent = ledger.create_transaction(USER_ID, expense(CardRef(card.id), 30_000, installments=3))
    occurrence = db.query(Transaction).filter(Transaction.installment_number == 2).one()

    with pytest.raises(InvalidStateError):
        ledger.delete_transaction(USER_ID, occurrence.id)
    with pytest.raises(InvalidStateError):
        ledger.update_transaction(
            USER_ID, parent.id, TransactionUpdate(name="TV", amount_cents=20_000, date=date(2024, 3, 1), category="Home", installments=3)
        )

    ledger.delete_transaction(USER_ID, parent.id)

    assert card.available_balance_cents == 500_000
    assert db.query(Transaction).count() == 0


def test_foreign_and_missing_transactions(ledger: LedgerEngine, bank, accounts: AccountService):
    created = ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 1_000))
    foreign = accounts.create_bank_account(OTHER_USER_ID, "Theirs", 10_000)

    with pytest.raises(UnauthorizedError):
        ledger.delete_transaction(OTHER_USER_ID, created.id)
    with pytest.raises(UnauthorizedError):
        ledger.create_transaction(USER_ID, expense(BankRef(foreign.id), 1_000))
    with pytest.raises(NotFoundError):
        ledger.delete_transaction(USER_ID, uuid.uuid4())

    assert bank.current_balance_cents == 99_000


@pytest.mark.parametrize("amounts", [[20_000], [5_000, -12_500, 700], [-1, 1, 99_999]])
def test_create_then_delete_round_trips_balances(ledger: LedgerEngine, bank, card, amounts):
    bank_before = bank.current_balance_cents
    card_before = card.available_balance_cents

    created = [ledger.create_transaction(USER_ID, expense(BankRef(bank.id), amount)) for amount in amounts]
    purchase = ledger.create_transaction(USER_ID, expense(CardRef(card.id), 12_345))
    for db_transaction in reversed(created):
        ledger.delete_transaction(USER_ID, db_transaction.id)
    ledger.delete_transaction(USER_ID, purchase.id)

    assert bank.current_balance_cents == bank_before
    assert card.available_balance_cents == card_before


def test_replayed_balances_match_maintained_balances(ledger: LedgerEngine, accounts: AccountService, card):
    checking = accounts.create_bank_account(USER_ID, "Checking", 100_000)
    savings = accounts.create_bank_account(USER_ID, "Savings", 5_000)

    ledger.create_transaction(USER_ID, expense(BankRef(checking.id), -250_000, name="Salary"))
    coffee = ledger.create_transaction(USER_ID, expense(BankRef(checking.id), 450, name="Coffee"))
    rent = ledger.create_transaction(USER_ID, expense(BankRef(checking.id), 120_000, name="Rent"))
    ledger.create_transfer(USER_ID, checking.id, savings.id, 40_000, "Save", date(2024, 3, 3))
    ledger.update_transaction(
        USER_ID, rent.id, TransactionUpdate(name="Rent", amount_cents=110_000, date=date(2024, 3, 1), category="Home")
    )
    ledger.delete_transaction(USER_ID, coffee.id)
    ledger.create_transaction(USER_ID, expense(CardRef(card.id), 60_000, installments=4))
    groceries = ledger.create_transaction(USER_ID, expense(CardRef(card.id), 8_000))
    ledger.update_transaction(
        USER_ID, groceries.id, TransactionUpdate(name="Groceries", amount_cents=9_500, date=date(2024, 3, 1), category="Food")
    )

    for account, maintained in (
        (BankRef(checking.id), checking.current_balance_cents),
        (BankRef(savings.id), savings.current_balance_cents),
        (CardRef(card.id), card.available_balance_cents),
    ):
        assert ledger.replay_balance(USER_ID, account) == maintained

    assert checking.current_balance_cents == 100_000 + 250_000 - 110_000 - 40_000
    assert card.available_balance_cents == 500_000 - 60_000 - 9_500


def test_month_statement_covers_calendar_month(ledger: LedgerEngine, bank):
    ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 1_000, day=date(2024, 2, 29)))
    ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 2_000, day=date(2024, 3, 1)))
    ledger.create_transaction(USER_ID, expense(BankRef(bank.id), -500, day=date(2024, 3, 31)))
    ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 4_000, day=date(2024, 4, 1)))

    statement = ledger.get_month_statement(USER_ID, bank.id)  # clock says March 2024

    assert statement.month_start == date(2024, 3, 1)
    assert statement.month_end == date(2024, 4, 1)
    assert len(statement.transactions) == 2
    assert statement.total_cents == 1_500

    february = ledger.get_month_statement(USER_ID, bank.id, month=2, year=2024)
    assert february.total_cents == 1_000


def test_list_transactions_scoped_to_owner(ledger: LedgerEngine, bank, card, accounts: AccountService):
    ledger.create_transaction(USER_ID, expense(BankRef(bank.id), 1_000))
    ledger.create_transaction(USER_ID, expense(CardRef(card.id), 2_000))
    foreign = accounts.create_bank_account(OTHER_USER_ID, "Theirs", 10_000)
    ledger.create_transaction(OTHER_USER_ID, expense(BankRef(foreign.id), 3_000))

    assert len(ledger.list_transactions(USER_ID)) == 2
    assert [t.amount_cents for t in ledger.list_transactions(USER_ID, CardRef(card.id))] == [2_000]
    with pytest.raises(UnauthorizedError):
        ledger.list_transactions(USER_ID, BankRef(foreign.id))
