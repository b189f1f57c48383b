"""Bank account and credit card management, scoped to the owning user"""

import uuid
from typing import List

from sqlalchemy.orm import Session

from cardledger.domain.billing import validate_cycle_days
from cardledger.domain.exceptions import InvalidInputError
from cardledger.domain.models import BankRef, CardRef
from cardledger.infrastructure.database.models import BankAccount, CreditCard
from cardledger.infrastructure.database.repositories import AccountRepository
from cardledger.infrastructure.observability.logging import log_ledger_event
from cardledger.services.operations import ledger_operation, require_owned, require_text


class AccountService:
    """CRUD for ledger accounts; balance shifts still go through apply_ledger_delta"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)

    # Bank accounts

    def create_bank_account(self, user_id: str, name: str, initial_balance_cents: int) -> BankAccount:
        with ledger_operation(self.db, "create_bank_account", user_id):
            name = require_text(name, "Name")
            if initial_balance_cents < 0:
                raise InvalidInputError("Initial balance cannot be negative")
            account = self.accounts.create_bank_account(user_id, name, initial_balance_cents)

        log_ledger_event(
            "create_bank_account", user_id, account_id=str(account.id), balance_cents=initial_balance_cents
        )
        return account

    def get_bank_account(self, user_id: str, account_id: uuid.UUID) -> BankAccount:
        return require_owned(self.accounts.get_bank_account(account_id), user_id, "Bank account")

    def list_bank_accounts(self, user_id: str) -> List[BankAccount]:
        return self.accounts.list_bank_accounts(user_id)

    def update_bank_account(
        self,
        user_id: str,
        account_id: uuid.UUID,
        name: str,
        initial_balance_cents: int,
    ) -> BankAccount:
        """Rename and/or re-base an account; the current balance moves by the same difference"""
        with ledger_operation(self.db, "update_bank_account", user_id):
            name = require_text(name, "Name")
            if initial_balance_cents < 0:
                raise InvalidInputError("Initial balance cannot be negative")
            account = require_owned(
                self.accounts.get_bank_account(account_id, for_update=True), user_id, "Bank account"
            )

            difference = initial_balance_cents - account.initial_balance_cents
            if difference:
                self.accounts.apply_ledger_delta(BankRef(account.id), difference, enforce_non_negative=False)
            account.name = name
            account.initial_balance_cents = initial_balance_cents
            self.db.flush()

        log_ledger_event("update_bank_account", user_id, account_id=str(account_id), delta_cents=difference)
        return account

    def delete_bank_account(self, user_id: str, account_id: uuid.UUID) -> None:
        """Delete an account together with its transactions"""
        with ledger_operation(self.db, "delete_bank_account", user_id):
            account = require_owned(self.accounts.get_bank_account(account_id), user_id, "Bank account")
            self.accounts.delete(account)

        log_ledger_event("delete_bank_account", user_id, account_id=str(account_id))

    # Credit cards

    def create_credit_card(
        self,
        user_id: str,
        name: str,
        bill_generation_day: int,
        payment_day: int,
        card_limit_cents: int,
    ) -> CreditCard:
        with ledger_operation(self.db, "create_credit_card", user_id):
            name = require_text(name, "Name")
            validate_cycle_days(bill_generation_day, payment_day)
            if card_limit_cents <= 0:
                raise InvalidInputError("Card limit must be greater than 0")
            card = self.accounts.create_credit_card(user_id, name, bill_generation_day, payment_day, card_limit_cents)

        log_ledger_event("create_credit_card", user_id, card_id=str(card.id), card_limit_cents=card_limit_cents)
        return card

    def get_credit_card(self, user_id: str, card_id: uuid.UUID) -> CreditCard:
        return require_owned(self.accounts.get_credit_card(card_id), user_id, "Credit card")

    def list_credit_cards(self, user_id: str) -> List[CreditCard]:
        return self.accounts.list_credit_cards(user_id)

    def update_credit_card(
        self,
        user_id: str,
        card_id: uuid.UUID,
        name: str,
        bill_generation_day: int,
        payment_day: int,
        card_limit_cents: int,
    ) -> CreditCard:
        """
        Edit a card. Changing the limit moves the available balance by the
        same difference; a limit below the credit already used is refused.
        """
        with ledger_operation(self.db, "update_credit_card", user_id):
            name = require_text(name, "Name")
            validate_cycle_days(bill_generation_day, payment_day)
            if card_limit_cents <= 0:
                raise InvalidInputError("Card limit must be greater than 0")
            card = require_owned(self.accounts.get_credit_card(card_id, for_update=True), user_id, "Credit card")

            difference = card_limit_cents - card.card_limit_cents
            if difference:
                self.accounts.apply_ledger_delta(CardRef(card.id), difference)
            card.name = name
            card.bill_generation_day = bill_generation_day
            card.payment_day = payment_day
            card.card_limit_cents = card_limit_cents
            self.db.flush()

        log_ledger_event("update_credit_card", user_id, card_id=str(card_id), delta_cents=difference)
        return card

    def delete_credit_card(self, user_id: str, card_id: uuid.UUID) -> None:
        """Delete a card together with its transactions and invoices"""
        with ledger_operation(self.db, "delete_credit_card", user_id):
            card = require_owned(self.accounts.get_credit_card(card_id), user_id, "Credit card")
            self.accounts.delete(card)

        log_ledger_event("delete_credit_card", user_id, card_id=str(card_id))
