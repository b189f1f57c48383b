"""/v1/bank-accounts and /v1/credit-cards - account management endpoints"""

import uuid
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response

from cardledger.api.dependencies import get_account_service, get_current_user_id, get_ledger_engine
from cardledger.api.v1.schemas import (
    BankAccountRequest,
    BankAccountResponse,
    CreditCardRequest,
    CreditCardResponse,
    StatementResponse,
    TransactionResponse,
)
from cardledger.services.accounts import AccountService
from cardledger.services.ledger import LedgerEngine

router = APIRouter()


@router.post("/bank-accounts", response_model=BankAccountResponse, status_code=201)
def create_bank_account(
    body: BankAccountRequest,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    account = service.create_bank_account(user_id, body.name, body.initial_balance_cents)
    return BankAccountResponse.model_validate(account)


@router.get("/bank-accounts", response_model=List[BankAccountResponse])
def list_bank_accounts(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return [BankAccountResponse.model_validate(a) for a in service.list_bank_accounts(user_id)]


@router.get("/bank-accounts/{account_id}", response_model=BankAccountResponse)
def get_bank_account(
    account_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return BankAccountResponse.model_validate(service.get_bank_account(user_id, account_id))


@router.put("/bank-accounts/{account_id}", response_model=BankAccountResponse)
def update_bank_account(
    account_id: uuid.UUID,
    body: BankAccountRequest,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    account = service.update_bank_account(user_id, account_id, body.name, body.initial_balance_cents)
    return BankAccountResponse.model_validate(account)


@router.delete("/bank-accounts/{account_id}", status_code=204)
def delete_bank_account(
    account_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    service.delete_bank_account(user_id, account_id)
    return Response(status_code=204)


@router.get("/bank-accounts/{account_id}/statement", response_model=StatementResponse)
def get_statement(
    account_id: uuid.UUID,
    month: Optional[int] = Query(None, description="Month 1-12, current month if omitted"),
    year: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
    engine: LedgerEngine = Depends(get_ledger_engine),
):
    """Monthly activity of a bank account with its signed total"""
    statement = engine.get_month_statement(user_id, account_id, month, year)
    return StatementResponse(
        account=BankAccountResponse.model_validate(statement.account),
        month_start=statement.month_start,
        month_end=statement.month_end,
        total_cents=statement.total_cents,
        transactions=[TransactionResponse.model_validate(t) for t in statement.transactions],
    )


@router.post("/credit-cards", response_model=CreditCardResponse, status_code=201)
def create_credit_card(
    body: CreditCardRequest,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    card = service.create_credit_card(
        user_id, body.name, body.bill_generation_day, body.payment_day, body.card_limit_cents
    )
    return CreditCardResponse.model_validate(card)


@router.get("/credit-cards", response_model=List[CreditCardResponse])
def list_credit_cards(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return [CreditCardResponse.model_validate(c) for c in service.list_credit_cards(user_id)]


@router.get("/credit-cards/{card_id}", response_model=CreditCardResponse)
def get_credit_card(
    card_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return CreditCardResponse.model_validate(service.get_credit_card(user_id, card_id))


@router.put("/credit-cards/{card_id}", response_model=CreditCardResponse)
def update_credit_card(
    card_id: uuid.UUID,
    body: CreditCardRequest,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    card = service.update_credit_card(
        user_id, card_id, body.name, body.bill_generation_day, body.payment_day, body.card_limit_cents
    )
    return CreditCardResponse.model_validate(card)


@router.delete("/credit-cards/{card_id}", status_code=204)
def delete_credit_card(
    card_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    service.delete_credit_card(user_id, card_id)
    return Response(status_code=204)
