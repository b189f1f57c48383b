"""/v1/transactions and /v1/transfers - ledger entry endpoints"""

import uuid
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response

from cardledger.api.dependencies import get_current_user_id, get_ledger_engine
from cardledger.api.v1.schemas import (
    TransactionRequest,
    TransactionResponse,
    TransactionUpdateRequest,
    TransferRequest,
    TransferResponse,
)
from cardledger.domain.models import BankRef, CardRef, TransactionInput, TransactionUpdate
from cardledger.services.ledger import LedgerEngine

router = APIRouter()


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    body: TransactionRequest,
    user_id: str = Depends(get_current_user_id),
    engine: LedgerEngine = Depends(get_ledger_engine),
):
    """
    Post an expense or income entry.

    Card purchases with installments > 1 return the placeholder entry; its
    monthly occurrences are listed under GET /v1/transactions.
    """
    account = CardRef(body.credit_card_id) if body.credit_card_id else BankRef(body.bank_account_id)
    db_transaction = engine.create_transaction(
        user_id,
        TransactionInput(
            name=body.name,
            amount_cents=body.amount_cents,
            date=body.date,
            category=body.category,
            account=account,
            installments=body.installments,
        ),
    )
    return TransactionResponse.model_validate(db_transaction)


@router.get("/transactions", response_model=List[TransactionResponse])
def list_transactions(
    bank_account_id: Optional[uuid.UUID] = Query(None),
    credit_card_id: Optional[uuid.UUID] = Query(None),
    user_id: str = Depends(get_current_user_id),
    engine: LedgerEngine = Depends(get_ledger_engine),
):
    account = None
    if credit_card_id:
        account = CardRef(credit_card_id)
    elif bank_account_id:
        account = BankRef(bank_account_id)
    return [TransactionResponse.model_validate(t) for t in engine.list_transactions(user_id, account)]


@router.put("/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: uuid.UUID,
    body: TransactionUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    engine: LedgerEngine = Depends(get_ledger_engine),
):
    db_transaction = engine.update_transaction(
        user_id,
        transaction_id,
        TransactionUpdate(
            name=body.name,
            amount_cents=body.amount_cents,
            date=body.date,
            category=body.category,
            installments=body.installments,
        ),
    )
    return TransactionResponse.model_validate(db_transaction)


@router.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    engine: LedgerEngine = Depends(get_ledger_engine),
):
    engine.delete_transaction(user_id, transaction_id)
    return Response(status_code=204)


@router.post("/transfers", response_model=TransferResponse, status_code=201)
def create_transfer(
    body: TransferRequest,
    user_id: str = Depends(get_current_user_id),
    engine: LedgerEngine = Depends(get_ledger_engine),
):
    """Move money between two of the caller's bank accounts"""
    debit, credit = engine.create_transfer(
        user_id, body.from_account_id, body.to_account_id, body.amount_cents, body.name, body.date
    )
    return TransferResponse(
        debit=TransactionResponse.model_validate(debit),
        credit=TransactionResponse.model_validate(credit),
    )
