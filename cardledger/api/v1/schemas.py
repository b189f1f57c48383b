"""Pydantic schemas for API request/response validation"""

import uuid
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime
from typing import List, Optional


class ORMSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Accounts

class BankAccountRequest(BaseModel):
    """Body for creating or editing a bank account"""

    name: str = Field(..., min_length=1)
    initial_balance_cents: int = Field(..., description="Opening balance in cents, >= 0")


class BankAccountResponse(ORMSchema):
    id: uuid.UUID
    name: str
    initial_balance_cents: int
    current_balance_cents: int
    created_at: datetime


class CreditCardRequest(BaseModel):
    """Body for creating or editing a credit card"""

    name: str = Field(..., min_length=1)
    bill_generation_day: int = Field(..., description="Day of month the statement closes (1-31)")
    payment_day: int = Field(..., description="Day of month payment is due (1-31)")
    card_limit_cents: int


class CreditCardResponse(ORMSchema):
    id: uuid.UUID
    name: str
    bill_generation_day: int
    payment_day: int
    card_limit_cents: int
    available_balance_cents: int
    created_at: datetime


# Transactions

class TransactionRequest(BaseModel):
    """Body for POST /v1/transactions; exactly one account id must be set"""

    name: str
    amount_cents: int = Field(..., description="Positive = expense, negative = income")
    date: date
    category: str
    installments: int = 1
    bank_account_id: Optional[uuid.UUID] = None
    credit_card_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def _single_account(self) -> "TransactionRequest":
        if (self.bank_account_id is None) == (self.credit_card_id is None):
            raise ValueError("Exactly one of bank_account_id or credit_card_id must be set")
        return self


class TransactionUpdateRequest(BaseModel):
    """Body for PUT /v1/transactions/{id}"""

    name: str
    amount_cents: int
    date: date
    category: str
    installments: int = 1


class TransactionResponse(ORMSchema):
    id: uuid.UUID
    name: str
    amount_cents: int
    date: date
    category: str
    installments: int
    bank_account_id: Optional[uuid.UUID] = None
    credit_card_id: Optional[uuid.UUID] = None
    parent_transaction_id: Optional[uuid.UUID] = None
    installment_number: Optional[int] = None
    transfer_group_id: Optional[uuid.UUID] = None


class TransferRequest(BaseModel):
    """Body for POST /v1/transfers"""

    from_account_id: uuid.UUID
    to_account_id: uuid.UUID
    amount_cents: int
    name: str = "Transfer"
    date: date


class TransferResponse(BaseModel):
    debit: TransactionResponse
    credit: TransactionResponse


class StatementResponse(BaseModel):
    """Response for GET /v1/bank-accounts/{id}/statement"""

    account: BankAccountResponse
    month_start: date
    month_end: date
    total_cents: int
    transactions: List[TransactionResponse]


# Invoices

class InvoiceResponse(ORMSchema):
    id: uuid.UUID
    credit_card_id: uuid.UUID
    bill_start_date: date
    bill_end_date: date
    payment_due_date: date
    total_amount_cents: int
    paid_amount_cents: int
    credit_from_previous_month_cents: int
    is_paid: bool
    paid_at: Optional[datetime] = None
    paid_from_bank_account_id: Optional[uuid.UUID] = None


class InvoiceSummaryResponse(BaseModel):
    """Response for GET /v1/credit-cards/{id}/invoice"""

    credit_card_id: uuid.UUID
    bill_start_date: date
    bill_end_date: date
    payment_due_date: date
    transactions_from: date
    transactions_until: date
    total_amount_cents: int
    credit_from_previous_month_cents: int
    paid_amount_cents: int
    amount_owed_cents: int
    remaining_cents: int
    is_paid: bool
    transactions: List[TransactionResponse]
    invoice: Optional[InvoiceResponse] = None


class InvoicePaymentRequest(BaseModel):
    """Body for POST /v1/credit-cards/{id}/invoice/payments"""

    bank_account_id: uuid.UUID
    amount_cents: int
    month: Optional[int] = Field(None, description="Target cycle month (1-12); current cycle if omitted")
    year: Optional[int] = None


class InvoiceEditRequest(BaseModel):
    """Body for PUT /v1/invoices/{id}; null unpays the invoice"""

    bank_account_id: Optional[uuid.UUID] = None
