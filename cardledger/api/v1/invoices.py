"""Invoice endpoints - view, pay, unpay, edit and delete card invoices"""

import uuid
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response

from cardledger.api.dependencies import get_current_user_id, get_invoice_engine
from cardledger.api.v1.schemas import (
    InvoiceEditRequest,
    InvoicePaymentRequest,
    InvoiceResponse,
    InvoiceSummaryResponse,
    TransactionResponse,
)
from cardledger.services.invoices import InvoiceEngine

router = APIRouter()


@router.get("/credit-cards/{card_id}/invoice", response_model=InvoiceSummaryResponse)
def get_invoice(
    card_id: uuid.UUID,
    month: Optional[int] = Query(None, description="Cycle month 1-12, current cycle if omitted"),
    year: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
    engine: InvoiceEngine = Depends(get_invoice_engine),
):
    """
    Invoice for a billing cycle.

    The listed transactions are the ones billed on this invoice, i.e. those
    dated in the cycle before it.
    """
    summary = engine.get_invoice(user_id, card_id, month, year)
    return InvoiceSummaryResponse(
        credit_card_id=summary.card_id,
        bill_start_date=summary.period.bill_start,
        bill_end_date=summary.period.bill_end,
        payment_due_date=summary.period.payment_due,
        transactions_from=summary.window.start,
        transactions_until=summary.window.end,
        total_amount_cents=summary.total_amount_cents,
        credit_from_previous_month_cents=summary.credit_from_previous_month_cents,
        paid_amount_cents=summary.paid_amount_cents,
        amount_owed_cents=summary.amount_owed_cents,
        remaining_cents=summary.remaining_cents,
        is_paid=summary.is_paid,
        transactions=[TransactionResponse.model_validate(t) for t in summary.transactions],
        invoice=InvoiceResponse.model_validate(summary.invoice) if summary.invoice else None,
    )


@router.get("/credit-cards/{card_id}/invoices", response_model=List[InvoiceResponse])
def list_invoices(
    card_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    engine: InvoiceEngine = Depends(get_invoice_engine),
):
    return [InvoiceResponse.model_validate(i) for i in engine.list_invoices(user_id, card_id)]


@router.post("/credit-cards/{card_id}/invoice/payments", response_model=InvoiceResponse)
def pay_invoice(
    card_id: uuid.UUID,
    body: InvoicePaymentRequest,
    user_id: str = Depends(get_current_user_id),
    engine: InvoiceEngine = Depends(get_invoice_engine),
):
    """Pay part or all of a cycle's invoice; any excess becomes next cycle's credit"""
    summary = engine.get_invoice(user_id, card_id, body.month, body.year)
    invoice = engine.pay_invoice(user_id, card_id, body.bank_account_id, summary.period, body.amount_cents)
    return InvoiceResponse.model_validate(invoice)


@router.post("/invoices/{invoice_id}/unpay", response_model=InvoiceResponse)
def unpay_invoice(
    invoice_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    engine: InvoiceEngine = Depends(get_invoice_engine),
):
    return InvoiceResponse.model_validate(engine.unpay_invoice(user_id, invoice_id))


@router.put("/invoices/{invoice_id}", response_model=InvoiceResponse)
def edit_invoice(
    invoice_id: uuid.UUID,
    body: InvoiceEditRequest,
    user_id: str = Depends(get_current_user_id),
    engine: InvoiceEngine = Depends(get_invoice_engine),
):
    """Re-route, complete or (with a null bank account) reverse an invoice payment"""
    return InvoiceResponse.model_validate(engine.edit_invoice(user_id, invoice_id, body.bank_account_id))


@router.delete("/invoices/{invoice_id}", status_code=204)
def delete_invoice(
    invoice_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    engine: InvoiceEngine = Depends(get_invoice_engine),
):
    engine.delete_invoice(user_id, invoice_id)
    return Response(status_code=204)
