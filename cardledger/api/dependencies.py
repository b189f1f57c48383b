"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from cardledger.config import settings
from cardledger.infrastructure.database.session import get_db
from cardledger.services.accounts import AccountService
from cardledger.services.invoices import InvoiceEngine
from cardledger.services.ledger import LedgerEngine
from cardledger.utils.clock import Clock, SystemClock


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user_id(request: Request) -> str:
    """Caller identity resolved upstream by the session layer"""
    user_id = request.headers.get(settings.user_id_header)
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing user identity")
    return user_id


def get_clock() -> Clock:
    """Provide the clock billing periods are resolved against"""
    return SystemClock()


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    return AccountService(db)


def get_ledger_engine(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> LedgerEngine:
    return LedgerEngine(db, clock)


def get_invoice_engine(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> InvoiceEngine:
    return InvoiceEngine(db, clock)
