"""Pytest fixtures for testing"""

import os

# Settings are read at import time; point them at the test database first
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import date
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from cardledger.api.dependencies import get_clock
from cardledger.api.main import create_app
from cardledger.infrastructure.database.models import Base, BankAccount, CreditCard
from cardledger.infrastructure.database.session import build_engine, get_db
from cardledger.services.accounts import AccountService
from cardledger.services.invoices import InvoiceEngine
from cardledger.services.ledger import LedgerEngine
from cardledger.utils.clock import FixedClock

USER_ID = "user_alice"
OTHER_USER_ID = "user_bob"

# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FixedClock:
    """Today is 2024-03-15 (UTC) unless a test moves it"""
    return FixedClock(date(2024, 3, 15))


@pytest.fixture
def accounts(db: Session) -> AccountService:
    return AccountService(db)


@pytest.fixture
def ledger(db: Session, clock: FixedClock) -> LedgerEngine:
    return LedgerEngine(db, clock)


@pytest.fixture
def invoices(db: Session, clock: FixedClock) -> InvoiceEngine:
    return InvoiceEngine(db, clock)


@pytest.fixture
def bank(accounts: AccountService) -> BankAccount:
    """Checking account holding $1000.00"""
    return accounts.create_bank_account(USER_ID, "Checking", 100_000)


@pytest.fixture
def card(accounts: AccountService) -> CreditCard:
    """Card closing on the 10th, due on the 5th, $5000.00 limit"""
    return accounts.create_credit_card(USER_ID, "Visa", bill_generation_day=10, payment_day=5, card_limit_cents=500_000)


@pytest.fixture
def client(db: Session, clock: FixedClock) -> TestClient:
    """Create FastAPI test client with test database and fixed clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)
