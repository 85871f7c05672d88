# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- TestClient with database and quote service overrides
- Stub quote provider
- Sample data factories
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("APP_NAME", "Test App")
os.environ.setdefault("QUOTE_PROVIDER", "mock")

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_ledger.database import get_db
from stock_ledger.dependencies import get_quote_service
from stock_ledger.main import app
from stock_ledger.models import Base, Transaction, TransactionType, User
from stock_ledger.services.exceptions import TickerNotFoundError
from stock_ledger.services.market_data import Quote, QuoteProvider, QuoteService
from stock_ledger.services.store import TransactionRecord


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# STUB QUOTE PROVIDER
# =============================================================================

class StubQuoteProvider(QuoteProvider):
    """
    Quote provider answering from a fixed price table.

    Codes without a configured price raise TickerNotFoundError; codes with a
    configured error raise it.
    """

    def __init__(self, prices: dict[str, Decimal] | None = None):
        super().__init__(timeout=5.0, max_workers=2)
        self.prices: dict[str, Decimal] = dict(prices or {})
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "stub"

    def set_price(self, stock_code: str, price: str | Decimal) -> None:
        self.prices[stock_code] = Decimal(str(price))

    def set_error(self, stock_code: str, error: Exception) -> None:
        self.errors[stock_code] = error

    def get_quote(self, stock_code: str) -> Quote:
        self.calls.append(stock_code)
        if stock_code in self.errors:
            raise self.errors[stock_code]
        if stock_code not in self.prices:
            raise TickerNotFoundError(stock_code=stock_code, provider=self.name)
        return Quote(
            stock_code=stock_code,
            price=self.prices[stock_code],
            change=Decimal("0"),
            change_percent=Decimal("0"),
            timestamp=datetime(2024, 6, 28, 7, 0, tzinfo=timezone.utc),
            source=self.name,
        )


@pytest.fixture
def quote_provider() -> StubQuoteProvider:
    """Create a fresh stub provider for each test."""
    return StubQuoteProvider()


@pytest.fixture
def quote_service(quote_provider: StubQuoteProvider) -> QuoteService:
    return QuoteService(provider=quote_provider)


# =============================================================================
# API CLIENT
# =============================================================================

@pytest.fixture(scope="function")
def client(db: Session, quote_service: QuoteService) -> Iterator[TestClient]:
    """Create TestClient with database and quote service overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_quote_service] = lambda: quote_service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def create_user(db: Session, name: str = "张三", phone: str | None = None, email: str | None = None) -> User:
    """Factory function for creating User entities in the database."""
    user = User(name=name, phone=phone, email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_transaction(
        db: Session,
        user: User,
        stock_code: str = "600519",
        stock_name: str = "贵州茅台",
        transaction_type: TransactionType = TransactionType.BUY,
        quantity: int = 100,
        price: str | Decimal = "10.00",
        transaction_date: date = date(2024, 1, 15),
        notes: str | None = None,
) -> Transaction:
    """Factory function for creating Transaction entities in the database."""
    txn = Transaction(
        user_id=user.id,
        stock_code=stock_code,
        stock_name=stock_name,
        transaction_type=transaction_type,
        quantity=quantity,
        price=Decimal(str(price)),
        transaction_date=transaction_date,
        notes=notes,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    return txn


def trade_data(
        user_id: str = "u1",
        stock_code: str = "600519",
        transaction_type: str = "BUY",
        quantity: int = 100,
        price: str = "10.00",
        transaction_date: date = date(2024, 1, 15),
        stock_name: str = "",
        **extra,
) -> dict:
    """Plain transaction mapping, as accepted by the stores."""
    return {
        "user_id": user_id,
        "stock_code": stock_code,
        "stock_name": stock_name,
        "transaction_type": TransactionType(transaction_type),
        "quantity": quantity,
        "price": Decimal(price),
        "transaction_date": transaction_date,
        **extra,
    }


def trade(*args, **kwargs) -> TransactionRecord:
    """In-memory transaction record for calculator tests (no database needed)."""
    return TransactionRecord(**trade_data(*args, **kwargs))


@pytest.fixture
def sample_user(db: Session) -> User:
    """Provide a sample User for tests."""
    return create_user(db)
