"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import datetime
from typing import Callable, Generator
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fraud_sentinel.api.main import create_app
from fraud_sentinel.api.dependencies import get_notification_client
from fraud_sentinel.infrastructure.clients.notifier import NotificationClient
from fraud_sentinel.infrastructure.database.models import Base
from fraud_sentinel.infrastructure.database.session import get_db, get_session_factory
from fraud_sentinel.domain.models import Transaction


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
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
def session_factory(db: Session) -> Callable[[], Session]:
    """Fresh sessions on the test database, as background work gets them"""
    return TestingSessionLocal


@pytest.fixture
def notifier() -> MagicMock:
    """Notification client that records calls instead of posting"""
    client = MagicMock(spec=NotificationClient)
    client.send_alert_created = AsyncMock(return_value=True)
    return client


@pytest.fixture
def client(db: Session, notifier: MagicMock) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_notification_client] = lambda: notifier
    return TestClient(app)


@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    """Factory for an ordinary daytime card payment; keyword arguments override fields"""

    def build(**overrides) -> Transaction:
        values = dict(
            transaction_id=str(uuid.uuid4()),
            account_id="acct_001",
            amount_cents=5_000,
            currency="USD",
            timestamp=datetime(2024, 3, 14, 12, 0),
            payment_method="credit_card",
            merchant="Corner Grocery",
            country="US",
            city="Austin",
        )
        values.update(overrides)
        return Transaction(**values)

    return build
