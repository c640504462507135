"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import date, timedelta
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from crm_billing.api.main import create_app
from crm_billing.infrastructure.database.models import Base
from crm_billing.infrastructure.database.session import get_db
from crm_billing.domain.models import (
    BillingPlatform,
    Client,
    Expense,
    Installment,
    InstallmentStatus,
    PaymentMethod,
)


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
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def mollie_client() -> Client:
    """3x deal of 1000 billed through Mollie, no setter"""
    return Client(
        id=uuid.uuid4(),
        deal_amount=Decimal("1000"),
        amount_paid=Decimal("200"),
        payment_method=PaymentMethod.THREE_TIMES,
        billing_platform=BillingPlatform.MOLLIE,
        closed_by="Noé",
    )


@pytest.fixture
def mollie_schedule(mollie_client: Client) -> list[Installment]:
    """200 paid today, then 400 and 400 pending a month apart"""
    today = date.today()
    return [
        Installment(
            id=uuid.uuid4(),
            client_id=mollie_client.id,
            amount=Decimal("200"),
            due_date=today,
            status=InstallmentStatus.PAID,
        ),
        Installment(
            id=uuid.uuid4(),
            client_id=mollie_client.id,
            amount=Decimal("400"),
            due_date=today + timedelta(days=30),
        ),
        Installment(
            id=uuid.uuid4(),
            client_id=mollie_client.id,
            amount=Decimal("400"),
            due_date=today + timedelta(days=60),
        ),
    ]


@pytest.fixture
def sample_expenses() -> list[Expense]:
    today = date.today()
    return [
        Expense(name="CRM licence", amount=Decimal("50"), date=today, paid_by="Baptiste", is_deducted=True),
        Expense(name="Ads", amount=Decimal("120"), date=today, paid_by="Imrane", is_deducted=False),
        Expense(name="Domain", amount=Decimal("30"), date=today, is_deducted=True),
    ]
