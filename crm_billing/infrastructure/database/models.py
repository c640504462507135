"""SQLAlchemy ORM models for the CRM tables"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

Money = Numeric(12, 2)


class ContactRecord(Base):
    """Prospect or customer contact"""

    __tablename__ = "contacts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    status = Column(Text, nullable=True)
    pipeline_status = Column(Text, nullable=False, default="prospect")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    clients = relationship("ClientRecord", back_populates="contact")
    pipeline_history = relationship(
        "PipelineHistoryRecord",
        back_populates="contact",
        cascade="all, delete-orphan",
        order_by="PipelineHistoryRecord.changed_at.desc()",
    )


class PipelineHistoryRecord(Base):
    """One pipeline status change of a contact"""

    __tablename__ = "pipeline_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    r1_date = Column(Date, nullable=True)
    r2_date = Column(Date, nullable=True)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    contact = relationship("ContactRecord", back_populates="pipeline_history")


class ClientRecord(Base):
    """Signed deal and its billing configuration"""

    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True)
    deal_amount = Column(Money, nullable=False)
    amount_paid = Column(Money, nullable=True, default=0)
    payment_method = Column(Text, nullable=True)
    billing_platform = Column(Text, nullable=False, default="Mollie")
    closed_by = Column(Text, nullable=True)
    setter_commission_percentage = Column(Numeric(5, 2), nullable=True, default=0)
    commission_distribution = Column(JSON, nullable=True)
    is_dispatched = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    contact = relationship("ContactRecord", back_populates="clients")
    installments = relationship(
        "InstallmentRecord",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="InstallmentRecord.due_date",
    )


class InstallmentRecord(Base):
    """Individual installment within a client's schedule"""

    __tablename__ = "client_installments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="En attente")
    is_dispatched = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    client = relationship("ClientRecord", back_populates="installments")


class ExpenseRecord(Base):
    __tablename__ = "expenses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    amount = Column(Money, nullable=False, default=0)
    type = Column(Text, nullable=False, default="one-shot")
    date = Column(Date, nullable=False)
    category = Column(Text, nullable=True)
    paid_by = Column(Text, nullable=True)
    is_deducted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    deductions = relationship("ExpenseDeductionRecord", back_populates="expense", cascade="all, delete-orphan")


class ExpenseDeductionRecord(Base):
    """Expense deducted from the dispatch of a given month"""

    __tablename__ = "expense_deductions"
    __table_args__ = (UniqueConstraint("expense_id", "month", "year", name="uq_expense_deduction_period"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    expense_id = Column(Uuid, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    expense = relationship("ExpenseRecord", back_populates="deductions")
