"""Data access layer for CRM entities"""

import uuid
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from crm_billing.domain.exceptions import RecordNotFoundError
from crm_billing.domain.models import (
    BillingPlatform,
    Client,
    ContactStatus,
    Expense,
    ExpenseType,
    Installment,
    InstallmentStatus,
    PaymentMethod,
    PipelineHistoryEntry,
    PipelineStatus,
)
from crm_billing.infrastructure.database.models import (
    ClientRecord,
    ContactRecord,
    ExpenseDeductionRecord,
    ExpenseRecord,
    InstallmentRecord,
    PipelineHistoryRecord,
)
from crm_billing.utils.money import ZERO, parse_amount


def _money(value) -> Decimal:
    return Decimal(value) if value is not None else ZERO


def _json_distribution(distribution: Dict[str, Decimal]) -> Dict[str, float]:
    # JSON columns cannot hold Decimal
    return {member: float(percentage) for member, percentage in distribution.items()}


def client_to_domain(record: ClientRecord) -> Client:
    return Client(
        id=record.id,
        contact_id=record.contact_id,
        deal_amount=_money(record.deal_amount),
        amount_paid=_money(record.amount_paid),
        payment_method=PaymentMethod(record.payment_method or PaymentMethod.ONE_SHOT.value),
        billing_platform=BillingPlatform(record.billing_platform) if record.billing_platform else None,
        closed_by=record.closed_by,
        setter_commission_percentage=_money(record.setter_commission_percentage),
        commission_distribution={
            member: parse_amount(percentage)
            for member, percentage in (record.commission_distribution or {}).items()
        },
        is_dispatched=bool(record.is_dispatched),
    )


def installment_to_domain(record: InstallmentRecord) -> Installment:
    return Installment(
        id=record.id,
        client_id=record.client_id,
        amount=_money(record.amount),
        due_date=record.due_date,
        status=InstallmentStatus(record.status or InstallmentStatus.PENDING.value),
        is_dispatched=bool(record.is_dispatched),
    )


def expense_to_domain(record: ExpenseRecord) -> Expense:
    return Expense(
        id=record.id,
        name=record.name,
        amount=_money(record.amount),
        type=ExpenseType(record.type),
        date=record.date,
        category=record.category,
        paid_by=record.paid_by,
        is_deducted=bool(record.is_deducted),
    )


class ContactRepository:
    """Repository for contacts and their pipeline history"""

    def __init__(self, db: Session):
        self.db = db

    def create_contact(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        status: Optional[ContactStatus] = None,
        notes: Optional[str] = None,
    ) -> ContactRecord:
        record = ContactRecord(
            name=name,
            email=email,
            phone=phone,
            status=status.value if status else None,
            pipeline_status=PipelineStatus.PROSPECT.value,
            notes=notes,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_contact(self, contact_id: uuid.UUID) -> ContactRecord:
        record = self.db.get(ContactRecord, contact_id)
        if record is None:
            raise RecordNotFoundError(f"Contact {contact_id} not found")
        return record

    def list_contacts(self, search: Optional[str] = None) -> List[ContactRecord]:
        query = self.db.query(ContactRecord)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(ContactRecord.name.ilike(pattern), ContactRecord.email.ilike(pattern)))
        return query.order_by(ContactRecord.created_at.desc()).all()

    def update_contact(self, record: ContactRecord, changes: Dict[str, object]) -> ContactRecord:
        """Apply the given field changes; a status is stored by its value"""
        for field_name, value in changes.items():
            if field_name == "status" and value is not None:
                value = ContactStatus(value).value
            setattr(record, field_name, value)
        self.db.flush()
        return record

    def delete_contact(self, contact_id: uuid.UUID) -> None:
        self.db.delete(self.get_contact(contact_id))

    def record_pipeline_change(self, record: ContactRecord, entry: PipelineHistoryEntry) -> PipelineHistoryRecord:
        """Append the history entry and move the contact to its status"""
        history = PipelineHistoryRecord(
            contact_id=record.id,
            status=entry.status.value,
            notes=entry.notes,
            r1_date=entry.r1_date,
            r2_date=entry.r2_date,
        )
        self.db.add(history)
        record.pipeline_status = entry.status.value
        self.db.flush()
        return history

    def get_pipeline_history(self, contact_id: uuid.UUID) -> List[PipelineHistoryRecord]:
        return (
            self.db.query(PipelineHistoryRecord)
            .filter(PipelineHistoryRecord.contact_id == contact_id)
            .order_by(PipelineHistoryRecord.changed_at.desc())
            .all()
        )


class ClientRepository:
    """Repository for clients and their installment schedules"""

    def __init__(self, db: Session):
        self.db = db

    def create_client(self, client: Client) -> ClientRecord:
        record = ClientRecord(
            contact_id=client.contact_id,
            deal_amount=client.deal_amount,
            amount_paid=client.amount_paid,
            payment_method=PaymentMethod(client.payment_method).value,
            billing_platform=BillingPlatform(client.billing_platform or BillingPlatform.MOLLIE).value,
            closed_by=client.closed_by,
            setter_commission_percentage=client.setter_commission_percentage,
            commission_distribution=_json_distribution(client.commission_distribution),
            is_dispatched=client.is_dispatched,
        )
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record

    def get_client(self, client_id: uuid.UUID) -> ClientRecord:
        record = self.db.get(ClientRecord, client_id)
        if record is None:
            raise RecordNotFoundError(f"Client {client_id} not found")
        return record

    def list_clients(self, search: Optional[str] = None) -> List[ClientRecord]:
        query = self.db.query(ClientRecord).options(
            selectinload(ClientRecord.contact),
            selectinload(ClientRecord.installments),
        )
        if search:
            pattern = f"%{search}%"
            query = query.join(ClientRecord.contact).filter(
                or_(ContactRecord.name.ilike(pattern), ContactRecord.email.ilike(pattern))
            )
        return query.order_by(ClientRecord.created_at.desc()).all()

    def update_client(self, record: ClientRecord, client: Client) -> ClientRecord:
        record.deal_amount = client.deal_amount
        record.amount_paid = client.amount_paid
        record.payment_method = PaymentMethod(client.payment_method).value
        record.billing_platform = BillingPlatform(client.billing_platform or BillingPlatform.MOLLIE).value
        record.closed_by = client.closed_by
        record.setter_commission_percentage = client.setter_commission_percentage
        record.commission_distribution = _json_distribution(client.commission_distribution)
        record.is_dispatched = client.is_dispatched
        self.db.flush()
        return record

    def replace_schedule(self, record: ClientRecord, installments: List[Installment]) -> List[InstallmentRecord]:
        """
        Swap the client's whole schedule for `installments`.

        Old installments are deleted before the new ones are inserted, both
        inside the caller's transaction; nothing is visible to other
        sessions until commit.
        """
        record.installments.clear()
        self.db.flush()

        new_records = [
            InstallmentRecord(
                amount=inst.amount,
                due_date=inst.due_date,
                status=InstallmentStatus(inst.status).value,
                is_dispatched=inst.is_dispatched,
            )
            for inst in installments
        ]
        record.installments.extend(new_records)
        self.db.flush()
        return new_records

    def delete_schedule(self, record: ClientRecord) -> None:
        record.installments.clear()
        self.db.flush()

    def delete_client(self, client_id: uuid.UUID) -> None:
        # Installments go with the client through the delete-orphan cascade
        self.db.delete(self.get_client(client_id))
        self.db.flush()


class InstallmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_installment(self, installment_id: uuid.UUID) -> InstallmentRecord:
        record = self.db.get(InstallmentRecord, installment_id)
        if record is None:
            raise RecordNotFoundError(f"Installment {installment_id} not found")
        return record

    def list_installments(self) -> List[InstallmentRecord]:
        """Every installment with its client, earliest due first"""
        return (
            self.db.query(InstallmentRecord)
            .options(selectinload(InstallmentRecord.client).selectinload(ClientRecord.contact))
            .order_by(InstallmentRecord.due_date.asc())
            .all()
        )

    def set_status(self, record: InstallmentRecord, status: InstallmentStatus) -> InstallmentRecord:
        record.status = InstallmentStatus(status).value
        self.db.flush()
        return record

    def set_dispatched(self, record: InstallmentRecord, is_dispatched: bool) -> InstallmentRecord:
        record.is_dispatched = is_dispatched
        self.db.flush()
        return record


class ExpenseRepository:
    """Repository for expenses and their monthly deductions"""

    def __init__(self, db: Session):
        self.db = db

    def create_expense(self, expense: Expense) -> ExpenseRecord:
        record = ExpenseRecord(
            name=expense.name,
            amount=expense.amount,
            type=ExpenseType(expense.type).value,
            date=expense.date,
            category=expense.category or None,
            paid_by=expense.paid_by,
            is_deducted=expense.is_deducted,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_expense(self, expense_id: uuid.UUID) -> ExpenseRecord:
        record = self.db.get(ExpenseRecord, expense_id)
        if record is None:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        return record

    def list_expenses(
        self,
        search: Optional[str] = None,
        expense_type: Optional[ExpenseType] = None,
    ) -> List[ExpenseRecord]:
        """Expenses, most recent first, filtered by name/category and type"""
        query = self.db.query(ExpenseRecord)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(ExpenseRecord.name.ilike(pattern), ExpenseRecord.category.ilike(pattern)))
        if expense_type is not None:
            query = query.filter(ExpenseRecord.type == ExpenseType(expense_type).value)
        return query.order_by(ExpenseRecord.date.desc()).all()

    def update_expense(self, record: ExpenseRecord, expense: Expense) -> ExpenseRecord:
        record.name = expense.name
        record.amount = expense.amount
        record.type = ExpenseType(expense.type).value
        record.date = expense.date
        record.category = expense.category or None
        record.paid_by = expense.paid_by
        record.is_deducted = expense.is_deducted
        self.db.flush()
        return record

    def delete_expense(self, expense_id: uuid.UUID) -> None:
        self.db.delete(self.get_expense(expense_id))

    def add_deduction(self, expense_id: uuid.UUID, month: int, year: int) -> ExpenseDeductionRecord:
        """Mark the expense as deducted for the period; repeated calls keep one entry"""
        existing = self._find_deduction(expense_id, month, year)
        if existing is not None:
            return existing
        record = ExpenseDeductionRecord(expense_id=expense_id, month=month, year=year)
        self.db.add(record)
        self.db.flush()
        return record

    def remove_deduction(self, expense_id: uuid.UUID, month: int, year: int) -> bool:
        existing = self._find_deduction(expense_id, month, year)
        if existing is None:
            return False
        self.db.delete(existing)
        self.db.flush()
        return True

    def deducted_for_period(self, month: int, year: int) -> List[ExpenseRecord]:
        return (
            self.db.query(ExpenseRecord)
            .join(ExpenseDeductionRecord, ExpenseDeductionRecord.expense_id == ExpenseRecord.id)
            .filter(ExpenseDeductionRecord.month == month, ExpenseDeductionRecord.year == year)
            .order_by(ExpenseRecord.date.desc())
            .all()
        )

    def deduction_periods(self, expense_id: uuid.UUID) -> List[ExpenseDeductionRecord]:
        return (
            self.db.query(ExpenseDeductionRecord)
            .filter(ExpenseDeductionRecord.expense_id == expense_id)
            .order_by(ExpenseDeductionRecord.year.desc(), ExpenseDeductionRecord.month.desc())
            .all()
        )

    def _find_deduction(self, expense_id: uuid.UUID, month: int, year: int) -> Optional[ExpenseDeductionRecord]:
        return (
            self.db.query(ExpenseDeductionRecord)
            .filter(
                ExpenseDeductionRecord.expense_id == expense_id,
                ExpenseDeductionRecord.month == month,
                ExpenseDeductionRecord.year == year,
            )
            .first()
        )
