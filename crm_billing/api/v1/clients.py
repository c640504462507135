"""Clients and their installment schedules"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from crm_billing.api.dependencies import get_request_id, get_team_members
from crm_billing.api.errors import request_failed
from crm_billing.api.v1.schemas import (
    ClientListResponse,
    ClientResponse,
    ClientUpdate,
    InstallmentSchema,
    PortfolioSchema,
    ScheduleRequest,
)
from crm_billing.config import settings
from crm_billing.domain.exceptions import InvalidPaymentError, ScheduleExistsError
from crm_billing.domain.fees import validate_distribution, validate_member
from crm_billing.domain.installments import generate_schedule
from crm_billing.domain.reporting import compute_portfolio, next_due_date, setter_commission
from crm_billing.infrastructure.database.models import ClientRecord, InstallmentRecord
from crm_billing.infrastructure.database.repositories import (
    ClientRepository,
    client_to_domain,
    installment_to_domain,
)
from crm_billing.infrastructure.database.session import get_db
from crm_billing.infrastructure.observability.logging import log_schedule_generated
from crm_billing.infrastructure.observability.metrics import record_schedule
from crm_billing.utils.money import round_money

router = APIRouter()


def build_installment_schema(record: InstallmentRecord) -> InstallmentSchema:
    inst = installment_to_domain(record)
    return InstallmentSchema(
        id=inst.id,
        client_id=inst.client_id,
        amount=round_money(inst.amount),
        due_date=inst.due_date,
        status=inst.status,
        is_dispatched=inst.is_dispatched,
    )


def build_client_response(record: ClientRecord, schedule_outdated: bool = False) -> ClientResponse:
    client = client_to_domain(record)
    installments = [installment_to_domain(inst) for inst in record.installments]
    return ClientResponse(
        id=client.id,
        contact_id=client.contact_id,
        contact_name=record.contact.name if record.contact else None,
        deal_amount=round_money(client.deal_amount),
        amount_paid=round_money(client.amount_paid),
        amount_pending=round_money(client.deal_amount - client.amount_paid),
        payment_method=client.payment_method,
        billing_platform=client.billing_platform,
        closed_by=client.closed_by,
        setter_commission_percentage=client.setter_commission_percentage,
        setter_commission_amount=round_money(setter_commission(client)),
        commission_distribution=client.commission_distribution,
        is_dispatched=client.is_dispatched,
        next_due_date=next_due_date(installments),
        schedule_outdated=schedule_outdated,
        installments=[build_installment_schema(inst) for inst in record.installments],
    )


@router.get("/clients", response_model=ClientListResponse)
def list_clients(
    search: Optional[str] = Query(None, description="Matches the contact's name or email"),
    db: Session = Depends(get_db),
):
    records = ClientRepository(db).list_clients(search)
    portfolio = compute_portfolio(client_to_domain(record) for record in records)
    return ClientListResponse(
        clients=[build_client_response(record) for record in records],
        portfolio=PortfolioSchema(
            total_deals=round_money(portfolio.total_deals),
            total_paid=round_money(portfolio.total_paid),
            total_outstanding=round_money(portfolio.total_outstanding),
        ),
    )


@router.get("/clients/{client_id}", response_model=ClientResponse)
def get_client(client_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        record = ClientRepository(db).get_client(client_id)
    except Exception as e:
        raise request_failed(db, get_request_id(request), e) from e
    return build_client_response(record)


@router.patch("/clients/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: uuid.UUID,
    body: ClientUpdate,
    request: Request,
    db: Session = Depends(get_db),
    team_members: List[str] = Depends(get_team_members),
):
    """
    Edit a client's deal and billing configuration.

    Amount paid keeps its stored value unless the body sets it. Changing the
    payment method does not touch the schedule; the response flags it as
    outdated so the caller can regenerate.
    """
    request_id = get_request_id(request)
    repo = ClientRepository(db)
    try:
        record = repo.get_client(client_id)
        client = client_to_domain(record)
        has_schedule = bool(record.installments)
        method_changed = body.payment_method is not None and body.payment_method != client.payment_method

        changes = body.model_dump(exclude_unset=True, exclude_none=True)
        for field_name, value in changes.items():
            setattr(client, field_name, value)

        validate_member(client.closed_by, team_members)
        if body.commission_distribution is not None:
            client.commission_distribution = validate_distribution(body.commission_distribution, team_members)

        if client.amount_paid > client.deal_amount:
            raise InvalidPaymentError(f"Amount paid {client.amount_paid} exceeds deal amount {client.deal_amount}")

        repo.update_client(record, client)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_client_response(record, schedule_outdated=has_schedule and method_changed)


@router.post("/clients/{client_id}/schedule", response_model=ClientResponse, status_code=201)
def create_schedule(
    client_id: uuid.UUID,
    request: Request,
    body: Optional[ScheduleRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Generate the client's installment schedule.

    An existing schedule is only replaced when `confirm` is true; the old
    installments are deleted and the new ones inserted in one transaction.
    The first installment carries the client's current amount paid.
    """
    request_id = get_request_id(request)
    confirm = body.confirm if body is not None else False
    repo = ClientRepository(db)
    try:
        record = repo.get_client(client_id)
        replaced = bool(record.installments)
        if replaced and not confirm:
            raise ScheduleExistsError(f"Client {client_id} already has a schedule; confirm to replace it")

        client = client_to_domain(record)
        schedule = generate_schedule(
            client.deal_amount,
            client.payment_method,
            client.amount_paid,
            interval_days=settings.schedule_interval_days,
        )
        repo.replace_schedule(record, schedule)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e

    record_schedule(client.payment_method.value, replaced=replaced)
    log_schedule_generated(
        request_id,
        str(record.id),
        client.payment_method.value,
        len(schedule),
        client.deal_amount,
        replaced=replaced,
    )
    return build_client_response(record)


@router.delete("/clients/{client_id}/schedule", status_code=204)
def delete_schedule(client_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    request_id = get_request_id(request)
    repo = ClientRepository(db)
    try:
        repo.delete_schedule(repo.get_client(client_id))
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e


@router.delete("/clients/{client_id}", status_code=204)
def delete_client(client_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    """Remove the client together with its installments; the contact is kept"""
    request_id = get_request_id(request)
    try:
        ClientRepository(db).delete_client(client_id)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
