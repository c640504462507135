"""Contacts, sales pipeline and conversion of a contact into a client"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from crm_billing.api.dependencies import get_request_id, get_team_members
from crm_billing.api.errors import request_failed
from crm_billing.api.v1.clients import build_client_response
from crm_billing.api.v1.schemas import (
    ClientResponse,
    ContactCreate,
    ContactResponse,
    ContactStatusUpdate,
    ContactUpdate,
    ConvertToClientRequest,
    PipelineChangeRequest,
    PipelineHistoryItem,
    PipelineResponse,
)
from crm_billing.config import settings
from crm_billing.domain.exceptions import InvalidPaymentError
from crm_billing.domain.fees import even_distribution, validate_distribution, validate_member
from crm_billing.domain.installments import generate_schedule, suggested_initial_payment
from crm_billing.domain.models import Client, ContactStatus, PipelineStatus
from crm_billing.domain.pipeline import build_history_entry, get_step, is_terminal, step_index
from crm_billing.infrastructure.database.models import ContactRecord
from crm_billing.infrastructure.database.repositories import ClientRepository, ContactRepository
from crm_billing.infrastructure.database.session import get_db
from crm_billing.infrastructure.observability.logging import log_schedule_generated
from crm_billing.infrastructure.observability.metrics import record_schedule

router = APIRouter()


def build_contact_response(record: ContactRecord) -> ContactResponse:
    return ContactResponse(
        id=record.id,
        name=record.name,
        email=record.email,
        phone=record.phone,
        status=record.status,
        pipeline_status=record.pipeline_status,
        notes=record.notes,
    )


def build_pipeline_response(record: ContactRecord, repo: ContactRepository) -> PipelineResponse:
    history = [
        PipelineHistoryItem(
            id=entry.id,
            status=entry.status,
            label=get_step(PipelineStatus(entry.status)).label,
            notes=entry.notes,
            r1_date=entry.r1_date,
            r2_date=entry.r2_date,
            changed_at=entry.changed_at,
        )
        for entry in repo.get_pipeline_history(record.id)
    ]
    return PipelineResponse(
        contact_id=record.id,
        pipeline_status=record.pipeline_status,
        step_index=step_index(PipelineStatus(record.pipeline_status)),
        is_terminal=is_terminal(PipelineStatus(record.pipeline_status)),
        history=history,
    )


@router.post("/contacts", response_model=ContactResponse, status_code=201)
def create_contact(body: ContactCreate, request: Request, db: Session = Depends(get_db)):
    request_id = get_request_id(request)
    try:
        record = ContactRepository(db).create_contact(
            name=body.name,
            email=body.email,
            phone=body.phone,
            status=body.status,
            notes=body.notes,
        )
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_contact_response(record)


@router.get("/contacts", response_model=List[ContactResponse])
def list_contacts(
    search: Optional[str] = Query(None, description="Matches name or email"),
    db: Session = Depends(get_db),
):
    return [build_contact_response(record) for record in ContactRepository(db).list_contacts(search)]


@router.patch("/contacts/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: uuid.UUID,
    body: ContactUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    """Edit contact details; fields sent as null are cleared, except the name"""
    request_id = get_request_id(request)
    repo = ContactRepository(db)
    try:
        record = repo.get_contact(contact_id)
        changes = body.model_dump(exclude_unset=True)
        if changes.get("name") is None:
            changes.pop("name", None)
        repo.update_contact(record, changes)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_contact_response(record)


@router.patch("/contacts/{contact_id}/status", response_model=ContactResponse)
def update_contact_status(
    contact_id: uuid.UUID,
    body: ContactStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    request_id = get_request_id(request)
    try:
        record = ContactRepository(db).get_contact(contact_id)
        record.status = body.status.value
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_contact_response(record)


@router.delete("/contacts/{contact_id}", status_code=204)
def delete_contact(contact_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    request_id = get_request_id(request)
    try:
        ContactRepository(db).delete_contact(contact_id)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e


@router.get("/contacts/{contact_id}/pipeline", response_model=PipelineResponse)
def get_pipeline(contact_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    repo = ContactRepository(db)
    try:
        record = repo.get_contact(contact_id)
    except Exception as e:
        raise request_failed(db, get_request_id(request), e) from e
    return build_pipeline_response(record, repo)


@router.post("/contacts/{contact_id}/pipeline", response_model=PipelineResponse)
def change_pipeline_status(
    contact_id: uuid.UUID,
    body: PipelineChangeRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Move a contact along the sales pipeline.

    Writes the history entry and the contact's new status in one transaction.
    """
    request_id = get_request_id(request)
    repo = ContactRepository(db)
    try:
        record = repo.get_contact(contact_id)
        entry = build_history_entry(
            contact_id=record.id,
            current_status=PipelineStatus(record.pipeline_status),
            new_status=body.status,
            notes=body.notes,
            r1_date=body.r1_date,
            r2_date=body.r2_date,
        )
        repo.record_pipeline_change(record, entry)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_pipeline_response(record, repo)


@router.post("/contacts/{contact_id}/convert", response_model=ClientResponse, status_code=201)
def convert_to_client(
    contact_id: uuid.UUID,
    body: ConvertToClientRequest,
    request: Request,
    db: Session = Depends(get_db),
    team_members: List[str] = Depends(get_team_members),
):
    """
    Record a sale for a contact.

    Flow:
    1. Create the client with its billing and commission configuration
    2. Generate the installment schedule from the amount already received
    3. Mark the contact as closed
    All three steps commit together or not at all.
    """
    request_id = get_request_id(request)
    try:
        contact = ContactRepository(db).get_contact(contact_id)

        validate_member(body.closed_by, team_members)
        distribution = validate_distribution(
            body.commission_distribution or even_distribution(team_members),
            team_members,
        )

        amount_paid = body.amount_paid
        if amount_paid is None:
            amount_paid = suggested_initial_payment(body.deal_amount, body.payment_method)
        if amount_paid > body.deal_amount:
            raise InvalidPaymentError(f"Amount paid {amount_paid} exceeds deal amount {body.deal_amount}")

        client_repo = ClientRepository(db)
        record = client_repo.create_client(
            Client(
                contact_id=contact.id,
                deal_amount=body.deal_amount,
                amount_paid=amount_paid,
                payment_method=body.payment_method,
                billing_platform=body.billing_platform,
                closed_by=body.closed_by,
                setter_commission_percentage=body.setter_commission_percentage,
                commission_distribution=distribution,
            )
        )

        schedule = generate_schedule(
            body.deal_amount,
            body.payment_method,
            amount_paid,
            interval_days=settings.schedule_interval_days,
        )
        client_repo.replace_schedule(record, schedule)

        contact.status = ContactStatus.CLOSED.value
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e

    record_schedule(body.payment_method.value, replaced=False)
    log_schedule_generated(
        request_id,
        str(record.id),
        body.payment_method.value,
        len(schedule),
        body.deal_amount,
        replaced=False,
    )
    return build_client_response(record)
