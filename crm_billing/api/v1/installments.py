"""Installment payment tracking and dispatch flags"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from crm_billing.api.dependencies import get_request_id
from crm_billing.api.errors import request_failed
from crm_billing.api.v1.clients import build_installment_schema
from crm_billing.api.v1.schemas import (
    DispatchFlagRequest,
    InstallmentSchema,
    InstallmentStatusResponse,
    InstallmentStatusUpdate,
)
from crm_billing.domain.installments import apply_status_change
from crm_billing.infrastructure.database.repositories import (
    InstallmentRepository,
    client_to_domain,
    installment_to_domain,
)
from crm_billing.infrastructure.database.session import get_db
from crm_billing.infrastructure.observability.logging import log_dispatch_flag, log_status_change
from crm_billing.infrastructure.observability.metrics import record_dispatch_flag, record_status_change
from crm_billing.utils.money import round_money

router = APIRouter()


@router.patch("/installments/{installment_id}/status", response_model=InstallmentStatusResponse)
def update_installment_status(
    installment_id: uuid.UUID,
    body: InstallmentStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Move an installment to a new payment status.

    The owning client's stored amount paid is adjusted only when the move
    crosses the Paid boundary, in the same transaction as the status.
    Setting the current status again changes nothing.
    """
    request_id = get_request_id(request)
    repo = InstallmentRepository(db)
    try:
        record = repo.get_installment(installment_id)
        installment = installment_to_domain(record)
        previous_status = installment.status
        client_record = record.client

        if previous_status != body.status:
            client = client_to_domain(client_record)
            client_record.amount_paid = apply_status_change(client.amount_paid, installment, body.status)
            repo.set_status(record, body.status)
            db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e

    amount_paid = round_money(client_to_domain(client_record).amount_paid)
    if previous_status != body.status:
        record_status_change(previous_status.value, body.status.value)
        log_status_change(
            request_id,
            str(record.id),
            previous_status.value,
            body.status.value,
            amount_paid,
        )
    return InstallmentStatusResponse(
        installment=build_installment_schema(record),
        client_amount_paid=amount_paid,
    )


@router.put("/installments/{installment_id}/dispatch", response_model=InstallmentSchema)
def set_dispatch_flag(
    installment_id: uuid.UUID,
    request: Request,
    body: Optional[DispatchFlagRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Mark an installment's profit as shared out, or not.

    An explicit `is_dispatched` is applied as given; without it the current
    flag is flipped.
    """
    request_id = get_request_id(request)
    repo = InstallmentRepository(db)
    try:
        record = repo.get_installment(installment_id)
        requested = body.is_dispatched if body is not None else None
        target = requested if requested is not None else not record.is_dispatched
        repo.set_dispatched(record, target)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e

    record_dispatch_flag(target)
    log_dispatch_flag(request_id, str(record.id), target)
    return build_installment_schema(record)
