"""Translate failures inside a request into HTTP errors"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from crm_billing.domain.exceptions import (
    DomainException,
    InvalidDistributionError,
    InvalidPaymentError,
    InvalidPipelineTransitionError,
    RecordNotFoundError,
    ScheduleExistsError,
    UnknownTeamMemberError,
)
from crm_billing.infrastructure.observability.metrics import store_failures_counter

STATUS_CODES = {
    RecordNotFoundError: 404,
    ScheduleExistsError: 409,
    InvalidDistributionError: 422,
    InvalidPaymentError: 422,
    InvalidPipelineTransitionError: 422,
    UnknownTeamMemberError: 422,
}


def request_failed(db: Session, request_id: str, error: Exception) -> HTTPException:
    """
    Roll back the request's changes and build the error to raise.

    Domain errors keep their message; anything else is logged and reported
    as a generic 500 so that nothing partial is ever committed.
    """
    db.rollback()

    if isinstance(error, DomainException):
        status_code = next(
            (code for exc_type, code in STATUS_CODES.items() if isinstance(error, exc_type)),
            400,
        )
        logging.warning(f"Request rejected: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=status_code, detail=str(error))

    store_failures_counter.inc()
    logging.error(f"Unexpected error: {error}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
