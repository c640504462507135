"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from crm_billing.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_schedule_generated(
    request_id: str,
    client_id: str,
    payment_method: str,
    installment_count: int,
    deal_amount: Decimal,
    replaced: bool,
) -> None:
    """Log a new or regenerated installment schedule"""
    logging.info(
        "Schedule generated",
        extra={
            "request_id": request_id,
            "client_id": client_id,
            "step": "schedule_generated",
            "payment_method": payment_method,
            "installment_count": installment_count,
            "deal_amount": str(deal_amount),
            "replaced_existing": replaced,
        },
    )


def log_status_change(
    request_id: str,
    installment_id: str,
    previous_status: str,
    new_status: str,
    amount_paid: Decimal,
) -> None:
    logging.info(
        "Installment status changed",
        extra={
            "request_id": request_id,
            "installment_id": installment_id,
            "step": "installment_status",
            "previous_status": previous_status,
            "new_status": new_status,
            "client_amount_paid": str(amount_paid),
        },
    )


def log_dispatch_flag(request_id: str, installment_id: str, is_dispatched: bool) -> None:
    logging.info(
        "Dispatch flag set",
        extra={
            "request_id": request_id,
            "installment_id": installment_id,
            "step": "dispatch_flag",
            "is_dispatched": is_dispatched,
        },
    )
