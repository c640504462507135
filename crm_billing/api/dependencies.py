"""Dependency injection for FastAPI endpoints"""

from typing import List

from fastapi import Request

from crm_billing.config import settings
from crm_billing.domain.rates import RateCard, get_rate_card


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_team_members() -> List[str]:
    """Configured team roster"""
    return list(settings.team_members)


def get_rates() -> RateCard:
    """Rate card selected by configuration"""
    return get_rate_card(settings.rate_card_version)
