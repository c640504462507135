"""Billing and portfolio KPIs"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence

from crm_billing.domain.models import (
    BillingOverview,
    Client,
    Expense,
    Installment,
    InstallmentStatus,
    PortfolioSummary,
)
from crm_billing.domain.installments import amount_paid_from
from crm_billing.utils.money import ZERO, percentage_of


def setter_commission(client: Client) -> Decimal:
    percentage = client.setter_commission_percentage or ZERO
    if percentage <= 0:
        return ZERO
    return percentage_of(client.deal_amount, percentage)


def compute_billing_overview(
    clients: Mapping[Any, Client],
    installments: Sequence[Installment],
    expenses: Sequence[Expense],
    deducted_expenses: Optional[Sequence[Expense]] = None,
) -> BillingOverview:
    """
    Headline figures of the billing dashboard.

    Signed revenue and setter commissions only count clients that have a
    schedule. Net benefit = collected - expenses - setter commissions.
    """
    if deducted_expenses is None:
        deducted_expenses = [exp for exp in expenses if exp.is_deducted]

    scheduled_ids = {inst.client_id for inst in installments}
    scheduled = [client for client_id, client in clients.items() if client_id in scheduled_ids]

    total_signed = sum((client.deal_amount for client in scheduled), ZERO)
    total_setter = sum((setter_commission(client) for client in scheduled), ZERO)
    total_collected = amount_paid_from(installments)
    total_expenses = sum((exp.amount for exp in expenses), ZERO)
    total_deducted = sum((exp.amount for exp in deducted_expenses), ZERO)

    return BillingOverview(
        total_signed=total_signed,
        total_collected=total_collected,
        total_expenses=total_expenses,
        total_deducted=total_deducted,
        total_setter_commissions=total_setter,
        net_benefit=total_collected - total_expenses - total_setter,
    )


def compute_portfolio(clients: Iterable[Client]) -> PortfolioSummary:
    total_deals = ZERO
    total_paid = ZERO
    for client in clients:
        total_deals += client.deal_amount
        total_paid += client.amount_paid or ZERO
    return PortfolioSummary(
        total_deals=total_deals,
        total_paid=total_paid,
        total_outstanding=total_deals - total_paid,
    )


def next_due_date(installments: Iterable[Installment]) -> Optional[date]:
    """Earliest due date still awaiting payment"""
    pending = [inst.due_date for inst in installments if inst.status == InstallmentStatus.PENDING]
    return min(pending) if pending else None
