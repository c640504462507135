"""Billing dashboard: headline figures and profit dispatch"""

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from crm_billing.api.dependencies import get_rates, get_team_members
from crm_billing.api.v1.schemas import (
    BillingOverviewResponse,
    DispatchResponse,
    DispatchRow,
    DispatchSummarySchema,
    MemberPayoutSchema,
)
from crm_billing.domain.dispatch import aggregate_dispatch, completed_dispatch, pending_dispatch
from crm_billing.domain.fees import compute_fees
from crm_billing.domain.models import Expense
from crm_billing.domain.rates import RateCard
from crm_billing.domain.reporting import compute_billing_overview
from crm_billing.infrastructure.database.repositories import (
    ExpenseRepository,
    InstallmentRepository,
    client_to_domain,
    expense_to_domain,
    installment_to_domain,
)
from crm_billing.infrastructure.database.session import get_db
from crm_billing.utils.date_utils import is_valid_period
from crm_billing.utils.money import round_money

router = APIRouter()


def load_deducted_expenses(
    repo: ExpenseRepository,
    expenses: List[Expense],
    month: Optional[int],
    year: Optional[int],
) -> List[Expense]:
    """Expenses deducted for the period when one is given, else those flagged deducted"""
    if month is None and year is None:
        return [exp for exp in expenses if exp.is_deducted]
    if month is None or year is None or not is_valid_period(month, year):
        raise HTTPException(status_code=422, detail="month and year must be given together as a valid period")
    return [expense_to_domain(record) for record in repo.deducted_for_period(month, year)]


@router.get("/billing/overview", response_model=BillingOverviewResponse)
def billing_overview(
    month: Optional[int] = Query(None, description="Deduction period month"),
    year: Optional[int] = Query(None, description="Deduction period year"),
    db: Session = Depends(get_db),
):
    records = InstallmentRepository(db).list_installments()
    installments = [installment_to_domain(record) for record in records]
    clients = {record.client_id: client_to_domain(record.client) for record in records}

    expense_repo = ExpenseRepository(db)
    expenses = [expense_to_domain(record) for record in expense_repo.list_expenses()]
    deducted = load_deducted_expenses(expense_repo, expenses, month, year)

    overview = compute_billing_overview(clients, installments, expenses, deducted)
    return BillingOverviewResponse(
        total_signed=round_money(overview.total_signed),
        total_collected=round_money(overview.total_collected),
        total_expenses=round_money(overview.total_expenses),
        total_deducted=round_money(overview.total_deducted),
        total_setter_commissions=round_money(overview.total_setter_commissions),
        net_benefit=round_money(overview.net_benefit),
    )


@router.get("/billing/dispatch", response_model=DispatchResponse)
def billing_dispatch(
    view: Literal["pending", "completed"] = Query("pending"),
    month: Optional[int] = Query(None, description="Deduction period month"),
    year: Optional[int] = Query(None, description="Deduction period year"),
    db: Session = Depends(get_db),
    team_members: List[str] = Depends(get_team_members),
    rates: RateCard = Depends(get_rates),
):
    """
    Paid installments with their fee breakdown.

    The pending view also carries the dispatch summary: what each member
    receives once the deducted expenses are taken out of the pool.
    """
    records = InstallmentRepository(db).list_installments()
    all_installments = [installment_to_domain(record) for record in records]
    clients = {record.client_id: client_to_domain(record.client) for record in records}
    contact_names = {
        record.client_id: record.client.contact.name if record.client.contact else None for record in records
    }

    selected = pending_dispatch(all_installments) if view == "pending" else completed_dispatch(all_installments)

    rows = []
    for inst in selected:
        client = clients[inst.client_id]
        fees = compute_fees(inst, client, all_installments, rates)
        rows.append(
            DispatchRow(
                installment_id=inst.id,
                client_id=inst.client_id,
                contact_name=contact_names[inst.client_id],
                due_date=inst.due_date,
                billing_platform=client.billing_platform,
                gross=round_money(fees.gross),
                platform_fee=round_money(fees.platform_fee),
                setter_fee=round_money(fees.setter_fee),
                net_for_distribution=round_money(fees.net_for_distribution),
                per_member={member: round_money(amount) for member, amount in fees.per_member.items()},
                is_dispatched=inst.is_dispatched,
            )
        )

    summary = None
    if view == "pending":
        expense_repo = ExpenseRepository(db)
        expenses = [expense_to_domain(record) for record in expense_repo.list_expenses()]
        deducted = load_deducted_expenses(expense_repo, expenses, month, year)
        result = aggregate_dispatch(selected, deducted, team_members, clients, all_installments, rates)
        summary = DispatchSummarySchema(
            total_net_revenue=round_money(result.total_net_revenue),
            total_deducted=round_money(result.total_deducted),
            total_to_share=round_money(result.total_to_share),
            members=[
                MemberPayoutSchema(
                    member=payout.member,
                    share=round_money(payout.share),
                    reimbursement=round_money(payout.reimbursement),
                    total=round_money(payout.total),
                )
                for payout in result.members
            ],
        )

    return DispatchResponse(view=view, month=month, year=year, rows=rows, summary=summary)
