"""Dispatch of collected profit and expense reimbursements among the team"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from crm_billing.domain.fees import even_distribution, platform_fee, setter_fee
from crm_billing.domain.installments import sort_by_due_date
from crm_billing.domain.models import (
    Client,
    DispatchSummary,
    Expense,
    Installment,
    MemberPayout,
)
from crm_billing.domain.rates import DEFAULT_RATE_CARD, RateCard
from crm_billing.utils.money import ZERO, parse_amount, percentage_of


def pending_dispatch(installments: Iterable[Installment]) -> List[Installment]:
    """Paid installments whose profit has not been shared yet"""
    return [inst for inst in installments if inst.is_paid and not inst.is_dispatched]


def completed_dispatch(installments: Iterable[Installment]) -> List[Installment]:
    return [inst for inst in installments if inst.is_paid and inst.is_dispatched]


def representative_distribution(
    installments: Sequence[Installment],
    clients: Mapping[Any, Client],
    team_members: Sequence[str],
) -> Mapping[str, object]:
    """
    Distribution used for the pooled share.

    Distribution can differ per client, but the pool is split once, so the
    client of the earliest-due installment stands in for all of them.
    """
    for inst in sort_by_due_date(installments)[:1]:
        client = clients.get(inst.client_id)
        if client is not None and client.commission_distribution:
            return client.commission_distribution
    return even_distribution(team_members)


def aggregate_dispatch(
    installments: Sequence[Installment],
    deducted_expenses: Sequence[Expense],
    team_members: Sequence[str],
    clients: Mapping[Any, Client],
    all_installments: Optional[Sequence[Installment]] = None,
    rates: RateCard = DEFAULT_RATE_CARD,
) -> DispatchSummary:
    """
    Compute what each team member receives for a dispatch run.

    Requirements:
    - Net revenue = sum over installments of (gross - platform fee - setter fee)
    - Pool = max(0, (net revenue - deducted expenses) * distributable share)
    - Share per member = pool * member percentage / 100
    - Reimbursement = deducted expenses the member paid out of pocket

    Args:
        installments: Paid, not yet dispatched installments
        deducted_expenses: Expenses deducted from this run
        team_members: Members to report on, in display order
        clients: Owning client of each installment, keyed by client id
        all_installments: Every known installment, used to find each client's
            first installment for the setter fee (defaults to `installments`)
    """
    if all_installments is None:
        all_installments = installments

    total_net_revenue = ZERO
    for inst in installments:
        client = clients.get(inst.client_id)
        if client is None:
            total_net_revenue += inst.amount - inst.amount * rates.platform_rate(None)
            continue
        total_net_revenue += (
            inst.amount
            - platform_fee(inst, client, rates)
            - setter_fee(inst, client, all_installments)
        )

    total_deducted = sum((exp.amount for exp in deducted_expenses), ZERO)
    total_to_share = max(ZERO, (total_net_revenue - total_deducted) * rates.distributable_share)

    distribution = representative_distribution(installments, clients, team_members)

    reimbursements: Dict[str, Decimal] = {}
    for exp in deducted_expenses:
        if exp.paid_by:
            reimbursements[exp.paid_by] = reimbursements.get(exp.paid_by, ZERO) + exp.amount

    members = []
    for member in team_members:
        share = percentage_of(total_to_share, parse_amount(distribution.get(member)))
        reimbursement = reimbursements.get(member, ZERO)
        members.append(
            MemberPayout(
                member=member,
                share=share,
                reimbursement=reimbursement,
                total=share + reimbursement,
            )
        )

    return DispatchSummary(
        total_net_revenue=total_net_revenue,
        total_deducted=total_deducted,
        total_to_share=total_to_share,
        members=members,
    )
