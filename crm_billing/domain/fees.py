"""Platform fee, setter commission and partner distribution per installment"""

from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional, Sequence

from crm_billing.domain.exceptions import InvalidDistributionError, UnknownTeamMemberError
from crm_billing.domain.installments import sort_by_due_date
from crm_billing.domain.models import Client, FeeBreakdown, Installment
from crm_billing.domain.rates import DEFAULT_RATE_CARD, RateCard
from crm_billing.utils.money import ZERO, parse_amount, percentage_of, round_money

DISTRIBUTION_TOLERANCE = Decimal("0.01")


def platform_fee(installment: Installment, client: Client, rates: RateCard = DEFAULT_RATE_CARD) -> Decimal:
    """Processing fee of the client's billing platform on this installment's own amount"""
    return installment.amount * rates.platform_rate(client.billing_platform)


def is_first_installment(installment: Installment, client_installments: Iterable[Installment]) -> bool:
    ordered = sort_by_due_date(client_installments)
    if not ordered:
        return False
    first = ordered[0]
    if first is installment:
        return True
    return first.id is not None and first.id == installment.id


def setter_fee(
    installment: Installment,
    client: Client,
    all_installments: Iterable[Installment],
) -> Decimal:
    """
    Setter commission carried by this installment.

    The commission is sized on the whole deal but charged once, on the
    client's earliest-due installment. Every other installment carries 0.
    """
    percentage = client.setter_commission_percentage or ZERO
    if percentage <= 0:
        return ZERO

    client_installments = [inst for inst in all_installments if inst.client_id == installment.client_id]
    if installment not in client_installments:
        client_installments.append(installment)

    if not is_first_installment(installment, client_installments):
        return ZERO
    return percentage_of(client.deal_amount, percentage)


def distribute(net: Decimal, distribution: Mapping[str, object]) -> Dict[str, Decimal]:
    """Split `net` by member percentage, leaving out members with nothing to receive"""
    shares = {}
    for member, percentage in distribution.items():
        amount = percentage_of(net, parse_amount(percentage))
        if amount > 0:
            shares[member] = amount
    return shares


def compute_fees(
    installment: Installment,
    client: Client,
    all_installments: Sequence[Installment],
    rates: RateCard = DEFAULT_RATE_CARD,
) -> FeeBreakdown:
    """
    Fee breakdown of one installment.

    net_for_distribution = (gross - platform fee - setter fee) * distributable share

    Example:
        Mollie, 500, no setter → platform 10, net (500 - 10) * 0.7 = 343
    """
    gross = installment.amount
    platform = platform_fee(installment, client, rates)
    setter = setter_fee(installment, client, all_installments)
    net = (gross - platform - setter) * rates.distributable_share

    return FeeBreakdown(
        gross=gross,
        platform_fee=platform,
        setter_fee=setter,
        net_for_distribution=net,
        per_member=distribute(net, client.commission_distribution or {}),
    )


def validate_distribution(distribution: Mapping[str, object], team_members: Sequence[str]) -> Dict[str, Decimal]:
    """
    Normalize a commission distribution and check it against the roster.

    Raises:
        InvalidDistributionError: unknown member, negative share, or a total
            other than 100 (within 0.01)
    """
    normalized = {member: parse_amount(percentage) for member, percentage in distribution.items()}

    unknown = sorted(set(normalized) - set(team_members))
    if unknown:
        raise InvalidDistributionError(f"Unknown team members: {', '.join(unknown)}")
    if any(percentage < 0 for percentage in normalized.values()):
        raise InvalidDistributionError("Distribution percentages cannot be negative")

    total = sum(normalized.values(), ZERO)
    if abs(total - Decimal("100")) > DISTRIBUTION_TOLERANCE:
        raise InvalidDistributionError(f"Distribution must total 100%, got {total}%")

    return normalized


def even_distribution(team_members: Sequence[str]) -> Dict[str, Decimal]:
    """
    Equal split of 100% across the roster, last member taking the rounding remainder.

    Three members → 33.33 / 33.33 / 33.34
    """
    if not team_members:
        return {}
    base = round_money(Decimal("100") / len(team_members))
    distribution = {member: base for member in team_members[:-1]}
    distribution[team_members[-1]] = Decimal("100") - base * (len(team_members) - 1)
    return distribution


def validate_member(member: Optional[str], team_members: Sequence[str]) -> Optional[str]:
    if member is not None and member not in team_members:
        raise UnknownTeamMemberError(f"{member!r} is not a team member")
    return member
