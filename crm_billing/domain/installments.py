"""Installment schedule generation and paid-amount bookkeeping"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List

from crm_billing.domain.models import Installment, InstallmentStatus, PaymentMethod
from crm_billing.utils.date_utils import spaced_due_dates
from crm_billing.utils.money import ZERO, round_money

INSTALLMENT_COUNTS = {
    PaymentMethod.ONE_SHOT: 1,
    PaymentMethod.TWO_TIMES: 2,
    PaymentMethod.THREE_TIMES: 3,
    PaymentMethod.FOUR_TIMES: 4,
}


def installment_count(payment_method: PaymentMethod) -> int:
    return INSTALLMENT_COUNTS[PaymentMethod(payment_method)]


def suggested_initial_payment(deal_amount: Decimal, payment_method: PaymentMethod) -> Decimal:
    """First payment to pre-fill on conversion: the whole deal, or one equal share"""
    count = installment_count(payment_method)
    if count == 1:
        return deal_amount
    return round_money(deal_amount / count)


def generate_schedule(
    deal_amount: Decimal,
    payment_method: PaymentMethod,
    already_paid: Decimal,
    start_date: date | None = None,
    interval_days: int = 30,
) -> List[Installment]:
    """
    Build the installment schedule of a deal.

    Requirements:
    - One shot: a single installment for the whole deal, due today, paid only
      if the amount already received covers the deal
    - Split payments: the first installment records what was already paid
      (possibly 0) and is always paid; the remaining balance is split evenly
      over the other installments, due every `interval_days` after today
    - Last installment absorbs the rounding remainder so the schedule sums
      exactly to the deal amount

    Example:
        1000 in 3x with 200 paid → [200 (paid, today), 400 (+30d), 400 (+60d)]
        100 in 4x with 0 paid    → [0 (paid), 33.33, 33.33, 33.34]

    Returns:
        Unsaved Installment objects (no id, no client_id)
    """
    if start_date is None:
        start_date = date.today()

    count = installment_count(payment_method)
    due_dates = spaced_due_dates(start_date, count, interval_days)

    if count == 1:
        status = InstallmentStatus.PAID if already_paid >= deal_amount else InstallmentStatus.PENDING
        return [Installment(amount=deal_amount, due_date=due_dates[0], status=status)]

    installments = [Installment(amount=already_paid, due_date=due_dates[0], status=InstallmentStatus.PAID)]

    remaining = deal_amount - already_paid
    base_amount = round_money(remaining / (count - 1))
    for i in range(1, count):
        if i == count - 1:
            amount = remaining - base_amount * (count - 2)
        else:
            amount = base_amount
        installments.append(
            Installment(amount=amount, due_date=due_dates[i], status=InstallmentStatus.PENDING)
        )

    return installments


def amount_paid_from(installments: Iterable[Installment]) -> Decimal:
    """Sum of installments currently marked paid"""
    return sum((inst.amount for inst in installments if inst.is_paid), ZERO)


def apply_status_change(
    amount_paid: Decimal,
    installment: Installment,
    target_status: InstallmentStatus,
) -> Decimal:
    """
    Client's amount paid after moving `installment` to `target_status`.

    Only crossing the paid boundary changes the total: entering Paid adds the
    installment amount, leaving Paid subtracts it.
    """
    was_paid = installment.status == InstallmentStatus.PAID
    now_paid = InstallmentStatus(target_status) == InstallmentStatus.PAID

    if not was_paid and now_paid:
        return amount_paid + installment.amount
    if was_paid and not now_paid:
        return amount_paid - installment.amount
    return amount_paid


def sort_by_due_date(installments: Iterable[Installment]) -> List[Installment]:
    return sorted(installments, key=lambda inst: inst.due_date)
