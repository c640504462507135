"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

DEFAULT_DISTRIBUTION: Dict[str, Decimal] = {
    "Noé": Decimal("33.33"),
    "Baptiste": Decimal("33.33"),
    "Imrane": Decimal("33.34"),
}


class PaymentMethod(str, Enum):
    ONE_SHOT = "One shot"
    TWO_TIMES = "2x"
    THREE_TIMES = "3x"
    FOUR_TIMES = "4x"


class BillingPlatform(str, Enum):
    MOLLIE = "Mollie"
    GOCARDLESS = "GoCardless"
    REVOLUT = "Revolut"


class InstallmentStatus(str, Enum):
    PENDING = "En attente"
    IN_TRANSIT = "En transit"
    PAID = "Payé"


class ExpenseType(str, Enum):
    ONE_SHOT = "one-shot"
    MONTHLY = "monthly"


class ContactStatus(str, Enum):
    CALL_SCHEDULED = "Call planifié"
    CALL_BACK = "A recontacter"
    CLOSED = "Closé"
    AWAITING_PAYMENT = "Attente paiement"
    AWAITING_REPLY = "Attente retour"
    NO_SHOW = "Pas venu"
    NO_BUDGET = "Pas budget"


class PipelineStatus(str, Enum):
    PROSPECT = "prospect"
    R1_SCHEDULED = "r1_planifie"
    R1_DONE = "r1_realise"
    QUALIFIED = "qualifie"
    NOT_QUALIFIED = "non_qualifie"
    R2_SCHEDULED = "r2_planifie"
    R2_DONE = "r2_realise"
    CLOSED_WON = "close_gagne"
    CLOSED_LOST = "close_perdu"


@dataclass
class Client:
    """Signed deal with its billing configuration"""

    deal_amount: Decimal
    amount_paid: Decimal = Decimal("0")
    payment_method: PaymentMethod = PaymentMethod.ONE_SHOT
    billing_platform: Optional[BillingPlatform] = BillingPlatform.MOLLIE
    closed_by: Optional[str] = None
    setter_commission_percentage: Decimal = Decimal("0")
    commission_distribution: Dict[str, Decimal] = field(default_factory=lambda: dict(DEFAULT_DISTRIBUTION))
    is_dispatched: bool = False
    contact_id: Optional[uuid.UUID] = None
    id: Optional[uuid.UUID] = None


@dataclass
class Installment:
    """Single payment of a client's schedule"""

    amount: Decimal
    due_date: date
    status: InstallmentStatus = InstallmentStatus.PENDING
    is_dispatched: bool = False
    client_id: Optional[uuid.UUID] = None
    id: Optional[uuid.UUID] = None

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID


@dataclass
class Expense:
    """Team expense, optionally reimbursed through dispatch"""

    name: str
    amount: Decimal
    date: date
    type: ExpenseType = ExpenseType.ONE_SHOT
    category: Optional[str] = None
    paid_by: Optional[str] = None
    is_deducted: bool = False
    id: Optional[uuid.UUID] = None


@dataclass
class FeeBreakdown:
    """Fees and distribution for one installment"""

    gross: Decimal
    platform_fee: Decimal
    setter_fee: Decimal
    net_for_distribution: Decimal
    per_member: Dict[str, Decimal]


@dataclass
class MemberPayout:
    member: str
    share: Decimal
    reimbursement: Decimal
    total: Decimal


@dataclass
class DispatchSummary:
    """Output of a dispatch run over paid, undispatched installments"""

    total_net_revenue: Decimal
    total_deducted: Decimal
    total_to_share: Decimal
    members: List[MemberPayout]


@dataclass
class BillingOverview:
    total_signed: Decimal
    total_collected: Decimal
    total_expenses: Decimal
    total_deducted: Decimal
    total_setter_commissions: Decimal
    net_benefit: Decimal


@dataclass
class PortfolioSummary:
    total_deals: Decimal
    total_paid: Decimal
    total_outstanding: Decimal


@dataclass
class PipelineHistoryEntry:
    """Recorded change of a contact's pipeline status"""

    contact_id: uuid.UUID
    status: PipelineStatus
    notes: Optional[str] = None
    r1_date: Optional[date] = None
    r2_date: Optional[date] = None
    changed_at: Optional[datetime] = None
