"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, Field

from crm_billing.domain.models import (
    BillingPlatform,
    ContactStatus,
    ExpenseType,
    InstallmentStatus,
    PaymentMethod,
    PipelineStatus,
)
from crm_billing.utils.money import parse_amount

# Non-numeric input becomes 0 instead of a validation error
LenientDecimal = Annotated[Decimal, BeforeValidator(parse_amount)]

# Alias for models that also have a field named `date`
ExpenseDate = date


# Contacts


class ContactCreate(BaseModel):
    """Request body for POST /v1/contacts"""

    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[ContactStatus] = None
    notes: Optional[str] = None


class ContactUpdate(BaseModel):
    """Request body for PATCH /v1/contacts/{contact_id}; omitted fields are left as they are"""

    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[ContactStatus] = None
    notes: Optional[str] = None


class ContactStatusUpdate(BaseModel):
    status: ContactStatus


class ContactResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[ContactStatus] = None
    pipeline_status: PipelineStatus
    notes: Optional[str] = None


class PipelineChangeRequest(BaseModel):
    """Request body for POST /v1/contacts/{contact_id}/pipeline"""

    status: PipelineStatus
    notes: Optional[str] = None
    r1_date: Optional[date] = None
    r2_date: Optional[date] = None


class PipelineHistoryItem(BaseModel):
    id: uuid.UUID
    status: PipelineStatus
    label: str
    notes: Optional[str] = None
    r1_date: Optional[date] = None
    r2_date: Optional[date] = None
    changed_at: datetime


class PipelineResponse(BaseModel):
    contact_id: uuid.UUID
    pipeline_status: PipelineStatus
    step_index: int = Field(..., description="Position on the main steps, -1 once terminal")
    is_terminal: bool
    history: List[PipelineHistoryItem]


# Clients and installments


class ConvertToClientRequest(BaseModel):
    """Request body for POST /v1/contacts/{contact_id}/convert"""

    deal_amount: LenientDecimal = Field(..., ge=0)
    payment_method: PaymentMethod = PaymentMethod.ONE_SHOT
    billing_platform: BillingPlatform = BillingPlatform.MOLLIE
    closed_by: Optional[str] = None
    setter_commission_percentage: LenientDecimal = Field(Decimal("0"), ge=0)
    amount_paid: Optional[LenientDecimal] = Field(None, ge=0, description="Defaults to one equal share of the deal")
    commission_distribution: Optional[Dict[str, LenientDecimal]] = None


class ClientUpdate(BaseModel):
    """Request body for PATCH /v1/clients/{client_id}"""

    deal_amount: Optional[LenientDecimal] = Field(None, ge=0)
    amount_paid: Optional[LenientDecimal] = Field(None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    billing_platform: Optional[BillingPlatform] = None
    closed_by: Optional[str] = None
    setter_commission_percentage: Optional[LenientDecimal] = Field(None, ge=0)
    commission_distribution: Optional[Dict[str, LenientDecimal]] = None
    is_dispatched: Optional[bool] = None


class ScheduleRequest(BaseModel):
    """Request body for POST /v1/clients/{client_id}/schedule"""

    confirm: bool = Field(False, description="Required to replace an existing schedule")


class InstallmentSchema(BaseModel):
    """Single installment in a client's schedule"""

    id: uuid.UUID
    client_id: uuid.UUID
    amount: Decimal
    due_date: date
    status: InstallmentStatus
    is_dispatched: bool


class ClientResponse(BaseModel):
    id: uuid.UUID
    contact_id: Optional[uuid.UUID] = None
    contact_name: Optional[str] = None
    deal_amount: Decimal
    amount_paid: Decimal
    amount_pending: Decimal
    payment_method: PaymentMethod
    billing_platform: Optional[BillingPlatform] = None
    closed_by: Optional[str] = None
    setter_commission_percentage: Decimal
    setter_commission_amount: Decimal
    commission_distribution: Dict[str, Decimal]
    is_dispatched: bool
    next_due_date: Optional[date] = None
    schedule_outdated: bool = False
    installments: List[InstallmentSchema]


class PortfolioSchema(BaseModel):
    total_deals: Decimal
    total_paid: Decimal
    total_outstanding: Decimal


class ClientListResponse(BaseModel):
    """Response for GET /v1/clients"""

    clients: List[ClientResponse]
    portfolio: PortfolioSchema


class InstallmentStatusUpdate(BaseModel):
    status: InstallmentStatus


class InstallmentStatusResponse(BaseModel):
    installment: InstallmentSchema
    client_amount_paid: Decimal


class DispatchFlagRequest(BaseModel):
    """Request body for PUT /v1/installments/{installment_id}/dispatch"""

    is_dispatched: Optional[bool] = Field(None, description="Flips the current flag when omitted")


# Expenses


class ExpenseCreate(BaseModel):
    """Request body for POST /v1/expenses"""

    name: str = Field(..., min_length=1)
    amount: LenientDecimal = Field(..., ge=0)
    type: ExpenseType = ExpenseType.ONE_SHOT
    date: Optional[ExpenseDate] = None
    category: Optional[str] = None
    paid_by: Optional[str] = None
    is_deducted: bool = False


class ExpenseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    amount: Optional[LenientDecimal] = Field(None, ge=0)
    type: Optional[ExpenseType] = None
    date: Optional[ExpenseDate] = None
    category: Optional[str] = None
    paid_by: Optional[str] = None
    is_deducted: Optional[bool] = None


class DeductionPeriod(BaseModel):
    month: int
    year: int


class ExpenseResponse(BaseModel):
    id: uuid.UUID
    name: str
    amount: Decimal
    type: ExpenseType
    date: ExpenseDate
    category: Optional[str] = None
    paid_by: Optional[str] = None
    is_deducted: bool
    deduction_periods: List[DeductionPeriod] = []


class ExpenseListResponse(BaseModel):
    """Response for GET /v1/expenses"""

    expenses: List[ExpenseResponse]
    total: Decimal
    count: int


# Billing


class BillingOverviewResponse(BaseModel):
    """Response for GET /v1/billing/overview"""

    total_signed: Decimal
    total_collected: Decimal
    total_expenses: Decimal
    total_deducted: Decimal
    total_setter_commissions: Decimal
    net_benefit: Decimal


class DispatchRow(BaseModel):
    """Fee breakdown of one paid installment"""

    installment_id: uuid.UUID
    client_id: uuid.UUID
    contact_name: Optional[str] = None
    due_date: date
    billing_platform: Optional[BillingPlatform] = None
    gross: Decimal
    platform_fee: Decimal
    setter_fee: Decimal
    net_for_distribution: Decimal
    per_member: Dict[str, Decimal]
    is_dispatched: bool


class MemberPayoutSchema(BaseModel):
    member: str
    share: Decimal
    reimbursement: Decimal
    total: Decimal


class DispatchSummarySchema(BaseModel):
    total_net_revenue: Decimal
    total_deducted: Decimal
    total_to_share: Decimal
    members: List[MemberPayoutSchema]


class DispatchResponse(BaseModel):
    """Response for GET /v1/billing/dispatch"""

    view: str
    month: Optional[int] = None
    year: Optional[int] = None
    rows: List[DispatchRow]
    summary: Optional[DispatchSummarySchema] = None
