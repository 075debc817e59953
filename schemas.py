# schemas.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime
from typing import Optional, List

from app.enrollments.model import ActorType, EnrollmentAction, EnrollmentStatus
from app.wallet.model import HoldState, WalletTransactionType


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -------- ENROLLMENTS --------
class EnrollmentCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    campaign_id: str
    shopper_id: str
    order_id: str
    order_value: int
    quantity: int = 1
    order_date: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None


class TransitionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    action: str
    reason: Optional[str] = None
    expected_status: Optional[str] = None


class ReasonRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    reason: Optional[str] = None


class ApproveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    remarks: Optional[str] = None


class ExtendDeadlineRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    new_deadline: datetime
    reason: Optional[str] = None


class BulkTransitionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    ids: List[str]
    action: str
    reason: Optional[str] = None
    remarks: Optional[str] = None


class EnrollmentOut(_Out):
    id: UUID
    organization_id: str
    campaign_id: str
    shopper_id: str
    status: EnrollmentStatus
    order_id: str
    order_value: int
    order_date: datetime
    quantity: int
    bill_rate: int
    bill_amount: int
    platform_fee_percent: float
    gst_percent: float
    platform_fee: int
    gst_amount: int
    net_payout: int
    submission_deadline: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TransitionEntryOut(_Out):
    id: UUID
    from_status: Optional[EnrollmentStatus] = None
    to_status: EnrollmentStatus
    action: Optional[EnrollmentAction] = None
    actor_type: ActorType
    actor_id: str
    actor_name: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime


class TransitionHistoryOut(_Out):
    enrollment_id: UUID
    current_status: EnrollmentStatus
    allowed_transitions: List[EnrollmentAction]
    history: List[TransitionEntryOut]


class BulkFailureOut(_Out):
    id: str
    code: str
    error: str


class BulkResultOut(_Out):
    action: EnrollmentAction
    succeeded_count: int
    failed_count: int
    succeeded: List[EnrollmentOut]
    failed: List[BulkFailureOut]


# -------- PAYOUTS --------
class CalculatePayoutRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    order_value: Optional[int] = None
    quantity: int = 1


class PayoutTierOut(_Out):
    min_order_value: int
    payout_amount: int


class PayoutLineOut(_Out):
    label: str
    amount: int
    type: str


class PayoutBreakdownOut(_Out):
    order_value: int
    quantity: int
    payout_per_unit: int
    total_payout: int
    platform_fee_percent: float
    platform_fee: int
    gst_percent: float
    gst_amount: int
    total_deductions: int
    net_payout: int
    currency: str
    applicable_tier: Optional[PayoutTierOut] = None
    breakdown: List[PayoutLineOut]


# -------- WALLET --------
class AddFundsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    amount: int
    reference: Optional[str] = Field(default=None, max_length=100)


class WalletOut(_Out):
    organization_id: str
    available_balance: int
    held_amount: int
    credit_limit: int
    credit_utilized: int
    credit_available: int
    currency: str
    updated_at: datetime


class CampaignHoldSummaryOut(_Out):
    campaign_id: str
    enrollment_count: int
    hold_amount: int


class WalletSummaryOut(BaseModel):
    balance: WalletOut
    active_holds: List[CampaignHoldSummaryOut]


class HoldOut(_Out):
    id: UUID
    campaign_id: str
    enrollment_id: UUID
    amount: int
    credit_drawn: int
    state: HoldState
    created_at: datetime
    settled_at: Optional[datetime] = None


class WalletTransactionOut(_Out):
    id: UUID
    type: WalletTransactionType
    amount: int
    description: str
    enrollment_id: Optional[UUID] = None
    reference: Optional[str] = None
    created_at: datetime


class WalletInvariantOut(BaseModel):
    organization_id: str
    held_amount: int
    active_holds_sum: int
    diff: int
    available_balance: int
    credit_limit: int
    credit_utilized: int
    balance_ok: bool
    credit_ok: bool
    ok: bool
