from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class EnrollmentStatus(str, Enum):
    ENROLLED = "enrolled"
    AWAITING_SUBMISSION = "awaiting_submission"
    AWAITING_REVIEW = "awaiting_review"
    CHANGES_REQUESTED = "changes_requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"


class EnrollmentAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"
    WITHDRAW = "withdraw"
    EXPIRE = "expire"
    SUBMIT_DELIVERABLES = "submit_deliverables"
    RESUBMIT = "resubmit"


class ActorType(str, Enum):
    SYSTEM = "system"
    SHOPPER = "shopper"
    BRAND = "brand"


@dataclass(frozen=True)
class Actor:
    type: ActorType
    id: str
    name: Optional[str] = None

    @classmethod
    def system(cls) -> "Actor":
        return cls(type=ActorType.SYSTEM, id="system", name="System")


SYSTEM_ACTOR = Actor.system()


@dataclass(frozen=True)
class Enrollment:
    id: UUID
    organization_id: str
    campaign_id: str
    shopper_id: str
    status: EnrollmentStatus

    # order facts
    order_id: str
    order_value: int
    order_date: datetime
    quantity: int

    # economics locked at enrollment time
    bill_rate: int
    bill_amount: int
    platform_fee_percent: float
    gst_percent: float
    platform_fee: int
    gst_amount: int
    net_payout: int

    created_at: datetime
    updated_at: datetime
    submission_deadline: Optional[datetime] = None


@dataclass(frozen=True)
class TransitionEntry:
    id: UUID
    enrollment_id: UUID
    from_status: Optional[EnrollmentStatus]
    to_status: EnrollmentStatus
    action: Optional[EnrollmentAction]
    actor_type: ActorType
    actor_id: str
    reason: Optional[str]
    created_at: datetime
    actor_name: Optional[str] = None


@dataclass(frozen=True)
class TransitionHistory:
    enrollment_id: UUID
    current_status: EnrollmentStatus
    allowed_transitions: list[EnrollmentAction]
    history: list[TransitionEntry] = field(default_factory=list)


@dataclass(frozen=True)
class BulkFailure:
    id: str
    code: str
    error: str


@dataclass(frozen=True)
class BulkResult:
    action: EnrollmentAction
    succeeded: list[Enrollment] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)
