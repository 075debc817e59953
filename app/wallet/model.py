from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class HoldState(str, Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    VOIDED = "voided"


class WalletTransactionType(str, Enum):
    CREDIT = "credit"
    HOLD_CREATED = "hold_created"
    HOLD_COMMITTED = "hold_committed"
    HOLD_VOIDED = "hold_voided"


@dataclass(frozen=True)
class Wallet:
    organization_id: str
    available_balance: int
    held_amount: int
    credit_limit: int
    credit_utilized: int
    currency: str
    updated_at: datetime

    @property
    def credit_available(self) -> int:
        return self.credit_limit - self.credit_utilized

    @property
    def spendable(self) -> int:
        """What a new hold may still reserve: free balance plus unused credit."""
        return self.available_balance - self.held_amount + self.credit_available


@dataclass(frozen=True)
class Hold:
    id: UUID
    organization_id: str
    campaign_id: str
    enrollment_id: UUID
    amount: int
    state: HoldState
    created_at: datetime
    credit_drawn: int = 0
    settled_at: Optional[datetime] = None


@dataclass(frozen=True)
class WalletTransaction:
    id: UUID
    organization_id: str
    type: WalletTransactionType
    amount: int
    description: str
    created_at: datetime
    enrollment_id: Optional[UUID] = None
    reference: Optional[str] = None


@dataclass(frozen=True)
class CampaignHoldSummary:
    campaign_id: str
    enrollment_count: int
    hold_amount: int
