from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class PayoutTier:
    min_order_value: int
    payout_amount: int


@dataclass(frozen=True)
class PayoutRule:
    payout_amount: int
    min_order_value: int = 0
    tiers: tuple[PayoutTier, ...] = ()


@dataclass(frozen=True)
class Campaign:
    id: str
    organization_id: str
    name: str
    payout_amount: Optional[int] = None
    min_order_value: Optional[int] = None
    payout_tiers: tuple[PayoutTier, ...] = ()

    def payout_rule(self, default_payout_amount: int) -> PayoutRule:
        return PayoutRule(
            payout_amount=self.payout_amount if self.payout_amount is not None else default_payout_amount,
            min_order_value=self.min_order_value or 0,
            tiers=tuple(self.payout_tiers),
        )


@dataclass(frozen=True)
class PayoutLine:
    label: str
    amount: int
    type: str  # info | earning | deduction | total


@dataclass(frozen=True)
class PayoutBreakdown:
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
    applicable_tier: Optional[PayoutTier] = None
    breakdown: list[PayoutLine] = field(default_factory=list)
