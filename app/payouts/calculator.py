# app/payouts/calculator.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from app.errors import ValidationError
from app.payouts.model import PayoutBreakdown, PayoutLine, PayoutRule, PayoutTier

DEFAULT_PLATFORM_FEE_PERCENT = 2
DEFAULT_GST_PERCENT = 18
DEFAULT_CURRENCY = "INR"

CURRENCY_SYMBOLS = {"INR": "₹"}


def round_minor(value: Decimal) -> int:
    """Half-up rounding to a whole minor unit (what the dashboard always showed)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent: float | int) -> int:
    return round_minor(Decimal(amount) * Decimal(str(percent)) / Decimal(100))


def format_amount(amount: int, currency: str = DEFAULT_CURRENCY) -> str:
    return f"{CURRENCY_SYMBOLS.get(currency, currency + ' ')}{amount:,}"


def select_tier(tiers: Iterable[PayoutTier], order_value: int) -> Optional[PayoutTier]:
    qualifying = [t for t in tiers if order_value >= t.min_order_value]
    if not qualifying:
        return None
    # richest applicable tier: highest threshold wins
    return max(qualifying, key=lambda t: t.min_order_value)


def build_breakdown(
    *,
    order_value: int,
    quantity: int,
    payout_per_unit: int,
    platform_fee_percent: float | int,
    gst_percent: float | int,
    currency: str = DEFAULT_CURRENCY,
    applicable_tier: Optional[PayoutTier] = None,
) -> PayoutBreakdown:
    total_payout = payout_per_unit * quantity
    platform_fee = percent_of(total_payout, platform_fee_percent)
    # GST is levied on the platform fee, the taxable service charge
    gst_amount = percent_of(platform_fee, gst_percent)
    total_deductions = platform_fee + gst_amount
    net_payout = total_payout - total_deductions

    lines = [
        PayoutLine("Order Value", order_value * quantity, "info"),
        PayoutLine(
            f"Payout ({quantity} x {format_amount(payout_per_unit, currency)})",
            total_payout,
            "earning",
        ),
        PayoutLine(f"Platform Fee ({_pct(platform_fee_percent)}%)", -platform_fee, "deduction"),
        PayoutLine(f"GST ({_pct(gst_percent)}%)", -gst_amount, "deduction"),
        PayoutLine("Net Payout", net_payout, "total"),
    ]

    return PayoutBreakdown(
        order_value=order_value,
        quantity=quantity,
        payout_per_unit=payout_per_unit,
        total_payout=total_payout,
        platform_fee_percent=platform_fee_percent,
        platform_fee=platform_fee,
        gst_percent=gst_percent,
        gst_amount=gst_amount,
        total_deductions=total_deductions,
        net_payout=net_payout,
        currency=currency,
        applicable_tier=applicable_tier,
        breakdown=lines,
    )


def calculate_payout(
    rule: PayoutRule,
    order_value: int,
    quantity: int = 1,
    *,
    platform_fee_percent: float | int = DEFAULT_PLATFORM_FEE_PERCENT,
    gst_percent: float | int = DEFAULT_GST_PERCENT,
    currency: str = DEFAULT_CURRENCY,
) -> PayoutBreakdown:
    """
    Compute the payout for an order under a campaign's payout rule.

    Tiers are matched on order value; the tier with the highest qualifying
    threshold wins, otherwise the rule's base payout applies. Fee and GST are
    rounded at each step so the figure is reproducible and matches what was
    held against the wallet.
    """
    if order_value is None or order_value <= 0:
        raise ValidationError("Order value is required and must be positive")
    if quantity is None or int(quantity) < 1:
        raise ValidationError("Quantity must be at least 1")
    if order_value < rule.min_order_value:
        raise ValidationError(f"Order value must be at least {format_amount(rule.min_order_value, currency)}")

    tier = select_tier(rule.tiers, order_value)
    payout_per_unit = tier.payout_amount if tier is not None else rule.payout_amount

    return build_breakdown(
        order_value=order_value,
        quantity=int(quantity),
        payout_per_unit=payout_per_unit,
        platform_fee_percent=platform_fee_percent,
        gst_percent=gst_percent,
        currency=currency,
        applicable_tier=tier,
    )


def _pct(value: float | int) -> str:
    return f"{value:g}"
