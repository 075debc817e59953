from __future__ import annotations

import logging
from typing import Optional

from app.errors import NotFoundError, returns_result
from app.payouts.calculator import calculate_payout
from app.payouts.model import PayoutBreakdown
from app.store.base import Store
from settings import settings

logger = logging.getLogger("hyprive.payouts")


@returns_result
def estimate_payout(
    store: Store,
    campaign_id: str,
    order_value: int,
    quantity: int = 1,
    *,
    organization_id: Optional[str] = None,
) -> PayoutBreakdown:
    with store.transaction() as tx:
        campaign = tx.get_campaign(campaign_id)
    if campaign is None or (organization_id is not None and campaign.organization_id != organization_id):
        raise NotFoundError.for_resource("Campaign")

    breakdown = calculate_payout(
        campaign.payout_rule(settings.DEFAULT_PAYOUT_AMOUNT),
        order_value,
        quantity,
        platform_fee_percent=settings.PLATFORM_FEE_PERCENT,
        gst_percent=settings.GST_PERCENT,
        currency=settings.CURRENCY,
    )
    logger.debug(
        "payout estimated campaign_id=%s order_value=%s quantity=%s net=%s",
        campaign_id,
        order_value,
        quantity,
        breakdown.net_payout,
    )
    return breakdown
