from __future__ import annotations

from fastapi import APIRouter, Depends

from app.payouts.service import estimate_payout
from app.store.base import Store
from deps.auth import get_current_user, CurrentUser
from deps.store import store_dep
from schemas import CalculatePayoutRequest, PayoutBreakdownOut
from services.responses import respond

router = APIRouter(prefix="/v1/campaigns", tags=["campaigns"])


@router.post("/{campaign_id}/calculate-payout")
def calculate_payout(
    campaign_id: str,
    body: CalculatePayoutRequest,
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    result = estimate_payout(
        store,
        campaign_id,
        body.order_value,
        body.quantity,
        organization_id=user.organization_id,
    )
    return respond(result, PayoutBreakdownOut.model_validate)
