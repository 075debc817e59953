# routes/wallet.py
from fastapi import APIRouter, Depends, Query
from typing import Optional

from app.errors import Result, ValidationError
from app.store.base import Store
from app.wallet import service
from app.wallet.model import HoldState, WalletTransactionType
from deps.auth import get_current_user, CurrentUser
from deps.store import store_dep
from schemas import (
    AddFundsRequest,
    CampaignHoldSummaryOut,
    HoldOut,
    WalletInvariantOut,
    WalletOut,
    WalletSummaryOut,
    WalletTransactionOut,
)
from services.responses import respond, success_response
from services.roles import require_admin, require_reviewer

router = APIRouter(prefix="/v1/wallet", tags=["wallet"])


def _enum_or_error(enum_cls, value: Optional[str], label: str):
    if value is None or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {label}: {value}")


@router.get("")
def get_wallet(
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    result = service.get_wallet_summary(store, user.organization_id)
    return respond(
        result,
        lambda v: WalletSummaryOut(
            balance=WalletOut.model_validate(v[0]),
            active_holds=[CampaignHoldSummaryOut.model_validate(s) for s in v[1]],
        ),
    )


@router.get("/holds")
def list_holds(
    state: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    try:
        hold_state = _enum_or_error(HoldState, state, "hold state")
    except ValidationError as exc:
        return respond(Result.failure(exc))
    result = service.list_holds(store, user.organization_id, state=hold_state)
    return respond(result, lambda rows: [HoldOut.model_validate(h) for h in rows])


@router.get("/transactions")
def list_transactions(
    type: Optional[str] = None,
    limit: int = Query(default=50),
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    try:
        txn_type = _enum_or_error(WalletTransactionType, type, "transaction type")
    except ValidationError as exc:
        return respond(Result.failure(exc))
    result = service.list_transactions(store, user.organization_id, type=txn_type, limit=limit)
    return respond(result, lambda rows: [WalletTransactionOut.model_validate(t) for t in rows])


@router.post("/add-funds")
def add_funds(
    body: AddFundsRequest,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    result = service.add_funds(
        store,
        organization_id=user.organization_id,
        amount=body.amount,
        reference=body.reference,
    )
    return respond(result, WalletOut.model_validate)


@router.get("/invariants")
def wallet_invariants(
    user: CurrentUser = Depends(require_admin),
    store: Store = Depends(store_dep),
):
    result = service.wallet_invariants(store, user.organization_id)
    if not result.ok:
        return respond(result)
    items = [WalletInvariantOut(**item) for item in result.value]
    return success_response(
        {"ok": all(i.ok for i in items), "items": [i.model_dump() for i in items]},
    )
