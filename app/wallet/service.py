# app/wallet/service.py
from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from app.errors import NotFoundError, ValidationError, returns_result
from app.payouts.calculator import format_amount
from app.store.base import Store
from app.wallet import ledger
from app.wallet.model import CampaignHoldSummary, Hold, HoldState, Wallet, WalletTransaction, WalletTransactionType
from settings import settings


@returns_result
def get_wallet(store: Store, organization_id: str) -> Wallet:
    with store.transaction() as tx:
        wallet = tx.get_wallet(organization_id)
    if wallet is None:
        raise NotFoundError.for_resource("Wallet")
    return wallet


@returns_result
def get_wallet_summary(store: Store, organization_id: str) -> tuple[Wallet, list[CampaignHoldSummary]]:
    with store.transaction() as tx:
        wallet = tx.get_wallet(organization_id)
        if wallet is None:
            raise NotFoundError.for_resource("Wallet")
        holds = tx.list_holds(organization_id, state=HoldState.ACTIVE)
    return wallet, ledger.summarize_active_holds(holds)


@returns_result
def open_wallet(
    store: Store,
    *,
    organization_id: str,
    opening_balance: int = 0,
    credit_limit: int = 0,
    currency: Optional[str] = None,
) -> Wallet:
    with store.transaction() as tx:
        return ledger.open_wallet(
            tx,
            organization_id=organization_id,
            opening_balance=opening_balance,
            credit_limit=credit_limit,
            currency=currency or settings.CURRENCY,
        )


@returns_result
def add_funds(store: Store, *, organization_id: str, amount: int, reference: Optional[str] = None) -> Wallet:
    if amount < settings.ADD_FUNDS_MIN:
        raise ValidationError(f"Minimum deposit is {format_amount(settings.ADD_FUNDS_MIN, settings.CURRENCY)}")
    if amount > settings.ADD_FUNDS_MAX:
        raise ValidationError(f"Maximum deposit is {format_amount(settings.ADD_FUNDS_MAX, settings.CURRENCY)}")
    with store.transaction() as tx:
        return ledger.add_funds(tx, organization_id=organization_id, amount=amount, reference=reference)


@returns_result
def create_hold(
    store: Store,
    *,
    organization_id: str,
    campaign_id: str,
    enrollment_id: UUID,
    amount: int,
) -> Hold:
    with store.transaction() as tx:
        return ledger.create_hold(
            tx,
            organization_id=organization_id,
            campaign_id=campaign_id,
            enrollment_id=enrollment_id,
            amount=amount,
        )


@returns_result
def commit_hold(store: Store, *, enrollment_id: UUID) -> Optional[Hold]:
    with store.transaction() as tx:
        return ledger.commit_hold(tx, enrollment_id=enrollment_id)


@returns_result
def void_hold(store: Store, *, enrollment_id: UUID) -> Optional[Hold]:
    with store.transaction() as tx:
        return ledger.void_hold(tx, enrollment_id=enrollment_id)


@returns_result
def list_holds(store: Store, organization_id: str, *, state: Optional[HoldState] = None) -> list[Hold]:
    with store.transaction() as tx:
        return tx.list_holds(organization_id, state=state)


@returns_result
def list_transactions(
    store: Store,
    organization_id: str,
    *,
    type: Optional[WalletTransactionType] = None,
    limit: int = 50,
) -> list[WalletTransaction]:
    if limit < 1 or limit > 200:
        raise ValidationError("Limit must be between 1 and 200")
    with store.transaction() as tx:
        return tx.list_wallet_transactions(organization_id, type=type, limit=limit)


@returns_result
def wallet_invariants(store: Store, organization_id: Optional[str] = None) -> list[dict[str, Any]]:
    with store.transaction() as tx:
        org_ids = [organization_id] if organization_id else tx.list_wallet_organization_ids()
        return [ledger.check_invariants(tx, org_id) for org_id in org_ids]
