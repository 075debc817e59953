# app/wallet/ledger.py
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from uuid import UUID, uuid4

from app.errors import (
    ConflictError,
    InsufficientCreditError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.store.base import StoreTransaction
from app.wallet.model import (
    CampaignHoldSummary,
    Hold,
    HoldState,
    Wallet,
    WalletTransaction,
    WalletTransactionType,
)

logger = logging.getLogger("hyprive.wallet")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _locked_wallet(tx: StoreTransaction, organization_id: str) -> Wallet:
    wallet = tx.get_wallet(organization_id, for_update=True)
    if wallet is None:
        raise NotFoundError.for_resource("Wallet")
    return wallet


def _record(
    tx: StoreTransaction,
    *,
    organization_id: str,
    type: WalletTransactionType,
    amount: int,
    description: str,
    at: datetime,
    enrollment_id: Optional[UUID] = None,
    reference: Optional[str] = None,
) -> None:
    tx.append_wallet_transaction(
        WalletTransaction(
            id=uuid4(),
            organization_id=organization_id,
            type=type,
            amount=amount,
            description=description,
            enrollment_id=enrollment_id,
            reference=reference,
            created_at=at,
        )
    )


# ==========================================================
# Invariants
# ==========================================================

def check_invariants(tx: StoreTransaction, organization_id: str) -> dict[str, Any]:
    wallet = tx.get_wallet(organization_id)
    if wallet is None:
        raise NotFoundError.for_resource("Wallet")

    active_sum = sum(h.amount for h in tx.list_holds(organization_id, state=HoldState.ACTIVE))
    diff = wallet.held_amount - active_sum
    balance_ok = wallet.available_balance >= 0
    credit_ok = 0 <= wallet.credit_utilized <= wallet.credit_limit

    return {
        "organization_id": organization_id,
        "held_amount": wallet.held_amount,
        "active_holds_sum": active_sum,
        "diff": diff,
        "available_balance": wallet.available_balance,
        "credit_limit": wallet.credit_limit,
        "credit_utilized": wallet.credit_utilized,
        "balance_ok": balance_ok,
        "credit_ok": credit_ok,
        "ok": diff == 0 and balance_ok and credit_ok,
    }


def assert_invariants(tx: StoreTransaction, organization_id: str) -> None:
    report = check_invariants(tx, organization_id)
    if not report["ok"]:
        logger.error("wallet invariant violated %s", report)
        raise InternalError()


# ==========================================================
# Wallet lifecycle
# ==========================================================

def open_wallet(
    tx: StoreTransaction,
    *,
    organization_id: str,
    opening_balance: int = 0,
    credit_limit: int = 0,
    currency: str = "INR",
) -> Wallet:
    if opening_balance < 0 or credit_limit < 0:
        raise ValidationError("Opening balance and credit limit cannot be negative")
    if tx.get_wallet(organization_id, for_update=True) is not None:
        raise ConflictError("Wallet already exists for this organization")

    now = _utcnow()
    wallet = Wallet(
        organization_id=organization_id,
        available_balance=opening_balance,
        held_amount=0,
        credit_limit=credit_limit,
        credit_utilized=0,
        currency=currency,
        updated_at=now,
    )
    tx.insert_wallet(wallet)
    if opening_balance:
        _record(
            tx,
            organization_id=organization_id,
            type=WalletTransactionType.CREDIT,
            amount=opening_balance,
            description="Opening balance",
            at=now,
        )
    logger.info(
        "wallet opened org=%s balance=%s credit_limit=%s currency=%s",
        organization_id,
        opening_balance,
        credit_limit,
        currency,
    )
    return wallet


def add_funds(
    tx: StoreTransaction,
    *,
    organization_id: str,
    amount: int,
    reference: Optional[str] = None,
) -> Wallet:
    """
    Credit the wallet. Outstanding credit is repaid first, the rest lands in the balance.
    """
    if amount <= 0:
        raise ValidationError("Amount must be positive")

    wallet = _locked_wallet(tx, organization_id)
    repay = min(amount, wallet.credit_utilized)
    now = _utcnow()
    updated = replace(
        wallet,
        credit_utilized=wallet.credit_utilized - repay,
        available_balance=wallet.available_balance + (amount - repay),
        updated_at=now,
    )
    tx.save_wallet(updated)
    _record(
        tx,
        organization_id=organization_id,
        type=WalletTransactionType.CREDIT,
        amount=amount,
        description="Funds added" if not repay else f"Funds added ({repay} applied to credit)",
        at=now,
        reference=reference,
    )
    assert_invariants(tx, organization_id)
    logger.info("funds added org=%s amount=%s credit_repaid=%s", organization_id, amount, repay)
    return updated


# ==========================================================
# Holds
# ==========================================================

def create_hold(
    tx: StoreTransaction,
    *,
    organization_id: str,
    campaign_id: str,
    enrollment_id: UUID,
    amount: int,
) -> Hold:
    if amount <= 0:
        raise ValidationError("Hold amount must be positive")

    wallet = _locked_wallet(tx, organization_id)

    if tx.get_active_hold(enrollment_id) is not None:
        raise ConflictError("Enrollment already has an active hold")

    if amount > wallet.spendable:
        logger.info(
            "hold declined org=%s enrollment_id=%s amount=%s spendable=%s",
            organization_id,
            enrollment_id,
            amount,
            wallet.spendable,
        )
        raise InsufficientCreditError(
            f"Insufficient balance: {amount} required, {max(wallet.spendable, 0)} available including credit"
        )

    now = _utcnow()
    hold = Hold(
        id=uuid4(),
        organization_id=organization_id,
        campaign_id=str(campaign_id),
        enrollment_id=enrollment_id,
        amount=amount,
        state=HoldState.ACTIVE,
        created_at=now,
    )
    tx.insert_hold(hold)
    tx.save_wallet(replace(wallet, held_amount=wallet.held_amount + amount, updated_at=now))
    _record(
        tx,
        organization_id=organization_id,
        type=WalletTransactionType.HOLD_CREATED,
        amount=amount,
        description="Hold created for enrollment",
        at=now,
        enrollment_id=enrollment_id,
        reference=str(hold.id),
    )
    assert_invariants(tx, organization_id)
    logger.info(
        "hold created org=%s enrollment_id=%s hold_id=%s amount=%s",
        organization_id,
        enrollment_id,
        hold.id,
        amount,
    )
    return hold


def commit_hold(tx: StoreTransaction, *, enrollment_id: UUID) -> Optional[Hold]:
    """
    Spend the enrollment's active hold. Balance covers what it can, the
    remainder is drawn on the credit line. No active hold is a no-op.
    """
    hold = tx.get_active_hold(enrollment_id)
    if hold is None:
        return None

    wallet = _locked_wallet(tx, hold.organization_id)
    from_balance = min(hold.amount, max(wallet.available_balance, 0))
    drawn = hold.amount - from_balance
    if wallet.credit_utilized + drawn > wallet.credit_limit:
        raise InsufficientCreditError("Credit limit exceeded while settling the hold")

    now = _utcnow()
    if not tx.settle_hold(hold.id, state=HoldState.COMMITTED, credit_drawn=drawn, settled_at=now):
        raise ConflictError()

    tx.save_wallet(
        replace(
            wallet,
            held_amount=wallet.held_amount - hold.amount,
            available_balance=wallet.available_balance - from_balance,
            credit_utilized=wallet.credit_utilized + drawn,
            updated_at=now,
        )
    )
    _record(
        tx,
        organization_id=hold.organization_id,
        type=WalletTransactionType.HOLD_COMMITTED,
        amount=hold.amount,
        description="Hold committed on approval",
        at=now,
        enrollment_id=enrollment_id,
        reference=str(hold.id),
    )
    assert_invariants(tx, hold.organization_id)
    logger.info(
        "hold committed org=%s enrollment_id=%s hold_id=%s amount=%s credit_drawn=%s",
        hold.organization_id,
        enrollment_id,
        hold.id,
        hold.amount,
        drawn,
    )
    return replace(hold, state=HoldState.COMMITTED, credit_drawn=drawn, settled_at=now)


def void_hold(tx: StoreTransaction, *, enrollment_id: UUID) -> Optional[Hold]:
    """
    Release the enrollment's active hold without spending. Idempotent.
    """
    hold = tx.get_active_hold(enrollment_id)
    if hold is None:
        return None

    wallet = _locked_wallet(tx, hold.organization_id)
    now = _utcnow()
    if not tx.settle_hold(hold.id, state=HoldState.VOIDED, credit_drawn=0, settled_at=now):
        raise ConflictError()

    tx.save_wallet(replace(wallet, held_amount=wallet.held_amount - hold.amount, updated_at=now))
    _record(
        tx,
        organization_id=hold.organization_id,
        type=WalletTransactionType.HOLD_VOIDED,
        amount=hold.amount,
        description="Hold released",
        at=now,
        enrollment_id=enrollment_id,
        reference=str(hold.id),
    )
    assert_invariants(tx, hold.organization_id)
    logger.info(
        "hold voided org=%s enrollment_id=%s hold_id=%s amount=%s",
        hold.organization_id,
        enrollment_id,
        hold.id,
        hold.amount,
    )
    return replace(hold, state=HoldState.VOIDED, settled_at=now)


def summarize_active_holds(holds: Iterable[Hold]) -> list[CampaignHoldSummary]:
    grouped: "OrderedDict[str, list[Hold]]" = OrderedDict()
    for hold in holds:
        if hold.state == HoldState.ACTIVE:
            grouped.setdefault(hold.campaign_id, []).append(hold)
    return [
        CampaignHoldSummary(
            campaign_id=campaign_id,
            enrollment_count=len(items),
            hold_amount=sum(h.amount for h in items),
        )
        for campaign_id, items in grouped.items()
    ]
