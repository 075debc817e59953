# app/store/memory.py
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Iterator, Optional
from uuid import UUID

from app.enrollments.model import Enrollment, EnrollmentStatus, TransitionEntry
from app.payouts.model import Campaign
from app.store.base import Store, StoreTransaction
from app.wallet.model import Hold, HoldState, Wallet, WalletTransaction, WalletTransactionType

logger = logging.getLogger("hyprive.store")


class _State:
    def __init__(self):
        self.campaigns: dict[str, Campaign] = {}
        self.enrollments: dict[UUID, Enrollment] = {}
        self.transitions: dict[UUID, list[TransitionEntry]] = {}
        self.wallets: dict[str, Wallet] = {}
        self.holds: dict[UUID, Hold] = {}
        self.wallet_transactions: dict[str, list[WalletTransaction]] = {}

    def snapshot(self) -> "_State":
        # records are frozen dataclasses, so copying the containers is enough
        copy = _State()
        copy.campaigns = dict(self.campaigns)
        copy.enrollments = dict(self.enrollments)
        copy.transitions = {k: list(v) for k, v in self.transitions.items()}
        copy.wallets = dict(self.wallets)
        copy.holds = dict(self.holds)
        copy.wallet_transactions = {k: list(v) for k, v in self.wallet_transactions.items()}
        return copy


class _MemoryTransaction(StoreTransaction):
    def __init__(self, state: _State):
        self._s = state

    # ---- campaigns ----
    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self._s.campaigns.get(str(campaign_id))

    def upsert_campaign(self, campaign: Campaign) -> None:
        self._s.campaigns[str(campaign.id)] = campaign

    # ---- enrollments ----
    def get_enrollment(self, enrollment_id: UUID) -> Optional[Enrollment]:
        return self._s.enrollments.get(enrollment_id)

    def list_enrollments(
        self,
        organization_id: str,
        *,
        statuses: Optional[Iterable[EnrollmentStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[Enrollment]:
        wanted = set(statuses) if statuses is not None else None
        rows = [
            e
            for e in self._s.enrollments.values()
            if e.organization_id == organization_id and (wanted is None or e.status in wanted)
        ]
        rows.sort(key=lambda e: e.created_at, reverse=True)
        return rows[:limit] if limit is not None else rows

    def list_overdue_enrollments(self, *, now: datetime, statuses: Iterable[EnrollmentStatus]) -> list[Enrollment]:
        wanted = set(statuses)
        rows = [
            e
            for e in self._s.enrollments.values()
            if e.status in wanted and e.submission_deadline is not None and e.submission_deadline <= now
        ]
        rows.sort(key=lambda e: e.submission_deadline)
        return rows

    def insert_enrollment(self, enrollment: Enrollment) -> None:
        if enrollment.id in self._s.enrollments:
            raise KeyError(f"duplicate enrollment id {enrollment.id}")
        self._s.enrollments[enrollment.id] = enrollment

    def update_enrollment_status(
        self,
        enrollment_id: UUID,
        *,
        from_status: EnrollmentStatus,
        to_status: EnrollmentStatus,
        updated_at: datetime,
    ) -> bool:
        current = self._s.enrollments.get(enrollment_id)
        if current is None or current.status != from_status:
            return False
        self._s.enrollments[enrollment_id] = replace(current, status=to_status, updated_at=updated_at)
        return True

    def update_submission_deadline(
        self,
        enrollment_id: UUID,
        *,
        from_status: EnrollmentStatus,
        deadline: datetime,
        updated_at: datetime,
    ) -> bool:
        current = self._s.enrollments.get(enrollment_id)
        if current is None or current.status != from_status:
            return False
        self._s.enrollments[enrollment_id] = replace(current, submission_deadline=deadline, updated_at=updated_at)
        return True

    def append_transition(self, entry: TransitionEntry) -> None:
        self._s.transitions.setdefault(entry.enrollment_id, []).append(entry)

    def list_transitions(self, enrollment_id: UUID) -> list[TransitionEntry]:
        return list(self._s.transitions.get(enrollment_id, []))

    # ---- wallets ----
    def get_wallet(self, organization_id: str, *, for_update: bool = False) -> Optional[Wallet]:
        # the store-wide lock already serializes writers
        return self._s.wallets.get(organization_id)

    def list_wallet_organization_ids(self) -> list[str]:
        return sorted(self._s.wallets)

    def insert_wallet(self, wallet: Wallet) -> None:
        if wallet.organization_id in self._s.wallets:
            raise KeyError(f"duplicate wallet for organization {wallet.organization_id}")
        self._s.wallets[wallet.organization_id] = wallet

    def save_wallet(self, wallet: Wallet) -> None:
        if wallet.organization_id not in self._s.wallets:
            raise KeyError(f"unknown wallet for organization {wallet.organization_id}")
        self._s.wallets[wallet.organization_id] = wallet

    # ---- holds ----
    def get_active_hold(self, enrollment_id: UUID) -> Optional[Hold]:
        for hold in self._s.holds.values():
            if hold.enrollment_id == enrollment_id and hold.state == HoldState.ACTIVE:
                return hold
        return None

    def list_holds(self, organization_id: str, *, state: Optional[HoldState] = None) -> list[Hold]:
        rows = [
            h
            for h in self._s.holds.values()
            if h.organization_id == organization_id and (state is None or h.state == state)
        ]
        rows.sort(key=lambda h: h.created_at)
        return rows

    def insert_hold(self, hold: Hold) -> None:
        if hold.state == HoldState.ACTIVE and self.get_active_hold(hold.enrollment_id) is not None:
            raise KeyError(f"enrollment {hold.enrollment_id} already has an active hold")
        self._s.holds[hold.id] = hold

    def settle_hold(self, hold_id: UUID, *, state: HoldState, credit_drawn: int, settled_at: datetime) -> bool:
        current = self._s.holds.get(hold_id)
        if current is None or current.state != HoldState.ACTIVE:
            return False
        self._s.holds[hold_id] = replace(current, state=state, credit_drawn=credit_drawn, settled_at=settled_at)
        return True

    # ---- wallet activity ----
    def append_wallet_transaction(self, txn: WalletTransaction) -> None:
        self._s.wallet_transactions.setdefault(txn.organization_id, []).append(txn)

    def list_wallet_transactions(
        self,
        organization_id: str,
        *,
        type: Optional[WalletTransactionType] = None,
        limit: int = 50,
    ) -> list[WalletTransaction]:
        rows = [
            t
            for t in reversed(self._s.wallet_transactions.get(organization_id, []))
            if type is None or t.type == type
        ]
        return rows[:limit]


class MemoryStore(Store):
    """
    In-process store for development and tests.

    Transactions are serialized with a re-entrant lock, so a wallet read
    for update is trivially exclusive. A failed transaction restores the
    snapshot taken when it began.
    """

    backend = "memory"

    def __init__(self):
        self._state = _State()
        self._lock = threading.RLock()
        self._local = threading.local()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        with self._lock:
            depth = getattr(self._local, "depth", 0)
            if depth:
                # nested use joins the outer transaction
                self._local.depth = depth + 1
                try:
                    yield _MemoryTransaction(self._state)
                finally:
                    self._local.depth = depth
                return

            snapshot = self._state.snapshot()
            self._local.depth = 1
            try:
                yield _MemoryTransaction(self._state)
            except BaseException:
                self._state = snapshot
                raise
            finally:
                self._local.depth = 0

    def ping(self) -> tuple[bool, str | None]:
        return True, None
