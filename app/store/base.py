# app/store/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from app.enrollments.model import Enrollment, EnrollmentStatus, TransitionEntry
from app.payouts.model import Campaign
from app.wallet.model import Hold, HoldState, Wallet, WalletTransaction, WalletTransactionType


class StoreTransaction(ABC):
    """
    One unit of work. Everything done through a transaction commits together
    or not at all. Wallet reads with for_update=True hold the organization's
    wallet lock until the transaction ends.
    """

    # ---- campaigns ----
    @abstractmethod
    def get_campaign(self, campaign_id: str) -> Optional[Campaign]: ...

    @abstractmethod
    def upsert_campaign(self, campaign: Campaign) -> None: ...

    # ---- enrollments ----
    @abstractmethod
    def get_enrollment(self, enrollment_id: UUID) -> Optional[Enrollment]: ...

    @abstractmethod
    def list_enrollments(
        self,
        organization_id: str,
        *,
        statuses: Optional[Iterable[EnrollmentStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[Enrollment]: ...

    @abstractmethod
    def list_overdue_enrollments(
        self,
        *,
        now: datetime,
        statuses: Iterable[EnrollmentStatus],
    ) -> list[Enrollment]: ...

    @abstractmethod
    def insert_enrollment(self, enrollment: Enrollment) -> None: ...

    @abstractmethod
    def update_enrollment_status(
        self,
        enrollment_id: UUID,
        *,
        from_status: EnrollmentStatus,
        to_status: EnrollmentStatus,
        updated_at: datetime,
    ) -> bool:
        """Compare-and-swap on status. False when the current status is no longer from_status."""

    @abstractmethod
    def update_submission_deadline(
        self,
        enrollment_id: UUID,
        *,
        from_status: EnrollmentStatus,
        deadline: datetime,
        updated_at: datetime,
    ) -> bool: ...

    @abstractmethod
    def append_transition(self, entry: TransitionEntry) -> None: ...

    @abstractmethod
    def list_transitions(self, enrollment_id: UUID) -> list[TransitionEntry]: ...

    # ---- wallets ----
    @abstractmethod
    def get_wallet(self, organization_id: str, *, for_update: bool = False) -> Optional[Wallet]: ...

    @abstractmethod
    def list_wallet_organization_ids(self) -> list[str]: ...

    @abstractmethod
    def insert_wallet(self, wallet: Wallet) -> None: ...

    @abstractmethod
    def save_wallet(self, wallet: Wallet) -> None: ...

    # ---- holds ----
    @abstractmethod
    def get_active_hold(self, enrollment_id: UUID) -> Optional[Hold]: ...

    @abstractmethod
    def list_holds(self, organization_id: str, *, state: Optional[HoldState] = None) -> list[Hold]: ...

    @abstractmethod
    def insert_hold(self, hold: Hold) -> None: ...

    @abstractmethod
    def settle_hold(
        self,
        hold_id: UUID,
        *,
        state: HoldState,
        credit_drawn: int,
        settled_at: datetime,
    ) -> bool:
        """Move an active hold to a terminal state. False when it is no longer active."""

    # ---- wallet activity ----
    @abstractmethod
    def append_wallet_transaction(self, txn: WalletTransaction) -> None: ...

    @abstractmethod
    def list_wallet_transactions(
        self,
        organization_id: str,
        *,
        type: Optional[WalletTransactionType] = None,
        limit: int = 50,
    ) -> list[WalletTransaction]: ...


class Store(ABC):
    backend = "abstract"

    @abstractmethod
    def transaction(self) -> AbstractContextManager[StoreTransaction]: ...

    @abstractmethod
    def ping(self) -> tuple[bool, str | None]: ...

    def close(self) -> None:
        return None
