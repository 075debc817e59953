# app/store/postgres.py
from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, Iterator, Optional
from uuid import UUID

from psycopg2.extras import Json, RealDictCursor

from app.enrollments.model import ActorType, Enrollment, EnrollmentAction, EnrollmentStatus, TransitionEntry
from app.payouts.model import Campaign, PayoutTier
from app.store.base import Store, StoreTransaction
from app.wallet.model import Hold, HoldState, Wallet, WalletTransaction, WalletTransactionType
from db import close_pool, get_conn
from services.db_errors import raise_core_from_db_error

_ENROLLMENT_COLUMNS = """
  e.id, e.organization_id, e.campaign_id, e.shopper_id, e.status,
  e.order_id, e.order_value, e.order_date, e.quantity,
  e.bill_rate, e.bill_amount, e.platform_fee_percent, e.gst_percent,
  e.platform_fee, e.gst_amount, e.net_payout,
  e.submission_deadline, e.created_at, e.updated_at
"""

_HOLD_COLUMNS = """
  h.id, h.organization_id, h.campaign_id, h.enrollment_id, h.amount,
  h.state, h.credit_drawn, h.created_at, h.settled_at
"""


# ==========================================================
# Row mapping
# ==========================================================

def _tiers_from_json(value: Any) -> tuple[PayoutTier, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = json.loads(value)
    return tuple(
        PayoutTier(min_order_value=int(t["min_order_value"]), payout_amount=int(t["payout_amount"]))
        for t in value
    )


def _campaign(row: dict) -> Campaign:
    return Campaign(
        id=row["id"],
        organization_id=row["organization_id"],
        name=row["name"],
        payout_amount=row["payout_amount"],
        min_order_value=row["min_order_value"],
        payout_tiers=_tiers_from_json(row["payout_tiers"]),
    )


def _enrollment(row: dict) -> Enrollment:
    return Enrollment(
        id=row["id"],
        organization_id=row["organization_id"],
        campaign_id=row["campaign_id"],
        shopper_id=row["shopper_id"],
        status=EnrollmentStatus(row["status"]),
        order_id=row["order_id"],
        order_value=int(row["order_value"]),
        order_date=row["order_date"],
        quantity=int(row["quantity"]),
        bill_rate=int(row["bill_rate"]),
        bill_amount=int(row["bill_amount"]),
        platform_fee_percent=float(row["platform_fee_percent"]),
        gst_percent=float(row["gst_percent"]),
        platform_fee=int(row["platform_fee"]),
        gst_amount=int(row["gst_amount"]),
        net_payout=int(row["net_payout"]),
        submission_deadline=row["submission_deadline"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _transition(row: dict) -> TransitionEntry:
    return TransitionEntry(
        id=row["id"],
        enrollment_id=row["enrollment_id"],
        from_status=EnrollmentStatus(row["from_status"]) if row["from_status"] else None,
        to_status=EnrollmentStatus(row["to_status"]),
        action=EnrollmentAction(row["action"]) if row["action"] else None,
        actor_type=ActorType(row["actor_type"]),
        actor_id=row["actor_id"],
        actor_name=row["actor_name"],
        reason=row["reason"],
        created_at=row["created_at"],
    )


def _wallet(row: dict) -> Wallet:
    return Wallet(
        organization_id=row["organization_id"],
        available_balance=int(row["available_balance"]),
        held_amount=int(row["held_amount"]),
        credit_limit=int(row["credit_limit"]),
        credit_utilized=int(row["credit_utilized"]),
        currency=row["currency"],
        updated_at=row["updated_at"],
    )


def _hold(row: dict) -> Hold:
    return Hold(
        id=row["id"],
        organization_id=row["organization_id"],
        campaign_id=row["campaign_id"],
        enrollment_id=row["enrollment_id"],
        amount=int(row["amount"]),
        state=HoldState(row["state"]),
        credit_drawn=int(row["credit_drawn"]),
        created_at=row["created_at"],
        settled_at=row["settled_at"],
    )


def _wallet_txn(row: dict) -> WalletTransaction:
    return WalletTransaction(
        id=row["id"],
        organization_id=row["organization_id"],
        type=WalletTransactionType(row["type"]),
        amount=int(row["amount"]),
        description=row["description"],
        enrollment_id=row["enrollment_id"],
        reference=row["reference"],
        created_at=row["created_at"],
    )


def _values(statuses: Iterable[Any]) -> list[str]:
    return [getattr(s, "value", s) for s in statuses]


class _PostgresTransaction(StoreTransaction):
    def __init__(self, conn):
        self.conn = conn

    def _one(self, sql: str, params: tuple) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
            return dict(row) if row else None

    def _all(self, sql: str, params: tuple) -> list[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            return [dict(r) for r in cur.fetchall()]

    def _exec(self, sql: str, params: tuple) -> int:
        with self.conn.cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    # ==========================================================
    # Campaigns
    # ==========================================================

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        row = self._one(
            """
            SELECT id, organization_id, name, payout_amount, min_order_value, payout_tiers
            FROM app.campaigns
            WHERE id = %s
            """,
            (str(campaign_id),),
        )
        return _campaign(row) if row else None

    def upsert_campaign(self, campaign: Campaign) -> None:
        tiers = [
            {"min_order_value": t.min_order_value, "payout_amount": t.payout_amount}
            for t in campaign.payout_tiers
        ]
        self._exec(
            """
            INSERT INTO app.campaigns (id, organization_id, name, payout_amount, min_order_value, payout_tiers)
            VALUES (%s, %s, %s, %s, %s, %s::jsonb)
            ON CONFLICT (id) DO UPDATE SET
              organization_id = EXCLUDED.organization_id,
              name = EXCLUDED.name,
              payout_amount = EXCLUDED.payout_amount,
              min_order_value = EXCLUDED.min_order_value,
              payout_tiers = EXCLUDED.payout_tiers,
              updated_at = now()
            """,
            (
                campaign.id,
                campaign.organization_id,
                campaign.name,
                campaign.payout_amount,
                campaign.min_order_value,
                Json(tiers),
            ),
        )

    # ==========================================================
    # Enrollments
    # ==========================================================

    def get_enrollment(self, enrollment_id: UUID) -> Optional[Enrollment]:
        row = self._one(
            f"SELECT {_ENROLLMENT_COLUMNS} FROM app.enrollments e WHERE e.id = %s",
            (enrollment_id,),
        )
        return _enrollment(row) if row else None

    def list_enrollments(
        self,
        organization_id: str,
        *,
        statuses: Optional[Iterable[EnrollmentStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[Enrollment]:
        status_filter = ""
        params: list[Any] = [organization_id]
        if statuses is not None:
            status_filter = "AND e.status = ANY(%s)"
            params.append(_values(statuses))
        limit_sql = ""
        if limit is not None:
            limit_sql = "LIMIT %s"
            params.append(int(limit))

        rows = self._all(
            f"""
            SELECT {_ENROLLMENT_COLUMNS}
            FROM app.enrollments e
            WHERE e.organization_id = %s
            {status_filter}
            ORDER BY e.created_at DESC
            {limit_sql}
            """,
            tuple(params),
        )
        return [_enrollment(r) for r in rows]

    def list_overdue_enrollments(self, *, now: datetime, statuses: Iterable[EnrollmentStatus]) -> list[Enrollment]:
        rows = self._all(
            f"""
            SELECT {_ENROLLMENT_COLUMNS}
            FROM app.enrollments e
            WHERE e.status = ANY(%s)
              AND e.submission_deadline IS NOT NULL
              AND e.submission_deadline <= %s
            ORDER BY e.submission_deadline
            """,
            (_values(statuses), now),
        )
        return [_enrollment(r) for r in rows]

    def insert_enrollment(self, enrollment: Enrollment) -> None:
        e = enrollment
        self._exec(
            """
            INSERT INTO app.enrollments (
              id, organization_id, campaign_id, shopper_id, status,
              order_id, order_value, order_date, quantity,
              bill_rate, bill_amount, platform_fee_percent, gst_percent,
              platform_fee, gst_amount, net_payout,
              submission_deadline, created_at, updated_at
            )
            VALUES (
              %s, %s, %s, %s, %s,
              %s, %s, %s, %s,
              %s, %s, %s, %s,
              %s, %s, %s,
              %s, %s, %s
            )
            """,
            (
                e.id, e.organization_id, e.campaign_id, e.shopper_id, e.status.value,
                e.order_id, e.order_value, e.order_date, e.quantity,
                e.bill_rate, e.bill_amount, e.platform_fee_percent, e.gst_percent,
                e.platform_fee, e.gst_amount, e.net_payout,
                e.submission_deadline, e.created_at, e.updated_at,
            ),
        )

    def update_enrollment_status(
        self,
        enrollment_id: UUID,
        *,
        from_status: EnrollmentStatus,
        to_status: EnrollmentStatus,
        updated_at: datetime,
    ) -> bool:
        n = self._exec(
            """
            UPDATE app.enrollments
            SET status = %s,
                updated_at = %s
            WHERE id = %s
              AND status = %s
            """,
            (to_status.value, updated_at, enrollment_id, from_status.value),
        )
        return n == 1

    def update_submission_deadline(
        self,
        enrollment_id: UUID,
        *,
        from_status: EnrollmentStatus,
        deadline: datetime,
        updated_at: datetime,
    ) -> bool:
        n = self._exec(
            """
            UPDATE app.enrollments
            SET submission_deadline = %s,
                updated_at = %s
            WHERE id = %s
              AND status = %s
            """,
            (deadline, updated_at, enrollment_id, from_status.value),
        )
        return n == 1

    def append_transition(self, entry: TransitionEntry) -> None:
        self._exec(
            """
            INSERT INTO app.enrollment_transitions (
              id, enrollment_id, from_status, to_status, action,
              actor_type, actor_id, actor_name, reason, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                entry.id,
                entry.enrollment_id,
                entry.from_status.value if entry.from_status else None,
                entry.to_status.value,
                entry.action.value if entry.action else None,
                entry.actor_type.value,
                entry.actor_id,
                entry.actor_name,
                entry.reason,
                entry.created_at,
            ),
        )

    def list_transitions(self, enrollment_id: UUID) -> list[TransitionEntry]:
        rows = self._all(
            """
            SELECT id, enrollment_id, from_status, to_status, action,
                   actor_type, actor_id, actor_name, reason, created_at
            FROM app.enrollment_transitions
            WHERE enrollment_id = %s
            ORDER BY seq
            """,
            (enrollment_id,),
        )
        return [_transition(r) for r in rows]

    # ==========================================================
    # Wallets
    # ==========================================================

    def get_wallet(self, organization_id: str, *, for_update: bool = False) -> Optional[Wallet]:
        lock_sql = "FOR UPDATE" if for_update else ""
        row = self._one(
            f"""
            SELECT organization_id, available_balance, held_amount,
                   credit_limit, credit_utilized, currency, updated_at
            FROM app.wallets
            WHERE organization_id = %s
            {lock_sql}
            """,
            (organization_id,),
        )
        return _wallet(row) if row else None

    def list_wallet_organization_ids(self) -> list[str]:
        rows = self._all("SELECT organization_id FROM app.wallets ORDER BY organization_id", ())
        return [r["organization_id"] for r in rows]

    def insert_wallet(self, wallet: Wallet) -> None:
        w = wallet
        self._exec(
            """
            INSERT INTO app.wallets (
              organization_id, available_balance, held_amount,
              credit_limit, credit_utilized, currency, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                w.organization_id, w.available_balance, w.held_amount,
                w.credit_limit, w.credit_utilized, w.currency, w.updated_at,
            ),
        )

    def save_wallet(self, wallet: Wallet) -> None:
        w = wallet
        self._exec(
            """
            UPDATE app.wallets
            SET available_balance = %s,
                held_amount = %s,
                credit_limit = %s,
                credit_utilized = %s,
                updated_at = %s
            WHERE organization_id = %s
            """,
            (
                w.available_balance, w.held_amount, w.credit_limit,
                w.credit_utilized, w.updated_at, w.organization_id,
            ),
        )

    # ==========================================================
    # Holds
    # ==========================================================

    def get_active_hold(self, enrollment_id: UUID) -> Optional[Hold]:
        row = self._one(
            f"""
            SELECT {_HOLD_COLUMNS}
            FROM app.wallet_holds h
            WHERE h.enrollment_id = %s
              AND h.state = 'active'
            """,
            (enrollment_id,),
        )
        return _hold(row) if row else None

    def list_holds(self, organization_id: str, *, state: Optional[HoldState] = None) -> list[Hold]:
        state_filter = ""
        params: list[Any] = [organization_id]
        if state is not None:
            state_filter = "AND h.state = %s"
            params.append(state.value)
        rows = self._all(
            f"""
            SELECT {_HOLD_COLUMNS}
            FROM app.wallet_holds h
            WHERE h.organization_id = %s
            {state_filter}
            ORDER BY h.created_at
            """,
            tuple(params),
        )
        return [_hold(r) for r in rows]

    def insert_hold(self, hold: Hold) -> None:
        h = hold
        self._exec(
            """
            INSERT INTO app.wallet_holds (
              id, organization_id, campaign_id, enrollment_id, amount,
              state, credit_drawn, created_at, settled_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                h.id, h.organization_id, h.campaign_id, h.enrollment_id, h.amount,
                h.state.value, h.credit_drawn, h.created_at, h.settled_at,
            ),
        )

    def settle_hold(self, hold_id: UUID, *, state: HoldState, credit_drawn: int, settled_at: datetime) -> bool:
        n = self._exec(
            """
            UPDATE app.wallet_holds
            SET state = %s,
                credit_drawn = %s,
                settled_at = %s
            WHERE id = %s
              AND state = 'active'
            """,
            (state.value, credit_drawn, settled_at, hold_id),
        )
        return n == 1

    # ==========================================================
    # Wallet activity
    # ==========================================================

    def append_wallet_transaction(self, txn: WalletTransaction) -> None:
        self._exec(
            """
            INSERT INTO app.wallet_transactions (
              id, organization_id, type, amount, description,
              enrollment_id, reference, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                txn.id, txn.organization_id, txn.type.value, txn.amount, txn.description,
                txn.enrollment_id, txn.reference, txn.created_at,
            ),
        )

    def list_wallet_transactions(
        self,
        organization_id: str,
        *,
        type: Optional[WalletTransactionType] = None,
        limit: int = 50,
    ) -> list[WalletTransaction]:
        type_filter = ""
        params: list[Any] = [organization_id]
        if type is not None:
            type_filter = "AND type = %s"
            params.append(type.value)
        params.append(int(limit))
        rows = self._all(
            f"""
            SELECT id, organization_id, type, amount, description,
                   enrollment_id, reference, created_at
            FROM app.wallet_transactions
            WHERE organization_id = %s
            {type_filter}
            ORDER BY seq DESC
            LIMIT %s
            """,
            tuple(params),
        )
        return [_wallet_txn(r) for r in rows]


class PostgresStore(Store):
    """
    Store on the shared psycopg2 pool. One transaction per connection checkout;
    wallet rows are locked with SELECT ... FOR UPDATE.
    """

    backend = "postgres"

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        try:
            with get_conn() as conn:
                yield _PostgresTransaction(conn)
        except Exception as exc:
            raise_core_from_db_error(exc)
            raise

    def ping(self) -> tuple[bool, str | None]:
        try:
            with get_conn() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1;")
                    cur.fetchone()
            return True, None
        except Exception as exc:
            return False, f"{type(exc).__name__}: {exc}"

    def close(self) -> None:
        close_pool()
