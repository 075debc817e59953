"""baseline settlement schema

Revision ID: 0001_baseline_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.campaigns (
          id text PRIMARY KEY,
          organization_id text NOT NULL,
          name text NOT NULL,
          payout_amount bigint,
          min_order_value bigint,
          payout_tiers jsonb NOT NULL DEFAULT '[]'::jsonb,
          created_at timestamptz NOT NULL DEFAULT now(),
          updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_campaigns_org ON app.campaigns (organization_id);")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.enrollments (
          id uuid PRIMARY KEY,
          organization_id text NOT NULL,
          campaign_id text NOT NULL REFERENCES app.campaigns(id),
          shopper_id text NOT NULL,
          status text NOT NULL CHECK (status IN (
            'enrolled','awaiting_submission','awaiting_review','changes_requested',
            'approved','rejected','withdrawn','expired'
          )),
          order_id text NOT NULL,
          order_value bigint NOT NULL CHECK (order_value > 0),
          order_date timestamptz NOT NULL,
          quantity integer NOT NULL CHECK (quantity >= 1),
          bill_rate bigint NOT NULL,
          bill_amount bigint NOT NULL,
          platform_fee_percent numeric(6,3) NOT NULL,
          gst_percent numeric(6,3) NOT NULL,
          platform_fee bigint NOT NULL,
          gst_amount bigint NOT NULL,
          net_payout bigint NOT NULL,
          submission_deadline timestamptz,
          created_at timestamptz NOT NULL,
          updated_at timestamptz NOT NULL
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_enrollments_org_status ON app.enrollments (organization_id, status);"
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_enrollments_deadline
        ON app.enrollments (submission_deadline)
        WHERE status IN ('awaiting_submission','changes_requested');
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.enrollment_transitions (
          seq bigserial PRIMARY KEY,
          id uuid NOT NULL UNIQUE,
          enrollment_id uuid NOT NULL REFERENCES app.enrollments(id),
          from_status text,
          to_status text NOT NULL,
          action text,
          actor_type text NOT NULL CHECK (actor_type IN ('system','shopper','brand')),
          actor_id text NOT NULL,
          actor_name text,
          reason text,
          created_at timestamptz NOT NULL
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_enrollment_transitions_enrollment ON app.enrollment_transitions (enrollment_id, seq);"
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.wallets (
          organization_id text PRIMARY KEY,
          available_balance bigint NOT NULL CHECK (available_balance >= 0),
          held_amount bigint NOT NULL CHECK (held_amount >= 0),
          credit_limit bigint NOT NULL DEFAULT 0 CHECK (credit_limit >= 0),
          credit_utilized bigint NOT NULL DEFAULT 0 CHECK (credit_utilized >= 0),
          currency char(3) NOT NULL DEFAULT 'INR',
          updated_at timestamptz NOT NULL DEFAULT now(),
          CONSTRAINT wallets_credit_within_limit CHECK (credit_utilized <= credit_limit)
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.wallet_holds (
          id uuid PRIMARY KEY,
          organization_id text NOT NULL REFERENCES app.wallets(organization_id),
          campaign_id text NOT NULL,
          enrollment_id uuid NOT NULL REFERENCES app.enrollments(id),
          amount bigint NOT NULL CHECK (amount > 0),
          state text NOT NULL CHECK (state IN ('active','committed','voided')),
          credit_drawn bigint NOT NULL DEFAULT 0,
          created_at timestamptz NOT NULL,
          settled_at timestamptz
        );
        """
    )
    # at most one active hold per enrollment
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS ux_wallet_holds_active_enrollment
        ON app.wallet_holds (enrollment_id)
        WHERE state = 'active';
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_wallet_holds_org_state ON app.wallet_holds (organization_id, state);")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.wallet_transactions (
          seq bigserial PRIMARY KEY,
          id uuid NOT NULL UNIQUE,
          organization_id text NOT NULL REFERENCES app.wallets(organization_id),
          type text NOT NULL CHECK (type IN ('credit','hold_created','hold_committed','hold_voided')),
          amount bigint NOT NULL,
          description text NOT NULL,
          enrollment_id uuid,
          reference text,
          created_at timestamptz NOT NULL
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_wallet_transactions_org ON app.wallet_transactions (organization_id, seq DESC);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.wallet_transactions;")
    op.execute("DROP TABLE IF EXISTS app.wallet_holds;")
    op.execute("DROP TABLE IF EXISTS app.wallets;")
    op.execute("DROP TABLE IF EXISTS app.enrollment_transitions;")
    op.execute("DROP TABLE IF EXISTS app.enrollments;")
    op.execute("DROP TABLE IF EXISTS app.campaigns;")
