import os
import sys

from app.payouts.model import Campaign, PayoutTier
from app.store.factory import get_store
from app.wallet import service as wallet_service
from security import create_access_token


def die(message, code=1):
    print(message)
    sys.exit(code)


def _get_env(name, default=None):
    return os.getenv(name, default)


def main():
    org_id = _get_env("SEED_ORG_ID", "org-demo")
    balance = int(_get_env("SEED_BALANCE", "100000"))
    credit_limit = int(_get_env("SEED_CREDIT_LIMIT", "50000"))

    store = get_store()
    with store.transaction() as tx:
        tx.upsert_campaign(
            Campaign(
                id=_get_env("SEED_CAMPAIGN_ID", "camp-demo"),
                organization_id=org_id,
                name="Demo launch campaign",
                payout_amount=400,
                min_order_value=500,
                payout_tiers=(
                    PayoutTier(min_order_value=0, payout_amount=400),
                    PayoutTier(min_order_value=5000, payout_amount=600),
                    PayoutTier(min_order_value=10000, payout_amount=900),
                ),
            )
        )

    res = wallet_service.open_wallet(
        store,
        organization_id=org_id,
        opening_balance=balance,
        credit_limit=credit_limit,
    )
    if not res.ok and res.error.code != "CONFLICT":
        die(f"wallet seed failed: {res.error.code} {res.error.message}")

    token = create_access_token("user-demo", organization_id=org_id, role="owner", name="Demo Owner")
    print(f"seeded org={org_id} store={store.backend}")
    print(f"token={token}")


if __name__ == "__main__":
    main()
