# tests/conftest.py

import uuid
from dataclasses import dataclass
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from app.enrollments import service
from app.enrollments.model import Actor, ActorType, EnrollmentAction
from app.payouts.model import Campaign, PayoutTier
from app.store.factory import set_store
from app.store.memory import MemoryStore
from app.wallet import ledger
from main import app
from security import create_access_token


ORG_ID = "org-acme"
OTHER_ORG_ID = "org-globex"
CAMPAIGN_ID = "camp-summer"

TIERS = (
    PayoutTier(min_order_value=0, payout_amount=400),
    PayoutTier(min_order_value=5000, payout_amount=600),
    PayoutTier(min_order_value=10000, payout_amount=900),
)

REVIEWER = Actor(type=ActorType.BRAND, id="user-reviewer", name="Riya Reviewer")


@dataclass
class AuthedUser:
    user_id: str
    organization_id: str
    role: str
    token: str

    @property
    def headers(self) -> Dict[str, str]:
        return _auth_headers(self.token)


def _auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _make_user(role: str, organization_id: str = ORG_ID) -> AuthedUser:
    user_id = f"user-{role}-{uuid.uuid4().hex[:8]}"
    token = create_access_token(user_id, organization_id=organization_id, role=role, name=role.title())
    return AuthedUser(user_id=user_id, organization_id=organization_id, role=role, token=token)


# ---------------------------
# Store + Client
# ---------------------------

@pytest.fixture()
def store() -> MemoryStore:
    s = MemoryStore()
    set_store(s)
    yield s
    set_store(None)


@pytest.fixture()
def client(store) -> TestClient:
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)


# ---------------------------
# Seed data
# ---------------------------

def seed_campaign(store, *, campaign_id: str = CAMPAIGN_ID, organization_id: str = ORG_ID, **kwargs) -> Campaign:
    campaign = Campaign(
        id=campaign_id,
        organization_id=organization_id,
        name=kwargs.pop("name", "Summer launch"),
        payout_amount=kwargs.pop("payout_amount", 400),
        min_order_value=kwargs.pop("min_order_value", 500),
        payout_tiers=kwargs.pop("payout_tiers", TIERS),
    )
    with store.transaction() as tx:
        tx.upsert_campaign(campaign)
    return campaign


def seed_wallet(store, *, organization_id: str = ORG_ID, balance: int = 100000, credit_limit: int = 0):
    with store.transaction() as tx:
        return ledger.open_wallet(
            tx,
            organization_id=organization_id,
            opening_balance=balance,
            credit_limit=credit_limit,
        )


@pytest.fixture()
def campaign(store) -> Campaign:
    return seed_campaign(store)


@pytest.fixture()
def wallet(store):
    return seed_wallet(store)


@pytest.fixture()
def make_enrollment(store, campaign, wallet):
    """
    Create an enrollment and walk it to the requested status through the
    public operations, so holds and history look exactly like production.
    """
    paths = {
        "enrolled": [],
        "changes_requested": [(EnrollmentAction.REQUEST_CHANGES, "Need a clearer invoice")],
        "awaiting_review": [
            (EnrollmentAction.REQUEST_CHANGES, "Need a clearer invoice"),
            (EnrollmentAction.RESUBMIT, None),
        ],
        "approved": [(EnrollmentAction.APPROVE, None)],
        "rejected": [(EnrollmentAction.REJECT, "Order was cancelled")],
        "withdrawn": [(EnrollmentAction.WITHDRAW, None)],
    }

    def _make(status: str = "enrolled", *, order_value: int = 1000, quantity: int = 1, **kwargs):
        res = service.create_enrollment(
            store,
            organization_id=kwargs.pop("organization_id", ORG_ID),
            campaign_id=kwargs.pop("campaign_id", campaign.id),
            shopper_id=kwargs.pop("shopper_id", f"shopper-{uuid.uuid4().hex[:6]}"),
            order_id=kwargs.pop("order_id", f"ORD-{uuid.uuid4().hex[:8]}"),
            order_value=order_value,
            quantity=quantity,
            **kwargs,
        )
        assert res.ok, res.error
        enrollment = res.value
        for action, reason in paths[status]:
            step = service.apply_transition(store, enrollment.id, action, REVIEWER, reason)
            assert step.ok, step.error
            enrollment = step.value
        assert enrollment.status.value == status
        return enrollment

    return _make


# ---------------------------
# Auth
# ---------------------------

@pytest.fixture()
def owner() -> AuthedUser:
    return _make_user("owner")


@pytest.fixture()
def member() -> AuthedUser:
    return _make_user("member")


@pytest.fixture()
def viewer() -> AuthedUser:
    return _make_user("viewer")


@pytest.fixture()
def outsider() -> AuthedUser:
    return _make_user("owner", organization_id=OTHER_ORG_ID)


def wallet_of(store, organization_id: str = ORG_ID):
    with store.transaction() as tx:
        return tx.get_wallet(organization_id)


def holds_of(store, organization_id: str = ORG_ID, state: Optional[str] = None):
    with store.transaction() as tx:
        return tx.list_holds(organization_id, state=state)
