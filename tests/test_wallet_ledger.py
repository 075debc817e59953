import uuid

import pytest

from app.errors import ConflictError, InsufficientCreditError, NotFoundError, ValidationError
from app.wallet import ledger, service
from app.wallet.model import HoldState, WalletTransactionType

from conftest import ORG_ID, holds_of, seed_wallet, wallet_of


def _hold(store, amount, enrollment_id=None, organization_id=ORG_ID):
    return service.create_hold(
        store,
        organization_id=organization_id,
        campaign_id="camp-summer",
        enrollment_id=enrollment_id or uuid.uuid4(),
        amount=amount,
    )


def test_credit_boundary(store):
    seed_wallet(store, balance=1000, credit_limit=0)

    res = _hold(store, 1500)
    assert not res.ok
    assert isinstance(res.error, InsufficientCreditError)
    assert wallet_of(store).held_amount == 0

    res = _hold(store, 900)
    assert res.ok, res.error
    assert res.value.state == HoldState.ACTIVE
    assert wallet_of(store).held_amount == 900


def test_hold_can_reach_into_credit_line(store):
    seed_wallet(store, balance=1000, credit_limit=500)
    assert _hold(store, 1500).ok
    res = _hold(store, 1)
    assert isinstance(res.error, InsufficientCreditError)


def test_second_active_hold_for_enrollment_conflicts(store):
    seed_wallet(store)
    enrollment_id = uuid.uuid4()
    assert _hold(store, 100, enrollment_id).ok
    res = _hold(store, 100, enrollment_id)
    assert isinstance(res.error, ConflictError)
    assert wallet_of(store).held_amount == 100


def test_hold_requires_wallet_and_positive_amount(store):
    assert isinstance(_hold(store, 100).error, NotFoundError)
    seed_wallet(store)
    assert isinstance(_hold(store, 0).error, ValidationError)


def test_commit_spends_balance(store):
    seed_wallet(store, balance=5000)
    enrollment_id = uuid.uuid4()
    _hold(store, 1200, enrollment_id)

    res = service.commit_hold(store, enrollment_id=enrollment_id)
    assert res.ok, res.error
    assert res.value.state == HoldState.COMMITTED
    assert res.value.credit_drawn == 0

    w = wallet_of(store)
    assert w.available_balance == 3800
    assert w.held_amount == 0
    assert w.credit_utilized == 0


def test_commit_draws_shortfall_from_credit(store):
    seed_wallet(store, balance=1000, credit_limit=2000)
    enrollment_id = uuid.uuid4()
    _hold(store, 1800, enrollment_id)

    res = service.commit_hold(store, enrollment_id=enrollment_id)
    assert res.value.credit_drawn == 800

    w = wallet_of(store)
    assert w.available_balance == 0
    assert w.credit_utilized == 800
    assert w.credit_available == 1200


def test_void_releases_without_spending(store):
    seed_wallet(store, balance=5000)
    enrollment_id = uuid.uuid4()
    _hold(store, 700, enrollment_id)

    res = service.void_hold(store, enrollment_id=enrollment_id)
    assert res.value.state == HoldState.VOIDED
    w = wallet_of(store)
    assert w.available_balance == 5000
    assert w.held_amount == 0


def test_settling_twice_is_a_noop(store):
    seed_wallet(store, balance=5000)
    enrollment_id = uuid.uuid4()
    _hold(store, 700, enrollment_id)
    service.void_hold(store, enrollment_id=enrollment_id)

    again = service.void_hold(store, enrollment_id=enrollment_id)
    assert again.ok and again.value is None
    after_commit = service.commit_hold(store, enrollment_id=enrollment_id)
    assert after_commit.ok and after_commit.value is None

    w = wallet_of(store)
    assert w.available_balance == 5000
    assert w.held_amount == 0
    assert [h.state for h in holds_of(store)] == [HoldState.VOIDED]


def test_void_without_any_hold_is_a_noop(store):
    seed_wallet(store)
    res = service.void_hold(store, enrollment_id=uuid.uuid4())
    assert res.ok and res.value is None


def test_held_amount_tracks_active_holds(store):
    seed_wallet(store, balance=10000)
    ids = [uuid.uuid4() for _ in range(4)]
    for i, enrollment_id in enumerate(ids):
        _hold(store, 500 + i * 100, enrollment_id)
    service.commit_hold(store, enrollment_id=ids[0])
    service.void_hold(store, enrollment_id=ids[1])

    active = holds_of(store, state=HoldState.ACTIVE)
    assert wallet_of(store).held_amount == sum(h.amount for h in active) == 700 + 800

    report = service.wallet_invariants(store, ORG_ID).value
    assert report[0]["ok"] is True
    assert report[0]["diff"] == 0


def test_add_funds_repays_credit_first(store):
    seed_wallet(store, balance=0, credit_limit=5000)
    enrollment_id = uuid.uuid4()
    _hold(store, 3000, enrollment_id)
    service.commit_hold(store, enrollment_id=enrollment_id)

    res = service.add_funds(store, organization_id=ORG_ID, amount=4000, reference="NEFT-1")
    assert res.ok, res.error
    assert res.value.credit_utilized == 0
    assert res.value.available_balance == 1000


def test_add_funds_limits(store):
    seed_wallet(store)
    low = service.add_funds(store, organization_id=ORG_ID, amount=999)
    assert low.error.message == "Minimum deposit is ₹1,000"
    high = service.add_funds(store, organization_id=ORG_ID, amount=10_000_001)
    assert isinstance(high.error, ValidationError)


def test_open_wallet_twice_conflicts(store):
    seed_wallet(store)
    res = service.open_wallet(store, organization_id=ORG_ID)
    assert isinstance(res.error, ConflictError)


def test_transactions_newest_first(store):
    seed_wallet(store, balance=5000)
    enrollment_id = uuid.uuid4()
    _hold(store, 700, enrollment_id)
    service.commit_hold(store, enrollment_id=enrollment_id)

    rows = service.list_transactions(store, ORG_ID).value
    assert [t.type for t in rows] == [
        WalletTransactionType.HOLD_COMMITTED,
        WalletTransactionType.HOLD_CREATED,
        WalletTransactionType.CREDIT,
    ]
    only_credit = service.list_transactions(store, ORG_ID, type=WalletTransactionType.CREDIT).value
    assert len(only_credit) == 1
    assert isinstance(service.list_transactions(store, ORG_ID, limit=0).error, ValidationError)


def test_failed_operation_leaves_wallet_untouched(store):
    seed_wallet(store, balance=1000)
    before = wallet_of(store)
    with pytest.raises(InsufficientCreditError):
        with store.transaction() as tx:
            ledger.create_hold(
                tx,
                organization_id=ORG_ID,
                campaign_id="camp-summer",
                enrollment_id=uuid.uuid4(),
                amount=5000,
            )
    assert wallet_of(store) == before
    assert holds_of(store) == []


def test_summarize_active_holds_groups_by_campaign(store):
    seed_wallet(store, balance=10000)
    for campaign_id, amount in [("camp-a", 100), ("camp-b", 200), ("camp-a", 300)]:
        service.create_hold(
            store,
            organization_id=ORG_ID,
            campaign_id=campaign_id,
            enrollment_id=uuid.uuid4(),
            amount=amount,
        )

    _, summary = service.get_wallet_summary(store, ORG_ID).value
    assert [(s.campaign_id, s.enrollment_count, s.hold_amount) for s in summary] == [
        ("camp-a", 2, 400),
        ("camp-b", 1, 200),
    ]
