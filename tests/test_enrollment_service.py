from datetime import datetime, timedelta, timezone
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.enrollments import service
from app.enrollments.model import EnrollmentAction, EnrollmentStatus
from app.errors import (
    ConflictError,
    IllegalTransitionError,
    InsufficientCreditError,
    NotFoundError,
    ValidationError,
)
from app.payouts.model import PayoutTier
from app.wallet.model import HoldState

from conftest import OTHER_ORG_ID, REVIEWER, holds_of, seed_campaign, seed_wallet, wallet_of


def _hold_state(store, enrollment_id):
    return [h.state for h in holds_of(store) if h.enrollment_id == enrollment_id]


def test_create_locks_payout_and_places_hold(store, make_enrollment):
    e = make_enrollment(order_value=12000, quantity=2)
    assert e.status == EnrollmentStatus.ENROLLED
    assert e.bill_rate == 900
    assert e.bill_amount == 1800
    assert e.platform_fee == 36
    assert e.gst_amount == 6
    assert e.net_payout == 1758

    assert _hold_state(store, e.id) == [HoldState.ACTIVE]
    assert wallet_of(store).held_amount == 1800


def test_create_without_funds_fails_and_leaves_nothing_behind(store, campaign):
    seed_wallet(store, balance=100)
    res = service.create_enrollment(
        store,
        organization_id=campaign.organization_id,
        campaign_id=campaign.id,
        shopper_id="shopper-1",
        order_id="ORD-1",
        order_value=1000,
    )
    assert isinstance(res.error, InsufficientCreditError)
    assert service.list_enrollments(store, campaign.organization_id).value == []
    assert holds_of(store) == []


def test_create_rejects_foreign_campaign(store, wallet):
    seed_campaign(store, campaign_id="camp-other", organization_id=OTHER_ORG_ID)
    res = service.create_enrollment(
        store,
        organization_id=wallet.organization_id,
        campaign_id="camp-other",
        shopper_id="shopper-1",
        order_id="ORD-1",
        order_value=1000,
    )
    assert isinstance(res.error, NotFoundError)
    assert res.error.message == "Campaign not found"


def test_create_validates_deadline(store, campaign, wallet):
    res = service.create_enrollment(
        store,
        organization_id=campaign.organization_id,
        campaign_id=campaign.id,
        shopper_id="shopper-1",
        order_id="ORD-1",
        order_value=1000,
        submission_deadline=datetime.now(timezone.utc) - timedelta(minutes=1),
    )
    assert isinstance(res.error, ValidationError)


def test_approve_from_review_commits_hold(store, make_enrollment):
    e = make_enrollment("awaiting_review")
    before = wallet_of(store)

    res = service.apply_transition(store, e.id, "approve", REVIEWER)
    assert res.ok, res.error
    assert res.value.status == EnrollmentStatus.APPROVED

    after = wallet_of(store)
    assert _hold_state(store, e.id) == [HoldState.COMMITTED]
    assert after.available_balance == before.available_balance - e.bill_amount
    assert after.held_amount == before.held_amount - e.bill_amount


def test_reject_without_reason_changes_nothing(store, make_enrollment):
    e = make_enrollment()
    res = service.apply_transition(store, e.id, EnrollmentAction.REJECT, REVIEWER)
    assert isinstance(res.error, ValidationError)
    assert res.error.message == "A reason is required to reject an enrollment"

    assert service.get_enrollment(store, e.id).value.status == EnrollmentStatus.ENROLLED
    assert _hold_state(store, e.id) == [HoldState.ACTIVE]
    assert len(service.get_transition_history(store, e.id).value.history) == 1


def test_blank_reason_counts_as_missing(store, make_enrollment):
    e = make_enrollment()
    res = service.apply_transition(store, e.id, EnrollmentAction.REQUEST_CHANGES, REVIEWER, "   ")
    assert res.error.message == "A reason is required to request changes"


def test_illegal_action_is_reported_before_missing_reason(store, make_enrollment):
    e = make_enrollment("approved")
    res = service.apply_transition(store, e.id, EnrollmentAction.REJECT, REVIEWER)
    assert isinstance(res.error, IllegalTransitionError)


@pytest.mark.parametrize("status", ["approved", "rejected", "withdrawn"])
def test_terminal_enrollments_never_change_again(store, make_enrollment, status):
    e = make_enrollment(status)
    for action in EnrollmentAction:
        res = service.apply_transition(store, e.id, action, REVIEWER, "some reason")
        assert isinstance(res.error, IllegalTransitionError)
    assert service.get_enrollment(store, e.id).value.status.value == status


@pytest.mark.parametrize("status", ["rejected", "withdrawn"])
def test_negative_outcomes_void_the_hold(store, make_enrollment, status):
    e = make_enrollment(status)
    assert _hold_state(store, e.id) == [HoldState.VOIDED]
    w = wallet_of(store)
    assert w.held_amount == 0
    assert w.available_balance == 100000


def test_unknown_enrollment_and_foreign_org_are_not_found(store, make_enrollment):
    e = make_enrollment()
    missing = service.apply_transition(store, "00000000-0000-0000-0000-00000000beef", "approve", REVIEWER)
    assert isinstance(missing.error, NotFoundError)
    garbage = service.apply_transition(store, "not-a-uuid", "approve", REVIEWER)
    assert isinstance(garbage.error, NotFoundError)

    foreign = service.apply_transition(store, e.id, "approve", REVIEWER, organization_id=OTHER_ORG_ID)
    assert isinstance(foreign.error, NotFoundError)
    assert service.get_enrollment(store, e.id).value.status == EnrollmentStatus.ENROLLED


def test_unknown_action_is_a_validation_error(store, make_enrollment):
    e = make_enrollment()
    res = service.apply_transition(store, e.id, "archive", REVIEWER)
    assert isinstance(res.error, ValidationError)
    assert res.error.message == "Unknown action: archive"


def test_stale_expected_status_conflicts(store, make_enrollment):
    e = make_enrollment()
    res = service.apply_transition(
        store, e.id, "approve", REVIEWER, expected_status=EnrollmentStatus.AWAITING_REVIEW
    )
    assert isinstance(res.error, ConflictError)
    ok = service.apply_transition(store, e.id, "approve", REVIEWER, expected_status="enrolled")
    assert ok.ok, ok.error


def test_concurrent_approvals_settle_exactly_once(store, make_enrollment):
    e = make_enrollment("awaiting_review")

    def _approve(_):
        return service.apply_transition(store, e.id, "approve", REVIEWER)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(_approve, range(8)))

    assert sum(1 for r in results if r.ok) == 1
    # whole transactions are serialized here, so losers read the committed status
    assert [r.error.code for r in results if not r.ok] == ["ILLEGAL_TRANSITION"] * 7
    assert _hold_state(store, e.id) == [HoldState.COMMITTED]
    assert wallet_of(store).available_balance == 100000 - e.bill_amount


def test_history_replays_to_current_status(store, make_enrollment):
    e = make_enrollment("awaiting_review")
    service.apply_transition(store, e.id, "approve", REVIEWER, "Looks good")

    history = service.get_transition_history(store, e.id).value
    entries = history.history
    assert [x.to_status for x in entries] == [
        EnrollmentStatus.ENROLLED,
        EnrollmentStatus.CHANGES_REQUESTED,
        EnrollmentStatus.AWAITING_REVIEW,
        EnrollmentStatus.APPROVED,
    ]
    assert entries[0].from_status is None
    for prev, cur in zip(entries, entries[1:]):
        assert cur.from_status == prev.to_status
        assert cur.created_at >= prev.created_at
    assert entries[-1].reason == "Looks good"
    assert entries[-1].actor_id == REVIEWER.id
    assert history.current_status == EnrollmentStatus.APPROVED
    assert history.allowed_transitions == []


def test_changes_requested_flow(store, make_enrollment):
    e = make_enrollment("changes_requested")
    history = service.get_transition_history(store, e.id).value
    assert history.allowed_transitions == [
        EnrollmentAction.WITHDRAW,
        EnrollmentAction.EXPIRE,
        EnrollmentAction.RESUBMIT,
    ]
    assert history.history[-1].reason == "Need a clearer invoice"


def test_extend_deadline(store, make_enrollment):
    e = make_enrollment("changes_requested")
    new_deadline = datetime.now(timezone.utc) + timedelta(days=3)
    res = service.extend_deadline(store, e.id, new_deadline, REVIEWER, "Courier delay")
    assert res.ok, res.error
    assert service.get_enrollment(store, e.id).value.submission_deadline == new_deadline

    past = service.extend_deadline(store, e.id, datetime.now(timezone.utc) - timedelta(days=1), REVIEWER)
    assert isinstance(past.error, ValidationError)


def test_extend_deadline_on_terminal_enrollment(store, make_enrollment):
    e = make_enrollment("approved")
    res = service.extend_deadline(store, e.id, datetime.now(timezone.utc) + timedelta(days=1), REVIEWER)
    assert isinstance(res.error, IllegalTransitionError)


def test_pricing_uses_locked_rates(store, make_enrollment, campaign):
    e = make_enrollment(order_value=6000)
    assert e.bill_rate == 600

    # a later campaign edit must not reprice the enrollment
    seed_campaign(store, payout_tiers=(PayoutTier(min_order_value=0, payout_amount=50),))

    pricing = service.enrollment_pricing(store, e.id).value
    assert pricing.payout_per_unit == 600
    assert pricing.total_payout == e.bill_amount
    assert pricing.net_payout == e.net_payout


def test_stats(store, make_enrollment):
    make_enrollment()
    make_enrollment("awaiting_review")
    make_enrollment("approved")
    make_enrollment("rejected")

    stats = service.enrollment_stats(store, "org-acme").value
    assert stats["total"] == 4
    assert stats["pending"] == 1
    assert stats["awaiting_review"] == 1
    assert stats["approved"] == 1
    assert stats["rejected"] == 1
    assert stats["approval_rate"] == 25


def test_list_filters_by_status(store, make_enrollment):
    make_enrollment()
    approved = make_enrollment("approved")
    rows = service.list_enrollments(store, "org-acme", status="approved").value
    assert [r.id for r in rows] == [approved.id]
    assert isinstance(service.list_enrollments(store, "org-acme", status="bogus").error, ValidationError)
