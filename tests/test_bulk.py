from datetime import datetime, timedelta, timezone

from app.enrollments import bulk, service
from app.enrollments.model import ActorType, EnrollmentAction, EnrollmentStatus
from app.errors import ValidationError
from app.wallet.model import HoldState

from conftest import REVIEWER, holds_of, wallet_of


def test_partial_failure_does_not_abort_batch(store, make_enrollment):
    e1 = make_enrollment("awaiting_review")
    e2 = make_enrollment("approved")

    res = bulk.bulk_apply(store, [str(e1.id), str(e2.id)], "approve", REVIEWER)
    assert res.ok, res.error
    out = res.value
    assert out.succeeded_count == 1
    assert out.failed_count == 1
    assert out.succeeded[0].id == e1.id
    assert out.succeeded[0].status == EnrollmentStatus.APPROVED
    assert out.failed[0].id == str(e2.id)
    assert out.failed[0].code == "ILLEGAL_TRANSITION"


def test_failure_codes_per_item(store, make_enrollment):
    e = make_enrollment()
    missing = "00000000-0000-0000-0000-000000000404"
    out = bulk.bulk_apply(store, [str(e.id), missing], EnrollmentAction.WITHDRAW, REVIEWER).value
    assert [s.id for s in out.succeeded] == [e.id]
    assert [(f.id, f.code) for f in out.failed] == [(missing, "NOT_FOUND")]


def test_reject_without_reason_fails_whole_batch(store, make_enrollment):
    ids = [str(make_enrollment().id) for _ in range(3)]
    res = bulk.bulk_apply(store, ids, "reject", REVIEWER)
    assert isinstance(res.error, ValidationError)
    for enrollment_id in ids:
        assert service.get_enrollment(store, enrollment_id).value.status == EnrollmentStatus.ENROLLED


def test_bulk_reject_voids_every_hold(store, make_enrollment):
    ids = [str(make_enrollment().id) for _ in range(3)]
    out = bulk.bulk_apply(store, ids, "reject", REVIEWER, "Duplicate orders").value
    assert out.succeeded_count == 3
    assert {h.state for h in holds_of(store)} == {HoldState.VOIDED}
    assert wallet_of(store).held_amount == 0


def test_duplicate_ids_are_applied_once(store, make_enrollment):
    e = make_enrollment()
    out = bulk.bulk_apply(store, [str(e.id), str(e.id)], "approve", REVIEWER).value
    assert out.succeeded_count == 1
    assert out.failed_count == 0


def test_empty_and_oversized_batches(store, monkeypatch):
    assert isinstance(bulk.bulk_apply(store, [], "approve", REVIEWER).error, ValidationError)

    from settings import settings

    monkeypatch.setattr(settings, "BULK_MAX_ITEMS", 2, raising=False)
    res = bulk.bulk_apply(store, ["a", "b", "c"], "approve", REVIEWER)
    assert isinstance(res.error, ValidationError)


def test_parallel_workers_keep_wallet_consistent(store, make_enrollment):
    ids = [str(make_enrollment().id) for _ in range(10)]
    total = sum(service.get_enrollment(store, i).value.bill_amount for i in ids)

    out = bulk.bulk_apply(store, ids, "approve", REVIEWER, max_workers=4).value
    assert out.succeeded_count == 10
    assert [str(s.id) for s in out.succeeded] == ids

    w = wallet_of(store)
    assert w.held_amount == 0
    assert w.available_balance == 100000 - total


def test_expire_overdue(store, make_enrollment):
    soon = datetime.now(timezone.utc) + timedelta(minutes=5)
    overdue = make_enrollment("changes_requested", submission_deadline=soon)
    fresh = make_enrollment(
        "changes_requested", submission_deadline=datetime.now(timezone.utc) + timedelta(days=30)
    )
    no_deadline = make_enrollment("changes_requested")

    out = bulk.expire_overdue(store, now=soon + timedelta(seconds=1)).value
    assert [s.id for s in out.succeeded] == [overdue.id]

    assert service.get_enrollment(store, overdue.id).value.status == EnrollmentStatus.EXPIRED
    assert service.get_enrollment(store, fresh.id).value.status == EnrollmentStatus.CHANGES_REQUESTED
    assert service.get_enrollment(store, no_deadline.id).value.status == EnrollmentStatus.CHANGES_REQUESTED

    last = service.get_transition_history(store, overdue.id).value.history[-1]
    assert last.actor_type == ActorType.SYSTEM
    assert last.reason == "Submission deadline passed"
    assert [h.state for h in holds_of(store) if h.enrollment_id == overdue.id] == [HoldState.VOIDED]


def test_expire_overdue_with_nothing_due(store, make_enrollment):
    make_enrollment()
    out = bulk.expire_overdue(store).value
    assert out.succeeded_count == 0
    assert out.action == EnrollmentAction.EXPIRE
